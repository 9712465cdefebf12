"""Domain exports."""

from .cache import CacheMetadata, CacheSettings, CacheStats, MetadataCorruptError
from .reference import CanonicalLocator, cache_key, resolve_reference
from .template import TEMPLATE_CATEGORIES, TemplateEntry

__all__ = [
    "CacheMetadata",
    "CacheSettings",
    "CacheStats",
    "CanonicalLocator",
    "MetadataCorruptError",
    "TEMPLATE_CATEGORIES",
    "TemplateEntry",
    "cache_key",
    "resolve_reference",
]
