"""Template acquisition, caching and registry services."""

from .extractor import SubdirectoryNotFoundError, extract_subdirectory
from .provider import TemplateFetchFailed, TemplateProvider
from .registry import TemplateNotFoundError, TemplateRegistry, TemplateRegistryError

__all__ = [
    "SubdirectoryNotFoundError",
    "TemplateFetchFailed",
    "TemplateNotFoundError",
    "TemplateProvider",
    "TemplateRegistry",
    "TemplateRegistryError",
    "extract_subdirectory",
]
