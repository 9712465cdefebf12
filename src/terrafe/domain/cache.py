"""Domain model for cached template entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

METADATA_SCHEMA_VERSION = 1
METADATA_SUFFIX = ".meta.json"
LOCK_SUFFIX = ".lock"

_RESERVED_KEYS = {"originalReference", "cachedAt", "cacheKey", "schemaVersion"}


class MetadataCorruptError(ValueError):
    """Raised when a metadata file cannot be interpreted."""


@dataclass(frozen=True)
class CacheSettings:
    cache_dir: Path
    ttl_ms: int = 86_400_000
    enabled: bool = True
    fetch_timeout_s: float | None = 120.0


@dataclass
class CacheMetadata:
    original_reference: str
    cached_at: int
    cache_key: str
    schema_version: int = METADATA_SCHEMA_VERSION
    options: dict[str, Any] = field(default_factory=dict)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.cached_at

    def is_expired(self, now_ms: int, ttl_ms: int) -> bool:
        return self.age_ms(now_ms) > ttl_ms

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            key: value for key, value in self.options.items() if key not in _RESERVED_KEYS
        }
        payload.update(
            {
                "originalReference": self.original_reference,
                "cachedAt": self.cached_at,
                "cacheKey": self.cache_key,
                "schemaVersion": self.schema_version,
            }
        )
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> "CacheMetadata":
        if not isinstance(data, dict):
            raise MetadataCorruptError("metadata must be a JSON object")
        try:
            return cls(
                original_reference=data["originalReference"],
                cached_at=int(data["cachedAt"]),
                cache_key=data["cacheKey"],
                schema_version=int(data.get("schemaVersion", 0)),
                options={k: v for k, v in data.items() if k not in _RESERVED_KEYS},
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MetadataCorruptError(f"metadata missing or malformed field: {exc}") from exc


@dataclass(frozen=True)
class CacheStats:
    total_items: int = 0
    total_size_bytes: int = 0
    expired_items: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalItems": self.total_items,
            "totalSizeBytes": self.total_size_bytes,
            "expiredItems": self.expired_items,
        }


__all__ = [
    "CacheMetadata",
    "CacheSettings",
    "CacheStats",
    "LOCK_SUFFIX",
    "METADATA_SCHEMA_VERSION",
    "METADATA_SUFFIX",
    "MetadataCorruptError",
]
