"""Port definitions for the template cache."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ContextManager, Mapping

from terrafe.domain.cache import CacheStats


class CacheWriteError(RuntimeError):
    """Raised when a cache entry cannot be recorded."""

    code = "CACHE_WRITE_FAILED"


class CacheStore(ABC):
    @abstractmethod
    def key_for(self, reference: str) -> str:
        """Return the cache key for a raw reference."""

    @abstractmethod
    def entry_path(self, key: str) -> Path:
        """Directory holding the entry for ``key``."""

    @abstractmethod
    def metadata_path(self, key: str) -> Path:
        """Metadata file describing the entry for ``key``."""

    @abstractmethod
    def is_valid(self, reference: str) -> bool:
        """True when a complete, unexpired entry exists for ``reference``."""

    @abstractmethod
    def get(self, reference: str) -> Path | None:
        """Return the entry directory when valid."""

    @abstractmethod
    def prepare(self, reference: str) -> Path:
        """Reset the entry for ``reference`` to an empty directory."""

    @abstractmethod
    def put(self, reference: str, options: Mapping[str, Any] | None = None) -> Path:
        """Record fresh metadata for an already populated entry."""

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """Remove directory and metadata for ``key``."""

    @abstractmethod
    def lock(self, key: str) -> ContextManager[Any]:
        """Advisory lock serialising population of ``key`` across processes."""

    @abstractmethod
    def sweep_expired(self) -> int:
        """Remove expired entries; return how many were removed."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the whole cache root."""

    @abstractmethod
    def stats(self) -> CacheStats:
        """Aggregate statistics for the cache root."""
