"""Filesystem-backed template cache."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Mapping

import jsonschema
from filelock import FileLock, Timeout

from terrafe.domain.cache import (
    LOCK_SUFFIX,
    METADATA_SCHEMA_VERSION,
    METADATA_SUFFIX,
    CacheMetadata,
    CacheSettings,
    CacheStats,
    MetadataCorruptError,
)
from terrafe.domain.reference import cache_key
from terrafe.ports.cache_store import CacheStore, CacheWriteError
from terrafe.resources import load_schema

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def _now_ms() -> int:
    return int(time.time() * 1000)


class FSCacheStore(CacheStore):
    """Cache entries stored as ``<root>/<key>/`` plus ``<root>/<key>.meta.json``."""

    def __init__(self, settings: CacheSettings, *, clock: Callable[[], int] = _now_ms) -> None:
        self._root = settings.cache_dir
        self._ttl_ms = settings.ttl_ms
        self._clock = clock
        self._validator = jsonschema.Draft202012Validator(load_schema("cache_metadata.schema.json"))

    @property
    def root(self) -> Path:
        return self._root

    def key_for(self, reference: str) -> str:
        return cache_key(reference)

    def entry_path(self, key: str) -> Path:
        return self._root / key

    def metadata_path(self, key: str) -> Path:
        return self._root / f"{key}{METADATA_SUFFIX}"

    def is_valid(self, reference: str) -> bool:
        key = self.key_for(reference)
        if not self.entry_path(key).is_dir() or not self.metadata_path(key).is_file():
            return False
        try:
            metadata = self._load_metadata(key)
        except MetadataCorruptError as exc:
            logger.debug("cache metadata rejected for %s: %s", reference, exc)
            return False
        if metadata.is_expired(self._clock(), self._ttl_ms):
            logger.debug("cache entry expired for %s", reference)
            return False
        return True

    def get(self, reference: str) -> Path | None:
        if not self.is_valid(reference):
            return None
        path = self.entry_path(self.key_for(reference))
        logger.debug("using cached template for %s at %s", reference, path)
        return path

    def prepare(self, reference: str) -> Path:
        key = self.key_for(reference)
        path = self.entry_path(key)
        try:
            self.invalidate(key)
            path.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise CacheWriteError(f"cannot create cache entry {path}: {exc}") from exc
        return path

    def put(self, reference: str, options: Mapping[str, Any] | None = None) -> Path:
        key = self.key_for(reference)
        metadata = CacheMetadata(
            original_reference=reference,
            cached_at=self._clock(),
            cache_key=key,
            options=dict(options or {}),
        )
        target = self.metadata_path(key)
        tmp_path: Path | None = None
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self._root)
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(metadata.to_dict(), fh, indent=2, ensure_ascii=False)
                fh.write("\n")
            os.replace(tmp_path, target)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CacheWriteError(f"cannot write cache metadata {target}: {exc}") from exc
        return self.entry_path(key)

    def invalidate(self, key: str) -> None:
        # metadata first: a half-removed directory must never look valid
        self.metadata_path(key).unlink(missing_ok=True)
        entry = self.entry_path(key)
        if entry.is_dir():
            shutil.rmtree(entry)
        elif entry.exists():
            entry.unlink()

    def lock_path(self, key: str) -> Path:
        return self._root / f"{key}{LOCK_SUFFIX}"

    def lock(self, key: str, *, timeout: float = -1) -> FileLock:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheWriteError(f"cannot create cache directory {self._root}: {exc}") from exc
        return FileLock(str(self.lock_path(key)), timeout=timeout)

    def sweep_expired(self) -> int:
        """Remove expired and unreadable entries; only expired ones are counted.

        Entry directories without metadata are leftovers of an interrupted
        population and are removed too, unless another process holds their lock.
        Lock files are never unlinked while a waiter may hold them open.
        """

        if not self._root.exists():
            return 0
        self._remove_orphans()
        now = self._clock()
        removed = 0
        for metadata_file in sorted(self._root.glob(f"*{METADATA_SUFFIX}")):
            key = metadata_file.name[: -len(METADATA_SUFFIX)]
            try:
                metadata = self._load_metadata(key)
            except MetadataCorruptError as exc:
                logger.debug("removing unreadable cache entry %s: %s", key, exc)
                self.invalidate(key)
                continue
            if metadata.is_expired(now, self._ttl_ms):
                self.invalidate(key)
                removed += 1
        if removed:
            logger.info("removed %d expired cache entries", removed)
        return removed

    def _remove_orphans(self) -> None:
        for entry in sorted(self._root.iterdir()):
            key = entry.name
            if not _KEY_PATTERN.match(key) or entry.is_symlink() or not entry.is_dir():
                continue
            if self.metadata_path(key).exists():
                continue
            try:
                with self.lock(key, timeout=0):
                    if not self.metadata_path(key).exists():
                        shutil.rmtree(entry)
                        logger.debug("removed cache directory %s without metadata", entry)
            except Timeout:
                logger.debug("cache entry %s is being populated; leaving it", key)

    def clear(self) -> None:
        if self._root.exists():
            shutil.rmtree(self._root)

    def stats(self) -> CacheStats:
        if not self._root.exists():
            return CacheStats()
        now = self._clock()
        total_size = 0
        for candidate in self._root.rglob("*"):
            if candidate.is_file() and not candidate.is_symlink():
                total_size += candidate.stat().st_size
        total_items = 0
        expired = 0
        for metadata_file in self._root.glob(f"*{METADATA_SUFFIX}"):
            total_items += 1
            key = metadata_file.name[: -len(METADATA_SUFFIX)]
            try:
                metadata = self._load_metadata(key)
            except MetadataCorruptError:
                continue
            if metadata.is_expired(now, self._ttl_ms):
                expired += 1
        return CacheStats(total_items=total_items, total_size_bytes=total_size, expired_items=expired)

    def _load_metadata(self, key: str) -> CacheMetadata:
        path = self.metadata_path(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MetadataCorruptError(f"metadata unreadable at {path}: {exc}") from exc
        try:
            self._validator.validate(data)
        except jsonschema.ValidationError as exc:
            raise MetadataCorruptError(f"metadata does not match schema: {exc.message}") from exc
        metadata = CacheMetadata.from_dict(data)
        if metadata.schema_version != METADATA_SCHEMA_VERSION:
            raise MetadataCorruptError(
                f"metadata schema version {metadata.schema_version} != {METADATA_SCHEMA_VERSION}"
            )
        if metadata.cache_key != key:
            raise MetadataCorruptError(f"metadata cache key {metadata.cache_key} != {key}")
        return metadata


__all__ = ["FSCacheStore"]
