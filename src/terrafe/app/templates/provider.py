"""Template acquisition: cache lookup, fetch, extraction and bookkeeping."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Mapping

from terrafe.domain.cache import CacheSettings, CacheStats
from terrafe.domain.reference import resolve_reference
from terrafe.ports.cache_store import CacheStore, CacheWriteError
from terrafe.ports.template_fetcher import TemplateFetcher
from terrafe.settings import RuntimeSettings
from terrafe.utils.telemetry import record_structured_event

from .extractor import extract_subdirectory

logger = logging.getLogger(__name__)


class TemplateFetchFailed(RuntimeError):
    """Raised when a template could not be obtained; chained to the underlying error."""

    code = "TEMPLATE_FETCH_FAILED"

    def __init__(self, reference: str, cause: BaseException) -> None:
        super().__init__(f"failed to obtain template '{reference}': {cause}")
        self.reference = reference
        self.cause_code = getattr(cause, "code", None)


class TemplateProvider:
    def __init__(
        self,
        settings: CacheSettings,
        store: CacheStore,
        fetcher: TemplateFetcher,
        *,
        runtime_settings: RuntimeSettings | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._fetcher = fetcher
        self._runtime = runtime_settings

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def get_template(self, reference: str, options: Mapping[str, Any] | None = None) -> Path:
        key = self._store.key_for(reference)
        if self._settings.enabled:
            cached = self._store.get(reference)
            if cached is not None:
                self._emit("template.cache_hit", key, {"reference": reference})
                return cached

        try:
            lock = self._store.lock(key)
        except CacheWriteError as exc:
            raise TemplateFetchFailed(reference, exc) from exc
        with lock:
            if self._settings.enabled:
                # another process may have populated the entry while we waited
                cached = self._store.get(reference)
                if cached is not None:
                    self._emit("template.cache_hit", key, {"reference": reference, "afterWait": True})
                    return cached
            return self._populate(reference, key, options)

    def _populate(self, reference: str, key: str, options: Mapping[str, Any] | None) -> Path:
        started = time.perf_counter()
        locator = resolve_reference(reference)
        logger.info("fetching template %s via %s", reference, locator.strategy)
        try:
            destination = self._store.prepare(reference)
            self._fetcher.fetch(locator, destination, timeout=self._settings.fetch_timeout_s)
            if locator.subdirectory:
                extract_subdirectory(destination, locator.subdirectory)
            path = self._store.put(reference, options)
        except BaseException as exc:
            self._rollback(key)
            self._emit(
                "template.fetch",
                key,
                {"reference": reference, "error": str(exc)},
                level="error",
                status="error",
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            if isinstance(exc, Exception):
                raise TemplateFetchFailed(reference, exc) from exc
            raise
        self._emit(
            "template.fetch",
            key,
            {"reference": reference, "locator": str(locator), "strategy": locator.strategy},
            status="ok",
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return path

    def _rollback(self, key: str) -> None:
        try:
            self._store.invalidate(key)
        except OSError as exc:
            # the entry has no metadata, so lookups still treat it as a miss
            logger.warning("could not remove partial cache entry %s: %s", self._store.entry_path(key), exc)

    def clear_all_cache(self) -> bool:
        try:
            self._store.clear()
        except OSError as exc:
            logger.error("failed to clear template cache at %s: %s", self._settings.cache_dir, exc)
            return False
        return True

    def clean_expired_cache(self) -> int:
        return self._store.sweep_expired()

    def get_cache_stats(self) -> CacheStats:
        return self._store.stats()

    def _emit(
        self,
        event: str,
        key: str,
        payload: dict[str, Any],
        *,
        level: str = "info",
        status: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self._runtime is None:
            return
        record_structured_event(
            self._runtime,
            event,
            payload=payload,
            level=level,
            status=status,
            component="template-provider",
            cache_key=key,
            duration_ms=duration_ms,
        )


__all__ = ["TemplateFetchFailed", "TemplateProvider"]
