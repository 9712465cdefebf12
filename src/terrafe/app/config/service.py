"""YAML-backed user configuration for terrafe."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

import yaml

from terrafe.domain.cache import CacheSettings
from terrafe.domain.template import TEMPLATE_CATEGORIES
from terrafe.resources import load_default_templates
from terrafe.settings import RuntimeSettings
from terrafe.utils.package_manager import PACKAGE_MANAGER_CHOICES

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TIME_MS = 86_400_000
DEFAULT_FETCH_TIMEOUT_MS = 120_000

_MISSING = object()


class ConfigError(RuntimeError):
    """Raised when configuration values are rejected or cannot be persisted."""

    code = "CONFIG_INVALID"


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "packageManager": lambda value: value in PACKAGE_MANAGER_CHOICES,
    "gitInit": _is_bool,
    "installDeps": _is_bool,
    "registry": lambda value: isinstance(value, str) and value.startswith("http"),
    "templates.cache": _is_bool,
    "templates.cacheTime": _is_positive_number,
    "templates.cacheDir": lambda value: isinstance(value, str) and bool(value.strip()),
    "templates.fetchTimeout": _is_positive_number,
    "user.name": _is_str,
    "user.email": _is_str,
    "user.author": _is_str,
    "verbose": _is_bool,
}


def default_config(settings: RuntimeSettings) -> Dict[str, Any]:
    catalogue = load_default_templates()
    return {
        "packageManager": "auto",
        "gitInit": True,
        "installDeps": True,
        "registry": "https://registry.npmjs.org/",
        "templates": {
            "cache": True,
            "cacheTime": DEFAULT_CACHE_TIME_MS,
            "cacheDir": str(settings.default_cache_dir),
            "fetchTimeout": DEFAULT_FETCH_TIMEOUT_MS,
            "official": copy.deepcopy(catalogue["official"]),
            "community": copy.deepcopy(catalogue["community"]),
            "custom": {},
        },
        "user": {"name": "", "email": "", "author": ""},
        "verbose": False,
    }


def merge_config(defaults: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay ``user`` on ``defaults``.

    The ``templates`` block replaces the default one wholesale so removed
    templates stay removed; absent categories come back empty and absent cache
    options fall back to their defaults.
    """

    result = copy.deepcopy(dict(defaults))
    for key, value in user.items():
        if key == "templates" and isinstance(value, Mapping):
            block = copy.deepcopy(dict(value))
            for category in TEMPLATE_CATEGORIES:
                if not isinstance(block.get(category), Mapping):
                    block[category] = {}
            for option in ("cache", "cacheTime", "cacheDir", "fetchTimeout"):
                if option not in block and option in defaults.get("templates", {}):
                    block[option] = defaults["templates"][option]
            result[key] = block
        elif isinstance(value, Mapping) and isinstance(defaults.get(key), Mapping):
            result[key] = merge_config(defaults[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class ConfigService:
    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings
        self._path = settings.config_file
        self._defaults = default_config(settings)
        self._data: Dict[str, Any] = copy.deepcopy(self._defaults)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def defaults(self) -> Dict[str, Any]:
        return copy.deepcopy(self._defaults)

    def load(self) -> Dict[str, Any]:
        if not self._path.exists():
            self._data = copy.deepcopy(self._defaults)
            self._loaded = True
            self.save()
            logger.debug("created default configuration at %s", self._path)
            return self.all()
        try:
            payload = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("configuration at %s is unreadable, using defaults: %s", self._path, exc)
            payload = {}
        if not isinstance(payload, Mapping):
            logger.warning("configuration at %s is not a mapping, using defaults", self._path)
            payload = {}
        self._data = merge_config(self._defaults, payload)
        self._loaded = True
        logger.debug("configuration loaded from %s", self._path)
        return self.all()

    def save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                yaml.safe_dump(self._data, sort_keys=False, allow_unicode=True), encoding="utf-8"
            )
        except OSError as exc:
            raise ConfigError(f"cannot write configuration {self._path}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        self._ensure_loaded()
        current: Any = self._data
        for part in key.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            else:
                return default
        return copy.deepcopy(current)

    def set(self, key: str, value: Any) -> None:
        self._ensure_loaded()
        if not self.validate(key, value):
            raise ConfigError(f"invalid value for '{key}': {value!r}")
        parts = key.split(".")
        current = self._data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value
        logger.debug("configuration updated: %s = %r", key, value)

    def delete(self, key: str) -> bool:
        self._ensure_loaded()
        parts = key.split(".")
        current: Any = self._data
        for part in parts[:-1]:
            if not isinstance(current, dict) or not isinstance(current.get(part), dict):
                return False
            current = current[part]
        if parts[-1] not in current:
            return False
        del current[parts[-1]]
        logger.debug("configuration key removed: %s", key)
        return True

    def reset(self) -> None:
        self._data = copy.deepcopy(self._defaults)
        self._loaded = True
        self.save()

    def all(self) -> Dict[str, Any]:
        self._ensure_loaded()
        return copy.deepcopy(self._data)

    def validate(self, key: str, value: Any) -> bool:
        validator = VALIDATORS.get(key)
        return True if validator is None else bool(validator(value))

    def export(self, target: Path) -> Path:
        self._ensure_loaded()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(yaml.safe_dump(self._data, sort_keys=False, allow_unicode=True), encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot export configuration to {target}: {exc}") from exc
        return target

    def import_file(self, source: Path) -> None:
        if not source.is_file():
            raise ConfigError(f"configuration file not found: {source}")
        try:
            payload = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read configuration {source}: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise ConfigError(f"configuration {source} must be a mapping")
        for key, validator in VALIDATORS.items():
            value = _lookup(payload, key)
            if value is not _MISSING and not validator(value):
                raise ConfigError(f"invalid value for '{key}' in {source}: {value!r}")
        self._data = merge_config(self._defaults, payload)
        self._loaded = True
        self.save()

    def cache_settings(self) -> CacheSettings:
        templates = self.get("templates", {}) or {}
        cache_dir = templates.get("cacheDir") or str(self._settings.default_cache_dir)
        fetch_timeout = templates.get("fetchTimeout", DEFAULT_FETCH_TIMEOUT_MS)
        return CacheSettings(
            cache_dir=Path(cache_dir).expanduser(),
            ttl_ms=int(templates.get("cacheTime", DEFAULT_CACHE_TIME_MS)),
            enabled=bool(templates.get("cache", True)),
            fetch_timeout_s=float(fetch_timeout) / 1000 if fetch_timeout else None,
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()


def _lookup(payload: Mapping[str, Any], key: str) -> Any:
    current: Any = payload
    for part in key.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


__all__ = ["ConfigError", "ConfigService", "default_config", "merge_config"]
