"""Named template catalogue persisted in the user configuration."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List

from terrafe.app.config.service import ConfigService
from terrafe.domain.template import DEFAULT_CATEGORIES, TEMPLATE_CATEGORIES, TemplateEntry
from terrafe.resources import load_default_templates

logger = logging.getLogger(__name__)

RESTORE_CHOICES = ("official", "community", "all")


class TemplateRegistryError(RuntimeError):
    """Raised when the registry rejects an operation."""

    code = "TEMPLATE_EXISTS"


class TemplateNotFoundError(TemplateRegistryError):
    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, name: str) -> None:
        super().__init__(f"template '{name}' does not exist")
        self.name = name


def _now_ms() -> int:
    return int(time.time() * 1000)


class TemplateRegistry:
    def __init__(self, config: ConfigService, *, clock: Callable[[], int] = _now_ms) -> None:
        self._config = config
        self._clock = clock

    def list(self, category: str = "all") -> List[TemplateEntry]:
        entries: List[TemplateEntry] = []
        for name in self._categories(category):
            block = self._config.get(f"templates.{name}", {}) or {}
            for template_name, data in block.items():
                if isinstance(data, dict):
                    entries.append(TemplateEntry.from_mapping(template_name, name, data))
        return entries

    def get(self, name: str) -> TemplateEntry | None:
        # later categories shadow earlier ones, custom wins
        found: TemplateEntry | None = None
        for entry in self.list():
            if entry.name == name:
                found = entry
        return found

    def require(self, name: str) -> TemplateEntry:
        entry = self.get(name)
        if entry is None:
            raise TemplateNotFoundError(name)
        return entry

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def add_custom(self, name: str, repo: str, description: str = "", tags: Iterable[str] = ()) -> TemplateEntry:
        name = name.strip()
        repo = repo.strip()
        if not name:
            raise TemplateRegistryError("template name must not be empty")
        if not repo:
            raise TemplateRegistryError("template repository must not be empty")
        if self.has(name):
            raise TemplateRegistryError(f"template '{name}' already exists")
        entry = TemplateEntry(
            name=name,
            repo=repo,
            category="custom",
            description=description.strip(),
            tags=tuple(tag.strip() for tag in tags if tag.strip()),
            added_at=self._clock(),
        )
        custom = self._config.get("templates.custom", {}) or {}
        custom[name] = entry.to_mapping()
        self._config.set("templates.custom", custom)
        self._config.save()
        logger.info("custom template %s added", name)
        return entry

    def remove(self, name: str) -> str:
        for category in ("custom", *DEFAULT_CATEGORIES):
            block = self._config.get(f"templates.{category}", {}) or {}
            if name in block:
                del block[name]
                self._config.set(f"templates.{category}", block)
                self._config.save()
                logger.info("template %s removed from %s", name, category)
                return category
        raise TemplateNotFoundError(name)

    def restore(self, category: str = "all") -> List[str]:
        """Bring back deleted default templates; return the names restored."""

        if category not in RESTORE_CHOICES:
            raise TemplateRegistryError(f"cannot restore category '{category}' (choose from {', '.join(RESTORE_CHOICES)})")
        deleted = self.deleted_defaults()
        targets = DEFAULT_CATEGORIES if category == "all" else (category,)
        defaults = load_default_templates()
        restored: List[str] = []
        for target in targets:
            restored.extend(deleted[target])
            self._config.set(f"templates.{target}", dict(defaults[target]))
        self._config.save()
        return restored

    def deleted_defaults(self) -> Dict[str, List[str]]:
        defaults = load_default_templates()
        result: Dict[str, List[str]] = {}
        for category in DEFAULT_CATEGORIES:
            current = self._config.get(f"templates.{category}", {}) or {}
            result[category] = [name for name in defaults[category] if name not in current]
        return result

    def search(self, query: str, category: str = "all") -> List[TemplateEntry]:
        return [entry for entry in self.list(category) if entry.matches(query)]

    @staticmethod
    def _categories(category: str) -> tuple[str, ...]:
        if category == "all":
            return TEMPLATE_CATEGORIES
        if category not in TEMPLATE_CATEGORIES:
            raise TemplateRegistryError(
                f"unknown template category '{category}' (choose from all, {', '.join(TEMPLATE_CATEGORIES)})"
            )
        return (category,)


__all__ = ["RESTORE_CHOICES", "TemplateNotFoundError", "TemplateRegistry", "TemplateRegistryError"]
