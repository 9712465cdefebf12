"""Domain model for named templates in the registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

TEMPLATE_CATEGORIES = ("official", "community", "custom")
DEFAULT_CATEGORIES = ("official", "community")


@dataclass(frozen=True)
class TemplateEntry:
    name: str
    repo: str
    category: str
    description: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    added_at: int | None = None
    updated_at: int | None = None

    @classmethod
    def from_mapping(cls, name: str, category: str, data: Mapping[str, Any]) -> "TemplateEntry":
        tags_value = data.get("tags") or []
        tags = tuple(str(tag).strip() for tag in tags_value if str(tag).strip()) if isinstance(tags_value, list) else ()
        return cls(
            name=name,
            repo=str(data.get("repo", "")),
            category=category,
            description=str(data.get("description", "") or ""),
            tags=tags,
            added_at=data.get("addedAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"repo": self.repo, "description": self.description}
        if self.tags:
            payload["tags"] = list(self.tags)
        if self.added_at is not None:
            payload["addedAt"] = self.added_at
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

    def matches(self, query: str) -> bool:
        haystack = " ".join([self.name, self.description, *self.tags]).lower()
        return query.lower() in haystack
