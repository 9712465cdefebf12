"""Project creation workflow: resolve the template source, obtain it, generate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from terrafe.app.generator.service import GenerateOptions, ProjectGenerator
from terrafe.app.templates.provider import TemplateProvider
from terrafe.app.templates.registry import TemplateNotFoundError, TemplateRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateSource:
    """Exactly one of ``name``, ``repo`` or ``path`` is set."""

    name: str | None = None
    repo: str | None = None
    path: Path | None = None

    @property
    def kind(self) -> str:
        if self.path is not None:
            return "local"
        if self.repo:
            return "repo"
        return "registry"

    def describe(self) -> str:
        if self.path is not None:
            return str(self.path)
        return self.repo or self.name or ""


@dataclass(frozen=True)
class CreateResult:
    project_dir: Path
    template_dir: Path
    source: TemplateSource
    reference: str | None = None


class CreateProjectService:
    def __init__(
        self,
        registry: TemplateRegistry,
        provider: TemplateProvider,
        generator: ProjectGenerator,
    ) -> None:
        self._registry = registry
        self._provider = provider
        self._generator = generator

    def resolve_template(self, source: TemplateSource) -> tuple[Path, str | None]:
        """Return ``(template_dir, reference)``; ``reference`` is None for local templates."""

        if source.path is not None:
            template_dir = source.path.expanduser().resolve()
            if not template_dir.is_dir():
                raise TemplateNotFoundError(str(source.path))
            return template_dir, None
        if source.repo:
            reference = source.repo.strip()
        elif source.name:
            reference = self._registry.require(source.name).repo
        else:
            raise TemplateNotFoundError("<unspecified>")
        logger.debug("template %s resolved to reference %s", source.describe(), reference)
        return self._provider.get_template(reference), reference

    def create(self, project_name: str, source: TemplateSource, options: GenerateOptions) -> CreateResult:
        template_dir, reference = self.resolve_template(source)
        project_dir = self._generator.generate(project_name, replace(options, template_path=template_dir))
        return CreateResult(project_dir=project_dir, template_dir=template_dir, source=source, reference=reference)


__all__ = ["CreateProjectService", "CreateResult", "TemplateSource"]
