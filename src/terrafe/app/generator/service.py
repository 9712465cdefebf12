"""Project generation from a template directory."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from terrafe.utils import git as git_utils
from terrafe.utils import package_manager as pm
from terrafe.utils.validate import validate_project_name

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = frozenset(
    {".js", ".ts", ".jsx", ".tsx", ".vue", ".json", ".md", ".txt", ".html", ".css", ".scss", ".less"}
)
IGNORED_ENTRIES = frozenset({".git"})
_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class GeneratorError(RuntimeError):
    def __init__(self, message: str, code: str = "GENERATION_FAILED") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class GenerateOptions:
    template_path: Path | None = None
    force: bool = False
    skip_git: bool = False
    skip_install: bool = False
    package_manager: str = "auto"
    quiet_install: bool = True
    template_data: Dict[str, Any] = field(default_factory=dict)


def replace_variables(content: str, data: Mapping[str, Any]) -> str:
    """Substitute ``{{key}}`` placeholders; unknown keys are left untouched."""

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(data[key]) if key in data and data[key] is not None else match.group(0)

    return _PLACEHOLDER.sub(_sub, content)


class ProjectGenerator:
    def __init__(
        self,
        *,
        cwd: Path | None = None,
        git_setup: Callable[[Path], bool] = git_utils.setup_initial_commit,
        select_manager: Callable[[Path, str], str] = pm.select_package_manager,
        install: Callable[..., None] = pm.install_dependencies,
    ) -> None:
        self._cwd = cwd
        self._git_setup = git_setup
        self._select_manager = select_manager
        self._install = install

    def target_for(self, project_name: str) -> Path:
        return (self._cwd or Path.cwd()) / project_name

    def generate(self, project_name: str, options: GenerateOptions) -> Path:
        target = self.target_for(project_name)
        self._validate(project_name, target, options)
        try:
            target.mkdir(parents=True, exist_ok=False)
            if options.template_path is not None:
                self._copy_template(options.template_path, target)
            data = {"projectName": project_name, **options.template_data}
            self._process_directory(target, data)
            if options.skip_git:
                logger.debug("skipping git initialisation")
            elif not self._git_setup(target):
                logger.warning("git initialisation failed; the project was still created")
            self._install_dependencies(target, options)
        except BaseException:
            if target.exists():
                shutil.rmtree(target, ignore_errors=True)
                logger.debug("removed incomplete project at %s", target)
            raise
        logger.info("project %s created at %s", project_name, target)
        return target

    def _validate(self, project_name: str, target: Path, options: GenerateOptions) -> None:
        result = validate_project_name(project_name)
        if not result.valid:
            raise GeneratorError(
                f"invalid project name '{project_name}': {'; '.join(result.errors)}", "INVALID_PROJECT_NAME"
            )
        for warning in result.warnings:
            logger.warning(warning)
        if target.exists():
            if not options.force:
                raise GeneratorError(f"directory {target} already exists", "DIRECTORY_EXISTS")
            logger.warning("removing existing directory %s", target)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()

    def _copy_template(self, template_path: Path, target: Path) -> None:
        if not template_path.is_dir():
            raise GeneratorError(f"template path {template_path} does not exist", "TEMPLATE_NOT_FOUND")
        try:
            shutil.copytree(
                template_path,
                target,
                symlinks=True,
                dirs_exist_ok=True,
                ignore=shutil.ignore_patterns(*IGNORED_ENTRIES),
            )
        except (OSError, shutil.Error) as exc:
            raise GeneratorError(f"cannot copy template from {template_path}: {exc}", "TEMPLATE_COPY_ERROR") from exc

    def _process_directory(self, directory: Path, data: Mapping[str, Any]) -> None:
        for entry in sorted(directory.iterdir()):
            if entry.is_symlink():
                continue
            if entry.is_dir():
                self._process_directory(entry, data)
            elif entry.suffix.lower() in TEXT_EXTENSIONS:
                self._process_file(entry, data)
            renamed = replace_variables(entry.name, data)
            if renamed != entry.name:
                entry.rename(entry.with_name(renamed))

    @staticmethod
    def _process_file(path: Path, data: Mapping[str, Any]) -> None:
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("skipping non-utf8 file %s", path)
            return
        processed = replace_variables(content, data)
        if processed != content:
            path.write_text(processed, encoding="utf-8")

    def _install_dependencies(self, target: Path, options: GenerateOptions) -> None:
        if options.skip_install:
            logger.debug("skipping dependency installation")
            return
        if not (target / "package.json").exists():
            logger.debug("no package.json in %s; skipping dependency installation", target)
            return
        manager = self._select_manager(target, options.package_manager)
        try:
            self._install(target, manager, quiet=options.quiet_install)
        except pm.InstallError as exc:
            raise GeneratorError(str(exc), "DEPENDENCY_INSTALL_FAILED") from exc


__all__ = ["GenerateOptions", "GeneratorError", "ProjectGenerator", "TEXT_EXTENSIONS", "replace_variables"]
