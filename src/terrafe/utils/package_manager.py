"""Package manager detection and dependency installation."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT_S = 300.0
MANAGERS = ("pnpm", "yarn", "npm")
PACKAGE_MANAGER_CHOICES = ("auto", "npm", "yarn", "pnpm")
LOCK_FILES = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
)

Which = Callable[[str], Optional[str]]


class InstallError(RuntimeError):
    """Raised when dependency installation fails or times out."""

    code = "DEPENDENCY_INSTALL_FAILED"


def detect_package_manager(project_dir: Path | None = None, *, which: Which = shutil.which) -> str:
    if project_dir is not None and project_dir.is_dir():
        for lock_file, manager in LOCK_FILES:
            if (project_dir / lock_file).exists():
                return manager
    for manager in MANAGERS:
        if which(manager):
            return manager
    return "npm"


def select_package_manager(project_dir: Path, preferred: str = "auto", *, which: Which = shutil.which) -> str:
    if preferred and preferred != "auto":
        if which(preferred):
            return preferred
        logger.warning("package manager %s is not available; detecting automatically", preferred)
    return detect_package_manager(project_dir, which=which)


def install_dependencies(
    project_dir: Path,
    manager: str,
    *,
    timeout: float = INSTALL_TIMEOUT_S,
    quiet: bool = True,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> None:
    command = [manager, "install"]
    logger.info("installing dependencies with %s", manager)
    kwargs: dict = {"cwd": project_dir, "timeout": timeout, "check": False}
    if quiet:
        kwargs.update(stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
    try:
        result = runner(command, **kwargs)
    except subprocess.TimeoutExpired as exc:
        raise InstallError(f"{manager} install timed out after {timeout:.0f}s") from exc
    except OSError as exc:
        raise InstallError(f"{manager} install could not start: {exc}") from exc
    if result.returncode != 0:
        detail = (getattr(result, "stderr", None) or "").strip()
        message = f"{manager} install failed with exit code {result.returncode}"
        if detail:
            message += f": {detail.splitlines()[-1]}"
        raise InstallError(message)


__all__ = [
    "INSTALL_TIMEOUT_S",
    "InstallError",
    "PACKAGE_MANAGER_CHOICES",
    "detect_package_manager",
    "install_dependencies",
    "select_package_manager",
]
