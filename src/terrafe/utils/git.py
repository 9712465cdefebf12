"""Git helpers for freshly generated projects."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Sequence

logger = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "feat: initial commit"

Runner = Callable[..., subprocess.CompletedProcess]


def git_available(git: str = "git") -> bool:
    return shutil.which(git) is not None


def setup_initial_commit(
    project_dir: Path,
    *,
    message: str = INITIAL_COMMIT_MESSAGE,
    git: str = "git",
    runner: Runner = subprocess.run,
) -> bool:
    """Run ``git init``, ``git add .`` and ``git commit``; return False on any failure."""

    if not git_available(git):
        logger.warning("git executable not found; skipping repository initialisation")
        return False
    steps: Sequence[list[str]] = (
        [git, "init"],
        [git, "add", "."],
        [git, "commit", "-m", message],
    )
    for command in steps:
        try:
            result = runner(command, cwd=project_dir, capture_output=True, text=True, check=False)
        except OSError as exc:
            logger.warning("%s could not start: %s", " ".join(command[:2]), exc)
            return False
        if result.returncode != 0:
            logger.warning(
                "%s failed with exit code %s: %s",
                " ".join(command[:2]),
                result.returncode,
                (result.stderr or "").strip(),
            )
            return False
    logger.debug("initial commit created in %s", project_dir)
    return True


__all__ = ["INITIAL_COMMIT_MESSAGE", "git_available", "setup_initial_commit"]
