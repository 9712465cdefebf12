"""Clone-based fetcher backed by the git executable."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable

from terrafe.domain.reference import CanonicalLocator
from terrafe.ports.template_fetcher import FetchError, FetchTimeoutError, TemplateFetcher

from .utils import cleanup_destination, ensure_empty_destination

logger = logging.getLogger(__name__)

HOST_PREFIXES = {
    "github:": "https://github.com/",
    "gitlab:": "https://gitlab.com/",
    "bitbucket:": "https://bitbucket.org/",
}


def clone_source(reference: str) -> tuple[str, str | None]:
    """Split a clone reference into ``(url, branch)``.

    ``github:owner/repo#dev`` style prefixes expand to HTTPS clone URLs; a bare
    ``owner/repo`` is treated as a GitHub repository.
    """

    value = reference.strip()
    url, _, branch = value.partition("#")
    for prefix, base in HOST_PREFIXES.items():
        if url.startswith(prefix):
            url = f"{base}{url[len(prefix):]}.git"
            break
    else:
        if "://" not in url and not url.startswith("git@") and url.count("/") == 1:
            url = f"https://github.com/{url}.git"
    return url, branch or None


class GitCloneFetcher(TemplateFetcher):
    def __init__(
        self,
        *,
        git: str = "git",
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self._git = git
        self._runner = runner

    def fetch(self, locator: CanonicalLocator, destination: Path, *, timeout: float | None = None) -> None:
        if shutil.which(self._git) is None:
            raise FetchError("git executable not found", locator=locator, destination=destination)
        ensure_empty_destination(destination, locator)
        url, branch = clone_source(locator.reference)
        command = [self._git, "clone", "--depth", "1"]
        if branch:
            command.extend(["-b", branch])
        command.extend([url, str(destination)])
        logger.debug("running %s", " ".join(command))
        try:
            result = self._runner(command, capture_output=True, text=True, timeout=timeout, check=False)
        except subprocess.TimeoutExpired as exc:
            cleanup_destination(destination)
            raise FetchTimeoutError(f"git clone timed out after {timeout}s", locator=locator, destination=destination) from exc
        except OSError as exc:
            cleanup_destination(destination)
            raise FetchError(f"git clone could not start: {exc}", locator=locator, destination=destination) from exc
        if result.returncode != 0:
            cleanup_destination(destination)
            stderr = (result.stderr or "").strip()
            hint = _clone_hint(stderr)
            message = f"git clone failed with exit code {result.returncode}"
            if stderr:
                message += f": {stderr}"
            if hint:
                message += f" ({hint})"
            raise FetchError(message, locator=locator, destination=destination)
        shutil.rmtree(destination / ".git", ignore_errors=True)


def _clone_hint(stderr: str) -> str | None:
    lowered = stderr.lower()
    if "remote branch" in lowered and "not found" in lowered:
        return "branch does not exist"
    if "repository not found" in lowered or "does not appear to be a git repository" in lowered:
        return "repository does not exist or is private"
    if "could not resolve host" in lowered:
        return "network unavailable"
    return None


__all__ = ["GitCloneFetcher", "clone_source"]
