"""Promote a nested repository path to be the template root."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".terrafe-extract-"


class SubdirectoryNotFoundError(RuntimeError):
    """Raised when a requested subdirectory is missing from a download."""

    code = "SUBDIRECTORY_NOT_FOUND"

    def __init__(self, subdirectory: str, segment: str, searched_in: Path, available: list[str]) -> None:
        listing = ", ".join(available) if available else "<empty>"
        super().__init__(
            f"subdirectory '{subdirectory}' not found: no '{segment}' in {searched_in} (available: {listing})"
        )
        self.subdirectory = subdirectory
        self.segment = segment
        self.searched_in = searched_in
        self.available = available


def archive_root(download_root: Path) -> Path:
    """Return the wrapper directory when the download has exactly one, else the root itself."""

    entries = list(download_root.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        return entries[0]
    return download_root


def locate_subdirectory(root: Path, subdirectory: str) -> Path:
    parts = [part for part in PurePosixPath(subdirectory.strip("/")).parts if part not in {"", "."}]
    if ".." in parts:
        raise SubdirectoryNotFoundError(subdirectory, "..", root, [])
    candidate = root.joinpath(*parts)
    if candidate.is_dir():
        # a symlinked segment must not lead outside the download
        resolved_root = root.resolve()
        resolved = candidate.resolve()
        if resolved != resolved_root and resolved_root not in resolved.parents:
            raise SubdirectoryNotFoundError(subdirectory, parts[-1], candidate.parent, [])
        return candidate

    current = root
    for part in parts:
        nxt = current / part
        if not nxt.exists():
            available = sorted(entry.name for entry in current.iterdir()) if current.is_dir() else []
            raise SubdirectoryNotFoundError(subdirectory, part, current, available)
        current = nxt
    # every segment exists but the last one is not a directory
    raise SubdirectoryNotFoundError(subdirectory, parts[-1] if parts else subdirectory, current.parent, [])


def extract_subdirectory(download_root: Path, subdirectory: str) -> None:
    """Replace the contents of ``download_root`` with those of ``subdirectory``.

    The archive wrapper directory (``<repo>-<branch>/``) is detected purely by
    structure, so both wrapped and unwrapped layouts work.
    """

    root = archive_root(download_root)
    source = locate_subdirectory(root, subdirectory)
    logger.debug("extracting %s from %s", subdirectory, root)

    staging = download_root / f"{STAGING_PREFIX}{uuid.uuid4().hex[:8]}"

    def _skip_staging(directory: str, names: list[str]) -> set[str]:
        if Path(directory) == download_root:
            return {name for name in names if name == staging.name}
        return set()

    shutil.copytree(source, staging, symlinks=True, ignore=_skip_staging)

    for entry in list(download_root.iterdir()):
        if entry == staging:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()

    for item in list(staging.iterdir()):
        shutil.move(str(item), str(download_root / item.name))
    staging.rmdir()
    logger.debug("subdirectory %s promoted to %s", subdirectory, download_root)


__all__ = ["SubdirectoryNotFoundError", "archive_root", "extract_subdirectory", "locate_subdirectory"]
