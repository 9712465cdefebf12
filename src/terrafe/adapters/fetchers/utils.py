"""Shared helpers for fetcher adapters."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from terrafe.domain.reference import CanonicalLocator
from terrafe.ports.template_fetcher import FetchError

logger = logging.getLogger(__name__)


def ensure_empty_destination(destination: Path, locator: CanonicalLocator) -> None:
    """Create ``destination`` or confirm it is an empty directory."""

    if destination.exists():
        if not destination.is_dir():
            raise FetchError("destination is not a directory", locator=locator, destination=destination)
        if any(destination.iterdir()):
            raise FetchError("destination already populated", locator=locator, destination=destination)
        return
    destination.mkdir(parents=True)


def cleanup_destination(destination: Path) -> None:
    """Best-effort removal of whatever a failed fetch left behind."""

    if not destination.exists():
        return
    try:
        for entry in destination.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as exc:
        logger.debug("cleanup of %s incomplete: %s", destination, exc)


__all__ = ["cleanup_destination", "ensure_empty_destination"]
