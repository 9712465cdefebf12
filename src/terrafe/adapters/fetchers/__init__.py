"""Fetcher adapters and the strategy dispatcher."""

from __future__ import annotations

from pathlib import Path

import requests

from terrafe.domain.reference import CanonicalLocator
from terrafe.ports.template_fetcher import TemplateFetcher

from .archive import ArchiveFetcher
from .git import GitCloneFetcher, clone_source


class LocatorFetcher(TemplateFetcher):
    """Pick the retrieval strategy from the locator shape."""

    def __init__(self, archive: TemplateFetcher, clone: TemplateFetcher) -> None:
        self._strategies = {"archive": archive, "clone": clone}

    def fetch(self, locator: CanonicalLocator, destination: Path, *, timeout: float | None = None) -> None:
        self._strategies[locator.strategy].fetch(locator, destination, timeout=timeout)


def build_default_fetcher(session: requests.Session | None = None) -> LocatorFetcher:
    return LocatorFetcher(ArchiveFetcher(session), GitCloneFetcher())


__all__ = [
    "ArchiveFetcher",
    "GitCloneFetcher",
    "LocatorFetcher",
    "build_default_fetcher",
    "clone_source",
]
