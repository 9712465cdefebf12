"""Port definitions for retrieving template sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from terrafe.domain.reference import CanonicalLocator


class FetchError(RuntimeError):
    """Raised when a template source cannot be retrieved."""

    code = "FETCH_FAILED"

    def __init__(self, message: str, *, locator: CanonicalLocator | str | None = None, destination: Path | None = None) -> None:
        details = []
        if locator is not None:
            details.append(f"locator={locator}")
        if destination is not None:
            details.append(f"destination={destination}")
        full = f"{message} ({', '.join(details)})" if details else message
        super().__init__(full)
        self.locator = str(locator) if locator is not None else None
        self.destination = destination


class FetchTimeoutError(FetchError):
    """Raised when retrieval exceeds its deadline."""

    code = "FETCH_TIMEOUT"


class TemplateFetcher(ABC):
    @abstractmethod
    def fetch(self, locator: CanonicalLocator, destination: Path, *, timeout: float | None = None) -> None:
        """Populate ``destination`` with the repository content behind ``locator``."""
