"""Archive-based fetcher: download a zipped snapshot and unpack it."""

from __future__ import annotations

import logging
import tempfile
import time
import zipfile
from pathlib import Path
from typing import Callable

import requests

from terrafe import __version__
from terrafe.domain.reference import CanonicalLocator
from terrafe.ports.template_fetcher import FetchError, FetchTimeoutError, TemplateFetcher

from .utils import cleanup_destination, ensure_empty_destination

logger = logging.getLogger(__name__)

USER_AGENT = f"terrafe/{__version__}"
CHUNK_SIZE = 64 * 1024


class ArchiveFetcher(TemplateFetcher):
    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        chunk_size: int = CHUNK_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session or requests.Session()
        self._chunk_size = chunk_size
        self._clock = clock

    def fetch(self, locator: CanonicalLocator, destination: Path, *, timeout: float | None = None) -> None:
        if not locator.archive_url:
            raise FetchError("locator does not describe an archive", locator=locator, destination=destination)
        ensure_empty_destination(destination, locator)
        try:
            with tempfile.TemporaryDirectory(prefix="terrafe-download-") as tmp_dir:
                archive_path = Path(tmp_dir) / "snapshot.zip"
                self._download(locator, destination, archive_path, timeout)
                self._unpack(locator, archive_path, destination)
        except FetchError:
            cleanup_destination(destination)
            raise
        except OSError as exc:
            cleanup_destination(destination)
            raise FetchError(f"filesystem error while fetching: {exc}", locator=locator, destination=destination) from exc

    def _download(
        self,
        locator: CanonicalLocator,
        destination: Path,
        archive_path: Path,
        timeout: float | None,
    ) -> None:
        url = locator.archive_url
        deadline = None if timeout is None else self._clock() + timeout
        logger.debug("downloading %s", url)
        try:
            response = self._session.get(url, stream=True, timeout=timeout, headers={"User-Agent": USER_AGENT})
        except requests.Timeout as exc:
            raise FetchTimeoutError(f"download timed out after {timeout}s", locator=locator, destination=destination) from exc
        except requests.RequestException as exc:
            raise FetchError(f"network error: {exc}", locator=locator, destination=destination) from exc

        try:
            if response.status_code == 404:
                raise FetchError(
                    "repository or branch not found (HTTP 404)", locator=locator, destination=destination
                )
            if response.status_code >= 400:
                raise FetchError(
                    f"download failed with HTTP {response.status_code}", locator=locator, destination=destination
                )
            with archive_path.open("wb") as fh:
                for chunk in response.iter_content(chunk_size=self._chunk_size):
                    if deadline is not None and self._clock() > deadline:
                        raise FetchTimeoutError(
                            f"download exceeded deadline of {timeout}s", locator=locator, destination=destination
                        )
                    if chunk:
                        fh.write(chunk)
        except requests.Timeout as exc:
            raise FetchTimeoutError(f"download timed out after {timeout}s", locator=locator, destination=destination) from exc
        except requests.RequestException as exc:
            raise FetchError(f"network error: {exc}", locator=locator, destination=destination) from exc
        finally:
            response.close()

    def _unpack(self, locator: CanonicalLocator, archive_path: Path, destination: Path) -> None:
        root = destination.resolve()
        try:
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.infolist():
                    target = (root / member.filename).resolve()
                    if target != root and root not in target.parents:
                        raise FetchError(
                            f"archive member escapes destination: {member.filename}",
                            locator=locator,
                            destination=destination,
                        )
                archive.extractall(root)
        except zipfile.BadZipFile as exc:
            raise FetchError(f"downloaded file is not a zip archive: {exc}", locator=locator, destination=destination) from exc
        logger.debug("unpacked %s into %s", locator.archive_url, destination)


__all__ = ["ArchiveFetcher"]
