"""Template references and their canonical, fetchable locators."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

DIRECT_PREFIX = "direct:"
DEFAULT_BRANCH = "main"
GITHUB_HOSTS = {"github.com", "www.github.com"}

_SHORTHAND = re.compile(r"^(?P<owner>[^/#:\s]+)/(?P<repo>[^/#:\s]+)$")
_SHORTHAND_BRANCH = re.compile(r"^(?P<owner>[^/#:\s]+)/(?P<repo>[^/#:\s]+)#(?P<branch>[^:]+)$")
_SHORTHAND_SUBDIR = re.compile(
    r"^(?P<owner>[^/#:\s]+)/(?P<repo>[^/#:\s]+)#(?P<branch>[^:]+):(?P<subdir>.+)$"
)


@dataclass(frozen=True)
class CanonicalLocator:
    """Resolved form of a template reference.

    Archive locators point at a zipped snapshot of one owner/repo/branch and may
    carry a subdirectory to promote to the template root. Anything the resolver
    does not recognise stays a clone locator wrapping the raw reference.
    """

    reference: str
    archive_url: str | None = None
    subdirectory: str | None = None
    branch: str | None = None

    @property
    def strategy(self) -> str:
        return "archive" if self.archive_url else "clone"

    def __str__(self) -> str:
        if not self.archive_url:
            return self.reference
        if self.subdirectory:
            return f"{DIRECT_PREFIX}{self.archive_url}#{self.subdirectory}"
        return f"{DIRECT_PREFIX}{self.archive_url}"


def archive_url(owner: str, repo: str, branch: str = DEFAULT_BRANCH) -> str:
    return f"https://github.com/{owner}/{repo}/archive/{branch}.zip"


def cache_key(reference: str) -> str:
    """Return the 128-bit cache key for the raw reference string."""

    return hashlib.md5(reference.encode("utf-8")).hexdigest()  # noqa: S324 - identifier, not security


def resolve_reference(reference: str) -> CanonicalLocator:
    """Normalise ``reference`` into a :class:`CanonicalLocator`.

    Never raises: unrecognised input falls back to a clone locator and the
    fetcher reports the real failure.
    """

    value = reference.strip()
    if not value:
        return CanonicalLocator(reference=reference)

    if value.startswith(DIRECT_PREFIX):
        return _parse_direct(value, reference)

    locator = _from_github_url(value, reference)
    if locator is not None:
        return locator

    if match := _SHORTHAND.match(value):
        return _archive_locator(reference, match["owner"], match["repo"], DEFAULT_BRANCH)

    if match := _SHORTHAND_BRANCH.match(value):
        return _archive_locator(reference, match["owner"], match["repo"], match["branch"])

    if match := _SHORTHAND_SUBDIR.match(value):
        return _archive_locator(
            reference, match["owner"], match["repo"], match["branch"], match["subdir"]
        )

    return CanonicalLocator(reference=reference)


def _from_github_url(value: str, reference: str) -> CanonicalLocator | None:
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if parts.scheme not in {"http", "https"} or (parts.hostname or "") not in GITHUB_HOSTS:
        return None
    segments = [segment for segment in parts.path.split("/") if segment]
    if len(segments) < 2:
        return None
    owner = segments[0]
    repo = segments[1].removesuffix(".git")
    if len(segments) > 3 and segments[2] == "tree":
        branch = segments[3]
        subdir = "/".join(segments[4:])
        return _archive_locator(reference, owner, repo, branch, subdir or None)
    return _archive_locator(reference, owner, repo, DEFAULT_BRANCH)


def _archive_locator(
    reference: str,
    owner: str,
    repo: str,
    branch: str,
    subdirectory: str | None = None,
) -> CanonicalLocator:
    return CanonicalLocator(
        reference=reference,
        archive_url=archive_url(owner, repo, branch),
        subdirectory=_normalise_subdir(subdirectory),
        branch=branch,
    )


def _parse_direct(value: str, reference: str) -> CanonicalLocator:
    body = value[len(DIRECT_PREFIX):]
    url, _, subdir = body.partition("#")
    if not url:
        return CanonicalLocator(reference=reference)
    branch = None
    if url.endswith(".zip"):
        branch = url.rsplit("/", 1)[-1][: -len(".zip")] or None
    # keep the subdirectory verbatim so str(locator) reproduces the input
    return CanonicalLocator(
        reference=reference,
        archive_url=url,
        subdirectory=subdir or None,
        branch=branch,
    )


def _normalise_subdir(subdirectory: str | None) -> str | None:
    if subdirectory is None:
        return None
    cleaned = subdirectory.strip().strip("/")
    return cleaned or None


__all__ = [
    "CanonicalLocator",
    "DEFAULT_BRANCH",
    "DIRECT_PREFIX",
    "archive_url",
    "cache_key",
    "resolve_reference",
]
