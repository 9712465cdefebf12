from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, Iterable

import pytest
import requests

from conftest import build_zip
from terrafe.adapters.fetchers import ArchiveFetcher, GitCloneFetcher, LocatorFetcher, clone_source
from terrafe.domain.reference import resolve_reference
from terrafe.ports.template_fetcher import FetchError, FetchTimeoutError


class DummyResponse:
    def __init__(self, status_code: int, body: bytes = b"", *, chunks: Iterable[bytes] | None = None) -> None:
        self.status_code = status_code
        self._chunks = list(chunks) if chunks is not None else [body]
        self.closed = False

    def iter_content(self, chunk_size: int = 1) -> Iterable[bytes]:
        yield from self._chunks

    def close(self) -> None:
        self.closed = True


class DummySession:
    def __init__(self, response: DummyResponse | None = None, *, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append((url, kwargs))
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def test_archive_fetch_unpacks_snapshot(tmp_path: Path) -> None:
    payload = build_zip({"repo-main/package.json": "{}", "repo-main/src/main.js": "console.log(1)"})
    response = DummyResponse(200, payload)
    session = DummySession(response)
    destination = tmp_path / "dest"

    ArchiveFetcher(session).fetch(resolve_reference("user/repo"), destination, timeout=5)

    assert (destination / "repo-main" / "src" / "main.js").read_text() == "console.log(1)"
    url, kwargs = session.calls[0]
    assert url == "https://github.com/user/repo/archive/main.zip"
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["User-Agent"].startswith("terrafe/")
    assert response.closed


def test_archive_404_reports_missing_repository(tmp_path: Path) -> None:
    destination = tmp_path / "dest"
    fetcher = ArchiveFetcher(DummySession(DummyResponse(404)))
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch(resolve_reference("user/missing"), destination)
    message = str(excinfo.value)
    assert "not found" in message
    assert "direct:https://github.com/user/missing/archive/main.zip" in message
    assert str(destination) in message
    assert list(destination.iterdir()) == []


def test_archive_server_error(tmp_path: Path) -> None:
    with pytest.raises(FetchError, match="HTTP 502"):
        ArchiveFetcher(DummySession(DummyResponse(502))).fetch(resolve_reference("user/repo"), tmp_path / "d")


def test_archive_network_error(tmp_path: Path) -> None:
    session = DummySession(error=requests.ConnectionError("connection refused"))
    with pytest.raises(FetchError) as excinfo:
        ArchiveFetcher(session).fetch(resolve_reference("user/repo"), tmp_path / "d")
    assert not isinstance(excinfo.value, FetchTimeoutError)


def test_archive_request_timeout(tmp_path: Path) -> None:
    session = DummySession(error=requests.ReadTimeout("slow"))
    with pytest.raises(FetchTimeoutError):
        ArchiveFetcher(session).fetch(resolve_reference("user/repo"), tmp_path / "d", timeout=1)


def test_archive_deadline_between_chunks(tmp_path: Path) -> None:
    ticks = iter([0.0, 0.5, 2.0, 3.0])
    fetcher = ArchiveFetcher(
        DummySession(DummyResponse(200, chunks=[b"a", b"b", b"c"])),
        clock=lambda: next(ticks),
    )
    destination = tmp_path / "d"
    with pytest.raises(FetchTimeoutError):
        fetcher.fetch(resolve_reference("user/repo"), destination, timeout=1)
    assert list(destination.iterdir()) == []


def test_archive_rejects_non_zip(tmp_path: Path) -> None:
    with pytest.raises(FetchError, match="not a zip"):
        ArchiveFetcher(DummySession(DummyResponse(200, b"<html>"))).fetch(
            resolve_reference("user/repo"), tmp_path / "d"
        )


def test_archive_rejects_escaping_members(tmp_path: Path) -> None:
    payload = build_zip({"../evil.txt": "x"})
    destination = tmp_path / "nested" / "dest"
    with pytest.raises(FetchError, match="escapes"):
        ArchiveFetcher(DummySession(DummyResponse(200, payload))).fetch(resolve_reference("user/repo"), destination)
    assert not (tmp_path / "nested" / "evil.txt").exists()


def test_destination_must_be_empty(tmp_path: Path) -> None:
    destination = tmp_path / "d"
    destination.mkdir()
    (destination / "keep.txt").write_text("x")
    session = DummySession(DummyResponse(200, build_zip({"a": "b"})))
    with pytest.raises(FetchError, match="already populated"):
        ArchiveFetcher(session).fetch(resolve_reference("user/repo"), destination)
    assert session.calls == []
    assert (destination / "keep.txt").exists()


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        ("github:user/repo", ("https://github.com/user/repo.git", None)),
        ("gitlab:group/proj#dev", ("https://gitlab.com/group/proj.git", "dev")),
        ("bitbucket:team/repo", ("https://bitbucket.org/team/repo.git", None)),
        ("https://example.com/x/y.git#v1", ("https://example.com/x/y.git", "v1")),
        ("git@github.com:user/repo.git", ("git@github.com:user/repo.git", None)),
    ],
)
def test_clone_source(reference: str, expected: tuple[str, str | None]) -> None:
    assert clone_source(reference) == expected


class FakeRunner:
    def __init__(self, returncode: int = 0, stderr: str = "", *, error: Exception | None = None) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.error = error
        self.commands: list[list[str]] = []
        self.kwargs: dict[str, Any] = {}

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.commands.append(command)
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        destination = Path(command[-1])
        if self.returncode == 0:
            (destination / ".git").mkdir(parents=True)
            (destination / "README.md").write_text("hi")
        else:
            (destination / "partial").write_text("x")
        return subprocess.CompletedProcess(command, self.returncode, "", self.stderr)


@pytest.fixture()
def git_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("terrafe.adapters.fetchers.git.shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.mark.usefixtures("git_on_path")
def test_git_clone_success(tmp_path: Path) -> None:
    runner = FakeRunner()
    destination = tmp_path / "d"
    GitCloneFetcher(runner=runner).fetch(resolve_reference("github:user/repo#dev"), destination, timeout=30)
    assert runner.commands == [
        ["git", "clone", "--depth", "1", "-b", "dev", "https://github.com/user/repo.git", str(destination)]
    ]
    assert runner.kwargs["timeout"] == 30
    assert (destination / "README.md").exists()
    assert not (destination / ".git").exists()


@pytest.mark.usefixtures("git_on_path")
def test_git_clone_failure_cleans_destination(tmp_path: Path) -> None:
    runner = FakeRunner(128, "fatal: Remote branch nope not found in upstream origin")
    destination = tmp_path / "d"
    with pytest.raises(FetchError) as excinfo:
        GitCloneFetcher(runner=runner).fetch(resolve_reference("github:user/repo#nope"), destination)
    assert "branch does not exist" in str(excinfo.value)
    assert "locator=github:user/repo#nope" in str(excinfo.value)
    assert list(destination.iterdir()) == []


@pytest.mark.usefixtures("git_on_path")
def test_git_clone_timeout(tmp_path: Path) -> None:
    runner = FakeRunner(error=subprocess.TimeoutExpired(["git"], 1))
    with pytest.raises(FetchTimeoutError):
        GitCloneFetcher(runner=runner).fetch(resolve_reference("github:user/repo"), tmp_path / "d", timeout=1)


def test_git_missing_binary(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("terrafe.adapters.fetchers.git.shutil.which", lambda name: None)
    with pytest.raises(FetchError, match="git executable not found"):
        GitCloneFetcher(runner=FakeRunner()).fetch(resolve_reference("github:user/repo"), tmp_path / "d")


def test_locator_fetcher_dispatches_on_strategy(tmp_path: Path) -> None:
    seen: list[str] = []

    class Recorder:
        def __init__(self, name: str) -> None:
            self.name = name

        def fetch(self, locator, destination, *, timeout=None) -> None:
            seen.append(self.name)

    dispatcher = LocatorFetcher(Recorder("archive"), Recorder("clone"))
    dispatcher.fetch(resolve_reference("user/repo"), tmp_path / "a")
    dispatcher.fetch(resolve_reference("github:user/repo"), tmp_path / "b")
    assert seen == ["archive", "clone"]
