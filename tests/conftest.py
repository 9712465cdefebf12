from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path
from typing import Callable, Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from terrafe.domain.reference import CanonicalLocator  # noqa: E402
from terrafe.ports.template_fetcher import TemplateFetcher  # noqa: E402
from terrafe.settings import RuntimeSettings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "terrafe-home"
    monkeypatch.setenv("TERRAFE_HOME", str(home))
    monkeypatch.setenv("TERRAFE_TELEMETRY", "1")
    return home


@pytest.fixture()
def runtime_settings(isolated_home: Path) -> RuntimeSettings:
    return RuntimeSettings(home_dir=isolated_home, log_dir=isolated_home / "logs")


def build_zip(files: Mapping[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def write_tree(root: Path, files: Mapping[str, str]) -> None:
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")


def read_tree(root: Path) -> dict[str, str]:
    return {
        path.relative_to(root).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


class FakeFetcher(TemplateFetcher):
    """Writes a fixed tree into the destination and records every call."""

    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        *,
        error: BaseException | None = None,
        before_error: Callable[[Path], None] | None = None,
    ) -> None:
        self.files = dict(files or {"README.md": "# template\n"})
        self.error = error
        self.before_error = before_error
        self.calls: list[tuple[CanonicalLocator, Path, float | None]] = []

    def fetch(self, locator: CanonicalLocator, destination: Path, *, timeout: float | None = None) -> None:
        self.calls.append((locator, destination, timeout))
        destination.mkdir(parents=True, exist_ok=True)
        if self.error is not None:
            if self.before_error is not None:
                self.before_error(destination)
            raise self.error
        write_tree(destination, self.files)
