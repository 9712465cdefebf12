from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest

from terrafe.utils.package_manager import (
    InstallError,
    detect_package_manager,
    install_dependencies,
    select_package_manager,
)


def _which(*available: str):
    return lambda name: f"/usr/bin/{name}" if name in available else None


@pytest.mark.parametrize(
    ("lock_file", "expected"),
    [("pnpm-lock.yaml", "pnpm"), ("yarn.lock", "yarn"), ("package-lock.json", "npm")],
)
def test_lock_file_wins(tmp_path: Path, lock_file: str, expected: str) -> None:
    (tmp_path / lock_file).write_text("")
    assert detect_package_manager(tmp_path, which=_which()) == expected


def test_detect_by_availability(tmp_path: Path) -> None:
    assert detect_package_manager(tmp_path, which=_which("yarn", "npm")) == "yarn"
    assert detect_package_manager(None, which=_which()) == "npm"


def test_select_prefers_explicit_choice(tmp_path: Path) -> None:
    assert select_package_manager(tmp_path, "yarn", which=_which("yarn", "pnpm")) == "yarn"
    assert select_package_manager(tmp_path, "yarn", which=_which("pnpm")) == "pnpm"
    assert select_package_manager(tmp_path, "auto", which=_which("npm")) == "npm"


class Runner:
    def __init__(self, returncode: int = 0, stderr: str = "", *, error: Exception | None = None) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.error = error
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        if self.error is not None:
            raise self.error
        return subprocess.CompletedProcess(command, self.returncode, None, self.stderr)


def test_install_success(tmp_path: Path) -> None:
    runner = Runner()
    install_dependencies(tmp_path, "pnpm", timeout=10, runner=runner)
    command, kwargs = runner.calls[0]
    assert command == ["pnpm", "install"]
    assert kwargs["cwd"] == tmp_path
    assert kwargs["timeout"] == 10
    assert kwargs["stdout"] == subprocess.DEVNULL


def test_install_verbose_does_not_capture(tmp_path: Path) -> None:
    runner = Runner()
    install_dependencies(tmp_path, "npm", quiet=False, runner=runner)
    assert "stdout" not in runner.calls[0][1]


def test_install_failure_reports_last_stderr_line(tmp_path: Path) -> None:
    runner = Runner(1, "npm WARN something\nnpm ERR! code E404\n")
    with pytest.raises(InstallError, match="exit code 1: npm ERR! code E404"):
        install_dependencies(tmp_path, "npm", runner=runner)


def test_install_timeout(tmp_path: Path) -> None:
    runner = Runner(error=subprocess.TimeoutExpired(["npm"], 5))
    with pytest.raises(InstallError, match="timed out after 5s"):
        install_dependencies(tmp_path, "npm", timeout=5, runner=runner)


def test_install_missing_binary(tmp_path: Path) -> None:
    runner = Runner(error=FileNotFoundError("yarn"))
    with pytest.raises(InstallError, match="could not start"):
        install_dependencies(tmp_path, "yarn", runner=runner)
