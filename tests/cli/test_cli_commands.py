from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import FakeFetcher, write_tree
from terrafe.cli import main as cli_main
from terrafe.ports.template_fetcher import FetchError


@pytest.fixture()
def fetcher(monkeypatch: pytest.MonkeyPatch) -> FakeFetcher:
    fake = FakeFetcher({"package.json": '{"name": "{{projectName}}", "scripts": {"dev": "vite"}}'})
    monkeypatch.setattr(cli_main, "build_default_fetcher", lambda: fake)
    return fake


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str, str]:
    exit_code = cli_main.main(list(argv))
    captured = capsys.readouterr()
    return exit_code, captured.out, captured.err


def test_create_from_repository(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path
) -> None:
    exit_code, out, _ = _run(capsys, "create", "demo", "-r", "user/repo", "--skip-git", "--skip-install")

    assert exit_code == 0
    assert json.loads((workspace / "demo" / "package.json").read_text(encoding="utf-8"))["name"] == "demo"
    assert "Project demo created" in out
    assert "npm run dev" in out
    assert len(fetcher.calls) == 1

    exit_code, out, _ = _run(capsys, "cache", "stats", "--json")
    stats = json.loads(out)
    assert exit_code == 0
    assert stats["totalItems"] == 1
    assert stats["cacheDir"].endswith("cache")


def test_create_from_local_path(capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path) -> None:
    write_tree(workspace.parent / "tpl", {"index.html": "{{projectName}} by {{author}}"})
    exit_code, _, _ = _run(
        capsys, "create", "site", "-p", str(workspace.parent / "tpl"), "-a", "Ada", "--skip-git", "--skip-install"
    )
    assert exit_code == 0
    assert (workspace / "site" / "index.html").read_text(encoding="utf-8") == "site by Ada"
    assert fetcher.calls == []


def test_create_save_as_registers_template(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path
) -> None:
    _run(capsys, "create", "demo", "-r", "me/starter", "--save-as", "starter", "--skip-git", "--skip-install")
    exit_code, out, _ = _run(capsys, "template", "list", "--category", "custom", "--json")
    assert exit_code == 0
    assert [(item["name"], item["repo"]) for item in json.loads(out)] == [("starter", "me/starter")]


@pytest.mark.parametrize(
    "argv",
    [
        ("create", "demo"),
        ("create", "demo", "-t", "vite-vue", "--save-as", "x"),
        ("create", "demo", "-r", "a/b", "--project-version", "one"),
    ],
)
def test_create_usage_errors(capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path, argv) -> None:
    exit_code, _, err = _run(capsys, *argv)
    assert exit_code == 2
    assert err
    assert fetcher.calls == []


def test_unknown_template_prints_hint(capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path) -> None:
    exit_code, _, err = _run(capsys, "create", "demo", "-t", "nope", "--skip-git", "--skip-install")
    assert exit_code == 1
    assert "error: template 'nope' does not exist" in err
    assert "terrafe template list" in err


def test_fetch_failure_prints_cause_hint(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path
) -> None:
    fetcher.error = FetchError("repository or branch not found (HTTP 404)")
    exit_code, _, err = _run(capsys, "create", "demo", "-r", "user/missing", "--skip-git", "--skip-install")
    assert exit_code == 1
    assert "failed to obtain template 'user/missing'" in err
    assert "Check the repository" in err
    assert not (workspace / "demo").exists()


def test_interrupt_exit_code(capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path) -> None:
    fetcher.error = KeyboardInterrupt()
    exit_code, _, err = _run(capsys, "template", "add", "mine", "me/mine")
    assert exit_code == 130
    assert "interrupted" in err


def test_template_add_check_failure_with_yes(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path
) -> None:
    fetcher.error = FetchError("offline")
    exit_code, out, err = _run(capsys, "template", "add", "mine", "me/mine", "--tags", "vue, vite", "--yes")
    assert exit_code == 0
    assert "offline" in err
    assert "Template mine added" in out
    exit_code, out, _ = _run(capsys, "template", "info", "mine", "--json")
    assert json.loads(out)["tags"] == ["vue", "vite"]


def test_template_add_check_failure_declined(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    fetcher.error = FetchError("offline")
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    exit_code, out, _ = _run(capsys, "template", "add", "mine", "me/mine")
    assert exit_code == 1
    assert "Template not added" in out


def test_template_remove_and_restore(capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path) -> None:
    exit_code, out, _ = _run(capsys, "template", "rm", "vite-vue")
    assert exit_code == 0
    assert "template restore official" in out
    exit_code, out, _ = _run(capsys, "template", "restore")
    assert "vite-vue" in out
    exit_code, out, _ = _run(capsys, "template", "search", "vite-vue", "--json")
    assert "vite-vue" in {item["name"] for item in json.loads(out)}


def test_config_set_get_and_validation(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path
) -> None:
    assert _run(capsys, "config", "set", "templates.cacheTime", "5000")[0] == 0
    exit_code, out, _ = _run(capsys, "config", "get", "templates.cacheTime")
    assert (exit_code, out.strip()) == (0, "5000")

    exit_code, _, err = _run(capsys, "config", "set", "packageManager", "bun")
    assert exit_code == 1
    assert "config reset" in err

    exit_code, _, err = _run(capsys, "config", "get", "does.not.exist")
    assert exit_code == 1


def test_cache_clear_and_path(
    capsys: pytest.CaptureFixture[str], fetcher: FakeFetcher, workspace: Path, isolated_home: Path
) -> None:
    _run(capsys, "template", "test", "vite-vue-ts")
    exit_code, out, _ = _run(capsys, "cache", "clear")
    assert (exit_code, out.strip()) == (0, "Template cache cleared")
    exit_code, out, _ = _run(capsys, "cache", "path")
    assert out.strip() == str(isolated_home / "cache")
    exit_code, out, _ = _run(capsys, "cache", "stats", "--json")
    assert json.loads(out)["totalItems"] == 0
