from __future__ import annotations

import pytest

from terrafe.utils.validate import MAX_NAME_LENGTH, validate_project_name, validate_version


@pytest.mark.parametrize("name", ["my-app", "app_2", "a"])
def test_valid_project_names(name: str) -> None:
    result = validate_project_name(name)
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


@pytest.mark.parametrize(
    "name",
    ["", "   ", " app", ".hidden", "_private", "has space", "slash/name", "node_modules", "x" * (MAX_NAME_LENGTH + 1)],
)
def test_invalid_project_names(name: str) -> None:
    result = validate_project_name(name)
    assert not result.valid
    assert result.errors


def test_uppercase_is_a_warning() -> None:
    result = validate_project_name("MyApp")
    assert result.valid
    assert len(result.warnings) == 1


@pytest.mark.parametrize(
    ("version", "expected"),
    [
        ("1.0.0", True),
        ("0.1.2-beta.1", True),
        ("2.0.0+build.5", True),
        ("1.0", False),
        ("v1.0.0", False),
        ("", False),
    ],
)
def test_validate_version(version: str, expected: bool) -> None:
    assert validate_version(version) is expected
