"""Validation helpers for project metadata supplied on the command line."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

MAX_NAME_LENGTH = 214

_ALLOWED_NAME = re.compile(r"^[A-Za-z0-9\-_]+$")
_SEMVER = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_RESERVED_NAMES = {"node_modules", "favicon.ico"}


@dataclass
class ValidationResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.valid = False
        self.errors.append(message)


def validate_project_name(name: str) -> ValidationResult:
    """Apply npm package naming rules to a new project directory name."""

    result = ValidationResult()
    if not name or not name.strip():
        result.fail("project name must not be empty")
        return result
    if name != name.strip():
        result.fail("project name must not have leading or trailing whitespace")
    if len(name) > MAX_NAME_LENGTH:
        result.fail(f"project name must not exceed {MAX_NAME_LENGTH} characters")
    if name.startswith((".", "_")):
        result.fail("project name must not start with '.' or '_'")
    if not _ALLOWED_NAME.match(name):
        result.fail("project name may only contain letters, digits, '-' and '_'")
    if name.lower() in _RESERVED_NAMES:
        result.fail(f"'{name}' is a reserved name")
    if name != name.lower():
        result.warnings.append("project name contains uppercase letters; npm requires lowercase package names")
    return result


def validate_version(version: str) -> bool:
    return bool(_SEMVER.match(version or ""))


__all__ = ["MAX_NAME_LENGTH", "ValidationResult", "validate_project_name", "validate_version"]
