"""Packaged resources for terrafe."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Dict

import yaml

__all__ = ["load_default_templates", "load_schema"]


@lru_cache(maxsize=1)
def load_default_templates() -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Return the official and community template catalogue shipped with the package."""

    raw = resources.files(__name__).joinpath("default_templates.yaml").read_text("utf-8")
    payload = yaml.safe_load(raw) or {}
    return {
        "official": dict(payload.get("official") or {}),
        "community": dict(payload.get("community") or {}),
    }


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    raw = resources.files(__name__).joinpath(name).read_text("utf-8")
    return json.loads(raw)
