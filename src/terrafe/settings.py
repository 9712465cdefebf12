"""Runtime settings for the terrafe CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from terrafe import __version__

HOME_ENV = "TERRAFE_HOME"


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    log_dir: Path
    cli_version: str = __version__

    @property
    def config_file(self) -> Path:
        return self.home_dir / "config.yaml"

    @property
    def default_cache_dir(self) -> Path:
        return self.home_dir / "cache"


def _default_home_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".terrafe"


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(home_dir=base, log_dir=base / "logs")
