from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from terrafe.settings import RuntimeSettings
from terrafe.utils.telemetry import record_event, record_structured_event


def _events(settings: RuntimeSettings) -> list[dict]:
    log = settings.log_dir / "telemetry.jsonl"
    if not log.exists():
        return []
    return [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]


def test_records_structured_event(runtime_settings: RuntimeSettings) -> None:
    record_structured_event(
        runtime_settings,
        "cache.clean",
        payload={"removed": 2},
        status="ok",
        component="cli",
        duration_ms=1.5,
    )
    record_event(runtime_settings, "cache.clear")
    events = _events(runtime_settings)
    assert [event["event"] for event in events] == ["cache.clean", "cache.clear"]
    assert events[0]["payload"] == {"removed": 2}
    assert events[0]["durationMs"] == 1.5
    assert events[1]["payload"] == {}
    assert events[1]["level"] == "info"


def test_disabled_by_environment(runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TERRAFE_TELEMETRY", "off")
    record_event(runtime_settings, "cache.clear")
    assert _events(runtime_settings) == []


def test_rejects_invalid_records(runtime_settings: RuntimeSettings) -> None:
    with pytest.raises(ValueError):
        record_structured_event(runtime_settings, " ")
    with pytest.raises(ValueError):
        record_structured_event(runtime_settings, "x", level="debug")
    with pytest.raises(ValueError):
        record_structured_event(runtime_settings, "x", duration_ms=-1)
    assert _events(runtime_settings) == []


def test_cache_key_field(runtime_settings: RuntimeSettings) -> None:
    key = "0123456789abcdef0123456789abcdef"
    record_structured_event(runtime_settings, "template.cache_hit", cache_key=key)
    assert _events(runtime_settings)[0]["cacheKey"] == key
    with pytest.raises(jsonschema.ValidationError):
        record_structured_event(runtime_settings, "template.cache_hit", cache_key="not-a-key")
    assert len(_events(runtime_settings)) == 1


def test_unwritable_log_dir_is_not_fatal(tmp_path: Path) -> None:
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory")
    settings = RuntimeSettings(home_dir=tmp_path, log_dir=blocker)
    record_event(settings, "cache.clear")
    assert blocker.read_text() == "not a directory"
