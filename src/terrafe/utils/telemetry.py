"""Lightweight telemetry events (opt-in)."""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

import jsonschema

from terrafe.resources import load_schema
from terrafe.settings import RuntimeSettings

logger = logging.getLogger(__name__)

LEVELS = {"info", "warn", "error"}
TELEMETRY_ENV = "TERRAFE_TELEMETRY"

_DISABLE_VALUES = {"0", "false", "no", "off"}

_TELEMETRY_VALIDATOR: jsonschema.Draft202012Validator | None = None


def telemetry_enabled() -> bool:
    value = os.getenv(TELEMETRY_ENV, "1").lower()
    return value not in _DISABLE_VALUES


def record_event(settings: RuntimeSettings, event: str, payload: dict[str, Any] | None = None, **extra: Any) -> None:
    record_structured_event(settings, event, payload=payload, **extra)


def record_structured_event(
    settings: RuntimeSettings,
    event: str,
    *,
    payload: dict[str, Any] | None = None,
    level: str = "info",
    status: str | None = None,
    component: str | None = None,
    cache_key: str | None = None,
    duration_ms: float | None = None,
) -> None:
    if not telemetry_enabled():
        return
    record: dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        "payload": payload or {},
        "level": level,
    }
    if status:
        record["status"] = status
    if component:
        record["component"] = component
    if cache_key:
        record["cacheKey"] = cache_key
    if duration_ms is not None:
        record["durationMs"] = duration_ms
    _validate_record(record)
    _telemetry_validator().validate(record)
    log_path = settings.log_dir / "telemetry.jsonl"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False) + "\n")
    except OSError as exc:
        # best effort: write failures are only logged
        logger.debug("telemetry event %s dropped: %s", event, exc)


def _validate_record(record: dict[str, Any]) -> None:
    if not isinstance(record.get("event"), str) or not record["event"].strip():
        raise ValueError("Telemetry event must have non-empty string 'event'")
    if not isinstance(record.get("payload"), dict):
        raise ValueError("Telemetry payload must be a dict")
    level = record.get("level", "info")
    if level not in LEVELS:
        raise ValueError(f"Telemetry level '{level}' is not supported")
    if "durationMs" in record and record["durationMs"] is not None:
        if not isinstance(record["durationMs"], (int, float)) or record["durationMs"] < 0:
            raise ValueError("Telemetry durationMs must be a non-negative number")
    record["ts"] = float(record.get("ts", time.time()))


def _telemetry_validator() -> jsonschema.Draft202012Validator:  # pragma: no cover - trivial cache
    global _TELEMETRY_VALIDATOR
    if _TELEMETRY_VALIDATOR is None:
        _TELEMETRY_VALIDATOR = jsonschema.Draft202012Validator(load_schema("telemetry.schema.json"))
    return _TELEMETRY_VALIDATOR
