"""Schema helpers for the Dropreel settings file."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from ..config import (
    DROPBOX_API_BASE,
    DROPBOX_HTTP_TIMEOUT_SEC,
    DURATION_BATCH_PAUSE_MS,
    DURATION_BATCH_SIZE,
    DURATION_TIMEOUT_MS,
    FFMPEG_BINARY,
    FFPROBE_BINARY,
    PROBE_MAX_CONCURRENCY,
    PROBE_MAX_DIMENSION,
    PROBE_MIN_DIMENSION,
    PROBE_TIMEOUT_MS,
    PROBE_TIMEOUT_RETRIES,
    RECONCILIATION_DELAY_MS,
    THUMBNAIL_ENDPOINT,
)

_POSITIVE_INT = {"type": "integer", "minimum": 1}
_NON_NEGATIVE_INT = {"type": "integer", "minimum": 0}

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "dropreel/settings.schema.json",
    "type": "object",
    "required": ["schema", "probe", "duration", "reconciliation", "dropbox", "tools"],
    "properties": {
        "schema": {"const": "dropreel/settings@1"},
        "probe": {
            "type": "object",
            "properties": {
                "timeout_ms": _POSITIVE_INT,
                "timeout_retries": _NON_NEGATIVE_INT,
                "max_concurrency": _POSITIVE_INT,
                "min_dimension": _POSITIVE_INT,
                "max_dimension": _POSITIVE_INT,
            },
            "additionalProperties": True,
        },
        "duration": {
            "type": "object",
            "properties": {
                "timeout_ms": _POSITIVE_INT,
                "batch_size": _POSITIVE_INT,
                "batch_pause_ms": _NON_NEGATIVE_INT,
            },
            "additionalProperties": True,
        },
        "reconciliation": {
            "type": "object",
            "properties": {"delay_ms": _NON_NEGATIVE_INT},
            "additionalProperties": True,
        },
        "dropbox": {
            "type": "object",
            "properties": {
                "api_base": {"type": "string", "minLength": 1},
                "thumbnail_endpoint": {"type": "string", "minLength": 1},
                "http_timeout_sec": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": True,
        },
        "tools": {
            "type": "object",
            "properties": {
                "ffprobe": {"type": "string", "minLength": 1},
                "ffmpeg": {"type": "string", "minLength": 1},
            },
            "additionalProperties": True,
        },
        "last_folders": {
            "type": "array",
            "items": {"type": "string"},
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "dropreel/settings@1",
    "probe": {
        "timeout_ms": PROBE_TIMEOUT_MS,
        "timeout_retries": PROBE_TIMEOUT_RETRIES,
        "max_concurrency": PROBE_MAX_CONCURRENCY,
        "min_dimension": PROBE_MIN_DIMENSION,
        "max_dimension": PROBE_MAX_DIMENSION,
    },
    "duration": {
        "timeout_ms": DURATION_TIMEOUT_MS,
        "batch_size": DURATION_BATCH_SIZE,
        "batch_pause_ms": DURATION_BATCH_PAUSE_MS,
    },
    "reconciliation": {"delay_ms": RECONCILIATION_DELAY_MS},
    "dropbox": {
        "api_base": DROPBOX_API_BASE,
        "thumbnail_endpoint": THUMBNAIL_ENDPOINT,
        "http_timeout_sec": DROPBOX_HTTP_TIMEOUT_SEC,
    },
    "tools": {"ffprobe": FFPROBE_BINARY, "ffmpeg": FFMPEG_BINARY},
    "last_folders": [],
}

_SECTIONS = ("probe", "duration", "reconciliation", "dropbox", "tools")

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key in _SECTIONS and isinstance(value, dict):
                target = merged.setdefault(key, {})
                for sub_key, sub_value in value.items():
                    target[sub_key] = sub_value
                continue
            if key == "last_folders" and isinstance(value, list):
                merged[key] = [str(entry) for entry in value if isinstance(entry, str) and entry]
                continue
            merged[key] = value
    _validator.validate(merged)
    return merged


__all__ = ["DEFAULT_SETTINGS", "SETTINGS_SCHEMA", "merge_with_defaults"]
