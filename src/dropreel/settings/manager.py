"""Settings file management with validation and change notifications."""

from __future__ import annotations

import json
import os
import sys
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from jsonschema import ValidationError

from ..errors import SettingsLoadError, SettingsValidationError
from ..utils.jsonio import read_json, write_json
from ..viewmodels.signal import Signal
from .schema import DEFAULT_SETTINGS, merge_with_defaults

MAX_RECENT_FOLDERS = 10


def default_settings_path() -> Path:
    """Return the default settings.json location for the current platform."""

    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "Dropreel" / "settings.json"
        return Path.home() / "AppData" / "Roaming" / "Dropreel" / "settings.json"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Dropreel" / "settings.json"
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "dropreel" / "settings.json"
    return Path.home() / ".config" / "dropreel" / "settings.json"


@dataclass(frozen=True)
class PipelineSettings:
    """Typed view of the settings the pipeline components consume."""

    probe_timeout_ms: int
    probe_timeout_retries: int
    probe_max_concurrency: int
    probe_min_dimension: int
    probe_max_dimension: int
    duration_timeout_ms: int
    duration_batch_size: int
    duration_batch_pause_ms: int
    reconciliation_delay_ms: int
    dropbox_api_base: str
    dropbox_http_timeout_sec: float
    thumbnail_endpoint: str
    ffprobe_binary: str
    ffmpeg_binary: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PipelineSettings:
        probe = data["probe"]
        duration = data["duration"]
        dropbox = data["dropbox"]
        tools = data["tools"]
        return cls(
            probe_timeout_ms=int(probe["timeout_ms"]),
            probe_timeout_retries=int(probe["timeout_retries"]),
            probe_max_concurrency=int(probe["max_concurrency"]),
            probe_min_dimension=int(probe["min_dimension"]),
            probe_max_dimension=int(probe["max_dimension"]),
            duration_timeout_ms=int(duration["timeout_ms"]),
            duration_batch_size=int(duration["batch_size"]),
            duration_batch_pause_ms=int(duration["batch_pause_ms"]),
            reconciliation_delay_ms=int(data["reconciliation"]["delay_ms"]),
            dropbox_api_base=str(dropbox["api_base"]),
            dropbox_http_timeout_sec=float(dropbox["http_timeout_sec"]),
            thumbnail_endpoint=str(dropbox["thumbnail_endpoint"]),
            ffprobe_binary=str(tools["ffprobe"]),
            ffmpeg_binary=str(tools["ffmpeg"]),
        )

    @classmethod
    def defaults(cls) -> PipelineSettings:
        return cls.from_mapping(DEFAULT_SETTINGS)


class SettingsManager:
    """Load, validate and persist user settings for the application."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._data: dict[str, Any] = deepcopy(DEFAULT_SETTINGS)
        # (key, value)
        self.settings_changed = Signal("settings_changed")

    @property
    def path(self) -> Path:
        return self._path or default_settings_path()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> None:
        """Load the settings JSON from disk, creating defaults if missing."""

        path = self.path
        self._path = path
        if path.exists():
            try:
                payload = read_json(path)
            except (OSError, json.JSONDecodeError) as exc:
                raise SettingsLoadError(f"Cannot read {path}: {exc}") from exc
            if payload is not None and not isinstance(payload, dict):
                raise SettingsLoadError(f"{path} does not contain a JSON object")
        else:
            payload = None
        try:
            self._data = merge_with_defaults(payload)
        except ValidationError as exc:
            raise SettingsValidationError(exc.message) from exc
        self._write()

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return the value for *key*, supporting dotted access for nested keys."""

        target: Any = self._data
        parts = key.split(".")
        for index, part in enumerate(parts):
            if not isinstance(target, dict) or part not in target:
                return default
            value = target[part]
            if index == len(parts) - 1:
                return value
            target = value
        return default

    def set(self, key: str, value: Any) -> None:
        """Update *key* with *value*, validate, persist and notify."""

        candidate = deepcopy(self._data)
        parts = key.split(".")
        target: dict[str, Any] = candidate
        for part in parts[:-1]:
            branch = target.get(part)
            if not isinstance(branch, dict):
                branch = {}
                target[part] = branch
            target = branch
        target[parts[-1]] = value
        try:
            self._data = merge_with_defaults(candidate)
        except ValidationError as exc:
            raise SettingsValidationError(f"{key}: {exc.message}") from exc
        self._write()
        self.settings_changed.emit(key, value)

    def remember_folder(self, folder_path: str) -> None:
        """Move *folder_path* to the front of the recent folders list."""

        recent = [entry for entry in self.get("last_folders", []) if entry != folder_path]
        self.set("last_folders", [folder_path, *recent][:MAX_RECENT_FOLDERS])

    def pipeline_settings(self) -> PipelineSettings:
        return PipelineSettings.from_mapping(self._data)

    def as_dict(self) -> dict[str, Any]:
        return deepcopy(self._data)

    # ------------------------------------------------------------------
    # Internal utilities
    # ------------------------------------------------------------------
    def _write(self) -> None:
        write_json(self.path, self._data)
