from __future__ import annotations

import json
from pathlib import Path

import pytest

from dropreel.errors import SettingsLoadError, SettingsValidationError
from dropreel.settings import PipelineSettings, SettingsManager, merge_with_defaults
from dropreel.settings.manager import MAX_RECENT_FOLDERS, default_settings_path


def test_load_creates_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "nested" / "settings.json"
    manager = SettingsManager(path=settings_path)
    manager.load()

    assert settings_path.exists()
    stored = json.loads(settings_path.read_text(encoding="utf-8"))
    assert stored["schema"] == "dropreel/settings@1"
    assert manager.get("probe.timeout_ms") == 3000
    assert manager.get("probe.timeout_retries") == 0
    assert manager.get("probe.missing", "fallback") == "fallback"


def test_partial_file_is_merged_with_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"probe": {"timeout_ms": 1500}}), encoding="utf-8")
    manager = SettingsManager(path=settings_path)
    manager.load()

    pipeline = manager.pipeline_settings()
    assert pipeline.probe_timeout_ms == 1500
    assert pipeline.probe_max_dimension == 8192
    assert pipeline.duration_batch_size == 5


def test_set_persists_and_notifies(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    manager = SettingsManager(path=settings_path)
    manager.load()
    changes = []
    manager.settings_changed.connect(lambda key, value: changes.append((key, value)))

    manager.set("tools.ffprobe", "/opt/bin/ffprobe")

    assert changes == [("tools.ffprobe", "/opt/bin/ffprobe")]
    assert manager.get("tools.ffmpeg") == "ffmpeg"
    stored = json.loads(settings_path.read_text(encoding="utf-8"))
    assert stored["tools"]["ffprobe"] == "/opt/bin/ffprobe"


def test_invalid_value_is_rejected_and_not_written(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    manager = SettingsManager(path=settings_path)
    manager.load()
    changes = []
    manager.settings_changed.connect(lambda *args: changes.append(args))

    with pytest.raises(SettingsValidationError, match="probe.timeout_ms"):
        manager.set("probe.timeout_ms", 0)

    assert manager.get("probe.timeout_ms") == 3000
    assert json.loads(settings_path.read_text(encoding="utf-8"))["probe"]["timeout_ms"] == 3000
    assert changes == []


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_unreadable_file(tmp_path: Path, content: str) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(content, encoding="utf-8")

    with pytest.raises(SettingsLoadError):
        SettingsManager(path=settings_path).load()


def test_invalid_file_contents(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"duration": {"batch_size": "five"}}), encoding="utf-8")

    with pytest.raises(SettingsValidationError):
        SettingsManager(path=settings_path).load()


def test_remember_folder_moves_to_front_and_caps(tmp_path: Path) -> None:
    manager = SettingsManager(path=tmp_path / "settings.json")
    manager.load()

    for index in range(MAX_RECENT_FOLDERS + 2):
        manager.remember_folder(f"/Reel{index}")
    manager.remember_folder("/Reel5")

    recent = manager.get("last_folders")
    assert len(recent) == MAX_RECENT_FOLDERS
    assert recent[0] == "/Reel5"
    assert recent.count("/Reel5") == 1


def test_merge_drops_blank_folders() -> None:
    merged = merge_with_defaults({"last_folders": ["/a", "", 3]})
    assert merged["last_folders"] == ["/a"]


def test_defaults_match_constants() -> None:
    defaults = PipelineSettings.defaults()
    assert defaults.reconciliation_delay_ms == 100
    assert defaults.dropbox_api_base == "https://api.dropboxapi.com/2"


def test_default_path_honours_xdg(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("dropreel.settings.manager.os.name", "posix")
    monkeypatch.setattr("dropreel.settings.manager.sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert default_settings_path() == tmp_path / "dropreel" / "settings.json"
