"""Tests for the ffprobe/ffmpeg backed media probe."""

import asyncio

import pytest

from dropreel.errors import (
    ExternalToolError,
    MediaElementError,
    MediaErrorCode,
    PlaybackRejectedError,
)
from dropreel.infrastructure import ffprobe_probe
from dropreel.infrastructure.ffprobe_probe import FFprobeMediaProbe, FFprobeMediaProbeFactory

H264_PAYLOAD = {
    "streams": [
        {"codec_type": "audio", "codec_name": "aac"},
        {"codec_type": "video", "codec_name": "h264", "width": 1280, "height": 720, "duration": "9.5"},
    ],
    "format": {"duration": "10.0"},
}


@pytest.fixture
def tools(monkeypatch):
    calls = {"probe": [], "decode": []}
    state = {"payload": H264_PAYLOAD, "probe_error": None, "decode_error": None}

    async def fake_probe_media(source, *, binary):
        calls["probe"].append((source, binary))
        if state["probe_error"] is not None:
            raise state["probe_error"]
        return state["payload"]

    async def fake_decode_frame(source, *, at=None, binary):
        calls["decode"].append((source, at, binary))
        if state["decode_error"] is not None:
            raise state["decode_error"]

    monkeypatch.setattr(ffprobe_probe, "probe_media", fake_probe_media)
    monkeypatch.setattr(ffprobe_probe, "decode_frame", fake_decode_frame)
    return calls, state


def test_load_metadata_reads_first_video_stream(tools):
    calls, _ = tools
    probe = FFprobeMediaProbeFactory(ffprobe_binary="/opt/ffprobe").open("https://stream/a.mp4")

    metadata = asyncio.run(probe.load_metadata())

    assert (metadata.width, metadata.height, metadata.codec) == (1280, 720, "h264")
    assert metadata.duration == pytest.approx(9.5)
    assert calls["probe"] == [("https://stream/a.mp4", "/opt/ffprobe")]


def test_attempt_decode_seeks_with_ffmpeg(tools):
    calls, _ = tools
    probe = FFprobeMediaProbe("https://stream/a.mp4", ffmpeg_binary="ffmpeg-x")

    async def scenario():
        await probe.load_metadata()
        return await probe.attempt_decode(0.95)

    metadata = asyncio.run(scenario())

    assert metadata.width == 1280
    assert calls["decode"] == [("https://stream/a.mp4", 0.95, "ffmpeg-x")]


def test_unplayable_codec_is_rejected_before_decoding(tools):
    calls, state = tools
    state["payload"] = {"streams": [{"codec_type": "video", "codec_name": "hevc", "width": 3840, "height": 2160}]}
    probe = FFprobeMediaProbe("https://stream/a.mov")

    with pytest.raises(PlaybackRejectedError, match="hevc"):
        asyncio.run(probe.attempt_decode(0.0))
    assert calls["decode"] == []


@pytest.mark.parametrize(
    "stderr, code",
    [
        ("Server returned 403 Forbidden (access denied)", MediaErrorCode.NETWORK),
        ("moov atom not found", MediaErrorCode.SRC_NOT_SUPPORTED),
    ],
)
def test_tool_diagnostics_become_element_errors(tools, stderr, code):
    _, state = tools
    state["probe_error"] = ExternalToolError("ffprobe failed", stderr=stderr)
    probe = FFprobeMediaProbe("https://stream/a.mp4")

    with pytest.raises(MediaElementError) as excinfo:
        asyncio.run(probe.load_metadata())
    assert excinfo.value.code is code


def test_decode_failure_maps_to_decode_error(tools):
    _, state = tools
    state["decode_error"] = ExternalToolError("ffmpeg failed", stderr="Error while decoding stream #0:0")
    probe = FFprobeMediaProbe("https://stream/a.mp4")

    with pytest.raises(MediaElementError) as excinfo:
        asyncio.run(probe.attempt_decode(0.0))
    assert excinfo.value.code is MediaErrorCode.DECODE


def test_missing_tool_is_not_disguised(tools):
    _, state = tools
    state["probe_error"] = ExternalToolError("ffprobe executable not found on PATH")
    probe = FFprobeMediaProbe("https://stream/a.mp4")

    with pytest.raises(ExternalToolError):
        asyncio.run(probe.load_metadata())


def test_disposed_probe_reports_abort(tools):
    probe = FFprobeMediaProbe("https://stream/a.mp4")

    async def scenario():
        await probe.dispose()
        await probe.load_metadata()

    with pytest.raises(MediaElementError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.code is MediaErrorCode.ABORTED
