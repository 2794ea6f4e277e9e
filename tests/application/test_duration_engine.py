"""Tests for DurationExtractionEngine."""

import asyncio
import time

from conftest import HANG, FakeProbeFactory, make_record
from dropreel.application.dtos import DurationSource, MediaMetadata
from dropreel.application.services.duration_engine import DurationExtractionEngine
from dropreel.errors import MediaElementError, MediaErrorCode


def _extract(engine, record):
    return asyncio.run(engine.extract_one(record))


def test_known_duration_is_left_alone(probe_factory):
    record = make_record("a.mp4", stream_url="https://s.test/a", duration_seconds=42)

    result = _extract(DurationExtractionEngine(probe_factory), record)

    assert result.seconds == 42
    assert result.source is DurationSource.EXISTING
    assert probe_factory.opened == []


def test_fast_path_uses_top_level_milliseconds(probe_factory):
    record = make_record("a.mp4", provider_metadata={"duration": 61000}, stream_url="https://s.test/a")

    result = _extract(DurationExtractionEngine(probe_factory), record)

    assert (result.seconds, result.source) == (61, DurationSource.PROVIDER_FAST)
    assert probe_factory.opened == []


def test_deep_path_finds_nested_duration(probe_factory):
    record = make_record("a.mp4", provider_metadata={".tag": "metadata", "metadata": {"duration": 7500}})

    result = _extract(DurationExtractionEngine(probe_factory), record)

    assert (result.seconds, result.source) == (7, DurationSource.PROVIDER_DEEP)


def test_slow_path_reads_media_metadata():
    factory = FakeProbeFactory(default={"metadata": MediaMetadata(640, 360, 95.7, "h264")})
    record = make_record("a.mp4", stream_url="https://s.test/a")

    result = _extract(DurationExtractionEngine(factory), record)

    assert (result.seconds, result.source) == (95, DurationSource.MEDIA)
    assert factory.opened[0].disposed


def test_slow_path_needs_a_stream_url(probe_factory):
    result = _extract(DurationExtractionEngine(probe_factory), make_record("a.mp4"))
    assert result.source is DurationSource.UNAVAILABLE
    assert probe_factory.opened == []


def test_slow_path_timeout_falls_back_to_unknown():
    factory = FakeProbeFactory(default={"metadata": HANG})
    record = make_record("a.mp4", stream_url="https://s.test/a")

    result = _extract(DurationExtractionEngine(factory, timeout_ms=30), record)

    assert result.seconds is None
    assert result.source is DurationSource.UNAVAILABLE
    assert factory.opened[0].disposed


def test_slow_path_media_error_falls_back_to_unknown():
    factory = FakeProbeFactory(default={"metadata": MediaElementError(MediaErrorCode.DECODE)})
    result = _extract(DurationExtractionEngine(factory), make_record("a.mp4", stream_url="https://s.test/a"))
    assert result.seconds is None


def test_batch_passes_known_durations_through_without_callback(probe_factory):
    known = make_record("known.mp4", duration_seconds=10)
    fresh = make_record("fresh.mp4", provider_metadata={"duration": 3000})
    seen = []

    results = asyncio.run(DurationExtractionEngine(probe_factory).extract_batch(
        [known, fresh], on_each_resolved=lambda record, result: seen.append(record.id)
    ))

    assert results[known.id].source is DurationSource.EXISTING
    assert results[fresh.id].seconds == 3
    assert seen == [fresh.id]


def test_batch_processes_groups_with_a_pause():
    factory = FakeProbeFactory(default={"metadata": MediaMetadata(640, 360, 5.0, "h264")})
    records = [make_record(f"{i}.mp4", stream_url=f"https://s.test/{i}") for i in range(7)]
    engine = DurationExtractionEngine(factory, batch_pause_ms=100)

    started = time.monotonic()
    results = asyncio.run(engine.extract_batch(records, concurrency=3))
    elapsed = time.monotonic() - started

    assert len(results) == 7
    assert all(result.seconds == 5 for result in results.values())
    # Three groups, two pauses between them.
    assert elapsed >= 0.2
