import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from dropreel.application.dtos import DurationResult, DurationSource
from dropreel.application.interfaces import IMediaProbeFactory
from dropreel.config import DURATION_BATCH_PAUSE_MS, DURATION_BATCH_SIZE, DURATION_TIMEOUT_MS
from dropreel.domain.models import VideoRecord
from dropreel.errors import DurationUnavailable, InfrastructureError
from dropreel.utils.duration import (
    normalise_seconds,
    provider_duration_deep,
    provider_duration_fast,
)

DurationCallback = Callable[[VideoRecord, DurationResult], None]


class DurationExtractionEngine:
    """
    Finds a playback length for records through a prioritized chain:
    existing value, provider metadata (top-level, then nested), and finally
    the stream itself.  Failing every source is not an error.
    """

    def __init__(
        self,
        probe_factory: Optional[IMediaProbeFactory] = None,
        *,
        timeout_ms: int = DURATION_TIMEOUT_MS,
        batch_pause_ms: int = DURATION_BATCH_PAUSE_MS,
    ):
        self._factory = probe_factory
        self._timeout = timeout_ms / 1000.0
        self._pause = batch_pause_ms / 1000.0
        self._logger = logging.getLogger(__name__)

    async def extract_one(self, record: VideoRecord) -> DurationResult:
        if record.has_duration:
            return DurationResult(record.id, record.duration_seconds, DurationSource.EXISTING)

        seconds = provider_duration_fast(record.provider_metadata)
        if seconds is not None:
            return DurationResult(record.id, seconds, DurationSource.PROVIDER_FAST)

        seconds = provider_duration_deep(record.provider_metadata)
        if seconds is not None:
            return DurationResult(record.id, seconds, DurationSource.PROVIDER_DEEP)

        try:
            seconds = await self._read_from_stream(record)
        except DurationUnavailable as exc:
            self._logger.debug("No duration for %s: %s", record.path, exc)
            return DurationResult(record.id, None, DurationSource.UNAVAILABLE)
        return DurationResult(record.id, seconds, DurationSource.MEDIA)

    async def _read_from_stream(self, record: VideoRecord) -> int:
        if self._factory is None:
            raise DurationUnavailable("no media probe configured")
        if not record.has_stream_url:
            raise DurationUnavailable("stream URL not resolved")

        probe = self._factory.open(record.stream_url)
        try:
            metadata = await asyncio.wait_for(probe.load_metadata(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise DurationUnavailable(f"metadata load timed out after {self._timeout:.1f}s") from exc
        except InfrastructureError as exc:
            raise DurationUnavailable(str(exc)) from exc
        finally:
            try:
                await probe.dispose()
            except InfrastructureError as exc:
                self._logger.warning("Failed to dispose media probe: %s", exc)

        seconds = normalise_seconds(metadata.duration)
        if seconds is None:
            raise DurationUnavailable("stream reported no usable duration")
        return seconds

    async def extract_batch(
        self,
        records: Sequence[VideoRecord],
        concurrency: int = DURATION_BATCH_SIZE,
        on_each_resolved: Optional[DurationCallback] = None,
    ) -> Dict[str, DurationResult]:
        """
        Extract durations for *records*, *concurrency* at a time.
        Records that already carry a duration are passed through without a
        callback.  The returned mapping is keyed by record id.
        """
        results: Dict[str, DurationResult] = {}
        needed: List[VideoRecord] = []
        for record in records:
            if record.has_duration:
                results[record.id] = DurationResult(record.id, record.duration_seconds, DurationSource.EXISTING)
            else:
                needed.append(record)

        if not needed:
            return results

        size = max(1, concurrency)

        async def _extract(record: VideoRecord) -> None:
            result = await self.extract_one(record)
            results[record.id] = result
            if on_each_resolved is not None:
                try:
                    on_each_resolved(record, result)
                except Exception as exc:
                    self._logger.error("Duration callback failed for %s: %s", record.path, exc)

        for start in range(0, len(needed), size):
            if start:
                await asyncio.sleep(self._pause)
            await asyncio.gather(*(_extract(record) for record in needed[start:start + size]))

        found = sum(1 for record in needed if results[record.id].found)
        self._logger.info("Extracted %d of %d missing duration(s)", found, len(needed))
        return results
