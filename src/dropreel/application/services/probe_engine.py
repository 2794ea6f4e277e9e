import asyncio
import logging
import math
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from dropreel.application.dtos import MediaMetadata, ProbeResult
from dropreel.application.interfaces import IMediaProbeFactory, IStreamUrlResolver
from dropreel.config import (
    PROBE_MAX_CONCURRENCY,
    PROBE_MAX_DIMENSION,
    PROBE_MIN_DIMENSION,
    PROBE_SEEK_CAP_SEC,
    PROBE_SEEK_RATIO,
    PROBE_TIMEOUT_MS,
    PROBE_TIMEOUT_RETRIES,
)
from dropreel.domain.models import Dimensions, VideoRecord
from dropreel.errors import (
    InfrastructureError,
    MediaElementError,
    MediaErrorCode,
    PlaybackRejectedError,
    ProbeFailure,
    StreamResolutionError,
)
from dropreel.media_classifier import extension_verdict, find_incompatible_codec, suffix_of

ProbeCallback = Callable[[VideoRecord, ProbeResult], None]

# Returned by a single attempt when the element reported a network error.
_NETWORK_FAILURE = object()


class MediaProbeEngine:
    """
    Decides whether records can be played back.
    Two layers: a network-free heuristic over name and provider metadata, and
    a full probe that opens the stream through an IMediaProbe.
    """

    def __init__(
        self,
        probe_factory: IMediaProbeFactory,
        stream_resolver: Optional[IStreamUrlResolver] = None,
        *,
        timeout_ms: int = PROBE_TIMEOUT_MS,
        timeout_retries: int = PROBE_TIMEOUT_RETRIES,
        max_concurrency: int = PROBE_MAX_CONCURRENCY,
        min_dimension: int = PROBE_MIN_DIMENSION,
        max_dimension: int = PROBE_MAX_DIMENSION,
    ):
        self._factory = probe_factory
        self._resolver = stream_resolver
        self._timeout = timeout_ms / 1000.0
        self._timeout_retries = max(0, timeout_retries)
        self._max_concurrency = max(1, max_concurrency)
        self._min_dimension = min_dimension
        self._max_dimension = max_dimension
        self._logger = logging.getLogger(__name__)

    @property
    def timeout_ms(self) -> int:
        return int(self._timeout * 1000)

    # ------------------------------------------------------------------
    # Heuristic layer
    # ------------------------------------------------------------------
    def instant_check(self, record: VideoRecord) -> ProbeResult:
        """Classify *record* without touching the network."""
        verdict = extension_verdict(record.name)
        if verdict is False:
            suffix = suffix_of(record.name).lstrip(".").upper()
            return ProbeResult.incompatible(
                ProbeFailure.FORMAT_UNSUPPORTED,
                f"{suffix} format is not supported for browser playback",
            )

        codec = find_incompatible_codec(record.provider_metadata)
        if codec:
            return ProbeResult.incompatible(
                ProbeFailure.CODEC_UNSUPPORTED,
                f"{codec} codec is not supported for browser playback",
            )
        return ProbeResult.compatible()

    # ------------------------------------------------------------------
    # Full probe
    # ------------------------------------------------------------------
    async def probe_one(self, url: str, path: str, *, url_refreshed: bool = False) -> ProbeResult:
        outcome = await self._attempt_with_timeout(url)
        if outcome is not _NETWORK_FAILURE:
            return outcome

        if url_refreshed:
            return ProbeResult.incompatible(ProbeFailure.CANNOT_ACCESS, checked_with_browser=True)

        if self._resolver is None:
            self._logger.info("Network error probing %s; no resolver configured, assuming playable", path)
            return ProbeResult.compatible(checked_with_browser=True)

        try:
            fresh_url = await self._resolver.resolve(path)
        except StreamResolutionError as exc:
            self._logger.warning("Could not refresh stream URL for %s: %s", path, exc)
            return ProbeResult.compatible(checked_with_browser=True)

        self._logger.debug("Re-probing %s with a refreshed stream URL", path)
        result = await self.probe_one(fresh_url, path, url_refreshed=True)
        return replace(result, refreshed_url=fresh_url)

    async def _attempt_with_timeout(self, url: str):
        attempts = 1 + self._timeout_retries
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(self._inspect(url), timeout=self._timeout)
            except asyncio.TimeoutError:
                self._logger.warning(
                    "Probe of %s timed out after %d ms (attempt %d/%d)",
                    url, self.timeout_ms, attempt, attempts,
                )
        # Undecided probes fail open.
        return ProbeResult.compatible(timed_out=True, checked_with_browser=True)

    async def _inspect(self, url: str):
        probe = self._factory.open(url)
        try:
            metadata = await probe.load_metadata()
            rejection = self._check_dimensions(metadata)
            if rejection is not None:
                return rejection

            try:
                decoded = await probe.attempt_decode(self._seek_offset(metadata.duration))
            except PlaybackRejectedError as exc:
                self._logger.debug("Playback refused for %s: %s", url, exc)
                return ProbeResult.incompatible(ProbeFailure.CODEC_UNSUPPORTED, checked_with_browser=True)

            return ProbeResult.compatible(
                dimensions=Dimensions(metadata.width, metadata.height),
                duration=decoded.duration or metadata.duration,
                checked_with_browser=True,
            )
        except MediaElementError as exc:
            return self._map_element_error(exc)
        except InfrastructureError as exc:
            # No verdict from the media element; leave the record open for a later pass.
            self._logger.warning("Probe backend failed for %s: %s", url, exc)
            return ProbeResult.unverified(str(exc))
        finally:
            await self._dispose(probe)

    def _check_dimensions(self, metadata: MediaMetadata) -> Optional[ProbeResult]:
        if metadata.width <= 0 or metadata.height <= 0:
            return ProbeResult.incompatible(ProbeFailure.AUDIO_ONLY, checked_with_browser=True)
        for axis in (metadata.width, metadata.height):
            if axis < self._min_dimension or axis > self._max_dimension:
                return ProbeResult.incompatible(
                    ProbeFailure.INVALID_DIMENSIONS,
                    dimensions=Dimensions(metadata.width, metadata.height),
                    checked_with_browser=True,
                )
        return None

    @staticmethod
    def _seek_offset(duration: Optional[float]) -> float:
        if duration is None or not math.isfinite(duration) or duration <= 0:
            return 0.0
        return min(PROBE_SEEK_CAP_SEC, duration * PROBE_SEEK_RATIO)

    def _map_element_error(self, exc: MediaElementError):
        code = exc.code
        if code is MediaErrorCode.NETWORK:
            return _NETWORK_FAILURE
        if code is MediaErrorCode.ABORTED:
            return ProbeResult.compatible(checked_with_browser=True)
        if code is MediaErrorCode.DECODE:
            return ProbeResult.incompatible(ProbeFailure.CODEC_UNSUPPORTED, checked_with_browser=True)
        if code is MediaErrorCode.SRC_NOT_SUPPORTED:
            return ProbeResult.incompatible(ProbeFailure.FORMAT_UNSUPPORTED, checked_with_browser=True)
        return ProbeResult.incompatible(ProbeFailure.UNKNOWN, checked_with_browser=True)

    async def _dispose(self, probe) -> None:
        try:
            await probe.dispose()
        except InfrastructureError as exc:
            self._logger.warning("Failed to dispose media probe: %s", exc)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------
    async def probe_all(
        self,
        records: Sequence[VideoRecord],
        on_each_resolved: Optional[ProbeCallback] = None,
    ) -> List[ProbeResult]:
        """
        Probe every record and return the combined verdicts in input order.
        The heuristic and the full probe are ANDed; the heuristic's reason is
        kept when it flagged the record.  *on_each_resolved* fires as soon as
        an individual probe settles.
        """
        heuristics = [self.instant_check(record) for record in records]
        results: List[ProbeResult] = list(heuristics)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _probe(index: int, record: VideoRecord) -> None:
            async with semaphore:
                try:
                    full = await self.probe_one(record.stream_url, record.path)
                except Exception as exc:
                    self._logger.error("Unexpected probe failure for %s: %s", record.path, exc)
                    full = ProbeResult.unverified(str(exc))

            combined = self._combine(heuristics[index], full)
            results[index] = combined
            if on_each_resolved is not None:
                try:
                    on_each_resolved(record, combined)
                except Exception as exc:
                    self._logger.error("Probe callback failed for %s: %s", record.path, exc)

        pending = []
        for index, record in enumerate(records):
            if record.checked_with_browser and record.is_compatible is not None:
                results[index] = ProbeResult(
                    is_compatible=record.is_compatible,
                    error=record.compatibility_error,
                    dimensions=record.dimensions,
                    checked_with_browser=True,
                )
                continue
            if not record.has_stream_url:
                self._logger.debug("No stream URL for %s; keeping heuristic verdict", record.path)
                continue
            pending.append(_probe(index, record))

        if pending:
            await asyncio.gather(*pending)

        compatible = sum(1 for result in results if result.is_compatible)
        self._logger.info(
            "Probed %d record(s): %d compatible, %d incompatible",
            len(results), compatible, len(results) - compatible,
        )
        return results

    @staticmethod
    def _combine(heuristic: ProbeResult, full: ProbeResult) -> ProbeResult:
        if heuristic.is_compatible is False:
            return replace(
                heuristic,
                dimensions=full.dimensions,
                duration=full.duration,
                refreshed_url=full.refreshed_url,
                checked_with_browser=full.checked_with_browser,
            )
        return full
