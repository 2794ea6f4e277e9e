import asyncio
import logging
from typing import Iterable, List, Optional, Set

from dropreel.application.dtos import DurationResult, DurationSource, ProbeResult, ReconciliationReport
from dropreel.application.interfaces import IStreamUrlResolver
from dropreel.application.services.duration_engine import DurationExtractionEngine
from dropreel.application.services.probe_engine import MediaProbeEngine
from dropreel.config import DURATION_BATCH_SIZE, RECONCILIATION_DELAY_MS
from dropreel.domain.models import VideoRecord
from dropreel.errors import StreamResolutionError
from dropreel.events.bus import EventBus
from dropreel.events.catalog_events import ReconciliationCompletedEvent
from dropreel.viewmodels.catalog_viewmodel import CatalogViewModel


class ReconciliationLoop:
    """
    Upgrades optimistic records in place: stream URLs, then playability,
    then durations.  Every write goes through the catalog by id, so records
    deleted while a pass is running are skipped rather than re-added.
    """

    def __init__(
        self,
        catalog: CatalogViewModel,
        probe_engine: MediaProbeEngine,
        duration_engine: DurationExtractionEngine,
        event_bus: EventBus,
        stream_resolver: Optional[IStreamUrlResolver] = None,
        *,
        delay_ms: int = RECONCILIATION_DELAY_MS,
        duration_concurrency: int = DURATION_BATCH_SIZE,
    ):
        self._catalog = catalog
        self._probe_engine = probe_engine
        self._duration_engine = duration_engine
        self._events = event_bus
        self._resolver = stream_resolver
        self._delay = delay_ms / 1000.0
        self._duration_concurrency = duration_concurrency
        self._tasks: Set[asyncio.Task] = set()
        self._logger = logging.getLogger(__name__)

    def schedule(self, record_ids: Iterable[str], delay: Optional[float] = None) -> asyncio.Task:
        """Run a pass over *record_ids* after *delay* seconds on the running loop."""
        ids = list(record_ids)
        wait = self._delay if delay is None else delay
        task = asyncio.get_running_loop().create_task(self._run_later(ids, wait))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def wait_idle(self) -> List[ReconciliationReport]:
        """Wait for every scheduled pass, including ones scheduled meanwhile."""
        reports: List[ReconciliationReport] = []
        while self._tasks:
            batch = list(self._tasks)
            reports.extend(await asyncio.gather(*batch))
            self._tasks.difference_update(batch)
        return reports

    async def _run_later(self, record_ids: List[str], delay: float) -> ReconciliationReport:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            return await self.run(record_ids)
        except Exception:
            self._logger.exception("Reconciliation pass over %d record(s) failed", len(record_ids))
            raise

    async def run(self, record_ids: Iterable[str]) -> ReconciliationReport:
        ids = list(record_ids)
        report = ReconciliationReport(record_ids=ids)
        if not self._catalog.is_alive:
            self._logger.debug("Catalog disposed; skipping reconciliation")
            return report

        self._logger.info("Reconciling %d record(s)", len(ids))
        await self._resolve_stream_urls(ids, report)

        records = self._catalog.snapshot(ids)
        results = await self._probe_engine.probe_all(records, self._on_probe_resolved)
        self._apply_provisional(records, results)
        report.compatible_count = sum(1 for result in results if result.is_compatible is True)
        report.incompatible_count = sum(1 for result in results if result.is_compatible is False)

        records = self._catalog.snapshot(ids)
        durations = await self._duration_engine.extract_batch(
            records,
            concurrency=self._duration_concurrency,
            on_each_resolved=self._on_duration_resolved,
        )
        report.durations_found = sum(
            1 for result in durations.values()
            if result.found and result.source is not DurationSource.EXISTING
        )

        report.skipped_deleted = len(ids) - len(self._catalog.snapshot(ids))
        summary = report.summary
        if summary:
            self._logger.warning(summary)
        self._events.publish(ReconciliationCompletedEvent(
            source="reconciliation",
            record_ids=ids,
            compatible_count=report.compatible_count,
            incompatible_count=report.incompatible_count,
            durations_found=report.durations_found,
            url_failures=report.url_failures,
            summary=summary,
        ))
        return report

    async def _resolve_stream_urls(self, ids: List[str], report: ReconciliationReport) -> None:
        missing = [record for record in self._catalog.snapshot(ids) if not record.has_stream_url]
        if not missing:
            return
        if self._resolver is None:
            self._logger.debug("No stream resolver; %d record(s) stay unresolved", len(missing))
            report.url_failures += len(missing)
            return

        outcomes = await asyncio.gather(*(self._resolve_one(record) for record in missing))
        report.urls_resolved += sum(1 for ok in outcomes if ok)
        report.url_failures += sum(1 for ok in outcomes if not ok)

    async def _resolve_one(self, record: VideoRecord) -> bool:
        try:
            url = await self._resolver.resolve(record.path)
        except StreamResolutionError as exc:
            self._logger.warning("Stream URL unavailable for %s: %s", record.path, exc)
            return False
        except Exception as exc:
            self._logger.error("Unexpected failure resolving %s: %s", record.path, exc)
            return False
        return self._catalog.patch(record.id, stream_url=url)

    def _on_probe_resolved(self, record: VideoRecord, result: ProbeResult) -> None:
        if not self._catalog.patch_probe(record.id, result):
            self._logger.debug("Dropped probe result for %s", record.path)

    def _apply_provisional(self, records: List[VideoRecord], results: List[ProbeResult]) -> None:
        # A heuristic rejection is still worth showing while the stream is unavailable.
        for record, result in zip(records, results):
            if result.is_compatible is False and result.is_provisional:
                self._catalog.update(
                    record.id,
                    lambda current, verdict=result: current if current.checked_with_browser else
                    current.with_probe_result(False, verdict.error, checked_with_browser=False),
                )

    def _on_duration_resolved(self, record: VideoRecord, result: DurationResult) -> None:
        if result.found:
            self._catalog.patch_duration(record.id, result.seconds)
