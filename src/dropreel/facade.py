"""High-level session facade wiring one ingestion pipeline."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from .application.dtos import FetchResult, ReconciliationReport
from .application.interfaces import IListingProvider, IMediaProbeFactory, IStreamUrlResolver
from .application.services.duration_engine import DurationExtractionEngine
from .application.services.listing_fetcher import RemoteListingFetcher
from .application.services.probe_engine import MediaProbeEngine
from .application.services.reconciliation import ReconciliationLoop
from .domain.models import Collection, VideoRecord
from .errors.handler import ErrorHandler, ErrorSeverity
from .events.bus import EventBus
from .settings.manager import PipelineSettings
from .utils.logging import get_logger
from .viewmodels.banner_viewmodel import BannerViewModel
from .viewmodels.catalog_viewmodel import CatalogViewModel
from .viewmodels.drag_drop import DragContext, DragDropOrchestrator
from .viewmodels.panel_viewmodel import PanelViewModel

LOGGER = get_logger(__name__)


class ReelSession:
    """Everything one reel-editing session needs, built from injected collaborators.

    ``banner`` emits ``(message, severity)`` for page-level errors and notices;
    the most recent message is available as :attr:`last_error`.
    """

    def __init__(
        self,
        listing: IListingProvider,
        probe_factory: IMediaProbeFactory,
        stream_resolver: Optional[IStreamUrlResolver] = None,
        *,
        settings: Optional[PipelineSettings] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.settings = settings or PipelineSettings.defaults()
        self.event_bus = event_bus or EventBus(get_logger("events"))
        self.error_handler = ErrorHandler(get_logger("errors"), self.event_bus)

        self.banner_view = BannerViewModel(self.error_handler, self.event_bus)
        self.banner = self.banner_view.shown

        self.catalog = CatalogViewModel(self.event_bus)
        self.panels = PanelViewModel(self.catalog, self.event_bus)
        self.drag_drop = DragDropOrchestrator(self.panels, self.catalog, self.error_handler)

        self.probe_engine = MediaProbeEngine(
            probe_factory,
            stream_resolver,
            timeout_ms=self.settings.probe_timeout_ms,
            timeout_retries=self.settings.probe_timeout_retries,
            max_concurrency=self.settings.probe_max_concurrency,
            min_dimension=self.settings.probe_min_dimension,
            max_dimension=self.settings.probe_max_dimension,
        )
        self.duration_engine = DurationExtractionEngine(
            probe_factory,
            timeout_ms=self.settings.duration_timeout_ms,
            batch_pause_ms=self.settings.duration_batch_pause_ms,
        )
        self.reconciler = ReconciliationLoop(
            self.catalog,
            self.probe_engine,
            self.duration_engine,
            self.event_bus,
            stream_resolver,
            delay_ms=self.settings.reconciliation_delay_ms,
            duration_concurrency=self.settings.duration_batch_size,
        )
        self.fetcher = RemoteListingFetcher(
            listing,
            self.catalog,
            self.event_bus,
            self.reconciler,
            thumbnail_endpoint=self.settings.thumbnail_endpoint,
            reconciliation_delay_ms=self.settings.reconciliation_delay_ms,
        )

    # ------------------------------------------------------------------
    # Banner
    # ------------------------------------------------------------------
    @property
    def last_error(self) -> Optional[str]:
        return self.banner_view.current

    def clear_banner(self) -> None:
        self.banner_view.clear()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    async def fetch(self, path: str, append_to_existing: bool = False) -> FetchResult:
        result = await self.fetcher.fetch(path, append_to_existing)
        if result.error is not None:
            self.error_handler.handle(result.error, ErrorSeverity.ERROR, {"folder_path": result.folder_path})
        elif result.notice:
            self.banner_view.show(result.notice, ErrorSeverity.INFO)
        return result

    async def wait_for_reconciliation(self) -> List[ReconciliationReport]:
        return await self.reconciler.wait_idle()

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------
    def records(self, collection: Collection) -> List[VideoRecord]:
        return self.panels.records(collection)

    def selected_records(self) -> List[VideoRecord]:
        return self.panels.selected_records()

    def move(self, record_id: str, destination: Collection, index: int) -> bool:
        """Move a record between or within panels, subject to the compatibility gate."""
        return self.drag_drop.move_record(record_id, destination, index)

    def drop(self, context: DragContext) -> bool:
        return self.drag_drop.handle_drop(context)

    def delete(self, record_id: str, collection: Collection) -> bool:
        return self.panels.delete(record_id, collection)

    def snapshot_edit_state(self, folder_path: Optional[str] = None) -> dict[str, Any]:
        return self.panels.snapshot_edit_state(folder_path)

    def restore_edit_state(self, state: Mapping[str, Any]) -> str:
        return self.panels.restore_edit_state(state)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def dispose(self) -> None:
        """Detach the session; in-flight reconciliation results are ignored afterwards."""
        self.banner_view.dispose()
        self.panels.dispose()
        self.catalog.dispose()
        LOGGER.debug("Session disposed")
