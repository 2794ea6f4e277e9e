import logging
from typing import List

from dropreel.application.dtos import FetchResult, ListingEntry
from dropreel.application.interfaces import IListingProvider
from dropreel.config import RECONCILIATION_DELAY_MS, THUMBNAIL_ENDPOINT
from dropreel.domain.models import VideoRecord
from dropreel.errors import ListingError
from dropreel.events.bus import EventBus
from dropreel.events.catalog_events import ListingFailedEvent, RecordsLoadedEvent
from dropreel.utils.duration import provider_duration_fast
from dropreel.utils.pathutils import extract_dropbox_path
from dropreel.viewmodels.catalog_viewmodel import CatalogViewModel

EMPTY_INPUT_MESSAGE = "Please enter a Dropbox folder path or link"
EMPTY_FOLDER_NOTICE = "No video files found in the specified folder"


class RemoteListingFetcher:
    """
    Turns a folder path into catalog records.
    Records are built optimistically from the listing alone and committed
    right away; the slow work is handed to the reconciliation loop.
    """

    def __init__(
        self,
        listing: IListingProvider,
        catalog: CatalogViewModel,
        event_bus: EventBus,
        reconciler=None,
        *,
        thumbnail_endpoint: str = THUMBNAIL_ENDPOINT,
        reconciliation_delay_ms: int = RECONCILIATION_DELAY_MS,
    ):
        self._listing = listing
        self._catalog = catalog
        self._events = event_bus
        self._reconciler = reconciler
        self._thumbnail_endpoint = thumbnail_endpoint
        self._delay = reconciliation_delay_ms / 1000.0
        self._logger = logging.getLogger(__name__)

    def build_record(self, entry: ListingEntry) -> VideoRecord:
        return VideoRecord.create(
            entry.path,
            entry.name,
            size=entry.size,
            provider_metadata=entry.provider_metadata,
            modified_at=entry.modified_at,
            thumbnail_endpoint=self._thumbnail_endpoint,
            duration_seconds=provider_duration_fast(entry.provider_metadata),
        )

    async def fetch(self, path: str, append_to_existing: bool = False) -> FetchResult:
        folder = extract_dropbox_path(path or "")
        if not folder:
            return self._fail(path or "", ListingError(EMPTY_INPUT_MESSAGE), append_to_existing, clear=False)

        self._logger.info("Listing %s (append=%s)", folder, append_to_existing)
        try:
            entries = await self._listing.list(folder)
        except ListingError as exc:
            return self._fail(folder, exc, append_to_existing, clear=not append_to_existing)

        records = [self.build_record(entry) for entry in entries]
        result = FetchResult(folder_path=folder)

        if not records:
            result.notice = EMPTY_FOLDER_NOTICE
            if not append_to_existing:
                self._catalog.replace([], folder_path=folder)
            self._publish_loaded(result, append_to_existing)
            return result

        before = set(self._catalog.ids()) if append_to_existing else set()
        if append_to_existing:
            added, skipped = self._catalog.append(records)
            if skipped:
                result.notice = f"Skipped {skipped} duplicate video(s). {added} videos added."
        else:
            added = self._catalog.replace(records, folder_path=folder)
            skipped = len(records) - added
        result.records_added = added
        result.duplicates_skipped = skipped

        new_ids: List[str] = [record_id for record_id in self._catalog.ids() if record_id not in before]
        self._publish_loaded(result, append_to_existing)

        if self._reconciler is not None and new_ids:
            result.reconciliation = self._reconciler.schedule(new_ids, delay=self._delay)
        return result

    def _fail(self, folder: str, error: ListingError, appended: bool, *, clear: bool) -> FetchResult:
        self._logger.warning("Listing %s failed: %s", folder or "<empty>", error)
        if clear:
            self._catalog.clear()
        self._events.publish(ListingFailedEvent(
            source="listing", folder_path=folder, message=str(error), appended=appended,
        ))
        return FetchResult(folder_path=folder, error=error)

    def _publish_loaded(self, result: FetchResult, appended: bool) -> None:
        self._events.publish(RecordsLoadedEvent(
            source="listing",
            folder_path=result.folder_path,
            added_count=result.records_added,
            duplicates_skipped=result.duplicates_skipped,
            appended=appended,
        ))
