"""Pure Python CatalogViewModel: the identity-keyed store of loaded records.

The fetcher fills it, the reconciliation loop patches it, and the panel view
model derives its two collections from it.  Every mutation replaces the
records tuple as a whole so observers always see a consistent snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Callable, Iterable, Optional

from dropreel.application.dtos import ProbeResult
from dropreel.domain.models import VideoRecord
from dropreel.events.bus import EventBus
from dropreel.events.catalog_events import RecordPatchedEvent
from dropreel.utils.hashutils import normalise_remote_path
from dropreel.viewmodels.base import BaseViewModel
from dropreel.viewmodels.signal import ObservableProperty, Signal

_PATCHABLE_FIELDS = frozenset(f.name for f in fields(VideoRecord)) - {"id", "path"}


class CatalogViewModel(BaseViewModel):
    """Live record store keyed by record id."""

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        super().__init__()
        self._event_bus = event_bus
        self._logger = logging.getLogger(__name__)

        self.records = ObservableProperty((), "catalog.records")
        self.folder_path = ObservableProperty("")

        # (record, changed_field_names)
        self.record_patched = Signal("catalog.record_patched")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.records.value)

    def __contains__(self, record_id: object) -> bool:
        return self.get(record_id) is not None  # type: ignore[arg-type]

    def ids(self) -> tuple[str, ...]:
        return tuple(record.id for record in self.records.value)

    def get(self, record_id: str) -> Optional[VideoRecord]:
        for record in self.records.value:
            if record.id == record_id:
                return record
        return None

    def snapshot(self, record_ids: Optional[Iterable[str]] = None) -> list[VideoRecord]:
        """Return the current records, optionally restricted to *record_ids* in that order."""
        if record_ids is None:
            return list(self.records.value)
        by_id = {record.id: record for record in self.records.value}
        return [by_id[record_id] for record_id in record_ids if record_id in by_id]

    # ------------------------------------------------------------------
    # Bulk mutations
    # ------------------------------------------------------------------
    def replace(self, records: Iterable[VideoRecord], folder_path: Optional[str] = None) -> int:
        """Replace the catalog with *records*, dropping duplicate paths."""
        unique = _dedupe(records, seen=set())
        self.records.value = tuple(unique)
        if folder_path is not None:
            self.folder_path.value = folder_path
        return len(unique)

    def append(self, records: Iterable[VideoRecord]) -> tuple[int, int]:
        """Append *records* whose paths are not loaded yet.

        Returns ``(added, skipped)``.
        """
        incoming = list(records)
        seen = {normalise_remote_path(record.path) for record in self.records.value}
        unique = _dedupe(incoming, seen=seen)
        if unique:
            self.records.value = self.records.value + tuple(unique)
        return len(unique), len(incoming) - len(unique)

    def clear(self) -> None:
        self.records.value = ()

    # ------------------------------------------------------------------
    # Per-record mutations
    # ------------------------------------------------------------------
    def update(self, record_id: str, transform: Callable[[VideoRecord], VideoRecord]) -> bool:
        """Apply *transform* to the current version of *record_id*.

        Returns ``False`` when the catalog is disposed or the record is gone;
        a missing record is never re-added.
        """
        if not self.is_alive:
            return False
        current = self.records.value
        for index, record in enumerate(current):
            if record.id != record_id:
                continue
            updated = transform(record)
            if updated == record:
                return True
            self.records.value = current[:index] + (updated,) + current[index + 1:]
            changed = tuple(
                name for name in sorted(_PATCHABLE_FIELDS)
                if getattr(record, name) != getattr(updated, name)
            )
            self.record_patched.emit(updated, changed)
            if self._event_bus is not None:
                self._event_bus.publish(RecordPatchedEvent(
                    source="catalog", record_id=record_id, fields=changed,
                ))
            return True
        self._logger.debug("Ignoring update for missing record %s", record_id)
        return False

    def patch(self, record_id: str, **changes) -> bool:
        unknown = set(changes) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch field(s): {', '.join(sorted(unknown))}")
        return self.update(record_id, lambda record: replace(record, **changes))

    def patch_probe(self, record_id: str, result: ProbeResult) -> bool:
        """Store a probe verdict; provisional (heuristic-only) results are ignored."""
        if result.is_compatible is None or result.is_provisional:
            return False

        def _apply(record: VideoRecord) -> VideoRecord:
            updated = record.with_probe_result(
                result.is_compatible,
                result.error,
                dimensions=result.dimensions,
            )
            if result.refreshed_url:
                updated = updated.with_stream_url(result.refreshed_url)
            if result.duration and not updated.has_duration:
                updated = updated.with_duration(result.duration)
            return updated

        return self.update(record_id, _apply)

    def patch_duration(self, record_id: str, seconds: Optional[int]) -> bool:
        if seconds is None:
            return False
        return self.update(record_id, lambda record: record.with_duration(seconds))

    def remove(self, record_id: str) -> Optional[VideoRecord]:
        current = self.records.value
        for index, record in enumerate(current):
            if record.id == record_id:
                self.records.value = current[:index] + current[index + 1:]
                return record
        return None


def _dedupe(records: Iterable[VideoRecord], seen: set[str]) -> list[VideoRecord]:
    unique: list[VideoRecord] = []
    for record in records:
        key = normalise_remote_path(record.path)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique
