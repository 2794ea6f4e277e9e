"""Pure Python PanelViewModel: the two ordered collections shown side by side.

``source`` ("yourVideos") holds everything the user has not picked yet;
``target`` ("selects") is the reel in playback order.  Both hold record ids
only; record contents always come from the catalog.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from dropreel.domain.models import Collection, VideoRecord
from dropreel.errors import RecordNotFoundError
from dropreel.events.bus import EventBus
from dropreel.events.catalog_events import RecordDeletedEvent
from dropreel.viewmodels.base import BaseViewModel
from dropreel.viewmodels.catalog_viewmodel import CatalogViewModel
from dropreel.viewmodels.signal import ObservableProperty, Signal


class PanelViewModel(BaseViewModel):
    """Panel state ViewModel, re-derived whenever the catalog changes."""

    def __init__(self, catalog: CatalogViewModel, event_bus: Optional[EventBus] = None) -> None:
        super().__init__()
        self._catalog = catalog
        self._event_bus = event_bus
        self._logger = logging.getLogger(__name__)

        self.source_ids = ObservableProperty(())
        self.target_ids = ObservableProperty(())

        # (source_ids, target_ids) after any change
        self.state_changed = Signal("panels.state_changed")

        catalog.records.changed.connect(self._on_catalog_changed)
        self.derive()

    def dispose(self) -> None:
        self._catalog.records.changed.disconnect(self._on_catalog_changed)
        super().dispose()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------
    def derive(self) -> None:
        """Reconcile both collections with the catalog.

        Targets keep their order; ids gone from the catalog are dropped; every
        other catalog id lands in ``source`` after the ones already there.
        """
        catalog_ids = self._catalog.ids()
        present = set(catalog_ids)

        target = tuple(record_id for record_id in self.target_ids.value if record_id in present)
        placed = set(target)
        kept = [
            record_id for record_id in self.source_ids.value
            if record_id in present and record_id not in placed
        ]
        placed.update(kept)
        fresh = [record_id for record_id in catalog_ids if record_id not in placed]
        self._commit(tuple(kept + fresh), target)

    def _on_catalog_changed(self, _new: Any, _old: Any) -> None:
        if self.is_alive:
            self.derive()

    def _commit(self, source: tuple[str, ...], target: tuple[str, ...]) -> None:
        changed = source != self.source_ids.value or target != self.target_ids.value
        self.source_ids.value = source
        self.target_ids.value = target
        if changed:
            self.state_changed.emit(source, target)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def ids(self, collection: Collection) -> tuple[str, ...]:
        if collection is Collection.TARGET:
            return self.target_ids.value
        return self.source_ids.value

    def collection_of(self, record_id: str) -> Optional[Collection]:
        if record_id in self.target_ids.value:
            return Collection.TARGET
        if record_id in self.source_ids.value:
            return Collection.SOURCE
        return None

    def records(self, collection: Collection) -> list[VideoRecord]:
        return self._catalog.snapshot(self.ids(collection))

    def selected_records(self) -> list[VideoRecord]:
        """Records of the reel, in playback order."""
        return self.records(Collection.TARGET)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def move(self, record_id: str, destination: Collection, index: int) -> None:
        """Move *record_id* to *destination* at *index* (clamped)."""
        origin = self.collection_of(record_id)
        if origin is None:
            raise RecordNotFoundError(f"Record {record_id} is not in any panel")

        origin_ids = list(self.ids(origin))
        origin_ids.remove(record_id)
        if origin is destination:
            origin_ids.insert(_clamp(index, len(origin_ids)), record_id)
            updated = {origin: tuple(origin_ids)}
        else:
            destination_ids = list(self.ids(destination))
            destination_ids.insert(_clamp(index, len(destination_ids)), record_id)
            updated = {origin: tuple(origin_ids), destination: tuple(destination_ids)}

        self._commit(
            updated.get(Collection.SOURCE, self.source_ids.value),
            updated.get(Collection.TARGET, self.target_ids.value),
        )

    def delete(self, record_id: str, collection: Collection) -> bool:
        """Remove *record_id* from *collection* and from the catalog.

        A record is never moved to the other panel by deletion; asking a
        collection to delete an id it does not hold changes nothing.
        """
        if record_id not in self.ids(collection):
            return False

        remaining = tuple(i for i in self.ids(collection) if i != record_id)
        if collection is Collection.TARGET:
            self._commit(self.source_ids.value, remaining)
        else:
            self._commit(remaining, self.target_ids.value)
        self._catalog.remove(record_id)

        self._logger.debug("Deleted %s from %s", record_id, collection.value)
        if self._event_bus is not None:
            self._event_bus.publish(RecordDeletedEvent(
                source="panels", record_id=record_id, collection=collection.value,
            ))
        return True

    # ------------------------------------------------------------------
    # Edit state
    # ------------------------------------------------------------------
    def snapshot_edit_state(self, folder_path: Optional[str] = None) -> dict[str, Any]:
        return {
            "currentYourVideos": [record.to_dict() for record in self.records(Collection.SOURCE)],
            "currentSelects": [record.to_dict() for record in self.records(Collection.TARGET)],
            "folderPath": folder_path if folder_path is not None else self._catalog.folder_path.value,
        }

    def restore_edit_state(self, state: Mapping[str, Any]) -> str:
        """Load a snapshot produced by :meth:`snapshot_edit_state`; returns its folder path."""
        source = [VideoRecord.from_dict(item) for item in state.get("currentYourVideos") or []]
        target = [VideoRecord.from_dict(item) for item in state.get("currentSelects") or []]
        folder_path = str(state.get("folderPath") or "")

        target_ids = tuple(dict.fromkeys(record.id for record in target))
        source_ids = tuple(record.id for record in source if record.id not in target_ids)
        # Placement first, so the derivation triggered by the catalog keeps it.
        self.source_ids.value = tuple(dict.fromkeys(source_ids))
        self.target_ids.value = target_ids
        self._catalog.replace(target + source, folder_path=folder_path)
        self.derive()
        return folder_path


def _clamp(index: int, upper: int) -> int:
    return max(0, min(index, upper))
