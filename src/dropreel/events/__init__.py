from .bus import Event, EventBus, Subscription
from .domain_events import DomainEvent
from .catalog_events import (
    ListingFailedEvent,
    ReconciliationCompletedEvent,
    RecordDeletedEvent,
    RecordPatchedEvent,
    RecordsLoadedEvent,
)

__all__ = [
    "DomainEvent",
    "Event",
    "EventBus",
    "ListingFailedEvent",
    "ReconciliationCompletedEvent",
    "RecordDeletedEvent",
    "RecordPatchedEvent",
    "RecordsLoadedEvent",
    "Subscription",
]
