from dataclasses import dataclass, field
from typing import Optional

from .domain_events import DomainEvent


@dataclass(kw_only=True)
class RecordsLoadedEvent(DomainEvent):
    folder_path: str = ""
    added_count: int = 0
    duplicates_skipped: int = 0
    appended: bool = False


@dataclass(kw_only=True)
class ListingFailedEvent(DomainEvent):
    folder_path: str = ""
    message: str = ""
    appended: bool = False


@dataclass(kw_only=True)
class RecordPatchedEvent(DomainEvent):
    record_id: str = ""
    fields: tuple[str, ...] = ()


@dataclass(kw_only=True)
class RecordDeletedEvent(DomainEvent):
    record_id: str = ""
    collection: str = ""


@dataclass(kw_only=True)
class ReconciliationCompletedEvent(DomainEvent):
    record_ids: list[str] = field(default_factory=list)
    compatible_count: int = 0
    incompatible_count: int = 0
    durations_found: int = 0
    url_failures: int = 0
    summary: Optional[str] = None
