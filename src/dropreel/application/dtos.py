import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dropreel.domain.models import Dimensions
from dropreel.errors import ProbeError, ProbeFailure


@dataclass(frozen=True)
class ListingEntry:
    name: str
    path: str
    size: Optional[int] = None
    provider_metadata: Optional[Dict[str, Any]] = None
    modified_at: Optional[datetime] = None


@dataclass(frozen=True)
class MediaMetadata:
    """What a media element reports once its metadata is loaded."""
    width: int
    height: int
    duration: Optional[float] = None
    codec: Optional[str] = None


@dataclass(frozen=True)
class ProbeResult:
    is_compatible: Optional[bool]
    error: Optional[str] = None
    failure: Optional[ProbeFailure] = None
    dimensions: Optional[Dimensions] = None
    duration: Optional[float] = None
    timed_out: bool = False
    refreshed_url: Optional[str] = None
    # True when the verdict came from a full probe rather than the heuristic
    checked_with_browser: bool = False

    @classmethod
    def compatible(cls, **kwargs: Any) -> "ProbeResult":
        return cls(is_compatible=True, **kwargs)

    @classmethod
    def incompatible(cls, failure: ProbeFailure, error: Optional[str] = None, **kwargs: Any) -> "ProbeResult":
        return cls(is_compatible=False, failure=failure, error=str(ProbeError(failure, error)), **kwargs)

    @classmethod
    def unverified(cls, reason: str) -> "ProbeResult":
        """Fail-open result for a probe that never reached the media element."""
        return cls(is_compatible=True, error=reason, checked_with_browser=False)

    @property
    def is_provisional(self) -> bool:
        return not self.checked_with_browser


class DurationSource(str, Enum):
    EXISTING = "existing"
    PROVIDER_FAST = "provider_fast"
    PROVIDER_DEEP = "provider_deep"
    MEDIA = "media"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DurationResult:
    record_id: str
    seconds: Optional[int]
    source: DurationSource

    @property
    def found(self) -> bool:
        return self.seconds is not None


@dataclass
class FetchResult:
    folder_path: str
    records_added: int = 0
    duplicates_skipped: int = 0
    error: Optional[Exception] = None
    notice: Optional[str] = None
    reconciliation: Optional["asyncio.Task[Any]"] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReconciliationReport:
    record_ids: List[str] = field(default_factory=list)
    urls_resolved: int = 0
    url_failures: int = 0
    compatible_count: int = 0
    incompatible_count: int = 0
    durations_found: int = 0
    skipped_deleted: int = 0

    @property
    def summary(self) -> Optional[str]:
        if not self.incompatible_count:
            return None
        return (
            f"{self.incompatible_count} video(s) have incompatible format. "
            f"{self.compatible_count} videos are playable."
        )
