"""Custom exception hierarchy for Dropreel."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class DropreelError(Exception):
    """Base class for all custom errors raised by Dropreel."""


# --- 3-layer hierarchy ---

class DomainError(DropreelError):
    """Base class for domain-level errors."""


class InfrastructureError(DropreelError):
    """Base class for infrastructure-level errors."""


class ApplicationError(DropreelError):
    """Base class for application-level errors."""


# --- Domain errors ---

class RecordNotFoundError(DomainError):
    """Raised when a record id is not present in the catalog or a panel."""


class CompatibilityGateError(DomainError):
    """Raised when an incompatible record is dropped onto the selects panel."""

    def __init__(self, record_name: str, reason: Optional[str] = None) -> None:
        self.record_name = record_name
        self.reason = reason or "Video format not supported"
        super().__init__(f'Cannot add "{record_name}" to reel: {self.reason}')


# --- Listing errors (page level) ---

class ListingError(ApplicationError):
    """Raised when a folder listing cannot be produced."""


class ListingNotFoundError(ListingError):
    """Raised when the requested folder does not exist."""


class ListingUnauthorizedError(ListingError):
    """Raised when the storage provider rejects the access token."""


class ListingRateLimitedError(ListingError):
    """Raised when the storage provider throttles the listing request."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# --- Per-record errors ---

class StreamResolutionError(InfrastructureError):
    """Raised when a temporary stream URL cannot be obtained for a record."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class ProbeFailure(str, Enum):
    """Reason a probe declared a record unplayable."""

    AUDIO_ONLY = "audio_only"
    INVALID_DIMENSIONS = "invalid_dimensions"
    CODEC_UNSUPPORTED = "codec_unsupported"
    FORMAT_UNSUPPORTED = "format_unsupported"
    CANNOT_ACCESS = "cannot_access"
    UNKNOWN = "unknown"

    @property
    def message(self) -> str:
        return PROBE_FAILURE_MESSAGES[self]


PROBE_FAILURE_MESSAGES: dict[ProbeFailure, str] = {
    ProbeFailure.AUDIO_ONLY: "No video content - file contains only audio or is corrupted",
    ProbeFailure.INVALID_DIMENSIONS: "Invalid video dimensions",
    ProbeFailure.CODEC_UNSUPPORTED: "Video codec not supported",
    ProbeFailure.FORMAT_UNSUPPORTED: "Video format not supported",
    ProbeFailure.CANNOT_ACCESS: "Cannot access video",
    ProbeFailure.UNKNOWN: "Cannot load video",
}


class ProbeError(ApplicationError):
    """Raised when a probe reaches a definite incompatible verdict."""

    def __init__(self, failure: ProbeFailure, detail: Optional[str] = None) -> None:
        self.failure = failure
        self.detail = detail
        super().__init__(detail or failure.message)


class DurationUnavailable(ApplicationError):
    """Raised internally when no duration source yields a value."""


# --- Media probe backend errors ---

class MediaErrorCode(int, Enum):
    """Error codes reported by a media element, mirroring ``MediaError``."""

    ABORTED = 1
    NETWORK = 2
    DECODE = 3
    SRC_NOT_SUPPORTED = 4


class MediaElementError(InfrastructureError):
    """Raised by a media probe when loading or decoding fails."""

    def __init__(self, code: MediaErrorCode, message: str = "") -> None:
        super().__init__(message or code.name.lower())
        self.code = code


class PlaybackRejectedError(InfrastructureError):
    """Raised by a media probe when playback cannot be started."""


class ExternalToolError(InfrastructureError):
    """Raised when an external tool such as ffprobe or ffmpeg fails."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


# --- Settings ---

class SettingsError(DropreelError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""
