"""Default configuration values for Dropreel."""

from __future__ import annotations

from typing import Final

# ``DURATION_SENTINEL`` is what a record with an unknown length serialises to.
# Inside the pipeline an unknown duration is ``None``; the string only exists
# at the wire boundary.
DURATION_SENTINEL: Final[str] = "0:00"

# ---------------------------------------------------------------------------
# Media probe
# ---------------------------------------------------------------------------

PROBE_TIMEOUT_MS: Final[int] = 3000
# Number of extra attempts made after a probe times out before the fail-open
# verdict is accepted.
PROBE_TIMEOUT_RETRIES: Final[int] = 0
PROBE_MAX_CONCURRENCY: Final[int] = 8
PROBE_MIN_DIMENSION: Final[int] = 16
PROBE_MAX_DIMENSION: Final[int] = 8192
# Seek target for the decode check: ``min(PROBE_SEEK_CAP_SEC, duration * ratio)``.
PROBE_SEEK_CAP_SEC: Final[float] = 1.0
PROBE_SEEK_RATIO: Final[float] = 0.1

# ---------------------------------------------------------------------------
# Duration extraction
# ---------------------------------------------------------------------------

DURATION_TIMEOUT_MS: Final[int] = 3000
DURATION_BATCH_SIZE: Final[int] = 5
DURATION_BATCH_PAUSE_MS: Final[int] = 50
DURATION_SEARCH_MAX_DEPTH: Final[int] = 4

# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

# Delay between the optimistic render and the first background pass so the
# placeholder records are committed before any patch arrives.
RECONCILIATION_DELAY_MS: Final[int] = 100

# ---------------------------------------------------------------------------
# Dropbox
# ---------------------------------------------------------------------------

DROPBOX_API_BASE: Final[str] = "https://api.dropboxapi.com/2"
DROPBOX_HTTP_TIMEOUT_SEC: Final[float] = 30.0
DROPBOX_TOKEN_ENV: Final[str] = "DROPBOX_ACCESS_TOKEN"
THUMBNAIL_ENDPOINT: Final[str] = "/api/dropbox/thumbnail"

# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------

FFPROBE_BINARY: Final[str] = "ffprobe"
FFMPEG_BINARY: Final[str] = "ffmpeg"
