"""File-type and codec heuristics shared by the listing and the probe engine."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Any, Iterator, Optional

# Extensions the listing accepts as video files at all.
VIDEO_EXTENSIONS: frozenset[str] = frozenset({
    ".mp4",
    ".mov",
    ".m4v",
    ".avi",
    ".mkv",
    ".webm",
})

# Containers browsers can open natively.  QuickTime files are accepted here
# because most of them carry H.264; ProRes and HEVC variants are caught by the
# codec token scan instead.
BROWSER_PLAYABLE_EXTENSIONS: frozenset[str] = frozenset({
    ".mp4",
    ".m4v",
    ".mov",
    ".webm",
    ".ogv",
})

NON_PLAYABLE_EXTENSIONS: frozenset[str] = frozenset({
    ".avi",
    ".mkv",
    ".wmv",
    ".flv",
    ".mxf",
    ".3gp",
    ".mpg",
    ".mpeg",
    ".ts",
    ".r3d",
    ".braw",
})

# Codec families a browser cannot be relied upon to decode.  Keys are the
# display names used in compatibility messages.
INCOMPATIBLE_CODEC_PATTERNS: dict[str, re.Pattern[str]] = {
    "ProRes": re.compile(r"\b(?:prores|apcn|apch|apcs|apco|ap4h)\b", re.IGNORECASE),
    "HEVC": re.compile(r"\b(?:hevc|h\.?265|hvc1|hev1|x265)\b", re.IGNORECASE),
    "AV1": re.compile(r"\b(?:av1|av01)\b", re.IGNORECASE),
    "VP9": re.compile(r"\b(?:vp9|vp09)\b", re.IGNORECASE),
    "Cinepak": re.compile(r"\b(?:cinepak|cvid)\b", re.IGNORECASE),
    "MJPEG": re.compile(r"\b(?:mjpeg|mjpg|motion[ -]?jpeg)\b", re.IGNORECASE),
}

# Codec names reported by ffprobe that the playback check accepts.
BROWSER_PLAYABLE_CODECS: frozenset[str] = frozenset({
    "h264",
    "vp8",
    "theora",
})


def suffix_of(name: str) -> str:
    """Return the lower-case extension of *name* (``""`` when absent)."""

    return PurePosixPath(name).suffix.lower()


def is_video_name(name: str) -> bool:
    """Return ``True`` when *name* carries one of :data:`VIDEO_EXTENSIONS`."""

    return suffix_of(name) in VIDEO_EXTENSIONS


def _iter_strings(value: Any, *, depth: int = 0, max_depth: int = 8) -> Iterator[str]:
    if depth > max_depth:
        return
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for key, item in value.items():
            if isinstance(key, str):
                yield key
            yield from _iter_strings(item, depth=depth + 1, max_depth=max_depth)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item, depth=depth + 1, max_depth=max_depth)


def find_incompatible_codec(metadata: Any) -> Optional[str]:
    """Return the display name of the first incompatible codec in *metadata*.

    Every string key and value of the (possibly nested) provider metadata is
    scanned, since providers place codec descriptions in arbitrary fields.
    """

    if not metadata:
        return None
    for text in _iter_strings(metadata):
        for label, pattern in INCOMPATIBLE_CODEC_PATTERNS.items():
            if pattern.search(text):
                return label
    return None


def extension_verdict(name: str) -> Optional[bool]:
    """Classify *name* by extension.

    Returns ``True`` for browser-playable containers, ``False`` for known
    non-playable ones, and ``None`` when the extension says nothing.
    """

    suffix = suffix_of(name)
    if suffix in BROWSER_PLAYABLE_EXTENSIONS:
        return True
    if suffix in NON_PLAYABLE_EXTENSIONS:
        return False
    return None
