"""Duration formatting and provider-metadata duration lookups."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from ..config import DURATION_SEARCH_MAX_DEPTH, DURATION_SENTINEL


def _positive_number(value: Any) -> Optional[float]:
    # ``bool`` is an ``int`` subclass; a ``True`` flag is not a duration.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value) or value <= 0:
        return None
    return float(value)


def normalise_seconds(value: Any) -> Optional[int]:
    """Return *value* floored to whole seconds, or ``None`` when unusable."""

    number = _positive_number(value)
    if number is None:
        return None
    seconds = int(math.floor(number))
    return seconds if seconds > 0 else None


def format_duration(seconds: Optional[float]) -> str:
    """Format *seconds* as ``m:ss``; unknown or non-positive values map to ``0:00``."""

    whole = normalise_seconds(seconds)
    if whole is None:
        return DURATION_SENTINEL
    minutes, secs = divmod(whole, 60)
    return f"{minutes}:{secs:02d}"


def parse_duration(text: Optional[str]) -> Optional[int]:
    """Parse ``m:ss`` (or ``h:mm:ss``) back to seconds.

    The sentinel, blanks and malformed strings return ``None``.
    """

    if not text or not isinstance(text, str):
        return None
    candidate = text.strip()
    if not candidate or candidate == DURATION_SENTINEL:
        return None
    parts = candidate.split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return None
    if any(number < 0 for number in numbers) or any(number >= 60 for number in numbers[1:]):
        return None
    total = 0
    for number in numbers:
        total = total * 60 + number
    return total or None


def provider_duration_fast(metadata: Optional[Mapping[str, Any]]) -> Optional[int]:
    """Read the top-level ``duration`` field (milliseconds) of *metadata*."""

    if not isinstance(metadata, Mapping):
        return None
    millis = _positive_number(metadata.get("duration"))
    if millis is None:
        return None
    return normalise_seconds(millis / 1000.0)


def search_duration(
    metadata: Any,
    *,
    max_depth: int = DURATION_SEARCH_MAX_DEPTH,
) -> Optional[float]:
    """Depth-first search for a key literally named ``duration``.

    The root mapping is depth 0 and the search descends at most *max_depth*
    levels, so a ``duration`` key inside a mapping nested ``max_depth`` levels
    down is still found while anything deeper is ignored.  Mappings already on
    the current path are skipped, which keeps self-referencing structures from
    recursing.  The first positive numeric match is returned unconverted.
    """

    def _walk(node: Any, depth: int, trail: frozenset[int]) -> Optional[float]:
        if isinstance(node, Mapping):
            children = list(node.items())
        elif isinstance(node, (list, tuple)):
            children = [(None, item) for item in node]
        else:
            return None
        for key, value in children:
            if key == "duration":
                found = _positive_number(value)
                if found is not None:
                    return found
            if (
                isinstance(value, (Mapping, list, tuple))
                and depth < max_depth
                and id(value) not in trail
            ):
                found = _walk(value, depth + 1, trail | {id(value)})
                if found is not None:
                    return found
        return None

    if not isinstance(metadata, (Mapping, list, tuple)):
        return None
    return _walk(metadata, 0, frozenset({id(metadata)}))


def provider_duration_deep(metadata: Any) -> Optional[int]:
    """Return whole seconds for a ``duration`` (milliseconds) found by :func:`search_duration`."""

    millis = search_duration(metadata)
    if millis is None:
        return None
    return normalise_seconds(millis / 1000.0)
