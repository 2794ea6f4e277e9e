"""Hashing utilities."""

from __future__ import annotations

import unicodedata

import xxhash


def normalise_remote_path(path: str) -> str:
    """Return the case-folded, NFC-normalised form of a remote *path*.

    Dropbox treats paths case-insensitively, so ``/Reel/A.mp4`` and
    ``/reel/a.MP4`` name the same file.
    """

    return unicodedata.normalize("NFC", path.strip()).casefold()


def record_id_for_path(path: str) -> str:
    """Return the surrogate record id aliasing *path*.

    The id is the XXH3 64-bit digest of the normalised path, so it is stable
    across listings and needs no lookup table.
    """

    return xxhash.xxh3_64_hexdigest(normalise_remote_path(path).encode("utf-8"))
