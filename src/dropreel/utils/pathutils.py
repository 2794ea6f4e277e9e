"""Helpers for turning user input into Dropbox API paths and derived URLs."""

from __future__ import annotations

from urllib.parse import quote, urlsplit

from ..config import THUMBNAIL_ENDPOINT


def format_dropbox_path(path: str) -> str:
    """Ensure *path* has a leading slash and no trailing slash."""

    if not path:
        return ""
    trimmed = path.rstrip("/")
    if not trimmed:
        return "/"
    return trimmed if trimmed.startswith("/") else f"/{trimmed}"


def extract_dropbox_path(value: str) -> str:
    """Return the folder path addressed by *value*.

    Accepts plain paths as well as the URL shapes users paste from the
    Dropbox web UI::

        https://www.dropbox.com/home/Client/Footage   -> /Client/Footage
        https://www.dropbox.com/scl/fo/<id>/Footage   -> /Footage
        https://www.dropbox.com/sh/<id>/Footage       -> /Footage
    """

    if not value:
        return ""
    candidate = value.strip()
    if "dropbox.com" not in candidate:
        return format_dropbox_path(candidate)

    try:
        pathname = urlsplit(candidate).path
    except ValueError:
        return format_dropbox_path(candidate)

    if pathname.startswith("/home/"):
        return format_dropbox_path(pathname[len("/home"):])

    parts = pathname.split("/")
    if pathname.startswith("/scl/fo/") and len(parts) > 4:
        return format_dropbox_path("/".join(parts[4:]))
    if pathname.startswith("/sh/") and len(parts) > 3:
        return format_dropbox_path("/".join(parts[3:]))
    return format_dropbox_path(pathname)


def api_folder_path(path: str) -> str:
    """Return the form the Dropbox API expects; the root is the empty string."""

    formatted = format_dropbox_path(path)
    return "" if formatted in ("", "/") else formatted


def build_thumbnail_url(path: str, endpoint: str = THUMBNAIL_ENDPOINT) -> str:
    """Return the thumbnail URL for *path*; no network round trip is involved."""

    return f"{endpoint}?path={quote(path, safe='')}"
