"""Dropbox HTTP API adapter for folder listings and temporary stream links."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from dateutil import parser

from dropreel.application.dtos import ListingEntry
from dropreel.application.interfaces import IListingProvider, IStreamUrlResolver
from dropreel.config import DROPBOX_API_BASE, DROPBOX_HTTP_TIMEOUT_SEC
from dropreel.errors import (
    ListingError,
    ListingNotFoundError,
    ListingRateLimitedError,
    ListingUnauthorizedError,
    StreamResolutionError,
)
from dropreel.media_classifier import is_video_name
from dropreel.utils.pathutils import api_folder_path

logger = logging.getLogger(__name__)


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parser.isoparse(value)
    except (ValueError, TypeError):
        return None


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        try:
            payload = response.json()
        except ValueError:
            return None
        error = payload.get("error") if isinstance(payload, dict) else None
        value = error.get("retry_after") if isinstance(error, dict) else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _error_summary(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict):
        return str(payload.get("error_summary") or payload.get("error") or "")
    return str(payload)


def playable_link(link: str) -> str:
    """Rewrite a temporary link so it streams instead of downloading."""
    if "?dl=1" in link:
        return link.replace("?dl=1", "?raw=1")
    if "&dl=1" in link:
        return link.replace("&dl=1", "&raw=1")
    if "raw=1" in link:
        return link
    separator = "&" if "?" in link else "?"
    return f"{link}{separator}raw=1"


class DropboxClient(IListingProvider, IStreamUrlResolver):
    """Lists folders and resolves stream links through the Dropbox v2 API.

    The HTTP client can be injected, which is how tests route requests to an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = DROPBOX_API_BASE,
        timeout: float = DROPBOX_HTTP_TIMEOUT_SEC,
    ) -> None:
        self._token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._base_url = base_url.rstrip("/")

    async def __aenter__(self) -> DropboxClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self._client.post(
            f"{self._base_url}/{endpoint}",
            json=payload,
            headers={"Authorization": f"Bearer {self._token}"},
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    async def list(self, path: str) -> List[ListingEntry]:
        folder = api_folder_path(path)
        payload: Dict[str, Any] = {"path": folder, "include_media_info": True, "recursive": False}
        endpoint = "files/list_folder"
        entries: List[ListingEntry] = []

        while True:
            try:
                response = await self._post(endpoint, payload)
            except httpx.HTTPError as exc:
                raise ListingError(f"Failed to reach Dropbox: {exc}") from exc
            self._raise_for_listing(response, path)

            try:
                data = response.json()
            except ValueError as exc:
                raise ListingError("Dropbox returned an unreadable folder listing") from exc
            if not isinstance(data, dict):
                raise ListingError("Dropbox returned an unexpected folder listing")
            for entry in data.get("entries") or []:
                if entry.get(".tag") != "file" or not is_video_name(entry.get("name", "")):
                    continue
                entries.append(self._to_entry(entry))

            if not data.get("has_more"):
                break
            endpoint = "files/list_folder/continue"
            payload = {"cursor": data.get("cursor")}

        logger.info("Found %d video(s) in %s", len(entries), path or "/")
        return entries

    @staticmethod
    def _to_entry(entry: Dict[str, Any]) -> ListingEntry:
        path = entry.get("path_display") or entry.get("path_lower") or ""
        size = entry.get("size")
        return ListingEntry(
            name=entry.get("name") or path.rsplit("/", 1)[-1],
            path=path,
            size=int(size) if isinstance(size, int) else None,
            provider_metadata=entry.get("media_info") or None,
            modified_at=_parse_dt(entry.get("client_modified")),
        )

    @staticmethod
    def _raise_for_listing(response: httpx.Response, path: str) -> None:
        status = response.status_code
        if status < 400:
            return
        summary = _error_summary(response)
        logger.warning("Dropbox listing of %s failed with %s: %s", path, status, summary)
        if status == 401:
            raise ListingUnauthorizedError("Dropbox token expired or invalid. Please reconnect Dropbox.")
        if status == 409:
            raise ListingNotFoundError(
                f"Folder not found: {path}. Please check that the path exists in your Dropbox account."
            )
        if status == 429:
            retry_after = _retry_after(response)
            hint = f" Retry after {retry_after:g}s." if retry_after is not None else ""
            raise ListingRateLimitedError(f"Dropbox rate limit reached.{hint}", retry_after=retry_after)
        raise ListingError(f"Failed to fetch videos from Dropbox ({status}): {summary or 'unknown error'}")

    # ------------------------------------------------------------------
    # Stream links
    # ------------------------------------------------------------------
    async def resolve(self, path: str) -> str:
        try:
            response = await self._post("files/get_temporary_link", {"path": path})
        except httpx.HTTPError as exc:
            raise StreamResolutionError(path, f"Failed to reach Dropbox: {exc}") from exc
        if response.status_code >= 400:
            raise StreamResolutionError(
                path,
                f"Temporary link unavailable ({response.status_code}): {_error_summary(response)}",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise StreamResolutionError(path, "Dropbox returned an unreadable temporary link response") from exc
        link = payload.get("link") if isinstance(payload, dict) else None
        if not link:
            raise StreamResolutionError(path, "Dropbox returned no temporary link")
        return playable_link(link)
