"""Tests for the Dropbox API adapter using httpx.MockTransport."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from dropreel.errors import (
    ListingError,
    ListingNotFoundError,
    ListingRateLimitedError,
    ListingUnauthorizedError,
    StreamResolutionError,
)
from dropreel.infrastructure.dropbox_client import DropboxClient, playable_link


def _file(name, folder="/Reel", **extra):
    entry = {".tag": "file", "name": name, "path_display": f"{folder}/{name}", "size": 2048}
    entry.update(extra)
    return entry


async def _run(handler, method, *args):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = DropboxClient("secret-token", client=http, base_url="https://api.test/2")
        return await getattr(client, method)(*args)


def test_list_follows_cursor_and_keeps_only_videos():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append((request.url.path, body, request.headers["Authorization"]))
        if request.url.path.endswith("/files/list_folder"):
            return httpx.Response(200, json={
                "entries": [
                    _file("a.mp4", client_modified="2024-03-01T10:00:00Z",
                          media_info={".tag": "metadata", "metadata": {"duration": 5000}}),
                    {".tag": "folder", "name": "sub.mp4", "path_display": "/Reel/sub.mp4"},
                    _file("notes.txt"),
                ],
                "has_more": True,
                "cursor": "c1",
            })
        return httpx.Response(200, json={"entries": [_file("b.MOV")], "has_more": False})

    entries = asyncio.run(_run(handler, "list", "/Reel/"))

    assert [entry.name for entry in entries] == ["a.mp4", "b.MOV"]
    a = entries[0]
    assert a.path == "/Reel/a.mp4"
    assert a.size == 2048
    assert a.modified_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert a.provider_metadata == {".tag": "metadata", "metadata": {"duration": 5000}}
    assert entries[1].provider_metadata is None

    first, second = requests
    assert first[0] == "/2/files/list_folder"
    assert first[1] == {"path": "/Reel", "include_media_info": True, "recursive": False}
    assert first[2] == "Bearer secret-token"
    assert second[0] == "/2/files/list_folder/continue"
    assert second[1] == {"cursor": "c1"}


def test_root_folder_is_sent_as_empty_path():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content)["path"])
        return httpx.Response(200, json={"entries": [], "has_more": False})

    assert asyncio.run(_run(handler, "list", "/")) == []
    assert seen == [""]


@pytest.mark.parametrize(
    "status, error_type, fragment",
    [
        (401, ListingUnauthorizedError, "Please reconnect Dropbox"),
        (409, ListingNotFoundError, "Folder not found: /Missing"),
        (500, ListingError, "(500)"),
    ],
)
def test_listing_status_errors(status, error_type, fragment):
    def handler(request):
        return httpx.Response(status, json={"error_summary": "path/not_found/"})

    with pytest.raises(error_type) as excinfo:
        asyncio.run(_run(handler, "list", "/Missing"))
    assert fragment in str(excinfo.value)


def test_rate_limit_carries_retry_after():
    def handler(request):
        return httpx.Response(429, headers={"Retry-After": "7"}, json={"error_summary": "too_many_requests/"})

    with pytest.raises(ListingRateLimitedError) as excinfo:
        asyncio.run(_run(handler, "list", "/Reel"))
    assert excinfo.value.retry_after == 7.0
    assert "Retry after 7s" in str(excinfo.value)


@pytest.mark.parametrize("response", [httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json=[])])
def test_malformed_listing_body_is_a_listing_error(response):
    with pytest.raises(ListingError, match="Dropbox returned an un"):
        asyncio.run(_run(lambda request: response, "list", "/Reel"))


def test_rate_limit_retry_after_ignores_non_object_body():
    def handler(request):
        return httpx.Response(429, json=["too_many_requests"])

    with pytest.raises(ListingRateLimitedError) as excinfo:
        asyncio.run(_run(handler, "list", "/Reel"))
    assert excinfo.value.retry_after is None


def test_transport_failure_is_a_listing_error():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(ListingError, match="Failed to reach Dropbox"):
        asyncio.run(_run(handler, "list", "/Reel"))


def test_resolve_returns_streaming_link():
    def handler(request):
        assert request.url.path == "/2/files/get_temporary_link"
        assert json.loads(request.content) == {"path": "/Reel/a.mp4"}
        return httpx.Response(200, json={"link": "https://dl.test/a.mp4?dl=1"})

    assert asyncio.run(_run(handler, "resolve", "/Reel/a.mp4")) == "https://dl.test/a.mp4?raw=1"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(409, json={"error_summary": "path/not_found/"}),
        httpx.Response(200, json={}),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json=["https://dl.test/a.mp4"]),
    ],
)
def test_resolve_failures(response):
    with pytest.raises(StreamResolutionError) as excinfo:
        asyncio.run(_run(lambda request: response, "resolve", "/Reel/a.mp4"))
    assert excinfo.value.path == "/Reel/a.mp4"


@pytest.mark.parametrize(
    "link, expected",
    [
        ("https://dl.test/a.mp4", "https://dl.test/a.mp4?raw=1"),
        ("https://dl.test/a.mp4?x=1", "https://dl.test/a.mp4?x=1&raw=1"),
        ("https://dl.test/a.mp4?x=1&dl=1", "https://dl.test/a.mp4?x=1&raw=1"),
        ("https://dl.test/a.mp4?raw=1", "https://dl.test/a.mp4?raw=1"),
    ],
)
def test_playable_link(link, expected):
    assert playable_link(link) == expected


def test_injected_client_is_not_closed():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    async def scenario():
        async with DropboxClient("t", client=http):
            pass
        closed = http.is_closed
        await http.aclose()
        return closed

    assert asyncio.run(scenario()) is False
