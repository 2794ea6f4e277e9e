import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from dropreel.application.dtos import ListingEntry, MediaMetadata  # noqa: E402
from dropreel.application.interfaces import (  # noqa: E402
    IListingProvider,
    IMediaProbe,
    IMediaProbeFactory,
    IStreamUrlResolver,
)
from dropreel.domain.models import VideoRecord  # noqa: E402
from dropreel.errors import StreamResolutionError  # noqa: E402

HANG = object()


class FakeProbe(IMediaProbe):
    """Scriptable media probe.

    ``metadata`` and ``decode`` are either a value to return, an exception to
    raise, ``HANG`` to never resolve, or an ``asyncio.Event`` to wait on before
    answering with the metadata.
    """

    def __init__(self, url: str, metadata=None, decode=None):
        self.url = url
        self.metadata = metadata if metadata is not None else MediaMetadata(1920, 1080, 12.0, "h264")
        self.decode = decode
        self.disposed = False
        self.seek_offsets: List[float] = []

    async def _resolve(self, outcome):
        if outcome is HANG:
            await asyncio.sleep(3600)
        if isinstance(outcome, asyncio.Event):
            await outcome.wait()
            return self.metadata
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def load_metadata(self) -> MediaMetadata:
        return await self._resolve(self.metadata)

    async def attempt_decode(self, seek_offset_seconds: float) -> MediaMetadata:
        self.seek_offsets.append(seek_offset_seconds)
        if self.decode is None:
            return self.metadata
        return await self._resolve(self.decode)

    async def dispose(self) -> None:
        self.disposed = True


class FakeProbeFactory(IMediaProbeFactory):
    """Hands out FakeProbes configured per URL (``default`` otherwise)."""

    def __init__(self, scripts: Optional[Dict[str, dict]] = None, default: Optional[dict] = None):
        self.scripts = scripts or {}
        self.default = default or {}
        self.opened: List[FakeProbe] = []

    def open(self, url: str) -> FakeProbe:
        probe = FakeProbe(url, **self.scripts.get(url, self.default))
        self.opened.append(probe)
        return probe

    def opened_urls(self) -> List[str]:
        return [probe.url for probe in self.opened]


class FakeListing(IListingProvider):
    def __init__(self, entries=None, error: Optional[Exception] = None):
        self.entries = list(entries or [])
        self.error = error
        self.calls: List[str] = []

    async def list(self, path: str) -> List[ListingEntry]:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return list(self.entries)


class FakeResolver(IStreamUrlResolver):
    def __init__(self, failing: Optional[set] = None, prefix: str = "https://stream.test"):
        self.failing = failing or set()
        self.prefix = prefix
        self.calls: List[str] = []

    async def resolve(self, path: str) -> str:
        self.calls.append(path)
        if path in self.failing:
            raise StreamResolutionError(path, "unavailable, retry later")
        return f"{self.prefix}{path}?raw=1&n={len(self.calls)}"


def make_entry(name: str, folder: str = "/Reel", **kwargs) -> ListingEntry:
    return ListingEntry(name=name, path=f"{folder}/{name}", **kwargs)


def make_record(name: str, folder: str = "/Reel", **kwargs) -> VideoRecord:
    record = VideoRecord.create(f"{folder}/{name}", name, provider_metadata=kwargs.pop("provider_metadata", None))
    if kwargs:
        record = replace(record, **kwargs)
    return record


@pytest.fixture
def probe_factory() -> FakeProbeFactory:
    return FakeProbeFactory()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()
