"""Media probe backed by the ffprobe and ffmpeg command line tools."""

from __future__ import annotations

from typing import Optional

from dropreel.application.dtos import MediaMetadata
from dropreel.application.interfaces import IMediaProbe, IMediaProbeFactory
from dropreel.config import FFMPEG_BINARY, FFPROBE_BINARY
from dropreel.errors import (
    ExternalToolError,
    MediaElementError,
    MediaErrorCode,
    PlaybackRejectedError,
)
from dropreel.media_classifier import BROWSER_PLAYABLE_CODECS
from dropreel.utils.ffmpeg import classify_media_error, decode_frame, probe_media, summarise_streams
from dropreel.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _element_error(exc: ExternalToolError) -> MediaElementError:
    return MediaElementError(classify_media_error(exc.stderr), str(exc))


class FFprobeMediaProbe(IMediaProbe):
    """Headless stand-in for a ``<video>`` element.

    ``load_metadata`` runs ffprobe against the URL; ``attempt_decode`` refuses
    codecs a browser would not start and otherwise decodes one frame at the
    requested offset with ffmpeg.  A tool that fails without diagnostics (for
    example because it is not installed) surfaces as ``ExternalToolError``.
    """

    def __init__(
        self,
        url: str,
        *,
        ffprobe_binary: str = FFPROBE_BINARY,
        ffmpeg_binary: str = FFMPEG_BINARY,
    ) -> None:
        self._url = url
        self._ffprobe = ffprobe_binary
        self._ffmpeg = ffmpeg_binary
        self._metadata: Optional[MediaMetadata] = None
        self._disposed = False

    def _ensure_open(self) -> None:
        if self._disposed:
            raise MediaElementError(MediaErrorCode.ABORTED, "probe already disposed")

    async def load_metadata(self) -> MediaMetadata:
        self._ensure_open()
        try:
            payload = await probe_media(self._url, binary=self._ffprobe)
        except ExternalToolError as exc:
            if not exc.stderr:
                raise
            raise _element_error(exc) from exc

        summary = summarise_streams(payload)
        self._metadata = MediaMetadata(
            width=summary["width"],
            height=summary["height"],
            duration=summary["duration"],
            codec=summary["codec"],
        )
        LOGGER.debug("Metadata for %s: %s", self._url, self._metadata)
        return self._metadata

    async def attempt_decode(self, seek_offset_seconds: float) -> MediaMetadata:
        metadata = self._metadata or await self.load_metadata()
        self._ensure_open()

        codec = (metadata.codec or "").lower()
        if codec not in BROWSER_PLAYABLE_CODECS:
            raise PlaybackRejectedError(f"{codec or 'unknown'} video cannot be played back")

        try:
            await decode_frame(self._url, at=seek_offset_seconds, binary=self._ffmpeg)
        except ExternalToolError as exc:
            if not exc.stderr:
                raise
            raise _element_error(exc) from exc
        return metadata

    async def dispose(self) -> None:
        self._disposed = True
        self._metadata = None


class FFprobeMediaProbeFactory(IMediaProbeFactory):
    def __init__(self, *, ffprobe_binary: str = FFPROBE_BINARY, ffmpeg_binary: str = FFMPEG_BINARY) -> None:
        self._ffprobe = ffprobe_binary
        self._ffmpeg = ffmpeg_binary

    def open(self, url: str) -> FFprobeMediaProbe:
        return FFprobeMediaProbe(url, ffprobe_binary=self._ffprobe, ffmpeg_binary=self._ffmpeg)
