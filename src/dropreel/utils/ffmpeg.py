"""Asynchronous wrappers around the ``ffmpeg`` toolchain."""

from __future__ import annotations

import asyncio
import json
import os
import re
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..config import FFMPEG_BINARY, FFPROBE_BINARY
from ..errors import ExternalToolError, MediaErrorCode
from .logging import get_logger

LOGGER = get_logger(__name__)

_FFMPEG_LOG_LEVEL = "error"

_NETWORK_PATTERNS = re.compile(
    r"connection (?:refused|reset|timed out)|network is unreachable|"
    r"failed to resolve|name or service not known|temporary failure in name resolution|"
    r"server returned (?:4\d\d|5\d\d)|http error|end of file|i/o error|"
    r"input/output error|timed out",
    re.IGNORECASE,
)
_DECODE_PATTERNS = re.compile(
    r"decoder .{0,40}?not found|error while decoding|could not find codec parameters|"
    r"invalid nal unit|decode_slice|no decoder|unsupported codec",
    re.IGNORECASE,
)
_FORMAT_PATTERNS = re.compile(
    r"invalid data found when processing input|moov atom not found|"
    r"unknown format|could not find tag for codec|not supported",
    re.IGNORECASE,
)
_ABORT_PATTERNS = re.compile(r"immediate exit requested|exiting normally, received signal", re.IGNORECASE)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", "ignore").strip()


async def _run_command(command: Sequence[str]) -> CommandResult:
    """Execute *command* and return its exit status and captured output.

    The child process is killed when the awaiting task is cancelled, which is
    how probe timeouts release the subprocess.
    """

    kwargs: Dict[str, Any] = {}
    if os.name == "nt":
        kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **kwargs,
        )
    except FileNotFoundError as exc:  # pragma: no cover - depends on environment
        raise ExternalToolError(f"{command[0]} executable not found on PATH") from exc

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise
    return CommandResult(process.returncode or 0, stdout or b"", stderr or b"")


def classify_media_error(stderr: str) -> MediaErrorCode:
    """Map ffmpeg diagnostics to the media-element error code they resemble."""

    if _ABORT_PATTERNS.search(stderr):
        return MediaErrorCode.ABORTED
    if _NETWORK_PATTERNS.search(stderr):
        return MediaErrorCode.NETWORK
    if _DECODE_PATTERNS.search(stderr):
        return MediaErrorCode.DECODE
    if _FORMAT_PATTERNS.search(stderr):
        return MediaErrorCode.SRC_NOT_SUPPORTED
    return MediaErrorCode.SRC_NOT_SUPPORTED


async def probe_media(source: str, *, binary: str = FFPROBE_BINARY) -> Dict[str, Any]:
    """Return ffprobe metadata for *source* (a local path or an HTTP URL).

    The JSON structure mirrors ffprobe's ``show_format`` and ``show_streams``
    output. ``ExternalToolError`` is raised when the toolchain is unavailable or
    returns an error; its ``stderr`` attribute carries the diagnostics.
    """

    command = [
        binary,
        "-hide_banner",
        "-loglevel",
        _FFMPEG_LOG_LEVEL,
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        source,
    ]

    result = await _run_command(command)
    if result.returncode != 0 or not result.stdout:
        stderr = result.stderr_text
        raise ExternalToolError(
            f"ffprobe failed to inspect {source}: {stderr or 'unknown error'}",
            stderr=stderr,
        )
    try:
        return json.loads(result.stdout.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise ExternalToolError("ffprobe returned invalid JSON output") from exc


async def decode_frame(
    source: str,
    *,
    at: Optional[float] = None,
    binary: str = FFMPEG_BINARY,
) -> None:
    """Decode a single video frame of *source* and discard it.

    Used as the "seek and render" half of a playability check: success means
    the stream can be positioned and its video codec decoded.
    """

    command: list[str] = [
        binary,
        "-hide_banner",
        "-loglevel",
        _FFMPEG_LOG_LEVEL,
        "-nostdin",
    ]
    if at is not None and at > 0:
        command += ["-ss", f"{at:.3f}"]
    command += [
        "-i",
        source,
        "-an",
        "-frames:v",
        "1",
        "-f",
        "null",
        "-",
    ]

    result = await _run_command(command)
    if result.returncode != 0:
        stderr = result.stderr_text
        raise ExternalToolError(
            f"ffmpeg failed to decode a frame from {source}: {stderr or 'unknown error'}",
            stderr=stderr,
        )
    if result.stderr:
        LOGGER.debug("ffmpeg decode of %s reported: %s", source, result.stderr_text)


def summarise_streams(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce an ffprobe payload to the first video stream's essentials.

    Returns ``width``/``height`` (``0`` when there is no video stream),
    ``codec`` and ``duration`` in seconds (``None`` when unknown).
    """

    streams = payload.get("streams") or []
    video = next(
        (stream for stream in streams if isinstance(stream, dict) and stream.get("codec_type") == "video"),
        None,
    )
    width = height = 0
    codec: Optional[str] = None
    duration: Optional[float] = None
    if video is not None:
        width = _as_int(video.get("width"))
        height = _as_int(video.get("height"))
        codec = video.get("codec_name")
        duration = _as_float(video.get("duration"))
    if duration is None:
        duration = _as_float((payload.get("format") or {}).get("duration"))
    return {"width": width, "height": height, "codec": codec, "duration": duration}


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
