from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..config import DURATION_SENTINEL
from ..utils.duration import format_duration, normalise_seconds, parse_duration
from ..utils.hashutils import record_id_for_path
from ..utils.pathutils import build_thumbnail_url


class Compatibility(str, Enum):
    """Tri-state playability verdict of a record."""

    UNKNOWN = "unknown"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"

    @classmethod
    def from_flag(cls, flag: Optional[bool]) -> Compatibility:
        if flag is None:
            return cls.UNKNOWN
        return cls.COMPATIBLE if flag else cls.INCOMPATIBLE

    @property
    def flag(self) -> Optional[bool]:
        if self is Compatibility.UNKNOWN:
            return None
        return self is Compatibility.COMPATIBLE


class Collection(str, Enum):
    """The two panels a record can live in."""

    SOURCE = "yourVideos"
    TARGET = "selects"


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def to_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional[Dimensions]:
        if not isinstance(data, Mapping):
            return None
        try:
            return cls(int(data["width"]), int(data["height"]))
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class VideoRecord:
    """One remote video file in the catalog.

    Records are immutable; every change goes through one of the ``with_*``
    helpers and yields a new value that replaces the old one in the catalog.
    """

    id: str
    path: str
    name: str
    thumbnail_url: str
    size: Optional[int] = None
    provider_metadata: Optional[Dict[str, Any]] = field(default=None, compare=False)
    modified_at: Optional[datetime] = None
    stream_url: str = ""
    duration_seconds: Optional[int] = None
    compatibility: Compatibility = Compatibility.UNKNOWN
    compatibility_error: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    checked_with_browser: bool = False

    @classmethod
    def create(
        cls,
        path: str,
        name: str,
        *,
        size: Optional[int] = None,
        provider_metadata: Optional[Dict[str, Any]] = None,
        modified_at: Optional[datetime] = None,
        thumbnail_endpoint: Optional[str] = None,
        duration_seconds: Optional[int] = None,
    ) -> VideoRecord:
        thumbnail = (
            build_thumbnail_url(path, thumbnail_endpoint)
            if thumbnail_endpoint
            else build_thumbnail_url(path)
        )
        return cls(
            id=record_id_for_path(path),
            path=path,
            name=name,
            thumbnail_url=thumbnail,
            size=size,
            provider_metadata=provider_metadata,
            modified_at=modified_at,
            duration_seconds=normalise_seconds(duration_seconds),
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    @property
    def is_compatible(self) -> Optional[bool]:
        return self.compatibility.flag

    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)

    @property
    def has_duration(self) -> bool:
        return self.duration_seconds is not None

    @property
    def has_stream_url(self) -> bool:
        return bool(self.stream_url and self.stream_url.strip())

    # ------------------------------------------------------------------
    # Patches
    # ------------------------------------------------------------------
    def with_stream_url(self, url: str) -> VideoRecord:
        return replace(self, stream_url=url)

    def with_duration(self, seconds: Optional[float]) -> VideoRecord:
        whole = normalise_seconds(seconds)
        if whole is None:
            return self
        return replace(self, duration_seconds=whole)

    def with_probe_result(
        self,
        is_compatible: bool,
        error: Optional[str] = None,
        *,
        dimensions: Optional[Dimensions] = None,
        checked_with_browser: bool = True,
    ) -> VideoRecord:
        """Return a copy carrying a definite verdict.

        A record that has been through a full probe keeps
        ``checked_with_browser`` even if a later, weaker verdict arrives.
        """

        if not isinstance(is_compatible, bool):
            raise ValueError("a verdict must be True or False")
        return replace(
            self,
            compatibility=Compatibility.from_flag(is_compatible),
            compatibility_error=None if is_compatible else (error or "Video format not supported"),
            dimensions=dimensions or self.dimensions,
            checked_with_browser=self.checked_with_browser or checked_with_browser,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "streamUrl": self.stream_url,
            "thumbnailUrl": self.thumbnail_url,
            "mediaInfo": self.provider_metadata,
            "isCompatible": self.is_compatible,
            "compatibilityError": self.compatibility_error,
            "dimensions": self.dimensions.to_dict() if self.dimensions else None,
            "checkedWithBrowser": self.checked_with_browser,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VideoRecord:
        path = str(data["path"])
        is_compatible = data.get("isCompatible")
        checked = bool(data.get("checkedWithBrowser", False))
        compatibility = Compatibility.from_flag(is_compatible if isinstance(is_compatible, bool) else None)
        if checked and compatibility is Compatibility.UNKNOWN:
            # A full probe always leaves a verdict; treat the flag as stale.
            checked = False
        size = data.get("size")
        return cls(
            id=record_id_for_path(path),
            path=path,
            name=str(data.get("name") or path.rsplit("/", 1)[-1]),
            thumbnail_url=str(data.get("thumbnailUrl") or build_thumbnail_url(path)),
            size=int(size) if isinstance(size, (int, float)) and not isinstance(size, bool) else None,
            provider_metadata=data.get("mediaInfo") or None,
            stream_url=str(data.get("streamUrl") or ""),
            duration_seconds=parse_duration(data.get("duration")),
            compatibility=compatibility,
            compatibility_error=data.get("compatibilityError") if compatibility is Compatibility.INCOMPATIBLE else None,
            dimensions=Dimensions.from_dict(data.get("dimensions")),
            checked_with_browser=checked,
        )


__all__ = [
    "Collection",
    "Compatibility",
    "DURATION_SENTINEL",
    "Dimensions",
    "VideoRecord",
]
