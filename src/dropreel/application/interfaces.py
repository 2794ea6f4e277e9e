from abc import ABC, abstractmethod
from typing import List

from dropreel.application.dtos import ListingEntry, MediaMetadata


class IListingProvider(ABC):
    """Interface for listing the video files of a remote folder."""

    @abstractmethod
    async def list(self, path: str) -> List[ListingEntry]:
        """
        Return the video descriptors directly inside *path*.
        Raises ListingNotFoundError, ListingUnauthorizedError or
        ListingRateLimitedError; any other transport failure is a ListingError.
        """
        pass


class IStreamUrlResolver(ABC):
    """Interface for obtaining time-limited playback URLs."""

    @abstractmethod
    async def resolve(self, path: str) -> str:
        """Return a streamable URL for *path* or raise StreamResolutionError."""
        pass


class IMediaProbe(ABC):
    """A headless media element opened against a single URL."""

    @abstractmethod
    async def load_metadata(self) -> MediaMetadata:
        """
        Load enough of the stream to know its dimensions and duration.
        Raises MediaElementError when the element reports an error.
        """
        pass

    @abstractmethod
    async def attempt_decode(self, seek_offset_seconds: float) -> MediaMetadata:
        """
        Seek to the offset and render a frame.
        Raises PlaybackRejectedError when playback cannot start and
        MediaElementError for element failures.
        """
        pass

    @abstractmethod
    async def dispose(self) -> None:
        """Release the element; safe to call more than once."""
        pass


class IMediaProbeFactory(ABC):
    """Creates one IMediaProbe per probe attempt."""

    @abstractmethod
    def open(self, url: str) -> IMediaProbe:
        pass
