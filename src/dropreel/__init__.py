"""Dropreel: turn a Dropbox folder into a verified, orderable video reel."""

__version__ = "0.1.0"

__all__ = ["__version__"]
