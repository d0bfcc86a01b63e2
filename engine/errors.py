"""
Fatal error taxonomy for a playback session.

Every error here terminates the process before (or instead of) playback.
Nothing is retried: probing is local and deterministic, and a missing output
device will not appear by waiting for it.
"""

from __future__ import annotations


class PlayerError(Exception):
    """Base class for all user-visible playback failures."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class FileAccessError(PlayerError):
    """Path is missing, not a regular file, or unreadable."""


class UnknownFormatError(PlayerError):
    """Content sniffing found no known type, or a non-audio type."""


class DurationUnavailableError(PlayerError):
    """The container reports no usable duration for its audio stream."""


class PlaybackInitError(PlayerError):
    """The output device or the decoder could not be opened."""
