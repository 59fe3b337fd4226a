"""Exception hierarchy for trackerlink.

Torrent descriptor errors are fatal to session start. Tracker errors are
recovered by the announce coordinator, which moves on to the next tracker.
"""

from typing import Any, Optional


class TrackerLinkError(Exception):
    """Base exception for all trackerlink errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class TorrentError(TrackerLinkError):
    """Torrent file loading errors."""


class TorrentIOError(TorrentError, OSError):
    """The torrent file could not be opened or read."""


class SchemaError(TorrentError):
    """Well-formed torrent missing a required key."""


class DecodeError(TrackerLinkError):
    """Malformed bencoded input or a value of the wrong type."""


class TrackerError(TrackerLinkError):
    """Tracker communication errors."""


class TransportError(TrackerError):
    """The announce request failed or returned a non-success status."""


class TrackerFailure(TrackerError):
    """The tracker was reached but sent back a failure reason."""

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(f"Tracker failure: {reason}", details)
        self.reason = reason


class MalformedPeerListError(TrackerError):
    """Compact peer string whose length is not a multiple of 6."""


class NoAvailablePortError(TrackerLinkError, OSError):
    """No port in the listening range could be bound."""
