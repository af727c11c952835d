"""Exception taxonomy for marker operations."""

from __future__ import annotations


class MarkerError(Exception):
    """Base class for every error raised by :mod:`file_marker`."""


class ClosedHandle(MarkerError, ValueError):
    """A marker operation was attempted on a stream that is not open."""


class InvalidMarkerName(MarkerError, ValueError):
    """The marker name cannot be stored or persisted."""


class ReservedName(InvalidMarkerName):
    """The marker name is reserved for internal bookkeeping (``LAST``)."""


class UnknownMarker(MarkerError, KeyError):
    """No marker with the requested name exists for the stream."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class PositionUnavailable(MarkerError, OSError):
    """The underlying stream could not report its current position."""


class SeekFailure(MarkerError, OSError):
    """The underlying stream could not be restored to a position token."""


class MarkerIOError(MarkerError, OSError):
    """Opening the underlying stream or a persistence file failed."""


class FormatError(MarkerError, ValueError):
    """A persistence file is malformed."""


__all__ = [
    "ClosedHandle",
    "FormatError",
    "InvalidMarkerName",
    "MarkerError",
    "MarkerIOError",
    "PositionUnavailable",
    "ReservedName",
    "SeekFailure",
    "UnknownMarker",
]
