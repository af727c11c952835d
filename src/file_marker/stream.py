"""Seekable file facade with named position markers."""

from __future__ import annotations

import io
import logging
import os
from typing import IO, Any, Iterator, List, Optional, Union

from . import codec
from .config import MarkerConfig, default_config
from .errors import ClosedHandle, MarkerIOError, PositionUnavailable, ReservedName, SeekFailure, UnknownMarker
from .position import PositionToken
from .registry import LAST_MARKER, MarkerRegistry, MarkerTable, StreamIdentity, default_registry, identity_of

LOGGER = logging.getLogger("file marker.stream")

PathLike = Union[str, bytes, "os.PathLike[str]", int]


class MarkedStream:
    """A readable, seekable file that remembers named positions.

    Markers live in the stream's :class:`MarkerRegistry`, keyed by the
    stream's identity, so the underlying file object is used unmodified.
    ``LAST`` always holds the position from before the most recent
    :meth:`goto_marker`; jumping to ``LAST`` twice returns to where the
    first of those jumps started.

    Example::

        with MarkedStream("data.txt") as stream:
            stream.readline()
            stream.set_marker("body")
            stream.readline()
            stream.goto_marker("body")
    """

    def __init__(
        self,
        target: Optional[PathLike] = None,
        mode: str = "r",
        *,
        encoding: Optional[str] = None,
        newline: Optional[str] = None,
        registry: Optional[MarkerRegistry] = None,
        config: Optional[MarkerConfig] = None,
    ) -> None:
        self._config = config if config is not None else default_config()
        self._registry = registry if registry is not None else default_registry()
        self._handle: Optional[IO[Any]] = None
        self._closefd = True
        if target is not None:
            self.open(target, mode, encoding=encoding, newline=newline)

    @classmethod
    def adopt(
        cls,
        fileobj: IO[Any],
        *,
        closefd: bool = True,
        registry: Optional[MarkerRegistry] = None,
        config: Optional[MarkerConfig] = None,
    ) -> "MarkedStream":
        """Wrap an already open file object.

        With ``closefd=False`` closing the stream leaves ``fileobj`` open.
        """
        stream = cls(registry=registry, config=config)
        stream._attach(fileobj, closefd=closefd)
        return stream

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def open(
        self,
        target: PathLike,
        mode: str = "r",
        *,
        encoding: Optional[str] = None,
        newline: Optional[str] = None,
    ) -> "MarkedStream":
        """Open ``target`` and start a fresh marker table seeded with ``LAST``.

        A stream that is already open is closed first, discarding its markers.
        """
        if self._handle is not None:
            self.close()
        try:
            handle = io.open(target, mode, encoding=encoding, newline=newline)
        except OSError as exc:
            raise MarkerIOError(f"Unable to open {target!r} with mode {mode!r}: {exc}") from exc
        try:
            self._attach(handle, closefd=True)
        except PositionUnavailable:
            handle.close()
            raise
        return self

    def _attach(self, handle: IO[Any], *, closefd: bool) -> None:
        start = _tell(handle)
        self._handle = handle
        self._closefd = closefd
        identity = self._registry.register(self)
        self._registry.table(identity)[LAST_MARKER] = start
        LOGGER.debug("Opened %s as %s at %s", getattr(handle, "name", handle), identity, start)

    def close(self) -> None:
        """Close the underlying file and drop this stream's markers."""
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            if self._closefd:
                handle.close()
        finally:
            self._registry.discard(identity_of(self))
            LOGGER.debug("Closed %s", getattr(handle, "name", handle))

    @property
    def closed(self) -> bool:
        return self._handle is None or self._handle.closed

    @property
    def identity(self) -> Optional[StreamIdentity]:
        """Key of this stream's marker table, or ``None`` when closed."""
        identity = identity_of(self)
        return identity if self._handle is not None and identity in self._registry else None

    @property
    def registry(self) -> MarkerRegistry:
        return self._registry

    def __enter__(self) -> "MarkedStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Positions and markers
    # ------------------------------------------------------------------ #

    def current_position(self) -> PositionToken:
        """Token for the point the next read resumes from."""
        return _tell(self._require_handle())

    def restore(self, token: PositionToken) -> None:
        """Move the stream to a token from :meth:`current_position`."""
        handle = self._require_handle()
        try:
            handle.seek(token.cookie)
        except (OSError, ValueError, OverflowError) as exc:
            raise SeekFailure(f"Unable to restore position {token!r}: {exc}") from exc

    def set_marker(self, name: str) -> None:
        """Record the current position under ``name``, replacing any previous value."""
        if name == LAST_MARKER:
            raise ReservedName(f"{LAST_MARKER!r} is reserved and cannot be set directly")
        codec.validate_marker_name(name)
        table = self._table()
        table[name] = self.current_position()
        LOGGER.debug("Set marker %r at %s", name, table[name])

    def goto_marker(self, name: str) -> None:
        """Jump to ``name`` and remember the departure point as ``LAST``.

        ``LAST`` is only updated once the jump has succeeded; a failed jump
        leaves both the position and ``LAST`` as they were.
        """
        table = self._table()
        try:
            target = table[name]
        except KeyError:
            raise UnknownMarker(f"Unknown marker {name!r}") from None
        departure = self.current_position()
        try:
            self.restore(target)
        except SeekFailure:
            self._recover(departure)
            raise
        table[LAST_MARKER] = departure
        LOGGER.debug("Jumped to marker %r, LAST is %s", name, departure)

    def markers(self) -> List[str]:
        """Names of all markers on this stream, ``LAST`` included."""
        return sorted(self._table())

    def has_marker(self, name: str) -> bool:
        return name in self._table()

    def marker_position(self, name: str) -> PositionToken:
        try:
            return self._table()[name]
        except KeyError:
            raise UnknownMarker(f"Unknown marker {name!r}") from None

    def save_markers(self, path: codec.PathLike) -> int:
        """Persist every marker except ``LAST`` to ``path``."""
        return codec.save_markers(self._table(), path, encoding=self._config.persistence_encoding)

    def load_markers(self, path: codec.PathLike) -> int:
        """Merge markers saved by :meth:`save_markers` into this stream."""
        return codec.load_markers(self._table(), path, encoding=self._config.persistence_encoding)

    def _table(self) -> MarkerTable:
        self._require_handle()
        try:
            return self._registry.table(identity_of(self))
        except KeyError:
            raise ClosedHandle("Stream has no marker table; it is not open") from None

    def _require_handle(self) -> IO[Any]:
        if self._handle is None or self._handle.closed:
            raise ClosedHandle("Marker operation on a stream that is not open")
        return self._handle

    def _recover(self, departure: PositionToken) -> None:
        try:
            self.restore(departure)
        except SeekFailure as exc:
            LOGGER.warning("Could not return to %s after a failed jump: %s", departure, exc)

    # ------------------------------------------------------------------ #
    # Delegated file operations
    # ------------------------------------------------------------------ #

    def read(self, size: int = -1) -> Any:
        return self._require_handle().read(size)

    def readline(self, size: int = -1) -> Any:
        return self._require_handle().readline(size)

    def readlines(self, hint: int = -1) -> List[Any]:
        return self._require_handle().readlines(hint)

    def write(self, data: Any) -> int:
        return self._require_handle().write(data)

    def flush(self) -> None:
        self._require_handle().flush()

    def seekable(self) -> bool:
        return self._require_handle().seekable()

    def fileno(self) -> int:
        return self._require_handle().fileno()

    @property
    def name(self) -> Any:
        return getattr(self._require_handle(), "name", None)

    @property
    def mode(self) -> Optional[str]:
        return getattr(self._require_handle(), "mode", None)

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        # readline() rather than the file iterator: text files refuse tell()
        # while their own iterator is active.
        line = self.readline()
        if not line:
            raise StopIteration
        return line

    def __repr__(self) -> str:
        if self._handle is None:
            return "<MarkedStream closed>"
        return f"<MarkedStream name={getattr(self._handle, 'name', None)!r} identity={self.identity}>"


def _tell(handle: IO[Any]) -> PositionToken:
    try:
        return PositionToken.from_cookie(handle.tell())
    except (OSError, ValueError) as exc:
        raise PositionUnavailable(f"Unable to read stream position: {exc}") from exc


__all__ = ["MarkedStream"]
