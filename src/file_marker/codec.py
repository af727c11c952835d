"""Line-oriented persistence of marker tables.

Each marker except ``LAST`` is stored as two lines, the name followed by
the hex encoding of its position token::

    line2
    04

There is no header or trailer. Loading parses the whole file before
touching the target table, so a malformed file leaves the table unchanged.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Union

from .errors import FormatError, InvalidMarkerName, MarkerIOError
from .position import PositionToken
from .registry import LAST_MARKER

LOGGER = logging.getLogger("file marker.codec")

PathLike = Union[str, "os.PathLike[str]"]

_LINE_BREAKS = ("\n", "\r")


def validate_marker_name(name: str) -> str:
    """Return ``name`` if it can be stored and persisted."""
    if not isinstance(name, str):
        raise InvalidMarkerName(f"Marker name must be a string, got {type(name).__name__}.")
    if not name:
        raise InvalidMarkerName("Marker name must not be empty.")
    if any(char in name for char in _LINE_BREAKS):
        raise InvalidMarkerName(f"Marker name must not contain line breaks: {name!r}")
    return name


def dumps_markers(table: Mapping[str, PositionToken]) -> str:
    """Serialise every marker except ``LAST``, sorted by name."""
    lines = []
    for name in sorted(table):
        if name == LAST_MARKER:
            continue
        validate_marker_name(name)
        lines.append(name)
        lines.append(table[name].hex())
    return "".join(f"{line}\n" for line in lines)


def parse_markers(text: str, *, source: str = "<string>") -> Dict[str, PositionToken]:
    """Parse persisted markers, raising :class:`FormatError` on the first bad record."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    lines = [line[:-1] if line.endswith("\r") else line for line in lines]
    if len(lines) % 2:
        raise FormatError(
            f"{source}:{len(lines)}: marker {lines[-1]!r} has no position record"
        )

    parsed: Dict[str, PositionToken] = {}
    for index in range(0, len(lines), 2):
        name, encoded = lines[index], lines[index + 1]
        line_no = index + 1
        if not name:
            raise FormatError(f"{source}:{line_no}: empty marker name")
        if name == LAST_MARKER:
            raise FormatError(f"{source}:{line_no}: {LAST_MARKER!r} is reserved and cannot be loaded")
        try:
            parsed[name] = PositionToken.fromhex(encoded)
        except ValueError as exc:
            raise FormatError(
                f"{source}:{line_no + 1}: invalid position for marker {name!r}: {encoded!r}"
            ) from exc
    return parsed


def save_markers(
    table: Mapping[str, PositionToken],
    target: PathLike,
    *,
    encoding: str = "utf-8",
) -> int:
    """Write ``table`` to ``target`` and return the number of markers saved.

    The file is written to a temporary sibling and moved into place, so an
    existing marker file survives any failure.
    """
    path = os.fspath(target)
    if not isinstance(path, str):
        raise TypeError(f"Marker file path must be a str path, got {type(path).__name__}")
    payload = dumps_markers(table)
    try:
        data = payload.encode(encoding)
    except UnicodeEncodeError as exc:
        raise InvalidMarkerName(f"Marker names cannot be encoded as {encoding}: {exc}") from exc
    except LookupError as exc:
        raise MarkerIOError(f"Unknown persistence encoding {encoding!r}") from exc
    try:
        fd, staging = tempfile.mkstemp(prefix=".markers-", dir=os.path.dirname(os.path.abspath(path)))
    except OSError as exc:
        raise MarkerIOError(f"Unable to write markers to {path}: {exc}") from exc
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(staging, path)
    except OSError as exc:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(staging)
        raise MarkerIOError(f"Unable to write markers to {path}: {exc}") from exc
    count = payload.count("\n") // 2
    LOGGER.info("Saved %d marker(s) to %s", count, path)
    return count


def load_markers(
    table: MutableMapping[str, PositionToken],
    source: PathLike,
    *,
    encoding: str = "utf-8",
) -> int:
    """Merge markers stored in ``source`` into ``table``.

    Existing markers with the same names are overwritten; others are kept.
    Returns the number of markers loaded.
    """
    path = os.fspath(source)
    try:
        text = Path(path).read_text(encoding=encoding)
    except OSError as exc:
        raise MarkerIOError(f"Unable to read markers from {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise FormatError(f"{path}: not valid {encoding} text") from exc
    parsed = parse_markers(text, source=path)
    table.update(parsed)
    LOGGER.info("Loaded %d marker(s) from %s", len(parsed), path)
    return len(parsed)


__all__ = [
    "dumps_markers",
    "load_markers",
    "parse_markers",
    "save_markers",
    "validate_marker_name",
]
