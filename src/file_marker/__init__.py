"""Named position markers for seekable files, safe across ``os.fork()``."""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import Dict, Iterable, Tuple

__version__ = "0.10.0"

__all__ = [
    "ClosedHandle",
    "FormatError",
    "InvalidMarkerName",
    "LAST_MARKER",
    "MarkedStream",
    "MarkerConfig",
    "MarkerError",
    "MarkerIOError",
    "MarkerRegistry",
    "PositionToken",
    "PositionUnavailable",
    "ReservedName",
    "SeekFailure",
    "StreamIdentity",
    "UnknownMarker",
    "configure_logging",
    "default_registry",
    "load_marker_config",
]

_EXPORTS: Dict[str, Tuple[str, ...]] = {
    "errors": (
        "ClosedHandle",
        "FormatError",
        "InvalidMarkerName",
        "MarkerError",
        "MarkerIOError",
        "PositionUnavailable",
        "ReservedName",
        "SeekFailure",
        "UnknownMarker",
    ),
    "config": ("MarkerConfig", "load_marker_config"),
    "position": ("PositionToken",),
    "registry": ("LAST_MARKER", "MarkerRegistry", "StreamIdentity", "default_registry"),
    "stream": ("MarkedStream",),
    "utils": ("configure_logging",),
}


def _load_module(name: str) -> ModuleType:
    return importlib.import_module(f"file_marker.{name}")


def __getattr__(name: str):
    for module_name, symbols in _EXPORTS.items():
        if name in symbols:
            value = getattr(_load_module(module_name), name)
            globals()[name] = value
            return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> Iterable[str]:
    return sorted(set(__all__))
