"""Logging setup for marked streams and their registry."""

from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable, Optional, Union

LOGGER_NAME = "file marker"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unsupported log level: {level!r}")
    return resolved


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    name: str = LOGGER_NAME,
    propagate: bool = False,
    extra_loggers: Optional[Iterable[str]] = None,
) -> Logger:
    """Configure and return the package logger, optionally binding extra loggers.

    Parameters
    ----------
    level: int | str
        Logging verbosity, numeric or by name (``"DEBUG"``).
    name: str
        Logical logger namespace. Module loggers are its children
        (``"file marker.registry"``, ``"file marker.stream"``,
        ``"file marker.codec"``), so configuring the root name covers them.
    """

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    numeric_level = _resolve_level(level)

    def _attach(target: Logger) -> None:
        if not any(isinstance(existing, logging.StreamHandler) for existing in target.handlers):
            target.addHandler(handler)
        target.setLevel(numeric_level)
        target.propagate = propagate

    logger = logging.getLogger(name)
    _attach(logger)
    for logger_name in extra_loggers or ():
        _attach(logging.getLogger(logger_name))
    return logger


__all__ = ["LOGGER_NAME", "configure_logging"]
