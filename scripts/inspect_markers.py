#!/usr/bin/env python
"""Show where each saved marker points inside its data file."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from file_marker import LAST_MARKER, MarkedStream, MarkerError, configure_logging, load_marker_config


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("data_file", type=Path, help="File the markers were recorded against.")
    parser.add_argument("marker_file", type=Path, help="File written by MarkedStream.save_markers().")
    parser.add_argument(
        "--marker",
        action="append",
        default=None,
        help="Only show this marker (repeatable). Defaults to every saved marker.",
    )
    parser.add_argument(
        "--lines",
        type=int,
        default=1,
        help="Number of lines to print after each marker.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML marker configuration.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (DEBUG, INFO, ...).",
    )
    args = parser.parse_args(argv)
    if args.lines < 1:
        parser.error("--lines must be at least 1")
    return args


def describe_markers(stream: MarkedStream, names: Sequence[str], lines: int) -> List[str]:
    """Render ``lines`` lines of text after each marker in ``names``."""
    output: List[str] = []
    for name in names:
        position = stream.marker_position(name)
        stream.goto_marker(name)
        output.append(f"[{name}] {position.hex()}")
        for _ in range(lines):
            line = stream.readline()
            if not line:
                output.append("    <eof>")
                break
            text = line.rstrip("\n")
            output.append(f"    {text}")
    return output


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = load_marker_config(args.config)
    logger = configure_logging(args.log_level or config.log_level, name="file marker")
    try:
        with MarkedStream(args.data_file, config=config) as stream:
            loaded = stream.load_markers(args.marker_file)
            names = args.marker or [name for name in stream.markers() if name != LAST_MARKER]
            for line in describe_markers(stream, names, args.lines):
                print(line)
    except MarkerError as exc:
        logger.error("inspect_markers_failed | data=%s | markers=%s | %s", args.data_file, args.marker_file, exc)
        return 1
    logger.info("inspect_markers_complete | data=%s | loaded=%d", args.data_file, loaded)
    return 0


if __name__ == "__main__":
    sys.exit(main())
