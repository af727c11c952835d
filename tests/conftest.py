"""Pytest fixtures and path configuration for file-marker tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
for _path in (SRC_DIR, REPO_ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

from file_marker.config import MarkerConfig  # noqa: E402
from file_marker.registry import MarkerRegistry  # noqa: E402

SAMPLE_TEXT = "one\ntwo\nthree\n"


@pytest.fixture
def registry() -> MarkerRegistry:
    """Isolated registry without a process-wide at-fork hook."""
    return MarkerRegistry(fork_safe=False)


@pytest.fixture
def marker_config() -> MarkerConfig:
    return MarkerConfig(fork_safe=False)


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.txt"
    path.write_text(SAMPLE_TEXT, encoding="utf-8")
    return path
