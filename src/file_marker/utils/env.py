"""Environment helpers for the repository-local .env file and FILE_MARKER_* overrides."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[3]

# Environment variable -> MarkerConfig field.
ENV_OVERRIDES: Dict[str, str] = {
    "FILE_MARKER_FORK_SAFE": "fork_safe",
    "FILE_MARKER_ENCODING": "persistence_encoding",
    "FILE_MARKER_LOG_LEVEL": "log_level",
}


@lru_cache(maxsize=1)
def load_repo_dotenv() -> bool:
    """Load the .env file at the repository root once."""

    env_path = _REPO_ROOT / ".env"
    if not env_path.exists():
        return False
    load_dotenv(env_path, override=False)
    return True


def read_env_overrides() -> Dict[str, str]:
    """Return config overrides set through ``FILE_MARKER_*`` variables.

    Empty values are ignored.
    """

    overrides: Dict[str, str] = {}
    for variable, field_name in ENV_OVERRIDES.items():
        value = os.getenv(variable, "").strip()
        if value:
            overrides[field_name] = value
    return overrides


__all__ = ["ENV_OVERRIDES", "load_repo_dotenv", "read_env_overrides"]
