"""Utility helpers for logging and environment loading."""

from .logging import configure_logging
from .env import load_repo_dotenv, read_env_overrides

__all__ = [
    "configure_logging",
    "load_repo_dotenv",
    "read_env_overrides",
]
