"""Runtime configuration for marked streams."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .utils.env import load_repo_dotenv, read_env_overrides

CONFIG_PATH_ENV = "FILE_MARKER_CONFIG"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class MarkerConfig:
    """Settings shared by the default registry, the codec and the CLI."""

    fork_safe: bool = True
    persistence_encoding: str = "utf-8"
    log_level: str = "WARNING"

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MarkerConfig":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown marker config keys: {', '.join(unknown)}")
        config = cls()
        config.update(payload)
        return config

    def update(self, payload: Mapping[str, Any]) -> None:
        if "fork_safe" in payload:
            self.fork_safe = _coerce_bool(payload["fork_safe"], key="fork_safe")
        if "persistence_encoding" in payload:
            self.persistence_encoding = str(payload["persistence_encoding"])
        if "log_level" in payload:
            self.log_level = str(payload["log_level"]).upper()


def _coerce_bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def load_yaml_config(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle)
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Marker config {path} must contain a mapping.")
    return dict(payload)


def load_marker_config(path: Optional[Path | str] = None) -> MarkerConfig:
    """Build a :class:`MarkerConfig` from YAML plus environment overrides.

    The repository ``.env`` is loaded first. ``path`` falls back to the
    ``FILE_MARKER_CONFIG`` variable; ``FILE_MARKER_FORK_SAFE``,
    ``FILE_MARKER_ENCODING`` and ``FILE_MARKER_LOG_LEVEL`` win over the file.
    """

    load_repo_dotenv()
    if path is None:
        path = os.getenv(CONFIG_PATH_ENV) or None
    payload = load_yaml_config(Path(path)) if path is not None else {}
    config = MarkerConfig.from_mapping(payload)
    config.update(read_env_overrides())
    return config


@lru_cache(maxsize=1)
def default_config() -> MarkerConfig:
    """Configuration of streams created without an explicit one, loaded once."""

    return load_marker_config()


__all__ = ["CONFIG_PATH_ENV", "MarkerConfig", "default_config", "load_marker_config", "load_yaml_config"]
