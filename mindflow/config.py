"""Load engine configuration from TOML (e.g. mindflow.toml).

Config file is looked up in order:
  1. Path in MINDFLOW_CONFIG env var (if set)
  2. mindflow.toml in the current working directory

Only the ``[portability]`` table is read. If no file is found, built-in
defaults are used.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from mindflow.logging import set_default_level

DEFAULT_PRODUCER_VERSION = "1.4.0"
DEFAULT_FILE_NAME_PREFIX = "mindflow-export"


class EngineConfig(BaseModel, frozen=True):
    """Settings shared by the export and import orchestrators."""

    producer_version: str = Field(
        default=DEFAULT_PRODUCER_VERSION,
        description="Application version stamped into exported manifests.",
    )
    file_name_prefix: str = Field(
        default=DEFAULT_FILE_NAME_PREFIX,
        description="Prefix of generated archive file names.",
    )
    compression_level: int = Field(
        default=6,
        ge=0,
        le=9,
        description="DEFLATE level used when packing archives.",
    )
    log_level: str = Field(default="INFO", description="Level for engine loggers.")


def _default_config_paths() -> list[Path]:
    """Return paths to check for mindflow.toml (first existing wins)."""
    paths: list[Path] = []
    if os.environ.get("MINDFLOW_CONFIG"):
        paths.append(Path(os.environ["MINDFLOW_CONFIG"]))
    paths.append(Path.cwd() / "mindflow.toml")
    return paths


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load EngineConfig from a TOML file.

    Args:
        path: Explicit config file. When omitted the default search order in
            the module docstring applies.

    Returns:
        EngineConfig built from the ``[portability]`` table, or the defaults
        if no readable file is found.
    """
    candidates = [path] if path is not None else _default_config_paths()
    for candidate in candidates:
        if not candidate.is_file():
            continue
        try:
            with open(candidate, "rb") as f:
                data: dict[str, Any] = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            continue
        section = data.get("portability", {})
        if isinstance(section, dict):
            return EngineConfig.model_validate(section)
    return EngineConfig()


def configure_logging(config: EngineConfig) -> None:
    """Apply `config.log_level` to every engine logger."""
    set_default_level(config.log_level.upper())
