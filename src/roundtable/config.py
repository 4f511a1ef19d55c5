"""Configuration loading from environment variables and roundtable.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_DATA_DIR = Path.home() / ".roundtable" / "data"
_CONFIG_FILENAME = "roundtable.toml"


@dataclass(frozen=True)
class MemoryConfig:
    """Bounds applied by the memory manager. Immutable once built."""

    max_recent_rounds: int = 3  # rounds kept verbatim after compression
    max_key_facts: int = 20
    max_summary_length: int = 300  # characters
    compress_threshold: int = 5  # recent-round count that triggers compression

    def __post_init__(self) -> None:
        for name in ("max_recent_rounds", "max_key_facts", "max_summary_length", "compress_threshold"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass
class EngineConfig:
    """Language-model engine used for summarization ("none" disables it)."""

    name: str = "none"
    model: str | None = None
    max_tokens: int = 1024
    timeout: int = 120


@dataclass
class RoundtableConfig:
    """Top-level Roundtable configuration."""

    memory: MemoryConfig = field(default_factory=MemoryConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    data_dir: Path = _DEFAULT_DATA_DIR
    log_level: str = "INFO"


def _read_config_file(config_path: Path | None) -> dict:
    if config_path and config_path.exists():
        return tomllib.loads(config_path.read_text())
    # Search current dir and ~/.roundtable/
    for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".roundtable" / _CONFIG_FILENAME]:
        if candidate.exists():
            return tomllib.loads(candidate.read_text())
    return {}


def load_config(config_path: Path | None = None) -> RoundtableConfig:
    """Load configuration from environment variables and optional roundtable.toml.

    Priority: environment variables > roundtable.toml > defaults.
    """
    file_data = _read_config_file(config_path)

    memory_data = file_data.get("memory", {})
    engine_data = file_data.get("engine", {})
    defaults = MemoryConfig()

    return RoundtableConfig(
        memory=MemoryConfig(
            max_recent_rounds=int(
                os.getenv(
                    "ROUNDTABLE_MAX_RECENT_ROUNDS",
                    memory_data.get("max_recent_rounds", defaults.max_recent_rounds),
                )
            ),
            max_key_facts=int(
                os.getenv("ROUNDTABLE_MAX_KEY_FACTS", memory_data.get("max_key_facts", defaults.max_key_facts))
            ),
            max_summary_length=int(
                os.getenv(
                    "ROUNDTABLE_MAX_SUMMARY_LENGTH",
                    memory_data.get("max_summary_length", defaults.max_summary_length),
                )
            ),
            compress_threshold=int(
                os.getenv(
                    "ROUNDTABLE_COMPRESS_THRESHOLD",
                    memory_data.get("compress_threshold", defaults.compress_threshold),
                )
            ),
        ),
        engine=EngineConfig(
            name=os.getenv("ROUNDTABLE_ENGINE", engine_data.get("name", "none")),
            model=os.getenv("ROUNDTABLE_MODEL", engine_data.get("model")),
            max_tokens=int(engine_data.get("max_tokens", 1024)),
            timeout=int(os.getenv("ROUNDTABLE_TIMEOUT", engine_data.get("timeout", 120))),
        ),
        data_dir=Path(os.getenv("ROUNDTABLE_DATA_DIR", file_data.get("data_dir", str(_DEFAULT_DATA_DIR)))),
        log_level=os.getenv("ROUNDTABLE_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
