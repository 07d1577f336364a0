"""
config/settings.py — pulsekit Runtime Settings

Merges config.yaml (structure/defaults) with PULSEKIT_* environment
variables. Pydantic-powered — all fields are validated and typed.

  - Field validators reject values that would break component invariants
    (non-positive capacity/interval/concurrency, negative or non-finite
    durations, unknown log levels) at parse time.
  - validate_all() performs cross-field and filesystem checks and raises
    ConfigError listing every problem found.
  - load_settings() respects PULSEKIT_CONFIG as a fallback when no
    explicit config_path is given.

Example config.yaml:

    rate_limits:
      search_api:
        capacity: 10
        refill_interval_seconds: 60
        min_spacing_seconds: 3
    queue:
      concurrency: 2
      delay_seconds: 1.0
    state:
      path: ./data/state/heartbeat.json
    memory:
      directory: ./data/memory
"""

from __future__ import annotations

import math
import os
import threading as _threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class RateLimitConfig(BaseModel):
    """One named token bucket."""
    capacity: int = 10
    refill_interval_seconds: float = 60.0
    min_spacing_seconds: Optional[float] = None

    @field_validator("capacity")
    @classmethod
    def _positive_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limits.*.capacity must be >= 1")
        return v

    @field_validator("refill_interval_seconds")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError("rate_limits.*.refill_interval_seconds must be a finite number > 0")
        return v

    @field_validator("min_spacing_seconds")
    @classmethod
    def _non_negative_spacing(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and (not math.isfinite(v) or v < 0):
            raise ValueError("rate_limits.*.min_spacing_seconds must be a finite number >= 0")
        return v


class QueueConfig(BaseModel):
    concurrency: int = 1
    delay_seconds: float = 0.0

    @field_validator("concurrency")
    @classmethod
    def _positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("queue.concurrency must be >= 1")
        return v

    @field_validator("delay_seconds")
    @classmethod
    def _non_negative_delay(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError("queue.delay_seconds must be a finite number >= 0")
        return v


class StateConfig(BaseModel):
    path: str = "./data/state/heartbeat.json"


class MemoryConfig(BaseModel):
    directory: str = "./data/memory"
    recent_days: int = 2

    @field_validator("recent_days")
    @classmethod
    def _positive_days(cls, v: int) -> int:
        if v < 1:
            raise ValueError("memory.recent_days must be >= 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    pulsekit runtime settings.

    Nested values can be set from the environment with a double underscore,
    e.g. PULSEKIT_QUEUE__CONCURRENCY=4.
    """

    model_config = SettingsConfigDict(
        env_prefix="PULSEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    rate_limits: dict[str, RateLimitConfig] = Field(default_factory=dict)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # -- Convenience properties ----------------------------------------------

    @property
    def state_path(self) -> Path:
        return Path(self.state.path).expanduser()

    @property
    def memory_dir(self) -> Path:
        return Path(self.memory.directory).expanduser()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir).expanduser()

    def rate_limit(self, name: str) -> RateLimitConfig:
        """Return the named limiter config. Raises KeyError if undefined."""
        try:
            return self.rate_limits[name]
        except KeyError:
            raise KeyError(
                f"No rate limit named '{name}'. "
                f"Defined: {sorted(self.rate_limits) or 'none'}"
            ) from None

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch per-value problems at parse time; this
        catches what they can't see: blank limiter names and paths that
        collide with existing filesystem entries of the wrong kind.
        """
        errors: list[str] = []

        for name in self.rate_limits:
            if not name.strip():
                errors.append("rate_limits contains an entry with a blank name.")

        if self.state_path.is_dir():
            errors.append(
                f"state.path '{self.state.path}' is a directory; it must name "
                f"a JSON file."
            )

        if self.memory_dir.exists() and not self.memory_dir.is_dir():
            errors.append(
                f"memory.directory '{self.memory.directory}' exists but is not "
                f"a directory."
            )

        if self.log_dir.exists() and not self.log_dir.is_dir():
            errors.append(
                f"logging.log_dir '{self.logging.log_dir}' exists but is not "
                f"a directory."
            )

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\npulsekit configuration invalid — {len(errors)} "
                f"problem(s) found:\n\n{numbered}\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = _threading.Lock()

_KNOWN_SECTIONS = {"rate_limits", "queue", "state", "memory", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. PULSEKIT_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("PULSEKIT_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def _build_settings(config_path: str | Path | None) -> Settings:
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}
    return Settings(**init_kwargs)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging the YAML file with environment variables."""
    global _singleton
    instance = _build_settings(config_path)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading from the default path on
    first use. Guarded by _singleton_lock against double initialisation.
    """
    global _singleton
    if _singleton is not None:
        return _singleton  # fast path, no lock once set
    with _singleton_lock:
        if _singleton is None:
            _singleton = _build_settings(None)
        return _singleton


def reset_settings() -> None:
    """Drop the cached singleton (used by tests)."""
    global _singleton
    with _singleton_lock:
        _singleton = None
