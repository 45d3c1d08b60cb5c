"""
config/settings.py — delayline Runtime Settings

Merges config.yaml (defaults/structure) with environment variables.
Pydantic-powered — all fields are validated and typed.

  - SchedulerConfig rejects non-positive tick intervals at parse time
  - LoggingConfig validates the level name
  - validate_all() performs cross-field startup validation and raises
    ConfigError with a numbered list of every problem found
  - load_settings() respects DELAYLINE_CONFIG as a fallback when no
    explicit config_path argument is given
"""

from __future__ import annotations

import os
import threading as _threading
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class SchedulerConfig(BaseModel):
    tick_interval: float = 1.0 / 60.0     # seconds between TickDriver updates
    max_tick_dt: float = 0.25             # clamp for one measured delta
    start_paused: bool = False

    @field_validator("tick_interval")
    @classmethod
    def _positive_tick(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("scheduler.tick_interval must be > 0")
        return v

    @field_validator("max_tick_dt")
    @classmethod
    def _positive_max_dt(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("scheduler.max_tick_dt must be > 0")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 100
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

    @field_validator("max_file_size_mb", "backup_count")
    @classmethod
    def _positive_sizes(cls, v: int) -> int:
        if v < 1:
            raise ValueError("logging.max_file_size_mb and logging.backup_count must be >= 1")
        return v

    @property
    def max_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    delayline runtime settings.

    Priority (highest to lowest):
      1. Environment variables (DELAYLINE_SCHEDULER__TICK_INTERVAL=0.05)
      2. .env file
      3. config.yaml
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="DELAYLINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML arrives as init kwargs; the environment must still win over it.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    # -- Convenience properties ----------------------------------------------

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time; this
        method catches cross-field and filesystem problems they can't see.
        """
        errors: list[str] = []

        # ── A clamp below the tick interval slows every event down ───────────
        if self.scheduler.max_tick_dt < self.scheduler.tick_interval:
            errors.append(
                f"scheduler.max_tick_dt ({self.scheduler.max_tick_dt}) is smaller "
                f"than scheduler.tick_interval ({self.scheduler.tick_interval}); "
                f"every tick would be clamped and events would run late."
            )

        # ── Log directory must not be an existing file ───────────────────────
        if self.log_dir.exists() and not self.log_dir.is_dir():
            errors.append(
                f"logging.log_dir '{self.logging.log_dir}' exists and is not a directory."
            )

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\ndelayline startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your environment "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = _threading.Lock()

_KNOWN_SECTIONS = {"scheduler", "logging"}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. DELAYLINE_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("DELAYLINE_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    global _singleton
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    instance = Settings(**init_kwargs)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading it from the default
    config path on first use.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            _singleton = Settings(
                **{k: v for k, v in _load_yaml(_resolve_config_path(None)).items()
                   if k in _KNOWN_SECTIONS}
            )
        return _singleton


def reset_settings() -> None:
    """Drop the cached singleton (used by tests and config reloads)."""
    global _singleton
    with _singleton_lock:
        _singleton = None
