# syncshell Configuration Schema
# Pydantic models for YAML configuration validation

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging verbosity."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EngineConfig(BaseModel):
    """External synchronization engine settings."""

    executable_path: str = Field(default="mutagen", description="Engine executable name or path")
    refresh_interval: float = Field(default=5.0, gt=0, description="Seconds between session polls")
    auto_start_daemon: bool = Field(default=True, description="Start the engine daemon when it is not running")

    @field_validator("executable_path")
    @classmethod
    def expand_executable(cls, v: str) -> str:
        """Expand ~ in executable path."""
        return str(Path(v).expanduser()) if v.startswith("~") else v


class RestoreConfig(BaseModel):
    """Session restore and connection profile settings."""

    auto_restore_connections: bool = Field(default=True, description="Restore saved profiles when a workspace opens")
    max_connection_retries: int = Field(default=3, ge=1, description="Attempts per profile restore")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Delay unit between restore attempts (seconds)")
    retry_max_delay: float = Field(default=5.0, ge=0, description="Cap on a single restore delay (seconds)")
    resume_max_retries: int = Field(default=3, ge=1, description="Attempts per paused-session resume")
    resume_max_delay: float = Field(default=3.0, ge=0, description="Cap on a single resume delay (seconds)")
    terminate_restored_sessions_on_close: bool = Field(
        default=False, description="Terminate instead of pause restored sessions when their folder closes"
    )
    auto_save_connection_profiles: bool = Field(
        default=True, description="Save a connection profile for every created session"
    )


class RatesConfig(BaseModel):
    """Transfer rate sampling settings."""

    min_sample_interval: float = Field(default=0.5, gt=0, description="Minimum seconds between rate samples")


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    verbose: bool = Field(default=False, description="Enable verbose output")
    colored: bool = Field(default=True, description="Enable colored output")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(default=None, description="Path to log file")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        """Accept lowercase level names."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_file")
    @classmethod
    def expand_optional_paths(cls, v: str | None) -> str | None:
        """Expand ~ in optional paths."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class SyncshellConfig(BaseModel):
    """Root configuration model for syncshell."""

    engine: EngineConfig = Field(default_factory=EngineConfig, description="Engine settings")
    restore: RestoreConfig = Field(default_factory=RestoreConfig, description="Restore settings")
    rates: RatesConfig = Field(default_factory=RatesConfig, description="Rate sampling settings")
    global_ignore_patterns: list[str] = Field(
        default_factory=list, description="Ignore patterns added to every created session"
    )
    state_file: str = Field(
        default="~/.config/syncshell/state.yaml",
        validate_default=True,
        description="Persistent key/value state file",
    )
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")

    @field_validator("global_ignore_patterns")
    @classmethod
    def clean_patterns(cls, v: list[str]) -> list[str]:
        """Trim and deduplicate patterns, keeping first-seen order."""
        seen: dict[str, None] = {}
        for pattern in v:
            if pattern.strip():
                seen.setdefault(pattern.strip(), None)
        return list(seen)

    @field_validator("state_file")
    @classmethod
    def expand_state_file(cls, v: str) -> str:
        """Expand ~ in path."""
        return str(Path(v).expanduser())

    @property
    def state_path(self) -> Path:
        return Path(self.state_file)
