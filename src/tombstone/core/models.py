import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Tombstone(BaseModel):
    """
    Birth, death and exit code of one tracked process.

    The file at ``graveyard / name`` is the durable copy; an instance is a cache of it.
    Only ``Born``, ``Died`` and ``ExitCode`` are persisted, and only once they are set.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    born: Optional[datetime] = Field(default=None, alias='Born')
    died: Optional[datetime] = Field(default=None, alias='Died')
    exit_code: Optional[int] = Field(default=None, alias='ExitCode')

    graveyard: Path = Field(exclude=True)
    name: str = Field(exclude=True)

    # One write at a time per instance.
    _file_lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    @field_validator('name')
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value:
            raise ValueError("tombstone name must not be empty")
        if value in {'.', '..'} or '/' in value or '\x00' in value:
            raise ValueError(f"tombstone name '{value}' is not a plain file name")
        return value

    @property
    def path(self) -> Path:
        return Path(self.graveyard) / self.name

    def write(self) -> None:
        """Write the tombstone file, truncating before writing."""
        from tombstone.core.store import write_tombstone

        write_tombstone(self)

    def record_birth(self, logger: Optional[logging.Logger] = None) -> None:
        from tombstone.core.store import record_birth

        record_birth(self, logger=logger)

    def record_death(self, exit_code: int, logger: Optional[logging.Logger] = None) -> None:
        from tombstone.core.store import record_death

        record_death(self, exit_code, logger=logger)

    def __str__(self) -> str:
        from tombstone.core.store import render_tombstone

        return render_tombstone(self)


class FrameworkSettings(BaseSettings):
    """
    Process-level settings (the 'tombstone' section in tombstone.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='TOMBSTONE_', extra='ignore')

    log_level: str = "INFO"
    graveyard: str = "graveyard"


class WatchSettings(BaseModel):
    """
    Graveyard watch settings (the 'watch' section in tombstone.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    poll_interval_ms: int = Field(default=100, ge=10)
    polling: bool = False
    restart_on_failure: bool = True


class RuntimeSettings(BaseModel):
    """Aggregated settings built from a loaded tombstone.yaml."""

    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)

    @classmethod
    def from_config(cls, config_dict: Optional[Dict[str, Any]] = None) -> "RuntimeSettings":
        config_dict = config_dict or {}
        return cls(
            settings=FrameworkSettings(**(config_dict.get('tombstone') or {})),
            watch=WatchSettings(**(config_dict.get('watch') or {})),
        )
