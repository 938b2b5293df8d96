from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator

LogLevel = Literal["error", "warn", "info", "debug", "trace"]


def default_socket_path() -> Path:
    try:
        return Path.home() / ".pipeboom.sock"
    except RuntimeError:
        return Path(tempfile.gettempdir()) / ".pipeboom.sock"


def default_log_dir() -> Path:
    return Path.home() / "Library" / "Logs"


class DaemonConfig(BaseModel):
    """Top-level daemon configuration, from config.yaml plus CLI overrides."""

    discord_app_id: str = "996864734957670452"
    poll_interval: int = 1
    log_level: LogLevel = "info"
    max_log_size: int = 20
    socket_path: Path = default_socket_path()
    log_dir: Path = default_log_dir()
    cache_ttl_seconds: float = 604800.0

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        if not (1 <= v <= 10):
            raise ValueError("'poll_interval' must be between 1 and 10 seconds")
        return v

    @field_validator("max_log_size")
    @classmethod
    def validate_max_log_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("'max_log_size' must be a positive number of megabytes")
        return v

    @field_validator("socket_path", "log_dir")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()
