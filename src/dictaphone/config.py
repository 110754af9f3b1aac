"""Dictaphone settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class DictaphoneSettings(BaseModel):
    audio_dir: str = Field(default=os.getenv("DICTAPHONE_AUDIO_DIR", "."))
    file_format: str = Field(default=os.getenv("DICTAPHONE_FILE_FORMAT", "wav"))
    latch_tolerance_ms: float = Field(
        default=float(os.getenv("DICTAPHONE_LATCH_TOLERANCE_MS", "200"))
    )
    default_speed: float = Field(default=float(os.getenv("DICTAPHONE_DEFAULT_SPEED", "1.0")))
    recorder_backend: str = Field(default=os.getenv("DICTAPHONE_RECORDER", "sox"))
    recorder_program: str = Field(default=os.getenv("DICTAPHONE_REC_PROGRAM", "rec"))
    player_program: str = Field(default=os.getenv("DICTAPHONE_PLAYER_PROGRAM", "mplayer"))
    sox_program: str = Field(default=os.getenv("DICTAPHONE_SOX_PROGRAM", "sox"))
    sample_rate: int = Field(default=int(os.getenv("DICTAPHONE_SAMPLE_RATE", "44100")))
    channels: int = Field(default=int(os.getenv("DICTAPHONE_CHANNELS", "1")))
    file_poll_interval_sec: float = Field(
        default=float(os.getenv("DICTAPHONE_FILE_POLL_INTERVAL", "0.1"))
    )
    player_reply_timeout_sec: float = Field(
        default=float(os.getenv("DICTAPHONE_PLAYER_REPLY_TIMEOUT", "2.0"))
    )
    command_log_path: str | None = Field(default=os.getenv("DICTAPHONE_COMMAND_LOG"))
    command_log_timestamps: bool = Field(
        default=_env_flag("DICTAPHONE_COMMAND_LOG_TIMESTAMPS")
    )
    log_level: str = Field(default=os.getenv("DICTAPHONE_LOG_LEVEL", "INFO"))

    @property
    def audio_path(self) -> Path:
        return Path(self.audio_dir)


@lru_cache()
def get_settings() -> DictaphoneSettings:
    return DictaphoneSettings()
