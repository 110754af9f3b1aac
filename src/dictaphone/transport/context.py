"""Session-scoped state shared by all transport states."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from dictaphone.config import DictaphoneSettings
from dictaphone.domain.position import Position
from dictaphone.domain.timeline import LATCH_TOLERANCE, Timeline
from dictaphone.services.command_log import CommandLog
from dictaphone.services.encoder import SoxReverseEncoder
from dictaphone.services.player import MPlayerLauncher
from dictaphone.services.prober import SoundfileProber
from dictaphone.services.recorder import build_recorder

FORWARD = "forward"
REVERSE = "reverse"


@dataclass
class TransportServices:
    """External collaborators the states drive."""
    recorder: Any
    player: Any
    prober: Any
    encoder: Any
    command_log: CommandLog
    audio_dir: Path = Path(".")
    file_format: str = "wav"
    file_poll_interval: float = 0.1

    @classmethod
    def from_settings(cls, settings: DictaphoneSettings) -> "TransportServices":
        if settings.command_log_path:
            command_log = CommandLog.to_file(
                settings.command_log_path, timestamps=settings.command_log_timestamps
            )
        else:
            command_log = CommandLog(timestamps=settings.command_log_timestamps)
        return cls(
            recorder=build_recorder(settings),
            player=MPlayerLauncher(settings.player_program, settings.player_reply_timeout_sec),
            prober=SoundfileProber(),
            encoder=SoxReverseEncoder(settings.sox_program),
            command_log=command_log,
            audio_dir=settings.audio_path,
            file_format=settings.file_format,
            file_poll_interval=settings.file_poll_interval_sec,
        )

    def new_asset_path(self) -> Path:
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().astimezone().strftime("%Y-%m-%d_%H-%M-%S_%f_%z")
        return self.audio_dir / f"{stamp}.{self.file_format}"


class PlaybackToken:
    """Cancellation token of one playback run; a stop or seek cancels it."""

    def __init__(self, direction: str) -> None:
        self.direction = direction
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def forward(self) -> bool:
        return self.direction == FORWARD


class TransportContext:
    def __init__(
        self,
        services: TransportServices,
        latch_tolerance: float = LATCH_TOLERANCE,
        default_speed: float = 1.0,
    ) -> None:
        self.services = services
        self.latch_tolerance = latch_tolerance
        self.default_speed = default_speed
        # not recreated by reset()
        self.events: queue.Queue = queue.Queue()
        self.reset()

    def reset(self) -> None:
        self.timeline = Timeline(self.latch_tolerance)
        self.position = Position(self.timeline)
        self.speed = self.default_speed
        self.process: Optional[Any] = None
        self.playback: Optional[PlaybackToken] = None

    def log_command(self, command: str, *args: object) -> None:
        self.services.command_log.record(command, *args)
