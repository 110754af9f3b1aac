"""Recorder back-ends: start on an asset path, stop to finalize the file."""

from __future__ import annotations

import logging
import signal
import subprocess
import time
from pathlib import Path
from typing import Protocol

from dictaphone.config import DictaphoneSettings

logger = logging.getLogger(__name__)


class Recorder(Protocol):
    def start(self, path: str | Path) -> None: ...

    def stop(self) -> None: ...

    def is_recording(self) -> bool: ...


class SoxRecorder:
    """Runs sox' ``rec`` and finalizes it with SIGINT, like pressing Ctrl-C."""

    def __init__(self, program: str = "rec", exit_timeout: float = 5.0) -> None:
        self.program = program
        self.exit_timeout = exit_timeout
        self._process: subprocess.Popen | None = None

    def start(self, path: str | Path) -> None:
        if self.is_recording():
            return
        cmd = [self.program, "-q", str(path)]
        logger.debug("call `%s'", " ".join(cmd))
        self._process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def stop(self) -> None:
        proc = self._process
        if proc is None:
            return
        self._process = None
        logger.debug("stop recorder with PID %s", proc.pid)
        try:
            proc.send_signal(signal.SIGINT)
        except ProcessLookupError:
            logger.debug("recorder %s already exited", proc.pid)
            return
        try:
            proc.wait(timeout=self.exit_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("recorder %s ignored SIGINT, killing it", proc.pid)
            proc.kill()
            proc.wait()

    def is_recording(self) -> bool:
        return self._process is not None and self._process.poll() is None


def wait_for_file(path: str | Path, poll_interval: float = 0.1) -> Path:
    """Block until ``path`` exists; the wait is unbounded."""
    target = Path(path)
    logger.debug("polling for file `%s' ...", target)
    while not target.exists():
        time.sleep(poll_interval)
    logger.debug("=> file `%s' exists", target)
    return target


def build_recorder(settings: DictaphoneSettings) -> Recorder:
    backend = settings.recorder_backend.lower()
    if backend == "sox":
        return SoxRecorder(settings.recorder_program)
    if backend == "sounddevice":
        from .audio_engine import SoundDeviceRecorder

        return SoundDeviceRecorder(settings.sample_rate, settings.channels)
    raise ValueError(f"unknown recorder backend: {settings.recorder_backend}")
