"""
Client for an mplayer process in slave mode.

One process plays one contiguous segment of one asset. Commands are written
line by line to its stdin; answers (``ANS_TIME_POSITION=12.3``) are read from
its stdout by a pump thread into a queue so reads can time out.
"""

from __future__ import annotations

import logging
import queue
import re
import subprocess
import threading
import time
from pathlib import Path
from typing import Optional, Protocol

from dictaphone.errors import PlayerGone, PlayerProtocolError

logger = logging.getLogger(__name__)

_TIME_POSITION_RE = re.compile(r"ANS_TIME_POSITION=(-?\d+(?:\.\d+)?)")


def parse_time_position(line: str) -> Optional[float]:
    """Return seconds from an ``ANS_TIME_POSITION=<float>`` line, else None."""
    match = _TIME_POSITION_RE.search(line)
    if not match:
        return None
    return float(match.group(1))


class PlayerProcess(Protocol):
    def query_time_position(self) -> float: ...

    def resume(self) -> None: ...

    def set_speed(self, speed: float, keep_paused: bool = False) -> None: ...

    def quit(self) -> None: ...

    def wait(self) -> int: ...

    @property
    def exited(self) -> bool: ...


class MPlayerProcess:
    def __init__(self, process: subprocess.Popen, reply_timeout: float = 2.0) -> None:
        self.process = process
        self.reply_timeout = reply_timeout
        self._lines: queue.Queue[str | None] = queue.Queue()
        self._gone = False
        self._pump = threading.Thread(target=self._read_stdout, daemon=True)
        self._pump.start()

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def exited(self) -> bool:
        return self._gone or self.process.poll() is not None

    def _read_stdout(self) -> None:
        try:
            for line in self.process.stdout:
                self._lines.put(line.rstrip("\r\n"))
        except (OSError, ValueError):
            pass
        finally:
            self._lines.put(None)

    def send_command(self, command: str) -> None:
        if self.exited:
            raise PlayerGone(f"player {self.pid} already exited")
        try:
            self.process.stdin.write(command + "\n")
            self.process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            self._gone = True
            raise PlayerGone(f"failed to send `{command}' to player {self.pid}: {exc}") from exc

    def read_line(self, timeout: float | None = None) -> str:
        timeout = self.reply_timeout if timeout is None else timeout
        try:
            line = self._lines.get(timeout=timeout)
        except queue.Empty:
            if self.exited:
                raise PlayerGone(f"player {self.pid} exited without answering")
            raise PlayerProtocolError(f"player {self.pid} did not answer within {timeout}s")
        if line is None:
            self._gone = True
            raise PlayerGone(f"player {self.pid} closed its output")
        return line

    def drain(self) -> None:
        """Discard output that is not an answer to the next query."""
        while True:
            try:
                line = self._lines.get_nowait()
            except queue.Empty:
                return
            if line is None:
                self._gone = True
                return
            logger.debug("FLUSHING %r", line)

    def query_time_position(self) -> float:
        """Pause the player and return its media position in seconds."""
        self.drain()
        self.send_command("pausing get_time_pos")
        deadline = time.monotonic() + self.reply_timeout
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            line = self.read_line(timeout=remaining)
            seconds = parse_time_position(line)
            if seconds is not None:
                return seconds
            if line.startswith("ANS_"):
                raise PlayerProtocolError(f"get_time_pos failed, got `{line}'")

    def resume(self) -> None:
        self.send_command("pause")

    def set_speed(self, speed: float, keep_paused: bool = False) -> None:
        prefix = "pausing_keep " if keep_paused else ""
        self.send_command(f"{prefix}speed_set {abs(speed):g}")

    def quit(self) -> None:
        try:
            self.send_command("quit")
        except PlayerGone:
            logger.debug("player %s already gone on quit", self.pid)

    def wait(self) -> int:
        return self.process.wait()


class MPlayerLauncher:
    """Starts one slave-mode mplayer per playback segment."""

    def __init__(self, program: str = "mplayer", reply_timeout: float = 2.0) -> None:
        self.program = program
        self.reply_timeout = reply_timeout

    def build_command(self, asset: str | Path, start_ms: float, length_ms: float, speed: float) -> list[str]:
        # -endpos counts from -ss
        return [
            self.program,
            "-slave",
            "-quiet",
            "-af",
            "scaletempo",
            "-speed",
            f"{abs(speed):g}",
            "-ss",
            f"{start_ms / 1000.0:.3f}",
            "-endpos",
            f"{max(0.0, length_ms) / 1000.0:.3f}",
            str(asset),
        ]

    def launch(self, asset: str | Path, start_ms: float, length_ms: float, speed: float) -> MPlayerProcess:
        cmd = self.build_command(asset, start_ms, length_ms, speed)
        logger.debug("call `%s'", " ".join(cmd))
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            bufsize=1,
        )
        return MPlayerProcess(process, self.reply_timeout)
