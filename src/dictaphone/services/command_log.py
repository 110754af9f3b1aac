"""Command transcript: one replayable line per state-changing operation."""

from __future__ import annotations

import re
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, TextIO

# "<timestamp> > seek 1500" or plain "seek 1500"
_LINE_RE = re.compile(r"^(?:(?P<stamp>[^>]*?)\s*>)?\s*(?P<command>[a-z_]+)(?:\s+(?P<argument>.*?))?\s*$")


@dataclass(slots=True)
class ScriptEntry:
    command: str
    argument: str
    line_no: int
    stamp: Optional[str] = None


class CommandLog:
    def __init__(self, stream: TextIO | None = None, *, timestamps: bool = False) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.timestamps = timestamps
        self._lock = threading.Lock()
        self._owned = False

    @classmethod
    def to_file(cls, path: str | Path, *, timestamps: bool = False) -> "CommandLog":
        log = cls(open(path, "a", encoding="utf-8"), timestamps=timestamps)
        log._owned = True
        return log

    def record(self, command: str, *args: object) -> str:
        line = " ".join([command, *(_format_arg(a) for a in args)])
        if self.timestamps:
            stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
            line = f"{stamp} > {line}"
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()
        return line

    def close(self) -> None:
        if self._owned:
            self.stream.close()


def _format_arg(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    return str(value)


def parse_script_line(line: str, line_no: int = 0) -> Optional[ScriptEntry]:
    """Split one transcript line; None for blanks, comments and unparsable lines."""
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    match = _LINE_RE.match(text)
    if not match:
        return None
    stamp = match.group("stamp")
    return ScriptEntry(
        command=match.group("command"),
        argument=match.group("argument") or "",
        line_no=line_no,
        stamp=stamp.strip() if stamp else None,
    )


def read_script(path: str | Path) -> Iterator[ScriptEntry | str]:
    """Yield parsed entries, or the raw line when it could not be parsed."""
    with open(path, "r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            entry = parse_script_line(line, line_no)
            if entry is not None:
                yield entry
            elif line.strip() and not line.strip().startswith("#"):
                yield line.rstrip("\n")
