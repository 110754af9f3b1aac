import re
from dataclasses import dataclass

from dictaphone.services.command_log import parse_script_line

# 1500 | 1.5s | 1:30 | 1:30.5
_TIME_RE = re.compile(r"^(?:(?P<minutes>\d+):(?P<seconds>\d+(?:\.\d+)?)|(?P<value>\d+(?:\.\d+)?)(?P<unit>s|ms)?)$")

_NO_ARGUMENT = {"quit", "status", "record", "play", "stop", "pause", "resume", "reset"}


@dataclass(frozen=True)
class Command:
    """One parsed console or script line; ``operation`` names a Transport method."""
    operation: str
    args: tuple = ()


def parse_time(text: str) -> float:
    """Parse ``1500`` (ms), ``1.5s`` or ``1:30`` into milliseconds."""
    match = _TIME_RE.match(text.strip())
    if not match:
        raise ValueError(f"invalid time `{text}'")
    if match.group("minutes") is not None:
        return (int(match.group("minutes")) * 60 + float(match.group("seconds"))) * 1000.0
    value = float(match.group("value"))
    return value * 1000.0 if match.group("unit") == "s" else value


class ParseCommand:
    """
    Use case for turning a text line into a Command.

    Blank lines and ``#`` comments yield None. A ``"<timestamp> >"`` prefix
    as written by the command log is accepted and ignored.
    """

    def execute(self, line: str) -> Command | None:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        entry = parse_script_line(text)
        if entry is None:
            raise ValueError(f"cannot parse `{text}'")
        name, argument = entry.command, entry.argument.strip()

        if name in _NO_ARGUMENT:
            if argument:
                raise ValueError(f"`{name}' takes no argument")
            return Command(name)
        if name in ("load", "open"):
            if not argument:
                raise ValueError(f"`{name}' needs a path")
            return Command(name, (argument,))
        if name == "set_marker":
            return Command("set_marker", (argument or None,))
        if name == "rm_marker":
            return Command("remove_marker")
        if name == "seek_marker":
            return Command("seek_marker", (int(argument) if argument else 0,))
        if name == "delete":
            return self._delete(argument)
        if name == "speed":
            return Command("speed", self._speed(argument))
        if name == "seek":
            return Command("seek", self._seek(argument))
        raise ValueError(f"unknown command `{name}'")

    @staticmethod
    def _delete(argument: str) -> Command:
        if not argument:
            return Command("delete", (None, None))
        parts = argument.split()
        if len(parts) != 2:
            raise ValueError("`delete' needs no argument or `<from> <to>'")
        return Command("delete", (parse_time(parts[0]), parse_time(parts[1])))

    @staticmethod
    def _speed(argument: str) -> tuple[float, str]:
        """``1.5`` and ``=-1`` are absolute, ``+0.5``/``-0.5`` relative; ``%`` scales by 1/100."""
        if not argument:
            raise ValueError("`speed' needs a value")
        mode = "absolute"
        if argument.startswith("="):
            argument = argument[1:]
        elif argument[0] in "+-":
            mode = "relative"
        percent = argument.endswith("%")
        if percent:
            argument = argument[:-1]
        try:
            value = float(argument)
        except ValueError:
            raise ValueError(f"invalid speed `{argument}'") from None
        return (value / 100.0 if percent else value), mode

    @staticmethod
    def _seek(argument: str) -> tuple[float, str]:
        """``1:30`` absolute, ``+5s``/``-5s`` relative, ``#10s`` before the end."""
        if not argument:
            raise ValueError("`seek' needs a position")
        if argument.startswith("#"):
            return parse_time(argument[1:]), "end"
        if argument[0] in "+-":
            sign = -1.0 if argument[0] == "-" else 1.0
            return sign * parse_time(argument[1:]), "relative"
        return parse_time(argument), "absolute"
