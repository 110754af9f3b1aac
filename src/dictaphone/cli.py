"""
Console entry point.

Commands are read from stdin on a reader thread and put on the transport's
event queue, next to the player continuation events, so the main thread is
the only one touching the transport. The command transcript goes to stdout
(or ``--command-log``), diagnostics to stderr.
"""

import argparse
import logging
import sys
import threading
from dataclasses import dataclass

from dictaphone.config import get_settings
from dictaphone.logging_config import setup_logging
from dictaphone.transport.continuation import SegmentEnded
from dictaphone.transport.session import Transport
from dictaphone.use_cases.parse_command import ParseCommand
from dictaphone.use_cases.run_command import RunCommand

logger = logging.getLogger("dictaphone.cli")


@dataclass(frozen=True)
class ConsoleLine:
    text: str


@dataclass(frozen=True)
class ConsoleClosed:
    pass


def _read_stdin(events) -> None:
    for line in sys.stdin:
        events.put(ConsoleLine(line.rstrip("\n")))
    events.put(ConsoleClosed())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dictaphone",
        description="Dictaphone transport: record, play, mark and splice audio from text commands on stdin.",
    )
    parser.add_argument("--script", help="Session script to open before reading commands")
    parser.add_argument("--audio-dir", help="Directory for new recordings")
    parser.add_argument("--log-file", help="Also write diagnostics to this file")
    parser.add_argument("--command-log", help="Append the command transcript to this file instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--gui", action="store_true", help="Open the Qt transport panel")
    return parser


def run_console(transport: Transport) -> int:
    parse, run = ParseCommand(), RunCommand(transport)
    reader = threading.Thread(target=_read_stdin, args=(transport.events,), name="stdin-reader", daemon=True)
    reader.start()

    while True:
        event = transport.events.get()
        if isinstance(event, SegmentEnded):
            transport.handle_event(event)
            continue
        if isinstance(event, ConsoleClosed):
            transport.reset()
            return 0
        try:
            command = parse.execute(event.text)
        except ValueError as exc:
            logger.warning("%s", exc)
            continue
        if command is None:
            continue
        result = run.execute(command)
        if command.operation == "status":
            print(" ".join(f"{key}={value}" for key, value in result.items()), file=sys.stderr)
            for line in transport.describe():
                print(f"  {line}", file=sys.stderr)
        if command.operation == "quit":
            return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    updates = {}
    if args.audio_dir:
        updates["audio_dir"] = args.audio_dir
    if args.command_log:
        updates["command_log_path"] = args.command_log
    if args.verbose:
        updates["log_level"] = "DEBUG"
    if updates:
        settings = settings.model_copy(update=updates)

    setup_logging(settings.log_level, args.log_file)
    transport = Transport.from_settings(settings)

    try:
        if args.script:
            result = transport.open(args.script)
            if not result.ok:
                logger.error("could not open %s: %s", args.script, result.message)
        if args.gui:
            from dictaphone.ui.main_window import run_window

            return run_window(transport)
        return run_console(transport)
    except KeyboardInterrupt:
        transport.reset()
        return 130
    finally:
        transport.context.services.command_log.close()


if __name__ == "__main__":
    sys.exit(main())
