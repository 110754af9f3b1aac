"""
Transport facade: the single entry point the dispatcher, the REPL and the Qt
panel talk to.

It owns the TransportContext and the current state. Every call is serialized
with an RLock. Player continuation events arrive on ``events``; whoever owns
the transport (REPL loop, Qt timer, tests) feeds them back through
``handle_event`` or ``process_events`` on its own thread.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any

from dictaphone.config import DictaphoneSettings
from dictaphone.domain.timeline import LATCH_TOLERANCE
from dictaphone.errors import DictaphoneError, InvalidOperation, TransportError, UnsupportedOperation

from . import states
from .context import TransportContext, TransportServices
from .continuation import SegmentEnded

logger = logging.getLogger(__name__)

OK = "ok"
INVALID = "invalid"
UNSUPPORTED = "unsupported"
FAILED = "failed"

# operations whose resolved arguments the states log themselves
_SELF_LOGGING = {"seek", "seek_marker", "set_marker", "remove_marker", "delete", "speed", "load", "open"}


@dataclass
class CommandResult:
    operation: str
    status: str
    state: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == OK


class Transport:
    def __init__(
        self,
        services: TransportServices,
        latch_tolerance: float = LATCH_TOLERANCE,
        default_speed: float = 1.0,
    ) -> None:
        self.context = TransportContext(services, latch_tolerance, default_speed)
        self.state: states.TransportState = states.INITIAL
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: DictaphoneSettings) -> "Transport":
        return cls(
            TransportServices.from_settings(settings),
            latch_tolerance=settings.latch_tolerance_ms,
            default_speed=settings.default_speed,
        )

    @property
    def events(self) -> queue.Queue:
        return self.context.events

    # ===== dispatch =====

    def dispatch(self, operation: str, *args: Any) -> CommandResult:
        """Run one transport operation on the current state and adopt the resulting state."""
        with self._lock:
            before = self.state
            handler = getattr(before, operation, None)
            if handler is None or operation.startswith("_") or operation == "on_segment_end":
                return self._report(operation, INVALID, f"unknown operation `{operation}'")
            try:
                self.state = handler(self.context, *args)
            except InvalidOperation as exc:
                self._adopt(exc)
                return self._report(operation, INVALID, str(exc))
            except UnsupportedOperation as exc:
                self._adopt(exc)
                return self._report(operation, UNSUPPORTED, str(exc))
            except DictaphoneError as exc:
                self._adopt(exc)
                return self._report(operation, FAILED, str(exc))

            if operation not in _SELF_LOGGING:
                self.context.log_command(operation)
            if self.state is not before:
                logger.debug("%s: %s -> %s", operation, before.name, self.state.name)
            return CommandResult(operation, OK, self.state.name)

    def _adopt(self, exc: DictaphoneError) -> None:
        if isinstance(exc, TransportError) and exc.state is not None:
            logger.debug("adopting state %s after partial %s", exc.state.name, type(exc).__name__)
            self.state = exc.state

    def _report(self, operation: str, status: str, message: str) -> CommandResult:
        logger.warning("%s: %s", operation, message)
        return CommandResult(operation, status, self.state.name, message)

    # ===== continuation events =====

    def process_events(self, timeout: float | None = None) -> int:
        """
        Apply queued player events. With a ``timeout`` the first event is
        waited for up to that many seconds. Returns the number handled.
        """
        handled = 0
        block = timeout is not None
        while True:
            try:
                event = self.events.get(block=block, timeout=timeout)
            except queue.Empty:
                return handled
            block = False
            if isinstance(event, SegmentEnded):
                self.handle_event(event)
                handled += 1
            else:
                logger.warning("dropping unexpected event %r", event)

    def handle_event(self, event: SegmentEnded) -> None:
        with self._lock:
            before = self.state
            try:
                self.state = before.on_segment_end(self.context, event)
            except DictaphoneError as exc:
                self._adopt(exc)
                logger.warning("continuation failed: %s", exc)
            if self.state is not before:
                logger.debug("segment end: %s -> %s", before.name, self.state.name)

    # ===== operations =====

    def play(self) -> CommandResult:
        return self.dispatch("play")

    def record(self) -> CommandResult:
        return self.dispatch("record")

    def pause(self) -> CommandResult:
        return self.dispatch("pause")

    def resume(self) -> CommandResult:
        return self.dispatch("resume")

    def stop(self) -> CommandResult:
        return self.dispatch("stop")

    def speed(self, value: float, mode: str = "absolute") -> CommandResult:
        return self.dispatch("speed", value, mode)

    def seek(self, position: float, mode: str = "absolute") -> CommandResult:
        return self.dispatch("seek", position, mode)

    def seek_marker(self, count: int = 0) -> CommandResult:
        return self.dispatch("seek_marker", count)

    def set_marker(self, label: str | None = None) -> CommandResult:
        return self.dispatch("set_marker", label)

    def remove_marker(self) -> CommandResult:
        return self.dispatch("remove_marker")

    def delete(self, from_: float | None = None, to: float | None = None) -> CommandResult:
        return self.dispatch("delete", from_, to)

    def reset(self) -> CommandResult:
        return self.dispatch("reset")

    def load(self, asset: str) -> CommandResult:
        return self.dispatch("load", str(asset))

    def open(self, script: str) -> CommandResult:
        return self.dispatch("open", str(script))

    # ===== inspection =====

    def status(self) -> dict:
        with self._lock:
            ctx = self.context
            return {
                "state": self.state.name,
                "timecode": ctx.position.timecode,
                "speed": ctx.speed,
                "slices": len(ctx.timeline),
                "duration": ctx.timeline.total_duration(),
            }

    def describe(self) -> list[str]:
        with self._lock:
            return self.context.timeline.describe()
