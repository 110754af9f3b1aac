"""Exception hierarchy shared by the timeline, services and transport."""

from __future__ import annotations

from typing import Any


class DictaphoneError(Exception):
    """Root of all errors the transport reports instead of crashing."""


class TransportError(DictaphoneError):
    """A transport operation could not be carried out in the current state.

    ``state`` is set when a composite transition failed half way, e.g. a
    ``stop`` succeeded and the following ``play`` did not. The caller then
    adopts that state instead of keeping the one it started from.
    """

    def __init__(self, message: str, state: Any = None) -> None:
        super().__init__(message)
        self.state = state


class InvalidOperation(TransportError):
    def __init__(self, operation: str, state_name: str, state: Any = None) -> None:
        super().__init__(
            f"invalid operation `{operation}' for current state `{state_name}'", state
        )
        self.operation = operation
        self.state_name = state_name


class UnsupportedOperation(TransportError):
    """The operation exists but is not available (yet) in this situation."""


class GeometryError(DictaphoneError, ValueError):
    """Offset outside slice bounds or a degenerate split/delete."""


class PlayerGone(DictaphoneError):
    """The player process exited or its pipe broke."""


class PlayerProtocolError(DictaphoneError):
    """The player answered with a line we could not parse."""


class ScriptError(DictaphoneError):
    """A session script could not be replayed."""


class AssetError(DictaphoneError):
    """An audio asset is missing or its duration could not be probed."""
