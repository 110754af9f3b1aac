"""
Transport state machine.

Every state implements the full operation set. An operation called on a state
that does not define it raises InvalidOperation from the base class; the
Transport facade logs it and keeps the current state. Operations return the
state the machine moves to. States hold no data, the session lives in
TransportContext, so each state is a module-level singleton.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np

from dictaphone.domain.audio_slice import AudioSlice
from dictaphone.errors import (
    AssetError,
    DictaphoneError,
    GeometryError,
    InvalidOperation,
    PlayerGone,
    PlayerProtocolError,
    ScriptError,
    TransportError,
    UnsupportedOperation,
)
from dictaphone.services.command_log import ScriptEntry, read_script
from dictaphone.services.encoder import reverse_asset_path
from dictaphone.services.recorder import wait_for_file

from .context import FORWARD, REVERSE, PlaybackToken, TransportContext
from .continuation import SegmentEnded, start_continuation

logger = logging.getLogger(__name__)

MIN_SPEED = 0.01
MAX_SPEED = 100.0


def resolve_speed(current: float, value: float, mode: str = "absolute") -> float:
    """Absolute target speed, magnitude clamped to [0.01, 100] with the sign kept. 0 stays 0."""
    if mode == "absolute":
        target = float(value)
    elif mode == "relative":
        target = float(current) + float(value)
    else:
        raise ValueError(f"unknown speed mode: {mode}")
    if target == 0:
        return 0.0
    return math.copysign(float(np.clip(abs(target), MIN_SPEED, MAX_SPEED)), target)


class TransportState:
    """Common interface. Nothing is valid unless a subclass says so."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"<{self.name}>"

    def _invalid(self, operation: str) -> InvalidOperation:
        return InvalidOperation(operation, self.name)

    def play(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("play")

    def record(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("record")

    def pause(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("pause")

    def resume(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("resume")

    def stop(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("stop")

    def speed(self, ctx: TransportContext, value: float, mode: str = "absolute") -> TransportState:
        raise self._invalid("speed")

    def seek(self, ctx: TransportContext, position: float, mode: str = "absolute") -> TransportState:
        raise self._invalid("seek")

    def seek_marker(self, ctx: TransportContext, count: int = 0) -> TransportState:
        raise self._invalid("seek_marker")

    def set_marker(self, ctx: TransportContext, label: str | None = None) -> TransportState:
        raise self._invalid("set_marker")

    def remove_marker(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("remove_marker")

    def delete(self, ctx: TransportContext, from_: float | None = None, to: float | None = None) -> TransportState:
        raise self._invalid("delete")

    def reset(self, ctx: TransportContext) -> TransportState:
        raise self._invalid("reset")

    def load(self, ctx: TransportContext, asset: str) -> TransportState:
        raise self._invalid("load")

    def open(self, ctx: TransportContext, script: str) -> TransportState:
        raise self._invalid("open")

    def on_segment_end(self, ctx: TransportContext, event: SegmentEnded) -> TransportState:
        logger.debug("ignoring player exit in state %s", self.name)
        return self


def _then(state: TransportState, operation: str, ctx: TransportContext, *args) -> TransportState:
    """Run ``operation`` on the state reached by a first step, remembering that state on failure."""
    try:
        return getattr(state, operation)(ctx, *args)
    except TransportError as exc:
        if exc.state is None:
            exc.state = state
        raise
    except DictaphoneError as exc:
        raise TransportError(str(exc), state=state) from exc


# ===== timeline helpers =====

def dump_slices(ctx: TransportContext) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        for line in ctx.timeline.describe():
            logger.debug("slice %s", line)


def splice_asset(ctx: TransportContext, asset: str | Path, duration: float | None) -> AudioSlice:
    """Put a new slice for ``asset`` at the cursor and move the cursor to its start."""
    new_slice = AudioSlice(asset=str(asset), duration=duration, asset_duration=duration)
    pos = ctx.position
    if pos.slice is None:
        handle = ctx.timeline.add(new_slice)
        pos.enter_slice(handle, 0.0)
    else:
        latched_offset = ctx.timeline.insert(pos.slice, pos.offset, new_slice)
        pos.enter_slice(new_slice.handle, pos.slice_begin + latched_offset)
    dump_slices(ctx)
    return new_slice


def seek_position(ctx: TransportContext, position: float, mode: str = "absolute") -> float:
    pos = ctx.position
    if mode == "absolute":
        return pos.seek(position)
    if mode == "relative":
        return pos.seek(pos.timecode + position)
    if mode == "end":
        return pos.seek_end(position)
    raise ValueError(f"unknown seek mode: {mode}")


def locate_marker(ctx: TransportContext, count: int) -> float | None:
    """
    Timecode of the marker ``count`` steps away from the cursor.

    ``count == 0`` picks the marker latched at the cursor, else the nearer of
    the previous and next marker (the earlier one on a tie). Positive counts
    walk forward, negative counts backward, across slice boundaries. When the
    walk runs out of markers the timeline edge is returned; None only for
    ``count == 0`` on a timeline without markers.
    """
    pos = ctx.position
    timeline = ctx.timeline
    if pos.current is None:
        return None
    match = timeline.find_marker(pos.slice, pos.offset)
    here = None if match.accurate is None else pos.slice_begin + match.accurate.offset
    if count == 0 and here is not None:
        return here

    # a marker at a slice end and one at the next slice start share a timecode
    marks = sorted({begin + m.offset for begin, s in timeline.spans() for m in s.markers})
    cursor = pos.timecode if here is None else here
    earlier = [t for t in marks if t < cursor]
    later = [t for t in marks if t > cursor]

    if count == 0:
        if not earlier:
            return later[0] if later else None
        if not later or cursor - earlier[-1] <= later[0] - cursor:
            return earlier[-1]
        return later[0]
    if count > 0:
        return later[count - 1] if count <= len(later) else timeline.total_duration()
    return earlier[count] if -count <= len(earlier) else 0.0


def delete_region(ctx: TransportContext, from_: float | None, to: float | None) -> tuple[float, float]:
    """Delete ``[from_, to)`` (timecodes) or the marker-to-marker region at the cursor."""
    pos = ctx.position
    timeline = ctx.timeline
    if pos.current is None:
        raise GeometryError("nothing to delete: timeline is empty")

    if from_ is None and to is None:
        current = pos.current
        match = timeline.find_marker(pos.slice, pos.offset)
        if match.accurate is not None:
            start = match.accurate.offset
        elif match.previous is not None:
            start = match.previous.offset
        else:
            start = 0.0
        end = match.next.offset if match.next is not None else current.duration
        from_, to = pos.slice_begin + start, pos.slice_begin + end
    elif from_ is None or to is None:
        raise GeometryError("delete needs both ends of the region")

    total = timeline.total_duration()
    from_, to = float(np.clip(from_, 0.0, total)), float(np.clip(to, 0.0, total))
    if from_ >= to:
        raise GeometryError(f"empty delete range [{from_}, {to})")

    # local bounds clamped to the slice, accumulated timecodes drift by ulps
    pieces = []
    for begin, current in timeline.spans():
        lo, hi = max(from_ - begin, 0.0), min(to - begin, current.duration)
        if hi > lo:
            pieces.append((current.handle, lo, hi))
    for handle, lo, hi in pieces:
        timeline.check_delete(handle, lo, hi)
    for handle, lo, hi in pieces:
        timeline.delete(handle, lo, hi)

    pos.rewind()
    pos.seek(from_)
    dump_slices(ctx)
    return from_, to


# ===== recorder helpers =====

def run_recorder(ctx: TransportContext) -> None:
    services = ctx.services
    asset = services.new_asset_path()
    try:
        services.recorder.start(asset)
    except OSError as exc:
        raise TransportError(f"failed to start recorder: {exc}") from exc
    ctx.process = services.recorder
    splice_asset(ctx, asset, None)


def stop_recorder(ctx: TransportContext) -> None:
    services = ctx.services
    recorder, ctx.process = ctx.process, None
    if recorder is not None:
        recorder.stop()

    pos = ctx.position
    recorded = pos.current
    wait_for_file(recorded.asset, services.file_poll_interval)
    services.encoder.reverse(recorded.asset)
    try:
        duration = services.prober.duration_ms(recorded.asset)
        if duration <= ctx.timeline.latch_tolerance:
            raise AssetError(f"take of {duration:g} ms is too short to keep")
    except DictaphoneError as exc:
        logger.warning("dropping recording %s: %s", recorded.asset, exc)
        begin = pos.slice_begin
        ctx.timeline.discard(recorded.handle)
        pos.rewind()
        pos.seek(begin)
        ctx.log_command("seek", pos.timecode)
        return

    recorded.duration = duration
    recorded.asset_duration = duration
    ctx.log_command("load", recorded.asset)
    pos.go_slice_end()
    dump_slices(ctx)
    ctx.log_command("seek", pos.timecode)


# ===== player helpers =====

def run_player(ctx: TransportContext) -> None:
    pos = ctx.position
    if pos.current is None:
        raise TransportError("nothing to play: timeline is empty")
    if ctx.speed == 0:
        raise TransportError("cannot start playback at speed 0")

    direction = FORWARD if ctx.speed > 0 else REVERSE
    if direction == FORWARD:
        while pos.offset >= pos.current.duration and pos.has_next_slice():
            pos.go_next_slice()
        current = pos.current
        asset = Path(current.asset)
        start = current.asset_offset + pos.offset
        length = current.duration - pos.offset
    else:
        while pos.offset <= 0 and pos.has_prev_slice():
            pos.go_prev_slice()
            pos.go_slice_end()
        current = pos.current
        asset = reverse_asset_path(current.asset)
        if not asset.exists():
            raise TransportError(f"no reverse asset for {current.asset}, cannot play backwards")
        asset_duration = current.asset_duration or current.asset_end
        start = asset_duration - (current.asset_offset + pos.offset)
        length = pos.offset
    if length <= 0:
        raise TransportError(f"nothing to play {direction}: cursor is at the timeline edge")

    token = PlaybackToken(direction)
    try:
        process = ctx.services.player.launch(asset, start, length, ctx.speed)
    except OSError as exc:
        raise TransportError(f"failed to start player: {exc}") from exc
    ctx.playback = token
    ctx.process = process
    start_continuation(process, token, ctx.events)


def pause_player(ctx: TransportContext) -> None:
    """Pause the player and move the cursor to where it stopped."""
    process = ctx.process
    if process is None:
        return
    try:
        seconds = process.query_time_position()
    except (PlayerGone, PlayerProtocolError) as exc:
        logger.warning("failed to query player position -> assume it already quit (%s)", exc)
        return

    pos = ctx.position
    current = pos.current
    media_offset = seconds * 1000.0
    if ctx.playback is not None and not ctx.playback.forward:
        asset_duration = current.asset_duration or current.asset_end
        slice_offset = asset_duration - media_offset - current.asset_offset
    else:
        slice_offset = media_offset - current.asset_offset
    pos.go_slice_offset(pos.latch_offset(slice_offset))
    ctx.log_command("seek", pos.timecode)


def resume_player(ctx: TransportContext) -> None:
    if ctx.speed == 0:
        raise TransportError("cannot resume playback at speed 0, set a speed first")
    process = ctx.process
    if process is None or process.exited:
        run_player(ctx)
        return
    try:
        process.resume()
    except PlayerGone as exc:
        logger.warning("player vanished while paused (%s), restarting it", exc)
        run_player(ctx)


def stop_player(ctx: TransportContext) -> None:
    if ctx.playback is not None:
        ctx.playback.cancel()
    pause_player(ctx)
    if ctx.process is not None:
        ctx.process.quit()
    ctx.process = None
    ctx.playback = None
    ctx.log_command("seek", ctx.position.timecode)


def speed_player(ctx: TransportContext, target: float, paused: bool) -> TransportState:
    previous = ctx.speed
    if target == 0:
        if not paused:
            pause_player(ctx)
        ctx.speed = 0.0
        return PLAYING_PAUSED

    if previous == 0 or (target > 0) != (previous > 0):
        stop_player(ctx)
        ctx.speed = target
        run_player(ctx)
        return PLAYING

    ctx.speed = target
    if ctx.process is not None:
        try:
            ctx.process.set_speed(target, keep_paused=paused)
        except PlayerGone as exc:
            logger.warning("failed to send speed to player: %s", exc)
    return PLAYING_PAUSED if paused else PLAYING


def stopped_or_initial(ctx: TransportContext) -> TransportState:
    """Stopped, or Initial when every recorded take was dropped."""
    return INITIAL if ctx.timeline.is_empty() else STOPPED


def advance_segment(ctx: TransportContext, token: PlaybackToken) -> bool:
    """Move the cursor across the boundary the player just reached; False at a timeline edge."""
    pos = ctx.position
    if token.forward:
        pos.go_slice_end()
        if not pos.has_next_slice():
            return False
        pos.go_next_slice()
    else:
        pos.go_slice_begin()
        if not pos.has_prev_slice():
            return False
        pos.go_prev_slice()
        pos.go_slice_end()
    return True


# ===== states =====

class Initial(TransportState):
    """Empty session; entered on start-up, reset and before replaying a script."""

    def record(self, ctx: TransportContext) -> TransportState:
        run_recorder(ctx)
        return RECORDING

    def load(self, ctx: TransportContext, asset: str) -> TransportState:
        return STOPPED.load(ctx, asset)

    def reset(self, ctx: TransportContext) -> TransportState:
        ctx.reset()
        return self

    def open(self, ctx: TransportContext, script: str) -> TransportState:
        stopped = STOPPED
        try:
            entries = list(read_script(script))
        except OSError as exc:
            raise ScriptError(f"cannot open script {script}: {exc}") from exc

        for entry in entries:
            if not isinstance(entry, ScriptEntry):
                logger.warning("ignoring line `%s'", entry)
                continue
            try:
                self._replay(stopped, ctx, entry)
            except (DictaphoneError, ValueError) as exc:
                ctx.reset()
                raise ScriptError(f"{script}:{entry.line_no}: {exc}") from exc

        if ctx.timeline.is_empty():
            logger.warning("script %s did not load any audio", script)
            return self
        return stopped

    @staticmethod
    def _replay(stopped: TransportState, ctx: TransportContext, entry: ScriptEntry) -> None:
        argument = entry.argument
        if entry.command == "load":
            stopped.load(ctx, argument)
        elif entry.command == "seek":
            stopped.seek(ctx, float(argument))
        elif entry.command == "set_marker":
            stopped.set_marker(ctx, argument or None)
        elif entry.command == "rm_marker":
            stopped.remove_marker(ctx)
        elif entry.command == "delete":
            from_, to = (float(part) for part in argument.split())
            stopped.delete(ctx, from_, to)
        else:
            logger.debug("not replaying line %s: %s", entry.line_no, entry.command)


class SessionState(TransportState):
    """Behaviour shared by every state that has a timeline to work on."""

    def play(self, ctx: TransportContext) -> TransportState:
        run_player(ctx)
        return PLAYING

    def record(self, ctx: TransportContext) -> TransportState:
        run_recorder(ctx)
        return RECORDING

    def speed(self, ctx: TransportContext, value: float, mode: str = "absolute") -> TransportState:
        ctx.speed = resolve_speed(ctx.speed, value, mode)
        ctx.log_command("speed", ctx.speed)
        return self

    def seek(self, ctx: TransportContext, position: float, mode: str = "absolute") -> TransportState:
        state = self.stop(ctx)
        seek_position(ctx, position, mode)
        ctx.log_command("seek", ctx.position.timecode)
        return state

    def seek_marker(self, ctx: TransportContext, count: int = 0) -> TransportState:
        target = locate_marker(ctx, count)
        if target is None:
            raise GeometryError("seek_marker failed, no marker found")
        return self.seek(ctx, target)

    def set_marker(self, ctx: TransportContext, label: str | None = None) -> TransportState:
        pos = ctx.position
        if pos.current is None:
            raise GeometryError("cannot set a marker on an empty timeline")
        ctx.timeline.set_marker(pos.slice, pos.offset, label)
        if label:
            ctx.log_command("set_marker", label)
        else:
            ctx.log_command("set_marker")
        return self

    def remove_marker(self, ctx: TransportContext) -> TransportState:
        pos = ctx.position
        if pos.current is None:
            raise GeometryError("no markers on an empty timeline")
        ctx.timeline.remove_marker(pos.slice, pos.offset)
        ctx.log_command("rm_marker")
        return self

    def delete(self, ctx: TransportContext, from_: float | None = None, to: float | None = None) -> TransportState:
        state = self.stop(ctx)
        try:
            deleted = delete_region(ctx, from_, to)
        except DictaphoneError as exc:
            if state is not self:
                raise TransportError(str(exc), state=state) from exc
            raise
        ctx.log_command("delete", *deleted)
        return state

    def reset(self, ctx: TransportContext) -> TransportState:
        self.stop(ctx)
        ctx.reset()
        return INITIAL

    def open(self, ctx: TransportContext, script: str) -> TransportState:
        return _then(self.reset(ctx), "open", ctx, script)


class Stopped(SessionState):
    def stop(self, ctx: TransportContext) -> TransportState:
        return self

    def load(self, ctx: TransportContext, asset: str) -> TransportState:
        services = ctx.services
        duration = services.prober.duration_ms(asset)
        if not reverse_asset_path(asset).exists():
            services.encoder.reverse(asset)
        splice_asset(ctx, asset, duration)
        ctx.log_command("load", asset)
        return self


class Playing(SessionState):
    def play(self, ctx: TransportContext) -> TransportState:
        return self

    def record(self, ctx: TransportContext) -> TransportState:
        return _then(self.stop(ctx), "record", ctx)

    def pause(self, ctx: TransportContext) -> TransportState:
        pause_player(ctx)
        return PLAYING_PAUSED

    def stop(self, ctx: TransportContext) -> TransportState:
        stop_player(ctx)
        return STOPPED

    def speed(self, ctx: TransportContext, value: float, mode: str = "absolute") -> TransportState:
        state = speed_player(ctx, resolve_speed(ctx.speed, value, mode), paused=False)
        ctx.log_command("speed", ctx.speed)
        return state

    def seek(self, ctx: TransportContext, position: float, mode: str = "absolute") -> TransportState:
        stopped = self.stop(ctx)
        return _then(_then(stopped, "seek", ctx, position, mode), "play", ctx)

    def seek_marker(self, ctx: TransportContext, count: int = 0) -> TransportState:
        pause_player(ctx)
        return super().seek_marker(ctx, count)

    def set_marker(self, ctx: TransportContext, label: str | None = None) -> TransportState:
        pause_player(ctx)
        try:
            super().set_marker(ctx, label)
        finally:
            resume_player(ctx)
        return self

    def remove_marker(self, ctx: TransportContext) -> TransportState:
        pause_player(ctx)
        try:
            super().remove_marker(ctx)
        finally:
            resume_player(ctx)
        return self

    def on_segment_end(self, ctx: TransportContext, event: SegmentEnded) -> TransportState:
        token = event.token
        if token is not ctx.playback or token.cancelled:
            return super().on_segment_end(ctx, event)
        ctx.process = None
        if not advance_segment(ctx, token):
            ctx.playback = None
            ctx.log_command("seek", ctx.position.timecode)
            ctx.log_command("stop")
            return STOPPED
        logger.debug("continuing playback at %s", ctx.position.timecode)
        try:
            run_player(ctx)
        except TransportError as exc:
            ctx.playback = None
            raise TransportError(f"playback stopped: {exc}", state=STOPPED) from exc
        return self


class PlayingPaused(SessionState):
    def play(self, ctx: TransportContext) -> TransportState:
        resume_player(ctx)
        return PLAYING

    def record(self, ctx: TransportContext) -> TransportState:
        return _then(self.stop(ctx), "record", ctx)

    def pause(self, ctx: TransportContext) -> TransportState:
        return self

    def resume(self, ctx: TransportContext) -> TransportState:
        resume_player(ctx)
        return PLAYING

    def stop(self, ctx: TransportContext) -> TransportState:
        stop_player(ctx)
        return STOPPED

    def speed(self, ctx: TransportContext, value: float, mode: str = "absolute") -> TransportState:
        state = speed_player(ctx, resolve_speed(ctx.speed, value, mode), paused=True)
        ctx.log_command("speed", ctx.speed)
        return state

    def on_segment_end(self, ctx: TransportContext, event: SegmentEnded) -> TransportState:
        token = event.token
        if token is not ctx.playback or token.cancelled:
            return super().on_segment_end(ctx, event)
        # the player ran out while we were pausing it; stay paused at the boundary
        ctx.process = None
        if not advance_segment(ctx, token):
            ctx.playback = None
            ctx.log_command("seek", ctx.position.timecode)
            return STOPPED
        return self


class Recording(SessionState):
    def play(self, ctx: TransportContext) -> TransportState:
        return _then(self.stop(ctx), "play", ctx)

    def record(self, ctx: TransportContext) -> TransportState:
        return self

    def pause(self, ctx: TransportContext) -> TransportState:
        stop_recorder(ctx)
        return RECORDING_PAUSED

    def stop(self, ctx: TransportContext) -> TransportState:
        stop_recorder(ctx)
        return stopped_or_initial(ctx)

    def seek_marker(self, ctx: TransportContext, count: int = 0) -> TransportState:
        return _then(self.stop(ctx), "seek_marker", ctx, count)

    def set_marker(self, ctx: TransportContext, label: str | None = None) -> TransportState:
        raise UnsupportedOperation("set_marker is not supported while recording")

    def remove_marker(self, ctx: TransportContext) -> TransportState:
        raise UnsupportedOperation("rm_marker is not supported while recording")

    def delete(self, ctx: TransportContext, from_: float | None = None, to: float | None = None) -> TransportState:
        raise UnsupportedOperation("delete is not supported while recording")


class RecordingPaused(SessionState):
    def play(self, ctx: TransportContext) -> TransportState:
        return _then(self.stop(ctx), "play", ctx)

    def record(self, ctx: TransportContext) -> TransportState:
        run_recorder(ctx)
        return RECORDING

    def pause(self, ctx: TransportContext) -> TransportState:
        return self

    def resume(self, ctx: TransportContext) -> TransportState:
        run_recorder(ctx)
        return RECORDING

    def stop(self, ctx: TransportContext) -> TransportState:
        # the segment was finalized when recording paused
        ctx.log_command("seek", ctx.position.timecode)
        return stopped_or_initial(ctx)


INITIAL = Initial()
STOPPED = Stopped()
PLAYING = Playing()
PLAYING_PAUSED = PlayingPaused()
RECORDING = Recording()
RECORDING_PAUSED = RecordingPaused()
