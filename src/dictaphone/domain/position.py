import numpy as np

from .audio_slice import AudioSlice
from .timeline import Timeline


class Position:
    """
    Cursor into a timeline.

    ``timecode`` is the absolute offset from the timeline start, ``slice`` the
    handle of the current slice and ``offset`` the offset inside it. Every
    move keeps ``timecode == slice_begin + offset``.
    """

    def __init__(self, timeline: Timeline):
        self.timeline = timeline
        self.timecode = 0.0
        self.slice: int | None = None
        self.offset = 0.0

    @property
    def current(self) -> AudioSlice | None:
        if self.slice is None:
            return None
        return self.timeline[self.slice]

    def snapshot(self) -> tuple[int | None, float, float]:
        return self.slice, self.offset, self.timecode

    @property
    def slice_begin(self) -> float:
        return self.timecode - self.offset

    @property
    def slice_end(self) -> float:
        duration = self.current.duration
        if duration is None:
            return self.timecode
        return self.slice_begin + duration

    def has_prev_slice(self) -> bool:
        return self.current is not None and self.current.predecessor is not None

    def has_next_slice(self) -> bool:
        return self.current is not None and self.current.successor is not None

    def rewind(self) -> None:
        """Move to the very start of the timeline."""
        self.slice = self.timeline.head
        self.offset = 0.0
        self.timecode = 0.0

    def enter_slice(self, handle: int, timecode: float) -> None:
        """Point at the start of slice ``handle``, which begins at ``timecode``."""
        self.slice = handle
        self.offset = 0.0
        self.timecode = float(timecode)

    def go_slice_begin(self) -> None:
        self.timecode -= self.offset
        self.offset = 0.0

    def go_slice_end(self) -> None:
        self.go_slice_begin()
        self.offset = float(self.current.duration)
        self.timecode += self.offset

    def go_prev_slice(self) -> None:
        self.go_slice_begin()
        self.slice = self.current.predecessor
        self.timecode -= self.current.duration

    def go_next_slice(self) -> None:
        self.go_slice_end()
        self.slice = self.current.successor
        self.offset = 0.0

    def go_slice_offset(self, offset: float) -> None:
        offset = float(np.clip(offset, 0.0, self.current.duration))
        self.timecode = self.slice_begin + offset
        self.offset = offset

    def latch_offset(self, offset: float) -> float:
        """Snap an in-slice offset to the slice edges within the latch tolerance."""
        duration = self.current.duration
        tol = self.timeline.latch_tolerance
        offset = float(np.clip(offset, 0.0, duration))
        if offset <= tol:
            return 0.0
        if offset >= duration - tol:
            return float(duration)
        return offset

    def seek(self, target_timecode: float) -> float:
        """Move to ``target_timecode``, clamped to the timeline; return the resulting timecode."""
        if self.slice is None:
            if self.timeline.is_empty():
                return self.timecode
            self.rewind()
        while True:
            if target_timecode < self.slice_begin:
                if self.has_prev_slice():
                    self.go_prev_slice()
                else:
                    self.go_slice_begin()
                    break
            elif target_timecode >= self.slice_end:
                if self.has_next_slice():
                    self.go_next_slice()
                else:
                    self.go_slice_end()
                    break
            else:
                self.offset = target_timecode - self.slice_begin
                self.timecode = float(target_timecode)
                break
        return self.timecode

    def seek_end(self, offset_from_end: float) -> float:
        """Move to ``offset_from_end`` before the end of the timeline, clamped at its start."""
        if self.slice is None:
            if self.timeline.is_empty():
                return self.timecode
            self.rewind()
        remaining = max(0.0, float(offset_from_end))
        while self.has_next_slice():
            self.go_next_slice()
        while self.current.duration < remaining:
            remaining -= self.current.duration
            if self.has_prev_slice():
                self.go_prev_slice()
            else:
                self.go_slice_begin()
                return self.timecode
        self.go_slice_offset(self.current.duration - remaining)
        return self.timecode
