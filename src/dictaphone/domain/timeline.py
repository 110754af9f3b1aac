import logging
from typing import Iterator

from dictaphone.errors import GeometryError

from .audio_slice import AudioSlice, MarkerMatch
from .marker import Marker

logger = logging.getLogger(__name__)

# milliseconds within which an offset snaps to a slice edge or a marker
LATCH_TOLERANCE = 200.0


class Timeline:
    """
    Arena of audio slices forming one doubly linked chain.

    Slices are addressed by their handle (index into the arena). A slice that
    is unlinked by a delete stays in the arena, marked ``linked=False``, and
    is never touched again.
    """

    def __init__(self, latch_tolerance: float = LATCH_TOLERANCE):
        self.latch_tolerance = float(latch_tolerance)
        self._slices: list[AudioSlice] = []
        self.head: int | None = None
        self.tail: int | None = None

    def __getitem__(self, handle: int) -> AudioSlice:
        return self._slices[handle]

    def __len__(self) -> int:
        return sum(1 for _ in self.chain())

    def is_empty(self) -> bool:
        return self.head is None

    def chain(self, start: int | None = None) -> Iterator[AudioSlice]:
        handle = self.head if start is None else start
        while handle is not None:
            current = self._slices[handle]
            yield current
            handle = current.successor

    def spans(self) -> Iterator[tuple[float, AudioSlice]]:
        """Yield ``(slice_begin_timecode, slice)`` along the chain."""
        begin = 0.0
        for current in self.chain():
            yield begin, current
            begin += current.duration or 0.0

    def total_duration(self) -> float:
        return sum(s.duration or 0.0 for s in self.chain())

    def add(self, new_slice: AudioSlice) -> int:
        """Place the first slice of an empty timeline."""
        if not self.is_empty():
            raise GeometryError("timeline already has slices, use insert()")
        handle = self._register(new_slice)
        self.head = self.tail = handle
        return handle

    # ===== geometry =====

    def insert(self, handle: int, offset: float, new_slice: AudioSlice) -> float:
        """
        Link ``new_slice`` into the chain at ``offset`` inside slice ``handle``.

        Offsets within the latch tolerance of an edge snap to that edge; any
        other offset splits the slice first. Returns the offset actually used.
        """
        current = self._closed(handle)
        self._check_offset(current, offset)
        tol = self.latch_tolerance

        near_begin = offset <= tol
        near_end = offset >= current.duration - tol
        if near_begin and (not near_end or offset <= current.duration - offset):
            self._link_before(handle, self._register(new_slice))
            return 0.0
        if near_end:
            self._link_after(handle, self._register(new_slice))
            return current.duration

        tail = self.split(handle, offset)
        self.insert(tail, 0.0, new_slice)
        return offset

    def split(self, handle: int, offset: float) -> int | None:
        """
        Cut slice ``handle`` in two at ``offset``; return the handle of the tail.

        Markers at or after ``offset`` move to the tail, re-based. Offsets
        within the latch tolerance of either edge are rejected (logged, None).
        """
        current = self._closed(handle)
        tol = self.latch_tolerance
        if offset <= tol or offset >= current.duration - tol:
            logger.warning(
                "invalid split offset %s for slice %s (duration %s)", offset, handle, current.duration
            )
            return None

        head_markers = [m for m in current.markers if m.offset < offset]
        tail_markers = [m.rebased(offset) for m in current.markers if m.offset >= offset]
        tail = AudioSlice(
            asset=current.asset,
            asset_offset=current.asset_offset + offset,
            duration=current.duration - offset,
            asset_duration=current.asset_duration,
            markers=tail_markers,
        )
        current.duration = offset
        current.markers = head_markers

        tail_handle = self._register(tail)
        self._link_after(handle, tail_handle)
        logger.debug("split slice %s at %s -> tail %s", handle, offset, tail_handle)
        return tail_handle

    def check_delete(self, handle: int, from_: float, to: float) -> None:
        """Raise GeometryError if ``delete(handle, from_, to)`` would be rejected. Mutates nothing."""
        current = self._closed(handle)
        if not 0 <= from_ < to <= current.duration:
            raise GeometryError(
                f"invalid delete range [{from_}, {to}) for slice of duration {current.duration}"
            )
        tol = self.latch_tolerance
        if from_ > tol and to < current.duration - tol and to - from_ <= tol:
            raise GeometryError(f"degenerate delete range [{from_}, {to})")

    def delete(self, handle: int, from_: float, to: float) -> None:
        """Remove the region ``[from_, to)`` measured from the start of slice ``handle``."""
        self.check_delete(handle, from_, to)
        current = self._slices[handle]
        tol = self.latch_tolerance
        near_begin = from_ <= tol
        near_end = to >= current.duration - tol

        if near_begin and near_end:
            self._unlink(handle)
        elif near_begin:
            current.asset_offset += to
            current.duration -= to
            current.markers = [m.rebased(to) for m in current.markers if m.offset >= to]
        elif near_end:
            current.duration = from_
            current.markers = [m for m in current.markers if m.offset <= from_]
        else:
            self.split(handle, to)
            middle = self.split(handle, from_)
            self._unlink(middle)
        logger.debug("deleted [%s, %s) from slice %s", from_, to, handle)

    def discard(self, handle: int) -> None:
        """Unlink a slice whatever its state, e.g. a recording that never produced audio."""
        if not self._slices[handle].linked:
            raise GeometryError(f"slice {handle} is not part of the chain")
        self._unlink(handle)
        logger.debug("discarded slice %s", handle)

    # ===== markers =====

    def find_marker(self, handle: int, offset: float) -> MarkerMatch:
        return self._slices[handle].find_marker(offset, self.latch_tolerance)

    def set_marker(self, handle: int, offset: float, label: str | None = None) -> Marker:
        """
        Mark ``offset`` in slice ``handle``. Offsets near the slice start snap
        to 0; offsets near the end become a marker at the start of the
        successor (or at the very end of the tail slice).
        """
        target, target_offset = self._marker_anchor(handle, offset)
        anchor = self._slices[target]
        existing = anchor.find_marker(target_offset, self.latch_tolerance).accurate
        if existing is not None:
            logger.debug("marker already present at %s in slice %s", existing.offset, target)
            return existing
        return anchor.add_marker(Marker(target_offset, label))

    def remove_marker(self, handle: int, offset: float) -> Marker:
        current = self._closed(handle)
        self._check_offset(current, offset)
        found = current.find_marker(offset, self.latch_tolerance).accurate
        owner = current
        if found is None:
            target, target_offset = self._marker_anchor(handle, offset)
            owner = self._slices[target]
            found = owner.find_marker(target_offset, self.latch_tolerance).accurate
        if found is None:
            raise GeometryError(f"no marker near offset {offset} in slice {handle}")
        owner.markers.remove(found)
        return found

    # ===== diagnostics =====

    def describe(self) -> list[str]:
        lines = []
        for begin, current in self.spans():
            marks = ", ".join(f"{m.offset:g}" for m in current.markers)
            lines.append(
                f"[{current.handle}] @{begin:g} {current.asset} "
                f"+{current.asset_offset:g} len={current.duration} marks=[{marks}]"
            )
        return lines

    def validate(self) -> None:
        """Raise GeometryError when the chain or marker invariants are broken."""
        seen: set[int] = set()
        previous: int | None = None
        for current in self.chain():
            if current.handle in seen:
                raise GeometryError(f"cycle at slice {current.handle}")
            seen.add(current.handle)
            if not current.linked or current.predecessor != previous:
                raise GeometryError(f"broken back link at slice {current.handle}")
            if current.duration is not None:
                offsets = [m.offset for m in current.markers]
                if offsets != sorted(offsets) or any(not 0 <= o <= current.duration for o in offsets):
                    raise GeometryError(f"markers out of order or bounds in slice {current.handle}")
            previous = current.handle
        if previous != self.tail:
            raise GeometryError("tail does not terminate the chain")

    # ===== internals =====

    def _register(self, new_slice: AudioSlice) -> int:
        if new_slice.linked:
            raise GeometryError(f"slice {new_slice.handle} is already part of a timeline")
        new_slice.handle = len(self._slices)
        new_slice.linked = True
        new_slice.predecessor = new_slice.successor = None
        self._slices.append(new_slice)
        return new_slice.handle

    def _closed(self, handle: int) -> AudioSlice:
        current = self._slices[handle]
        if current.is_open:
            raise GeometryError(f"slice {handle} is still being recorded")
        return current

    @staticmethod
    def _check_offset(current: AudioSlice, offset: float) -> None:
        if not 0 <= offset <= current.duration:
            raise GeometryError(f"offset {offset} outside slice of duration {current.duration}")

    def _marker_anchor(self, handle: int, offset: float) -> tuple[int, float]:
        current = self._closed(handle)
        self._check_offset(current, offset)
        tol = self.latch_tolerance
        if offset <= tol:
            return handle, 0.0
        if offset >= current.duration - tol:
            if current.successor is not None:
                return current.successor, 0.0
            return handle, current.duration
        return handle, offset

    def _link_before(self, anchor: int, new: int) -> None:
        a, n = self._slices[anchor], self._slices[new]
        n.predecessor = a.predecessor
        n.successor = anchor
        if a.predecessor is None:
            self.head = new
        else:
            self._slices[a.predecessor].successor = new
        a.predecessor = new

    def _link_after(self, anchor: int, new: int) -> None:
        a, n = self._slices[anchor], self._slices[new]
        n.successor = a.successor
        n.predecessor = anchor
        if a.successor is None:
            self.tail = new
        else:
            self._slices[a.successor].predecessor = new
        a.successor = new

    def _unlink(self, handle: int) -> None:
        current = self._slices[handle]
        if current.predecessor is None:
            self.head = current.successor
        else:
            self._slices[current.predecessor].successor = current.successor
        if current.successor is None:
            self.tail = current.predecessor
        else:
            self._slices[current.successor].predecessor = current.predecessor
        current.linked = False
