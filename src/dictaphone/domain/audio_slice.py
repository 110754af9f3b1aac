from dataclasses import dataclass, field

import numpy as np

from .marker import Marker


@dataclass
class MarkerMatch:
    """Result of a marker lookup around an offset inside one slice."""
    accurate: Marker | None = None
    previous: Marker | None = None
    next: Marker | None = None


@dataclass
class AudioSlice:
    """
    Core domain entity: an interval of one audio asset placed in the timeline.
    Offsets and durations are milliseconds. ``duration`` is None while the
    asset is still being recorded. Neighbours are arena handles owned by the
    Timeline, not object references.
    """
    asset: str
    asset_offset: float = 0.0
    duration: float | None = None
    asset_duration: float | None = None
    markers: list[Marker] = field(default_factory=list)
    predecessor: int | None = None
    successor: int | None = None
    handle: int = -1
    linked: bool = False

    def __post_init__(self) -> None:
        self._normalize_markers()

    @property
    def is_open(self) -> bool:
        return self.duration is None

    @property
    def asset_end(self) -> float | None:
        if self.duration is None:
            return None
        return self.asset_offset + self.duration

    def marker_offsets(self) -> np.ndarray:
        return np.asarray([m.offset for m in self.markers], dtype=np.float64)

    def find_marker(self, offset: float, tolerance: float) -> MarkerMatch:
        """
        Classify the markers around ``offset``.

        A marker within ``tolerance`` is reported as ``accurate`` (the closest
        one, the lower index on a tie) together with its neighbours; otherwise
        the nearest markers strictly before and after are reported.
        """
        if not self.markers:
            return MarkerMatch()

        offsets = self.marker_offsets()
        lo = int(np.searchsorted(offsets, offset - tolerance, side="left"))
        hi = int(np.searchsorted(offsets, offset + tolerance, side="right"))

        if lo < hi:
            idx = lo + int(np.argmin(np.abs(offsets[lo:hi] - offset)))
            return MarkerMatch(
                accurate=self.markers[idx],
                previous=self.markers[idx - 1] if idx > 0 else None,
                next=self.markers[idx + 1] if idx + 1 < len(self.markers) else None,
            )

        return MarkerMatch(
            previous=self.markers[lo - 1] if lo > 0 else None,
            next=self.markers[lo] if lo < len(self.markers) else None,
        )

    def add_marker(self, marker: Marker) -> Marker:
        idx = int(np.searchsorted(self.marker_offsets(), marker.offset, side="right"))
        self.markers.insert(idx, marker)
        return marker

    def first_marker(self) -> Marker | None:
        return self.markers[0] if self.markers else None

    def last_marker(self) -> Marker | None:
        return self.markers[-1] if self.markers else None

    def _normalize_markers(self) -> None:
        self.markers.sort(key=lambda m: m.offset)
        if self.duration is not None:
            self.markers = [m for m in self.markers if 0 <= m.offset <= self.duration]
