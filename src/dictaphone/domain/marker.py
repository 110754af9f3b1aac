from dataclasses import dataclass


@dataclass(eq=False)
class Marker:
    """
    A point in time inside one audio slice.
    Markers compare by identity: two markers at the same offset are still
    distinct objects, and a slice never holds both.
    """
    offset: float  # milliseconds after the start of the owning slice
    label: str | None = None

    def rebased(self, shift: float) -> "Marker":
        """Return a fresh marker moved ``shift`` milliseconds towards the slice start."""
        return Marker(self.offset - shift, self.label)
