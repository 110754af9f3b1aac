from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PySide6.QtCore import Signal
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import QWidget


@dataclass
class SliceBox:
    """Horizontal pixel extent of one slice and its markers."""
    left: int
    right: int
    markers: list[int]
    asset: str


class TimelineWidget(QWidget):
    """Slice chain of the transport with markers and a cursor."""
    positionClicked = Signal(float)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._spans: list[tuple[float, float, list[float], str]] = []
        self._cursor_ms: float | None = None
        self._duration_ms = 0.0
        self.setMinimumHeight(72)

    def set_timeline(self, timeline, cursor_ms: float | None) -> None:
        """Take a snapshot of the chain; only closed slices are drawn with their length."""
        spans = []
        for begin, current in timeline.spans():
            duration = current.duration or 0.0
            spans.append((begin, duration, [m.offset for m in current.markers], current.asset))
        self._spans = spans
        self._duration_ms = sum(span[1] for span in spans)
        self._cursor_ms = cursor_ms
        self.update()

    @staticmethod
    def layout_slices(spans, width: int) -> list[SliceBox]:
        """
        Map ``(begin_ms, duration_ms, marker_offsets, asset)`` spans onto
        ``width`` pixels. Adjacent boxes share their boundary pixel.
        """
        total = sum(span[1] for span in spans)
        if width <= 1 or total <= 0:
            return []
        scale = (width - 1) / total
        boxes = []
        for begin, duration, markers, asset in spans:
            left = int(round(begin * scale))
            right = int(round((begin + duration) * scale))
            marks = [int(round((begin + offset) * scale)) for offset in markers]
            boxes.append(SliceBox(left, right, marks, asset))
        return boxes

    def cursor_x(self, width: int) -> int | None:
        if self._cursor_ms is None or self._duration_ms <= 0 or width <= 1:
            return None
        ratio = float(np.clip(self._cursor_ms / self._duration_ms, 0.0, 1.0))
        return int(ratio * (width - 1))

    def paintEvent(self, event) -> None:  # noqa: N802 (Qt API)
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, False)
        rect = self.rect()
        painter.fillRect(rect, QColor("#111111"))
        height = rect.height()

        boxes = self.layout_slices(self._spans, rect.width())
        if not boxes:
            painter.setPen(QPen(QColor("#9D9D9D")))
            painter.drawText(6, 16, "empty")
            return

        fills = (QColor("#1B2F4F"), QColor("#24406B"))
        border_pen = QPen(QColor("#3A3A3A"))
        marker_pen = QPen(QColor("#6EE7FF"))
        for idx, box in enumerate(boxes):
            painter.fillRect(box.left, 8, max(1, box.right - box.left), height - 16, fills[idx % 2])
            painter.setPen(border_pen)
            painter.drawLine(box.left, 0, box.left, height)
            painter.setPen(marker_pen)
            for x in box.markers:
                painter.drawLine(x, 4, x, height - 4)

        playhead_x = self.cursor_x(rect.width())
        if playhead_x is not None:
            playhead_pen = QPen(QColor("#FF8C42"))
            playhead_pen.setWidth(2)
            painter.setPen(playhead_pen)
            painter.drawLine(playhead_x, 0, playhead_x, height)

    def mousePressEvent(self, event) -> None:  # noqa: N802 (Qt API)
        width = max(1, self.rect().width() - 1)
        if self._duration_ms <= 0:
            return
        ratio = float(np.clip(event.position().x() / width, 0.0, 1.0))
        self.positionClicked.emit(ratio * self._duration_ms)
