import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
pytest.importorskip("PySide6")

from PySide6.QtWidgets import QApplication  # noqa: E402

from dictaphone.ui.main_window import TransportWindow  # noqa: E402
from dictaphone.ui.timeline_widget import TimelineWidget  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    return QApplication.instance() or QApplication([])


def test_layout_slices_maps_spans_to_pixels():
    spans = [(0.0, 1000.0, [500.0], "a.wav"), (1000.0, 3000.0, [], "b.wav")]

    boxes = TimelineWidget.layout_slices(spans, 401)

    assert [(b.left, b.right) for b in boxes] == [(0, 100), (100, 400)]
    assert boxes[0].markers == [50]
    assert boxes[1].asset == "b.wav"


def test_layout_slices_of_empty_timeline():
    assert TimelineWidget.layout_slices([], 400) == []
    assert TimelineWidget.layout_slices([(0.0, 1000.0, [], "a.wav")], 1) == []


def test_timeline_widget_cursor_is_clamped(qapp, build_timeline):
    timeline, _ = build_timeline(1000.0, 1000.0)
    widget = TimelineWidget()

    widget.set_timeline(timeline, 5000.0)
    assert widget.cursor_x(101) == 100

    widget.set_timeline(timeline, None)
    assert widget.cursor_x(101) is None


def test_window_buttons_drive_the_transport(qapp, transport, make_asset):
    transport.load(make_asset("a.wav", 3000))
    window = TransportWindow(transport)

    window.play_button.click()
    assert transport.state.name == "Playing"

    window.stop_button.click()
    assert transport.state.name == "Stopped"
    assert window.status_label.text().startswith("Stopped")

    window.pause_button.click()
    assert "invalid operation `pause'" in window.status_label.text()

    window.speed_slider.setValue(-50)
    assert transport.context.speed == -0.5
    window.close()
