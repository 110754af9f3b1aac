import pytest

from dictaphone.domain.audio_slice import AudioSlice
from dictaphone.domain.marker import Marker
from dictaphone.domain.timeline import Timeline
from dictaphone.errors import GeometryError


def slice_with_markers(*offsets):
    return AudioSlice(asset="a.wav", duration=1000.0, markers=[Marker(o) for o in offsets])


def test_find_marker_within_tolerance_is_accurate():
    current = slice_with_markers(100.0, 500.0, 900.0)

    match = current.find_marker(520.0, 200.0)

    assert match.accurate.offset == 500.0
    assert match.previous.offset == 100.0
    assert match.next.offset == 900.0


def test_find_marker_between_markers_reports_neighbours():
    current = slice_with_markers(100.0, 500.0, 900.0)

    match = current.find_marker(750.0, 100.0)

    assert match.accurate is None
    assert match.previous.offset == 500.0
    assert match.next.offset == 900.0


def test_find_marker_before_first_and_after_last():
    current = slice_with_markers(500.0)

    assert current.find_marker(100.0, 50.0).next.offset == 500.0
    assert current.find_marker(100.0, 50.0).previous is None
    assert current.find_marker(900.0, 50.0).previous.offset == 500.0
    assert current.find_marker(900.0, 50.0).next is None


def test_find_marker_tie_prefers_the_earlier_marker():
    current = slice_with_markers(400.0, 600.0)

    assert current.find_marker(500.0, 200.0).accurate.offset == 400.0


def test_find_marker_without_markers():
    match = slice_with_markers().find_marker(500.0, 200.0)

    assert match.accurate is None and match.previous is None and match.next is None


def test_markers_are_kept_sorted_and_in_bounds():
    current = AudioSlice(
        asset="a.wav", duration=1000.0, markers=[Marker(800.0), Marker(1200.0), Marker(100.0)]
    )

    assert [m.offset for m in current.markers] == [100.0, 800.0]
    current.add_marker(Marker(300.0))
    assert [m.offset for m in current.markers] == [100.0, 300.0, 800.0]


def test_set_marker_snaps_to_slice_start(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    marker = timeline.set_marker(handle, 150.0)

    assert marker.offset == 0.0
    assert timeline[handle].markers == [marker]


def test_set_marker_near_end_goes_to_the_successor(build_timeline):
    timeline, (first, second) = build_timeline(1000.0, 2000.0)

    marker = timeline.set_marker(first, 950.0)

    assert timeline[first].markers == []
    assert timeline[second].markers == [marker]
    assert marker.offset == 0.0


def test_set_marker_near_end_of_tail_marks_the_end(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    assert timeline.set_marker(handle, 2900.0).offset == 3000.0


def test_set_marker_returns_existing_marker_within_tolerance(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    first = timeline.set_marker(handle, 1000.0, "intro")
    again = timeline.set_marker(handle, 1100.0)

    assert again is first
    assert first.label == "intro"
    assert len(timeline[handle].markers) == 1


def test_set_marker_keeps_order(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    timeline.set_marker(handle, 2000.0)
    timeline.set_marker(handle, 1000.0)

    assert [m.offset for m in timeline[handle].markers] == [1000.0, 2000.0]


def test_remove_marker_near_the_cursor(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    marker = timeline.set_marker(handle, 1000.0)

    assert timeline.remove_marker(handle, 1050.0) is marker
    assert timeline[handle].markers == []


def test_remove_marker_stored_on_the_successor(build_timeline):
    timeline, (first, second) = build_timeline(1000.0, 2000.0)
    timeline.set_marker(first, 990.0)

    timeline.remove_marker(first, 990.0)

    assert timeline[second].markers == []


def test_remove_marker_without_marker_raises(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    with pytest.raises(GeometryError):
        timeline.remove_marker(handle, 1000.0)


def test_marker_outside_the_slice_raises():
    timeline = Timeline()
    handle = timeline.add(AudioSlice(asset="a.wav", duration=1000.0))

    with pytest.raises(GeometryError):
        timeline.set_marker(handle, 1500.0)
