import pytest

from dictaphone.domain.audio_slice import AudioSlice
from dictaphone.domain.marker import Marker
from dictaphone.domain.timeline import Timeline
from dictaphone.errors import GeometryError


def durations(timeline):
    return [s.duration for s in timeline.chain()]


def test_split_moves_markers_to_the_tail(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    timeline[handle].markers = [Marker(500.0), Marker(1500.0), Marker(2500.0)]

    tail = timeline.split(handle, 1500.0)

    head = timeline[handle]
    assert [m.offset for m in head.markers] == [500.0]
    assert [m.offset for m in timeline[tail].markers] == [0.0, 1000.0]
    assert timeline[tail].asset_offset == 1500.0
    assert durations(timeline) == [1500.0, 1500.0]
    assert head.successor == tail and timeline[tail].predecessor == handle
    assert timeline.tail == tail
    timeline.validate()


def test_split_then_rejoin_markers_gives_original_offsets(build_timeline):
    timeline, (handle,) = build_timeline(4000.0)
    original = [300.0, 1000.0, 2200.0, 3900.0]
    timeline[handle].markers = [Marker(o) for o in original]

    tail = timeline.split(handle, 2200.0)

    rejoined = [m.offset for m in timeline[handle].markers]
    rejoined += [m.offset + 2200.0 for m in timeline[tail].markers]
    assert rejoined == original


def test_split_near_an_edge_is_rejected(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    assert timeline.split(handle, 150.0) is None
    assert timeline.split(handle, 2850.0) is None
    assert durations(timeline) == [3000.0]


def test_split_of_an_open_slice_raises():
    timeline = Timeline()
    handle = timeline.add(AudioSlice(asset="rec.wav"))

    with pytest.raises(GeometryError):
        timeline.split(handle, 1000.0)


def test_insert_near_start_links_before_without_split(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    new = AudioSlice(asset="new.wav", duration=500.0)

    used = timeline.insert(handle, 100.0, new)

    assert used == 0.0
    assert timeline.head == new.handle
    assert durations(timeline) == [500.0, 3000.0]
    timeline.validate()


def test_insert_near_end_links_after(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    new = AudioSlice(asset="new.wav", duration=500.0)

    used = timeline.insert(handle, 2900.0, new)

    assert used == 3000.0
    assert timeline.tail == new.handle
    assert durations(timeline) == [3000.0, 500.0]


def test_insert_in_the_middle_splits(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    new = AudioSlice(asset="new.wav", duration=500.0)

    used = timeline.insert(handle, 1200.0, new)

    assert used == 1200.0
    assert [s.asset for s in timeline.chain()] == ["take0.wav", "new.wav", "take0.wav"]
    assert durations(timeline) == [1200.0, 500.0, 1800.0]
    assert timeline.total_duration() == 3500.0
    timeline.validate()


def test_insert_outside_the_slice_raises(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    with pytest.raises(GeometryError):
        timeline.insert(handle, 3500.0, AudioSlice(asset="new.wav", duration=10.0))
    assert len(timeline) == 1


def test_add_refuses_a_second_first_slice(build_timeline):
    timeline, _ = build_timeline(1000.0)

    with pytest.raises(GeometryError):
        timeline.add(AudioSlice(asset="x.wav", duration=10.0))


def test_delete_whole_slice_relinks_neighbours(build_timeline):
    timeline, (first, middle, last) = build_timeline(1000.0, 2000.0, 3000.0)

    timeline.delete(middle, 0.0, 2000.0)

    assert timeline[first].successor == last
    assert timeline[last].predecessor == first
    assert not timeline[middle].linked
    assert durations(timeline) == [1000.0, 3000.0]
    timeline.validate()


def test_delete_head_slice_moves_head(build_timeline):
    timeline, (first, second) = build_timeline(1000.0, 2000.0)

    timeline.delete(first, 0.0, 1000.0)

    assert timeline.head == second
    assert timeline[second].predecessor is None


def test_delete_at_start_trims_and_rebases_markers(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    timeline[handle].markers = [Marker(500.0), Marker(2000.0)]

    timeline.delete(handle, 0.0, 1000.0)

    current = timeline[handle]
    assert current.asset_offset == 1000.0
    assert current.duration == 2000.0
    assert [m.offset for m in current.markers] == [1000.0]


def test_delete_at_end_truncates(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    timeline[handle].markers = [Marker(500.0), Marker(2000.0), Marker(2500.0)]

    timeline.delete(handle, 2000.0, 3000.0)

    assert timeline[handle].duration == 2000.0
    assert [m.offset for m in timeline[handle].markers] == [500.0, 2000.0]


def test_delete_in_the_middle_cuts_the_region_out(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    timeline.delete(handle, 1000.0, 2000.0)

    assert durations(timeline) == [1000.0, 1000.0]
    assert [s.asset_offset for s in timeline.chain()] == [0.0, 2000.0]
    assert timeline.total_duration() == 2000.0
    timeline.validate()


def test_degenerate_delete_raises_and_leaves_slice_alone(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    with pytest.raises(GeometryError):
        timeline.delete(handle, 1000.0, 1100.0)
    with pytest.raises(GeometryError):
        timeline.delete(handle, 2000.0, 1000.0)
    assert durations(timeline) == [3000.0]


def test_check_delete_validates_without_mutating(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)

    timeline.check_delete(handle, 0.0, 3000.0)
    timeline.check_delete(handle, 1000.0, 2000.0)
    with pytest.raises(GeometryError):
        timeline.check_delete(handle, 0.0, 3000.0 + 1e-9)
    with pytest.raises(GeometryError):
        timeline.check_delete(handle, 1000.0, 1100.0)
    assert durations(timeline) == [3000.0]
    assert len(timeline) == 1


def test_discard_unlinks_an_open_slice(build_timeline):
    timeline, (handle,) = build_timeline(3000.0)
    recording = AudioSlice(asset="rec.wav", duration=None)
    timeline.insert(handle, 3000.0, recording)

    timeline.discard(recording.handle)

    assert timeline.tail == handle
    assert len(timeline) == 1
    with pytest.raises(GeometryError):
        timeline.discard(recording.handle)


def test_chain_stays_consistent_over_mixed_edits(build_timeline):
    timeline, handles = build_timeline(2000.0, 3000.0, 4000.0)
    timeline.split(handles[1], 1000.0)
    timeline.insert(handles[2], 2500.0, AudioSlice(asset="x.wav", duration=700.0))
    timeline.delete(handles[0], 500.0, 1500.0)
    timeline.delete(handles[2], 0.0, 2500.0)

    timeline.validate()
    assert timeline.total_duration() == pytest.approx(9000.0 + 700.0 - 1000.0 - 2500.0)
    spans = list(timeline.spans())
    for (begin, current), (next_begin, _) in zip(spans, spans[1:]):
        assert begin + current.duration == next_begin


def test_describe_lists_every_linked_slice(build_timeline):
    timeline, (first, second) = build_timeline(1000.0, 2000.0)
    timeline[second].markers = [Marker(250.0)]

    lines = timeline.describe()

    assert len(lines) == 2
    assert "take1.wav" in lines[1] and "marks=[250]" in lines[1]
