import pytest

from dictaphone.use_cases.parse_command import Command, ParseCommand, parse_time


@pytest.fixture
def parse():
    return ParseCommand().execute


@pytest.mark.parametrize(
    "text, expected",
    [("1500", 1500.0), ("1.5s", 1500.0), ("250ms", 250.0), ("1:30", 90000.0), ("0:01.5", 1500.0)],
)
def test_parse_time_formats(text, expected):
    assert parse_time(text) == expected


def test_parse_time_rejects_garbage():
    with pytest.raises(ValueError):
        parse_time("soon")


def test_blank_and_comment_lines_are_skipped(parse):
    assert parse("") is None
    assert parse("   ") is None
    assert parse("# recorded on tuesday") is None


def test_simple_commands(parse):
    assert parse("play") == Command("play")
    assert parse("quit") == Command("quit")
    assert parse("rm_marker") == Command("remove_marker")
    assert parse("set_marker") == Command("set_marker", (None,))
    assert parse("set_marker verse two") == Command("set_marker", ("verse two",))
    assert parse("seek_marker") == Command("seek_marker", (0,))
    assert parse("seek_marker -2") == Command("seek_marker", (-2,))
    assert parse("load /tmp/take.wav") == Command("load", ("/tmp/take.wav",))


def test_speed_arguments(parse):
    assert parse("speed 1.5") == Command("speed", (1.5, "absolute"))
    assert parse("speed +0.5") == Command("speed", (0.5, "relative"))
    assert parse("speed -0.25") == Command("speed", (-0.25, "relative"))
    assert parse("speed 50%") == Command("speed", (0.5, "absolute"))
    assert parse("speed +10%") == Command("speed", (0.1, "relative"))
    assert parse("speed =-1") == Command("speed", (-1.0, "absolute"))


def test_seek_arguments(parse):
    assert parse("seek 1500") == Command("seek", (1500.0, "absolute"))
    assert parse("seek 1:30") == Command("seek", (90000.0, "absolute"))
    assert parse("seek +2s") == Command("seek", (2000.0, "relative"))
    assert parse("seek -500") == Command("seek", (-500.0, "relative"))
    assert parse("seek #10s") == Command("seek", (10000.0, "end"))


def test_delete_arguments(parse):
    assert parse("delete") == Command("delete", (None, None))
    assert parse("delete 1s 2.5s") == Command("delete", (1000.0, 2500.0))


def test_transcript_prefix_is_ignored(parse):
    assert parse("2026-10-18T10:00:00.000+00:00 > seek 500") == Command("seek", (500.0, "absolute"))


@pytest.mark.parametrize(
    "line",
    ["fly", "play now", "load", "speed", "speed fast", "seek", "seek soon", "delete 1000", "seek_marker x", "!!"],
)
def test_malformed_lines_raise(parse, line):
    with pytest.raises(ValueError):
        parse(line)
