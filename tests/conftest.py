import io
import threading
from pathlib import Path

import pytest

from dictaphone.domain.audio_slice import AudioSlice
from dictaphone.domain.timeline import Timeline
from dictaphone.errors import AssetError, PlayerGone
from dictaphone.services.command_log import CommandLog
from dictaphone.services.encoder import reverse_asset_path
from dictaphone.transport.context import TransportServices
from dictaphone.transport.session import Transport


def _build_timeline(*durations, tolerance=200.0):
    """Timeline with one closed slice per duration, in order; returns (timeline, handles)."""
    timeline = Timeline(tolerance)
    handles = []
    for idx, duration in enumerate(durations):
        new_slice = AudioSlice(asset=f"take{idx}.wav", duration=duration, asset_duration=duration)
        if not handles:
            timeline.add(new_slice)
        else:
            timeline.insert(timeline.tail, timeline[timeline.tail].duration, new_slice)
        handles.append(new_slice.handle)
    return timeline, handles


class FakePlayerProcess:
    def __init__(self, asset, start_ms, length_ms, speed):
        self.asset = Path(asset)
        self.start_ms = start_ms
        self.length_ms = length_ms
        self.speed = speed
        self.position_s = start_ms / 1000.0
        self.commands = []
        self.returncode = None
        self._done = threading.Event()

    @property
    def exited(self):
        return self._done.is_set()

    def finish(self, returncode=0):
        self.returncode = returncode
        self._done.set()

    def query_time_position(self):
        if self.exited:
            raise PlayerGone("player already exited")
        self.commands.append("pausing get_time_pos")
        return self.position_s

    def resume(self):
        self.commands.append("pause")

    def set_speed(self, speed, keep_paused=False):
        self.commands.append(("speed_set", speed, keep_paused))

    def quit(self):
        self.commands.append("quit")
        self.finish()

    def wait(self):
        self._done.wait()
        return self.returncode


class FakeLauncher:
    def __init__(self):
        self.launches = []

    def launch(self, asset, start_ms, length_ms, speed):
        process = FakePlayerProcess(asset, start_ms, length_ms, speed)
        self.launches.append(process)
        return process


class FakeProber:
    def __init__(self):
        self.durations = {}

    def duration_ms(self, asset):
        try:
            return self.durations[str(asset)]
        except KeyError:
            raise AssetError(f"asset not found: {asset}") from None


class FakeRecorder:
    """Writes an empty asset on stop and tells the prober how long it is."""

    def __init__(self, prober):
        self.prober = prober
        self.next_duration = 2000.0
        self.started = []
        self.stopped = 0
        self._path = None

    def start(self, path):
        self._path = Path(path)
        self.started.append(self._path)

    def stop(self):
        self.stopped += 1
        self._path.touch()
        if self.next_duration is not None:
            self.prober.durations[str(self._path)] = self.next_duration
        self._path = None

    def is_recording(self):
        return self._path is not None


class FakeEncoder:
    def __init__(self):
        self.calls = []

    def reverse(self, asset):
        self.calls.append(str(asset))
        target = reverse_asset_path(asset)
        target.touch()
        return target


@pytest.fixture
def build_timeline():
    return _build_timeline


@pytest.fixture
def transcript():
    return io.StringIO()


@pytest.fixture
def services(tmp_path, transcript):
    prober = FakeProber()
    return TransportServices(
        recorder=FakeRecorder(prober),
        player=FakeLauncher(),
        prober=prober,
        encoder=FakeEncoder(),
        command_log=CommandLog(transcript),
        audio_dir=tmp_path / "audio",
        file_poll_interval=0.001,
    )


@pytest.fixture
def make_asset(tmp_path, services):
    """Create an asset file the fake prober knows the duration of."""

    def _make(name, duration):
        path = tmp_path / name
        path.touch()
        services.prober.durations[str(path)] = float(duration)
        return str(path)

    return _make


@pytest.fixture
def transport(services):
    return Transport(services)
