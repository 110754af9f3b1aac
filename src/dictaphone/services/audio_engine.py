import logging
from pathlib import Path

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)


def _sounddevice():
    # PortAudio is only loaded when this backend is actually used
    import sounddevice as sd

    return sd


class SoundDeviceRecorder:
    """Captures the default input device in-process and writes the asset on stop."""

    def __init__(self, sample_rate: int = 44100, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self._input_stream = None
        self._recording_buffer: list[np.ndarray] = []
        self._is_recording = False
        self._path: Path | None = None

    def start(self, path: str | Path) -> None:
        if self._is_recording:
            return

        self._path = Path(path)
        self._recording_buffer = []
        self._is_recording = True

        def callback(indata, frames, time, status):
            if status:
                logger.debug("input stream status: %s", status)
            # Keep callback lightweight
            self._recording_buffer.append(indata.copy())

        sd = _sounddevice()
        self._input_stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="float32",
            callback=callback,
        )
        self._input_stream.start()

    def stop(self) -> None:
        if not self._is_recording:
            return

        self._input_stream.stop()
        self._input_stream.close()
        self._input_stream = None
        self._is_recording = False

        audio = self._collect()
        sf.write(str(self._path), audio, self.sample_rate)
        logger.debug("wrote %d frames to %s", len(audio), self._path)

    def is_recording(self) -> bool:
        return self._is_recording

    def _collect(self) -> np.ndarray:
        if not self._recording_buffer:
            return np.zeros((0, self.channels), dtype="float32")
        return np.concatenate(self._recording_buffer, axis=0)
