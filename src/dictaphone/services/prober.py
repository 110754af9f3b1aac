from pathlib import Path

import soundfile as sf

from dictaphone.errors import AssetError


class SoundfileProber:
    """Reads an asset's duration (milliseconds) from its header."""

    def duration_ms(self, asset: str | Path) -> float:
        path = Path(asset)
        if not path.exists():
            raise AssetError(f"asset not found: {path}")
        try:
            info = sf.info(str(path))
        except RuntimeError as exc:
            raise AssetError(f"cannot probe {path}: {exc}") from exc
        if info.samplerate <= 0:
            raise AssetError(f"cannot probe {path}: invalid sample rate")
        return info.frames * 1000.0 / info.samplerate
