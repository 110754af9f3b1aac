import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def reverse_asset_path(asset: str | Path) -> Path:
    """``take.wav`` -> ``take.reverse.wav``"""
    path = Path(asset)
    return path.with_name(f"{path.stem}.reverse{path.suffix}")


class SoxReverseEncoder:
    """Produces the time-reversed twin of an asset used for backward playback."""

    def __init__(self, program: str = "sox"):
        self.program = program

    def reverse(self, asset: str | Path) -> Path | None:
        target = reverse_asset_path(asset)
        cmd = [self.program, str(asset), str(target), "reverse"]
        logger.debug("call `%s'", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as exc:
            logger.warning("failed to create reverse file for %s: %s", asset, exc)
            return None
        if result.returncode != 0:
            logger.warning(
                "failed to create reverse file for %s: %s", asset, result.stderr.strip()
            )
            return None
        return target
