import logging
import queue
import threading
from dataclasses import dataclass

from .context import PlaybackToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentEnded:
    """Posted when a player process exits; consumed by the transport's owning thread."""
    token: PlaybackToken
    returncode: int | None = None


def start_continuation(process, token: PlaybackToken, events: queue.Queue) -> threading.Thread:
    """Wait for ``process`` to exit on a daemon thread, then post SegmentEnded."""

    def _wait() -> None:
        returncode = process.wait()
        logger.debug("player exited with %s (cancelled=%s)", returncode, token.cancelled)
        events.put(SegmentEnded(token, returncode))

    thread = threading.Thread(target=_wait, name="playback-continuation", daemon=True)
    thread.start()
    return thread
