"""
Progress sinks for the bootstrap loop.

A sink is any callable taking (current, total); it is notified once per
processed replicate, converged or discarded. Rendering is left to the
caller; the default sink writes to the module logger.
"""

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]


def null_progress(current: int, total: int) -> None:
    """Sink that ignores all updates."""
    return None


class LoggingProgress:
    """Log bootstrap progress every `every` replicates and at completion."""

    def __init__(self, every: int = 10, label: str = 'bootstrap'):
        self.every = max(1, int(every))
        self.label = label
        self._started: Optional[float] = None

    def __call__(self, current: int, total: int) -> None:
        if self._started is None:
            self._started = time.time()
        if current % self.every == 0 or current == total:
            elapsed = time.time() - self._started
            pct = 100.0 * current / total if total else 100.0
            logger.info(f"{self.label}: {current}/{total} replicates ({pct:.0f}%, {elapsed:.1f}s)")


def resolve_progress(
    showprogress: bool,
    progress: Optional[ProgressSink] = None,
    every: int = 10,
) -> ProgressSink:
    """
    Pick the sink for a test run.

    An explicit sink always wins. Otherwise showprogress selects the
    logging sink, and no sink at all is a silent no-op.
    """
    if progress is not None:
        return progress
    if showprogress:
        return LoggingProgress(every=every)
    return null_progress
