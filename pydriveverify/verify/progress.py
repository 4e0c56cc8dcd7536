"""Progress reporting for the manifest builders.

Both builders put ``ScanProgress`` events on a shared queue. A
``ProgressAggregator`` reads that queue on its own thread and keeps one
counter per kind, which a display can poll or receive through a callback.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressKind(str, Enum):
    """What a progress count refers to."""

    REMOTE = "remote"
    """Remote files classified so far"""

    LOCAL = "local"
    """Local files added to the manifest so far"""

    ERRORED = "errored"
    """Local files that could not be read so far"""


@dataclass(frozen=True)
class ScanProgress:
    """A point in time count reported by a builder."""

    kind: ProgressKind
    count: int


@dataclass(frozen=True)
class ProgressCounts:
    """Current counts for both sides of the scan."""

    remote: int = 0
    local: int = 0
    errored: int = 0


_STOP = None


def report_progress(
    progress_queue: Optional["queue.Queue[Optional[ScanProgress]]"],
    kind: ProgressKind,
    count: int,
) -> None:
    """Put a progress event on a queue, if there is one."""
    if progress_queue is not None:
        progress_queue.put(ScanProgress(kind=kind, count=count))


class ProgressAggregator:
    """Merges progress events from both builders into one counter triple.

    Counts never go down: an event carrying a smaller count than the one
    already seen for its kind is ignored, so events may arrive late or
    more than once.

    Examples:
        >>> aggregator = ProgressAggregator()
        >>> aggregator.handle(ScanProgress(ProgressKind.LOCAL, 3))
        >>> aggregator.counts.local
        3
    """

    def __init__(
        self, callback: Optional[Callable[[ProgressCounts], None]] = None
    ) -> None:
        """Initialize the aggregator.

        Args:
            callback: Called with the current counts after every event
        """
        self.callback = callback
        self.queue: "queue.Queue[Optional[ScanProgress]]" = queue.Queue()
        self._counts = ProgressCounts()
        self._thread: Optional[threading.Thread] = None

    @property
    def counts(self) -> ProgressCounts:
        """Latest counts."""
        return self._counts

    def handle(self, event: ScanProgress) -> None:
        """Apply a single progress event."""
        current = self._counts
        if event.kind == ProgressKind.REMOTE:
            updated = ProgressCounts(
                max(current.remote, event.count), current.local, current.errored
            )
        elif event.kind == ProgressKind.LOCAL:
            updated = ProgressCounts(
                current.remote, max(current.local, event.count), current.errored
            )
        else:
            updated = ProgressCounts(
                current.remote, current.local, max(current.errored, event.count)
            )
        self._counts = updated
        if self.callback is not None:
            self.callback(updated)

    def run(self) -> None:
        """Consume events until ``stop`` is called."""
        while True:
            event = self.queue.get()
            if event is _STOP:
                break
            self.handle(event)

    def start(self) -> "ProgressAggregator":
        """Consume events on a background thread."""
        self._thread = threading.Thread(
            target=self.run, name="progress-aggregator", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> ProgressCounts:
        """Drain the remaining events and stop the background thread.

        Returns:
            Final counts
        """
        self.queue.put(_STOP)
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        else:
            self.run()
        logger.debug(
            "Scan progress: %d remote, %d local, %d errored",
            self._counts.remote,
            self._counts.local,
            self._counts.errored,
        )
        return self._counts

    def __enter__(self) -> "ProgressAggregator":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
