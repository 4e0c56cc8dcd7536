"""CLI progress display for manifest scans.

This module provides a Rich-based display for the counts collected by the
ProgressAggregator while both manifests are being built.
"""

from typing import Optional

from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from .verify.progress import ProgressCounts


def format_scan_progress(counts: ProgressCounts) -> str:
    """Format scan counts.

    Args:
        counts: Current counts

    Returns:
        Formatted string like "12 remote, 10 local, 1 errored"
    """
    return f"{counts.remote} remote, {counts.local} local, {counts.errored} errored"


class ScanProgressDisplay:
    """Rich-based progress display for manifest scans.

    Use ``update`` as the engine's progress callback.
    """

    def __init__(self, enabled: bool = True) -> None:
        """Initialize the progress display.

        Args:
            enabled: Whether to show anything at all
        """
        self.enabled = enabled
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def update(self, counts: ProgressCounts) -> None:
        """Show the latest counts."""
        if self._progress is None or self._task is None:
            return
        self._progress.update(self._task, counts=format_scan_progress(counts))

    def __enter__(self) -> "ScanProgressDisplay":
        """Enter context manager - start progress display."""
        if not self.enabled:
            return self
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            TextColumn("[cyan]{task.fields[counts]}"),
            TimeElapsedColumn(),
            transient=True,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Scanning...", total=None, counts=format_scan_progress(ProgressCounts())
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
