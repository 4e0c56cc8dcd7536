"""Sorted file streams for the manifest comparison."""

import heapq
import itertools
import logging
from typing import Iterable, Optional

from ..models import FileRecord

logger = logging.getLogger(__name__)


class FileHeap:
    """Min-heap of file records ordered by path.

    Records with equal paths pop in the order they were pushed.

    Examples:
        >>> heap = FileHeap()
        >>> heap.push(FileRecord(path="b.txt"))
        >>> heap.push(FileRecord(path="a.txt"))
        >>> heap.pop_or_none().path
        'a.txt'
    """

    def __init__(self, records: Optional[Iterable[FileRecord]] = None):
        self._heap: list[tuple[str, int, FileRecord]] = []
        self._counter = itertools.count()
        if records is not None:
            for record in records:
                self.push(record)

    def __len__(self) -> int:
        return len(self._heap)

    def push(self, record: FileRecord) -> None:
        """Add a record to the heap."""
        heapq.heappush(self._heap, (record.path, next(self._counter), record))

    def pop_or_none(self) -> Optional[FileRecord]:
        """Remove and return the record with the smallest path.

        Returns:
            The record, or None if the heap is empty
        """
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek_path(self) -> Optional[str]:
        """Return the smallest path without removing it."""
        if not self._heap:
            return None
        return self._heap[0][0]


class Manifest:
    """Inventory of one side of the comparison.

    Paths are expected to be unique. When two records share a path the
    later one wins, the collision is logged and kept in ``duplicates``.
    """

    def __init__(self, name: str = "manifest"):
        """Initialize an empty manifest.

        Args:
            name: Label used in log messages (e.g. "remote", "local")
        """
        self.name = name
        self.duplicates: list[str] = []
        self._heap = FileHeap()
        self._paths: set[str] = set()

    def __len__(self) -> int:
        """Number of distinct paths added, duplicates counted once."""
        return len(self._paths)

    def add(self, record: FileRecord) -> None:
        """Add a record to the manifest."""
        self._heap.push(record)
        self._paths.add(record.path)

    def extend(self, records: Iterable[FileRecord]) -> None:
        """Add several records to the manifest."""
        for record in records:
            self.add(record)

    def pop_or_none(self) -> Optional[FileRecord]:
        """Remove and return the record with the smallest path.

        Returns:
            The record, or None once the manifest is exhausted
        """
        record = self._heap.pop_or_none()
        while record is not None and self._heap.peek_path() == record.path:
            logger.warning(
                f"Duplicate path in {self.name} manifest, keeping the last one: "
                f"{record.path}"
            )
            if not self.duplicates or self.duplicates[-1] != record.path:
                self.duplicates.append(record.path)
            record = self._heap.pop_or_none()
        return record
