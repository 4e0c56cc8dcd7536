"""Local manifest construction.

One walker thread enumerates the tree and feeds file paths into a bounded
work queue. A fixed pool of worker threads hashes the files and puts
records (or per-file errors) on an output queue. The calling thread reads
the output queue until the pool has shut down:

1. the walker puts one stop marker per worker once enumeration is done,
2. a supervisor waits for every worker, then puts a done marker on the
   output queue,
3. the reading loop ends when it sees the done marker.

The work queue is bounded so a slow pool throttles the walker. The output
queue is not, so workers never wait on the reader.
"""

import logging
import queue
import stat
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Optional, Union, cast

from ..exceptions import LocalScanError
from ..models import FileErrorRecord, FileRecord
from ..paths import fold_local_path, should_skip_local_dir, should_skip_local_file
from ..utils import DEFAULT_WORKERS, hash_local_file, resolve_worker_count
from .heap import Manifest
from .progress import ProgressKind, ScanProgress, report_progress

logger = logging.getLogger(__name__)

_STOP = object()
_DONE = object()

_DIRECTORY = "directory"
_REGULAR = "regular"


def list_local_subfolders(root: Union[str, Path]) -> list[str]:
    """List the top-level folders of a local directory.

    Used for selective sync, where only these folders are compared.

    Args:
        root: Local directory

    Returns:
        Sorted folder names, ignored directories excluded

    Raises:
        LocalScanError: If the directory cannot be read
    """
    root_path = Path(root)
    try:
        return sorted(
            item.name
            for item in root_path.iterdir()
            if item.is_dir() and not should_skip_local_dir(item)
        )
    except OSError as e:
        raise LocalScanError(f"Cannot read local directory {root_path}: {e}") from e


class LocalManifestBuilder:
    """Builds the manifest of the local side.

    Examples:
        >>> builder = LocalManifestBuilder(Path("/home/me/Google Drive"))
        >>> manifest, errored = builder.build()
    """

    def __init__(
        self,
        root: Union[str, Path],
        subfolders: Optional[list[str]] = None,
        skip_hash: bool = False,
        workers: int = DEFAULT_WORKERS,
        progress_queue: Optional["queue.Queue[Optional[ScanProgress]]"] = None,
        hasher: Callable[[Path], str] = hash_local_file,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize the local manifest builder.

        Args:
            root: Local directory to compare
            subfolders: Only scan these top-level folders (selective sync)
            skip_hash: Don't compute content hashes
            workers: Number of hashing threads, 0 or less for one per CPU
            progress_queue: Queue receiving ``ScanProgress`` events
            hasher: Function computing a file's content hash
            cancel_event: When set, enumeration stops and the build fails
        """
        self.root = Path(root).absolute()
        self.subfolders = subfolders
        self.skip_hash = skip_hash
        self.workers = resolve_worker_count(workers)
        self.progress_queue = progress_queue
        self.hasher = hasher
        self.cancel_event = cancel_event

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _validate_root(self) -> None:
        if not self.root.exists():
            raise LocalScanError(f"Local directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise LocalScanError(f"Local path is not a directory: {self.root}")

    def build(self) -> tuple[Manifest, list[FileErrorRecord]]:
        """Walk the local tree and build its manifest.

        Returns:
            Tuple of (manifest, per-file errors)

        Raises:
            LocalScanError: If the root cannot be enumerated or the scan is
                cancelled. Also raised when processing a file fails with
                anything other than an OSError.
        """
        self._validate_root()
        start = time.time()

        manifest = Manifest("local")
        errored: list[FileErrorRecord] = []
        work_queue: "queue.Queue[object]" = queue.Queue(maxsize=self.workers * 4)
        output_queue: "queue.Queue[object]" = queue.Queue()

        with ThreadPoolExecutor(
            max_workers=self.workers + 2, thread_name_prefix="local-scan"
        ) as executor:
            worker_futures = [
                executor.submit(self._work, work_queue, output_queue)
                for _ in range(self.workers)
            ]
            walker_future = executor.submit(self._walk_all, work_queue, output_queue)
            executor.submit(self._supervise, worker_futures, output_queue)

            while True:
                item = output_queue.get()
                if item is _DONE:
                    break
                if isinstance(item, FileErrorRecord):
                    errored.append(item)
                    logger.debug(f"Cannot read {item.path}: {item.error}")
                    report_progress(
                        self.progress_queue, ProgressKind.ERRORED, len(errored)
                    )
                elif isinstance(item, FileRecord):
                    manifest.add(item)
                    report_progress(
                        self.progress_queue, ProgressKind.LOCAL, len(manifest)
                    )

            # Surfaces LocalScanError from the walker and the workers
            walker_future.result()
            for future in worker_futures:
                future.result()

        logger.debug(
            f"Local manifest for {self.root} has {len(manifest)} files, "
            f"{len(errored)} errors ({time.time() - start:.2f}s, "
            f"{self.workers} workers)"
        )
        return manifest, errored

    # =========================
    # Walker
    # =========================

    def _walk_all(
        self, work_queue: "queue.Queue[object]", output_queue: "queue.Queue[object]"
    ) -> None:
        try:
            if self.subfolders is None:
                self._walk(self.root, work_queue, output_queue, is_root=True)
            else:
                self._scan_directory_list(work_queue, output_queue)
        finally:
            for _ in range(self.workers):
                work_queue.put(_STOP)

    def _scan_directory_list(
        self, work_queue: "queue.Queue[object]", output_queue: "queue.Queue[object]"
    ) -> None:
        for name in self.subfolders or []:
            directory = self.root / name
            if should_skip_local_dir(directory):
                continue
            self._walk(directory, work_queue, output_queue, is_root=False)

    def _walk(
        self,
        directory: Path,
        work_queue: "queue.Queue[object]",
        output_queue: "queue.Queue[object]",
        is_root: bool,
    ) -> None:
        """Recursively enumerate a directory, depth first.

        Args:
            directory: Directory to enumerate
            work_queue: Queue receiving file paths to process
            output_queue: Queue receiving errors for unreadable directories
            is_root: Whether this is the comparison root (errors are fatal)
        """
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            if is_root:
                raise LocalScanError(
                    f"Cannot read local directory {directory}: {e}"
                ) from e
            output_queue.put(FileErrorRecord(path=self._relative(directory), error=e))
            return

        for item in entries:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise LocalScanError("Local scan cancelled")
            try:
                kind = self._entry_kind(item)
            except OSError as e:
                output_queue.put(FileErrorRecord(path=self._relative(item), error=e))
                continue

            if kind == _DIRECTORY:
                if should_skip_local_dir(item):
                    continue
                self._walk(item, work_queue, output_queue, is_root=False)
            elif kind == _REGULAR:
                if should_skip_local_file(item):
                    continue
                work_queue.put(item)

    def _entry_kind(self, item: Path) -> Optional[str]:
        """Classify a directory entry without following directory symlinks.

        Symlinks count as regular files only when they point at one.
        Other special files (sockets, FIFOs, devices) are skipped.

        Returns:
            ``_DIRECTORY``, ``_REGULAR`` or None for entries to skip

        Raises:
            OSError: If the entry or a symlink's target cannot be inspected
        """
        mode = item.lstat().st_mode
        if stat.S_ISDIR(mode):
            return _DIRECTORY
        if stat.S_ISREG(mode):
            return _REGULAR
        if stat.S_ISLNK(mode):
            target_mode = item.stat().st_mode
            if stat.S_ISREG(target_mode):
                return _REGULAR
            if stat.S_ISDIR(target_mode):
                logger.debug(f"Not following directory symlink: {item}")
            return None
        logger.debug(f"Skipping special file: {item}")
        return None

    # =========================
    # Workers
    # =========================

    def _work(
        self, work_queue: "queue.Queue[object]", output_queue: "queue.Queue[object]"
    ) -> None:
        failure: Optional[LocalScanError] = None
        while True:
            item = work_queue.get()
            if item is _STOP:
                break
            if failure is not None:
                # Keep draining so the walker never blocks on a full queue
                continue
            file_path = cast(Path, item)
            try:
                output_queue.put(self._process_file(file_path))
            except Exception as e:
                failure = LocalScanError(f"Failed to process {file_path}: {e}")
                failure.__cause__ = e
        if failure is not None:
            raise failure

    def _process_file(self, file_path: Path) -> Union[FileRecord, FileErrorRecord]:
        """Turn a file path into a manifest record.

        Args:
            file_path: Absolute path of the file

        Returns:
            FileRecord, or FileErrorRecord if the file could not be read
        """
        relative_path = self._relative(file_path)
        path, original_path = fold_local_path(relative_path)

        content_hash = ""
        if not self.skip_hash:
            try:
                content_hash = self.hasher(file_path)
            except OSError as e:
                return FileErrorRecord(path=relative_path, error=e)

        return FileRecord(
            path=path, original_path=original_path, content_hash=content_hash
        )

    def _supervise(
        self, worker_futures: list[Future], output_queue: "queue.Queue[object]"
    ) -> None:
        wait(worker_futures)
        output_queue.put(_DONE)
