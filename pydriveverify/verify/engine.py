"""Verification engine: builds both manifests concurrently and compares them."""

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Optional, Union

from ..models import ComparisonResult, FileErrorRecord
from ..paths import default_remote_root, normalize_remote_root
from ..utils import DEFAULT_API_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_WORKERS
from .comparator import compare_manifests
from .heap import Manifest
from .local import LocalManifestBuilder, list_local_subfolders
from .progress import ProgressAggregator, ProgressCounts
from .remote import DriveListingService, RemoteManifestBuilder

logger = logging.getLogger(__name__)


class VerifyEngine:
    """Orchestrates a verification run.

    The remote and local manifests are built on two threads. As soon as
    one of them fails the error is raised without waiting for the other,
    which is asked to stop through a shared cancel event.
    The comparison only starts after both manifests are complete.
    """

    def __init__(
        self,
        listing: DriveListingService,
        retries: int = DEFAULT_API_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        """Initialize the verification engine.

        Args:
            listing: Drive listing service (usually a DriveClient)
            retries: Attempts per drive API call
            retry_delay: Seconds between attempts
        """
        self.listing = listing
        self.retries = retries
        self.retry_delay = retry_delay
        self.subfolders: Optional[list[str]] = None
        self.remote_root: Optional[str] = None
        self.manifest_sizes: tuple[int, int] = (0, 0)

    def verify(
        self,
        local_root: Union[str, Path],
        remote_root: Optional[str] = None,
        selective: bool = False,
        skip_hash: bool = False,
        workers: int = DEFAULT_WORKERS,
        known_issue_mode: bool = False,
        scoped: bool = False,
        progress_callback: Optional[Callable[[ProgressCounts], None]] = None,
    ) -> ComparisonResult:
        """Compare a local directory with a remote folder.

        Args:
            local_root: Local directory
            remote_root: Remote folder (derived from the local path if None)
            selective: Only compare the top-level folders present locally
            skip_hash: Don't hash local files
            workers: Local hashing threads, 0 or less for one per CPU
            known_issue_mode: Filter known sync client limitations
            scoped: List only the remote subtree instead of the account
            progress_callback: Called with scan counts while scanning

        Returns:
            The comparison result

        Raises:
            ScanError: If either manifest cannot be built
        """
        local_path = Path(local_root).absolute()
        if remote_root is None:
            remote_root = default_remote_root(local_path)
        self.remote_root = normalize_remote_root(remote_root)

        self.subfolders = list_local_subfolders(local_path) if selective else None
        if self.subfolders is not None:
            logger.debug(f"Selective sync folders: {self.subfolders}")

        start = time.time()
        aggregator = ProgressAggregator(callback=progress_callback)
        cancel_event = threading.Event()

        remote_builder = RemoteManifestBuilder(
            self.listing,
            root=self.remote_root,
            subfolders=self.subfolders,
            known_issue_mode=known_issue_mode,
            scoped=scoped,
            retries=self.retries,
            retry_delay=self.retry_delay,
            progress_queue=aggregator.queue,
            cancel_event=cancel_event,
        )
        local_builder = LocalManifestBuilder(
            local_path,
            subfolders=self.subfolders,
            skip_hash=skip_hash,
            workers=workers,
            progress_queue=aggregator.queue,
            cancel_event=cancel_event,
        )

        with aggregator:
            remote_manifest, local_manifest, errored = self._build_manifests(
                remote_builder, local_builder, cancel_event
            )

        self.manifest_sizes = (len(remote_manifest), len(local_manifest))
        logger.debug(
            f"Generated manifests for {len(remote_manifest)} remote files, "
            f"{len(local_manifest)} local files, with {len(errored)} local errors "
            f"({time.time() - start:.2f}s)"
        )

        return compare_manifests(
            remote_manifest, local_manifest, errored, known_issue_mode
        )

    def _build_manifests(
        self,
        remote_builder: RemoteManifestBuilder,
        local_builder: LocalManifestBuilder,
        cancel_event: threading.Event,
    ) -> tuple[Manifest, Manifest, list[FileErrorRecord]]:
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="manifest")
        try:
            remote_future = executor.submit(remote_builder.build)
            local_future = executor.submit(local_builder.build)
            done, _ = wait([remote_future, local_future], return_when=FIRST_EXCEPTION)
            for future in done:
                error = future.exception()
                if error is not None:
                    raise error
            remote_manifest = remote_future.result()
            local_manifest, errored = local_future.result()
        finally:
            # Stops the other builder at its next listing page or directory entry
            cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)
        return remote_manifest, local_manifest, errored
