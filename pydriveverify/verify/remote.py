"""Remote manifest construction.

The remote manifest is built from a paginated listing of the whole
account. Folders are cached by id while paging; once every page has been
read each file's path is resolved by walking its parent chain up to the
root. Files below a folder that cannot be traced back to the root (items
shared by another account) do not sync locally and are left out.
"""

import logging
import posixpath
import queue
import threading
import time
from collections import deque
from functools import partial
from typing import Callable, Iterator, Optional, Protocol, TypeVar

from ..exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DrivePermissionError,
    RemoteScanError,
)
from ..models import DriveItem, FileRecord, FolderNode
from ..paths import (
    fold_case,
    fold_remote_path,
    normalize_unicode,
    relative_to_root,
    remote_root_components,
    sanitize_remote_name,
    should_skip_remote_file,
)
from ..utils import DEFAULT_API_RETRIES, DEFAULT_RETRY_DELAY
from .heap import Manifest
from .progress import ProgressKind, ScanProgress, report_progress

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACCOUNT_QUERY = "trashed != true"


def folder_query(folder_id: str) -> str:
    """Listing query for the non-trashed children of a folder."""
    return f"'{folder_id}' in parents and trashed != true"


def _name_key(name: str) -> str:
    return fold_case(normalize_unicode(sanitize_remote_name(name)))


class DriveListingService(Protocol):
    """What the remote builder needs from the drive API."""

    def get_root_id(self) -> str:
        """Return the id of the account's root folder."""
        ...

    def list_page(
        self, page_token: Optional[str] = None, query: str = ACCOUNT_QUERY
    ) -> tuple[list[DriveItem], Optional[str]]:
        """Return one page of items and the token of the next page."""
        ...


def call_with_retry(
    func: Callable[[], T],
    description: str,
    attempts: int = DEFAULT_API_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the attempts are used up.

    Authentication and permission errors are not retried.

    Args:
        func: Callable performing one network call
        description: What the call does, used in messages
        attempts: Maximum number of calls
        delay: Seconds to wait between calls
        sleep: Function used to wait (replaceable in tests)

    Returns:
        Whatever ``func`` returns

    Raises:
        RemoteScanError: If the call keeps failing
    """
    last_error: Optional[DriveAPIError] = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (DriveAuthenticationError, DrivePermissionError) as e:
            raise RemoteScanError(f"{description} failed: {e}") from e
        except DriveAPIError as e:
            last_error = e
            if attempt < attempts:
                logger.warning(
                    f"{description} failed (attempt {attempt}/{attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                sleep(delay)
    raise RemoteScanError(
        f"{description} failed after {attempts} attempts: {last_error}"
    ) from last_error


class FolderCache:
    """Folder tree built while paging, with memoised path resolution.

    Paths are relative to the account root (the root itself is ``""``).
    """

    def __init__(self, root_id: str):
        """Initialize the cache.

        Args:
            root_id: Id of the account root folder
        """
        self.root_id = root_id
        self._folders: dict[str, FolderNode] = {}
        self._unreachable: set[str] = set()

    def __len__(self) -> int:
        return len(self._folders)

    def __contains__(self, folder_id: str) -> bool:
        return folder_id in self._folders

    def add_folder(self, folder_id: str, name: str, parent_id: str) -> None:
        """Remember a folder seen in the listing."""
        self._folders[folder_id] = FolderNode(
            id=folder_id, parent_id=parent_id, name=name
        )

    def resolve(self, folder_id: str) -> Optional[str]:
        """Resolve a folder id to its path below the root.

        Every folder on the way is memoised, so each folder is resolved at
        most once. The walk is iterative; depth is bounded by the tree
        depth, not the number of files.

        Args:
            folder_id: Folder to resolve

        Returns:
            Path relative to the root, or None when the chain does not end
            at the root (unknown or shared ancestor)
        """
        chain: list[FolderNode] = []
        seen: set[str] = set()
        current = folder_id
        base: Optional[str] = None

        while True:
            if current == self.root_id:
                base = ""
                break
            if current in self._unreachable or current in seen:
                break
            node = self._folders.get(current)
            if node is None:
                break
            if node.resolved_path is not None:
                base = node.resolved_path
                break
            seen.add(current)
            chain.append(node)
            current = node.parent_id

        if base is None:
            self._unreachable.add(current)
            self._unreachable.update(node.id for node in chain)
            return None

        for node in reversed(chain):
            base = posixpath.join(base, sanitize_remote_name(node.name))
            node.resolved_path = base
        return base


class RemoteManifestBuilder:
    """Builds the manifest of the remote side.

    Examples:
        >>> builder = RemoteManifestBuilder(client, root="/Photos")
        >>> manifest = builder.build()
    """

    def __init__(
        self,
        listing: DriveListingService,
        root: str = "/",
        subfolders: Optional[list[str]] = None,
        known_issue_mode: bool = False,
        scoped: bool = False,
        retries: int = DEFAULT_API_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        progress_queue: Optional["queue.Queue[Optional[ScanProgress]]"] = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize the remote manifest builder.

        Args:
            listing: Drive listing service (usually a DriveClient)
            root: Remote folder to compare, ``/a/b`` form
            subfolders: Only include these top-level folders below the root
            known_issue_mode: Apply sync client specific path rewrites
            scoped: List the root subtree folder by folder instead of
                listing the whole account
            retries: Attempts per network call
            retry_delay: Seconds between attempts
            progress_queue: Queue receiving ``ScanProgress`` events
            sleep: Function used to wait between attempts
            cancel_event: When set, listing stops and the build fails
        """
        self.listing = listing
        self.root = root
        self.subfolders = subfolders
        self.known_issue_mode = known_issue_mode
        self.scoped = scoped
        self.retries = retries
        self.retry_delay = retry_delay
        self.progress_queue = progress_queue
        self._sleep = sleep
        self.cancel_event = cancel_event
        self._subfolder_keys: Optional[set[str]] = None
        if subfolders is not None:
            self._subfolder_keys = {
                fold_case(normalize_unicode(name)) for name in subfolders
            }

    def _call(self, func: Callable[[], T], description: str) -> T:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RemoteScanError("Remote scan cancelled")
        return call_with_retry(
            func,
            description,
            attempts=self.retries,
            delay=self.retry_delay,
            sleep=self._sleep,
        )

    def _report(self, count: int) -> None:
        report_progress(self.progress_queue, ProgressKind.REMOTE, count)

    def _in_subfolders(self, relative_path: str) -> bool:
        if self._subfolder_keys is None:
            return True
        top = relative_path.split("/", 1)[0]
        return fold_case(normalize_unicode(top)) in self._subfolder_keys

    def _add_file(self, manifest: Manifest, relative_path: str, digest: str) -> bool:
        """Fold a path relative to the comparison root and add it.

        Returns:
            True if the file was added
        """
        if not self._in_subfolders(relative_path):
            return False
        path, original_path = fold_remote_path(relative_path, self.known_issue_mode)
        if should_skip_remote_file(path):
            return False
        manifest.add(
            FileRecord(path=path, original_path=original_path, content_hash=digest)
        )
        return True

    def build(self) -> Manifest:
        """List the remote side and build its manifest.

        Returns:
            Manifest of remote files

        Raises:
            RemoteScanError: If the root or a listing page cannot be fetched
        """
        start = time.time()
        if self.scoped:
            manifest = self._build_scoped()
        else:
            manifest = self._build_from_account()
        logger.debug(
            f"Remote manifest for {self.root} has {len(manifest)} files "
            f"({time.time() - start:.2f}s)"
        )
        return manifest

    # =========================
    # Whole account listing
    # =========================

    def _build_from_account(self) -> Manifest:
        root_id = self._call(self.listing.get_root_id, "Root folder lookup")
        cache = FolderCache(root_id)
        candidates: list[DriveItem] = []
        classified = 0
        page_token: Optional[str] = None
        page = 0

        while True:
            page += 1
            items, page_token = self._call(
                partial(self.listing.list_page, page_token, ACCOUNT_QUERY),
                f"Listing page {page}",
            )
            classified += self._classify(items, cache, candidates)
            self._report(classified)
            if not page_token:
                break

        logger.debug(
            f"Listed {page} page(s): {len(cache)} folders, {len(candidates)} files"
        )

        manifest = Manifest("remote")
        dropped = 0
        for item in candidates:
            parent_path = cache.resolve(item.parent_id or root_id)
            if parent_path is None:
                dropped += 1
                logger.debug(f"Skipping {item.name!r}: parent folder not in drive")
                continue
            full_path = posixpath.join(parent_path, sanitize_remote_name(item.name))
            relative_path = relative_to_root(full_path, self.root)
            if relative_path is None:
                continue
            self._add_file(manifest, relative_path, item.content_digest)

        if dropped:
            logger.debug(f"Skipped {dropped} file(s) in folders shared from elsewhere")
        return manifest

    def _classify(
        self, items: list[DriveItem], cache: FolderCache, candidates: list[DriveItem]
    ) -> int:
        """Sort one page of items into folders and content files.

        Returns:
            Number of content files found on the page
        """
        files = 0
        for item in items:
            if item.trashed:
                continue
            parent_id = item.parent_id
            if parent_id is None:
                continue
            if item.is_folder:
                cache.add_folder(item.id, item.name, parent_id)
            elif item.content_digest:
                candidates.append(item)
                files += 1
        return files

    # =========================
    # Subtree listing
    # =========================

    def _iter_folder(self, folder_id: str) -> Iterator[DriveItem]:
        """Yield every non-trashed child of a folder, page by page."""
        page_token: Optional[str] = None
        page = 0
        while True:
            page += 1
            items, page_token = self._call(
                partial(self.listing.list_page, page_token, folder_query(folder_id)),
                f"Listing folder {folder_id} page {page}",
            )
            for item in items:
                if not item.trashed:
                    yield item
            if not page_token:
                break

    def _resolve_root_id(self) -> str:
        folder_id = self._call(self.listing.get_root_id, "Root folder lookup")
        for component in remote_root_components(self.root):
            # Same matching as relative_to_root in whole account listings
            key = _name_key(component)
            match = next(
                (
                    item
                    for item in self._iter_folder(folder_id)
                    if item.is_folder and _name_key(item.name) == key
                ),
                None,
            )
            if match is None:
                raise RemoteScanError(
                    f"Can't resolve directory {component!r} in path {self.root!r}"
                )
            folder_id = match.id
        return folder_id

    def _build_scoped(self) -> Manifest:
        manifest = Manifest("remote")
        to_walk: deque[tuple[str, str]] = deque([(self._resolve_root_id(), "")])
        classified = 0

        while to_walk:
            folder_id, prefix = to_walk.popleft()
            for item in self._iter_folder(folder_id):
                relative_path = posixpath.join(prefix, sanitize_remote_name(item.name))
                if item.is_folder:
                    if prefix or self._in_subfolders(relative_path):
                        to_walk.append((item.id, relative_path))
                elif item.content_digest:
                    classified += 1
                    self._add_file(manifest, relative_path, item.content_digest)
            self._report(classified)

        return manifest
