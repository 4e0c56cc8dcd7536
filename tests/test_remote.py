"""Tests for the remote manifest builder."""

import queue
import threading
from unittest.mock import Mock

import pytest

from pydriveverify.exceptions import (
    DriveAuthenticationError,
    DriveNetworkError,
    DriveServerError,
    RemoteScanError,
)
from pydriveverify.models import DriveItem
from pydriveverify.verify.progress import ProgressKind
from pydriveverify.verify.remote import (
    ACCOUNT_QUERY,
    FolderCache,
    RemoteManifestBuilder,
    call_with_retry,
    folder_query,
)


def folder(item_id, name, parent):
    return DriveItem(id=item_id, name=name, parent_ids=[parent], is_folder=True)


def file(item_id, name, parent, digest="d", trashed=False):
    return DriveItem(
        id=item_id,
        name=name,
        parent_ids=[parent],
        content_digest=digest,
        trashed=trashed,
    )


class FakeDrive:
    """In-memory listing service paging through a fixed item list."""

    def __init__(self, items, root_id="root", page_size=2):
        self.items = items
        self.root_id = root_id
        self.page_size = page_size
        self.queries = []

    def get_root_id(self):
        return self.root_id

    def list_page(self, page_token=None, query=ACCOUNT_QUERY):
        self.queries.append(query)
        if query == ACCOUNT_QUERY:
            matching = [item for item in self.items if not item.trashed]
        else:
            matching = [
                item
                for item in self.items
                if not item.trashed and folder_query(item.parent_id) == query
            ]
        start = int(page_token or 0)
        end = start + self.page_size
        next_token = str(end) if end < len(matching) else None
        return matching[start:end], next_token


def drain(manifest):
    """Pop every record of a manifest in order."""
    records = []
    record = manifest.pop_or_none()
    while record is not None:
        records.append(record)
        record = manifest.pop_or_none()
    return records


@pytest.fixture
def drive_items():
    """A small drive with nested folders and a folder shared from elsewhere."""
    return [
        # File listed before its folders
        file("f1", "A.jpg", "year", digest="h1"),
        folder("photos", "Photos", "root"),
        folder("year", "2020", "photos"),
        folder("band", "AC/DC", "root"),
        file("f2", "Song.mp3", "band", digest="h2"),
        folder("shared", "Shared", "someone-elses-folder"),
        file("f3", "secret.txt", "shared", digest="h3"),
        file("f4", "old.txt", "root", digest="h4", trashed=True),
        file("f5", "Native Doc", "root", digest=""),
        file("f6", ".DS_Store", "photos", digest="h6"),
        file("f7", "top.txt", "root", digest="h7"),
    ]


class TestCallWithRetry:
    """Tests for call_with_retry."""

    def test_success_first_try(self):
        """A successful call is not retried."""
        func = Mock(return_value="ok")
        sleep = Mock()

        assert call_with_retry(func, "Lookup", sleep=sleep) == "ok"
        func.assert_called_once()
        sleep.assert_not_called()

    def test_transient_error_retried(self):
        """Server errors are retried after the fixed delay."""
        func = Mock(side_effect=[DriveServerError("boom"), "ok"])
        sleep = Mock()

        assert call_with_retry(func, "Lookup", delay=0.5, sleep=sleep) == "ok"
        assert func.call_count == 2
        sleep.assert_called_once_with(0.5)

    def test_exhausted_attempts(self):
        """A call failing every attempt raises RemoteScanError."""
        func = Mock(side_effect=DriveNetworkError("down"))
        sleep = Mock()

        with pytest.raises(RemoteScanError, match="after 3 attempts") as exc_info:
            call_with_retry(func, "Lookup", attempts=3, delay=1.0, sleep=sleep)

        assert func.call_count == 3
        assert sleep.call_count == 2
        assert isinstance(exc_info.value.__cause__, DriveNetworkError)

    def test_authentication_error_not_retried(self):
        """An invalid token fails immediately."""
        func = Mock(side_effect=DriveAuthenticationError("bad token"))
        sleep = Mock()

        with pytest.raises(RemoteScanError, match="bad token"):
            call_with_retry(func, "Lookup", attempts=5, sleep=sleep)

        func.assert_called_once()
        sleep.assert_not_called()


class TestFolderCache:
    """Tests for FolderCache."""

    def test_resolve_nested(self):
        """Nested folders resolve to their full path."""
        cache = FolderCache("root")
        cache.add_folder("b", "B", "a")
        cache.add_folder("a", "A", "root")

        assert cache.resolve("b") == "A/B"
        assert cache.resolve("a") == "A"
        assert cache.resolve("root") == ""

    def test_resolve_sanitizes_names(self):
        """Slashes in folder names become underscores."""
        cache = FolderCache("root")
        cache.add_folder("x", "a/b", "root")

        assert cache.resolve("x") == "a_b"

    def test_unknown_parent_unreachable(self):
        """A chain that never reaches the root resolves to None."""
        cache = FolderCache("root")
        cache.add_folder("s", "Shared", "elsewhere")
        cache.add_folder("t", "Inner", "s")

        assert cache.resolve("t") is None
        assert cache.resolve("s") is None
        assert cache.resolve("missing") is None

    def test_cycle_unreachable(self):
        """A parent cycle does not loop forever."""
        cache = FolderCache("root")
        cache.add_folder("a", "A", "b")
        cache.add_folder("b", "B", "a")

        assert cache.resolve("a") is None

    def test_memoised(self):
        """Resolved paths are stored on the folder nodes."""
        cache = FolderCache("root")
        cache.add_folder("a", "A", "root")
        cache.add_folder("b", "B", "a")
        cache.resolve("b")

        assert cache._folders["a"].resolved_path == "A"
        assert cache._folders["b"].resolved_path == "A/B"
        assert len(cache) == 2
        assert "a" in cache


class TestAccountListing:
    """Tests for building the manifest from the whole account listing."""

    def test_builds_folded_paths(self, drive_items):
        """Files resolve through their folders across pages."""
        drive = FakeDrive(drive_items)

        manifest = RemoteManifestBuilder(drive, root="/").build()
        records = drain(manifest)

        assert [(r.path, r.content_hash) for r in records] == [
            ("ac_dc/song.mp3", "h2"),
            ("photos/2020/a.jpg", "h1"),
            ("top.txt", "h7"),
        ]
        assert set(drive.queries) == {ACCOUNT_QUERY}

    def test_shared_folder_files_excluded(self, drive_items):
        """Files under a folder owned elsewhere never reach the manifest."""
        manifest = RemoteManifestBuilder(FakeDrive(drive_items)).build()

        assert all("secret" not in r.path for r in drain(manifest))

    def test_root_filter(self, drive_items):
        """Only files below the comparison root are kept."""
        manifest = RemoteManifestBuilder(FakeDrive(drive_items), root="/photos").build()

        assert [r.path for r in drain(manifest)] == ["2020/a.jpg"]

    def test_subfolder_filter(self, drive_items):
        """Selective sync keeps only the listed top-level folders."""
        builder = RemoteManifestBuilder(
            FakeDrive(drive_items), root="/", subfolders=["Photos"]
        )

        assert [r.path for r in drain(builder.build())] == ["photos/2020/a.jpg"]

    def test_known_issue_mode_filters_trailing_space(self):
        """Trailing spaces in folder names are dropped in known-issue mode."""
        items = [folder("t", "Trip ", "root"), file("f", "a.jpg", "t", digest="h")]

        plain = RemoteManifestBuilder(FakeDrive(items)).build()
        filtered = RemoteManifestBuilder(
            FakeDrive(items), known_issue_mode=True
        ).build()

        assert [r.path for r in drain(plain)] == ["trip /a.jpg"]
        records = drain(filtered)
        assert [r.path for r in records] == ["trip/a.jpg"]
        assert records[0].original_path == "Trip /a.jpg"

    def test_progress_reported_per_page(self, drive_items):
        """A remote progress event is sent after every page."""
        progress = queue.Queue()
        RemoteManifestBuilder(
            FakeDrive(drive_items, page_size=4), progress_queue=progress
        ).build()

        events = []
        while not progress.empty():
            events.append(progress.get_nowait())

        assert len(events) == 3
        assert all(e.kind == ProgressKind.REMOTE for e in events)
        counts = [e.count for e in events]
        assert counts == sorted(counts)

    def test_page_failure_retried(self, drive_items):
        """A page that fails once is fetched again."""
        drive = FakeDrive(drive_items)
        real_list_page = drive.list_page
        failures = [DriveServerError("503")]

        def flaky_list_page(page_token=None, query=ACCOUNT_QUERY):
            if failures:
                raise failures.pop()
            return real_list_page(page_token, query)

        drive.list_page = Mock(side_effect=flaky_list_page)
        sleep = Mock()

        manifest = RemoteManifestBuilder(drive, sleep=sleep).build()

        assert len(manifest) == 3
        sleep.assert_called_once()

    def test_page_failure_exhausted(self, drive_items):
        """A page failing every attempt aborts the build."""
        drive = FakeDrive(drive_items)
        drive.list_page = Mock(side_effect=DriveNetworkError("down"))
        sleep = Mock()

        with pytest.raises(RemoteScanError, match="Listing page 1"):
            RemoteManifestBuilder(drive, retries=4, sleep=sleep).build()

        assert drive.list_page.call_count == 4
        assert sleep.call_count == 3


class TestScopedListing:
    """Tests for building the manifest from the root subtree only."""

    def test_scoped_matches_account_listing(self, drive_items):
        """Both listing strategies produce the same manifest."""
        account = RemoteManifestBuilder(FakeDrive(drive_items), root="/Photos").build()
        drive = FakeDrive(drive_items)
        scoped = RemoteManifestBuilder(drive, root="/Photos", scoped=True).build()

        assert [r.path for r in drain(scoped)] == [r.path for r in drain(account)]
        assert ACCOUNT_QUERY not in drive.queries

    def test_scoped_whole_drive_with_subfolders(self, drive_items):
        """Subfolder filtering applies to top-level folders only."""
        builder = RemoteManifestBuilder(
            FakeDrive(drive_items), root="/", subfolders=["AC_DC"], scoped=True
        )

        assert [r.path for r in drain(builder.build())] == ["ac_dc/song.mp3"]

    def test_scoped_root_matches_case_insensitively(self, drive_items):
        """Root components are matched the same way as in account listings."""
        account = RemoteManifestBuilder(FakeDrive(drive_items), root="/photos").build()
        scoped = RemoteManifestBuilder(
            FakeDrive(drive_items), root="/photos", scoped=True
        ).build()

        assert [r.path for r in drain(scoped)] == [r.path for r in drain(account)]
        assert len(scoped) == 1

    def test_scoped_root_with_sanitized_name(self, drive_items):
        """A folder named with a slash is found under its local spelling."""
        account = RemoteManifestBuilder(FakeDrive(drive_items), root="/AC_DC").build()
        scoped = RemoteManifestBuilder(
            FakeDrive(drive_items), root="/AC_DC", scoped=True
        ).build()

        assert [r.path for r in drain(account)] == ["song.mp3"]
        assert [r.path for r in drain(scoped)] == ["song.mp3"]

    def test_cancelled_build(self, drive_items):
        """A set cancel event stops listing before any call is made."""
        drive = FakeDrive(drive_items)
        drive.list_page = Mock(wraps=drive.list_page)
        cancel_event = threading.Event()
        cancel_event.set()

        with pytest.raises(RemoteScanError, match="cancelled"):
            RemoteManifestBuilder(drive, cancel_event=cancel_event).build()

        drive.list_page.assert_not_called()

    def test_scoped_missing_component(self, drive_items):
        """A root folder that does not exist is an error."""
        builder = RemoteManifestBuilder(
            FakeDrive(drive_items), root="/Photos/1999", scoped=True
        )

        with pytest.raises(RemoteScanError, match="Can't resolve directory '1999'"):
            builder.build()
