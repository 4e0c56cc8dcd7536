"""Tests for path folding rules."""

import unicodedata

from pydriveverify.paths import (
    default_remote_root,
    filter_remote_path,
    fold_local_path,
    fold_remote_path,
    has_known_sync_issue,
    normalize_for_fuzzy_match,
    normalize_remote_root,
    relative_to_root,
    sanitize_remote_name,
    should_skip_local_dir,
    should_skip_local_file,
    should_skip_remote_file,
    strip_conflict_marker,
)


class TestFoldLocalPath:
    """Tests for fold_local_path."""

    def test_lowercases_without_original_path(self):
        """Case folding alone does not record an original path."""
        assert fold_local_path("Docs/Report.PDF") == ("docs/report.pdf", None)

    def test_composes_unicode(self):
        """Decomposed characters compare equal to composed ones."""
        decomposed = unicodedata.normalize("NFD", "Café/Crème.txt")
        path, original = fold_local_path(decomposed)

        assert path == "café/crème.txt"
        assert path == unicodedata.normalize("NFC", path)
        assert original is None

    def test_strips_conflict_marker_before_separator(self):
        """Conflict markers on folders are removed and the original kept."""
        path, original = fold_local_path("Work(slash conflict)/Plan.txt")

        assert path == "work/plan.txt"
        assert original == "Work(slash conflict)/Plan.txt"

    def test_strips_conflict_marker_before_extension(self):
        """Conflict markers before an extension are removed."""
        path, original = fold_local_path("a/b(slash conflict).txt")

        assert path == "a/b.txt"
        assert original == "a/b(slash conflict).txt"


class TestConflictMarker:
    """Tests for strip_conflict_marker."""

    def test_marker_at_end(self):
        """A marker at the end of the path is removed."""
        assert strip_conflict_marker("a/b(slash conflict)") == "a/b"

    def test_marker_in_middle_of_name_is_kept(self):
        """A marker followed by more of the name is not a sync marker."""
        assert (
            strip_conflict_marker("a/(slash conflict) notes.txt")
            == "a/(slash conflict) notes.txt"
        )


class TestRemotePaths:
    """Tests for remote path helpers."""

    def test_sanitize_slash_in_name(self):
        """Slashes inside a drive name become underscores."""
        assert sanitize_remote_name("AC/DC.mp3") == "AC_DC.mp3"

    def test_trailing_space_filter_only_in_known_issue_mode(self):
        """Folder names ending with a space are only rewritten on request."""
        assert filter_remote_path("trip /a.jpg") == "trip /a.jpg"
        assert filter_remote_path("trip /a.jpg", known_issue_mode=True) == "trip/a.jpg"

    def test_fold_remote_path_records_filtered_original(self):
        """The unfolded path is kept when the filter changed it."""
        path, original = fold_remote_path("Trip /A.jpg", known_issue_mode=True)

        assert path == "trip/a.jpg"
        assert original == "Trip /A.jpg"

    def test_fold_remote_path_case_only(self):
        """Case folding alone does not record an original path."""
        assert fold_remote_path("Trip/A.jpg") == ("trip/a.jpg", None)

    def test_known_sync_issue(self):
        """Colons mark a known sync issue."""
        assert has_known_sync_issue("a:b.txt")
        assert not has_known_sync_issue("a-b.txt")


class TestIgnoreRules:
    """Tests for ignore lists."""

    def test_ignored_local_files(self):
        """Desktop metadata files are ignored."""
        assert should_skip_local_file("/x/.DS_Store")
        assert should_skip_local_file("/x/Icon\r")
        assert not should_skip_local_file("/x/Icon")

    def test_ignored_local_extensions(self):
        """Cloud-only placeholder documents are ignored."""
        assert should_skip_local_file("/x/budget.gsheet")
        assert should_skip_local_file("/x/notes.gdoc")
        assert not should_skip_local_file("/x/notes.doc")

    def test_ignored_local_directories(self):
        """NAS index folders and download temp folders are skipped."""
        assert should_skip_local_dir("/volume1/@eaDir")
        assert should_skip_local_dir("/x/.tmp.drivedownload")
        assert not should_skip_local_dir("/x/eaDir")

    def test_ignored_remote_files(self):
        """Folded remote .DS_Store files are ignored."""
        assert should_skip_remote_file("photos/.ds_store")
        assert not should_skip_remote_file("photos/ds_store")


class TestFuzzyNormalization:
    """Tests for normalize_for_fuzzy_match."""

    def test_strips_extension_and_duplicate_marker(self):
        """Duplicate numbering and the extension are removed."""
        assert normalize_for_fuzzy_match("notes (1).txt") == "notes"
        assert normalize_for_fuzzy_match("notes (12).txt") == "notes"

    def test_duplicate_marker_on_folder(self):
        """Duplicate numbering on a folder is removed."""
        assert normalize_for_fuzzy_match("trip (1)/a.jpg") == "trip/a"

    def test_underscores_become_spaces(self):
        """Underscores and spaces compare equal."""
        assert normalize_for_fuzzy_match("a_b c.md") == normalize_for_fuzzy_match(
            "a b_c.txt"
        )

    def test_dot_in_folder_name_kept(self):
        """Only the extension of the last segment is stripped."""
        assert normalize_for_fuzzy_match("v1.2/readme") == "v1.2/readme"


class TestRoots:
    """Tests for root helpers."""

    def test_normalize_remote_root(self):
        """Roots always start with a slash and never end with one."""
        assert normalize_remote_root("Photos/2020/") == "/Photos/2020"
        assert normalize_remote_root("/") == "/"
        assert normalize_remote_root("") == "/"

    def test_default_remote_root_below_drive_folder(self):
        """The path below the drive folder becomes the remote root."""
        assert default_remote_root("/home/me/Google Drive/Photos/2020") == (
            "/Photos/2020"
        )
        assert default_remote_root("/home/me/GoogleDrive") == "/"

    def test_default_remote_root_without_drive_folder(self):
        """Without a drive folder the whole drive is compared."""
        assert default_remote_root("/srv/backup") == "/"

    def test_relative_to_root(self):
        """Paths below the root are made relative, others rejected."""
        assert relative_to_root("Photos/2020/a.jpg", "/Photos") == "2020/a.jpg"
        assert relative_to_root("photos/a.jpg", "/Photos") == "a.jpg"
        assert relative_to_root("Music/a.mp3", "/Photos") is None
        assert relative_to_root("Photos", "/Photos") is None
        assert relative_to_root("PhotosOld/a.jpg", "/Photos") is None

    def test_relative_to_account_root(self):
        """Everything is below the account root."""
        assert relative_to_root("a/b.txt", "/") == "a/b.txt"
