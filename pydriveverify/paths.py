"""Path folding rules shared by both manifest builders.

Every path that ends up in a manifest goes through the functions in this
module so that a remote path and a local path referring to the same file
compare equal:

- Unicode is composed to NFC (macOS file systems hand out decomposed
  names, the drive API composed ones).
- Paths are lower-cased for comparison.
- Placeholder documents and desktop metadata files are ignored.
- Markers that the sync client adds to local names are stripped.
"""

import posixpath
import re
import unicodedata
from pathlib import Path
from typing import Optional, Union

# =============================================================================
# Ignore lists
# =============================================================================

IGNORED_LOCAL_FILES: frozenset[str] = frozenset({"Icon\r", ".DS_Store"})

# Cloud-only documents that the desktop client materialises as link files
IGNORED_LOCAL_EXTENSIONS: frozenset[str] = frozenset(
    {".gdoc", ".gsheet", ".gmap", ".gslides", ".gdraw"}
)

IGNORED_LOCAL_DIRECTORIES: frozenset[str] = frozenset(
    {"@eaDir", ".tmp.drivedownload"}
)

# Compared after folding, so lower-case
IGNORED_REMOTE_FILES: frozenset[str] = frozenset({".ds_store"})

DRIVE_FOLDER_NAMES: tuple[str, ...] = ("Google Drive", "GoogleDrive")

_CONFLICT_MARKER_RE = re.compile(r"\(slash conflict\)(?=(?:\.[^./]*)?(?:/|$))")
_TRAILING_SPACE_RE = re.compile(r" +/")
_DUPLICATE_MARKER_RE = re.compile(r" \(\d+\)(?=/|$)")


# =============================================================================
# Basic transforms
# =============================================================================


def normalize_unicode(path: str) -> str:
    """Compose combining characters (NFC)."""
    return unicodedata.normalize("NFC", path)


def fold_case(path: str) -> str:
    """Lower-case a path for comparison."""
    return path.lower()


def sanitize_remote_name(name: str) -> str:
    """Make a remote item name usable as a single path segment.

    Drive allows ``/`` inside names, the desktop client writes it as ``_``.

    Examples:
        >>> sanitize_remote_name("a/b.txt")
        'a_b.txt'
    """
    return name.replace("/", "_")


def strip_conflict_marker(path: str) -> str:
    """Remove ``(slash conflict)`` markers added by the sync client.

    The marker sits right before an extension, a separator or the end of
    the path.

    Examples:
        >>> strip_conflict_marker("docs(slash conflict)/a.txt")
        'docs/a.txt'
        >>> strip_conflict_marker("docs/a(slash conflict).txt")
        'docs/a.txt'
    """
    return _CONFLICT_MARKER_RE.sub("", path)


def filter_remote_path(path: str, known_issue_mode: bool = False) -> str:
    """Apply client specific rewrites to a remote path.

    Some sync clients cannot create folders whose name ends with a space
    and drop the space locally. In known-issue mode the same is done to
    the remote path.

    Examples:
        >>> filter_remote_path("trip /a.jpg", known_issue_mode=True)
        'trip/a.jpg'
        >>> filter_remote_path("trip /a.jpg")
        'trip /a.jpg'
    """
    if known_issue_mode:
        return _TRAILING_SPACE_RE.sub("/", path)
    return path


def has_known_sync_issue(path: str) -> bool:
    """Whether a remote path contains characters some clients cannot sync."""
    return ":" in path


# =============================================================================
# Ignore rules
# =============================================================================


def should_skip_local_file(path: Union[str, Path]) -> bool:
    """Check whether a local file is excluded from the manifest.

    Args:
        path: File path (only the basename is inspected)

    Returns:
        True if the file should be ignored
    """
    name = Path(path).name
    if name in IGNORED_LOCAL_FILES:
        return True
    return posixpath.splitext(name)[1] in IGNORED_LOCAL_EXTENSIONS


def should_skip_local_dir(path: Union[str, Path]) -> bool:
    """Check whether a local directory subtree is excluded."""
    return Path(path).name in IGNORED_LOCAL_DIRECTORIES


def should_skip_remote_file(path: str) -> bool:
    """Check whether a folded remote path is excluded from the manifest."""
    return posixpath.basename(path) in IGNORED_REMOTE_FILES


# =============================================================================
# Manifest paths
# =============================================================================


def fold_local_path(relative_path: str) -> tuple[str, Optional[str]]:
    """Fold a local relative path into its manifest form.

    Args:
        relative_path: Path relative to the local root, POSIX separators

    Returns:
        Tuple of (manifest path, original path). The original path is only
        returned when stripping markers changed the folded path.

    Examples:
        >>> fold_local_path("Docs/Report.PDF")
        ('docs/report.pdf', None)
        >>> fold_local_path("Docs(slash conflict)/a.txt")
        ('docs/a.txt', 'Docs(slash conflict)/a.txt')
    """
    composed = normalize_unicode(relative_path)
    folded = fold_case(composed)
    filtered = strip_conflict_marker(folded)
    if filtered != folded:
        return filtered, composed
    return filtered, None


def fold_remote_path(
    relative_path: str, known_issue_mode: bool = False
) -> tuple[str, Optional[str]]:
    """Fold a remote relative path into its manifest form.

    Args:
        relative_path: Path relative to the remote root
        known_issue_mode: Whether to apply client specific rewrites

    Returns:
        Tuple of (manifest path, original path), see ``fold_local_path``
    """
    composed = normalize_unicode(relative_path)
    folded = fold_case(composed)
    filtered = filter_remote_path(folded, known_issue_mode)
    if filtered != folded:
        return filtered, composed
    return filtered, None


def normalize_for_fuzzy_match(path: str) -> str:
    """Normalise a manifest path for rename detection.

    Strips the extension, a `` (N)`` duplicate marker and treats
    underscores as spaces (newer desktop clients write some special
    characters as underscores).

    Examples:
        >>> normalize_for_fuzzy_match("notes (1).txt")
        'notes'
        >>> normalize_for_fuzzy_match("my_notes.md")
        'my notes'
    """
    stripped = posixpath.splitext(path)[0]
    stripped = _DUPLICATE_MARKER_RE.sub("", stripped)
    return stripped.replace("_", " ")


# =============================================================================
# Roots
# =============================================================================


def normalize_remote_root(root: str) -> str:
    """Normalise a remote root to ``/a/b`` form.

    Examples:
        >>> normalize_remote_root("Photos/2020/")
        '/Photos/2020'
        >>> normalize_remote_root("")
        '/'
    """
    parts = [p for p in root.split("/") if p]
    return "/" + "/".join(parts)


def remote_root_components(root: str) -> list[str]:
    """Split a remote root into its folder names.

    Examples:
        >>> remote_root_components("/Photos/2020")
        ['Photos', '2020']
    """
    return [p for p in root.split("/") if p]


def default_remote_root(local_root: Union[str, Path]) -> str:
    """Derive the remote root from a local path inside a drive folder.

    The part of the path below a ``Google Drive`` or ``GoogleDrive``
    directory is used. Without such an ancestor the whole drive is used.

    Examples:
        >>> default_remote_root("/home/me/Google Drive/Photos/2020")
        '/Photos/2020'
        >>> default_remote_root("/srv/data")
        '/'
    """
    path = Path(local_root)
    parts = path.parts
    for index in range(len(parts) - 1, -1, -1):
        if parts[index] in DRIVE_FOLDER_NAMES:
            return normalize_remote_root("/".join(parts[index + 1 :]))
    return "/"


def relative_to_root(path: str, root: str) -> Optional[str]:
    """Return ``path`` relative to ``root`` or None if it lies outside.

    Both arguments are absolute POSIX style paths (``/`` separated).
    Compared case-insensitively after NFC composition.

    Examples:
        >>> relative_to_root("/Photos/2020/a.jpg", "/Photos")
        '2020/a.jpg'
        >>> relative_to_root("/Music/a.mp3", "/Photos") is None
        True
    """
    root_parts = [fold_case(normalize_unicode(p)) for p in remote_root_components(root)]
    path_parts = [p for p in path.split("/") if p]
    if len(path_parts) <= len(root_parts):
        return None
    head = [fold_case(normalize_unicode(p)) for p in path_parts[: len(root_parts)]]
    if head != root_parts:
        return None
    return "/".join(path_parts[len(root_parts) :])
