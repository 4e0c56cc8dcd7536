"""Data models shared by the manifest builders and the comparator."""

from dataclasses import dataclass, field
from typing import Any, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class FileRecord:
    """A single file in a manifest."""

    path: str
    """Folded relative path (POSIX separators, NFC, lower-case)"""

    original_path: Optional[str] = None
    """Path before filtering, only set when filtering changed more than case"""

    content_hash: str = ""
    """MD5 hex digest of the content, empty when not computed"""

    @property
    def display_path(self) -> str:
        """Path to show to a user."""
        return self.original_path or self.path


@dataclass
class FileErrorRecord:
    """A local file that could not be read."""

    path: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


@dataclass
class DriveItem:
    """An item returned by the drive listing API."""

    id: str
    name: str
    parent_ids: list[str] = field(default_factory=list)
    is_folder: bool = False
    content_digest: str = ""
    trashed: bool = False

    @property
    def parent_id(self) -> Optional[str]:
        """First parent id, or None for items without a parent.

        Items with several parents are placed under the first one only.
        """
        if self.parent_ids:
            return self.parent_ids[0]
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DriveItem":
        """Create a DriveItem from an API ``files`` entry.

        Args:
            data: Dictionary with ``id``, ``name``, ``parents``, ``mimeType``,
                ``md5Checksum`` and ``trashed`` keys (all optional except id)

        Returns:
            DriveItem instance
        """
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            parent_ids=list(data.get("parents") or []),
            is_folder=data.get("mimeType") == FOLDER_MIME_TYPE,
            content_digest=data.get("md5Checksum") or "",
            trashed=bool(data.get("trashed", False)),
        )


@dataclass
class FolderNode:
    """A remote folder cached while resolving file paths."""

    id: str
    parent_id: str
    name: str
    resolved_path: Optional[str] = None


@dataclass(frozen=True)
class PossibleMatch:
    """An only-local/only-remote pair that is probably the same file."""

    local_path: str
    remote_path: str


@dataclass
class ComparisonResult:
    """Outcome of comparing a remote manifest with a local manifest."""

    only_remote: list[FileRecord] = field(default_factory=list)
    only_local: list[FileRecord] = field(default_factory=list)
    content_mismatch: list[str] = field(default_factory=list)
    possible_matches: list[PossibleMatch] = field(default_factory=list)
    known_sync_issues: list[str] = field(default_factory=list)
    errored: list[FileErrorRecord] = field(default_factory=list)
    duplicate_paths: list[str] = field(default_factory=list)
    matches: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        """Number of reconciled entries."""
        return self.matches + self.misses

    def is_successful(self) -> bool:
        """Whether no unresolved discrepancies remain."""
        return self.misses <= 0

    def to_dict(self) -> dict[str, Any]:
        """Convert the result to a JSON serialisable dictionary."""
        return {
            "success": self.is_successful(),
            "matches": self.matches,
            "misses": self.misses,
            "total": self.total,
            "only_remote": [f.display_path for f in self.only_remote],
            "only_local": [f.display_path for f in self.only_local],
            "content_mismatch": list(self.content_mismatch),
            "possible_matches": [
                {"local": m.local_path, "remote": m.remote_path}
                for m in self.possible_matches
            ],
            "known_sync_issues": list(self.known_sync_issues),
            "errored": [{"path": e.path, "error": str(e.error)} for e in self.errored],
            "duplicate_paths": list(self.duplicate_paths),
        }
