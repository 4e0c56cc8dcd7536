"""Comparison of a remote manifest with a local manifest."""

import logging
from typing import Optional

from ..models import (
    ComparisonResult,
    FileErrorRecord,
    FileRecord,
    PossibleMatch,
)
from ..paths import has_known_sync_issue, normalize_for_fuzzy_match
from .heap import Manifest

logger = logging.getLogger(__name__)


def contents_match(remote: FileRecord, local: FileRecord) -> bool:
    """Compare the content hashes of two records with the same path.

    A missing hash on either side means the content was not checked, which
    counts as a match.
    """
    if not remote.content_hash or not local.content_hash:
        return True
    return remote.content_hash == local.content_hash


def is_possible_match(remote: FileRecord, local: FileRecord) -> bool:
    """Whether an only-remote and an only-local file are probably the same.

    The content hashes must be identical and the paths must be equal after
    ``normalize_for_fuzzy_match``.
    """
    if remote.content_hash != local.content_hash:
        return False
    return normalize_for_fuzzy_match(remote.path) == normalize_for_fuzzy_match(
        local.path
    )


class ManifestComparator:
    """Merges two sorted manifests and classifies every path.

    Both manifests are consumed. The merge visits each record once, so
    memory stays bounded by the manifests themselves.
    """

    def __init__(
        self,
        remote: Manifest,
        local: Manifest,
        errored: Optional[list[FileErrorRecord]] = None,
        known_issue_mode: bool = False,
    ):
        """Initialize the comparator.

        Args:
            remote: Remote manifest
            local: Local manifest
            errored: Local files that could not be read
            known_issue_mode: Move paths with known sync client problems
                out of the discrepancies
        """
        self.remote = remote
        self.local = local
        self.known_issue_mode = known_issue_mode
        self.result = ComparisonResult(errored=list(errored or []))

    def compare(self) -> ComparisonResult:
        """Run the merge and both heuristics.

        Returns:
            The comparison result
        """
        self.merge()
        self.find_possible_matches()
        if self.known_issue_mode:
            self.find_known_sync_issues()

        self.result.duplicate_paths = self.remote.duplicates + self.local.duplicates
        logger.debug(
            f"Comparison: {self.result.matches} matches, {self.result.misses} misses, "
            f"{len(self.result.possible_matches)} possible matches, "
            f"{len(self.result.known_sync_issues)} known sync issues"
        )
        return self.result

    def merge(self) -> None:
        """Walk both manifests in path order and classify each path."""
        result = self.result
        remote = self.remote.pop_or_none()
        local = self.local.pop_or_none()

        while remote is not None or local is not None:
            if local is None:
                result.only_remote.append(remote)
                result.misses += 1
                remote = self.remote.pop_or_none()
            elif remote is None:
                result.only_local.append(local)
                result.misses += 1
                local = self.local.pop_or_none()
            elif remote.path < local.path:
                result.only_remote.append(remote)
                result.misses += 1
                remote = self.remote.pop_or_none()
            elif local.path < remote.path:
                result.only_local.append(local)
                result.misses += 1
                local = self.local.pop_or_none()
            else:
                # Same path on both sides
                if contents_match(remote, local):
                    result.matches += 1
                else:
                    result.content_mismatch.append(local.path)
                    result.misses += 1
                remote = self.remote.pop_or_none()
                local = self.local.pop_or_none()

    def find_possible_matches(self) -> None:
        """Pair up only-remote and only-local files that look renamed.

        Each only-remote file takes the first matching only-local file in
        path order. Both leave their lists, two misses become one match.
        Pairs already taken are gone from the lists, so running this again
        adds nothing.
        """
        result = self.result
        remaining_remote: list[FileRecord] = []

        for remote_file in result.only_remote:
            match_index = next(
                (
                    index
                    for index, local_file in enumerate(result.only_local)
                    if is_possible_match(remote_file, local_file)
                ),
                None,
            )
            if match_index is None:
                remaining_remote.append(remote_file)
                continue

            local_file = result.only_local.pop(match_index)
            result.possible_matches.append(
                PossibleMatch(local_path=local_file.path, remote_path=remote_file.path)
            )
            result.misses -= 2
            result.matches += 1

        result.only_remote = remaining_remote

    def find_known_sync_issues(self) -> None:
        """Move only-remote paths the sync client cannot create locally."""
        result = self.result
        remaining_remote: list[FileRecord] = []

        for remote_file in result.only_remote:
            if has_known_sync_issue(remote_file.path):
                result.known_sync_issues.append(remote_file.path)
                result.misses -= 1
            else:
                remaining_remote.append(remote_file)

        result.only_remote = remaining_remote


def compare_manifests(
    remote: Manifest,
    local: Manifest,
    errored: Optional[list[FileErrorRecord]] = None,
    known_issue_mode: bool = False,
) -> ComparisonResult:
    """Compare a remote manifest with a local manifest.

    Args:
        remote: Remote manifest (consumed)
        local: Local manifest (consumed)
        errored: Local files that could not be read
        known_issue_mode: Filter paths with known sync client problems

    Returns:
        The comparison result

    Examples:
        >>> result = compare_manifests(remote, local, errored)
        >>> result.is_successful()
        True
    """
    return ManifestComparator(remote, local, errored, known_issue_mode).compare()
