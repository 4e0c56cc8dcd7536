"""Manifest building and comparison for pydriveverify."""

from .comparator import ManifestComparator, compare_manifests
from .engine import VerifyEngine
from .heap import FileHeap, Manifest
from .local import LocalManifestBuilder, list_local_subfolders
from .progress import ProgressAggregator, ProgressCounts, ProgressKind, ScanProgress
from .remote import (
    DriveListingService,
    FolderCache,
    RemoteManifestBuilder,
    call_with_retry,
)

__all__ = [
    "VerifyEngine",
    "ManifestComparator",
    "compare_manifests",
    "FileHeap",
    "Manifest",
    "LocalManifestBuilder",
    "list_local_subfolders",
    "RemoteManifestBuilder",
    "DriveListingService",
    "FolderCache",
    "call_with_retry",
    "ProgressAggregator",
    "ProgressCounts",
    "ProgressKind",
    "ScanProgress",
]
