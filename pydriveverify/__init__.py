"""PyDriveVerify - verify that a local folder matches its cloud drive copy."""

from .api import DriveClient
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    DriveServerError,
    DriveVerifyError,
    LocalScanError,
    RemoteScanError,
    ScanError,
)
from .models import ComparisonResult, FileErrorRecord, FileRecord, PossibleMatch
from .verify import VerifyEngine, compare_manifests

__version__ = "0.1.0"

__all__ = [
    "DriveClient",
    "VerifyEngine",
    "compare_manifests",
    "ComparisonResult",
    "FileErrorRecord",
    "FileRecord",
    "PossibleMatch",
    "DriveVerifyError",
    "DriveAPIError",
    "DriveAuthenticationError",
    "DriveConfigError",
    "DriveInvalidResponseError",
    "DriveNetworkError",
    "DriveNotFoundError",
    "DrivePermissionError",
    "DriveRateLimitError",
    "DriveServerError",
    "ScanError",
    "LocalScanError",
    "RemoteScanError",
]
