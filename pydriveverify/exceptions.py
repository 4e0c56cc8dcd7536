"""Exceptions raised by pydriveverify."""


class DriveVerifyError(Exception):
    """Base exception for all pydriveverify errors."""


class DriveConfigError(DriveVerifyError):
    """Configuration is missing or invalid."""


class DriveAPIError(DriveVerifyError):
    """A request to the drive API failed."""


class DriveAuthenticationError(DriveAPIError):
    """The access token was rejected."""


class DrivePermissionError(DriveAPIError):
    """The account is not allowed to access the resource."""


class DriveNotFoundError(DriveAPIError):
    """The requested resource does not exist."""


class DriveRateLimitError(DriveAPIError):
    """The API rate limit was exceeded."""


class DriveServerError(DriveAPIError):
    """The API answered with a 5xx status."""


class DriveNetworkError(DriveAPIError):
    """The request could not be sent or no response was received."""


class DriveInvalidResponseError(DriveAPIError):
    """The API answered with something that is not the expected JSON."""


class ScanError(DriveVerifyError):
    """A manifest could not be built at all.

    Scan errors abort the whole verification run. Problems with single
    files are reported as ``FileErrorRecord`` entries instead.
    """


class RemoteScanError(ScanError):
    """The remote manifest could not be built."""


class LocalScanError(ScanError):
    """The local manifest could not be built."""
