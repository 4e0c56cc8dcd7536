"""Utility functions for pydriveverify."""

import hashlib
import os
from pathlib import Path
from typing import Union

# =============================================================================
# Defaults
# =============================================================================

# Number of local hashing workers
DEFAULT_WORKERS: int = 8

# Retry configuration for drive API calls (fixed delay between attempts)
DEFAULT_API_RETRIES: int = 10
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Page size for drive listing calls
DEFAULT_PAGE_SIZE: int = 1000

# Read size when hashing local files (1 MB)
HASH_CHUNK_SIZE: int = 1024 * 1024


# =============================================================================
# Worker count
# =============================================================================


def resolve_worker_count(workers: int) -> int:
    """Turn a requested worker count into a usable one.

    Args:
        workers: Requested number of workers, 0 or less means "auto"

    Returns:
        Number of workers (at least 1)

    Examples:
        >>> resolve_worker_count(4)
        4
    """
    if workers > 0:
        return workers
    return max(1, os.cpu_count() or 1)


# =============================================================================
# Hash calculation utilities
# =============================================================================


def hash_local_file(file_path: Union[str, Path]) -> str:
    """Calculate the MD5 hex digest of a file.

    The file is read in chunks so large files are never loaded into memory.

    Args:
        file_path: Path to the file

    Returns:
        Lower-case hex digest, the same format the drive API reports

    Raises:
        OSError: If the file cannot be opened or read
    """
    digest = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


# =============================================================================
# Formatting utilities
# =============================================================================


def format_count(count: int, noun: str) -> str:
    """Format a count with a pluralised noun.

    Examples:
        >>> format_count(1, "file")
        '1 file'
        >>> format_count(3, "file")
        '3 files'
    """
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
