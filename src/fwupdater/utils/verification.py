"""MD5 helpers for firmware image integrity checking."""

import hashlib
import logging
from pathlib import Path


def md5_of_bytes(data: bytes) -> str:
    """Return the 32-char hex MD5 of an in-memory image."""
    return hashlib.md5(data).hexdigest()


def compute_md5(file_path: Path, chunk_size: int = 8192) -> str:
    """Compute MD5 hash of a file.

    Args:
        file_path: Path to file to hash
        chunk_size: Read buffer size (default 8KB for memory efficiency)

    Returns:
        32-character hex MD5 hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        IOError: If file read fails
    """
    logger = logging.getLogger("fwupdater.verification")
    md5_hash = hashlib.md5()

    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                md5_hash.update(chunk)
    except FileNotFoundError:
        logger.error(f"File not found: {file_path}")
        raise
    except IOError as e:
        logger.error(f"Failed to read file {file_path}: {e}")
        raise

    result = md5_hash.hexdigest()
    logger.debug(f"Computed MD5 for {file_path.name}: {result}")
    return result


def verify_md5_or_raise(file_path: Path, expected_md5: str) -> None:
    """Verify file MD5 hash, raise exception if mismatch.

    Raises:
        ValueError: If MD5 verification fails or format invalid
        FileNotFoundError: If file doesn't exist
    """
    if not isinstance(expected_md5, str) or len(expected_md5) != 32:
        raise ValueError(f"Invalid MD5 format: {expected_md5} (must be 32-char hex)")

    actual_md5 = compute_md5(file_path)
    if actual_md5 != expected_md5.lower():
        raise ValueError(f"MD5_MISMATCH: expected {expected_md5}, got {actual_md5}")
