"""Content hashing helpers.

This module computes algorithm-prefixed digests for bytes and files.
Files are hashed in fixed-size chunks so large databases never need
to fit in memory.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from core.constants import HASH_ALGORITHM, HASH_CHUNK_SIZE, HASH_HEX_LENGTH
from core.errors import CastStoreError, CastValidationError

HASH_PATTERN = re.compile(rf"^(?:[a-z0-9]+:)?[0-9a-f]{{{HASH_HEX_LENGTH}}}$")
_REFERENCE_PATTERN = re.compile(r"^[a-z0-9]+:[A-Za-z0-9._+-]+$")


def format_hash(hex_digest: str) -> str:
    """Prefix a hex digest with the configured algorithm name."""
    return f"{HASH_ALGORITHM}:{hex_digest}"


def strip_hash_prefix(value: str) -> str:
    """Remove an ``algorithm:`` prefix when present.

    Args:
        value: Hash string, prefixed or bare.

    Returns:
        Bare hex digest.
    """
    _, _, digest = value.rpartition(":")
    return digest


def is_valid_hash(value: object) -> bool:
    """Return whether a value matches the fixed-length digest pattern."""
    return isinstance(value, str) and HASH_PATTERN.match(value) is not None


def is_valid_hash_reference(value: object) -> bool:
    """Return whether a value may stand as a manifest content hash.

    Bare values must be full digests. Prefixed values may carry any token,
    except that the store's own algorithm prefix still requires a full digest.
    """
    if is_valid_hash(value):
        return True
    if not isinstance(value, str) or value.startswith(f"{HASH_ALGORITHM}:"):
        return False
    return _REFERENCE_PATTERN.match(value) is not None


def require_digest(value: str) -> str:
    """Return the bare digest of a valid hash string.

    Raises:
        CastValidationError: If the hash does not match the digest pattern.
    """
    if not is_valid_hash(value):
        raise CastValidationError(
            f"Invalid content hash '{value}': expected {HASH_HEX_LENGTH} lowercase hex "
            f"characters, optionally prefixed like '{HASH_ALGORITHM}:'. "
            "Copy the hash exactly as printed by 'cast put'."
        )
    return strip_hash_prefix(value)


def hash_bytes(data: bytes) -> str:
    """Hash an in-memory payload.

    Args:
        data: Raw bytes.

    Returns:
        Algorithm-prefixed hex digest.
    """
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(data)
    return format_hash(hasher.hexdigest())


def hash_file(file_path: Path) -> str:
    """Hash a file by streaming its content.

    Args:
        file_path: File to hash; symbolic links are followed.

    Returns:
        Algorithm-prefixed hex digest.

    Raises:
        CastStoreError: If the file cannot be read.
    """
    hasher = hashlib.new(HASH_ALGORITHM)
    try:
        with file_path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(HASH_CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError as error:
        raise CastStoreError(
            f"Failed to hash {file_path}: {error}. Check that the file exists and is readable."
        ) from error
    return format_hash(hasher.hexdigest())
