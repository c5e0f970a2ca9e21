"""Hash-addressed content store.

This module persists write-once blobs under a two-level sharded layout:
``<root>/store/<hash[0:2]>/<hash[2:4]>/<hash>``. Writes go to a temporary
file in the destination shard and are atomically renamed into place, so
concurrent writers of the same content converge on one complete blob
without locking.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from core.constants import HASH_ALGORITHM, HASH_CHUNK_SIZE, STORE_DIR_NAME, STORED_BLOB_MODE
from core.errors import CastNotFoundError, CastStoreError
from core.logging_config import get_logger
from store.content_hash import format_hash, hash_bytes, hash_file, strip_hash_prefix
from store.manifest_queries import hash_to_store_path

_LOGGER = get_logger(__name__)


class ContentStore:
    """Write-once blob store bound to one storage root.

    Instances are cheap handles; several stores with different roots
    can coexist in one process.
    """

    def __init__(self, store_root: Path) -> None:
        """Bind the store to a storage root.

        Args:
            store_root: Absolute storage root; blobs live under ``store/``.
        """
        self._root = Path(store_root)

    @property
    def root(self) -> Path:
        """Storage root this handle is bound to."""
        return self._root

    @property
    def store_path(self) -> Path:
        """Directory holding the sharded blob tree."""
        return self._root / STORE_DIR_NAME

    def initialize(self) -> None:
        """Create the storage root and blob directory.

        Raises:
            CastStoreError: If the directories cannot be created.
        """
        try:
            self.store_path.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise CastStoreError(
                f"Failed to create store directory {self.store_path}: {error}. "
                "Check permissions on the storage root."
            ) from error

    def object_path(self, content_hash: str) -> Path:
        """Return the sharded location for a hash without touching disk."""
        return hash_to_store_path(self._root, content_hash)

    def put(self, data: bytes) -> str:
        """Store an in-memory payload.

        Args:
            data: Raw bytes.

        Returns:
            Algorithm-prefixed content hash, whether or not a write happened.

        Raises:
            CastStoreError: If the blob cannot be written.
        """
        content_hash = hash_bytes(data)
        target_path = self.object_path(content_hash)
        if target_path.exists():
            _LOGGER.debug("blob_exists", hash=content_hash)
            return content_hash
        self._write_atomically(target_path, lambda handle: handle.write(data))
        _LOGGER.info("blob_stored", hash=content_hash, size=len(data))
        return content_hash

    def put_file(self, file_path: Path) -> str:
        """Store a file by streaming its content.

        The file is hashed first, so an already stored file costs one read.

        Args:
            file_path: Source file; symbolic links are followed.

        Returns:
            Algorithm-prefixed content hash.

        Raises:
            CastStoreError: If the file cannot be read, changes while being
                copied, or the blob cannot be written.
        """
        content_hash = hash_file(file_path)
        target_path = self.object_path(content_hash)
        if target_path.exists():
            _LOGGER.debug("blob_exists", hash=content_hash, source=str(file_path))
            return content_hash
        self._write_atomically(
            target_path,
            lambda handle: _copy_file_into(file_path, handle),
            expected_hash=content_hash,
        )
        _LOGGER.info("blob_stored", hash=content_hash, source=str(file_path))
        return content_hash

    def get(self, content_hash: str) -> Path:
        """Return the stored blob path for a hash.

        Raises:
            CastNotFoundError: If the hash is not present in the store.
        """
        target_path = self.object_path(content_hash)
        if not target_path.is_file():
            raise CastNotFoundError(
                f"Content {content_hash} not found in store {self.store_path}. "
                "Store it with 'cast put' or run the transformation that produces it."
            )
        return target_path

    def exists(self, content_hash: str) -> bool:
        """Return whether a blob is present; content is not re-verified."""
        return self.object_path(content_hash).is_file()

    def verify(self, content_hash: str) -> bool:
        """Re-hash a stored blob and compare with its address.

        Raises:
            CastNotFoundError: If the hash is not present in the store.
        """
        stored_hash = hash_file(self.get(content_hash))
        return strip_hash_prefix(stored_hash) == strip_hash_prefix(content_hash)

    def delete(self, content_hash: str) -> None:
        """Remove one blob and prune empty shard directories.

        Raises:
            CastNotFoundError: If the hash is not present in the store.
            CastStoreError: If the blob cannot be removed.
        """
        target_path = self.get(content_hash)
        try:
            target_path.unlink()
        except OSError as error:
            raise CastStoreError(
                f"Failed to delete {target_path}: {error}. Check permissions on the store."
            ) from error
        for shard_dir in (target_path.parent, target_path.parent.parent):
            if any(shard_dir.iterdir()):
                break
            shard_dir.rmdir()
        _LOGGER.info("blob_deleted", hash=content_hash)

    def iter_hashes(self) -> Iterator[str]:
        """Yield hashes of all stored blobs in path order."""
        if not self.store_path.exists():
            return
        for blob_path in sorted(self.store_path.glob("*/*/*")):
            if blob_path.is_file() and not blob_path.name.startswith("."):
                yield format_hash(blob_path.name)

    def _write_atomically(
        self,
        target_path: Path,
        write: Callable[[BinaryIO], object],
        expected_hash: str | None = None,
    ) -> None:
        """Write a blob through a temp file in the target shard.

        The temp file only becomes visible at ``target_path`` through
        ``os.replace``; a racing writer of identical content simply
        replaces one complete blob with another.

        Args:
            target_path: Final blob location.
            write: Callable receiving the open temp file handle.
            expected_hash: When set, the callable's return value must match.

        Raises:
            CastStoreError: If any filesystem step fails or the copied
                content does not match ``expected_hash``.
        """
        temp_name: str | None = None
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=target_path.parent,
                prefix=f".tmp-{target_path.name[:8]}-",
                delete=False,
            ) as handle:
                temp_name = handle.name
                written_hash = write(handle)
                handle.flush()
                os.fsync(handle.fileno())
            if expected_hash is not None and written_hash != expected_hash:
                raise CastStoreError(
                    f"Content changed while storing {target_path.name} "
                    f"(expected {expected_hash}, copied {written_hash}). "
                    "Retry once the source file is no longer being written."
                )
            os.chmod(temp_name, STORED_BLOB_MODE)
            os.replace(temp_name, target_path)
            temp_name = None
        except OSError as error:
            raise CastStoreError(
                f"Failed to write blob {target_path}: {error}. "
                "Check free space and permissions on the store."
            ) from error
        finally:
            if temp_name is not None:
                _discard(Path(temp_name))


def _copy_file_into(file_path: Path, handle: BinaryIO) -> str:
    """Copy a file into an open handle and return the hash of the copied bytes."""
    hasher = hashlib.new(HASH_ALGORITHM)
    with file_path.open("rb") as source:
        for chunk in iter(lambda: source.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
            handle.write(chunk)
    return format_hash(hasher.hexdigest())


def _discard(path: Path) -> None:
    """Remove a partially written temp file if it is still present."""
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as error:
        _LOGGER.warning("temp_cleanup_failed", path=str(path), error=str(error))
