"""Directory capture into the content store.

This module walks a directory tree, stores every file, and returns the
matching inventory entries. It serves both initial registration of
external content and transformation output capture.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

from core.errors import CastStoreError
from core.types import ContentEntry
from store.content_store import ContentStore


def capture_directory(root: Path, store: ContentStore) -> tuple[ContentEntry, ...]:
    """Store every file under ``root`` and describe it.

    Symbolic links are followed: a link to a file is captured with the
    target's content, a link to a directory is walked unless it points
    back at one of its ancestors.

    Args:
        root: Directory to capture.
        store: Destination content store.

    Returns:
        Entries sorted by relative POSIX path.

    Raises:
        CastStoreError: If a file cannot be read, a link dangles, or a blob
            cannot be written.
    """
    entries = [
        _capture_file(file_path, relative_path, store)
        for file_path, relative_path in iter_directory_files(root)
    ]
    return tuple(sorted(entries, key=lambda entry: entry.path))


def iter_directory_files(root: Path) -> list[tuple[Path, str]]:
    """List files under a directory with their relative POSIX paths.

    A linked directory is skipped only when it points back at one of its
    own ancestors, so aliases of sibling directories are listed as well.

    Raises:
        CastStoreError: If the walk fails, finds a dangling link, or finds
            an entry that is not a regular file.
    """
    files: list[tuple[Path, str]] = []
    ancestry: dict[str, frozenset[str]] = {}

    def _raise_walk_error(error: OSError) -> None:
        raise CastStoreError(
            f"Failed to scan {error.filename}: {error.strerror}. Check directory permissions."
        ) from error

    walker = os.walk(root, onerror=_raise_walk_error, followlinks=True)
    for dir_name, sub_dirs, file_names in walker:
        real_dir = os.path.realpath(dir_name)
        parents = ancestry.get(os.path.dirname(dir_name), frozenset())
        if real_dir in parents:
            sub_dirs[:] = []
            continue
        ancestry[dir_name] = parents | {real_dir}
        sub_dirs.sort()
        for file_name in sorted(file_names):
            file_path = Path(dir_name) / file_name
            _require_regular_file(file_path)
            files.append((file_path, file_path.relative_to(root).as_posix()))
    return files


def _require_regular_file(file_path: Path) -> None:
    if not file_path.exists():
        raise CastStoreError(
            f"Dangling symbolic link {file_path} points to "
            f"{os.readlink(file_path)}. Remove the link or restore its target."
        )
    if not stat.S_ISREG(file_path.stat().st_mode):
        raise CastStoreError(
            f"{file_path} is not a regular file. "
            "Remove pipes, sockets, and device nodes from the directory before capturing it."
        )


def _capture_file(file_path: Path, relative_path: str, store: ContentStore) -> ContentEntry:
    """Store one file and build its inventory entry."""
    content_hash = store.put_file(file_path)
    try:
        file_stat = file_path.stat()
    except OSError as error:
        raise CastStoreError(
            f"Failed to stat {file_path}: {error}. Check that the file still exists."
        ) from error
    return ContentEntry(
        path=relative_path,
        hash=content_hash,
        size=file_stat.st_size,
        executable=bool(file_stat.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)),
    )
