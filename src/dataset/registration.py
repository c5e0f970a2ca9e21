"""Initial dataset registration.

This module wraps externally supplied content into a first manifest,
either from ready-made entries or by storing a local directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from core.constants import SCHEMA_VERSION
from core.errors import CastNotFoundError
from core.logging_config import get_logger
from core.types import ContentEntry, DatasetInfo, Manifest, SourceInfo
from store.content_capture import capture_directory
from store.content_store import ContentStore
from store.manifest_io import manifest_to_payload
from store.manifest_validation import ensure_valid_manifest_payload

_LOGGER = get_logger(__name__)


def build_manifest(
    name: str,
    version: str,
    contents: Iterable[ContentEntry],
    source: SourceInfo | None = None,
    description: str | None = None,
) -> Manifest:
    """Wrap content entries into a validated manifest with an empty chain.

    Args:
        name: Dataset name.
        version: Dataset version.
        contents: Inventory entries, kept in the given order.
        source: Optional source provenance.
        description: Optional dataset description.

    Returns:
        New manifest.

    Raises:
        CastValidationError: If the resulting manifest is invalid.
    """
    manifest = Manifest(
        schema_version=SCHEMA_VERSION,
        dataset=DatasetInfo(name=name, version=version, description=description),
        source=source or SourceInfo(),
        contents=tuple(contents),
        transformations=(),
    )
    ensure_valid_manifest_payload(manifest_to_payload(manifest), f"for {name}")
    return manifest


def register_directory(
    store: ContentStore,
    directory: Path,
    name: str,
    version: str,
    source: SourceInfo | None = None,
    description: str | None = None,
) -> Manifest:
    """Store every file of a local directory and describe it.

    Args:
        store: Destination content store.
        directory: Directory holding the dataset files.
        name: Dataset name.
        version: Dataset version.
        source: Optional source provenance.
        description: Optional dataset description.

    Returns:
        Initial manifest for the directory.

    Raises:
        CastNotFoundError: If the directory does not exist.
        CastStoreError: If a file cannot be stored.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        raise CastNotFoundError(
            f"Cannot register {name}: {directory} is not a directory. "
            "Point registration at the extracted dataset folder."
        )
    contents = capture_directory(directory, store)
    manifest = build_manifest(name, version, contents, source, description)
    _LOGGER.info(
        "dataset_registered",
        name=name,
        version=version,
        file_count=len(contents),
        total_bytes=sum(entry.size for entry in contents),
    )
    return manifest
