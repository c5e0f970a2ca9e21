"""Shared typed models.

This module defines the immutable manifest model used by the store,
materializer, and transformation layers. Manifests are values: any
edit produces a new object via ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from core.constants import (
    DATA_DIR_NAME,
    DATASET_ENV_PREFIX,
    MANIFEST_FILE_NAME,
    SCHEMA_VERSION,
)


@dataclass(frozen=True)
class DatasetInfo:
    """Dataset identity block.

    Attributes:
        name: Logical dataset name.
        version: Dataset version label.
        description: Optional human readable description.
    """

    name: str
    version: str
    description: str | None = None


@dataclass(frozen=True)
class SourceInfo:
    """Where the dataset content originally came from.

    Attributes:
        url: Source URL, or a ``transformed://`` tag for derived data.
        download_date: ISO 8601 download timestamp.
        server_mtime: ISO 8601 server modification time.
        archive_hash: Hash of the source archive, or a sentinel.
    """

    url: str | None = None
    download_date: str | None = None
    server_mtime: str | None = None
    archive_hash: str | None = None


@dataclass(frozen=True)
class ContentEntry:
    """One file in a dataset inventory.

    Attributes:
        path: POSIX path relative to the dataset root.
        hash: Content hash, optionally algorithm-prefixed.
        size: File size in bytes.
        executable: Whether the file carries an executable bit.
    """

    path: str
    hash: str
    size: int
    executable: bool = False


@dataclass(frozen=True)
class TransformationRecord:
    """One provenance step.

    Attributes:
        transform_type: Transformation name (JSON ``type``).
        source_hash: Representative hash of the input state (JSON ``from``).
        params: Parameters the transformation ran with.
    """

    transform_type: str
    source_hash: str
    params: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class Manifest:
    """Versioned dataset metadata.

    Attributes:
        dataset: Dataset identity.
        source: Source provenance.
        contents: Ordered file inventory.
        transformations: Ordered, append-only provenance chain.
        schema_version: Manifest schema version.
    """

    dataset: DatasetInfo
    source: SourceInfo
    contents: tuple[ContentEntry, ...] = ()
    transformations: tuple[TransformationRecord, ...] = ()
    schema_version: str = SCHEMA_VERSION


@dataclass(frozen=True)
class MaterializedDataset:
    """A manifest realized as a tree of store references.

    Attributes:
        root: Materialized dataset directory.
        manifest: Manifest the tree was built from.
        store_root: Storage root the references point into.
        env_name: Name-derived binding identifier, e.g. ``NCBI_NR``.
    """

    root: Path
    manifest: Manifest
    store_root: Path
    env_name: str

    @property
    def data_path(self) -> Path:
        """Directory holding the content references."""
        return self.root / DATA_DIR_NAME

    @property
    def manifest_path(self) -> Path:
        """Manifest file written next to the data tree."""
        return self.root / MANIFEST_FILE_NAME

    def environment(self) -> dict[str, str]:
        """Return name-derived bindings for downstream lookup."""
        prefix = f"{DATASET_ENV_PREFIX}{self.env_name}"
        return {
            prefix: str(self.data_path),
            f"{prefix}_VERSION": self.manifest.dataset.version,
            f"{prefix}_MANIFEST": str(self.manifest_path),
        }
