"""Python SDK for dataset operations.

This module exposes high-level APIs for storing content, registering
and materializing datasets, and running transformations against one
configured storage root.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from core.config import CastConfig, resolve_store_root
from core.types import Manifest, MaterializedDataset, SourceInfo
from dataset.materializer import load_materialized_dataset, materialize
from dataset.registration import register_directory
from pipeline.transform_engine import TransformationEngine
from pipeline.transform_types import TransformRequest, TransformResult
from store.content_store import ContentStore
from store.manifest_io import ManifestSource, load_manifest_payload, read_manifest
from store.manifest_queries import filter_by_path_prefix
from store.manifest_validation import validate_manifest_payload


class CastClient:
    """Primary SDK entry point bound to one storage root."""

    def __init__(
        self,
        config: CastConfig | None = None,
        store_root: str | Path | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration, read from the
                environment when omitted.
            store_root: Optional explicit storage root overriding config.

        Raises:
            CastConfigError: If no absolute storage root can be resolved.
        """
        self._config = config or CastConfig.from_env()
        self._store = ContentStore(resolve_store_root(store_root, self._config))

    @property
    def store(self) -> ContentStore:
        """Return the content store backing this client."""
        return self._store

    @property
    def store_root(self) -> Path:
        """Return the resolved storage root."""
        return self._store.root

    def with_store_root(self, store_root: str | Path) -> "CastClient":
        """Clone the client with a different storage root.

        Args:
            store_root: New absolute storage root.

        Returns:
            New SDK client instance.
        """
        resolved_root = resolve_store_root(store_root)
        return CastClient(replace(self._config, store_root=resolved_root))

    def put(self, data: bytes) -> str:
        """Store bytes and return their content hash."""
        return self._store.put(data)

    def put_file(self, file_path: str | Path) -> str:
        """Store a file's bytes and return their content hash."""
        return self._store.put_file(Path(file_path))

    def get(self, content_hash: str) -> Path:
        """Return the stored blob path for a content hash."""
        return self._store.get(content_hash)

    def exists(self, content_hash: str) -> bool:
        """Return whether a content hash is present in the store."""
        return self._store.exists(content_hash)

    def read_manifest(self, source: ManifestSource) -> Manifest:
        """Parse and validate a manifest from a path, JSON text, or mapping."""
        return read_manifest(source)

    def validate_manifest(self, source: ManifestSource) -> list[str]:
        """Return validation problems for a manifest, empty when valid.

        Raises:
            CastNotFoundError: If a manifest path does not exist.
            CastParseError: If the input is not JSON.
        """
        return validate_manifest_payload(load_manifest_payload(source))

    def register(
        self,
        directory: str | Path,
        name: str,
        version: str,
        source: SourceInfo | None = None,
        description: str | None = None,
    ) -> Manifest:
        """Store a local directory and return its initial manifest.

        Args:
            directory: Directory holding the dataset files.
            name: Dataset name.
            version: Dataset version.
            source: Optional source provenance.
            description: Optional dataset description.

        Returns:
            Initial manifest with an empty provenance chain.
        """
        return register_directory(
            self._store, Path(directory), name, version, source, description
        )

    def materialize(self, manifest: Manifest, output_dir: str | Path) -> MaterializedDataset:
        """Realize a manifest as a dataset tree under ``output_dir``."""
        return materialize(manifest, self._store.root, output_dir)

    def load_dataset(self, root: str | Path) -> MaterializedDataset:
        """Re-open a materialized dataset directory."""
        return load_materialized_dataset(root)

    def filter(self, manifest: Manifest, needle: str) -> Manifest:
        """Keep entries whose path contains ``needle``."""
        return filter_by_path_prefix(manifest, needle)

    def transform(self, request: TransformRequest) -> TransformResult:
        """Run a transformation against this client's store.

        Args:
            request: Transformation to run.

        Returns:
            Derived manifest and materialized dataset.
        """
        engine = TransformationEngine(self._store, self._config.work_root)
        return engine.run(request)
