"""Dataset materialization.

This module turns a manifest plus a storage root into a working tree:
``data/`` holds one symbolic link per content entry pointing at the
blob's sharded store location, next to ``manifest.json`` and
``dataset-info.json``. Materialization is metadata-driven only; links
may dangle until the referenced blobs are stored.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path

from core.config import resolve_store_root
from core.constants import (
    DATA_DIR_NAME,
    DATASET_INFO_FILE_NAME,
    MANIFEST_FILE_NAME,
)
from core.errors import CastNotFoundError, CastStoreError
from core.logging_config import get_logger
from core.types import Manifest, MaterializedDataset
from store.content_hash import require_digest
from store.manifest_io import (
    manifest_to_json,
    manifest_to_payload,
    read_manifest,
    write_manifest,
)
from store.manifest_queries import dataset_env_name, hash_to_store_path
from store.manifest_validation import ensure_valid_manifest_payload

_LOGGER = get_logger(__name__)


def materialize(
    manifest: Manifest,
    store_root: Path | str,
    output_root: Path | str,
) -> MaterializedDataset:
    """Realize a manifest as a tree of store references.

    The manifest is validated before anything is created. The tree is
    built in a staging directory beside ``output_root`` and renamed into
    place, so a half-built dataset is never visible. Re-materializing an
    identical manifest into the same place returns the existing tree.

    Args:
        manifest: Manifest to realize.
        store_root: Absolute storage root the references point into.
        output_root: Destination dataset directory.

    Returns:
        Materialized dataset with its name-derived binding.

    Raises:
        CastConfigError: If ``store_root`` is not absolute.
        CastValidationError: If the manifest is invalid or a hash is not a
            store digest.
        CastStoreError: If the destination holds something else or a
            filesystem step fails.
    """
    resolved_store = resolve_store_root(store_root)
    ensure_valid_manifest_payload(manifest_to_payload(manifest), f"for {manifest.dataset.name}")
    for entry in manifest.contents:
        require_digest(entry.hash)
    target_root = Path(output_root).expanduser().absolute()
    dataset = MaterializedDataset(
        root=target_root,
        manifest=manifest,
        store_root=resolved_store,
        env_name=dataset_env_name(manifest.dataset.name),
    )
    if _prepare_target(target_root, manifest):
        _LOGGER.info("dataset_reused", name=manifest.dataset.name, root=str(target_root))
        return dataset
    staging_root = _create_staging_dir(target_root)
    try:
        _populate(staging_root, dataset)
        os.rename(staging_root, target_root)
    except OSError as error:
        shutil.rmtree(staging_root, ignore_errors=True)
        if _holds_manifest(target_root, manifest):
            return dataset
        raise CastStoreError(
            f"Failed to materialize {manifest.dataset.name} at {target_root}: {error}. "
            "Check permissions on the destination and retry."
        ) from error
    except BaseException:
        shutil.rmtree(staging_root, ignore_errors=True)
        raise
    _LOGGER.info(
        "dataset_materialized",
        name=manifest.dataset.name,
        version=manifest.dataset.version,
        root=str(target_root),
        file_count=len(manifest.contents),
    )
    return dataset


def load_materialized_dataset(root: Path | str) -> MaterializedDataset:
    """Re-open a previously materialized dataset.

    Args:
        root: Materialized dataset directory.

    Returns:
        Dataset handle with its manifest and storage root.

    Raises:
        CastNotFoundError: If the directory is not a materialized dataset.
    """
    dataset_root = Path(root).expanduser().absolute()
    info_path = dataset_root / DATASET_INFO_FILE_NAME
    if not is_materialized_dataset(dataset_root):
        raise CastNotFoundError(
            f"No materialized dataset at {dataset_root}: expected {MANIFEST_FILE_NAME}, "
            f"{DATASET_INFO_FILE_NAME} and {DATA_DIR_NAME}/. Run materialize first."
        )
    manifest = read_manifest(dataset_root / MANIFEST_FILE_NAME)
    try:
        info = json.loads(info_path.read_text(encoding="utf-8"))
        store_root = Path(str(info["store_root"]))
    except (OSError, ValueError, KeyError, TypeError) as error:
        raise CastStoreError(
            f"Failed to read {info_path}: {error}. Re-materialize the dataset."
        ) from error
    return MaterializedDataset(
        root=dataset_root,
        manifest=manifest,
        store_root=store_root,
        env_name=dataset_env_name(manifest.dataset.name),
    )


def is_materialized_dataset(root: Path) -> bool:
    """Return whether a directory looks like a materialized dataset."""
    return (
        (root / MANIFEST_FILE_NAME).is_file()
        and (root / DATASET_INFO_FILE_NAME).is_file()
        and (root / DATA_DIR_NAME).is_dir()
    )


def _prepare_target(target_root: Path, manifest: Manifest) -> bool:
    """Check the destination before staging.

    Returns:
        True when the destination already holds this exact manifest.

    Raises:
        CastStoreError: If the destination holds anything else.
    """
    if not target_root.exists():
        return False
    if _holds_manifest(target_root, manifest):
        return True
    if target_root.is_dir() and not any(target_root.iterdir()):
        target_root.rmdir()
        return False
    raise CastStoreError(
        f"Cannot materialize {manifest.dataset.name} at {target_root}: the path already "
        "exists with different content. Remove it or choose another output directory."
    )


def _holds_manifest(target_root: Path, manifest: Manifest) -> bool:
    manifest_path = target_root / MANIFEST_FILE_NAME
    if not manifest_path.is_file():
        return False
    try:
        return manifest_path.read_text(encoding="utf-8") == manifest_to_json(manifest)
    except OSError:
        return False


def _create_staging_dir(target_root: Path) -> Path:
    try:
        target_root.parent.mkdir(parents=True, exist_ok=True)
        return Path(
            tempfile.mkdtemp(dir=target_root.parent, prefix=f".{target_root.name}.staging-")
        )
    except OSError as error:
        raise CastStoreError(
            f"Failed to prepare staging directory next to {target_root}: {error}. "
            "Check permissions on the parent directory."
        ) from error


def _populate(staging_root: Path, dataset: MaterializedDataset) -> None:
    """Create references, manifest, and dataset info inside the staging tree."""
    data_root = staging_root / DATA_DIR_NAME
    data_root.mkdir()
    for entry in dataset.manifest.contents:
        link_path = data_root / entry.path
        link_path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(hash_to_store_path(dataset.store_root, entry.hash), link_path)
    info = {
        "name": dataset.manifest.dataset.name,
        "version": dataset.manifest.dataset.version,
        "store_root": str(dataset.store_root),
        "data_path": str(dataset.data_path),
        "env_name": dataset.env_name,
    }
    (staging_root / DATASET_INFO_FILE_NAME).write_text(
        json.dumps(info, indent=2) + "\n", encoding="utf-8"
    )
    write_manifest(staging_root / MANIFEST_FILE_NAME, dataset.manifest)
