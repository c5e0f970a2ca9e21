"""Transformation source resolution.

This module decides whether a source is a tracked dataset (continue its
provenance chain) or untracked input (start a new chain from the
unknown sentinel), and prepares the view handed to the builder.
"""

from __future__ import annotations

import os
from pathlib import Path

from core.constants import (
    SOURCE_VIEW_DIR_MODE,
    SOURCE_VIEW_DIR_NAME,
    TRANSFORMED_ARCHIVE_HASH,
    UNKNOWN_SOURCE_HASH,
    WRITABLE_DIR_MODE,
)
from core.errors import CastSourceUnavailableError
from core.types import Manifest, MaterializedDataset
from dataset.materializer import is_materialized_dataset, load_materialized_dataset
from pipeline.transform_types import ResolvedSource, TransformSource
from store.manifest_queries import content_digest


def resolve_source(source: TransformSource, source_hash: str | None = None) -> ResolvedSource:
    """Resolve a transformation source.

    Args:
        source: Materialized dataset, or a path to one or to untracked input.
        source_hash: Optional explicit representative hash.

    Returns:
        Resolved source with its data location and provenance hash.

    Raises:
        CastSourceUnavailableError: If the source content does not exist.
    """
    if isinstance(source, MaterializedDataset):
        dataset: MaterializedDataset | None = source
    else:
        source_path = Path(source).expanduser().absolute()
        if not source_path.exists():
            raise CastSourceUnavailableError(
                f"Transformation source {source_path} does not exist. "
                "Materialize the source dataset or fix the input path."
            )
        dataset = load_materialized_dataset(source_path) if is_materialized_dataset(
            source_path
        ) else None
        if dataset is None:
            return ResolvedSource(
                data_root=source_path,
                manifest=None,
                source_hash=source_hash or UNKNOWN_SOURCE_HASH,
            )
    if not dataset.data_path.is_dir():
        raise CastSourceUnavailableError(
            f"Dataset {dataset.manifest.dataset.name} has no data directory at "
            f"{dataset.data_path}. Re-materialize the dataset before transforming it."
        )
    return ResolvedSource(
        data_root=dataset.data_path,
        manifest=dataset.manifest,
        source_hash=source_hash or representative_hash(dataset.manifest),
    )


def representative_hash(manifest: Manifest) -> str:
    """Pick the hash that stands for a manifest's current state.

    The archive hash identifies registered data; derived datasets carry
    the transformed sentinel instead, so their content digest is used.
    """
    archive_hash = manifest.source.archive_hash
    if archive_hash and archive_hash != TRANSFORMED_ARCHIVE_HASH:
        return archive_hash
    return content_digest(manifest)


def prepare_source_view(resolved: ResolvedSource, work_dir: Path) -> Path:
    """Build the read-only tree the builder reads from.

    The view mirrors the source with one link per file and per linked
    directory, then its directories are made read-only. Builders can read
    every source file but cannot add, remove, or replace source entries.
    A single untracked file is exposed through a view holding one link.

    Args:
        resolved: Resolved transformation source.
        work_dir: Scratch directory of the current run.

    Returns:
        Root of the source view.
    """
    view_dir = work_dir / SOURCE_VIEW_DIR_NAME
    view_dir.mkdir()
    if resolved.data_root.is_dir():
        _mirror_directory(resolved.data_root, view_dir)
    else:
        os.symlink(resolved.data_root, view_dir / resolved.data_root.name)
    _set_directory_modes(view_dir, SOURCE_VIEW_DIR_MODE)
    return view_dir


def release_source_view(view_dir: Path) -> None:
    """Make a source view writable again so its scratch directory can be removed."""
    if view_dir.is_dir() and not view_dir.is_symlink():
        _set_directory_modes(view_dir, WRITABLE_DIR_MODE)


def snapshot_source_view(view_dir: Path) -> tuple[tuple[str, str], ...]:
    """Describe every entry of a source view and where its links point."""
    entries: list[tuple[str, str]] = []
    for dir_name, sub_dirs, file_names in os.walk(view_dir):
        for entry_name in sorted([*sub_dirs, *file_names]):
            entry_path = os.path.join(dir_name, entry_name)
            target = os.readlink(entry_path) if os.path.islink(entry_path) else ""
            entries.append((os.path.relpath(entry_path, view_dir), target))
    return tuple(sorted(entries))


def _mirror_directory(source_dir: Path, view_dir: Path) -> None:
    source_dir = source_dir.absolute()
    for dir_name, sub_dirs, file_names in os.walk(source_dir):
        relative_dir = os.path.relpath(dir_name, source_dir)
        target_dir = os.path.normpath(os.path.join(view_dir, relative_dir))
        for entry_name in [*sub_dirs, *file_names]:
            entry_path = os.path.join(dir_name, entry_name)
            if entry_name in sub_dirs and not os.path.islink(entry_path):
                os.mkdir(os.path.join(target_dir, entry_name))
            else:
                os.symlink(entry_path, os.path.join(target_dir, entry_name))


def _set_directory_modes(root: Path, mode: int) -> None:
    for dir_name, sub_dirs, _ in os.walk(root, topdown=False):
        for sub_dir in sub_dirs:
            sub_path = os.path.join(dir_name, sub_dir)
            if not os.path.islink(sub_path):
                os.chmod(sub_path, mode)
    os.chmod(root, mode)
