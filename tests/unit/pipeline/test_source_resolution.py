"""Unit tests for transformation source resolution."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from core.errors import CastSourceUnavailableError
from core.types import ContentEntry, DatasetInfo, Manifest, MaterializedDataset, SourceInfo
from dataset.materializer import materialize
from pipeline.source_resolution import (
    prepare_source_view,
    release_source_view,
    representative_hash,
    resolve_source,
    snapshot_source_view,
)
from store.content_store import ContentStore
from store.manifest_queries import content_digest

_ARCHIVE_HASH = "sha256:" + "f" * 64


def _materialized(
    store_root: Path,
    output_root: Path,
    archive_hash: str | None = _ARCHIVE_HASH,
) -> MaterializedDataset:
    store = ContentStore(store_root)
    manifest = Manifest(
        dataset=DatasetInfo(name="source", version="7"),
        source=SourceInfo(archive_hash=archive_hash),
        contents=(ContentEntry(path="in.txt", hash=store.put(b"input"), size=5),),
    )
    return materialize(manifest, store_root, output_root)


def test_tracked_source_uses_archive_hash(store_root: Path, tmp_path: Path) -> None:
    """Registered datasets should be represented by their archive hash."""
    dataset = _materialized(store_root, tmp_path / "src")

    resolved = resolve_source(dataset)

    assert resolved.source_hash == _ARCHIVE_HASH
    assert resolved.data_root == dataset.data_path
    assert resolved.manifest == dataset.manifest


def test_tracked_source_path_is_loaded(store_root: Path, tmp_path: Path) -> None:
    """A path to a materialized dataset should resolve as tracked."""
    dataset = _materialized(store_root, tmp_path / "src")

    resolved = resolve_source(dataset.root)

    assert resolved.manifest == dataset.manifest


def test_derived_source_uses_content_digest(store_root: Path, tmp_path: Path) -> None:
    """Derived datasets should be represented by their content digest."""
    dataset = _materialized(store_root, tmp_path / "src", archive_hash="sha256:transformed")

    assert representative_hash(dataset.manifest) == content_digest(dataset.manifest)


def test_representative_hash_without_archive_hash(store_root: Path, tmp_path: Path) -> None:
    """Manifests without an archive hash fall back to the content digest."""
    manifest = _materialized(store_root, tmp_path / "src").manifest
    bare = replace(manifest, source=SourceInfo())

    assert representative_hash(bare) == content_digest(bare)


def test_explicit_source_hash_wins(store_root: Path, tmp_path: Path) -> None:
    """An explicit hash should override the derived one."""
    dataset = _materialized(store_root, tmp_path / "src")
    explicit = "sha256:" + "9" * 64

    assert resolve_source(dataset, explicit).source_hash == explicit


def test_untracked_directory_starts_new_chain(tmp_path: Path) -> None:
    """Plain directories should resolve with the unknown sentinel."""
    raw = tmp_path / "raw"
    raw.mkdir()

    resolved = resolve_source(raw)

    assert resolved.manifest is None
    assert resolved.source_hash == "sha256:unknown"
    assert resolved.chain == ()


def test_missing_source_is_unavailable(tmp_path: Path) -> None:
    """A missing path should raise source unavailable."""
    with pytest.raises(CastSourceUnavailableError):
        resolve_source(tmp_path / "absent")


def test_single_file_source_gets_a_directory_view(tmp_path: Path) -> None:
    """A single untracked file should be exposed through a directory."""
    single = tmp_path / "reads.fasta"
    single.write_text(">r\nACGT\n", encoding="utf-8")
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    view = prepare_source_view(resolve_source(single), work_dir)
    contents = (view / "reads.fasta").read_text(encoding="utf-8")
    release_source_view(view)

    assert contents == ">r\nACGT\n"


def test_directory_view_mirrors_source_read_only(tmp_path: Path) -> None:
    """A directory view should link every file and lock its directories."""
    raw = tmp_path / "raw"
    (raw / "taxonomy").mkdir(parents=True)
    (raw / "nr.fasta").write_text(">p\nM\n", encoding="utf-8")
    (raw / "taxonomy" / "nodes.dmp").write_text("1", encoding="utf-8")
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    view = prepare_source_view(resolve_source(raw), work_dir)
    snapshot = snapshot_source_view(view)
    view_mode = view.stat().st_mode & 0o777
    nested_mode = (view / "taxonomy").stat().st_mode & 0o777
    release_source_view(view)

    assert view != raw
    assert snapshot == (
        ("nr.fasta", str(raw / "nr.fasta")),
        ("taxonomy", ""),
        ("taxonomy/nodes.dmp", str(raw / "taxonomy" / "nodes.dmp")),
    )
    assert view_mode == 0o555 and nested_mode == 0o555
    assert (view / "taxonomy").stat().st_mode & 0o777 == 0o755
