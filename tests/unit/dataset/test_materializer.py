"""Unit tests for dataset materialization."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from core.errors import CastConfigError, CastNotFoundError, CastStoreError, CastValidationError
from core.types import ContentEntry, DatasetInfo, Manifest, SourceInfo
from dataset.materializer import (
    is_materialized_dataset,
    load_materialized_dataset,
    materialize,
)
from store.content_store import ContentStore
from store.manifest_io import read_manifest


def _stored_manifest(store: ContentStore, name: str = "ncbi-nr") -> Manifest:
    fasta_hash = store.put(b">seq\nMKV\n")
    nodes_hash = store.put(b"1\t|\t1\n")
    return Manifest(
        dataset=DatasetInfo(name=name, version="2024-01-15"),
        source=SourceInfo(url="https://example.org/nr.gz"),
        contents=(
            ContentEntry(path="nr.fasta", hash=fasta_hash, size=9),
            ContentEntry(path="taxonomy/nodes.dmp", hash=nodes_hash, size=6),
        ),
    )


def test_materialize_links_entries_into_store(store_root: Path, tmp_path: Path) -> None:
    """Each entry should become a link to its blob's store path."""
    store = ContentStore(store_root)
    manifest = _stored_manifest(store)

    dataset = materialize(manifest, store_root, tmp_path / "out")

    link = dataset.data_path / "taxonomy" / "nodes.dmp"
    assert link.is_symlink()
    assert Path(os.readlink(link)) == store.object_path(manifest.contents[1].hash)
    assert link.read_bytes() == b"1\t|\t1\n"


def test_materialize_writes_manifest_and_info(store_root: Path, tmp_path: Path) -> None:
    """The tree should carry the manifest and a dataset-info file."""
    manifest = _stored_manifest(ContentStore(store_root))

    dataset = materialize(manifest, store_root, tmp_path / "out")

    info = json.loads((dataset.root / "dataset-info.json").read_text(encoding="utf-8"))
    assert read_manifest(dataset.manifest_path) == manifest
    assert info["store_root"] == str(store_root) and info["env_name"] == "NCBI_NR"


def test_materialize_exposes_name_derived_bindings(store_root: Path, tmp_path: Path) -> None:
    """Bindings should be keyed by the upper-cased dataset name."""
    manifest = _stored_manifest(ContentStore(store_root))

    dataset = materialize(manifest, store_root, tmp_path / "out")

    environment = dataset.environment()
    assert environment["CAST_DATASET_NCBI_NR"] == str(dataset.data_path)
    assert environment["CAST_DATASET_NCBI_NR_VERSION"] == "2024-01-15"


def test_materialize_allows_dangling_references(store_root: Path, tmp_path: Path) -> None:
    """Materialization should not require blobs to be present yet."""
    manifest = Manifest(
        dataset=DatasetInfo(name="pending", version="1"),
        source=SourceInfo(),
        contents=(ContentEntry(path="later.bin", hash="sha256:" + "e" * 64, size=4),),
    )

    dataset = materialize(manifest, store_root, tmp_path / "out")

    assert (dataset.data_path / "later.bin").is_symlink()
    assert not (dataset.data_path / "later.bin").exists()


def test_materialize_is_idempotent(store_root: Path, tmp_path: Path) -> None:
    """Materializing the same manifest twice should reuse the tree."""
    manifest = _stored_manifest(ContentStore(store_root))
    first = materialize(manifest, store_root, tmp_path / "out")

    second = materialize(manifest, store_root, tmp_path / "out")

    assert first == second


def test_materialize_refuses_to_overwrite_other_content(
    store_root: Path,
    tmp_path: Path,
) -> None:
    """An occupied destination with different content should be an error."""
    store = ContentStore(store_root)
    materialize(_stored_manifest(store, "first"), store_root, tmp_path / "out")

    with pytest.raises(CastStoreError, match="already exists"):
        materialize(_stored_manifest(store, "second"), store_root, tmp_path / "out")


def test_materialize_rejects_invalid_manifest_before_writing(
    store_root: Path,
    tmp_path: Path,
) -> None:
    """Hashes that are not store digests should fail before anything is created."""
    manifest = Manifest(
        dataset=DatasetInfo(name="bad", version="1"),
        source=SourceInfo(),
        contents=(ContentEntry(path="x", hash="h:h1", size=1),),
    )

    with pytest.raises(CastValidationError):
        materialize(manifest, store_root, tmp_path / "out")

    assert not (tmp_path / "out").exists()


def test_materialize_rejects_relative_store_root(tmp_path: Path) -> None:
    """Relative storage roots should be refused."""
    manifest = Manifest(dataset=DatasetInfo(name="empty", version="1"), source=SourceInfo())

    with pytest.raises(CastConfigError):
        materialize(manifest, "relative/root", tmp_path / "out")


def test_load_materialized_dataset_round_trips(store_root: Path, tmp_path: Path) -> None:
    """A materialized tree should re-open with the same manifest and root."""
    manifest = _stored_manifest(ContentStore(store_root))
    dataset = materialize(manifest, store_root, tmp_path / "out")

    reopened = load_materialized_dataset(dataset.root)

    assert reopened == dataset


def test_load_materialized_dataset_raises_for_plain_dir(tmp_path: Path) -> None:
    """A directory without the dataset layout should not load."""
    assert not is_materialized_dataset(tmp_path)
    with pytest.raises(CastNotFoundError):
        load_materialized_dataset(tmp_path)
