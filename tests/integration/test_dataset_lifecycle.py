"""Integration tests for the dataset lifecycle."""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

from core.types import SourceInfo
from pipeline.builder_protocol import BuilderInvocation, FunctionBuilder
from pipeline.transform_types import TransformRequest
from store.content_hash import hash_file
from store.dataset_sdk import CastClient
from store.manifest_io import read_manifest
from transforms.archive_extraction import extract_archive


def _download_dir(tmp_path: Path) -> Path:
    download = tmp_path / "download"
    download.mkdir()
    with tarfile.open(download / "pdb.tar.gz", "w:gz") as archive:
        for name, payload in {
            "pdb/seqres.fasta": b">1abc\nMKV\n>2xyz\nGGA\n",
            "pdb/README": b"PDB sequences",
        }.items():
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            archive.addfile(info, io.BytesIO(payload))
    return download


def _count_records(invocation: BuilderInvocation) -> None:
    fasta = invocation.source_root / "seqres.fasta"
    headers = [line for line in fasta.read_text().splitlines() if line.startswith(">")]
    (invocation.output_root / "counts.txt").write_text(f"{len(headers)}\n")


def test_register_extract_and_derive_flow(tmp_path: Path) -> None:
    """End-to-end flow should register, extract, derive, and keep provenance."""
    client = CastClient(store_root=tmp_path / "cast-root")
    download = _download_dir(tmp_path)
    archive_hash = hash_file(download / "pdb.tar.gz")

    registered = client.register(
        download,
        "pdb-raw",
        "2024-02",
        source=SourceInfo(url="https://example.org/pdb.tar.gz", archive_hash=archive_hash),
    )
    raw = client.materialize(registered, tmp_path / "pdb-raw")
    extracted = client.transform(extract_archive("pdb", raw, strip_components=1))
    counted = client.transform(
        TransformRequest(
            name="pdb-counts",
            source=extracted.dataset,
            builder=FunctionBuilder(_count_records),
            params={"unit": "records"},
        )
    )

    chain = counted.manifest.transformations
    assert [record.transform_type for record in chain] == ["pdb", "pdb-counts"]
    assert chain[0].source_hash == archive_hash
    assert (counted.dataset.data_path / "counts.txt").read_text() == "2\n"
    assert read_manifest(counted.dataset.manifest_path) == counted.manifest
    assert counted.dataset.environment()["CAST_DATASET_PDB_COUNTS_VERSION"] == "2024-02"
