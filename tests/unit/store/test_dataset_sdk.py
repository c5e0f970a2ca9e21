"""Unit tests for the SDK client."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import CastConfig
from core.errors import CastConfigError
from pipeline.builder_protocol import BuilderInvocation, FunctionBuilder
from pipeline.transform_types import TransformRequest
from store.dataset_sdk import CastClient
from tests.manifest_fixtures import manifest_fixture


def test_client_requires_store_root() -> None:
    """A client without any configured root should fail with remediation."""
    with pytest.raises(CastConfigError, match="not configured"):
        CastClient()


def test_client_reads_store_root_from_environment(
    monkeypatch: pytest.MonkeyPatch,
    store_root: Path,
) -> None:
    """The client should bind to CAST_STORE when no override is passed."""
    monkeypatch.setenv("CAST_STORE", str(store_root))

    assert CastClient().store_root == store_root


def test_explicit_root_overrides_config(store_root: Path, tmp_path: Path) -> None:
    """An explicit root should win over the configured one."""
    client = CastClient(CastConfig(store_root=tmp_path / "configured"), store_root=store_root)

    assert client.store_root == store_root


def test_clients_with_different_roots_are_independent(tmp_path: Path) -> None:
    """Hot and cold tiers should not see each other's content."""
    hot = CastClient(store_root=tmp_path / "hot")
    cold = hot.with_store_root(tmp_path / "cold")

    content_hash = hot.put(b"hot data")

    assert hot.exists(content_hash) and not cold.exists(content_hash)


def test_register_materialize_and_transform(store_root: Path, tmp_path: Path) -> None:
    """The client should run the full register to transform flow."""
    client = CastClient(store_root=store_root)
    download = tmp_path / "download"
    download.mkdir()
    (download / "seqs.txt").write_text("acgt", encoding="utf-8")

    manifest = client.register(download, "raw", "1")
    dataset = client.materialize(manifest, tmp_path / "raw")

    def _copy(invocation: BuilderInvocation) -> None:
        text = (invocation.source_root / "seqs.txt").read_text(encoding="utf-8")
        (invocation.output_root / "seqs.upper").write_text(text.upper(), encoding="utf-8")

    result = client.transform(
        TransformRequest(name="upper", source=dataset, builder=FunctionBuilder(_copy))
    )

    assert client.get(result.manifest.contents[0].hash).read_text(encoding="utf-8") == "ACGT"
    assert client.load_dataset(result.dataset.root) == result.dataset


def test_validate_manifest_reports_problems(store_root: Path) -> None:
    """Validation through the client should return problem strings."""
    client = CastClient(store_root=store_root)

    assert client.validate_manifest(manifest_fixture("ncbi_nr.json")) == []
    assert client.validate_manifest(manifest_fixture("missing_contents.json"))


def test_filter_keeps_matching_entries(store_root: Path) -> None:
    """Filtering through the client should narrow the contents."""
    client = CastClient(store_root=store_root)
    manifest = client.read_manifest(manifest_fixture("ncbi_nr.json"))

    filtered = client.filter(manifest, "taxonomy")

    assert len(filtered.contents) == 2
