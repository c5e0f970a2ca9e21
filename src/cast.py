"""Public SDK surface for Cast.

This module provides a stable import path for library users.
It re-exports the primary client, typed models, and preset builders.
"""

from __future__ import annotations

from core.config import CastConfig
from core.types import (
    ContentEntry,
    DatasetInfo,
    Manifest,
    MaterializedDataset,
    SourceInfo,
    TransformationRecord,
)
from dataset.materializer import materialize
from dataset.registration import build_manifest
from pipeline.builder_protocol import BuilderInvocation, CommandBuilder, FunctionBuilder
from pipeline.transform_types import TransformRequest, TransformResult
from store.dataset_sdk import CastClient
from store.manifest_io import read_manifest, write_manifest
from store.manifest_queries import filter_by_path_prefix
from transforms.archive_extraction import extract_archive
from transforms.sequence_databases import to_blast, to_diamond, to_mmseqs

__all__ = [
    "BuilderInvocation",
    "CastClient",
    "CastConfig",
    "CommandBuilder",
    "ContentEntry",
    "DatasetInfo",
    "FunctionBuilder",
    "Manifest",
    "MaterializedDataset",
    "SourceInfo",
    "TransformRequest",
    "TransformResult",
    "TransformationRecord",
    "build_manifest",
    "extract_archive",
    "filter_by_path_prefix",
    "materialize",
    "read_manifest",
    "to_blast",
    "to_diamond",
    "to_mmseqs",
    "write_manifest",
]
