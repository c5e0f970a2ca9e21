"""Typed transformation models and stage validation.

This module defines the engine's stage machine and the request/result
payloads exchanged with callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping, Union

from core.errors import CastError
from core.types import Manifest, MaterializedDataset, TransformationRecord
from pipeline.builder_protocol import Builder
from store.manifest_queries import transformation_chain

TransformStage = Literal[
    "init",
    "resolve_source",
    "execute_builder",
    "capture_outputs",
    "build_manifest",
    "done",
    "source_unavailable",
    "builder_failed",
    "empty_output",
]
ALLOWED_STAGE_TRANSITIONS: dict[TransformStage, tuple[TransformStage, ...]] = {
    "init": ("resolve_source",),
    "resolve_source": ("execute_builder", "source_unavailable"),
    "execute_builder": ("capture_outputs", "builder_failed"),
    "capture_outputs": ("build_manifest", "empty_output"),
    "build_manifest": ("done",),
    "done": (),
    "source_unavailable": (),
    "builder_failed": (),
    "empty_output": (),
}

TransformSource = Union[MaterializedDataset, Path, str]


def validate_stage_transition(current: TransformStage, next_stage: TransformStage) -> None:
    """Validate one stage transition against the allowed edges."""
    allowed_stages = ALLOWED_STAGE_TRANSITIONS[current]
    if next_stage not in allowed_stages:
        raise CastError(
            f"Invalid transformation stage transition {current!r} -> {next_stage!r}. "
            f"Allowed: {', '.join(allowed_stages) or 'none'}."
        )


@dataclass(frozen=True)
class TransformRequest:
    """One transformation to run.

    Attributes:
        name: Transformation name; also the output dataset name.
        source: Materialized dataset, or a path to one or to untracked input.
        builder: Processing step to run.
        params: JSON-serializable parameters recorded in provenance.
        source_hash: Optional representative hash overriding the derived one.
        output_dir: Optional destination for the materialized output.
    """

    name: str
    source: TransformSource
    builder: Builder
    params: Mapping[str, Any] = field(default_factory=dict)
    source_hash: str | None = None
    output_dir: Path | None = None


@dataclass(frozen=True)
class ResolvedSource:
    """Source state after resolution.

    Attributes:
        data_root: Directory or file holding the source content.
        manifest: Source manifest when the source is tracked.
        source_hash: Representative hash recorded as ``from``.
    """

    data_root: Path
    manifest: Manifest | None
    source_hash: str

    @property
    def chain(self) -> tuple[TransformationRecord, ...]:
        """Existing provenance chain of the source."""
        return transformation_chain(self.manifest)


@dataclass(frozen=True)
class TransformResult:
    """Output of a completed transformation.

    Attributes:
        manifest: Derived manifest.
        dataset: Materialized derived dataset, usable as a new source.
        stages: Stages visited, in order.
        reused: Whether an identical earlier output was returned.
    """

    manifest: Manifest
    dataset: MaterializedDataset
    stages: tuple[TransformStage, ...]
    reused: bool = False
