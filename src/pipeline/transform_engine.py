"""Transformation engine.

This module runs one transformation end to end: resolve the source, run
the builder in a scratch directory, capture its outputs into the content
store, and materialize a derived dataset whose provenance chain is the
source chain plus exactly one record.
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from core.constants import (
    DATASETS_DIR_NAME,
    DEFAULT_TRANSFORMED_VERSION,
    OUTPUT_DIGEST_LENGTH,
    OUTPUT_DIR_NAME,
    SCHEMA_VERSION,
    TRANSFORMED_ARCHIVE_HASH,
    TRANSFORMED_URL_SCHEME,
    UNKNOWN_SERVER_MTIME,
)
from core.errors import (
    CastBuilderError,
    CastEmptyOutputError,
    CastError,
    CastSourceUnavailableError,
    CastValidationError,
)
from core.logging_config import get_logger
from core.types import (
    ContentEntry,
    DatasetInfo,
    Manifest,
    MaterializedDataset,
    SourceInfo,
    TransformationRecord,
)
from dataset.materializer import (
    is_materialized_dataset,
    load_materialized_dataset,
    materialize,
)
from pipeline.builder_protocol import BuilderInvocation
from pipeline.source_resolution import (
    prepare_source_view,
    release_source_view,
    resolve_source,
    snapshot_source_view,
)
from pipeline.transform_types import (
    ResolvedSource,
    TransformRequest,
    TransformResult,
    TransformStage,
    validate_stage_transition,
)
from store.content_capture import capture_directory, iter_directory_files
from store.content_hash import strip_hash_prefix
from store.content_store import ContentStore
from store.manifest_queries import append_transformation, content_digest

_LOGGER = get_logger(__name__)


@dataclass
class _StageTracker:
    """Mutable record of the stages one run has visited."""

    name: str
    current: TransformStage = "init"
    visited: list[TransformStage] = field(default_factory=lambda: ["init"])

    def advance(self, next_stage: TransformStage) -> None:
        validate_stage_transition(self.current, next_stage)
        self.current = next_stage
        self.visited.append(next_stage)
        _LOGGER.debug("transform_stage", name=self.name, stage=next_stage)


class TransformationEngine:
    """Runner that turns a source dataset into a derived dataset."""

    def __init__(self, store: ContentStore, work_root: Path | None = None) -> None:
        self._store = store
        self._work_root = work_root

    def run(self, request: TransformRequest) -> TransformResult:
        """Execute one transformation.

        Args:
            request: Transformation to run.

        Returns:
            Derived manifest and its materialized dataset.

        Raises:
            CastValidationError: If the request is malformed.
            CastSourceUnavailableError: If the source cannot be found.
            CastBuilderError: If the builder fails.
            CastEmptyOutputError: If the builder produced no files.
            CastStoreError: If capture or materialization fails.
        """
        params_json = _serialize_params(request)
        tracker = _StageTracker(request.name)
        try:
            result = self._run_stages(request, params_json, tracker)
        except CastError as error:
            _LOGGER.error(
                "transform_failed",
                name=request.name,
                stage=tracker.current,
                error_type=type(error).__name__,
                error=str(error),
            )
            raise
        _LOGGER.info(
            "transform_completed",
            name=request.name,
            root=str(result.dataset.root),
            file_count=len(result.manifest.contents),
            chain_length=len(result.manifest.transformations),
            reused=result.reused,
        )
        return result

    def _run_stages(
        self,
        request: TransformRequest,
        params_json: str,
        tracker: _StageTracker,
    ) -> TransformResult:
        tracker.advance("resolve_source")
        try:
            resolved = resolve_source(request.source, request.source_hash)
        except CastSourceUnavailableError:
            tracker.advance("source_unavailable")
            raise
        self._store.initialize()
        with tempfile.TemporaryDirectory(prefix="cast-transform-", dir=self._work_root) as work:
            work_dir = Path(work)
            output_root = work_dir / OUTPUT_DIR_NAME
            output_root.mkdir()
            tracker.advance("execute_builder")
            source_view = prepare_source_view(resolved, work_dir)
            invocation = BuilderInvocation(
                name=request.name,
                source_root=source_view,
                output_root=output_root,
                work_dir=work_dir,
                params_json=params_json,
                params=dict(request.params),
            )
            try:
                _execute_builder(request, invocation, tracker)
            finally:
                release_source_view(source_view)
            tracker.advance("capture_outputs")
            if not iter_directory_files(output_root):
                tracker.advance("empty_output")
                raise CastEmptyOutputError(
                    f"Transformation {request.name} produced no output files. "
                    "Check that the builder writes into its output directory."
                )
            contents = capture_directory(output_root, self._store)
        tracker.advance("build_manifest")
        manifest = build_derived_manifest(request, resolved, contents)
        output_dir = request.output_dir or self.default_output_dir(manifest)
        existing = _find_equivalent_dataset(Path(output_dir), manifest)
        if existing is not None:
            tracker.advance("done")
            return TransformResult(
                manifest=existing.manifest,
                dataset=existing,
                stages=tuple(tracker.visited),
                reused=True,
            )
        dataset = materialize(manifest, self._store.root, output_dir)
        tracker.advance("done")
        return TransformResult(manifest=manifest, dataset=dataset, stages=tuple(tracker.visited))

    def default_output_dir(self, manifest: Manifest) -> Path:
        """Return ``<store_root>/datasets/<name>/<digest prefix>`` for a manifest."""
        digest = strip_hash_prefix(content_digest(manifest))[:OUTPUT_DIGEST_LENGTH]
        return self._store.root / DATASETS_DIR_NAME / manifest.dataset.name / digest


def _execute_builder(
    request: TransformRequest,
    invocation: BuilderInvocation,
    tracker: _StageTracker,
) -> None:
    view_before = snapshot_source_view(invocation.source_root)
    try:
        request.builder.run(invocation)
        if snapshot_source_view(invocation.source_root) != view_before:
            raise CastBuilderError(
                f"Builder for {request.name} modified its read-only source view at "
                f"{invocation.source_root}. Write results only into the output directory."
            )
    except CastError:
        tracker.advance("builder_failed")
        raise


def build_derived_manifest(
    request: TransformRequest,
    resolved: ResolvedSource,
    contents: tuple[ContentEntry, ...],
) -> Manifest:
    """Describe transformation output with an extended provenance chain.

    Args:
        request: Transformation request.
        resolved: Resolved source state.
        contents: Captured output entries.

    Returns:
        Derived manifest.
    """
    record = TransformationRecord(
        transform_type=request.name,
        source_hash=resolved.source_hash,
        params=dict(request.params),
    )
    version = (
        resolved.manifest.dataset.version
        if resolved.manifest is not None
        else DEFAULT_TRANSFORMED_VERSION
    )
    return Manifest(
        schema_version=SCHEMA_VERSION,
        dataset=DatasetInfo(
            name=request.name,
            version=version,
            description=f"Transformed dataset: {request.name}",
        ),
        source=SourceInfo(
            url=f"{TRANSFORMED_URL_SCHEME}{request.name}",
            download_date=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            server_mtime=UNKNOWN_SERVER_MTIME,
            archive_hash=TRANSFORMED_ARCHIVE_HASH,
        ),
        contents=contents,
        transformations=append_transformation(resolved.chain, record),
    )


def _serialize_params(request: TransformRequest) -> str:
    if not request.name or not request.name.strip():
        raise CastValidationError(
            "Transformation name must be a non-empty string. "
            "Pass a short token such as 'to_mmseqs'."
        )
    try:
        return json.dumps(dict(request.params), sort_keys=True)
    except (TypeError, ValueError) as error:
        raise CastValidationError(
            f"Parameters for transformation {request.name} are not JSON-serializable: "
            f"{error}. Pass strings, numbers, booleans, lists, or mappings."
        ) from error


def _find_equivalent_dataset(
    output_dir: Path,
    manifest: Manifest,
) -> MaterializedDataset | None:
    """Return an existing output with the same name, files, and history."""
    target = output_dir.expanduser().absolute()
    if not is_materialized_dataset(target):
        return None
    existing = load_materialized_dataset(target)
    if existing.manifest.dataset.name != manifest.dataset.name:
        return None
    if content_digest(existing.manifest) != content_digest(manifest):
        return None
    return existing
