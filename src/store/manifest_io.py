"""Manifest JSON serialization.

This module converts between manifest files, decoded JSON payloads,
and the typed ``Manifest`` model. The JSON layout is the stable
cross-process contract, so field names follow the file format
(``type``/``from``) rather than the Python attribute names.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Union

from core.errors import CastNotFoundError, CastParseError, CastStoreError
from core.types import ContentEntry, DatasetInfo, Manifest, SourceInfo, TransformationRecord
from store.manifest_validation import ensure_valid_manifest_payload

ManifestSource = Union[Path, str, bytes, Mapping[str, Any]]

_SOURCE_FIELDS = ("url", "download_date", "server_mtime", "archive_hash")


def read_manifest(source: ManifestSource) -> Manifest:
    """Parse and validate a manifest.

    Args:
        source: Manifest file path, JSON text or bytes, or a decoded mapping.

    Returns:
        Typed manifest.

    Raises:
        CastNotFoundError: If a manifest path does not exist.
        CastParseError: If the input is not valid JSON.
        CastValidationError: If required fields are missing or invalid.
    """
    payload, origin = _decode_source(source)
    ensure_valid_manifest_payload(payload, origin)
    return manifest_from_payload(payload)


def load_manifest_payload(source: ManifestSource) -> Any:
    """Decode a manifest source into JSON without validating it."""
    payload, _ = _decode_source(source)
    return payload


def write_manifest(manifest_path: Path, manifest: Manifest) -> None:
    """Write a manifest file atomically.

    Args:
        manifest_path: Destination path.
        manifest: Manifest to serialize.

    Raises:
        CastStoreError: If the file cannot be written.
    """
    temp_name: str | None = None
    try:
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=manifest_path.parent,
            prefix=f".{manifest_path.name}.",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(manifest_to_json(manifest))
        os.replace(temp_name, manifest_path)
        temp_name = None
    except OSError as error:
        raise CastStoreError(
            f"Failed to write manifest {manifest_path}: {error}. "
            "Check free space and permissions on the destination."
        ) from error
    finally:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)


def manifest_to_json(manifest: Manifest) -> str:
    """Render a manifest as deterministic, indented JSON text."""
    return json.dumps(manifest_to_payload(manifest), indent=2) + "\n"


def manifest_to_payload(manifest: Manifest) -> dict[str, Any]:
    """Serialize a manifest into a JSON-safe payload.

    Optional fields that are unset are omitted, matching the file format.
    """
    dataset: dict[str, Any] = {
        "name": manifest.dataset.name,
        "version": manifest.dataset.version,
    }
    if manifest.dataset.description is not None:
        dataset["description"] = manifest.dataset.description
    source = {
        field_name: getattr(manifest.source, field_name)
        for field_name in _SOURCE_FIELDS
        if getattr(manifest.source, field_name) is not None
    }
    return {
        "schema_version": manifest.schema_version,
        "dataset": dataset,
        "source": source,
        "contents": [content_entry_to_payload(entry) for entry in manifest.contents],
        "transformations": [
            transformation_to_payload(record) for record in manifest.transformations
        ],
    }


def manifest_from_payload(payload: Mapping[str, Any]) -> Manifest:
    """Deserialize a validated manifest payload.

    Args:
        payload: Manifest mapping that already passed validation.

    Returns:
        Typed manifest.
    """
    dataset = payload["dataset"]
    source = payload.get("source") or {}
    return Manifest(
        schema_version=str(payload["schema_version"]),
        dataset=DatasetInfo(
            name=str(dataset["name"]),
            version=str(dataset["version"]),
            description=dataset.get("description"),
        ),
        source=SourceInfo(**{name: source.get(name) for name in _SOURCE_FIELDS}),
        contents=tuple(
            ContentEntry(
                path=str(entry["path"]),
                hash=str(entry["hash"]),
                size=int(entry["size"]),
                executable=bool(entry.get("executable", False)),
            )
            for entry in payload["contents"]
        ),
        transformations=tuple(
            TransformationRecord(
                transform_type=str(record["type"]),
                source_hash=str(record["from"]),
                params=dict(record["params"]) if record.get("params") is not None else None,
            )
            for record in payload.get("transformations") or []
        ),
    )


def content_entry_to_payload(entry: ContentEntry) -> dict[str, Any]:
    """Serialize one content entry."""
    return {
        "path": entry.path,
        "hash": entry.hash,
        "size": entry.size,
        "executable": entry.executable,
    }


def transformation_to_payload(record: TransformationRecord) -> dict[str, Any]:
    """Serialize one provenance record using the file-format keys."""
    payload: dict[str, Any] = {"type": record.transform_type, "from": record.source_hash}
    if record.params is not None:
        payload["params"] = dict(record.params)
    return payload


def _decode_source(source: ManifestSource) -> tuple[Any, str]:
    """Decode a manifest source and describe where it came from."""
    if isinstance(source, Mapping):
        return source, "payload"
    if isinstance(source, bytes):
        return _parse_json_text(source.decode("utf-8", errors="replace"), "bytes"), "bytes"
    if isinstance(source, str) and source.lstrip().startswith("{"):
        return _parse_json_text(source, "text"), "text"
    manifest_path = Path(source).expanduser()
    if not manifest_path.is_file():
        raise CastNotFoundError(
            f"Manifest file not found: {manifest_path}. "
            "Check the path or materialize the dataset that provides it."
        )
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as error:
        raise CastStoreError(
            f"Failed to read manifest {manifest_path}: {error}. Check file permissions."
        ) from error
    return _parse_json_text(text, str(manifest_path)), str(manifest_path)


def _parse_json_text(text: str, origin: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as error:
        raise CastParseError(
            f"Failed to parse manifest {origin}: {error.msg} at line {error.lineno} "
            f"column {error.colno}. Fix the JSON syntax or regenerate the manifest."
        ) from error
