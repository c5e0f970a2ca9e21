"""Structural validation for manifest payloads.

Validation runs on decoded JSON so that missing blocks can be reported
by name instead of surfacing as key errors during conversion.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Mapping

from core.errors import CastValidationError
from store.content_hash import is_valid_hash_reference

_REQUIRED_TOP_LEVEL = ("schema_version", "dataset", "source", "contents")


def validate_manifest_payload(payload: object) -> list[str]:
    """Collect every structural problem in a manifest payload.

    Args:
        payload: Decoded manifest JSON.

    Returns:
        Human readable error strings; empty when the payload is valid.
    """
    if not isinstance(payload, Mapping):
        return ["manifest: expected a JSON object at top level"]
    errors = [
        f"{key}: required field is missing" for key in _REQUIRED_TOP_LEVEL if key not in payload
    ]
    if "schema_version" in payload and not _is_non_empty_str(payload["schema_version"]):
        errors.append("schema_version: must be a non-empty string")
    if "dataset" in payload:
        errors.extend(_validate_dataset(payload["dataset"]))
    if "source" in payload and not isinstance(payload["source"], Mapping):
        errors.append("source: must be an object")
    if "contents" in payload:
        errors.extend(_validate_contents(payload["contents"]))
    if "transformations" in payload:
        errors.extend(_validate_transformations(payload["transformations"]))
    return errors


def is_valid_manifest_payload(payload: object) -> bool:
    """Return whether a manifest payload passes validation."""
    return not validate_manifest_payload(payload)


def ensure_valid_manifest_payload(payload: object, origin: str = "manifest") -> None:
    """Raise when a manifest payload is invalid.

    Args:
        payload: Decoded manifest JSON.
        origin: Where the payload came from, used in the message.

    Raises:
        CastValidationError: Listing every problem found.
    """
    errors = validate_manifest_payload(payload)
    if errors:
        raise CastValidationError(
            f"Invalid manifest {origin}: {'; '.join(errors)}. "
            "Fix the listed fields; see the manifest schema (schema_version, dataset, "
            "source, contents[path, hash, size]).",
            errors=tuple(errors),
        )


def _validate_dataset(dataset: object) -> list[str]:
    if not isinstance(dataset, Mapping):
        return ["dataset: must be an object"]
    errors = []
    for key in ("name", "version"):
        if not _is_non_empty_str(dataset.get(key)):
            errors.append(f"dataset.{key}: required non-empty string")
    description = dataset.get("description")
    if description is not None and not isinstance(description, str):
        errors.append("dataset.description: must be a string when present")
    return errors


def _validate_contents(contents: object) -> list[str]:
    if not isinstance(contents, list):
        return ["contents: must be a list"]
    errors: list[str] = []
    seen_paths: set[str] = set()
    for index, entry in enumerate(contents):
        label = f"contents[{index}]"
        if not isinstance(entry, Mapping):
            errors.append(f"{label}: must be an object")
            continue
        errors.extend(_validate_entry(label, entry))
        path = entry.get("path")
        if isinstance(path, str) and path:
            if path in seen_paths:
                errors.append(f"{label}.path: duplicate path '{path}'")
            seen_paths.add(path)
    return errors


def _validate_entry(label: str, entry: Mapping[str, Any]) -> list[str]:
    errors = []
    path = entry.get("path")
    if not _is_non_empty_str(path):
        errors.append(f"{label}.path: required non-empty string")
    elif not _is_safe_relative_path(path):
        errors.append(f"{label}.path: must be relative without '..' segments, got '{path}'")
    if not is_valid_hash_reference(entry.get("hash")):
        errors.append(f"{label}.hash: expected a 64-hex digest or an algorithm-prefixed hash")
    size = entry.get("size")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        errors.append(f"{label}.size: required integer >= 0")
    if "executable" in entry and not isinstance(entry["executable"], bool):
        errors.append(f"{label}.executable: must be a boolean")
    return errors


def _validate_transformations(transformations: object) -> list[str]:
    if not isinstance(transformations, list):
        return ["transformations: must be a list"]
    errors = []
    for index, record in enumerate(transformations):
        label = f"transformations[{index}]"
        if not isinstance(record, Mapping):
            errors.append(f"{label}: must be an object")
            continue
        for key in ("type", "from"):
            if not _is_non_empty_str(record.get(key)):
                errors.append(f"{label}.{key}: required non-empty string")
        params = record.get("params")
        if params is not None and not isinstance(params, Mapping):
            errors.append(f"{label}.params: must be an object when present")
    return errors


def _is_non_empty_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_safe_relative_path(path: str) -> bool:
    pure_path = PurePosixPath(path)
    return not pure_path.is_absolute() and ".." not in pure_path.parts
