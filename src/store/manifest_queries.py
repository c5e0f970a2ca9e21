"""Pure queries and derivations over manifests.

Nothing here touches the filesystem: store paths are computed from
hashes alone, and derived manifests are new values built with
``dataclasses.replace``.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import replace
from pathlib import Path

from core.constants import HASH_ALGORITHM, SHARD_PREFIX_LENGTH, STORE_DIR_NAME
from core.types import Manifest, TransformationRecord
from store.content_hash import format_hash, require_digest
from store.manifest_io import content_entry_to_payload, transformation_to_payload

_ENV_SEPARATOR_PATTERN = re.compile(r"[^A-Za-z0-9]+")


def hash_to_store_path(root: Path | str, content_hash: str) -> Path:
    """Map a content hash to its sharded store location.

    Args:
        root: Storage root.
        content_hash: Hash, optionally algorithm-prefixed.

    Returns:
        ``root/store/<hash[0:2]>/<hash[2:4]>/<hash>``.

    Raises:
        CastValidationError: If the hash is not a valid digest.
    """
    digest = require_digest(content_hash)
    first = digest[:SHARD_PREFIX_LENGTH]
    second = digest[SHARD_PREFIX_LENGTH : 2 * SHARD_PREFIX_LENGTH]
    return Path(root) / STORE_DIR_NAME / first / second / digest


def total_size(manifest: Manifest) -> int:
    """Return the summed size of all content entries."""
    return sum(entry.size for entry in manifest.contents)


def filter_by_path_prefix(manifest: Manifest, needle: str) -> Manifest:
    """Return a manifest keeping entries whose path contains ``needle``.

    Matching is substring containment, not anchored to the start of the
    path, so ``"dir1"`` also keeps ``"mydir123/x"``.

    Args:
        manifest: Input manifest; left unchanged.
        needle: Substring to look for in each entry path.

    Returns:
        New manifest with filtered contents and an annotated description.
    """
    kept_entries = tuple(entry for entry in manifest.contents if needle in entry.path)
    base_description = manifest.dataset.description or f"Dataset {manifest.dataset.name}"
    dataset = replace(
        manifest.dataset,
        description=f"{base_description} (filtered: paths containing '{needle}')",
    )
    return replace(manifest, dataset=dataset, contents=kept_entries)


def transformation_chain(manifest: Manifest | None) -> tuple[TransformationRecord, ...]:
    """Return the provenance chain, empty when there is none."""
    if manifest is None:
        return ()
    return manifest.transformations


def append_transformation(
    chain: tuple[TransformationRecord, ...],
    record: TransformationRecord,
) -> tuple[TransformationRecord, ...]:
    """Return a new chain with exactly one record appended."""
    return tuple(chain) + (record,)


def dataset_env_name(name: str) -> str:
    """Derive the binding identifier for a dataset name.

    Args:
        name: Dataset name such as ``ncbi-nr.v5``.

    Returns:
        Upper-cased identifier with separators normalized, e.g. ``NCBI_NR_V5``.
    """
    return _ENV_SEPARATOR_PATTERN.sub("_", name).strip("_").upper()


def content_digest(manifest: Manifest) -> str:
    """Digest a manifest's inventory and provenance chain.

    Timestamps and descriptions are excluded, so two runs producing the
    same files from the same history share one digest.

    Args:
        manifest: Manifest to digest.

    Returns:
        Algorithm-prefixed hex digest.
    """
    payload = {
        "contents": [content_entry_to_payload(entry) for entry in manifest.contents],
        "transformations": [
            transformation_to_payload(record) for record in manifest.transformations
        ],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(canonical.encode("utf-8"))
    return format_hash(hasher.hexdigest())
