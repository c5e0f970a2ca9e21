"""Archive extraction preset.

This module unpacks one tar or zip archive from a source dataset into a
derived dataset, optionally dropping leading path components.
"""

from __future__ import annotations

import platform
import tarfile
import zipfile
from functools import partial
from pathlib import Path, PurePosixPath

from core.constants import ARCHIVE_EXTENSIONS
from core.errors import CastBuilderError, CastValidationError
from core.logging_config import get_logger
from pipeline.builder_protocol import BuilderInvocation, FunctionBuilder
from pipeline.transform_types import TransformRequest, TransformSource
from transforms.input_detection import find_input_file

_LOGGER = get_logger(__name__)
_TAR_EXTENSIONS = tuple(extension for extension in ARCHIVE_EXTENSIONS if extension != ".zip")


def extract_archive(
    name: str,
    source: TransformSource,
    archive_file: str | None = None,
    strip_components: int = 0,
    output_dir: Path | None = None,
) -> TransformRequest:
    """Build a request that extracts one archive.

    Args:
        name: Output dataset name.
        source: Dataset holding the archive.
        archive_file: Archive path inside the source; auto-detected when omitted.
        strip_components: Leading path components removed from every member.
        output_dir: Optional destination for the derived dataset.

    Returns:
        Transformation request ready for the engine.

    Raises:
        CastValidationError: If ``strip_components`` is negative.
    """
    if strip_components < 0:
        raise CastValidationError(
            f"strip_components must be zero or positive, got {strip_components}. "
            "Pass the number of leading directories to drop."
        )
    return TransformRequest(
        name=name,
        source=source,
        builder=FunctionBuilder(partial(_run_extraction, archive_file, strip_components)),
        params={
            "archive_file": archive_file,
            "strip_components": strip_components,
            "tool": "extract",
            "version": platform.python_version(),
        },
        output_dir=output_dir,
    )


def extract_archive_file(archive_path: Path, output_root: Path, strip_components: int = 0) -> int:
    """Extract an archive into a directory.

    Members are sanitized: absolute paths and parent references never
    escape ``output_root``.

    Args:
        archive_path: Archive to read.
        output_root: Extraction destination.
        strip_components: Leading path components removed from every member.

    Returns:
        Number of members extracted.

    Raises:
        CastValidationError: If the archive format is not supported.
        CastBuilderError: If the archive is corrupt or unsafe.
    """
    lowered = archive_path.name.lower()
    try:
        if lowered.endswith(".zip"):
            return _extract_zip(archive_path, output_root, strip_components)
        if lowered.endswith(_TAR_EXTENSIONS):
            return _extract_tar(archive_path, output_root, strip_components)
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as error:
        raise CastBuilderError(
            f"Failed to extract {archive_path.name}: {error}. "
            "Check that the archive is complete and not corrupted."
        ) from error
    raise CastValidationError(
        f"Unsupported archive format for {archive_path.name}. "
        f"Supported: {', '.join(ARCHIVE_EXTENSIONS)}."
    )


def strip_member_path(member_name: str, strip_components: int) -> str | None:
    """Drop leading components from an archive member path.

    Returns:
        Remaining relative path, or None when nothing is left.
    """
    parts = [part for part in PurePosixPath(member_name).parts if part not in ("/", ".")]
    if len(parts) <= strip_components:
        return None
    return "/".join(parts[strip_components:])


def _run_extraction(
    archive_file: str | None,
    strip_components: int,
    invocation: BuilderInvocation,
) -> None:
    archive_path = find_input_file(
        invocation.source_root,
        ARCHIVE_EXTENSIONS,
        archive_file,
        kind="archive",
    )
    member_count = extract_archive_file(archive_path, invocation.output_root, strip_components)
    _LOGGER.info(
        "archive_extracted",
        name=invocation.name,
        archive=archive_path.name,
        member_count=member_count,
    )


def _extract_tar(archive_path: Path, output_root: Path, strip_components: int) -> int:
    with tarfile.open(archive_path, "r:*") as archive:
        members = []
        for member in archive.getmembers():
            stripped = strip_member_path(member.name, strip_components)
            if stripped is None:
                continue
            member.name = stripped
            if member.islnk():
                member.linkname = strip_member_path(member.linkname, strip_components) or ""
            members.append(member)
        archive.extractall(output_root, members=members, filter="data")
    return len(members)


def _extract_zip(archive_path: Path, output_root: Path, strip_components: int) -> int:
    extracted = 0
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            is_dir = info.is_dir()
            stripped = strip_member_path(info.filename, strip_components)
            if stripped is None:
                continue
            info.filename = f"{stripped}/" if is_dir else stripped
            archive.extract(info, output_root)
            extracted += 1
    return extracted
