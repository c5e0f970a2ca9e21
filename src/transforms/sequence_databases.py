"""Sequence search database presets.

This module converts a FASTA file from a source dataset into MMseqs2,
BLAST, or DIAMOND database files. Each preset records the tool name and
its reported version in the transformation parameters.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Sequence

from core.constants import BLAST_DB_TYPES, BLAST_FASTA_EXTENSIONS, FASTA_EXTENSIONS
from core.errors import CastValidationError
from core.logging_config import get_logger
from pipeline.builder_protocol import BuilderInvocation, FunctionBuilder, run_command
from pipeline.transform_types import TransformRequest, TransformSource
from transforms.input_detection import find_input_file
from transforms.tool_version import detect_tool_version

_LOGGER = get_logger(__name__)


def to_mmseqs(
    name: str,
    source: TransformSource,
    fasta_file: str | None = None,
    create_index: bool = True,
    index_args: Sequence[str] = (),
    executable: str = "mmseqs",
    output_dir: Path | None = None,
) -> TransformRequest:
    """Build a request producing an MMseqs2 database named ``db``."""
    return TransformRequest(
        name=name,
        source=source,
        builder=FunctionBuilder(
            partial(_run_mmseqs, executable, fasta_file, create_index, tuple(index_args))
        ),
        params={
            "fasta_file": fasta_file,
            "create_index": create_index,
            "index_args": list(index_args),
            "tool": "mmseqs2",
            "version": detect_tool_version([executable, "version"]),
        },
        output_dir=output_dir,
    )


def to_blast(
    name: str,
    source: TransformSource,
    fasta_file: str | None = None,
    db_type: str = "prot",
    parse_seqids: bool = True,
    title: str | None = None,
    extra_args: Sequence[str] = (),
    executable: str = "makeblastdb",
    output_dir: Path | None = None,
) -> TransformRequest:
    """Build a request producing a BLAST database named ``blastdb``.

    Args:
        name: Output dataset name.
        source: Dataset holding the FASTA file.
        fasta_file: FASTA path inside the source; auto-detected when omitted.
        db_type: ``"prot"`` or ``"nucl"``.
        parse_seqids: Whether to pass ``-parse_seqids``.
        title: Database title, defaulting to ``name``.
        extra_args: Additional ``makeblastdb`` arguments.
        executable: ``makeblastdb`` executable to run.
        output_dir: Optional destination for the derived dataset.

    Returns:
        Transformation request ready for the engine.

    Raises:
        CastValidationError: If ``db_type`` is not supported.
    """
    if db_type not in BLAST_DB_TYPES:
        raise CastValidationError(
            f"BLAST db_type must be one of {', '.join(BLAST_DB_TYPES)}, got {db_type!r}. "
            "Use 'prot' for protein or 'nucl' for nucleotide sequences."
        )
    resolved_title = title or name
    return TransformRequest(
        name=name,
        source=source,
        builder=FunctionBuilder(
            partial(
                _run_blast,
                executable,
                fasta_file,
                db_type,
                parse_seqids,
                resolved_title,
                tuple(extra_args),
            )
        ),
        params={
            "fasta_file": fasta_file,
            "db_type": db_type,
            "parse_seqids": parse_seqids,
            "title": resolved_title,
            "extra_args": list(extra_args),
            "tool": "blast",
            "version": detect_tool_version([executable, "-version"]),
        },
        output_dir=output_dir,
    )


def to_diamond(
    name: str,
    source: TransformSource,
    fasta_file: str | None = None,
    taxonmap: str | None = None,
    taxonnodes: str | None = None,
    taxonnames: str | None = None,
    extra_args: Sequence[str] = (),
    executable: str = "diamond",
    output_dir: Path | None = None,
) -> TransformRequest:
    """Build a request producing a DIAMOND database ``diamond.dmnd``.

    Taxonomy files are paths inside the source dataset. A named file that
    is missing is skipped with a warning rather than failing the build.
    """
    taxonomy = {"taxonmap": taxonmap, "taxonnodes": taxonnodes, "taxonnames": taxonnames}
    return TransformRequest(
        name=name,
        source=source,
        builder=FunctionBuilder(
            partial(_run_diamond, executable, fasta_file, taxonomy, tuple(extra_args))
        ),
        params={
            "fasta_file": fasta_file,
            **taxonomy,
            "extra_args": list(extra_args),
            "tool": "diamond",
            "version": detect_tool_version([executable, "version"]),
        },
        output_dir=output_dir,
    )


def mmseqs_commands(
    executable: str,
    fasta_path: Path,
    output_root: Path,
    tmp_dir: Path,
    create_index: bool,
    index_args: Sequence[str],
) -> list[list[str]]:
    """Return the MMseqs2 command lines for one database build."""
    database_path = str(output_root / "db")
    commands = [[executable, "createdb", str(fasta_path), database_path]]
    if create_index:
        commands.append([executable, "createindex", database_path, str(tmp_dir), *index_args])
    return commands


def blast_command(
    executable: str,
    fasta_path: Path,
    output_root: Path,
    db_type: str,
    parse_seqids: bool,
    title: str,
    extra_args: Sequence[str],
) -> list[str]:
    """Return the ``makeblastdb`` command line for one database build."""
    command = [
        executable,
        "-in",
        str(fasta_path),
        "-dbtype",
        db_type,
        "-out",
        str(output_root / "blastdb"),
        "-title",
        title,
    ]
    if parse_seqids:
        command.append("-parse_seqids")
    return [*command, *extra_args]


def diamond_command(
    executable: str,
    fasta_path: Path,
    output_root: Path,
    taxonomy_paths: dict[str, Path],
    extra_args: Sequence[str],
) -> list[str]:
    """Return the ``diamond makedb`` command line for one database build."""
    command = [executable, "makedb", "--in", str(fasta_path), "--db", str(output_root / "diamond")]
    for option, path in taxonomy_paths.items():
        command.extend([f"--{option}", str(path)])
    return [*command, *extra_args]


def _run_mmseqs(
    executable: str,
    fasta_file: str | None,
    create_index: bool,
    index_args: tuple[str, ...],
    invocation: BuilderInvocation,
) -> None:
    fasta_path = find_input_file(invocation.source_root, FASTA_EXTENSIONS, fasta_file, "FASTA")
    tmp_dir = invocation.work_dir / "mmseqs-tmp"
    tmp_dir.mkdir(exist_ok=True)
    commands = mmseqs_commands(
        executable, fasta_path, invocation.output_root, tmp_dir, create_index, index_args
    )
    for command in commands:
        run_command(command, invocation.name, cwd=invocation.work_dir)
    _LOGGER.info("mmseqs_database_built", name=invocation.name, fasta=fasta_path.name)


def _run_blast(
    executable: str,
    fasta_file: str | None,
    db_type: str,
    parse_seqids: bool,
    title: str,
    extra_args: tuple[str, ...],
    invocation: BuilderInvocation,
) -> None:
    fasta_path = find_input_file(
        invocation.source_root, BLAST_FASTA_EXTENSIONS, fasta_file, "FASTA"
    )
    command = blast_command(
        executable, fasta_path, invocation.output_root, db_type, parse_seqids, title, extra_args
    )
    run_command(command, invocation.name, cwd=invocation.work_dir)
    _LOGGER.info(
        "blast_database_built", name=invocation.name, fasta=fasta_path.name, db_type=db_type
    )


def _run_diamond(
    executable: str,
    fasta_file: str | None,
    taxonomy: dict[str, str | None],
    extra_args: tuple[str, ...],
    invocation: BuilderInvocation,
) -> None:
    fasta_path = find_input_file(invocation.source_root, FASTA_EXTENSIONS, fasta_file, "FASTA")
    taxonomy_paths = _existing_taxonomy_files(invocation, taxonomy)
    command = diamond_command(
        executable, fasta_path, invocation.output_root, taxonomy_paths, extra_args
    )
    run_command(command, invocation.name, cwd=invocation.work_dir)
    _LOGGER.info(
        "diamond_database_built",
        name=invocation.name,
        fasta=fasta_path.name,
        taxonomy=sorted(taxonomy_paths),
    )


def _existing_taxonomy_files(
    invocation: BuilderInvocation,
    taxonomy: dict[str, str | None],
) -> dict[str, Path]:
    found: dict[str, Path] = {}
    for option, relative_path in taxonomy.items():
        if relative_path is None:
            continue
        candidate = invocation.source_root / relative_path
        if candidate.is_file():
            found[option] = candidate
        else:
            _LOGGER.warning(
                "taxonomy_file_missing",
                name=invocation.name,
                option=option,
                path=relative_path,
            )
    return found
