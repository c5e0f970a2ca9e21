"""Input file selection for preset builders.

Presets accept an explicit file name or look for exactly one file with a
known extension anywhere under the source tree.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from core.errors import CastAmbiguousInputError, CastNotFoundError


def find_input_file(
    source_root: Path,
    extensions: Sequence[str],
    explicit_name: str | None = None,
    kind: str = "input",
) -> Path:
    """Locate the single input file a preset should read.

    Args:
        source_root: Source view handed to the builder.
        extensions: Accepted file suffixes, e.g. ``(".fasta", ".fa")``.
        explicit_name: Relative path chosen by the caller, if any.
        kind: Human-readable input kind used in messages.

    Returns:
        Path of the chosen file.

    Raises:
        CastNotFoundError: If the explicit file is missing or nothing matches.
        CastAmbiguousInputError: If more than one file matches.
    """
    if explicit_name is not None:
        candidate = source_root / explicit_name
        if not candidate.is_file():
            raise CastNotFoundError(
                f"{kind} file {explicit_name!r} not found in source data. "
                f"Available files: {_describe_files(source_root)}."
            )
        return candidate
    matches = [path for path in _list_files(source_root) if _has_extension(path, extensions)]
    if not matches:
        raise CastNotFoundError(
            f"No {kind} files ({', '.join(extensions)}) found in source data. "
            f"Available files: {_describe_files(source_root)}."
        )
    if len(matches) > 1:
        names = ", ".join(path.relative_to(source_root).as_posix() for path in matches)
        raise CastAmbiguousInputError(
            f"Multiple {kind} files found: {names}. Name the one to use explicitly."
        )
    return matches[0]


def _has_extension(path: Path, extensions: Sequence[str]) -> bool:
    lowered = path.name.lower()
    return any(lowered.endswith(extension) for extension in extensions)


def _list_files(source_root: Path) -> list[Path]:
    return sorted(path for path in source_root.rglob("*") if path.is_file())


def _describe_files(source_root: Path) -> str:
    names = [path.relative_to(source_root).as_posix() for path in _list_files(source_root)]
    return ", ".join(names) or "none"
