"""External tool version probing."""

from __future__ import annotations

import re
import subprocess
from typing import Sequence

from core.constants import UNKNOWN_TOOL_VERSION

_VERSION_PATTERN = re.compile(r"\d+(?:\.\d+)+[A-Za-z0-9+._-]*")


def detect_tool_version(command: Sequence[str]) -> str:
    """Return the version string a tool reports, or ``"unknown"``.

    Args:
        command: Version query such as ``["mmseqs", "version"]``.

    Returns:
        First dotted version found in the tool output.
    """
    try:
        completed = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            check=False,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired):
        return UNKNOWN_TOOL_VERSION
    return parse_version_text(f"{completed.stdout}\n{completed.stderr}")


def parse_version_text(text: str) -> str:
    """Extract the first dotted version number from tool output."""
    match = _VERSION_PATTERN.search(text)
    return match.group(0) if match else UNKNOWN_TOOL_VERSION
