"""Unit tests for tool version probing."""

from __future__ import annotations

import sys

import pytest

from transforms.tool_version import detect_tool_version, parse_version_text


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("makeblastdb: 2.14.0+\n Package: blast 2.14.0", "2.14.0+"),
        ("diamond version 2.1.8", "2.1.8"),
        ("15.6f00b", "15.6f00b"),
        ("no version here", "unknown"),
        ("", "unknown"),
    ],
)
def test_parse_version_text(text: str, expected: str) -> None:
    """The first dotted version in tool output should be extracted."""
    assert parse_version_text(text) == expected


def test_detect_tool_version_reads_stdout() -> None:
    """Versions printed by a real process should be detected."""
    command = [sys.executable, "-c", "print('tool 3.2.1')"]

    assert detect_tool_version(command) == "3.2.1"


def test_detect_tool_version_handles_missing_tool() -> None:
    """A missing executable should report an unknown version."""
    assert detect_tool_version(["cast-no-such-tool-xyz", "--version"]) == "unknown"
