"""Unit tests for preset input file detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import CastAmbiguousInputError, CastNotFoundError
from transforms.input_detection import find_input_file

_FASTA = (".fasta", ".fa", ".faa")


def test_single_match_is_detected(tmp_path: Path) -> None:
    """One matching file anywhere in the tree should be chosen."""
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "proteins.faa").write_text(">p\nM\n", encoding="utf-8")
    (tmp_path / "README").write_text("docs", encoding="utf-8")

    assert find_input_file(tmp_path, _FASTA) == tmp_path / "nested" / "proteins.faa"


def test_extension_match_ignores_case(tmp_path: Path) -> None:
    """Upper-case suffixes should still match."""
    (tmp_path / "NR.FASTA").write_text(">p\nM\n", encoding="utf-8")

    assert find_input_file(tmp_path, _FASTA).name == "NR.FASTA"


def test_no_match_lists_available_files(tmp_path: Path) -> None:
    """Missing inputs should name what was found instead."""
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    with pytest.raises(CastNotFoundError, match="notes.txt"):
        find_input_file(tmp_path, _FASTA, kind="FASTA")


def test_multiple_matches_are_ambiguous(tmp_path: Path) -> None:
    """Two candidates should require an explicit choice."""
    (tmp_path / "a.fa").write_text(">a\nM\n", encoding="utf-8")
    (tmp_path / "b.fasta").write_text(">b\nM\n", encoding="utf-8")

    with pytest.raises(CastAmbiguousInputError, match="a.fa, b.fasta"):
        find_input_file(tmp_path, _FASTA)


def test_explicit_name_resolves_ambiguity(tmp_path: Path) -> None:
    """An explicit file name should bypass auto-detection."""
    (tmp_path / "a.fa").write_text(">a\nM\n", encoding="utf-8")
    (tmp_path / "b.fasta").write_text(">b\nM\n", encoding="utf-8")

    assert find_input_file(tmp_path, _FASTA, "b.fasta") == tmp_path / "b.fasta"


def test_explicit_name_must_exist(tmp_path: Path) -> None:
    """A named file that is absent should raise not found."""
    with pytest.raises(CastNotFoundError, match="missing.fa"):
        find_input_file(tmp_path, _FASTA, "missing.fa")
