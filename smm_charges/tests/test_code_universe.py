"""Tests for SMM reference code lists."""
import logging

from smm_charges.processing.code_universe import (
    load_code_list,
    build_code_universe,
    load_code_universe,
)


class TestLoadCodeList:
    """Tests for reading a code table."""

    def test_skips_blank_and_comment_lines(self, tmp_path):
        path = tmp_path / "codes.txt"
        path.write_text("# header\nO99.89\n\n  O72.1  \n")
        assert load_code_list(path) == ["O99.89", "O72.1"]

    def test_codes_verbatim(self, tmp_path):
        path = tmp_path / "codes.txt"
        path.write_text("o99.89\nO9989\n")
        assert load_code_list(path) == ["o99.89", "O9989"]


class TestBuildCodeUniverse:
    """Tests for the union of reference lists."""

    def test_union(self):
        universe = build_code_universe(["A"], ["B", "A"], ["C"])
        assert universe == frozenset({"A", "B", "C"})

    def test_exact_string_identity(self):
        universe = build_code_universe(["O99.89"], [], [])
        assert "O9989" not in universe
        assert "o99.89" not in universe

    def test_empty_list_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            universe = build_code_universe(["O99.89"], [], ["30233N1"])
        assert "procedure code list is empty" in caplog.text
        assert len(universe) == 2

    def test_empty_universe_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            universe = build_code_universe([], [], [])
        assert universe == frozenset()
        assert "universe is empty" in caplog.text


class TestShippedReferenceLists:
    """Tests for the bundled SMM code tables."""

    def test_loads_all_three_lists(self):
        universe = load_code_universe()
        assert len(universe) > 100
        assert "30233N1" in universe

    def test_no_comment_lines_in_universe(self):
        universe = load_code_universe()
        assert not any(code.startswith("#") for code in universe)
