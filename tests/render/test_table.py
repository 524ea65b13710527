"""Tests for plain-text table formatting."""

from __future__ import annotations

from infrabase.render import format_table, to_cell


def test_to_cell():
    assert to_cell(None) == "-"
    assert to_cell(22) == "22"
    assert to_cell("alice") == "alice"


def test_columns_aligned():
    text = format_table(["HOST", "PORT"], [["alice", 22], ["bob", None]])
    assert text == (
        "HOST   PORT\n"
        "----   ----\n"
        "alice  22\n"
        "bob    -\n"
    )


def test_empty_table_has_header():
    assert format_table(["NETWORK"], []) == "NETWORK\n-------\n"
