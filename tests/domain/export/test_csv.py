from __future__ import annotations

from brickrecon.domain.export import escape_csv_cell, to_csv


def test_escape_quotes_special_characters() -> None:
    assert escape_csv_cell('hello, "world"\nfoo') == '"hello, ""world""\nfoo"'
    assert escape_csv_cell("a\rb") == '"a\rb"'


def test_plain_cells_pass_through() -> None:
    assert escape_csv_cell("3001") == "3001"
    assert escape_csv_cell(5) == "5"
    assert escape_csv_cell(None) == ""


def test_zero_rows_yields_header_only() -> None:
    assert to_csv(["part_num", "color_id"], []) == "part_num,color_id"


def test_bom_is_first_character() -> None:
    csv = to_csv(["a"], [["1"]], include_bom=True)

    assert ord(csv[0]) == 0xFEFF
    assert csv[1:] == "a\n1"


def test_rows_are_newline_joined() -> None:
    assert to_csv(["a", "b"], [["x,y", 2], [None, 3]]) == 'a,b\n"x,y",2\n,3'
