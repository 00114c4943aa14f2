"""Tests for the position matrix organizer."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from symbridge.errors import StructuralError
from symbridge.matrix import organize_matrix
from symbridge.types import Position, TokenRecord


def _tok(lexeme: str, type_tag: str = "identifier", **kwargs: object) -> TokenRecord:
    symbol_class = kwargs.pop("symbol_class", "terminal")
    return TokenRecord(symbol_class=symbol_class, type_tag=type_tag, lexeme=lexeme, **kwargs)  # type: ignore[arg-type]


class TestOrganizeMatrix:
    def test_explicit_positions_are_indexed(self) -> None:
        matrix = organize_matrix(
            [
                _tok("a", row=0, column=0),
                _tok("b", row=0, column=1),
                _tok("c", row=1, column=0),
            ],
        )
        assert len(matrix) == 3
        assert matrix.lanes() == [None]
        assert matrix.rows(None) == [0, 1]
        assert matrix.row_positions(None, 0) == (Position(0, 0), Position(0, 1))
        assert matrix.column_positions(None, 0) == (Position(0, 0), Position(1, 0))
        assert matrix.symbol_at(Position(1, 0)).lexeme == "c"

    def test_missing_metadata_is_inferred(self) -> None:
        matrix = organize_matrix(
            [
                _tok("a"),
                _tok("b"),
                _tok(";", "closure", symbol_class="closure"),
                _tok("c", row=1),
                _tok("d"),
            ],
        )
        assert [pos for pos in matrix.positions()] == [
            Position(0, 0),
            Position(0, 1),
            Position(0, 2),
            Position(1, 0),
            Position(1, 1),
        ]

    def test_hint_is_derived_from_type_tag(self) -> None:
        matrix = organize_matrix(
            [
                _tok("int", "keyword.type", row=0, column=0),
                _tok("x", "mystery.tag", row=0, column=1),
                _tok("y", "mystery.tag", row=0, column=2, intent_hint="literal"),
            ],
        )
        hints = [matrix.cells[pos].hint for pos in matrix.positions()]
        assert hints == ["type_keyword", "identifier", "literal"]

    def test_symbol_ids_are_deterministic(self) -> None:
        records = [_tok("a", row=0, column=0), _tok("b", row=0, column=1)]
        first = organize_matrix(records)
        second = organize_matrix(records)
        assert [s.symbol_id for s in first.cells.values()] == [s.symbol_id for s in second.cells.values()]
        assert first.cells[Position(0, 1)].symbol_id == "sym_00002_0:1"


class TestStructuralErrors:
    def test_duplicate_position_rejected(self) -> None:
        with pytest.raises(StructuralError) as excinfo:
            organize_matrix([_tok("a", row=0, column=0), _tok("b", row=0, column=0)])
        assert excinfo.value.reason == "duplicate_position"

    def test_decreasing_row_rejected(self) -> None:
        with pytest.raises(StructuralError) as excinfo:
            organize_matrix([_tok("a", row=1, column=0), _tok("b", row=0, column=0)])
        assert excinfo.value.reason == "non_monotonic_row"

    def test_negative_index_rejected(self) -> None:
        with pytest.raises(StructuralError) as excinfo:
            organize_matrix([_tok("a", row=0, column=-1)])
        assert excinfo.value.reason == "invalid_position"


class TestProcessLanes:
    def test_lanes_only_exist_when_staged(self) -> None:
        records = [
            _tok("a", row=0, column=0, process=0),
            _tok("b", row=0, column=0, process=1),
        ]
        matrix = organize_matrix(records, staged=True)
        assert matrix.lanes() == [0, 1]
        assert matrix.lane_alternates(Position(0, 0, 0)) == (Position(0, 0, 1),)

        with pytest.raises(StructuralError):
            organize_matrix(records, staged=False)

    def test_rows_are_monotonic_per_lane(self) -> None:
        matrix = organize_matrix(
            [
                _tok("a", row=2, column=0, process=0),
                _tok("b", row=0, column=0, process=1),
                _tok("c", row=3, column=0, process=0),
            ],
            staged=True,
        )
        assert matrix.rows(0) == [2, 3]
        assert matrix.rows(1) == [0]

    def test_neighbors(self) -> None:
        matrix = organize_matrix(
            [
                _tok("a", row=0, column=0),
                _tok("b", row=0, column=2),
                _tok("c", row=1, column=2),
            ],
        )
        assert matrix.row_neighbors(Position(0, 2)) == (Position(0, 0), None)
        assert matrix.vertical_neighbors(Position(0, 2)) == (Position(1, 2),)
        assert matrix.lane_alternates(Position(0, 0)) == ()
