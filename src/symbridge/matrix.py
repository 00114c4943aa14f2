"""Position matrix organizer: token records to a read-only positional grid."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any

from symbridge.errors import StructuralError
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar
from symbridge.types import Position, Symbol, TokenRecord


log = logging.getLogger("symbridge.matrix")

type Lane = int | None


class ConfidenceCache:
    """Convergent memo table for confidence breakdowns.

    Keys are (symbol id, position, effective weights, staging, grammar,
    scorer). The evaluator is pure, so concurrent writers of one key always
    compute the same value and the first stored value is kept.
    """

    def __init__(self) -> None:
        self._values: dict[Hashable, Any] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        with self._lock:
            value = self._values.get(key)
            if value is not None:
                self.hits += 1
                return value
        computed = compute()
        with self._lock:
            self.misses += 1
            return self._values.setdefault(key, computed)

    def invalidate(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True, slots=True)
class PositionMatrix:
    """Sparse grid of symbols keyed by Position, with lane/row/column indexes."""

    cells: dict[Position, Symbol]
    staged: bool
    row_index: dict[Lane, dict[int, tuple[Position, ...]]]
    column_index: dict[Lane, dict[int, tuple[Position, ...]]]
    cache: ConfidenceCache = field(default_factory=ConfidenceCache)

    def __len__(self) -> int:
        return len(self.cells)

    def symbol_at(self, position: Position) -> Symbol | None:
        return self.cells.get(position)

    def positions(self) -> list[Position]:
        return sorted(self.cells, key=Position.sort_key)

    def lanes(self) -> list[Lane]:
        return sorted(self.row_index, key=lambda lane: -1 if lane is None else lane)

    def rows(self, lane: Lane) -> list[int]:
        return sorted(self.row_index.get(lane, {}))

    def row_positions(self, lane: Lane, row: int) -> tuple[Position, ...]:
        return self.row_index.get(lane, {}).get(row, ())

    def columns(self, lane: Lane) -> list[int]:
        return sorted(self.column_index.get(lane, {}))

    def column_positions(self, lane: Lane, column: int) -> tuple[Position, ...]:
        return self.column_index.get(lane, {}).get(column, ())

    def row_neighbors(self, position: Position) -> tuple[Position | None, Position | None]:
        """Nearest occupied cells left and right of a position in its row."""
        row = self.row_positions(position.process, position.row)
        try:
            idx = row.index(position)
        except ValueError:
            return None, None
        left = row[idx - 1] if idx > 0 else None
        right = row[idx + 1] if idx + 1 < len(row) else None
        return left, right

    def vertical_neighbors(self, position: Position) -> tuple[Position, ...]:
        """Occupied cells at rows r-1 and r+1 in the same column and lane."""
        out: list[Position] = []
        for row in (position.row - 1, position.row + 1):
            if row < 0:
                continue
            candidate = Position(row=row, column=position.column, process=position.process)
            if candidate in self.cells:
                out.append(candidate)
        return tuple(out)

    def lane_alternates(self, position: Position) -> tuple[Position, ...]:
        """Same (row, column) in every other process lane."""
        if not self.staged:
            return ()
        out: list[Position] = []
        for lane in self.lanes():
            if lane == position.process:
                continue
            candidate = Position(row=position.row, column=position.column, process=lane)
            if candidate in self.cells:
                out.append(candidate)
        return tuple(out)


def organize_matrix(
    records: Iterable[TokenRecord],
    *,
    staged: bool = False,
    grammar: Grammar = DEFAULT_GRAMMAR,
) -> PositionMatrix:
    """Arrange an ordered token stream into a PositionMatrix.

    Missing row/column metadata is inferred: a record without a row stays on
    the current row, and one without a column takes the next free column.
    Process ids only become a grid axis when ``staged`` is set.
    """

    cells: dict[Position, Symbol] = {}
    last_row: dict[Lane, int] = {}
    last_column: dict[tuple[Lane, int], int] = {}

    for idx, record in enumerate(records, start=1):
        lane: Lane = record.process if staged else None
        current_row = last_row.get(lane, 0)
        row = record.row if record.row is not None else current_row
        if row < current_row:
            raise StructuralError(
                "non_monotonic_row",
                f"record {idx} moves lane {lane} from row {current_row} back to row {row}",
            )
        if record.column is not None:
            column = record.column
        else:
            column = last_column.get((lane, row), -1) + 1
        try:
            position = Position(row=row, column=column, process=lane)
        except ValueError as exc:
            raise StructuralError("invalid_position", f"record {idx}: {exc}") from exc
        if position in cells:
            raise StructuralError(
                "duplicate_position",
                f"record {idx} ({record.lexeme!r}) reuses position {position.label()}",
            )

        cells[position] = Symbol(
            symbol_id=f"sym_{idx:05d}_{position.label()}",
            symbol_class=record.symbol_class,
            lexeme=record.lexeme,
            type_tag=record.type_tag,
            hint=grammar.hint_for(record.symbol_class, record.type_tag, record.intent_hint),
            lexical_score=record.lexical_confidence,
            stage=record.stage,
            process=record.process,
            phase=record.phase,
        )
        last_row[lane] = row
        last_column[(lane, row)] = max(column, last_column.get((lane, row), -1))

    row_index: dict[Lane, dict[int, list[Position]]] = defaultdict(lambda: defaultdict(list))
    column_index: dict[Lane, dict[int, list[Position]]] = defaultdict(lambda: defaultdict(list))
    for position in sorted(cells, key=Position.sort_key):
        row_index[position.process][position.row].append(position)
        column_index[position.process][position.column].append(position)

    for lane_columns in column_index.values():
        for positions in lane_columns.values():
            positions.sort(key=lambda pos: pos.row)

    ordered_cells = {pos: cells[pos] for pos in sorted(cells, key=Position.sort_key)}
    log.debug("organized %d symbols into %d lane(s)", len(ordered_cells), len(row_index))
    return PositionMatrix(
        cells=ordered_cells,
        staged=staged,
        row_index={
            lane: {row: tuple(items) for row, items in rows.items()}
            for lane, rows in row_index.items()
        },
        column_index={
            lane: {column: tuple(items) for column, items in columns.items()}
            for lane, columns in column_index.items()
        },
    )
