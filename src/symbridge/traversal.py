"""Traversal engine: row, column and lane scans with threshold flagging.

Work is split into independent units and run on a thread pool:

1. one row-scan unit per (lane, row): scores every symbol, computes the row
   mean and decides Accepted vs Flagged
2. one column-scan unit per lane: structural depth down each column and over
   the lane as a whole
3. one resolution unit per row holding flagged symbols, submitted suspect
   rows first

Each position is written by exactly one unit. A deadline stops units from
starting; positions they owned end as ``not_processed``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from symbridge.confidence import (
    ComponentScorer,
    evaluate_confidence,
    passes_component_mins,
    score_components,
)
from symbridge.config import BridgeConfig
from symbridge.gate import classify_intent
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar
from symbridge.matrix import Lane, PositionMatrix
from symbridge.resolver import resolve_symbol
from symbridge.types import Position, Symbol, SymbolStatus


log = logging.getLogger("symbridge.traversal")


@dataclass(frozen=True, slots=True)
class SymbolDecision:
    """Terminal state of one position after traversal."""

    position: Position
    original: Symbol
    symbol: Symbol | None
    status: SymbolStatus
    psi: float
    final_psi: float
    threshold: float
    components: dict[str, float]
    best_confidence: float
    reason_codes: tuple[str, ...]

    def __post_init__(self) -> None:
        if self.status in ("accepted", "resolved") and self.symbol is None:
            raise ValueError(f"{self.status} decision must carry a symbol")
        if self.status in ("manual_review", "not_processed") and self.symbol is not None:
            raise ValueError(f"{self.status} decision must not carry a symbol")
        if self.status in ("pending", "flagged"):
            raise ValueError(f"{self.status} is not a terminal decision state")


@dataclass(frozen=True, slots=True)
class RowProfile:
    lane: Lane
    row: int
    mean_confidence: float
    symbol_count: int
    suspect: bool
    processed: bool


@dataclass(frozen=True, slots=True)
class ColumnProfile:
    lane: Lane
    column: int
    max_depth: int
    final_depth: int
    underflow_rows: tuple[int, ...]

    @property
    def balanced(self) -> bool:
        return self.final_depth == 0 and not self.underflow_rows


@dataclass(frozen=True, slots=True)
class LaneBalance:
    lane: Lane
    max_depth: int
    final_depth: int
    underflow_positions: tuple[Position, ...]

    @property
    def balanced(self) -> bool:
        return self.final_depth == 0 and not self.underflow_positions


@dataclass(frozen=True, slots=True)
class TraversalReport:
    decisions: tuple[SymbolDecision, ...]
    row_profiles: tuple[RowProfile, ...]
    column_profiles: tuple[ColumnProfile, ...]
    lane_balance: tuple[LaneBalance, ...]
    deadline_expired: bool

    @property
    def flagged_count(self) -> int:
        """Symbols routed to disambiguation."""
        return sum(1 for row in self.decisions if row.status in ("resolved", "manual_review"))

    def suspect_rows(self) -> tuple[tuple[Lane, int], ...]:
        return tuple((row.lane, row.row) for row in self.row_profiles if row.suspect)


@dataclass(slots=True)
class _RowScan:
    profile: RowProfile
    decisions: list[SymbolDecision]
    flagged: list[Position]


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


def _not_processed(symbol: Symbol, position: Position, *, psi: float = 0.0, threshold: float = 0.0) -> SymbolDecision:
    return SymbolDecision(
        position=position,
        original=symbol,
        symbol=None,
        status="not_processed",
        psi=psi,
        final_psi=0.0,
        threshold=threshold,
        components={},
        best_confidence=psi,
        reason_codes=("not_processed",),
    )


def _scan_row(
    lane: Lane,
    row: int,
    matrix: PositionMatrix,
    config: BridgeConfig,
    grammar: Grammar,
    scorer: ComponentScorer,
    deadline: float | None,
) -> _RowScan:
    positions = matrix.row_positions(lane, row)
    symbols = [matrix.cells[pos] for pos in positions]
    if _expired(deadline):
        return _RowScan(
            profile=RowProfile(
                lane=lane,
                row=row,
                mean_confidence=0.0,
                symbol_count=len(positions),
                suspect=False,
                processed=False,
            ),
            decisions=[_not_processed(sym, pos) for sym, pos in zip(symbols, positions)],
            flagged=[],
        )

    decisions: list[SymbolDecision] = []
    flagged: list[Position] = []
    psis: list[float] = []
    for idx, (position, symbol) in enumerate(zip(positions, symbols)):
        breakdown = evaluate_confidence(symbol, position, matrix, config, grammar=grammar, scorer=scorer)
        psis.append(breakdown.psi)
        threshold = config.threshold_for(classify_intent(symbols, idx, grammar))
        if breakdown.psi >= threshold and passes_component_mins(breakdown.components, config.component_minimums):
            decisions.append(
                SymbolDecision(
                    position=position,
                    original=symbol,
                    symbol=symbol,
                    status="accepted",
                    psi=breakdown.psi,
                    final_psi=breakdown.psi,
                    threshold=threshold,
                    components=breakdown.components.as_dict(),
                    best_confidence=breakdown.psi,
                    reason_codes=(),
                ),
            )
        else:
            flagged.append(position)

    mean = round(float(np.mean(np.asarray(psis, dtype=np.float64))), 6) if psis else 0.0
    return _RowScan(
        profile=RowProfile(
            lane=lane,
            row=row,
            mean_confidence=mean,
            symbol_count=len(positions),
            suspect=mean < config.theta_min,
            processed=True,
        ),
        decisions=decisions,
        flagged=flagged,
    )


def _structure_delta(symbol: Symbol, grammar: Grammar) -> int:
    if grammar.opens(symbol.lexeme):
        return 1
    if grammar.closes(symbol.lexeme):
        return -1
    return 0


def _scan_columns(
    lane: Lane,
    matrix: PositionMatrix,
    grammar: Grammar,
) -> tuple[list[ColumnProfile], LaneBalance]:
    profiles: list[ColumnProfile] = []
    for column in matrix.columns(lane):
        positions = matrix.column_positions(lane, column)
        deltas = np.fromiter(
            (_structure_delta(matrix.cells[pos], grammar) for pos in positions),
            dtype=np.int64,
            count=len(positions),
        )
        depth = np.cumsum(deltas)
        profiles.append(
            ColumnProfile(
                lane=lane,
                column=column,
                max_depth=max(0, int(depth.max())),
                final_depth=int(depth[-1]),
                underflow_rows=tuple(positions[i].row for i in np.flatnonzero(depth < 0)),
            ),
        )

    ordered = [pos for row in matrix.rows(lane) for pos in matrix.row_positions(lane, row)]
    lane_depth = np.cumsum(
        np.fromiter(
            (_structure_delta(matrix.cells[pos], grammar) for pos in ordered),
            dtype=np.int64,
            count=len(ordered),
        ),
    )
    balance = LaneBalance(
        lane=lane,
        max_depth=max(0, int(lane_depth.max())) if len(ordered) else 0,
        final_depth=int(lane_depth[-1]) if len(ordered) else 0,
        underflow_positions=tuple(ordered[i] for i in np.flatnonzero(lane_depth < 0)),
    )
    return profiles, balance


def _resolve_row(
    flagged: list[Position],
    matrix: PositionMatrix,
    config: BridgeConfig,
    grammar: Grammar,
    scorer: ComponentScorer,
    deadline: float | None,
) -> list[SymbolDecision]:
    decisions: list[SymbolDecision] = []
    started = not _expired(deadline)
    for position in flagged:
        symbol = matrix.cells[position]
        original = evaluate_confidence(symbol, position, matrix, config, grammar=grammar, scorer=scorer)
        if not started:
            decisions.append(_not_processed(symbol, position, psi=original.psi))
            continue
        resolution = resolve_symbol(position, matrix, config, grammar=grammar, scorer=scorer)
        breakdown = resolution.breakdown
        if resolution.status == "resolved" and breakdown is not None:
            decisions.append(
                SymbolDecision(
                    position=position,
                    original=symbol,
                    symbol=resolution.symbol,
                    status="resolved",
                    psi=original.psi,
                    final_psi=breakdown.psi,
                    threshold=config.threshold_for(resolution.original_intent),
                    components=breakdown.components.as_dict(),
                    best_confidence=resolution.best_confidence,
                    reason_codes=(),
                ),
            )
        else:
            decisions.append(
                SymbolDecision(
                    position=position,
                    original=symbol,
                    symbol=None,
                    status="manual_review",
                    psi=original.psi,
                    final_psi=0.0,
                    threshold=config.threshold_for(resolution.original_intent),
                    components=original.components.as_dict(),
                    best_confidence=resolution.best_confidence,
                    reason_codes=resolution.reason_codes,
                ),
            )
    return decisions


def traverse_matrix(
    matrix: PositionMatrix,
    config: BridgeConfig,
    *,
    grammar: Grammar = DEFAULT_GRAMMAR,
    scorer: ComponentScorer = score_components,
    deadline: float | None = None,
) -> TraversalReport:
    """Scan the matrix and drive every position to a terminal state.

    ``deadline`` is an absolute ``time.monotonic()`` value.
    """
    config.validate()
    units = [(lane, row) for lane in matrix.lanes() for row in matrix.rows(lane)]

    with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
        column_futures = {
            lane: pool.submit(_scan_columns, lane, matrix, grammar)
            for lane in matrix.lanes()
        }
        row_futures: dict[tuple[Lane, int], Future[_RowScan]] = {
            unit: pool.submit(_scan_row, unit[0], unit[1], matrix, config, grammar, scorer, deadline)
            for unit in units
        }
        scans = {unit: future.result() for unit, future in row_futures.items()}

        pending = [unit for unit in units if scans[unit].flagged]
        order = {unit: idx for idx, unit in enumerate(units)}
        pending.sort(key=lambda unit: (0 if scans[unit].profile.suspect else 1, order[unit]))
        resolve_futures = {
            unit: pool.submit(_resolve_row, scans[unit].flagged, matrix, config, grammar, scorer, deadline)
            for unit in pending
        }
        resolved = {unit: future.result() for unit, future in resolve_futures.items()}
        columns = {lane: future.result() for lane, future in column_futures.items()}

    decisions: dict[Position, SymbolDecision] = {}
    for unit in units:
        for decision in [*scans[unit].decisions, *resolved.get(unit, [])]:
            if decision.position in decisions:
                raise RuntimeError(f"position {decision.position.label()} decided twice")
            decisions[decision.position] = decision

    profiles = tuple(scans[unit].profile for unit in units)
    suspect = [row for row in profiles if row.suspect]
    if suspect:
        log.info("%d suspect row(s) below theta_min=%.3f", len(suspect), config.theta_min)
    deadline_expired = any(row.status == "not_processed" for row in decisions.values())
    if deadline_expired:
        log.warning(
            "deadline expired: %d position(s) not processed",
            sum(1 for row in decisions.values() if row.status == "not_processed"),
        )

    return TraversalReport(
        decisions=tuple(decisions[pos] for pos in sorted(decisions, key=Position.sort_key)),
        row_profiles=profiles,
        column_profiles=tuple(profile for lane in matrix.lanes() for profile in columns[lane][0]),
        lane_balance=tuple(columns[lane][1] for lane in matrix.lanes()),
        deadline_expired=deadline_expired,
    )
