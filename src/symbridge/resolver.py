"""Disambiguation resolver for symbols flagged below their threshold.

The search is local and bounded: it only reads the flagged position's row,
its vertical neighbours and its same-position cells in other lanes, and it
tries each registered interpretation of the symbol's class at most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal

from symbridge.confidence import (
    ComponentScorer,
    ConfidenceBreakdown,
    evaluate_confidence,
    passes_component_mins,
    score_components,
)
from symbridge.config import BridgeConfig
from symbridge.gate import classify_intent, intents_compatible
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar, Interpretation
from symbridge.matrix import PositionMatrix
from symbridge.types import Intent, Position, Symbol


log = logging.getLogger("symbridge.resolver")

type ResolutionStatus = Literal["resolved", "manual_review"]


@dataclass(frozen=True, slots=True)
class Neighborhood:
    """Cells the resolver may read for one flagged position."""

    position: Position
    row: tuple[Position, ...]
    vertical: tuple[Position, ...]
    lane_alternates: tuple[Position, ...]

    def covers(self, position: Position) -> bool:
        return (
            position == self.position
            or position in self.row
            or position in self.vertical
            or position in self.lane_alternates
        )


@dataclass(frozen=True, slots=True)
class CandidateScore:
    type_tag: str
    psi: float
    threshold: float
    intent: Intent
    accepted: bool
    rejection: str


@dataclass(frozen=True, slots=True)
class Resolution:
    status: ResolutionStatus
    symbol: Symbol | None
    breakdown: ConfidenceBreakdown | None
    original_intent: Intent
    best_confidence: float
    candidates: tuple[CandidateScore, ...]
    reason_codes: tuple[str, ...]


def build_neighborhood(matrix: PositionMatrix, position: Position) -> Neighborhood:
    return Neighborhood(
        position=position,
        row=matrix.row_positions(position.process, position.row),
        vertical=matrix.vertical_neighbors(position),
        lane_alternates=matrix.lane_alternates(position),
    )


def _row_symbols(matrix: PositionMatrix, neighborhood: Neighborhood) -> list[Symbol]:
    return [matrix.cells[pos] for pos in neighborhood.row]


def _ordered_alternatives(
    symbol: Symbol,
    matrix: PositionMatrix,
    neighborhood: Neighborhood,
    grammar: Grammar,
) -> list[Interpretation]:
    """Registered interpretations that fit the lexeme; lane-attested tags first."""
    registered = [
        row
        for row in grammar.alternatives_for(symbol.symbol_class)
        if row.type_tag != symbol.type_tag and row.matches(symbol.lexeme)
    ]
    attested = {
        matrix.cells[pos].type_tag
        for pos in neighborhood.lane_alternates
        if matrix.cells[pos].lexeme == symbol.lexeme
    }
    return sorted(
        registered,
        key=lambda row: 0 if row.type_tag in attested else 1,
    )


def _vertical_support(hint: str, matrix: PositionMatrix, neighborhood: Neighborhood) -> int:
    return sum(1 for pos in neighborhood.vertical if matrix.cells[pos].hint == hint)


def resolve_symbol(
    position: Position,
    matrix: PositionMatrix,
    config: BridgeConfig,
    *,
    grammar: Grammar = DEFAULT_GRAMMAR,
    scorer: ComponentScorer = score_components,
) -> Resolution:
    """Search for a confident, intent-preserving reinterpretation of a symbol."""

    symbol = matrix.cells[position]
    neighborhood = build_neighborhood(matrix, position)
    row = _row_symbols(matrix, neighborhood)
    index = neighborhood.row.index(position)
    original_intent = classify_intent(row, index, grammar)
    original = evaluate_confidence(symbol, position, matrix, config, grammar=grammar, scorer=scorer)

    best_confidence = original.psi
    scored: list[CandidateScore] = []
    passing: list[tuple[float, int, int, Symbol, ConfidenceBreakdown]] = []

    for order, interp in enumerate(_ordered_alternatives(symbol, matrix, neighborhood, grammar)):
        alternative = replace(
            symbol,
            symbol_id=f"{symbol.symbol_id}~{interp.type_tag}",
            type_tag=interp.type_tag,
            hint=interp.hint,
        )
        breakdown = evaluate_confidence(alternative, position, matrix, config, grammar=grammar, scorer=scorer)
        best_confidence = max(best_confidence, breakdown.psi)
        trial_row = [*row[:index], alternative, *row[index + 1:]]
        intent = classify_intent(trial_row, index, grammar)
        threshold = config.threshold_for(intent)

        rejection = ""
        if breakdown.psi < threshold:
            rejection = "below_threshold"
        elif not passes_component_mins(breakdown.components, config.component_minimums):
            rejection = "component_minimum"
        elif not intents_compatible(original_intent, intent, grammar):
            rejection = "intent_changed"

        scored.append(
            CandidateScore(
                type_tag=interp.type_tag,
                psi=breakdown.psi,
                threshold=threshold,
                intent=intent,
                accepted=not rejection,
                rejection=rejection,
            ),
        )
        if not rejection:
            support = _vertical_support(interp.hint, matrix, neighborhood)
            passing.append((breakdown.psi, support, order, alternative, breakdown))

    if passing:
        passing.sort(key=lambda item: (-item[0], -item[1], item[2]))
        psi, _, _, chosen, breakdown = passing[0]
        log.debug("resolved %s %r as %s (psi=%.4f)", position.label(), symbol.lexeme, chosen.type_tag, psi)
        return Resolution(
            status="resolved",
            symbol=chosen,
            breakdown=breakdown,
            original_intent=original_intent,
            best_confidence=round(best_confidence, 6),
            candidates=tuple(scored),
            reason_codes=(),
        )

    reasons = {row.rejection for row in scored} if scored else {"no_alternative"}
    log.debug("manual review for %s %r: %s", position.label(), symbol.lexeme, sorted(reasons))
    return Resolution(
        status="manual_review",
        symbol=None,
        breakdown=None,
        original_intent=original_intent,
        best_confidence=round(best_confidence, 6),
        candidates=tuple(scored),
        reason_codes=tuple(sorted(reasons)),
    )
