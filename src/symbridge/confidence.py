"""Confidence evaluator: four bounded components and their weighted blend.

psi = alpha*lexical + beta*positional + gamma*type_consistency + delta*stage_binding

Components:
- **lexical** - upstream recognition score, discounted when the lexeme does
  not fit the pattern registered for its (class, type tag)
- **positional** - how plausible the hint is at its place in the row
- **type_consistency** - agreement with the left and right row neighbours
- **stage_binding** - agreement of declared stage/process/phase ids with the
  active staging configuration (zero-weighted when staging is off)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from symbridge.config import BridgeConfig, StagingConfig, WeightVector
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar
from symbridge.matrix import PositionMatrix
from symbridge.types import IntentHint, Position, Symbol


LEXICAL_MISMATCH_FACTOR = 0.2

# (first in row, mid row, last in row)
_POSITIONAL_PRIORS: dict[IntentHint, tuple[float, float, float]] = {
    "type_keyword": (1.0, 0.5, 0.5),
    "control_keyword": (1.0, 0.5, 0.5),
    "process": (1.0, 0.5, 0.5),
    "operator_assign": (0.1, 1.0, 0.2),
    "operator": (0.4, 1.0, 0.2),
    "query": (0.2, 1.0, 1.0),
    "closure": (0.4, 0.8, 1.0),
    "identifier": (1.0, 1.0, 1.0),
    "literal": (1.0, 1.0, 1.0),
    "call": (1.0, 1.0, 1.0),
    "delimiter": (1.0, 1.0, 1.0),
}


@dataclass(frozen=True, slots=True)
class ConfidenceComponents:
    lexical: float
    positional: float
    type_consistency: float
    stage_binding: float

    def __post_init__(self) -> None:
        for name, value in self.as_dict().items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")

    def as_dict(self) -> dict[str, float]:
        return {
            "lexical": self.lexical,
            "positional": self.positional,
            "type_consistency": self.type_consistency,
            "stage_binding": self.stage_binding,
        }


@dataclass(frozen=True, slots=True)
class ConfidenceBreakdown:
    components: ConfidenceComponents
    psi: float

    def as_dict(self) -> dict[str, float]:
        return {**self.components.as_dict(), "psi": self.psi}


type ComponentScorer = Callable[
    [Symbol, Position, PositionMatrix, BridgeConfig, Grammar],
    ConfidenceComponents,
]


def _bounded(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def combine_components(components: ConfidenceComponents, weights: WeightVector) -> float:
    """Weighted blend of the four components. Raises ConfigError on bad weights."""
    weights.validate()
    value = (
        weights.alpha * components.lexical
        + weights.beta * components.positional
        + weights.gamma * components.type_consistency
        + weights.delta * components.stage_binding
    )
    return round(_bounded(value), 6)


def _lexical_component(symbol: Symbol, grammar: Grammar) -> float:
    fits = grammar.lexically_valid(symbol.symbol_class, symbol.type_tag, symbol.lexeme)
    return _bounded(symbol.lexical_score * (1.0 if fits else LEXICAL_MISMATCH_FACTOR))


def _positional_component(
    symbol: Symbol,
    left: Symbol | None,
    right: Symbol | None,
    grammar: Grammar,
) -> float:
    first, middle, last = _POSITIONAL_PRIORS[symbol.hint]
    if left is None:
        if symbol.hint == "closure" and grammar.is_block_closer(symbol.lexeme):
            return 1.0
        return first
    if right is None:
        return last
    return middle


def _type_consistency_component(
    symbol: Symbol,
    left: Symbol | None,
    right: Symbol | None,
    grammar: Grammar,
) -> float:
    left_ok = grammar.may_follow(left.hint if left is not None else None, symbol.hint)
    if right is None:
        right_ok = grammar.may_end_row(symbol.hint)
    else:
        right_ok = grammar.may_follow(symbol.hint, right.hint)
    if left_ok and right_ok:
        return 1.0
    if left_ok or right_ok:
        return 0.5
    return 0.1


def _stage_binding_component(symbol: Symbol, staging: StagingConfig) -> float:
    if not staging.enabled:
        return 0.0
    declared = [
        (value, active)
        for value, active in (
            (symbol.stage, staging.stage_ids),
            (symbol.process, staging.process_ids),
            (symbol.phase, staging.phase_ids),
        )
        if value is not None
    ]
    if not declared:
        return 1.0
    bound = sum(1 for value, active in declared if not active or value in active)
    return bound / len(declared)


def score_components(
    symbol: Symbol,
    position: Position,
    matrix: PositionMatrix,
    config: BridgeConfig,
    grammar: Grammar = DEFAULT_GRAMMAR,
) -> ConfidenceComponents:
    """Default component scorer reading neighbours from the original matrix."""
    left_pos, right_pos = matrix.row_neighbors(position)
    left = matrix.symbol_at(left_pos) if left_pos is not None else None
    right = matrix.symbol_at(right_pos) if right_pos is not None else None
    return ConfidenceComponents(
        lexical=round(_lexical_component(symbol, grammar), 6),
        positional=round(_positional_component(symbol, left, right, grammar), 6),
        type_consistency=round(_type_consistency_component(symbol, left, right, grammar), 6),
        stage_binding=round(_stage_binding_component(symbol, config.staging), 6),
    )


def evaluate_confidence(
    symbol: Symbol,
    position: Position,
    matrix: PositionMatrix,
    config: BridgeConfig,
    *,
    grammar: Grammar = DEFAULT_GRAMMAR,
    scorer: ComponentScorer = score_components,
) -> ConfidenceBreakdown:
    """Memoized confidence for a symbol at a position under the config weights."""
    weights = config.weights.effective(config.staging.enabled)
    key = (symbol.symbol_id, position, weights, config.staging, grammar, scorer)

    def compute() -> ConfidenceBreakdown:
        components = scorer(symbol, position, matrix, config, grammar)
        return ConfidenceBreakdown(
            components=components,
            psi=combine_components(components, weights),
        )

    return matrix.cache.get_or_compute(key, compute)


def passes_component_mins(
    components: ConfidenceComponents,
    minimums: dict[str, float],
) -> bool:
    if not minimums:
        return True
    data = components.as_dict()
    for key, min_required in minimums.items():
        if float(data.get(key, 0.0)) < float(min_required):
            return False
    return True
