"""Semantic gate: intent classification and parent/child intent validation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from symbridge.grammar import DEFAULT_GRAMMAR, DEFAULT_STATEMENT_INTENT, STATEMENT_HINT_PRIORITY, Grammar
from symbridge.types import Intent, Symbol


@dataclass(frozen=True, slots=True)
class GateVerdict:
    """Outcome of validating a child intent under a parent intent."""

    original: Intent
    intent: Intent | None
    coerced: bool

    @property
    def valid(self) -> bool:
        return self.intent is not None


def statement_intent(row: Sequence[Symbol], grammar: Grammar = DEFAULT_GRAMMAR) -> Intent:
    """Intent of a whole row: its strongest role-defining hint."""
    hints = [symbol.hint for symbol in row]
    for hint, intent in STATEMENT_HINT_PRIORITY:
        if hint in hints:
            return intent
    for idx, symbol in enumerate(row[:-1]):
        if symbol.hint == "identifier" and row[idx + 1].lexeme in grammar.inline_pairs:
            return "invoke"
    return DEFAULT_STATEMENT_INTENT


def classify_intent(
    row: Sequence[Symbol],
    index: int,
    grammar: Grammar = DEFAULT_GRAMMAR,
) -> Intent:
    """Intent of ``row[index]`` given its row neighbours.

    Operands, separators and mid-row closers take the statement intent of
    their row; closers ending a row terminate it.
    """
    symbol = row[index]
    left = row[index - 1] if index > 0 else None
    right = row[index + 1] if index + 1 < len(row) else None

    match symbol.hint:
        case "type_keyword":
            return "declare"
        case "control_keyword":
            return "control"
        case "process":
            return "process_transition"
        case "operator_assign":
            return "assign"
        case "query":
            return "query"
        case "call":
            return "invoke"
        case "identifier":
            if left is not None and left.hint == "type_keyword":
                return "declare"
            if right is not None and right.hint == "operator_assign":
                return "assign"
            if right is not None and right.lexeme in grammar.inline_pairs:
                return "invoke"
            return statement_intent(row, grammar)
        case "closure":
            if right is None:
                return "terminate"
            return statement_intent(row, grammar)
        case "literal" | "operator" | "delimiter":
            return statement_intent(row, grammar)


def intents_compatible(original: Intent, candidate: Intent, grammar: Grammar = DEFAULT_GRAMMAR) -> bool:
    return original == candidate or (original, candidate) in grammar.compatible_intents


def validate_intent(
    parent: Intent | None,
    child: Intent,
    grammar: Grammar = DEFAULT_GRAMMAR,
) -> GateVerdict:
    """Check a child intent against its parent, with one coercion attempt.

    ``parent`` is None for forest roots. The coercion picks the first entry of
    the grammar's nearest-intent order that the parent permits.
    """
    if grammar.permits(parent, child):
        return GateVerdict(original=child, intent=child, coerced=False)
    for candidate in grammar.nearest_intents.get(child, ()):
        if grammar.permits(parent, candidate):
            return GateVerdict(original=child, intent=candidate, coerced=True)
    return GateVerdict(original=child, intent=None, coerced=False)
