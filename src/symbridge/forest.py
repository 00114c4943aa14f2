"""Syntax forest node types and deterministic serialization."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Literal

from symbridge.types import Intent, Position, Symbol


type NodeKind = Literal["terminal", "nonterminal"]

# Aggregate confidence of a nonterminal is the minimum over its children.
AGGREGATE_RULE = "min_of_children"


@dataclass(slots=True, eq=False)
class SyntaxNode:
    """Forest node. Identity-hashed so shared subtrees can be counted once.

    ``position`` is the originating symbol's position for terminals and the
    first source position covered for nonterminals.
    """

    node_id: str
    kind: NodeKind
    label: str
    intent: Intent
    confidence: float
    position: Position | None
    symbol: Symbol | None = None
    children: list[SyntaxNode] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.kind == "terminal" and self.symbol is None:
            raise ValueError("terminal node must wrap a symbol")
        if self.kind == "terminal" and self.children:
            raise ValueError("terminal node cannot own children")

    def source_key(self) -> tuple[int, int, int]:
        if self.position is None:
            return (1 << 30, 1 << 30, 1 << 30)
        return self.position.sort_key()

    def size(self) -> int:
        return 1 + sum(child.size() for child in self.children)


@dataclass(frozen=True, slots=True)
class ManualReviewEntry:
    """A position excluded from the forest, with its best candidate confidence."""

    position: Position
    lexeme: str
    type_tag: str
    best_confidence: float
    reason_codes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class IntentMismatchEntry:
    """A node dropped because its intent fits its parent even after coercion."""

    node_id: str
    position: Position | None
    intent: Intent
    parent_id: str
    parent_intent: Intent | None


def recompute_confidence(node: SyntaxNode) -> float:
    """Apply the aggregate rule to a nonterminal from its current children."""
    if node.kind == "terminal" or not node.children:
        return node.confidence
    node.confidence = round(min(child.confidence for child in node.children), 6)
    return node.confidence


def iter_unique_nodes(roots: Sequence[SyntaxNode]) -> Iterator[SyntaxNode]:
    """Pre-order walk yielding each distinct node once."""
    seen: set[int] = set()
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(reversed(node.children))


def count_unique_nodes(roots: Sequence[SyntaxNode]) -> int:
    return sum(1 for _ in iter_unique_nodes(roots))


def _position_to_dict(position: Position | None) -> dict[str, int | None] | None:
    if position is None:
        return None
    return {"row": position.row, "column": position.column, "process": position.process}


def node_to_dict(node: SyntaxNode) -> dict[str, object]:
    return {
        "node_id": node.node_id,
        "kind": node.kind,
        "label": node.label,
        "intent": node.intent,
        "confidence": node.confidence,
        "position": _position_to_dict(node.position),
        "lexeme": node.symbol.lexeme if node.symbol is not None else None,
        "type_tag": node.symbol.type_tag if node.symbol is not None else None,
        "children": [node_to_dict(child) for child in node.children],
    }


def forest_to_dict(roots: Sequence[SyntaxNode]) -> dict[str, object]:
    """Serialize forest to a deterministic JSON-safe dict."""

    return {
        "aggregate_rule": AGGREGATE_RULE,
        "unique_node_count": count_unique_nodes(roots),
        "roots": [node_to_dict(root) for root in roots],
    }


def manual_review_to_dict(entry: ManualReviewEntry) -> dict[str, object]:
    return {
        "position": _position_to_dict(entry.position),
        "lexeme": entry.lexeme,
        "type_tag": entry.type_tag,
        "best_confidence": entry.best_confidence,
        "reason_codes": list(entry.reason_codes),
    }


def intent_mismatch_to_dict(entry: IntentMismatchEntry) -> dict[str, object]:
    return {
        "node_id": entry.node_id,
        "position": _position_to_dict(entry.position),
        "intent": entry.intent,
        "parent_id": entry.parent_id,
        "parent_intent": entry.parent_intent,
    }
