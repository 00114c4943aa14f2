"""Forest minimizer: collapse behaviourally equivalent subtrees.

Two subtrees are equivalent when they share kind, label and intent, wrap the
same lexical form (terminals), own the same canonical children in the same
order, and have aggregate confidences within the configured tolerance.

Nodes are processed bottom-up by height. Within a signature partition,
members are sorted by confidence and grouped greedily: a class starts at its
lowest confidence and takes every member within ``tolerance`` of that
anchor. The canonical member is the one with the earliest source position
(then smallest size, then node id); it takes the class's lowest confidence,
so canonicals of separate classes stay more than ``tolerance`` apart and a
second pass changes nothing.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Hashable, Sequence
from dataclasses import dataclass

from symbridge.errors import ConfigError
from symbridge.forest import SyntaxNode, count_unique_nodes, iter_unique_nodes, recompute_confidence


log = logging.getLogger("symbridge.minimizer")

# Confidences carry 6 decimals; absorbs float error at the tolerance boundary.
_TOLERANCE_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class EquivalenceClass:
    canonical_id: str
    member_ids: tuple[str, ...]
    confidence: float

    def __post_init__(self) -> None:
        if self.canonical_id not in self.member_ids:
            raise ValueError("canonical representative must be a class member")


@dataclass(frozen=True, slots=True)
class MinimizedForest:
    roots: tuple[SyntaxNode, ...]
    classes: tuple[EquivalenceClass, ...]
    node_count_before: int
    node_count_after: int

    @property
    def merged_count(self) -> int:
        return self.node_count_before - self.node_count_after


def _height(node: SyntaxNode, memo: dict[int, int]) -> int:
    cached = memo.get(id(node))
    if cached is not None:
        return cached
    value = 0 if not node.children else 1 + max(_height(child, memo) for child in node.children)
    memo[id(node)] = value
    return value


def _signature(node: SyntaxNode) -> Hashable:
    lexical = (node.symbol.lexeme, node.symbol.type_tag) if node.symbol is not None else None
    return (
        node.kind,
        node.label,
        node.intent,
        lexical,
        tuple(id(child) for child in node.children),
    )


def _canonical_key(node: SyntaxNode) -> tuple[object, ...]:
    return (node.source_key(), node.size(), node.node_id)


def _partition_by_tolerance(members: list[SyntaxNode], tolerance: float) -> list[list[SyntaxNode]]:
    ordered = sorted(members, key=lambda node: (node.confidence, _canonical_key(node)))
    classes: list[list[SyntaxNode]] = []
    anchor = 0.0
    for node in ordered:
        if classes and node.confidence - anchor <= tolerance + _TOLERANCE_EPSILON:
            classes[-1].append(node)
            continue
        anchor = node.confidence
        classes.append([node])
    return classes


def minimize_forest(roots: Sequence[SyntaxNode], tolerance: float) -> MinimizedForest:
    """Merge equivalent subtrees in place and return the rewritten forest."""
    if not (math.isfinite(tolerance) and tolerance >= 0.0):
        raise ConfigError("tolerance_range", "equivalence tolerance must be a finite value >= 0")

    nodes = list(iter_unique_nodes(roots))
    before = len(nodes)
    heights: dict[int, int] = {}
    by_height: dict[int, list[SyntaxNode]] = defaultdict(list)
    for node in nodes:
        by_height[_height(node, heights)].append(node)

    canonical: dict[int, SyntaxNode] = {}
    classes: list[EquivalenceClass] = []

    for height in sorted(by_height):
        level = by_height[height]
        for node in level:
            if node.children:
                node.children = [canonical.get(id(child), child) for child in node.children]
                recompute_confidence(node)

        partitions: dict[Hashable, list[SyntaxNode]] = defaultdict(list)
        for node in level:
            partitions[_signature(node)].append(node)

        for members in partitions.values():
            for group in _partition_by_tolerance(members, tolerance):
                chosen = min(group, key=_canonical_key)
                chosen.confidence = round(min(node.confidence for node in group), 6)
                for node in group:
                    canonical[id(node)] = chosen
                if len(group) > 1:
                    classes.append(
                        EquivalenceClass(
                            canonical_id=chosen.node_id,
                            member_ids=tuple(sorted(node.node_id for node in group)),
                            confidence=chosen.confidence,
                        ),
                    )

    new_roots = tuple(canonical.get(id(root), root) for root in roots)
    after = count_unique_nodes(new_roots)
    if classes:
        log.info("minimized forest %d -> %d nodes across %d class(es)", before, after, len(classes))
    return MinimizedForest(
        roots=new_roots,
        classes=tuple(sorted(classes, key=lambda row: row.canonical_id)),
        node_count_before=before,
        node_count_after=after,
    )
