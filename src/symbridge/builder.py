"""Forest builder: gated symbols to statement/group/block syntax nodes.

Productions of the default grammar collaborator:

- every row becomes a ``statement`` nonterminal
- an inline opener starts a ``group`` that runs to its closer in the same row
  (or to the row end, with an ``unclosed_group`` warning)
- a block opener ending a row starts a ``block`` owning the statements of the
  following rows until a row starting with the block closer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from symbridge.forest import IntentMismatchEntry, SyntaxNode, recompute_confidence
from symbridge.gate import classify_intent, statement_intent, validate_intent
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar
from symbridge.matrix import Lane, PositionMatrix
from symbridge.traversal import SymbolDecision
from symbridge.types import Intent, Position, Symbol


log = logging.getLogger("symbridge.builder")


@dataclass(frozen=True, slots=True)
class ForestBuild:
    roots: tuple[SyntaxNode, ...]
    intent_mismatches: tuple[IntentMismatchEntry, ...]
    coerced_node_ids: tuple[str, ...]
    warnings: tuple[str, ...]


@dataclass(slots=True)
class _Gated:
    position: Position
    symbol: Symbol
    psi: float
    intent: Intent


class _LaneBuilder:
    def __init__(self, lane: Lane, grammar: Grammar) -> None:
        self.lane = lane
        self.grammar = grammar
        self.roots: list[SyntaxNode] = []
        self.blocks: list[SyntaxNode] = []
        self.mismatches: list[IntentMismatchEntry] = []
        self.coerced: list[str] = []
        self.warnings: list[str] = []

    def attach(self, parent: SyntaxNode | None, child: SyntaxNode) -> bool:
        verdict = validate_intent(parent.intent if parent is not None else None, child.intent, self.grammar)
        if verdict.intent is None:
            self.mismatches.append(
                IntentMismatchEntry(
                    node_id=child.node_id,
                    position=child.position,
                    intent=child.intent,
                    parent_id=parent.node_id if parent is not None else "",
                    parent_intent=parent.intent if parent is not None else None,
                ),
            )
            log.debug("intent mismatch: %s (%s) under %s", child.node_id, child.intent, parent and parent.intent)
            return False
        if verdict.coerced:
            child.intent = verdict.intent
            self.coerced.append(child.node_id)
        if parent is None:
            self.roots.append(child)
        else:
            parent.children.append(child)
        return True

    def terminal(self, item: _Gated) -> SyntaxNode:
        return SyntaxNode(
            node_id=f"t_{item.position.label()}",
            kind="terminal",
            label=item.symbol.hint,
            intent=item.intent,
            confidence=item.psi,
            position=item.position,
            symbol=item.symbol,
        )

    def add_row(self, row: int, items: list[_Gated]) -> None:
        if items and self.grammar.is_block_closer(items[0].symbol.lexeme):
            if self.blocks:
                block = self.blocks.pop()
                items[0].intent = "terminate"
                self.attach(block, self.terminal(items[0]))
                items = items[1:]
            else:
                self.warnings.append(f"stray_block_closer:{items[0].position.label()}")
        if not items:
            return

        symbols = [item.symbol for item in items]
        for idx, item in enumerate(items):
            item.intent = classify_intent(symbols, idx, self.grammar)
        container = self.blocks[-1] if self.blocks else None
        statement = SyntaxNode(
            node_id=f"s_{'' if self.lane is None else self.lane}_{row}",
            kind="nonterminal",
            label="statement",
            intent=statement_intent(symbols, self.grammar),
            confidence=1.0,
            position=items[0].position,
        )

        groups: list[tuple[SyntaxNode, str]] = []
        opened_block: SyntaxNode | None = None
        for idx, item in enumerate(items):
            lexeme = item.symbol.lexeme
            parent = groups[-1][0] if groups else statement
            is_last = idx == len(items) - 1
            if is_last and self.grammar.is_block_opener(lexeme):
                block = SyntaxNode(
                    node_id=f"b_{item.position.label()}",
                    kind="nonterminal",
                    label="block",
                    intent=statement.intent,
                    confidence=1.0,
                    position=item.position,
                )
                if self.attach(parent, block):
                    self.attach(block, self.terminal(item))
                    opened_block = block
            elif self.grammar.opens(lexeme):
                previous = items[idx - 1].intent if idx > 0 else statement.intent
                group = SyntaxNode(
                    node_id=f"g_{item.position.label()}",
                    kind="nonterminal",
                    label="group",
                    intent="invoke" if previous == "invoke" else statement.intent,
                    confidence=1.0,
                    position=item.position,
                )
                if self.attach(parent, group):
                    self.attach(group, self.terminal(item))
                    groups.append((group, self.grammar.closer_for(lexeme) or ""))
            elif groups and lexeme == groups[-1][1]:
                self.attach(groups.pop()[0], self.terminal(item))
            else:
                self.attach(parent, self.terminal(item))

        if groups:
            self.warnings.append(f"unclosed_group:{groups[0][0].position.label()}")  # type: ignore[union-attr]
        if self.attach(container, statement) and opened_block is not None:
            self.blocks.append(opened_block)

    def finish(self) -> None:
        for block in self.blocks:
            self.warnings.append(f"unclosed_block:{block.node_id}")
        self.blocks.clear()
        self.roots = [root for root in self.roots if _finalize(root)]


def _finalize(node: SyntaxNode) -> bool:
    """Post-order confidence aggregation; drops nonterminals left empty."""
    if node.kind == "terminal":
        return True
    node.children = [child for child in node.children if _finalize(child)]
    if not node.children:
        return False
    recompute_confidence(node)
    return True


def build_forest(
    decisions: tuple[SymbolDecision, ...],
    matrix: PositionMatrix,
    *,
    grammar: Grammar = DEFAULT_GRAMMAR,
) -> ForestBuild:
    """Assemble the forest from accepted/resolved decisions, lane by lane."""

    by_position = {
        row.position: row
        for row in decisions
        if row.status in ("accepted", "resolved") and row.symbol is not None
    }
    roots: list[SyntaxNode] = []
    mismatches: list[IntentMismatchEntry] = []
    coerced: list[str] = []
    warnings: list[str] = []

    for lane in matrix.lanes():
        lane_builder = _LaneBuilder(lane, grammar)
        for row in matrix.rows(lane):
            items = [
                _Gated(
                    position=pos,
                    symbol=by_position[pos].symbol,  # type: ignore[arg-type]
                    psi=by_position[pos].final_psi,
                    intent="unresolved",
                )
                for pos in matrix.row_positions(lane, row)
                if pos in by_position
            ]
            lane_builder.add_row(row, items)
        lane_builder.finish()
        roots.extend(lane_builder.roots)
        mismatches.extend(lane_builder.mismatches)
        coerced.extend(lane_builder.coerced)
        warnings.extend(lane_builder.warnings)

    return ForestBuild(
        roots=tuple(roots),
        intent_mismatches=tuple(mismatches),
        coerced_node_ids=tuple(coerced),
        warnings=tuple(warnings),
    )
