"""End-to-end bridge: token records to a minimized syntax forest."""

from __future__ import annotations

import hashlib
import logging
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from symbridge.builder import build_forest
from symbridge.confidence import ComponentScorer, score_components
from symbridge.config import BridgeConfig
from symbridge.forest import (
    AGGREGATE_RULE,
    IntentMismatchEntry,
    ManualReviewEntry,
    SyntaxNode,
    count_unique_nodes,
    forest_to_dict,
    intent_mismatch_to_dict,
    manual_review_to_dict,
)
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar
from symbridge.matrix import organize_matrix
from symbridge.minimizer import MinimizedForest, minimize_forest
from symbridge.traversal import SymbolDecision, TraversalReport, traverse_matrix
from symbridge.types import TokenRecord


log = logging.getLogger("symbridge.pipeline")

BRIDGE_VERSION = "symbridge_v1"


@dataclass(frozen=True, slots=True)
class BridgeResult:
    run_id: str
    roots: tuple[SyntaxNode, ...]
    manual_review: tuple[ManualReviewEntry, ...]
    intent_mismatches: tuple[IntentMismatchEntry, ...]
    decisions: tuple[SymbolDecision, ...]
    traversal: TraversalReport
    minimization: MinimizedForest | None
    warnings: tuple[str, ...]


def _manual_review_entries(decisions: tuple[SymbolDecision, ...]) -> tuple[ManualReviewEntry, ...]:
    return tuple(
        ManualReviewEntry(
            position=row.position,
            lexeme=row.original.lexeme,
            type_tag=row.original.type_tag,
            best_confidence=row.best_confidence,
            reason_codes=row.reason_codes,
        )
        for row in decisions
        if row.status in ("manual_review", "not_processed")
    )


def _build_run_id(decisions: tuple[SymbolDecision, ...]) -> str:
    parts = [BRIDGE_VERSION]
    for row in decisions:
        tag = row.symbol.type_tag if row.symbol is not None else "-"
        parts.append(f"{row.position.label()}:{row.status}:{tag}")
    digest = hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:16]  # noqa: S324 - non-crypto id
    return f"sb_{digest}"


def run_bridge(
    records: Iterable[TokenRecord],
    config: BridgeConfig,
    *,
    grammar: Grammar = DEFAULT_GRAMMAR,
    scorer: ComponentScorer = score_components,
    deadline_ms: float | None = None,
    minimize: bool = True,
) -> BridgeResult:
    """Run one batch.

    Raises ConfigError or StructuralError before any scanning starts; every
    other failure is per position or per node and lands on the result.
    """

    started = time.monotonic()
    config.validate()
    deadline = started + deadline_ms / 1000.0 if deadline_ms is not None else None
    matrix = organize_matrix(records, staged=config.staging.enabled, grammar=grammar)
    log.info("bridge batch: %d symbol(s), %d lane(s)", len(matrix), len(matrix.lanes()))

    traversal = traverse_matrix(matrix, config, grammar=grammar, scorer=scorer, deadline=deadline)
    build = build_forest(traversal.decisions, matrix, grammar=grammar)

    minimized: MinimizedForest | None = None
    roots = build.roots
    if minimize:
        minimized = minimize_forest(build.roots, config.equivalence_tolerance)
        roots = minimized.roots

    warnings = [*build.warnings]
    for balance in traversal.lane_balance:
        if not balance.balanced:
            warnings.append(f"unbalanced_structure:lane={balance.lane}:final_depth={balance.final_depth}")

    manual_review = _manual_review_entries(traversal.decisions)
    log.info(
        "bridge done in %.1fms: %d root(s), %d manual review, %d intent mismatch(es)",
        (time.monotonic() - started) * 1000,
        len(roots),
        len(manual_review),
        len(build.intent_mismatches),
    )
    return BridgeResult(
        run_id=_build_run_id(traversal.decisions),
        roots=roots,
        manual_review=manual_review,
        intent_mismatches=build.intent_mismatches,
        decisions=traversal.decisions,
        traversal=traversal,
        minimization=minimized,
        warnings=tuple(sorted(set(warnings))),
    )


def bridge_result_to_dict(result: BridgeResult) -> dict[str, object]:
    """Serialize a batch result for deterministic snapshots and reports."""

    status_counts = Counter(row.status for row in result.decisions)
    minimization = result.minimization
    return {
        "run_id": result.run_id,
        "bridge_version": BRIDGE_VERSION,
        "aggregate_rule": AGGREGATE_RULE,
        "forest": forest_to_dict(result.roots),
        "manual_review": [manual_review_to_dict(row) for row in result.manual_review],
        "intent_mismatches": [intent_mismatch_to_dict(row) for row in result.intent_mismatches],
        "decisions": [
            {
                "position": row.position.label(),
                "lexeme": row.original.lexeme,
                "status": row.status,
                "type_tag": row.symbol.type_tag if row.symbol is not None else row.original.type_tag,
                "psi": row.psi,
                "final_psi": row.final_psi,
                "threshold": row.threshold,
                "components": dict(sorted(row.components.items())),
                "reason_codes": list(row.reason_codes),
            }
            for row in result.decisions
        ],
        "diagnostics": {
            "status_counts": dict(sorted(status_counts.items())),
            "suspect_rows": [
                {"lane": lane, "row": row} for lane, row in result.traversal.suspect_rows()
            ],
            "row_profiles": [
                {
                    "lane": row.lane,
                    "row": row.row,
                    "mean_confidence": row.mean_confidence,
                    "symbol_count": row.symbol_count,
                    "suspect": row.suspect,
                    "processed": row.processed,
                }
                for row in result.traversal.row_profiles
            ],
            "column_profiles": [
                {
                    "lane": row.lane,
                    "column": row.column,
                    "max_depth": row.max_depth,
                    "final_depth": row.final_depth,
                    "balanced": row.balanced,
                }
                for row in result.traversal.column_profiles
            ],
            "deadline_expired": result.traversal.deadline_expired,
            "node_count": count_unique_nodes(result.roots),
            "node_count_before_minimization": (
                minimization.node_count_before if minimization is not None else None
            ),
            "equivalence_classes": len(minimization.classes) if minimization is not None else 0,
            "warnings": list(result.warnings),
        },
    }
