"""symbridge: confidence-gated bridge from token streams to syntax forests."""

from symbridge.builder import ForestBuild, build_forest
from symbridge.confidence import (
    ConfidenceBreakdown,
    ConfidenceComponents,
    combine_components,
    evaluate_confidence,
    score_components,
)
from symbridge.config import (
    BridgeConfig,
    StagingConfig,
    WeightVector,
    config_from_dict,
    config_to_dict,
    load_config,
)
from symbridge.errors import ConfigError, StructuralError
from symbridge.forest import (
    IntentMismatchEntry,
    ManualReviewEntry,
    SyntaxNode,
    count_unique_nodes,
    forest_to_dict,
)
from symbridge.gate import classify_intent, statement_intent, validate_intent
from symbridge.grammar import DEFAULT_GRAMMAR, Grammar, Interpretation
from symbridge.matrix import PositionMatrix, organize_matrix
from symbridge.minimizer import EquivalenceClass, MinimizedForest, minimize_forest
from symbridge.pipeline import BridgeResult, bridge_result_to_dict, run_bridge
from symbridge.resolver import Resolution, resolve_symbol
from symbridge.traversal import SymbolDecision, TraversalReport, traverse_matrix
from symbridge.types import Intent, IntentHint, Position, Symbol, SymbolClass, TokenRecord

__all__ = [
    "BridgeConfig",
    "BridgeResult",
    "ConfidenceBreakdown",
    "ConfidenceComponents",
    "ConfigError",
    "DEFAULT_GRAMMAR",
    "EquivalenceClass",
    "ForestBuild",
    "Grammar",
    "Intent",
    "IntentHint",
    "IntentMismatchEntry",
    "Interpretation",
    "ManualReviewEntry",
    "MinimizedForest",
    "Position",
    "PositionMatrix",
    "Resolution",
    "StagingConfig",
    "StructuralError",
    "Symbol",
    "SymbolClass",
    "SymbolDecision",
    "SyntaxNode",
    "TokenRecord",
    "TraversalReport",
    "WeightVector",
    "bridge_result_to_dict",
    "build_forest",
    "classify_intent",
    "combine_components",
    "config_from_dict",
    "config_to_dict",
    "count_unique_nodes",
    "evaluate_confidence",
    "forest_to_dict",
    "load_config",
    "minimize_forest",
    "organize_matrix",
    "resolve_symbol",
    "run_bridge",
    "score_components",
    "statement_intent",
    "traverse_matrix",
    "validate_intent",
]
