"""Tests for the confidence evaluator and its cache."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from symbridge.confidence import (
    ConfidenceComponents,
    combine_components,
    evaluate_confidence,
    passes_component_mins,
    score_components,
)
from symbridge.config import BridgeConfig, StagingConfig, WeightVector
from symbridge.errors import ConfigError
from symbridge.matrix import ConfidenceCache, organize_matrix
from symbridge.types import Position, TokenRecord


def _assignment_records(value_tag: str = "literal", value: str = "42") -> list[TokenRecord]:
    return [
        TokenRecord(symbol_class="terminal", type_tag="identifier", lexeme="x", row=0, column=0),
        TokenRecord(symbol_class="terminal", type_tag="operator.assign", lexeme="=", row=0, column=1),
        TokenRecord(symbol_class="terminal", type_tag=value_tag, lexeme=value, row=0, column=2),
        TokenRecord(symbol_class="closure", type_tag="closure", lexeme=";", row=0, column=3),
    ]


class TestCombineComponents:
    def test_weighted_blend_matches_formula(self) -> None:
        components = ConfidenceComponents(
            lexical=0.9,
            positional=0.9,
            type_consistency=0.1,
            stage_binding=1.0,
        )
        psi = combine_components(components, WeightVector(0.4, 0.3, 0.2, 0.1))
        assert psi == pytest.approx(0.75)

    @pytest.mark.parametrize(
        "values",
        [
            (0.0, 0.0, 0.0, 0.0),
            (1.0, 1.0, 1.0, 1.0),
            (1.0, 0.0, 1.0, 0.0),
            (0.3, 0.7, 0.2, 0.9),
        ],
    )
    def test_psi_stays_in_unit_interval(self, values: tuple[float, float, float, float]) -> None:
        components = ConfidenceComponents(*values)
        for weights in (WeightVector(), WeightVector(0.5, 0.5, 0.0, 0.0), WeightVector(0.0, 0.0, 0.0, 1.0)):
            assert 0.0 <= combine_components(components, weights) <= 1.0

    def test_components_outside_unit_interval_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConfidenceComponents(lexical=1.2, positional=0.5, type_consistency=0.5, stage_binding=0.5)

    def test_invalid_weights_raise_config_error(self) -> None:
        components = ConfidenceComponents(1.0, 1.0, 1.0, 1.0)
        with pytest.raises(ConfigError):
            combine_components(components, WeightVector(0.5, 0.5, 0.5, 0.0))
        with pytest.raises(ConfigError):
            combine_components(components, WeightVector(1.2, -0.2, 0.0, 0.0))


class TestScoreComponents:
    def test_well_formed_assignment_scores_full_confidence(self) -> None:
        matrix = organize_matrix(_assignment_records())
        config = BridgeConfig()
        for position, symbol in matrix.cells.items():
            components = score_components(symbol, position, matrix, config)
            assert components.lexical == 1.0
            assert components.positional == 1.0
            assert components.type_consistency == 1.0
            assert components.stage_binding == 0.0
            breakdown = evaluate_confidence(symbol, position, matrix, config)
            assert breakdown.psi == 1.0

    def test_lexeme_not_matching_type_tag_lowers_lexical(self) -> None:
        matrix = organize_matrix(_assignment_records(value_tag="identifier"))
        position = Position(row=0, column=2)
        components = score_components(matrix.cells[position], position, matrix, BridgeConfig())
        assert components.lexical == pytest.approx(0.2)
        assert components.type_consistency == 1.0

    def test_stage_binding_uses_active_process_ids(self) -> None:
        records = [
            TokenRecord(symbol_class="terminal", type_tag="identifier", lexeme="a", row=0, column=0, process=0),
            TokenRecord(symbol_class="terminal", type_tag="identifier", lexeme="b", row=0, column=0, process=1),
        ]
        matrix = organize_matrix(records, staged=True)
        config = BridgeConfig(staging=StagingConfig(enabled=True, process_ids=frozenset({0})))
        bound = Position(row=0, column=0, process=0)
        unbound = Position(row=0, column=0, process=1)
        assert score_components(matrix.cells[bound], bound, matrix, config).stage_binding == 1.0
        assert score_components(matrix.cells[unbound], unbound, matrix, config).stage_binding == 0.0


class TestConfidenceCache:
    def test_repeat_evaluation_hits_cache(self) -> None:
        matrix = organize_matrix(_assignment_records())
        config = BridgeConfig()
        position = Position(row=0, column=0)
        symbol = matrix.cells[position]
        first = evaluate_confidence(symbol, position, matrix, config)
        second = evaluate_confidence(symbol, position, matrix, config)
        assert first is second
        assert matrix.cache.hits == 1
        assert len(matrix.cache) == 1

    def test_weight_change_uses_new_cache_key(self) -> None:
        matrix = organize_matrix(_assignment_records())
        position = Position(row=0, column=0)
        symbol = matrix.cells[position]
        evaluate_confidence(symbol, position, matrix, BridgeConfig())
        evaluate_confidence(symbol, position, matrix, BridgeConfig(weights=WeightVector(0.5, 0.5, 0.0, 0.0)))
        assert len(matrix.cache) == 2
        matrix.cache.invalidate()
        assert len(matrix.cache) == 0

    def test_staging_ids_are_part_of_the_key(self) -> None:
        records = [TokenRecord(symbol_class="terminal", type_tag="identifier", lexeme="x", row=0, column=0, process=1)]
        matrix = organize_matrix(records, staged=True)
        position = Position(row=0, column=0, process=1)
        symbol = matrix.cells[position]
        bound = BridgeConfig(staging=StagingConfig(enabled=True, process_ids=frozenset({1})))
        unbound = BridgeConfig(staging=StagingConfig(enabled=True, process_ids=frozenset({0})))
        assert evaluate_confidence(symbol, position, matrix, bound).psi == 1.0
        assert evaluate_confidence(symbol, position, matrix, unbound).psi == pytest.approx(0.9)
        assert len(matrix.cache) == 2

    def test_scorer_is_part_of_the_key(self) -> None:
        def flat(symbol, position, matrix, config, grammar):  # noqa: ANN001, ARG001
            return ConfidenceComponents(0.5, 0.5, 0.5, 0.5)

        matrix = organize_matrix(_assignment_records())
        position = Position(row=0, column=0)
        symbol = matrix.cells[position]
        assert evaluate_confidence(symbol, position, matrix, BridgeConfig()).psi == 1.0
        assert evaluate_confidence(symbol, position, matrix, BridgeConfig(), scorer=flat).psi == 0.5

    def test_counters_are_exact_under_threads(self) -> None:
        cache = ConfidenceCache()
        keys = [idx % 4 for idx in range(400)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            values = list(pool.map(lambda key: cache.get_or_compute(key, lambda: f"v{key}"), keys))
        assert values == [f"v{key}" for key in keys]
        assert cache.hits + cache.misses == len(keys)
        assert len(cache) == 4


def test_component_minimums() -> None:
    components = ConfidenceComponents(0.9, 0.4, 1.0, 0.0)
    assert passes_component_mins(components, {}) is True
    assert passes_component_mins(components, {"lexical": 0.8}) is True
    assert passes_component_mins(components, {"positional": 0.5}) is False
