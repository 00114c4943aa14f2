"""Tests for batch configuration validation and loading."""

from __future__ import annotations

import sys
from pathlib import Path

import orjson
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from symbridge.config import (
    BridgeConfig,
    StagingConfig,
    WeightVector,
    config_from_dict,
    config_to_dict,
    load_config,
)
from symbridge.errors import ConfigError


class TestWeightVector:
    def test_zero_entries_are_valid_when_sum_is_one(self) -> None:
        WeightVector(0.5, 0.5, 0.0, 0.0).validate()

    def test_sum_tolerance(self) -> None:
        WeightVector(0.4, 0.3, 0.2, 0.1 + 5e-7).validate()
        with pytest.raises(ConfigError) as excinfo:
            WeightVector(0.4, 0.3, 0.2, 0.2).validate()
        assert excinfo.value.reason == "weight_sum"

    def test_negative_weight(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            WeightVector(1.1, -0.1, 0.0, 0.0).validate()
        assert excinfo.value.reason == "negative_weight"

    def test_stage_weight_renormalized_without_staging(self) -> None:
        effective = WeightVector(0.4, 0.3, 0.2, 0.1).effective(staged=False)
        assert effective.delta == 0.0
        assert sum(effective.as_tuple()) == pytest.approx(1.0)
        assert effective.alpha == pytest.approx(0.4 / 0.9)
        assert WeightVector(0.4, 0.3, 0.2, 0.1).effective(staged=True) == WeightVector(0.4, 0.3, 0.2, 0.1)

    def test_all_weight_on_stage_binding_requires_staging(self) -> None:
        with pytest.raises(ConfigError):
            BridgeConfig(weights=WeightVector(0.0, 0.0, 0.0, 1.0)).validate()
        BridgeConfig(
            weights=WeightVector(0.0, 0.0, 0.0, 1.0),
            staging=StagingConfig(enabled=True),
        ).validate()

    def test_construction_validates(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            WeightVector(0.5, 0.5, 0.5, 0.0)
        assert excinfo.value.reason == "weight_sum"

    @pytest.mark.parametrize(
        "weights",
        [
            (float("nan"), 0.5, 0.5, 0.0),
            (0.5, float("inf"), 0.5, 0.0),
            (0.5, 0.5, 0.0, float("-inf")),
        ],
    )
    def test_non_finite_weights_rejected(self, weights: tuple[float, float, float, float]) -> None:
        with pytest.raises(ConfigError) as excinfo:
            WeightVector(*weights)
        assert excinfo.value.reason == "non_finite"


class TestBridgeConfig:
    def test_theta_range(self) -> None:
        with pytest.raises(ConfigError):
            BridgeConfig(theta_min=1.5).validate()

    def test_intent_override_must_be_stricter(self) -> None:
        BridgeConfig(theta_min=0.7, intent_thresholds={"control": 0.9}).validate()
        with pytest.raises(ConfigError) as excinfo:
            BridgeConfig(theta_min=0.7, intent_thresholds={"control": 0.5}).validate()
        assert excinfo.value.reason == "override_not_stricter"

    def test_threshold_for_intent(self) -> None:
        config = BridgeConfig(theta_min=0.7, intent_thresholds={"control": 0.9})
        assert config.threshold_for("control") == 0.9
        assert config.threshold_for("assign") == 0.7

    def test_unknown_component_minimum(self) -> None:
        with pytest.raises(ConfigError):
            BridgeConfig(component_minimums={"vibes": 0.5}).validate()

    @pytest.mark.parametrize(
        ("overrides", "reason"),
        [
            ({"theta_min": float("nan")}, "theta_range"),
            ({"intent_thresholds": {"control": float("nan")}}, "theta_range"),
            ({"component_minimums": {"lexical": float("nan")}}, "component_minimum_range"),
            ({"equivalence_tolerance": float("nan")}, "tolerance_range"),
            ({"equivalence_tolerance": float("inf")}, "tolerance_range"),
        ],
    )
    def test_non_finite_values_rejected(self, overrides: dict[str, object], reason: str) -> None:
        with pytest.raises(ConfigError) as excinfo:
            BridgeConfig(**overrides).validate()  # type: ignore[arg-type]
        assert excinfo.value.reason == reason


class TestLoadConfig:
    def test_load_config_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bridge.json"
        path.write_bytes(
            orjson.dumps(
                {
                    "weights": {"alpha": 0.5, "beta": 0.5, "gamma": 0.0, "delta": 0.0},
                    "theta_min": 0.75,
                    "intent_thresholds": {"query": 0.9},
                    "staging": {"enabled": True, "process_ids": [1, 0]},
                    "equivalence_tolerance": 0.02,
                },
            ),
        )
        config = load_config(path)
        assert config.weights == WeightVector(0.5, 0.5, 0.0, 0.0)
        assert config.theta_min == 0.75
        assert config.staging.process_ids == frozenset({0, 1})
        payload = config_to_dict(config)
        assert payload["staging"]["process_ids"] == [0, 1]
        assert payload["intent_thresholds"] == {"query": 0.9}
        assert payload["equivalence_tolerance"] == 0.02

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            config_from_dict({"theta_min": 0.8, "thetaa": 1})
        assert excinfo.value.reason == "schema"

    def test_bad_weights_rejected_on_load(self) -> None:
        with pytest.raises(ConfigError):
            config_from_dict({"weights": {"alpha": 0.9, "beta": 0.9, "gamma": 0.0}})

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError) as excinfo:
            load_config(path)
        assert excinfo.value.reason == "json"
