"""Batch configuration threaded explicitly through every symbridge call.

``load_config`` is the file-facing collaborator: it reads JSON with orjson and
validates the payload shape with pydantic before building the frozen
``BridgeConfig`` used by the core.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from symbridge.errors import ConfigError
from symbridge.types import INTENTS, Intent


WEIGHT_SUM_TOLERANCE = 1e-6
DEFAULT_THETA_MIN = 0.8
DEFAULT_EQUIVALENCE_TOLERANCE = 0.05
DEFAULT_MAX_WORKERS = 4
COMPONENT_NAMES: tuple[str, ...] = ("lexical", "positional", "type_consistency", "stage_binding")


@dataclass(frozen=True, slots=True)
class WeightVector:
    """(alpha, beta, gamma, delta) weights for the lexical, positional,
    type-consistency and stage-binding components."""

    alpha: float = 0.4
    beta: float = 0.3
    gamma: float = 0.2
    delta: float = 0.1

    def __post_init__(self) -> None:
        self.validate()

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.alpha, self.beta, self.gamma, self.delta)

    def validate(self) -> None:
        values = self.as_tuple()
        for name, value in zip(("alpha", "beta", "gamma", "delta"), values):
            if not math.isfinite(value):
                raise ConfigError("non_finite", f"{name}={value} must be finite")
            if value < 0.0:
                raise ConfigError("negative_weight", f"{name}={value} must be >= 0")
        total = sum(values)
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigError("weight_sum", f"weights sum to {total}, expected 1.0")

    def effective(self, staged: bool) -> WeightVector:
        """Weights actually applied: delta is zero-weighted without staging."""
        self.validate()
        if staged or self.delta == 0.0:
            return self
        remaining = self.alpha + self.beta + self.gamma
        if remaining <= WEIGHT_SUM_TOLERANCE:
            raise ConfigError(
                "stage_weight_without_staging",
                "all weight is on stage binding but staging is disabled",
            )
        return WeightVector(
            alpha=self.alpha / remaining,
            beta=self.beta / remaining,
            gamma=self.gamma / remaining,
            delta=0.0,
        )


@dataclass(frozen=True, slots=True)
class StagingConfig:
    """Capability flag for the process axis plus the active stage identifiers.

    An empty id set accepts any declared value for that identifier.
    """

    enabled: bool = False
    stage_ids: frozenset[int] = frozenset()
    process_ids: frozenset[int] = frozenset()
    phase_ids: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    weights: WeightVector = field(default_factory=WeightVector)
    theta_min: float = DEFAULT_THETA_MIN
    intent_thresholds: dict[Intent, float] = field(default_factory=dict)
    component_minimums: dict[str, float] = field(default_factory=dict)
    staging: StagingConfig = field(default_factory=StagingConfig)
    equivalence_tolerance: float = DEFAULT_EQUIVALENCE_TOLERANCE
    max_workers: int = DEFAULT_MAX_WORKERS

    def validate(self) -> None:
        """Raise ConfigError for any value that would make a batch meaningless."""
        self.weights.validate()
        self.weights.effective(self.staging.enabled)
        if not (math.isfinite(self.theta_min) and 0.0 <= self.theta_min <= 1.0):
            raise ConfigError("theta_range", f"theta_min={self.theta_min} must be in [0, 1]")
        for intent, theta in self.intent_thresholds.items():
            if intent not in INTENTS:
                raise ConfigError("unknown_intent", f"threshold override for {intent!r}")
            if not (math.isfinite(theta) and 0.0 <= theta <= 1.0):
                raise ConfigError("theta_range", f"{intent} threshold {theta} must be in [0, 1]")
            if theta < self.theta_min:
                raise ConfigError(
                    "override_not_stricter",
                    f"{intent} threshold {theta} is below theta_min {self.theta_min}",
                )
        for name, minimum in self.component_minimums.items():
            if name not in COMPONENT_NAMES:
                raise ConfigError("unknown_component", f"minimum for {name!r}")
            if not (math.isfinite(minimum) and 0.0 <= minimum <= 1.0):
                raise ConfigError("component_minimum_range", f"{name} minimum {minimum} must be in [0, 1]")
        if not (math.isfinite(self.equivalence_tolerance) and self.equivalence_tolerance >= 0.0):
            raise ConfigError("tolerance_range", "equivalence_tolerance must be a finite value >= 0")
        if self.max_workers < 1:
            raise ConfigError("max_workers", "max_workers must be >= 1")

    def threshold_for(self, intent: Intent) -> float:
        return max(self.theta_min, self.intent_thresholds.get(intent, self.theta_min))


class _WeightsModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    alpha: float
    beta: float
    gamma: float
    delta: float = 0.0


class _StagingModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    stage_ids: list[int] = Field(default_factory=list)
    process_ids: list[int] = Field(default_factory=list)
    phase_ids: list[int] = Field(default_factory=list)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    weights: _WeightsModel | None = None
    theta_min: float = DEFAULT_THETA_MIN
    intent_thresholds: dict[str, float] = Field(default_factory=dict)
    component_minimums: dict[str, float] = Field(default_factory=dict)
    staging: _StagingModel = Field(default_factory=_StagingModel)
    equivalence_tolerance: float = DEFAULT_EQUIVALENCE_TOLERANCE
    max_workers: int = DEFAULT_MAX_WORKERS


def config_from_dict(payload: dict[str, Any]) -> BridgeConfig:
    """Validate a decoded payload and build a checked BridgeConfig."""
    try:
        model = _ConfigModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError("schema", str(exc)) from exc

    weights = (
        WeightVector(
            alpha=model.weights.alpha,
            beta=model.weights.beta,
            gamma=model.weights.gamma,
            delta=model.weights.delta,
        )
        if model.weights is not None
        else WeightVector()
    )
    config = BridgeConfig(
        weights=weights,
        theta_min=model.theta_min,
        intent_thresholds=dict(sorted(model.intent_thresholds.items())),  # type: ignore[arg-type]
        component_minimums=dict(sorted(model.component_minimums.items())),
        staging=StagingConfig(
            enabled=model.staging.enabled,
            stage_ids=frozenset(model.staging.stage_ids),
            process_ids=frozenset(model.staging.process_ids),
            phase_ids=frozenset(model.staging.phase_ids),
        ),
        equivalence_tolerance=model.equivalence_tolerance,
        max_workers=model.max_workers,
    )
    config.validate()
    return config


def load_config(path: Path) -> BridgeConfig:
    """Load a JSON config file."""
    try:
        payload = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise ConfigError("json", f"{path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("schema", f"{path}: top-level JSON must be an object")
    return config_from_dict(payload)


def config_to_dict(config: BridgeConfig) -> dict[str, object]:
    """Serialize config to a deterministic JSON-safe dict."""

    return {
        "weights": {
            "alpha": config.weights.alpha,
            "beta": config.weights.beta,
            "gamma": config.weights.gamma,
            "delta": config.weights.delta,
        },
        "theta_min": config.theta_min,
        "intent_thresholds": dict(sorted(config.intent_thresholds.items())),
        "component_minimums": dict(sorted(config.component_minimums.items())),
        "staging": {
            "enabled": config.staging.enabled,
            "stage_ids": sorted(config.staging.stage_ids),
            "process_ids": sorted(config.staging.process_ids),
            "phase_ids": sorted(config.staging.phase_ids),
        },
        "equivalence_tolerance": config.equivalence_tolerance,
        "max_workers": config.max_workers,
    }
