## Project: Lotto Ensemble Predictor
## Purpose of File: Ensemble Configuration
## Description:
## Nested hyperparameters for every estimator plus the combination weights.
## The ensemble owns one EnsembleConfig; estimators only read their own section.
## update() merges a partial nested dict and validates it before anything is applied.

import copy
import math
import numbers
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, List, Optional

from config.errors import InvalidConfig

ESTIMATOR_NAMES = ("bayesian", "xgboost", "lstm", "monte_carlo", "reinforcement")
MAX_BASELINE_SAMPLES = 20
MAX_GLOBAL_SAMPLES = 50


@dataclass
class BayesianConfig:
    confidence_level: float = 0.95
    prior_alpha: float = 0.5
    prior_beta: float = 0.5


@dataclass
class TreeEnsembleConfig:
    max_depth: int = 8
    learning_rate: float = 0.05
    n_estimators: int = 200
    subsample: float = 0.8
    col_sample: float = 0.8
    reg_alpha: float = 0.1   # L1
    reg_lambda: float = 1.0  # L2
    gamma: float = 0.1
    min_child_weight: float = 1.0
    search_iterations: int = 20
    feature_window: int = 10
    seed: Optional[int] = None


@dataclass
class SequenceConfig:
    temporal_window: int = 30
    attention_heads: int = 8
    bidirectional: bool = True
    recency_bias: float = 1.5
    type_affinity: float = 0.5


@dataclass
class MonteCarloConfig:
    simulations: int = 10000
    confidence_level: float = 0.95
    scenarios: int = 1000
    workers: int = 1
    seed: Optional[int] = None


@dataclass
class ReinforcementConfig:
    learning_rate: float = 0.001
    discount_factor: float = 0.95
    exploration_rate: float = 0.1
    exploration_decay: float = 0.995
    min_exploration_rate: float = 0.01
    memory_size: int = 10000
    batch_size: int = 32
    target_update_freq: int = 100
    reward_function: str = "hybrid"
    seed: Optional[int] = None


@dataclass
class AttributionConfig:
    coalition_samples: int = 20
    baseline_samples: int = 20
    max_global_samples: int = 50
    seed: Optional[int] = None


@dataclass
class CombinerConfig:
    # bayesian, xgboost, lstm, monte_carlo, reinforcement
    weights: List[float] = field(default_factory=lambda: [0.2, 0.25, 0.2, 0.2, 0.15])
    meta_feature_width: int = 20
    meta_batch_size: int = 8
    meta_epochs: int = 30
    seed: Optional[int] = None


SECTIONS = {
    "bayesian": BayesianConfig,
    "xgboost": TreeEnsembleConfig,
    "lstm": SequenceConfig,
    "monte_carlo": MonteCarloConfig,
    "reinforcement": ReinforcementConfig,
    "attribution": AttributionConfig,
    "ensemble": CombinerConfig,
}


def _require(condition, message):
    if not condition:
        raise InvalidConfig(message)


def _is_int(value):
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def _type_ok(expected, value):
    if expected is int:
        return _is_int(value)
    if expected is float:
        return _is_real(value)
    if expected is bool:
        return isinstance(value, bool)
    if expected is str:
        return isinstance(value, str)
    if expected == Optional[int]:
        return value is None or _is_int(value)
    if expected == List[float]:
        return isinstance(value, list) and all(_is_real(v) for v in value)
    return True


def check_types(name: str, section: Any) -> None:
    """Raise InvalidConfig for any field whose value does not match its declared type."""
    for f in fields(section):
        value = getattr(section, f.name)
        _require(_type_ok(f.type, value), f"{name}.{f.name} has the wrong type: {value!r}")


def _in_open_unit(value):
    return 0.0 < value < 1.0


def validate_section(name: str, section: Any) -> None:
    """Raise InvalidConfig if a section holds mistyped or out-of-range values."""
    check_types(name, section)
    if name == "bayesian":
        _require(_in_open_unit(section.confidence_level), "bayesian.confidence_level must be in (0, 1)")
        _require(section.prior_alpha > 0 and section.prior_beta > 0, "bayesian priors must be positive")
    elif name == "xgboost":
        _require(section.max_depth >= 1, "xgboost.max_depth must be >= 1")
        _require(section.learning_rate > 0, "xgboost.learning_rate must be positive")
        _require(section.n_estimators >= 1, "xgboost.n_estimators must be >= 1")
        _require(0 < section.subsample <= 1, "xgboost.subsample must be in (0, 1]")
        _require(0 < section.col_sample <= 1, "xgboost.col_sample must be in (0, 1]")
        _require(section.reg_alpha >= 0 and section.reg_lambda >= 0, "xgboost regularization must be >= 0")
        _require(section.gamma >= 0 and section.min_child_weight >= 0, "xgboost gamma/min_child_weight must be >= 0")
        _require(section.search_iterations >= 1, "xgboost.search_iterations must be >= 1")
        _require(section.feature_window >= 1, "xgboost.feature_window must be >= 1")
    elif name == "lstm":
        _require(section.temporal_window >= 1, "lstm.temporal_window must be >= 1")
        _require(section.attention_heads >= 1, "lstm.attention_heads must be >= 1")
        _require(section.recency_bias >= 0, "lstm.recency_bias must be >= 0")
        _require(section.type_affinity >= 0, "lstm.type_affinity must be >= 0")
    elif name == "monte_carlo":
        _require(section.simulations >= 1, "monte_carlo.simulations must be >= 1")
        _require(_in_open_unit(section.confidence_level), "monte_carlo.confidence_level must be in (0, 1)")
        _require(section.scenarios >= 0, "monte_carlo.scenarios must be >= 0")
        _require(section.workers >= 1, "monte_carlo.workers must be >= 1")
    elif name == "reinforcement":
        _require(section.learning_rate > 0, "reinforcement.learning_rate must be positive")
        _require(0 <= section.discount_factor <= 1, "reinforcement.discount_factor must be in [0, 1]")
        _require(0 <= section.exploration_rate <= 1, "reinforcement.exploration_rate must be in [0, 1]")
        _require(0 < section.exploration_decay <= 1, "reinforcement.exploration_decay must be in (0, 1]")
        _require(0 <= section.min_exploration_rate <= 1, "reinforcement.min_exploration_rate must be in [0, 1]")
        _require(section.memory_size >= 1 and section.batch_size >= 1, "reinforcement memory/batch must be >= 1")
        _require(section.target_update_freq >= 1, "reinforcement.target_update_freq must be >= 1")
        _require(section.reward_function in ("accuracy", "profit", "hybrid"),
                 "reinforcement.reward_function must be accuracy, profit or hybrid")
    elif name == "attribution":
        _require(section.coalition_samples >= 1, "attribution.coalition_samples must be >= 1")
        _require(1 <= section.baseline_samples <= MAX_BASELINE_SAMPLES,
                 f"attribution.baseline_samples must be in [1, {MAX_BASELINE_SAMPLES}]")
        _require(1 <= section.max_global_samples <= MAX_GLOBAL_SAMPLES,
                 f"attribution.max_global_samples must be in [1, {MAX_GLOBAL_SAMPLES}]")
    elif name == "ensemble":
        _require(len(section.weights) == len(ESTIMATOR_NAMES),
                 f"ensemble.weights needs {len(ESTIMATOR_NAMES)} entries")
        _require(all(w >= 0 for w in section.weights), "ensemble.weights must be >= 0")
        _require(sum(section.weights) > 0, "ensemble.weights must not all be zero")
        _require(section.meta_feature_width >= 4 * len(ESTIMATOR_NAMES),
                 "ensemble.meta_feature_width too small for all estimators")
        _require(section.meta_batch_size >= 1 and section.meta_epochs >= 1,
                 "ensemble meta batch/epochs must be >= 1")


@dataclass
class EnsembleConfig:
    bayesian: BayesianConfig = field(default_factory=BayesianConfig)
    xgboost: TreeEnsembleConfig = field(default_factory=TreeEnsembleConfig)
    lstm: SequenceConfig = field(default_factory=SequenceConfig)
    monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
    reinforcement: ReinforcementConfig = field(default_factory=ReinforcementConfig)
    attribution: AttributionConfig = field(default_factory=AttributionConfig)
    ensemble: CombinerConfig = field(default_factory=CombinerConfig)

    def validate(self) -> None:
        for name in SECTIONS:
            validate_section(name, getattr(self, name))

    def update(self, changes: Dict[str, Dict[str, Any]]) -> None:
        """
        Merge a nested partial dict, e.g. {"monte_carlo": {"simulations": 500}}.
        Nothing is applied unless the merged result validates.
        """
        if not isinstance(changes, dict):
            raise InvalidConfig("Configuration update must be a dict of sections.")

        candidate = copy.deepcopy(self)
        for section_name, values in changes.items():
            if section_name not in SECTIONS:
                raise InvalidConfig(f"Unknown configuration section {section_name!r}")
            if not isinstance(values, dict):
                raise InvalidConfig(f"Section {section_name!r} must be a dict")
            section = getattr(candidate, section_name)
            known = {f.name for f in fields(section)}
            for key, value in values.items():
                if key not in known:
                    raise InvalidConfig(f"Unknown key {section_name}.{key}")
                setattr(section, key, list(value) if isinstance(value, (list, tuple)) else value)

        candidate.validate()
        for section_name in SECTIONS:
            setattr(self, section_name, getattr(candidate, section_name))

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "EnsembleConfig":
        config = cls()
        config.update(data or {})
        return config
