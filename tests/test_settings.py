import pytest

from config.errors import InvalidConfig
from config.settings import EnsembleConfig


def test_defaults_validate():
    config = EnsembleConfig()
    config.validate()
    assert config.xgboost.max_depth == 8
    assert config.lstm.temporal_window == 30
    assert config.monte_carlo.simulations == 10000
    assert config.reinforcement.target_update_freq == 100


def test_update_merges_nested_values():
    config = EnsembleConfig()
    config.update({"monte_carlo": {"simulations": 500}, "lstm": {"bidirectional": False}})
    assert config.monte_carlo.simulations == 500
    assert config.monte_carlo.confidence_level == 0.95
    assert config.lstm.bidirectional is False


@pytest.mark.parametrize("changes", [
    {"unknown": {"x": 1}},
    {"xgboost": {"depth": 3}},
    {"xgboost": {"subsample": 0.0}},
    {"bayesian": {"confidence_level": 1.0}},
    {"reinforcement": {"reward_function": "luck"}},
    {"ensemble": {"weights": [1, 1]}},
    {"monte_carlo": "fast"},
])
def test_invalid_update_is_rejected_and_nothing_changes(changes):
    config = EnsembleConfig()
    config.update({"monte_carlo": {"simulations": 123}})
    with pytest.raises(InvalidConfig):
        config.update({"monte_carlo": {"simulations": 77}, **changes})
    assert config.monte_carlo.simulations == 123


def test_round_trip_through_dict():
    config = EnsembleConfig()
    config.update({"ensemble": {"weights": [1, 1, 1, 1, 0]}, "xgboost": {"seed": 9}})
    restored = EnsembleConfig.from_dict(config.to_dict())
    assert restored == config


@pytest.mark.parametrize("changes", [
    {"monte_carlo": {"simulations": "500"}},
    {"lstm": {"attention_heads": 2.5}},
    {"lstm": {"bidirectional": 1}},
    {"monte_carlo": {"workers": True}},
    {"xgboost": {"seed": "abc"}},
    {"xgboost": {"learning_rate": float("nan")}},
    {"reinforcement": {"reward_function": 3}},
    {"ensemble": {"weights": [1, 1, "1", 1, 1]}},
])
def test_mistyped_values_are_rejected(changes):
    config = EnsembleConfig()
    with pytest.raises(InvalidConfig):
        config.update(changes)
    assert config == EnsembleConfig()


def test_integers_are_accepted_for_rates():
    config = EnsembleConfig()
    config.update({"xgboost": {"learning_rate": 1, "seed": 3}, "monte_carlo": {"seed": None}})
    assert config.xgboost.learning_rate == 1
    assert config.xgboost.seed == 3


@pytest.mark.parametrize("changes", [
    {"attribution": {"baseline_samples": 21}},
    {"attribution": {"max_global_samples": 51}},
])
def test_attribution_sample_caps(changes):
    with pytest.raises(InvalidConfig):
        EnsembleConfig().update(changes)
    config = EnsembleConfig()
    config.update({"attribution": {"baseline_samples": 20, "max_global_samples": 50}})
    assert config.attribution.max_global_samples == 50
