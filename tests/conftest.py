from datetime import date, timedelta

import numpy as np
import pytest

from config.settings import EnsembleConfig
from records import Draw, EstimatorOutput
from steps.sequence import DRAW_TYPES


def make_draws(count, seed=0, start=date(2024, 1, 1), always=None):
    """`count` random draws, one every 3 days, cycling through the draw types."""
    rng = np.random.default_rng(seed)
    draws = []
    for i in range(count):
        numbers = list(rng.choice(np.arange(1, 91), size=5, replace=False))
        if always is not None and always not in numbers:
            numbers[0] = always
        draws.append(Draw(
            id=i + 1,
            name=DRAW_TYPES[i % len(DRAW_TYPES)],
            date=start + timedelta(days=3 * i),
            main_numbers=tuple(int(n) for n in numbers),
        ))
    return draws


def make_output(name, numbers, confidence=50.0):
    probabilities = {n: 0.0 for n in range(1, 91)}
    for n in numbers:
        probabilities[n] = 0.2
    return EstimatorOutput(name=name, numbers=sorted(numbers), probabilities=probabilities, confidence=confidence)


@pytest.fixture
def history():
    return make_draws(60, seed=11)


@pytest.fixture
def seven_history():
    return make_draws(40, seed=7, always=7)


@pytest.fixture
def upstream_outputs():
    return {
        "bayesian": make_output("bayesian", [1, 2, 3, 4, 5], 60.0),
        "xgboost": make_output("xgboost", [3, 4, 5, 6, 7], 40.0),
        "lstm": make_output("lstm", [10, 20, 30, 40, 50], 30.0),
        "monte_carlo": make_output("monte_carlo", [1, 3, 5, 7, 9], 20.0),
    }


@pytest.fixture
def small_config():
    config = EnsembleConfig()
    config.update({
        "xgboost": {"n_estimators": 30, "search_iterations": 3, "feature_window": 5, "seed": 1},
        "lstm": {"temporal_window": 10, "attention_heads": 4},
        "monte_carlo": {"simulations": 2000, "scenarios": 50, "seed": 3},
        "reinforcement": {"batch_size": 2, "seed": 4},
        "attribution": {"coalition_samples": 5, "baseline_samples": 5, "max_global_samples": 5, "seed": 5},
        "ensemble": {"meta_batch_size": 50, "meta_epochs": 2, "seed": 6},
    })
    return config
