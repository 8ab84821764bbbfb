import json

import numpy as np

from data_io import load_ensemble_state, save_ensemble_state
from ensemble import EnsemblePredictor


def test_state_round_trip(tmp_path, small_config, history):
    path = str(tmp_path / "state.json")
    predictor = EnsemblePredictor(small_config)
    result = predictor.predict(history)
    predictor.update_with_feedback(result.numbers)
    save_ensemble_state(predictor, path)

    restored = EnsemblePredictor()
    assert load_ensemble_state(restored, path)
    assert restored.config == predictor.config
    assert np.array_equal(restored.bayesian.alpha, predictor.bayesian.alpha)
    assert np.allclose(restored.reinforcement.weights, predictor.reinforcement.weights)
    assert len(restored.reinforcement.memory) == len(predictor.reinforcement.memory)
    assert restored.performance_summary() == predictor.performance_summary()
    assert restored.sequence.queries.shape[0] == small_config.lstm.attention_heads


def test_missing_file_leaves_predictor_untouched(tmp_path):
    predictor = EnsemblePredictor()
    assert load_ensemble_state(predictor, str(tmp_path / "absent.json")) is False


def test_corrupt_or_incomplete_file_is_ignored(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    incomplete = tmp_path / "incomplete.json"
    incomplete.write_text(json.dumps({"version": 1, "state": {"config": {}}}))

    predictor = EnsemblePredictor()
    assert load_ensemble_state(predictor, str(broken)) is False
    assert load_ensemble_state(predictor, str(incomplete)) is False
