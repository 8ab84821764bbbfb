import numpy as np
import pytest

from config.errors import InsufficientData
from config.settings import SequenceConfig
from steps.sequence import DRAW_TYPES, TIMESTEP_FEATURES, SequenceEstimator, draw_type_embedding, head_queries


def _estimator(**overrides):
    values = {"temporal_window": 10, "attention_heads": 4}
    values.update(overrides)
    return SequenceEstimator(SequenceConfig(**values))


def test_needs_window_plus_ten_draws(history):
    estimator = _estimator()
    assert estimator.minimum_draws() == 20
    with pytest.raises(InsufficientData) as info:
        estimator.predict(history[:19])
    assert info.value.required == 20
    assert info.value.available == 19


def test_prediction_contract(history):
    output = _estimator().predict(history[:20], "National")
    assert output.name == "lstm"
    assert len(set(output.numbers)) == 5
    assert all(0.0 <= p <= 1.0 for p in output.probabilities.values())
    assert max(output.probabilities.values()) == pytest.approx(1.0)
    assert output.metrics["windows"] == 10


def test_attention_matrix_shape_and_normalization(history):
    estimator = _estimator()
    output = estimator.predict(history)
    attention = output.auxiliary["attention_weights"]
    assert attention.shape == (10, TIMESTEP_FEATURES, 4)
    assert np.allclose(attention.sum(axis=(0, 1)), 1.0)
    assert sum(output.auxiliary["head_weights"]) == pytest.approx(1.0)


@pytest.mark.parametrize("bidirectional", [True, False])
def test_attention_columns_sum_to_one(history, bidirectional):
    estimator = _estimator(bidirectional=bidirectional)
    weights = estimator.attention(history[-10:], "Etoile")
    assert weights.shape == (10, 4)
    assert np.allclose(weights.sum(axis=0), 1.0)


def test_recency_bias_favours_latest_draw_when_unidirectional(history):
    estimator = _estimator(bidirectional=False, recency_bias=500.0)
    estimator.train(history)
    weights = estimator.attention(history[-10:])
    assert np.all(weights.argmax(axis=0) == 9)


def test_same_type_draws_get_more_attention(history):
    window = history[-10:]
    plain = _estimator(type_affinity=2.0).attention(window)
    typed = _estimator(type_affinity=2.0).attention(window, window[0].name)
    same = np.array([d.name == window[0].name for d in window])
    assert typed[same].sum() > plain[same].sum()


def test_draw_type_embedding():
    assert draw_type_embedding("Fortune").tolist() == [0, 0, 1, 0, 0]
    assert draw_type_embedding("Lucky").sum() == 0
    assert len(DRAW_TYPES) == 5


def test_head_queries_are_deterministic():
    assert np.array_equal(head_queries(8), head_queries(8))
    assert head_queries(3).shape == (3, TIMESTEP_FEATURES)
    assert head_queries(2)[0, 0] == pytest.approx(np.sin(1) + 0.5 * np.cos(1))


def test_reconfigure_rebuilds_heads(history):
    estimator = _estimator()
    estimator.reconfigure(SequenceConfig(temporal_window=10, attention_heads=2))
    output = estimator.predict(history)
    assert output.auxiliary["attention_weights"].shape[-1] == 2
