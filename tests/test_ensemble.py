import pytest

import ensemble
from config.errors import InsufficientData, InvalidConfig, InvalidDraw, ModelNotInitialized, PredictionCancelled
from config.settings import ESTIMATOR_NAMES
from ensemble import EnsemblePredictor
from pipeline import CancellationToken
from records import FinalPrediction


@pytest.fixture
def predictor(small_config):
    return EnsemblePredictor(small_config)


def test_full_prediction(predictor, history):
    result = predictor.predict(history, "National")

    assert isinstance(result, FinalPrediction)
    assert len(set(result.numbers)) == 5
    assert all(1 <= n <= 90 for n in result.numbers)
    assert result.failures == {}
    assert set(result.estimators) == set(ESTIMATOR_NAMES)
    assert sum(result.weights.values()) == pytest.approx(1.0)
    assert 0.0 <= result.confidence <= 100.0

    assert result.attribution["total_contribution"] == pytest.approx(
        result.attribution["prediction"] - result.attribution["base_value"], abs=0.25
    )
    lower, upper = result.monte_carlo["confidence_interval"]
    assert lower <= upper
    assert sum(result.reinforcement["model_weights"].values()) == pytest.approx(1.0)
    assert result.metrics["estimators_used"] == 5


def test_accepts_raw_rows_in_any_order(predictor, history):
    rows = [d.to_dict() for d in reversed(history)]
    result = predictor.predict(rows)
    assert result.metrics["history_size"] == len(history)


def test_failing_estimator_is_left_out(predictor, history):
    # the sequence estimator needs temporal_window + 10 = 20 draws
    result = predictor.predict(history[:15])
    assert "lstm" in result.failures
    assert "lstm" not in result.estimators
    assert result.weights["lstm"] == 0.0
    assert sum(result.weights.values()) == pytest.approx(1.0)
    assert len(set(result.numbers)) == 5


def test_only_bayesian_and_monte_carlo_survive(predictor, history):
    result = predictor.predict(history[:3])
    assert set(result.failures) == {"xgboost", "lstm"}
    assert result.attribution is None
    assert sum(result.weights.values()) == pytest.approx(1.0)


def test_empty_history(predictor):
    with pytest.raises(InsufficientData):
        predictor.predict([])


def test_malformed_history_is_rejected(predictor, history):
    rows = [d.to_dict() for d in history]
    rows[4]["main_numbers"] = [1, 2, 3, 4, 4]
    with pytest.raises(InvalidDraw):
        predictor.predict(rows)


def test_cancellation_aborts_without_result(predictor, history):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(PredictionCancelled):
        predictor.predict(history, token=token)
    assert predictor.last_prediction is None


def test_feedback_before_prediction(predictor):
    with pytest.raises(ModelNotInitialized):
        predictor.update_with_feedback([1, 2, 3, 4, 5])


def test_feedback_updates_performance(predictor, history):
    result = predictor.predict(history)
    actual = list(result.estimators["bayesian"].numbers)
    feedback = predictor.update_with_feedback(actual, feedback=7)

    assert feedback["match_ratios"]["bayesian"] == 1.0
    assert feedback["reward"] is not None
    assert feedback["meta_trained"] is False
    summary = predictor.performance_summary()
    assert summary["bayesian"] == 1.0
    metrics = predictor.get_performance_metrics()
    assert metrics["feedback_rounds"]["bayesian"] == 1
    assert metrics["reinforcement"]["episode_count"] == 1


def test_feedback_numbers_are_validated(predictor, history):
    predictor.predict(history)
    with pytest.raises(InvalidDraw):
        predictor.update_with_feedback([1, 2, 3, 4, 100])


def test_explanations_after_prediction(predictor, history):
    with pytest.raises(ModelNotInitialized):
        predictor.explain_prediction()
    predictor.predict(history)
    local = predictor.explain_prediction()
    assert len(local.contributions) == 37
    global_result = predictor.explain_model()
    assert global_result.samples_explained == 5
    assert 0.0 <= global_result.stability_score <= 1.0


def test_update_config_rewires_estimators(predictor, history):
    predictor.update_config({"lstm": {"attention_heads": 2}, "monte_carlo": {"simulations": 500}})
    assert predictor.sequence.queries.shape[0] == 2
    assert predictor.monte_carlo.config.simulations == 500
    result = predictor.predict(history)
    assert len(result.estimators["lstm"].auxiliary["head_weights"]) == 2


def test_invalid_config_update_changes_nothing(predictor):
    with pytest.raises(InvalidConfig):
        predictor.update_config({"monte_carlo": {"simulations": 0}})
    assert predictor.config.monte_carlo.simulations == 2000
    assert predictor.monte_carlo.config.simulations == 2000


def test_unexpected_estimator_crash_is_left_out(predictor, history, monkeypatch):
    def broken(draws, token=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(predictor.tree, "predict", broken)
    result = predictor.predict(history)
    assert result.failures == {"xgboost": "boom"}
    assert result.weights["xgboost"] == 0.0
    assert result.attribution is None
    assert len(set(result.numbers)) == 5


def test_reinforcement_crash_is_left_out(predictor, history, monkeypatch):
    def broken(*args, **kwargs):
        raise ArithmeticError("bad state")

    monkeypatch.setattr(predictor.reinforcement, "predict", broken)
    result = predictor.predict(history)
    assert "reinforcement" in result.failures
    assert result.reinforcement is None
    assert sum(result.weights.values()) == pytest.approx(1.0)


@pytest.mark.parametrize("changes", [
    {"monte_carlo": {"simulations": "500"}},
    {"lstm": {"attention_heads": 2.5}},
    {"xgboost": {"seed": "abc"}},
    {"lstm": {"attention_heads": 2}, "monte_carlo": {"workers": 0}},
])
def test_rejected_update_leaves_every_estimator_untouched(predictor, changes):
    config = predictor.config
    sections = {
        "sequence": predictor.sequence.config,
        "monte_carlo": predictor.monte_carlo.config,
        "reinforcement": predictor.reinforcement.config,
        "explainer": predictor.explainer.config,
        "combiner": predictor.combiner.config,
    }
    with pytest.raises(InvalidConfig):
        predictor.update_config(changes)

    assert predictor.config is config
    assert predictor.sequence.config is sections["sequence"]
    assert predictor.sequence.queries.shape[0] == 4
    assert predictor.monte_carlo.config is sections["monte_carlo"]
    assert predictor.reinforcement.config is sections["reinforcement"]
    assert predictor.explainer.config is sections["explainer"]
    assert predictor.combiner.config is sections["combiner"]


def test_each_prediction_gets_its_own_pipeline(predictor, history, monkeypatch):
    created = []

    class RecordingPipeline(ensemble.DataPipeline):
        def __init__(self):
            super().__init__()
            created.append(self)

    monkeypatch.setattr(ensemble, "DataPipeline", RecordingPipeline)
    predictor.predict(history)
    predictor.predict(history[:30])

    assert len(created) == 2
    assert len(created[0].get_data("historical_data")) == 60
    assert len(created[1].get_data("historical_data")) == 30
    assert set(created[0].get_data("estimator_outputs")) == set(ESTIMATOR_NAMES)
    assert not hasattr(predictor, "pipeline")
