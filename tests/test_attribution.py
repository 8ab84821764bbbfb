import numpy as np
import pytest

from config.errors import ModelNotInitialized
from config.settings import AttributionConfig
from records import FeatureVector
from steps.attribution import ShapExplainer

WEIGHTS = np.array([2.0, -1.0, 0.5, 0.0])
NAMES = ["sum_total", "variance", "even_count", "odd_count"]


def linear_score(rows):
    return rows @ WEIGHTS


def _explainer(baseline, **overrides):
    values = {"coalition_samples": 10, "seed": 0}
    values.update(overrides)
    return ShapExplainer(linear_score, baseline, NAMES, AttributionConfig(**values))


def test_linear_model_contributions_are_exact():
    explainer = _explainer(np.zeros((1, 4)))
    result = explainer.explain_prediction(np.array([1.0, 2.0, 3.0, 4.0]))

    assert result.base_value == pytest.approx(0.0)
    assert result.prediction == pytest.approx(1.5)
    assert result.total_contribution == pytest.approx(result.prediction - result.base_value)
    by_name = {c.feature: c.contribution for c in result.contributions}
    assert by_name == pytest.approx({"sum_total": 2.0, "variance": -2.0, "even_count": 1.5, "odd_count": 0.0})


def test_contributions_approach_prediction_minus_base():
    rng = np.random.default_rng(1)
    explainer = _explainer(rng.normal(size=(20, 4)), coalition_samples=1000, baseline_samples=20)
    result = explainer.explain_prediction([1.0, 1.0, 1.0, 1.0])
    assert result.total_contribution == pytest.approx(result.prediction - result.base_value, abs=0.35)


def test_ranking_and_top_lists():
    explainer = _explainer(np.zeros((1, 4)))
    result = explainer.explain_prediction(FeatureVector(names=tuple(NAMES), values=(1.0, 2.0, 3.0, 4.0)))
    magnitudes = [abs(c.contribution) for c in result.contributions]
    assert magnitudes == sorted(magnitudes, reverse=True)
    assert [c.feature for c in result.top_positive] == ["sum_total", "even_count"]
    assert [c.feature for c in result.top_negative] == ["variance"]
    assert result.contributions[0].description


def test_uninitialized_engine():
    explainer = ShapExplainer()
    assert not explainer.is_initialized
    with pytest.raises(ModelNotInitialized):
        explainer.explain_prediction([1.0, 2.0])
    with pytest.raises(ModelNotInitialized):
        explainer.explain_model([[1.0, 2.0]])
    with pytest.raises(ModelNotInitialized):
        explainer.initialize(linear_score, np.empty((0, 4)))


def test_global_explanation():
    explainer = _explainer(np.zeros((1, 4)), max_global_samples=6)
    result = explainer.explain_model(np.outer(np.arange(1, 11), np.ones(4)))

    assert result.samples_explained == 6
    assert 0.0 <= result.stability_score <= 1.0
    assert result.feature_importances["odd_count"] == pytest.approx(0.0)
    assert result.most_important[0] == "sum_total"
    assert "odd_count" in result.least_important
    assert "sum_total_x_variance" in result.interaction_scores
    assert len(result.interaction_scores) == 6
    assert all(abs(v) <= 1.0 + 1e-9 for v in result.interaction_scores.values())


def test_zero_importances_are_perfectly_stable():
    explainer = ShapExplainer(lambda rows: np.zeros(len(rows)), np.zeros((1, 3)), config=AttributionConfig(seed=0))
    result = explainer.explain_model(np.ones((3, 3)))
    assert result.stability_score == 1.0
    assert result.most_important == ["feature_0", "feature_1", "feature_2"]
