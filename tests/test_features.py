from datetime import date

import numpy as np
import pytest

from config.errors import InsufficientData
from records import Draw
from steps.features import FEATURE_NAMES, build_feature_matrix, compute_features, latest_features
from steps.frequency import analyze_number_frequency, recency
from steps.markov import generate_markov_matrix
from steps.entropy import shannon_entropy, uncertainty_measures


def _draw(numbers, day=date(2024, 3, 3), draw_id=1):
    return Draw(id=draw_id, name="National", date=day, main_numbers=numbers)


def test_even_numbers_scenario():
    fv = compute_features(_draw((2, 4, 6, 8, 10)), [_draw((11, 23, 45, 67, 89), draw_id=0)])
    assert fv["even_count"] == 5
    assert fv["odd_count"] == 0
    assert fv["sum_total"] == 30
    assert fv["consecutive_count"] == 0
    assert fv["range_span"] == 8


def test_feature_vector_layout(history):
    fv = compute_features(history[10], history[:10])
    assert fv.names == FEATURE_NAMES
    assert len(fv) == len(FEATURE_NAMES)
    assert all(np.isfinite(fv.values))
    buckets = [fv[name] for name in FEATURE_NAMES[:9]]
    assert sum(buckets) == pytest.approx(1.0)


def test_sunday_is_day_zero():
    # 2024-03-03 was a Sunday
    fv = compute_features(_draw((1, 2, 3, 4, 5)), [_draw((6, 7, 8, 9, 10), draw_id=0)])
    assert fv["day_of_week_sin"] == pytest.approx(0.0)
    assert fv["day_of_week_cos"] == pytest.approx(1.0)
    assert fv["consecutive_count"] == 4


def test_empty_window_fails():
    with pytest.raises(InsufficientData):
        compute_features(_draw((1, 2, 3, 4, 5)), [])


def test_feature_matrix_shapes(history):
    X, Y = build_feature_matrix(history, 5)
    assert X.shape == (len(history) - 5, len(FEATURE_NAMES))
    assert Y.shape == (len(history) - 5, 90)
    assert np.all(Y.sum(axis=1) == 5)
    with pytest.raises(InsufficientData):
        build_feature_matrix(history[:5], 5)


def test_latest_features_uses_prior_draws_only(history):
    fv = latest_features(history, 5)
    assert fv == compute_features(history[-1], history[-6:-1])


def test_frequency_and_recency(history):
    freq = analyze_number_frequency(history)
    assert freq.sum() == pytest.approx(1.0)
    gaps = recency(history)
    for n in history[-1].main_numbers:
        assert gaps[n - 1] == 0


def test_markov_rows_are_distributions(history):
    matrix = generate_markov_matrix(history)
    sums = matrix.sum(axis=1)
    assert np.all((np.isclose(sums, 1.0)) | (sums == 0))


def test_entropy_of_uniform_distribution():
    p = np.full(90, 1 / 90)
    assert shannon_entropy(p) == pytest.approx(np.log2(90))
    assert uncertainty_measures(p)["variance"] == pytest.approx(0.0)
