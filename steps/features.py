## Project: Lotto Ensemble Predictor
## Purpose of File: Feature Engineering
## Description:
## Derives a fixed-width numeric feature vector from one draw plus the trailing window of
## draws that preceded it. The schema is fixed (FEATURE_NAMES) and every value is finite:
## degenerate statistics default to 0 instead of producing NaN/Infinity.
## build_feature_matrix() slides the window across a history to produce training rows.

import logging
import math

import numpy as np

from config.errors import InsufficientData
from pipeline import multi_hot
from records import FeatureVector, MAX_NUMBER, PICK_SIZE

logger = logging.getLogger(__name__)

THEORETICAL_MEAN = (1 + MAX_NUMBER) / 2.0  # 45.5
CYCLE_SCALE = 225.0

FEATURE_NAMES = (
    # frequency by range
    "freq_1_10", "freq_11_20", "freq_21_30", "freq_31_40", "freq_41_50",
    "freq_51_60", "freq_61_70", "freq_71_80", "freq_81_90",
    # parity
    "even_count", "odd_count", "even_odd_ratio",
    # distribution
    "sum_total", "mean_value", "variance", "std_dev",
    "min_number", "max_number", "range_span",
    # distance
    "avg_distance", "min_distance", "max_distance", "consecutive_count",
    # calendar
    "day_of_week_sin", "day_of_week_cos",
    "day_of_month_sin", "day_of_month_cos",
    "month_sin", "month_cos",
    # co-occurrence
    "pair_frequency", "triplet_frequency",
    # trends
    "recent_trend_5", "recent_trend_10", "recent_trend_20",
    # cyclical
    "cyclical_pattern_7", "cyclical_pattern_14", "cyclical_pattern_30",
)

FEATURE_DESCRIPTIONS = {
    "freq_1_10": "Share of numbers 1-10 in the window",
    "freq_11_20": "Share of numbers 11-20 in the window",
    "even_count": "Even numbers in the draw",
    "odd_count": "Odd numbers in the draw",
    "sum_total": "Sum of the 5 numbers",
    "variance": "Spread of the 5 numbers",
    "avg_distance": "Mean gap between consecutive sorted numbers",
    "consecutive_count": "Adjacent pairs such as 17-18",
    "day_of_week_sin": "Day of week (cyclic)",
    "pair_frequency": "Window draws sharing at least 2 numbers",
    "triplet_frequency": "Window draws sharing at least 3 numbers",
    "recent_trend_5": "Mean number of the last 5 draws vs 45.5",
    "cyclical_pattern_7": "Weekly-period weighted number mass",
}


def describe_feature(name):
    return FEATURE_DESCRIPTIONS.get(name, f"Feature: {name}")


def _finite(value):
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _calculate_trend(numbers):
    if len(numbers) == 0:
        return 0.0
    return float(np.mean(numbers)) / THEORETICAL_MEAN


def _calculate_cyclical_pattern(window, period):
    pattern = 0.0
    for i, draw in enumerate(window):
        weight = math.sin(2 * math.pi * (i % period) / period)
        pattern += sum(draw.main_numbers) * weight
    return pattern / len(window) / CYCLE_SCALE


def compute_features(draw, window):
    """
    Feature vector for `draw` given the draws before it (oldest first).

    Raises:
        InsufficientData if the window is empty.
    """
    window = list(window)
    if not window:
        raise InsufficientData("Feature window must contain at least one prior draw.", required=1, available=0)

    values = []

    # ---- frequency by range ----
    all_numbers = np.array([n for d in window for n in d.main_numbers], dtype=int)
    buckets = np.bincount((all_numbers - 1) // 10, minlength=9)[:9]
    values.extend(buckets / max(len(all_numbers), 1))

    # ---- parity ----
    nums = np.array(draw.main_numbers, dtype=float)
    even = int(np.sum(nums % 2 == 0))
    odd = PICK_SIZE - even
    values.extend([even, odd, even / PICK_SIZE])

    # ---- distribution ----
    total = nums.sum()
    mean = nums.mean()
    variance = ((nums - mean) ** 2).mean()
    values.extend([total, mean, variance, math.sqrt(variance), nums.min(), nums.max(), nums.max() - nums.min()])

    # ---- distances ----
    distances = np.diff(np.sort(nums))
    values.extend([
        distances.mean(),
        distances.min(),
        distances.max(),
        int(np.sum(distances == 1)),
    ])

    # ---- calendar (Sunday = 0, January = 0) ----
    dow = draw.date.isoweekday() % 7
    dom = draw.date.day
    month = draw.date.month - 1
    values.extend([
        math.sin(2 * math.pi * dow / 7), math.cos(2 * math.pi * dow / 7),
        math.sin(2 * math.pi * dom / 31), math.cos(2 * math.pi * dom / 31),
        math.sin(2 * math.pi * month / 12), math.cos(2 * math.pi * month / 12),
    ])

    # ---- co-occurrence ----
    current = set(draw.main_numbers)
    pair = triplet = 0
    for hist in window:
        shared = len(current & set(hist.main_numbers))
        if shared >= 2:
            pair += 1
        if shared >= 3:
            triplet += 1
    values.extend([pair / len(window), triplet / len(window)])

    # ---- trends ----
    for span in (5, 10, 20):
        recent = [n for d in window[-span:] for n in d.main_numbers]
        values.append(_calculate_trend(recent))

    # ---- cyclical ----
    for period in (7, 14, 30):
        values.append(_calculate_cyclical_pattern(window, period))

    return FeatureVector(names=FEATURE_NAMES, values=tuple(_finite(v) for v in values))


def build_feature_matrix(draws, window_size):
    """
    Training rows for every draw that has a full window before it.

    Returns:
        X (n_rows, n_features), Y (n_rows, 90) multi-hot of the draw itself.
    """
    if len(draws) <= window_size:
        raise InsufficientData(
            f"Need more than {window_size} draws to build features, got {len(draws)}.",
            required=window_size + 1,
            available=len(draws),
        )
    rows, labels = [], []
    for i in range(window_size, len(draws)):
        rows.append(compute_features(draws[i], draws[i - window_size:i]).values)
        labels.append(multi_hot(draws[i].main_numbers))
    logger.debug(f"Built {len(rows)} feature rows with a {window_size}-draw window.")
    return np.asarray(rows, dtype=float), np.asarray(labels, dtype=float)


def latest_features(draws, window_size):
    """Feature vector of the most recent draw against the draws just before it."""
    if len(draws) < 2:
        raise InsufficientData("Need at least 2 draws for a feature vector.", required=2, available=len(draws))
    return compute_features(draws[-1], draws[-window_size - 1:-1])
