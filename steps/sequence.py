## Project: Lotto Ensemble Predictor
## Purpose of File: Sequence Estimator (attention over the draw window)
## Description:
## Encodes the last `temporal_window` draws as timesteps:
##   5 normalized numbers + draw-type one-hot (5) + cyclic date features (6) = 16 features.
## Each attention head scores the timesteps with its own fixed query vector plus a recency
## bias, softmaxes over time and aggregates number presence into a per-number context.
## Bidirectional mode averages a forward pass (recent draws favoured) with a backward pass
## (older draws favoured). Heads are weighted by how well they would have hit on the
## windows that precede the prediction window, so at least 10 extra draws are required.

import logging
import math

import numpy as np
from sklearn.preprocessing import MinMaxScaler

from config.errors import InsufficientData
from config.settings import SequenceConfig
from pipeline import NUM_NUMBERS, check_cancelled, hit_rate_analysis, multi_hot, probabilities_to_dict, top_k_numbers
from records import EstimatorOutput, PICK_SIZE

DRAW_TYPES = ("National", "Etoile", "Fortune", "Bonheur", "Special")
NUMBER_FEATURES = PICK_SIZE
TYPE_FEATURES = len(DRAW_TYPES)
DATE_FEATURES = 6
TIMESTEP_FEATURES = NUMBER_FEATURES + TYPE_FEATURES + DATE_FEATURES

EXTRA_TRAINING_DRAWS = 10
MAX_TRAINING_WINDOWS = 200
HEAD_TEMPERATURE = 0.1


def draw_type_embedding(name):
    """One-hot over DRAW_TYPES; unknown names embed as zeros."""
    vec = np.zeros(TYPE_FEATURES, dtype=float)
    if name in DRAW_TYPES:
        vec[DRAW_TYPES.index(name)] = 1.0
    return vec


def date_features(d):
    dow = d.isoweekday() % 7
    dom = d.day
    month = d.month - 1
    return np.array([
        math.sin(2 * math.pi * dow / 7), math.cos(2 * math.pi * dow / 7),
        math.sin(2 * math.pi * dom / 31), math.cos(2 * math.pi * dom / 31),
        math.sin(2 * math.pi * month / 12), math.cos(2 * math.pi * month / 12),
    ])


def encode_window(window, mean, std):
    """(T, 16) timestep matrix for a list of draws."""
    rows = []
    for draw in window:
        numbers = (np.asarray(draw.main_numbers, dtype=float) - mean) / std
        rows.append(np.concatenate([numbers, draw_type_embedding(draw.name), date_features(draw.date)]))
    return np.asarray(rows, dtype=float)


def head_queries(num_heads, d=TIMESTEP_FEATURES):
    """
    Deterministic query vectors, shape (num_heads, d).
    Q[h, j] = sin((h+1)(j+1)) + 0.5*cos((h+1)(j+1))
    """
    h = np.arange(1, num_heads + 1)[:, None]
    j = np.arange(1, d + 1)[None, :]
    k = h * j
    return np.sin(k) + 0.5 * np.cos(k)


def _softmax(x, axis=0):
    x = x - np.max(x, axis=axis, keepdims=True)
    e = np.exp(x)
    return e / e.sum(axis=axis, keepdims=True)


class SequenceEstimator:
    name = "lstm"

    def __init__(self, config=None, logger=None):
        self.config = config or SequenceConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.queries = head_queries(self.config.attention_heads)
        self.head_weights = np.full(self.config.attention_heads, 1.0 / self.config.attention_heads)
        self.mean = 0.0
        self.std = 1.0
        self.metrics = {}

    def reconfigure(self, config):
        heads_changed = config.attention_heads != self.config.attention_heads
        self.config = config
        if heads_changed:
            self.queries = head_queries(config.attention_heads)
            self.head_weights = np.full(config.attention_heads, 1.0 / config.attention_heads)

    def minimum_draws(self):
        return self.config.temporal_window + EXTRA_TRAINING_DRAWS

    def attention(self, window, draw_type=""):
        """Per-head attention over timesteps, shape (T, H). Columns sum to 1."""
        encoded = encode_window(window, self.mean, self.std)
        T = len(window)
        scores = encoded @ self.queries.T / math.sqrt(TIMESTEP_FEATURES)

        if draw_type:
            same_type = np.array([d.name == draw_type for d in window], dtype=float)
            scores = scores + self.config.type_affinity * same_type[:, None]

        position = np.arange(T) / (T - 1) if T > 1 else np.ones(1)
        forward = _softmax(scores + self.config.recency_bias * position[:, None], axis=0)
        if not self.config.bidirectional:
            return forward
        backward = _softmax(scores + self.config.recency_bias * (1 - position)[:, None], axis=0)
        return 0.5 * (forward + backward)

    def head_contexts(self, window, draw_type=""):
        """Attention-weighted number presence per head, shape (H, 90)."""
        weights = self.attention(window, draw_type)
        presence = np.asarray([multi_hot(d.main_numbers) for d in window])
        return weights.T @ presence

    def attention_matrix(self, window, draw_type=""):
        """(timestep x feature x head) weights; each head's slice sums to 1."""
        time_weights = self.attention(window, draw_type)
        feature_weights = _softmax(np.abs(self.queries), axis=1).T
        return time_weights[:, None, :] * feature_weights[None, :, :]

    def train(self, draws, draw_type="", token=None):
        required = self.minimum_draws()
        if len(draws) < required:
            raise InsufficientData(
                f"Sequence estimator needs at least {required} draws, got {len(draws)}.",
                required=required,
                available=len(draws),
            )

        all_numbers = np.array([n for d in draws for n in d.main_numbers], dtype=float)
        self.mean = float(all_numbers.mean())
        self.std = float(all_numbers.std()) or 1.0

        T = self.config.temporal_window
        targets = list(range(T, len(draws)))[-MAX_TRAINING_WINDOWS:]
        hits = np.zeros(self.config.attention_heads, dtype=float)
        for count, i in enumerate(targets):
            if count % 50 == 0:
                check_cancelled(token, "lstm training")
            contexts = self.head_contexts(draws[i - T:i], draw_type)
            for h, context in enumerate(contexts):
                hits[h] += hit_rate_analysis(top_k_numbers(context), draws[i].main_numbers)

        hit_rates = hits / (len(targets) * PICK_SIZE)
        self.head_weights = _softmax(hit_rates / HEAD_TEMPERATURE)
        self.metrics = {
            "training_hit_rate": float(hit_rates @ self.head_weights),
            "best_head_hit_rate": float(hit_rates.max()),
            "windows": float(len(targets)),
        }
        self.logger.debug(f"Sequence head hit rates: {np.round(hit_rates, 4).tolist()}")

    def predict(self, draws, draw_type="", token=None):
        self.train(draws, draw_type, token)
        check_cancelled(token, "lstm predict")

        window = draws[-self.config.temporal_window:]
        raw = self.head_weights @ self.head_contexts(window, draw_type)
        if np.ptp(raw) > 0:
            activations = MinMaxScaler().fit_transform(raw.reshape(-1, 1)).ravel()
        else:
            self.logger.warning("Sequence activations are flat; reporting zero activation.")
            activations = np.zeros(NUM_NUMBERS, dtype=float)

        selected = top_k_numbers(activations)
        confidence = float(np.mean(activations[[n - 1 for n in selected]])) * 100
        self.logger.info(f"Sequence prediction {selected} (confidence {confidence:.1f}%)")
        return EstimatorOutput(
            name=self.name,
            numbers=selected,
            probabilities=probabilities_to_dict(activations),
            confidence=confidence,
            auxiliary={
                "attention_weights": self.attention_matrix(window, draw_type),
                "head_weights": self.head_weights.tolist(),
            },
            metrics=dict(self.metrics),
        )
