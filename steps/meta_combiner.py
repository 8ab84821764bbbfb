## Project: Lotto Ensemble Predictor
## Purpose of File: Meta-Combiner
## Description:
## Turns the estimator outputs into one final prediction.
##   1) Meta-features per estimator slot (confidence, diversity against the others,
##      importance aggregate, recent accuracy), padded/trimmed to a fixed width.
##   2) A small Keras network (Dense -> Dropout -> Dense -> Dropout -> softmax) maps the
##      meta-features to one weight per estimator. Until it has been fitted from feedback
##      the configured prior weights are used.
##   3) Weights of estimators that did not produce output are masked and the rest are
##      renormalised, so the weights always sum to 1.
##   4) Every number in estimator i's top 5 accumulates weight[i]; the 5 best scores win
##      (ties to the lower number). Confidence and probabilities are weighted sums.

import logging
from collections import deque

import numpy as np
from tensorflow import keras

from config.errors import InsufficientData, NumericDegeneracy
from config.logs import EpochLogger
from config.settings import CombinerConfig, ESTIMATOR_NAMES
from pipeline import NUM_NUMBERS, dict_to_probabilities, probabilities_to_dict, safe_norm, top_k_numbers
from records import PICK_SIZE

META_FEATURES_PER_ESTIMATOR = 4
MAX_META_HISTORY = 1000
VALIDATION_SPLIT = 0.2
MIN_ROWS_FOR_VALIDATION = 10


def prediction_diversity(numbers, others):
    """Mean share of `numbers` not picked by each of the other estimators (0.5 with no peers)."""
    if not others:
        return 0.5
    picked = set(numbers)
    return float(np.mean([1 - len(picked & set(o)) / PICK_SIZE for o in others]))


def importance_aggregate(output):
    importances = output.auxiliary.get("feature_importances")
    if not importances:
        return 0.5
    return float(sum(item["importance"] for item in importances))


def build_meta_features(outputs, performance=None, width=20):
    """
    Fixed-width meta-feature vector. Estimators keep their slot in ESTIMATOR_NAMES
    order; missing estimators leave their slot at zero.
    """
    performance = performance or {}
    features = []
    for name in ESTIMATOR_NAMES:
        output = outputs.get(name)
        if output is None:
            features.extend([0.0] * META_FEATURES_PER_ESTIMATOR)
            continue
        others = [o.numbers for n, o in outputs.items() if n != name]
        features.extend([
            output.confidence / 100,
            prediction_diversity(output.numbers, others),
            importance_aggregate(output),
            float(performance.get(name, 0.5)),
        ])
    features = (features + [0.0] * width)[:width]
    return np.asarray(features, dtype=float)


def build_meta_model(input_dim, outputs=len(ESTIMATOR_NAMES)):
    model = keras.Sequential([
        keras.layers.Input(shape=(input_dim,)),
        keras.layers.Dense(64, activation="relu"),
        keras.layers.Dropout(0.3),
        keras.layers.Dense(32, activation="relu"),
        keras.layers.Dropout(0.2),
        keras.layers.Dense(outputs, activation="softmax"),
    ])
    model.compile(
        optimizer=keras.optimizers.Adam(1e-3),
        loss="categorical_crossentropy",
        metrics=[keras.metrics.MeanAbsoluteError(name="mae")],
    )
    return model


class MetaCombiner:
    def __init__(self, config=None, logger=None, store=None):
        self.config = config or CombinerConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.store = store
        self.model = None
        self.history = deque(maxlen=MAX_META_HISTORY)
        self.epoch_history = []

    @property
    def is_fitted(self):
        return self.model is not None

    def raw_weights(self, meta_features):
        if self.model is None:
            return np.asarray(self.config.weights, dtype=float)
        x = meta_features.reshape(1, -1).astype("float32")
        return np.asarray(self.model.predict(x, verbose=0)).reshape(-1).astype(float)

    def weights_for(self, outputs, meta_features):
        """Per-estimator weights, masked to the estimators present and summing to 1."""
        available = np.array([name in outputs for name in ESTIMATOR_NAMES], dtype=float)
        if not available.any():
            raise InsufficientData("No estimator produced output to combine.")
        try:
            return safe_norm(self.raw_weights(meta_features) * available, strict=True)
        except NumericDegeneracy:
            self.logger.warning("All surviving estimators have zero weight; falling back to uniform.")
            return safe_norm(available)

    def combine(self, outputs, performance=None):
        meta = build_meta_features(outputs, performance, self.config.meta_feature_width)
        weights = self.weights_for(outputs, meta)

        scores = np.zeros(NUM_NUMBERS, dtype=float)
        probabilities = np.zeros(NUM_NUMBERS, dtype=float)
        confidence = 0.0
        accuracy = 0.0
        performance = performance or {}
        for w, name in zip(weights, ESTIMATOR_NAMES):
            output = outputs.get(name)
            if output is None:
                continue
            for n in output.numbers:
                scores[n - 1] += w
            probabilities += w * dict_to_probabilities(output.probabilities)
            confidence += w * output.confidence
            accuracy += w * float(performance.get(name, 0.5))

        numbers = top_k_numbers(scores)
        return {
            "numbers": numbers,
            "confidence": float(confidence),
            "probabilities": probabilities_to_dict(probabilities),
            "weights": dict(zip(ESTIMATOR_NAMES, weights.tolist())),
            "meta_features": meta,
            "metrics": {"weighted_accuracy": float(accuracy), "meta_fitted": float(self.is_fitted)},
        }

    # ---------------- Learning ---------------- #

    def record_feedback(self, meta_features, match_ratios):
        """
        Store one training pair: meta-features of a past prediction and how well each
        estimator matched the resolved draw (target = normalised match ratios).
        """
        ratios = np.array([float(match_ratios.get(name, 0.0)) for name in ESTIMATOR_NAMES])
        target = safe_norm(ratios)
        self.history.append((np.asarray(meta_features, dtype=float), target))

    def fit(self):
        """Train the weighting network once enough feedback rounds exist. Returns True if trained."""
        if len(self.history) < self.config.meta_batch_size:
            self.logger.debug(
                f"Meta-learner waiting for feedback ({len(self.history)}/{self.config.meta_batch_size})."
            )
            return False

        if self.config.seed is not None:
            keras.utils.set_random_seed(self.config.seed)

        X = np.vstack([x for x, _ in self.history]).astype("float32")
        Y = np.vstack([y for _, y in self.history]).astype("float32")
        if self.model is None:
            self.model = build_meta_model(X.shape[1])

        epoch_logger = EpochLogger(store=self.store, logger=self.logger)
        self.model.fit(
            X, Y,
            epochs=self.config.meta_epochs,
            batch_size=self.config.meta_batch_size,
            validation_split=VALIDATION_SPLIT if len(X) >= MIN_ROWS_FOR_VALIDATION else 0.0,
            callbacks=[epoch_logger],
            verbose=0,
        )
        self.epoch_history = epoch_logger.history
        final = self.epoch_history[-1] if self.epoch_history else {}
        self.logger.info(f"Meta-learner trained on {len(X)} feedback rounds (loss {final.get('loss', 0.0):.4f}).")
        return True

    def reset(self):
        self.model = None
        self.history.clear()
        self.epoch_history = []
