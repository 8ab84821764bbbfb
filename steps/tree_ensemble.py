## Project: Lotto Ensemble Predictor
## Purpose of File: Gradient-Boosted Ensemble Estimator
## Description:
## Boosted multi-label scorer over the engineered feature vector.
##   1) Build feature rows for every draw with a full window behind it (labels: multi-hot 90).
##   2) Random hyperparameter search (sklearn ParameterSampler) against a simulated
##      cross-validation score; keep the best candidate.
##   3) Fit one XGBClassifier per number (sklearn MultiOutputClassifier) on the older 80%
##      of rows and score log-loss on the newest 20%. Numbers that never (or always) came
##      out in the training rows get their smoothed base rate instead of a booster.
##   4) Predict the next draw from the latest feature vector.

import logging
import math

import numpy as np
from sklearn.metrics import log_loss
from sklearn.model_selection import ParameterSampler
from sklearn.multioutput import MultiOutputClassifier
from xgboost import XGBClassifier

from config.errors import InsufficientData
from config.settings import TreeEnsembleConfig
from pipeline import NUM_NUMBERS, check_cancelled, probabilities_to_dict, top_k_numbers
from records import EstimatorOutput
from steps.features import FEATURE_NAMES, build_feature_matrix, describe_feature, latest_features

MIN_TRAINING_DRAWS = 10
VALIDATION_SHARE = 0.2
MIN_RATE = 0.01

SEARCH_SPACE = {
    "max_depth": list(range(3, 11)),
    "learning_rate": np.round(np.linspace(0.01, 0.21, 41), 3).tolist(),
    "reg_alpha": np.round(np.linspace(0.0, 1.0, 21), 2).tolist(),
    "reg_lambda": np.round(np.linspace(0.0, 2.0, 41), 2).tolist(),
}


def simulated_cv_score(params, rng):
    """Closeness of a candidate to the known-good region plus a little noise."""
    score = 0.7
    score += (1 - abs(params["learning_rate"] - 0.1) / 0.1) * 0.1
    score += (1 - abs(params["max_depth"] - 6) / 6) * 0.1
    score += (1 - abs(params["reg_alpha"] - 0.1) / 0.1) * 0.05
    score += (1 - abs(params["reg_lambda"] - 1.0) / 1.0) * 0.05
    return score + (rng.random() - 0.5) * 0.1


def multi_label_log_loss(Y, P):
    return float(log_loss(Y.ravel(), P.ravel(), labels=[0, 1]))


class TreeEnsembleEstimator:
    name = "xgboost"

    def __init__(self, config=None, logger=None):
        self.config = config or TreeEnsembleConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.model = None
        self.label_columns = []
        self._slots = {}
        self.base_rates = None
        self.importances = None
        self.best_params = None
        self.search_history = []
        self.metrics = {}
        self.last_numbers = None
        self._train_rows = None

    @property
    def is_trained(self):
        return self.base_rates is not None

    # ---------------- Hyperparameter search ---------------- #

    def hyperparameter_search(self, rng):
        base = {
            "max_depth": self.config.max_depth,
            "learning_rate": self.config.learning_rate,
            "reg_alpha": self.config.reg_alpha,
            "reg_lambda": self.config.reg_lambda,
        }
        best, best_score = dict(base), simulated_cv_score(base, rng)
        self.search_history = [(dict(base), best_score)]

        sampler = ParameterSampler(
            SEARCH_SPACE,
            n_iter=self.config.search_iterations,
            random_state=int(rng.integers(2 ** 31 - 1)),
        )
        for params in sampler:
            score = simulated_cv_score(params, rng)
            self.search_history.append((dict(params), score))
            if score > best_score:
                best, best_score = dict(params), score

        self.logger.debug(f"Hyperparameter search best CV score {best_score:.4f}: {best}")
        return best, best_score

    # ---------------- Boosting ---------------- #

    def build_booster(self, params, seed):
        cfg = self.config
        return XGBClassifier(
            n_estimators=cfg.n_estimators,
            max_depth=int(params["max_depth"]),
            learning_rate=float(params["learning_rate"]),
            subsample=cfg.subsample,
            colsample_bytree=cfg.col_sample,
            reg_alpha=float(params["reg_alpha"]),
            reg_lambda=float(params["reg_lambda"]),
            gamma=cfg.gamma,
            min_child_weight=cfg.min_child_weight,
            objective="binary:logistic",
            eval_metric="logloss",
            tree_method="hist",
            n_jobs=1,
            random_state=seed,
        )

    def _fit(self, X, Y, params, seed):
        """Boosters for the numbers whose label varies; base rates for every number."""
        self.base_rates = np.clip(Y.mean(axis=0), MIN_RATE, 1 - MIN_RATE)
        totals = Y.sum(axis=0)
        self.label_columns = [j for j in range(NUM_NUMBERS) if 0 < totals[j] < len(Y)]
        self._slots = {column: slot for slot, column in enumerate(self.label_columns)}

        self.model = None
        importances = np.zeros(X.shape[1])
        if self.label_columns:
            self.model = MultiOutputClassifier(self.build_booster(params, seed))
            self.model.fit(X, Y[:, self.label_columns])
            for booster in self.model.estimators_:
                importances += np.nan_to_num(booster.feature_importances_)
        self.importances = importances
        self.logger.debug(
            f"Fitted {len(self.label_columns)} boosters; {NUM_NUMBERS - len(self.label_columns)} numbers use base rates."
        )

    def train(self, draws, token=None):
        window = self.config.feature_window
        required = max(MIN_TRAINING_DRAWS, window + 1)
        if len(draws) < required:
            raise InsufficientData(
                f"Gradient-boosted estimator needs at least {required} draws, got {len(draws)}.",
                required=required,
                available=len(draws),
            )
        check_cancelled(token, "xgboost features")

        rng = np.random.default_rng(self.config.seed)
        X_raw, Y = build_feature_matrix(draws, window)
        X = np.nan_to_num(np.asarray(X_raw, dtype=float))
        Y = np.asarray(Y, dtype=int)

        params, cv_score = self.hyperparameter_search(rng)
        params["n_estimators"] = self.config.n_estimators
        self.best_params = params
        check_cancelled(token, "xgboost search")

        split = int(math.floor(len(X) * (1 - VALIDATION_SHARE)))
        if split < 1 or split >= len(X):
            X_train, Y_train, X_val, Y_val = X, Y, X, Y
        else:
            X_train, Y_train, X_val, Y_val = X[:split], Y[:split], X[split:], Y[split:]

        self._fit(X_train, Y_train, params, int(rng.integers(2 ** 31 - 1)))
        self._train_rows = X
        check_cancelled(token, "xgboost boosting")

        self.metrics = {
            "cv_score": float(cv_score),
            "train_log_loss": multi_label_log_loss(Y_train, self.predict_proba(X_train)),
            "val_log_loss": multi_label_log_loss(Y_val, self.predict_proba(X_val)),
            "stages": float(self.config.n_estimators),
            "boosted_numbers": float(len(self.label_columns)),
            "training_rows": float(len(X)),
        }
        self.logger.info(
            f"Gradient-boosted estimator trained: {len(self.label_columns)} boosters, "
            f"val log-loss {self.metrics['val_log_loss']:.4f}"
        )

    # ---------------- Scoring ---------------- #

    def predict_proba(self, features, numbers=None):
        """
        Per-number probabilities for raw feature rows, shape (n, 90),
        or (n, len(numbers)) when only some numbers are asked for.
        """
        if not self.is_trained:
            raise InsufficientData("Gradient-boosted estimator has not been trained.")
        X = np.nan_to_num(np.atleast_2d(np.asarray(features, dtype=float)))
        columns = list(range(NUM_NUMBERS)) if numbers is None else [n - 1 for n in numbers]

        probs = np.tile(self.base_rates[columns], (len(X), 1))
        for k, column in enumerate(columns):
            slot = self._slots.get(column)
            if slot is not None:
                booster = self.model.estimators_[slot]
                probs[:, k] = booster.predict_proba(X)[:, 1]
        return probs

    def score(self, features, numbers=None):
        """
        Scalar model output per feature row: mean probability of `numbers`
        (defaults to the last predicted set, or every number before any prediction).
        """
        numbers = numbers if numbers is not None else self.last_numbers
        return self.predict_proba(features, numbers or None).mean(axis=1)

    def feature_importances(self):
        """
        Share of the boosters' summed importance per feature, highest first.
        Equal importances keep declaration order.
        """
        total = self.importances.sum()
        n = len(self.importances)
        share = self.importances / total if total > 0 else np.full(n, 1.0 / n)
        order = np.argsort(-share, kind="stable")
        return [
            {"feature": FEATURE_NAMES[i], "importance": float(share[i]), "description": describe_feature(FEATURE_NAMES[i])}
            for i in order
        ]

    def baseline(self, size):
        """The most recent training rows, used as the attribution reference set."""
        return np.asarray(self._train_rows[-size:], dtype=float)

    def predict(self, draws, token=None):
        self.train(draws, token)
        check_cancelled(token, "xgboost predict")

        features = latest_features(draws, self.config.feature_window)
        probs = self.predict_proba([features.values])[0]
        selected = top_k_numbers(probs)
        self.last_numbers = selected

        confidence = float(np.mean(probs[[n - 1 for n in selected]])) * 100
        self.logger.info(f"Gradient-boosted prediction {selected} (confidence {confidence:.1f}%)")
        return EstimatorOutput(
            name=self.name,
            numbers=selected,
            probabilities=probabilities_to_dict(probs),
            confidence=confidence,
            auxiliary={
                "feature_importances": self.feature_importances(),
                "hyperparameters": dict(self.best_params),
                "features": features,
            },
            metrics=dict(self.metrics),
        )
