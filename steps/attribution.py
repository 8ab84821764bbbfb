## Project: Lotto Ensemble Predictor
## Purpose of File: SHAP-style Feature Attribution
## Description:
## Sampled-coalition Shapley estimates for any scoring function mapping feature rows
## (n, F) to a scalar per row, explained against a reference (baseline) set of rows.
##   - Base value: mean score over at most `baseline_samples` reference rows.
##   - Per feature: `coalition_samples` random coalitions of the other features (each kept
##     with probability 0.5). Features outside the coalition take the values of a random
##     reference row; the marginal effect is score(with feature) - score(feature replaced
##     by the same reference row's value).
##   - Global explanation repeats this over at most `max_global_samples` rows and reports
##     mean |contribution|, mean signed contribution, pairwise contribution correlations
##     and a stability score.

import logging

import numpy as np

from config.errors import ModelNotInitialized
from config.settings import AttributionConfig
from records import AttributionResult, FeatureContribution, GlobalAttributionResult
from steps.features import describe_feature

TOP_FEATURES = 5


def _correlation(a, b):
    da, db = a - a.mean(), b - b.mean()
    denom = np.sqrt((da ** 2).sum() * (db ** 2).sum())
    return float((da * db).sum() / denom) if denom > 0 else 0.0


class ShapExplainer:
    def __init__(self, score_fn=None, baseline=None, feature_names=None, config=None, logger=None):
        self.config = config or AttributionConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.rng = np.random.default_rng(self.config.seed)
        self.feature_names = list(feature_names) if feature_names is not None else None
        self.score_fn = None
        self.baseline = None
        if score_fn is not None and baseline is not None:
            self.initialize(score_fn, baseline, feature_names)

    @property
    def is_initialized(self):
        return self.score_fn is not None and self.baseline is not None

    def initialize(self, score_fn, baseline, feature_names=None):
        baseline = np.atleast_2d(np.asarray(baseline, dtype=float))
        if baseline.size == 0:
            raise ModelNotInitialized("Attribution baseline must contain at least one row.")
        self.score_fn = score_fn
        self.baseline = baseline
        if feature_names is not None:
            self.feature_names = list(feature_names)
        self.logger.info(f"Attribution engine initialized: {baseline.shape[1]} features, {len(baseline)} reference rows")

    def _require_initialized(self):
        if not self.is_initialized:
            raise ModelNotInitialized("Attribution requested before a scoring function and baseline were set.")

    def _name(self, i):
        if self.feature_names and i < len(self.feature_names):
            return self.feature_names[i]
        return f"feature_{i}"

    def _score(self, rows):
        return np.asarray(self.score_fn(np.asarray(rows, dtype=float)), dtype=float).reshape(-1)

    def base_value(self):
        self._require_initialized()
        return float(self._score(self.baseline[:self.config.baseline_samples]).mean())

    def shapley_values(self, features):
        """Sampled contribution per feature, shape (F,), in declaration order."""
        self._require_initialized()
        x = np.asarray(features, dtype=float).reshape(-1)
        n_features = x.size
        samples = self.config.coalition_samples

        # one batch: for every (feature, sample) a "with" row and a "without" row
        with_rows = np.empty((n_features, samples, n_features), dtype=float)
        without_rows = np.empty_like(with_rows)
        for i in range(n_features):
            coalition = self.rng.random((samples, n_features)) > 0.5
            coalition[:, i] = True
            refs = self.baseline[self.rng.integers(len(self.baseline), size=samples)]
            rows = np.where(coalition, x, refs)
            with_rows[i] = rows
            rows = rows.copy()
            rows[:, i] = refs[:, i]
            without_rows[i] = rows

        flat = n_features * samples
        scores = self._score(np.vstack([with_rows.reshape(flat, n_features), without_rows.reshape(flat, n_features)]))
        diff = scores[:flat] - scores[flat:]
        return diff.reshape(n_features, samples).mean(axis=1)

    def explain_prediction(self, features):
        self._require_initialized()
        x = np.asarray(getattr(features, "values", features), dtype=float).reshape(-1)

        base = self.base_value()
        prediction = float(self._score(x.reshape(1, -1))[0])
        values = self.shapley_values(x)

        contributions = [
            FeatureContribution(
                feature=self._name(i),
                value=float(x[i]),
                contribution=float(values[i]),
                description=describe_feature(self._name(i)),
            )
            for i in range(x.size)
        ]
        ranked = sorted(contributions, key=lambda c: abs(c.contribution), reverse=True)
        positive = sorted((c for c in contributions if c.contribution > 0), key=lambda c: c.contribution, reverse=True)
        negative = sorted((c for c in contributions if c.contribution < 0), key=lambda c: c.contribution)

        return AttributionResult(
            base_value=base,
            prediction=prediction,
            contributions=ranked,
            expected_value=base,
            top_positive=positive[:TOP_FEATURES],
            top_negative=negative[:TOP_FEATURES],
            total_contribution=float(values.sum()),
        )

    def explain_model(self, samples):
        self._require_initialized()
        rows = np.atleast_2d(np.asarray(samples, dtype=float))[:self.config.max_global_samples]
        if rows.size == 0:
            raise ValueError("explain_model needs at least one sample row")
        self.logger.info(f"Computing global attribution over {len(rows)} samples")

        matrix = np.vstack([self.shapley_values(row) for row in rows])
        names = [self._name(i) for i in range(matrix.shape[1])]
        importances = np.abs(matrix).mean(axis=0)
        averages = matrix.mean(axis=0)

        interactions = {}
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                interactions[f"{names[i]}_x_{names[j]}"] = _correlation(matrix[:, i], matrix[:, j])

        order = np.argsort(-importances, kind="stable")
        peak = float(importances.max())
        stability = 1.0 if peak == 0 else 1 - (peak - float(importances.min())) / peak

        return GlobalAttributionResult(
            feature_importances=dict(zip(names, importances.tolist())),
            average_contributions=dict(zip(names, averages.tolist())),
            interaction_scores=interactions,
            most_important=[names[i] for i in order[:TOP_FEATURES]],
            least_important=[names[i] for i in order[-TOP_FEATURES:]],
            stability_score=float(min(1.0, max(0.0, stability))),
            samples_explained=len(rows),
        )
