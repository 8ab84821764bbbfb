## Project: Lotto Ensemble Predictor
## Purpose of File: Ensemble Predictor (composition root of the prediction core)
## Description:
## Owns one estimator of each kind plus the meta-combiner and the attribution engine.
##   predict():
##     1) validate and sort the history
##     2) run bayesian / xgboost / lstm / monte_carlo side by side (thread pool), join
##     3) feed the surviving outputs to the RL weight adjuster
##     4) combine everything in the meta-combiner
##     5) explain the xgboost score with the attribution engine
##   A failing estimator is logged and left out; only cancellation, or no survivor at
##   all, aborts the whole prediction.
##   update_with_feedback() scores the last prediction against a resolved draw and
##   drives the RL update, the per-estimator performance history and the meta-learner.

import copy
import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from config.errors import InsufficientData, LottoError, ModelNotInitialized, PredictionCancelled
from config.settings import ESTIMATOR_NAMES, EnsembleConfig
from pipeline import DataPipeline, check_cancelled, hit_rate_analysis
from records import FinalPrediction, PICK_SIZE, validate_numbers
from steps.attribution import ShapExplainer
from steps.bayesian import BayesianEstimator
from steps.features import FEATURE_NAMES
from steps.historical import process_historical_data
from steps.meta_combiner import MetaCombiner
from steps.monte_carlo import MonteCarloSimulator
from steps.sequence import SequenceEstimator
from steps.tree_ensemble import TreeEnsembleEstimator
from steps.weight_adjustment import WeightAdjustmentEstimator

PERFORMANCE_HISTORY = 100
DEFAULT_PERFORMANCE = 0.5
TOP_IMPORTANCES = 10


class EnsemblePredictor:
    def __init__(self, config=None, logger=None, store=None):
        self.config = config or EnsembleConfig()
        self.config.validate()
        self.logger = logger or logging.getLogger(__name__)
        self.store = store

        cfg = self.config
        self.bayesian = BayesianEstimator(cfg.bayesian, self.logger)
        self.tree = TreeEnsembleEstimator(cfg.xgboost, self.logger)
        self.sequence = SequenceEstimator(cfg.lstm, self.logger)
        self.monte_carlo = MonteCarloSimulator(cfg.monte_carlo, self.logger)
        self.reinforcement = WeightAdjustmentEstimator(cfg.reinforcement, self.logger)
        self.combiner = MetaCombiner(cfg.ensemble, self.logger, store)
        self.explainer = ShapExplainer(feature_names=FEATURE_NAMES, config=cfg.attribution, logger=self.logger)

        self.performance = {name: deque(maxlen=PERFORMANCE_HISTORY) for name in ESTIMATOR_NAMES}
        self.last_prediction = None
        self.last_meta_features = None
        self.last_features = None
        self._lock = threading.Lock()

    # ---------------- Prediction ---------------- #

    def performance_summary(self):
        """Mean match ratio per estimator over recent feedback (0.5 when unknown)."""
        return {
            name: float(np.mean(history)) if history else DEFAULT_PERFORMANCE
            for name, history in self.performance.items()
        }

    def _upstream_tasks(self, draws, draw_type, contextual_factors, token):
        return {
            self.bayesian.name: lambda: self.bayesian.predict(draws, contextual_factors, token),
            self.tree.name: lambda: self.tree.predict(draws, token),
            self.sequence.name: lambda: self.sequence.predict(draws, draw_type, token),
            self.monte_carlo.name: lambda: self.monte_carlo.predict(draws, token),
        }

    def _left_out(self, name, error, failures):
        failures[name] = str(error)
        if isinstance(error, LottoError):
            self.logger.warning(f"Estimator '{name}' failed and was left out: {error}")
        else:
            self.logger.error(f"Estimator '{name}' crashed and was left out: {error}", exc_info=error)

    def _collect(self, name, future, outputs, failures):
        try:
            outputs[name] = future.result()
        except PredictionCancelled:
            raise
        except Exception as e:
            self._left_out(name, e, failures)

    def run_upstream(self, draws, draw_type="", contextual_factors=None, token=None):
        """Run the four independent estimators in parallel. Returns (outputs, failures)."""
        tasks = self._upstream_tasks(draws, draw_type, contextual_factors, token)
        outputs, failures = {}, {}
        with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
            futures = {name: executor.submit(task) for name, task in tasks.items()}
            for name, future in futures.items():
                self._collect(name, future, outputs, failures)
        check_cancelled(token, "ensemble join")
        return outputs, failures

    def _attribution_summary(self, output):
        try:
            self.explainer.initialize(
                self.tree.score,
                self.tree.baseline(self.config.attribution.baseline_samples),
                FEATURE_NAMES,
            )
            result = self.explainer.explain_prediction(output.auxiliary["features"])
        except LottoError as e:
            self.logger.warning(f"Attribution skipped: {e}")
            return None
        return {
            "base_value": result.base_value,
            "prediction": result.prediction,
            "total_contribution": result.total_contribution,
            "top_positive": [(c.feature, c.contribution) for c in result.top_positive],
            "top_negative": [(c.feature, c.contribution) for c in result.top_negative],
            "feature_importances": output.auxiliary["feature_importances"][:TOP_IMPORTANCES],
        }

    @staticmethod
    def _monte_carlo_summary(output):
        aux = output.auxiliary
        return {
            "recommended_numbers": list(output.numbers),
            "confidence_interval": aux["confidence_interval"],
            "risk_metrics": aux["risk_metrics"],
            "scenarios": aux["scenarios"],
        }

    def _reinforcement_summary(self, output):
        aux = output.auxiliary
        return {
            "model_weights": aux["model_weights"],
            "action": aux["action"],
            "q_values": aux["q_values"],
            "state_value": aux["state_value"],
            "exploration_rate": self.reinforcement.exploration_rate,
        }

    def predict(self, draws, draw_type="", token=None, contextual_factors=None, feedback=None):
        """
        Full ensemble prediction for the draw after `draws`.

        Parameters:
        - draws: Draw records or raw dict rows, any order.
        - draw_type: name of the upcoming draw (National, Etoile, ...), used by the lstm estimator.
        - token (CancellationToken, optional): checked between stages; cancellation aborts.
        - contextual_factors (dict, optional): recent_trend / seasonal_factor for the bayesian estimator.
        - feedback (list, optional): up to 5 user scores in [0, 1] for the RL state.

        Returns:
        - FinalPrediction
        """
        pipeline = DataPipeline()
        process_historical_data(draws, pipeline)
        draws = pipeline.get_data("historical_data")
        if not draws:
            raise InsufficientData("No draw history supplied.", required=1, available=0)
        check_cancelled(token, "ensemble start")

        pipeline.add_data("performance", self.performance_summary())
        outputs, failures = self.run_upstream(draws, draw_type, contextual_factors, token)
        if not outputs:
            raise InsufficientData(f"Every estimator failed: {failures}")
        pipeline.add_data("upstream_outputs", dict(outputs))

        try:
            outputs[self.reinforcement.name] = self.reinforcement.predict(
                draws, pipeline.get_data("upstream_outputs"), pipeline.get_data("performance"), feedback, token
            )
        except PredictionCancelled:
            raise
        except Exception as e:
            self._left_out(self.reinforcement.name, e, failures)
        pipeline.add_data("estimator_outputs", outputs)
        pipeline.add_data("failures", failures)

        combined = self.combiner.combine(pipeline.get_data("estimator_outputs"), pipeline.get_data("performance"))
        check_cancelled(token, "ensemble combine")

        tree_output = outputs.get(self.tree.name)
        mc_output = outputs.get(self.monte_carlo.name)
        rl_output = outputs.get(self.reinforcement.name)
        final = FinalPrediction(
            numbers=combined["numbers"],
            confidence=combined["confidence"],
            probabilities=combined["probabilities"],
            weights=combined["weights"],
            estimators=outputs,
            failures=failures,
            attribution=self._attribution_summary(tree_output) if tree_output else None,
            monte_carlo=self._monte_carlo_summary(mc_output) if mc_output else None,
            reinforcement=self._reinforcement_summary(rl_output) if rl_output else None,
            metrics={
                **combined["metrics"],
                "estimators_used": float(len(outputs)),
                "estimators_failed": float(len(failures)),
                "history_size": float(len(draws)),
            },
        )
        check_cancelled(token, "ensemble attribution")

        with self._lock:
            self.last_prediction = final
            self.last_meta_features = combined["meta_features"]
            self.last_features = tree_output.auxiliary["features"] if tree_output else None
        self.logger.info(f"Ensemble prediction {final.numbers} (confidence {final.confidence:.1f}%)")
        return final

    # ---------------- Attribution ---------------- #

    def explain_prediction(self, features=None):
        """Local attribution of the xgboost score; defaults to the last prediction's features."""
        if features is None:
            features = self.last_features
        if features is None or not self.explainer.is_initialized:
            raise ModelNotInitialized("No explained prediction yet; run predict() with enough history first.")
        return self.explainer.explain_prediction(features)

    def explain_model(self, samples=None):
        """Global attribution; defaults to the most recent training rows."""
        if not self.explainer.is_initialized:
            raise ModelNotInitialized("No explained prediction yet; run predict() with enough history first.")
        if samples is None:
            samples = self.tree.baseline(self.config.attribution.max_global_samples)
        return self.explainer.explain_model(samples)

    # ---------------- Feedback ---------------- #

    def update_with_feedback(self, actual, predicted=None, feedback=None):
        """
        Score the last prediction against the resolved draw `actual`.

        Parameters:
        - actual: the 5 winning numbers.
        - predicted (optional): numbers actually played; defaults to the last ensemble pick.
        - feedback (float, optional): user score 0..10 folded into the hybrid reward.
        """
        actual = validate_numbers(actual, "Actual numbers")
        with self._lock:
            last = self.last_prediction
            meta = self.last_meta_features
        if last is None:
            raise ModelNotInitialized("Feedback received before any prediction was made.")
        predicted = validate_numbers(predicted, "Predicted numbers") if predicted is not None else last.numbers

        match_ratios = {}
        for name, output in last.estimators.items():
            match_ratios[name] = hit_rate_analysis(output.numbers, actual) / PICK_SIZE
            self.performance[name].append(match_ratios[name])

        reward = self.reinforcement.update_with_feedback(predicted, actual, feedback)
        self.combiner.record_feedback(meta, match_ratios)
        meta_trained = self.combiner.fit()

        matches = hit_rate_analysis(predicted, actual)
        self.logger.info(f"Feedback recorded: {matches}/{PICK_SIZE} matches, reward {reward}")
        return {
            "matches": matches,
            "match_ratios": match_ratios,
            "reward": reward,
            "meta_trained": meta_trained,
        }

    # ---------------- Configuration ---------------- #

    def update_config(self, changes):
        """Apply a nested partial config dict. Nothing changes if validation fails."""
        old_width = self.config.ensemble.meta_feature_width
        cfg = copy.deepcopy(self.config)
        cfg.update(changes)

        self.config = cfg
        self.bayesian.config = cfg.bayesian
        self.tree.config = cfg.xgboost
        self.sequence.reconfigure(cfg.lstm)
        self.monte_carlo.config = cfg.monte_carlo
        self.reinforcement.reconfigure(cfg.reinforcement)
        self.explainer.config = cfg.attribution
        self.combiner.config = cfg.ensemble
        if cfg.ensemble.meta_feature_width != old_width:
            self.logger.warning("Meta-feature width changed; meta-learner history cleared.")
            self.combiner.reset()
        self.logger.info(f"Configuration updated: {sorted(changes)}")

    def get_performance_metrics(self):
        return {
            "estimator_performance": self.performance_summary(),
            "feedback_rounds": {name: len(history) for name, history in self.performance.items()},
            "reinforcement": self.reinforcement.get_performance_metrics(),
            "meta_learner_fitted": self.combiner.is_fitted,
            "bayesian_convergence": self.bayesian.analyze_prior_convergence(),
        }

    # ---------------- Persistence ---------------- #

    def to_dict(self):
        return {
            "config": self.config.to_dict(),
            "bayesian": self.bayesian.to_dict(),
            "reinforcement": self.reinforcement.to_dict(),
            "performance": {name: list(history) for name, history in self.performance.items()},
        }

    def from_dict(self, data):
        if "config" in data:
            self.update_config(data["config"])
        if "bayesian" in data:
            self.bayesian.from_dict(data["bayesian"])
        if "reinforcement" in data:
            self.reinforcement.from_dict(data["reinforcement"])
        for name, history in data.get("performance", {}).items():
            if name in self.performance:
                self.performance[name] = deque((float(x) for x in history), maxlen=PERFORMANCE_HISTORY)
