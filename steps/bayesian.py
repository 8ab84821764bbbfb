## Project: Lotto Ensemble Predictor
## Purpose of File: Bayesian Frequency Estimator
## Description:
## One Beta posterior per number 1..90 on the question "is this number in a draw?".
## - Prior is Jeffreys' Beta(0.5, 0.5) (configurable).
## - update_priors() rescans the whole history from the prior, it never accumulates,
##   so repeated calls with the same draws give the same posteriors.
## - Credible intervals use a normal approximation to the Beta quantiles when both
##   shape parameters exceed 1. For extreme shapes the quantile level itself is used.
##   Either way the interval is widened to contain the posterior mean.
## - generate_prediction() picks the 5 highest posterior means, optionally nudged by
##   recent-trend and seasonal multipliers, and reports uncertainty of the full
##   90-number distribution.

import enum
import logging
import math
from statistics import NormalDist

import numpy as np

from config.errors import InsufficientData, InvalidConfidenceLevel, InvalidNumber
from config.settings import BayesianConfig
from pipeline import NUMBERS, NUM_NUMBERS, check_cancelled, probabilities_to_dict, safe_norm, top_k_numbers
from records import BayesianPosterior, EstimatorOutput, MAX_NUMBER, MIN_NUMBER
from steps.entropy import uncertainty_measures
from steps.frequency import numbers_seen, occurrence_counts

CONVERGENCE_THRESHOLD = 0.01
MAX_UNSTABLE_NUMBERS = 10
TREND_WINDOW = 10
TREND_SCALE = 0.1
SEASONAL_SCALE = 0.05


class PriorState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    PRIORS_INITIALIZED = "priors_initialized"
    PRIORS_FITTED = "priors_fitted"


def beta_mean_variance(alpha, beta):
    total = alpha + beta
    return alpha / total, (alpha * beta) / (total ** 2 * (total + 1))


def beta_quantile(p, alpha, beta):
    """Normal approximation to the Beta quantile; returns p itself for extreme shapes."""
    if alpha > 1 and beta > 1:
        mean, variance = beta_mean_variance(alpha, beta)
        z = NormalDist().inv_cdf(p)
        return max(0.0, min(1.0, mean + z * math.sqrt(variance)))
    return p


def credible_interval(alpha, beta, level):
    tail = (1 - level) / 2
    mean, _ = beta_mean_variance(alpha, beta)
    lower = beta_quantile(tail, alpha, beta)
    upper = beta_quantile(1 - tail, alpha, beta)
    return min(lower, mean), max(upper, mean)


class BayesianEstimator:
    name = "bayesian"

    def __init__(self, config=None, logger=None):
        self.config = config or BayesianConfig()
        self.logger = logger or logging.getLogger(__name__)
        if not 0 < self.config.confidence_level < 1:
            raise InvalidConfidenceLevel(f"Confidence level must be in (0, 1), got {self.config.confidence_level}")
        self.state = PriorState.UNINITIALIZED
        self.observations = 0
        self.successes = np.zeros(NUM_NUMBERS, dtype=float)
        self.alpha = np.zeros(NUM_NUMBERS, dtype=float)
        self.beta = np.zeros(NUM_NUMBERS, dtype=float)
        self.initialize_priors()

    # ---------------- Lifecycle ---------------- #

    def initialize_priors(self):
        self.observations = 0
        self.successes = np.zeros(NUM_NUMBERS, dtype=float)
        self.alpha = np.full(NUM_NUMBERS, self.config.prior_alpha, dtype=float)
        self.beta = np.full(NUM_NUMBERS, self.config.prior_beta, dtype=float)
        self.state = PriorState.PRIORS_INITIALIZED
        self.logger.debug(f"Bayesian priors initialized for {NUM_NUMBERS} numbers.")

    def reset_priors(self):
        self.initialize_priors()
        self.logger.info("Bayesian priors reset.")

    def update_priors(self, draws):
        """Recompute every posterior from the prior and the full draw set."""
        self.observations = len(draws)
        self.successes = occurrence_counts(draws)
        self.alpha = self.config.prior_alpha + self.successes
        self.beta = self.config.prior_beta + (self.observations - self.successes)
        self.state = PriorState.PRIORS_FITTED
        self.logger.debug(f"Bayesian posteriors updated from {len(draws)} draws.")

    def set_confidence_level(self, level):
        if not 0 < level < 1:
            raise InvalidConfidenceLevel(f"Confidence level must be in (0, 1), got {level}")
        self.config.confidence_level = level
        self.logger.info(f"Credible interval level set to {level * 100:.1f}%")

    # ---------------- Posteriors ---------------- #

    def calculate_posterior(self, number, additional_successes=0, additional_observations=0):
        if isinstance(number, bool) or not isinstance(number, (int, np.integer)) \
                or not MIN_NUMBER <= number <= MAX_NUMBER:
            raise InvalidNumber(f"Number {number!r} is outside {MIN_NUMBER}-{MAX_NUMBER}")

        idx = int(number) - 1
        alpha = self.alpha[idx] + additional_successes
        beta = self.beta[idx] + (additional_observations - additional_successes)
        mean, variance = beta_mean_variance(alpha, beta)
        return BayesianPosterior(
            number=int(number),
            alpha=float(alpha),
            beta=float(beta),
            mean=float(mean),
            variance=float(variance),
            credible_interval=credible_interval(alpha, beta, self.config.confidence_level),
        )

    def posteriors(self):
        return [self.calculate_posterior(int(n)) for n in NUMBERS]

    def _contextual_multipliers(self, draws, contextual_factors):
        multipliers = np.ones(NUM_NUMBERS, dtype=float)
        if not contextual_factors or not draws:
            return multipliers

        trend = contextual_factors.get("recent_trend")
        if trend is not None:
            recent = numbers_seen(draws[-TREND_WINDOW:])
            idx = [n - 1 for n in recent]
            multipliers[idx] *= 1 + (trend - 0.5) * TREND_SCALE

        seasonal = contextual_factors.get("seasonal_factor")
        if seasonal is not None:
            month = draws[-1].date.month
            same_month = numbers_seen([d for d in draws if d.date.month == month])
            idx = [n - 1 for n in same_month]
            multipliers[idx] *= 1 + (seasonal - 0.5) * SEASONAL_SCALE

        return multipliers

    def generate_prediction(self, draws, contextual_factors=None, token=None):
        """
        Posterior-mean ranking over the full history.

        contextual_factors (optional):
        - "recent_trend": in [0, 1], boosts (>0.5) or damps (<0.5) numbers seen in the last 10 draws
        - "seasonal_factor": in [0, 1], same for numbers drawn in the latest draw's calendar month
        """
        if not draws:
            raise InsufficientData("Bayesian estimator needs at least one draw.", required=1, available=0)
        check_cancelled(token, "bayesian")

        self.update_priors(draws)
        posteriors = self.posteriors()

        means = np.array([p.mean for p in posteriors], dtype=float)
        distribution = safe_norm(means * self._contextual_multipliers(draws, contextual_factors))

        selected = top_k_numbers(distribution)
        chosen = [posteriors[n - 1] for n in selected]

        avg_variance = float(np.mean([p.variance for p in chosen]))
        confidence = max(0.0, min(1.0, 1 - avg_variance * 10)) * 100
        interval = (
            float(np.mean([p.credible_interval[0] for p in chosen])) * 100,
            float(np.mean([p.credible_interval[1] for p in chosen])) * 100,
        )

        self.logger.info(f"Bayesian prediction {selected} (confidence {confidence:.1f}%)")
        return EstimatorOutput(
            name=self.name,
            numbers=selected,
            probabilities=probabilities_to_dict(distribution),
            confidence=confidence,
            auxiliary={
                "posteriors": chosen,
                "credible_interval": interval,
                "uncertainty": uncertainty_measures(distribution),
            },
        )

    predict = generate_prediction

    # ---------------- Diagnostics ---------------- #

    def analyze_prior_convergence(self):
        _, variances = beta_mean_variance(self.alpha, self.beta)
        unstable = [int(n) for n, v in zip(NUMBERS, variances) if v > CONVERGENCE_THRESHOLD]
        avg_variance = float(np.mean(variances))
        converged = len(unstable) < MAX_UNSTABLE_NUMBERS and avg_variance < CONVERGENCE_THRESHOLD

        recommendations = []
        if not converged:
            recommendations.append("Collect more draws to improve convergence")
            if len(unstable) > 20:
                recommendations.append("Consider more informative priors")
            if avg_variance > 0.05:
                recommendations.append("Extend the observation period")

        return {
            "converged": converged,
            "convergence_score": max(0.0, 1 - avg_variance / CONVERGENCE_THRESHOLD),
            "unstable_numbers": unstable,
            "recommendations": recommendations,
        }

    def get_prior_statistics(self):
        means, variances = beta_mean_variance(self.alpha, self.beta)
        total_observations = self.observations * NUM_NUMBERS
        rates = self.successes / self.observations if self.observations else np.zeros(NUM_NUMBERS)
        # stable sort so equal rates keep number order
        order = np.argsort(-rates, kind="stable")
        return {
            "total_observations": total_observations,
            "average_success_rate": float(self.successes.sum() / total_observations) if total_observations else 0.0,
            "most_frequent_numbers": [int(i) + 1 for i in order[:10]],
            "least_frequent_numbers": [int(i) + 1 for i in order[-10:]],
            "prior_summary": {
                int(n): {"mean": float(m), "variance": float(v), "observations": self.observations}
                for n, m, v in zip(NUMBERS, means, variances)
            },
        }

    # ---------------- Persistence ---------------- #

    def to_dict(self):
        return {
            "state": self.state.value,
            "confidence_level": self.config.confidence_level,
            "observations": self.observations,
            "successes": self.successes.tolist(),
            "alpha": self.alpha.tolist(),
            "beta": self.beta.tolist(),
        }

    def from_dict(self, data):
        self.set_confidence_level(float(data.get("confidence_level", self.config.confidence_level)))
        alpha = np.asarray(data["alpha"], dtype=float)
        beta = np.asarray(data["beta"], dtype=float)
        if alpha.shape != (NUM_NUMBERS,) or beta.shape != (NUM_NUMBERS,):
            raise ValueError(f"Posterior table must hold {NUM_NUMBERS} entries")
        self.alpha, self.beta = alpha, beta
        self.observations = int(data.get("observations", 0))
        self.successes = np.asarray(data.get("successes", np.zeros(NUM_NUMBERS)), dtype=float)
        self.state = PriorState(data.get("state", PriorState.PRIORS_FITTED.value))
