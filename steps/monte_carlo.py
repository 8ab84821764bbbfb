## Project: Lotto Ensemble Predictor
## Purpose of File: Perform Monte Carlo Simulations on Lottery Number Probabilities
## Description:
##   Builds a sampling distribution over 1..90 from history (frequency + Markov transition
##   from the last draw + smoothed prior), then simulates many 5-number draws without
##   replacement. Reports the most frequently sampled numbers, per-number selection
##   probabilities with confidence intervals, and how the recommended set fares against
##   every simulated draw: the distribution of its match counts, an interval for the mean
##   match count and risk metrics (volatility, Sharpe-like ratio, max drawdown, VaR,
##   expected shortfall) over the match-count returns.
##   Sampling is seeded and can be sharded over worker threads; each shard gets its own
##   child seed so results only depend on (seed, workers).

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from statistics import NormalDist

import numpy as np

from config.errors import InsufficientData
from config.settings import MonteCarloConfig
from pipeline import NUM_NUMBERS, check_cancelled, probabilities_to_dict, safe_norm, top_k_numbers
from records import EstimatorOutput, PICK_SIZE
from steps.frequency import analyze_number_frequency
from steps.markov import transition_scores

FREQUENCY_WEIGHT = 0.4
MARKOV_WEIGHT = 0.3
PRIOR_WEIGHT = 0.3
MIN_PROBABILITY = 0.001
PRIOR_STRENGTH = 1.0
RISK_LEVEL = 0.95
RETURN_OFFSET = 2.5
CHUNK_SIZE = 2000
SUMMARY_SCENARIOS = 10


def build_distribution(draws):
    """
    Sampling distribution over 1..90, shape (90,), summing to 1:
    0.4 * frequency share + 0.3 * Markov transition from the last draw + 0.3 * smoothed prior,
    each entry floored at 0.001 before normalising.
    """
    frequency = analyze_number_frequency(draws)
    markov = transition_scores(draws)
    total_draws = len(draws)
    prior = (frequency * total_draws + PRIOR_STRENGTH) / (total_draws + NUM_NUMBERS * PRIOR_STRENGTH)

    probability = FREQUENCY_WEIGHT * frequency + MARKOV_WEIGHT * markov + PRIOR_WEIGHT * prior
    probability = np.maximum(probability, MIN_PROBABILITY)
    return safe_norm(probability)


def sample_draws(distribution, count, rng):
    """
    `count` draws of 5 distinct numbers (1-based), shape (count, 5).
    Gumbel top-k: equivalent to sequential weighted sampling without replacement.
    """
    log_p = np.log(np.maximum(distribution, 1e-300))
    keys = log_p + rng.gumbel(size=(count, len(distribution)))
    picks = np.argpartition(-keys, PICK_SIZE - 1, axis=1)[:, :PICK_SIZE]
    return np.sort(picks, axis=1) + 1


def match_counts(picks, recommended):
    """Hits of `recommended` in every simulated draw, shape (n,)."""
    return np.isin(picks, np.asarray(recommended)).sum(axis=1)


def mean_interval(samples, level):
    """Normal-approximation interval for the mean of `samples`."""
    samples = np.asarray(samples, dtype=float)
    mean = float(samples.mean())
    if len(samples) < 2:
        return mean, mean
    z = NormalDist().inv_cdf(0.5 + level / 2)
    margin = z * float(samples.std(ddof=1)) / math.sqrt(len(samples))
    return mean - margin, mean + margin


def risk_metrics(matches, level=RISK_LEVEL):
    """
    Risk of playing the recommended set, scored per simulated draw by its match count.
    Returns are match counts minus 2.5; the running peak starts at zero.
    """
    matches = np.asarray(matches, dtype=float)
    mean = float(matches.mean())
    volatility = float(matches.std())
    returns = matches - RETURN_OFFSET
    peak = np.maximum(np.maximum.accumulate(returns), 0.0)

    ordered = np.sort(returns)
    cutoff = int(math.floor((1 - level) * len(ordered) + 1e-9))
    value_at_risk = float(-ordered[cutoff])
    return {
        "volatility": volatility,
        "sharpe_ratio": mean / volatility if volatility > 0 else 0.0,
        "max_drawdown": float((peak - returns).max()),
        "value_at_risk": value_at_risk,
        "expected_shortfall": float(-ordered[:cutoff].mean()) if cutoff else value_at_risk,
    }


class MonteCarloSimulator:
    name = "monte_carlo"

    def __init__(self, config=None, logger=None):
        self.config = config or MonteCarloConfig()
        self.logger = logger or logging.getLogger(__name__)

    def _run_shard(self, distribution, count, seed_seq, token):
        rng = np.random.default_rng(seed_seq)
        chunks = []
        remaining = count
        while remaining > 0:
            check_cancelled(token, "monte carlo sampling")
            size = min(CHUNK_SIZE, remaining)
            chunks.append(sample_draws(distribution, size, rng))
            remaining -= size
        if not chunks:
            return np.empty((0, PICK_SIZE), dtype=int)
        return np.vstack(chunks)

    def _shard_sizes(self):
        workers = max(1, min(self.config.workers, self.config.simulations))
        base, extra = divmod(self.config.simulations, workers)
        return [base + (1 if i < extra else 0) for i in range(workers)]

    def run_simulations(self, distribution, token=None):
        """Sampled draws, shape (simulations, 5). Shard order is fixed, so output is seed-determined."""
        distribution = safe_norm(distribution)
        sizes = self._shard_sizes()
        seeds = np.random.SeedSequence(self.config.seed).spawn(len(sizes))

        if len(sizes) == 1:
            return self._run_shard(distribution, sizes[0], seeds[0], token)

        with ThreadPoolExecutor(max_workers=len(sizes)) as executor:
            futures = [
                executor.submit(self._run_shard, distribution, size, seed, token)
                for size, seed in zip(sizes, seeds)
            ]
            return np.vstack([f.result() for f in futures])

    def simulate(self, distribution, token=None):
        cfg = self.config
        distribution = safe_norm(distribution)
        picks = self.run_simulations(distribution, token)
        check_cancelled(token, "monte carlo aggregation")
        n = len(picks)

        counts = np.bincount(picks.ravel() - 1, minlength=NUM_NUMBERS).astype(float)
        selection = counts / n
        z = NormalDist().inv_cdf(0.5 + cfg.confidence_level / 2)
        margin = z * np.sqrt(selection * (1 - selection) / n)
        per_number_interval = np.stack([np.clip(selection - margin, 0, 1), np.clip(selection + margin, 0, 1)], axis=1)

        recommended = top_k_numbers(counts)
        matches = match_counts(picks, recommended)
        lower, upper = mean_interval(matches, cfg.confidence_level)
        match_distribution = np.bincount(matches, minlength=PICK_SIZE + 1) / n
        match_margin = z * np.sqrt(match_distribution * (1 - match_distribution) / n)
        match_intervals = [
            (float(max(p - m, 0.0)), float(min(p + m, 1.0)))
            for p, m in zip(match_distribution, match_margin)
        ]

        # scenarios are ranked by the probability mass they capture
        scores = distribution[picks - 1].sum(axis=1)
        unique, index = np.unique(picks, axis=0, return_index=True)
        unique_scores = scores[index]
        order = np.argsort(-unique_scores, kind="stable")[:cfg.scenarios]
        scenarios = [
            {
                "numbers": [int(x) for x in unique[i]],
                "probability": float(np.prod(distribution[unique[i] - 1])),
                "score": float(unique_scores[i]),
            }
            for i in order
        ]

        self.logger.info(f"Monte Carlo simulation completed with {n} simulations; recommended {recommended}")
        return {
            "recommended_numbers": recommended,
            "selection_probabilities": selection,
            "per_number_intervals": per_number_interval,
            "confidence_interval": (float(max(lower, 0.0)), float(min(upper, PICK_SIZE))),
            "confidence_level": cfg.confidence_level,
            "expected_matches": float(matches.mean()),
            "match_distribution": match_distribution,
            "match_intervals": match_intervals,
            "mean_score": float(scores.mean()),
            "risk_metrics": risk_metrics(matches),
            "scenarios": scenarios,
            "simulations": n,
        }

    def predict(self, draws, token=None, distribution=None):
        if not draws and distribution is None:
            raise InsufficientData("Monte Carlo simulation needs at least one draw.", required=1, available=0)
        check_cancelled(token, "monte carlo")
        if distribution is None:
            distribution = build_distribution(draws)

        result = self.simulate(distribution, token)
        selection = result["selection_probabilities"]
        selected = result["recommended_numbers"]
        confidence = float(np.mean(selection[[n - 1 for n in selected]])) * 100

        return EstimatorOutput(
            name=self.name,
            numbers=selected,
            probabilities=probabilities_to_dict(selection),
            confidence=confidence,
            auxiliary={
                "confidence_interval": result["confidence_interval"],
                "risk_metrics": result["risk_metrics"],
                "scenarios": result["scenarios"][:SUMMARY_SCENARIOS],
                "per_number_intervals": result["per_number_intervals"],
                "match_intervals": result["match_intervals"],
            },
            metrics={
                "simulations": float(result["simulations"]),
                "expected_matches": result["expected_matches"],
                "mean_score": result["mean_score"],
            },
        )
