## Project: Lotto Ensemble Predictor
## Purpose of File: To Analyze and Normalize Lottery Number Frequencies
## Description:
## Counts how often each number 1..90 was drawn, how many draws contained it, and how
## many draws ago it was last seen. Used by the Monte Carlo distribution, the
## Bayesian contextual factors and the CLI stats view.

import numpy as np

from pipeline import NUM_NUMBERS


def occurrence_counts(draws):
    """Per-number count of draws containing it, shape (90,)."""
    counts = np.zeros(NUM_NUMBERS, dtype=float)
    for draw in draws:
        for n in draw.main_numbers:
            counts[n - 1] += 1
    return counts


def analyze_number_frequency(draws):
    """
    Share of all drawn numbers per number, shape (90,), summing to 1.
    Uniform when there is no history.
    """
    counts = occurrence_counts(draws)
    total = counts.sum()
    if total <= 0:
        return np.ones(NUM_NUMBERS) / NUM_NUMBERS
    return counts / total


def recency(draws):
    """
    Draws elapsed since each number last appeared, shape (90,).
    0 means it was in the latest draw; len(draws) means never seen.
    """
    total = len(draws)
    gaps = np.full(NUM_NUMBERS, total, dtype=float)
    for idx, draw in enumerate(reversed(draws)):
        for n in draw.main_numbers:
            if gaps[n - 1] == total:
                gaps[n - 1] = idx
    return gaps


def numbers_seen(draws):
    """Set of numbers present in any of the given draws."""
    return {n for draw in draws for n in draw.main_numbers}
