## Project: Lotto Ensemble Predictor
## Purpose of File: Shannon Entropy and Uncertainty Measures
## Description:
## Computes the Shannon entropy (bits) of a probability distribution over 1..90 plus
## its spread: variance, standard deviation and coefficient of variation.

import numpy as np


def shannon_entropy(p):
    """H = -sum p_i log2 p_i, zero terms skipped."""
    p = np.asarray(p, dtype=float)
    p = p[p > 0]
    if p.size == 0:
        return 0.0
    return float(-(p * np.log2(p)).sum())


def uncertainty_measures(p):
    p = np.asarray(p, dtype=float)
    mean = float(p.mean()) if p.size else 0.0
    variance = float(((p - mean) ** 2).mean()) if p.size else 0.0
    std = float(np.sqrt(variance))
    return {
        "entropy": shannon_entropy(p),
        "variance": variance,
        "standard_deviation": std,
        "coefficient_of_variation": std / mean if mean > 0 else 0.0,
    }
