## Project: Lotto Ensemble Predictor
## Purpose of File: Generate Markov Transition Features
## Description:
## First-order Markov chain across consecutive draws: every number of draw t-1 "transitions"
## to every number of draw t. Rows are normalised; rows never observed stay zero.
## transition_scores() projects the last draw through the matrix.

import numpy as np

from pipeline import NUM_NUMBERS


def generate_markov_matrix(draws):
    """Build normalized transition matrix [90 x 90] from consecutive draws."""
    mat = np.zeros((NUM_NUMBERS, NUM_NUMBERS), dtype=float)

    for i in range(1, len(draws)):
        prev = np.asarray(draws[i - 1].main_numbers) - 1
        curr = np.asarray(draws[i].main_numbers) - 1
        mat[np.ix_(prev, curr)] += 1

    # Normalize rows
    row_sums = mat.sum(axis=1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        mat = np.divide(mat, row_sums, out=np.zeros_like(mat), where=row_sums != 0)

    return mat


def transition_scores(draws, matrix=None):
    """
    Mean transition probability from the numbers of the latest draw, shape (90,).
    Zeros when fewer than two draws exist.
    """
    if len(draws) < 2:
        return np.zeros(NUM_NUMBERS, dtype=float)
    if matrix is None:
        matrix = generate_markov_matrix(draws)
    last = np.asarray(draws[-1].main_numbers) - 1
    return matrix[last].mean(axis=0)
