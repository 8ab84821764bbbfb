## Project: Lotto Ensemble Predictor
## Purpose: Core Data Pipeline, Cancellation and Probability Helpers
## Description:
##   - Stores data for all pipeline steps of one prediction run
##   - Cancellation token / deadline threaded through every estimator entry point
##   - Shared normalisation and top-k selection helpers over numbers 1..90

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from config.errors import NumericDegeneracy, PredictionCancelled
from records import MAX_NUMBER, PICK_SIZE

NUM_NUMBERS = MAX_NUMBER
NUMBERS = np.arange(1, NUM_NUMBERS + 1)

logger = logging.getLogger(__name__)


class DataPipeline:
    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self._lock = threading.Lock()
        logger.debug("Initialized DataPipeline.")

    def add_data(self, key: str, value: Any) -> None:
        if key is None:
            raise ValueError("Pipeline key cannot be None.")
        with self._lock:
            self.data[key] = value
        logger.debug(f"Added data under key '{key}'.")

    def get_data(self, key: str) -> Any:
        with self._lock:
            value = self.data.get(key)
        if value is not None:
            logger.debug(f"Retrieved pipeline data for key '{key}'.")
        else:
            logger.debug(f"No pipeline data for key '{key}'.")
        return value

    def clear_pipeline(self) -> None:
        with self._lock:
            self.data.clear()
        logger.debug("Pipeline cleared.")


class CancellationToken:
    """
    Cooperative cancellation. Estimators call check() between heavy stages.
    A deadline is an absolute time.monotonic() value.
    """

    def __init__(self, deadline: Optional[float] = None) -> None:
        self._event = threading.Event()
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, stage: str = "") -> None:
        if self.cancelled:
            raise PredictionCancelled(f"Prediction cancelled{' during ' + stage if stage else ''}.")


def check_cancelled(token: Optional[CancellationToken], stage: str = "") -> None:
    if token is not None:
        token.check(stage)


def safe_norm(x, strict: bool = False) -> np.ndarray:
    """
    Normalise a non-negative vector to sum 1.
    Zero or non-finite sums fall back to uniform, or raise NumericDegeneracy when strict.
    """
    x = np.asarray(x, dtype=float)
    x = np.where(np.isfinite(x), x, 0.0)
    x = np.clip(x, 0.0, None)
    s = x.sum()
    if s <= 0 or not np.isfinite(s):
        if strict:
            raise NumericDegeneracy("Cannot normalise a vector with zero total weight.")
        return np.full_like(x, 1.0 / len(x))
    return x / s


def top_k_numbers(scores, k: int = PICK_SIZE) -> List[int]:
    """
    Numbers (1-based) of the k largest scores. Ties go to the lower number.
    Returned in ascending order.
    """
    scores = np.asarray(scores, dtype=float)
    order = np.lexsort((np.arange(len(scores)), -scores))
    return sorted(int(i) + 1 for i in order[:k])


def probabilities_to_dict(probs: Iterable[float]) -> Dict[int, float]:
    return {i + 1: float(p) for i, p in enumerate(probs)}


def dict_to_probabilities(probs: Dict[int, float]) -> np.ndarray:
    out = np.zeros(NUM_NUMBERS, dtype=float)
    for number, p in probs.items():
        if 1 <= int(number) <= NUM_NUMBERS:
            out[int(number) - 1] = float(p)
    return out


def multi_hot(numbers: Iterable[int]) -> np.ndarray:
    y = np.zeros(NUM_NUMBERS, dtype=float)
    for n in numbers:
        y[int(n) - 1] = 1.0
    return y


def hit_rate_analysis(predicted: Iterable[int], actual: Iterable[int]) -> int:
    """Number of predicted numbers present in the actual draw."""
    return len(set(int(n) for n in predicted) & set(int(n) for n in actual))
