## Project: Lotto Ensemble Predictor
## Purpose of File: Error Types
## Description:
## Every failure the prediction core can raise. Contract violations also derive from
## ValueError so menu code that already catches ValueError keeps working.


class LottoError(Exception):
    """Base class for all prediction core errors."""


class InsufficientData(LottoError):
    """History is shorter than an estimator's minimum window."""

    def __init__(self, message, required=None, available=None):
        super().__init__(message)
        self.required = required
        self.available = available


class InvalidDraw(LottoError, ValueError):
    """A draw record is malformed (wrong count, duplicates, out of range, bad date)."""


class InvalidNumber(LottoError, ValueError):
    """A number outside 1..90 was queried."""


class InvalidConfidenceLevel(LottoError, ValueError):
    """Confidence level outside the open interval (0, 1)."""


class InvalidConfig(LottoError, ValueError):
    """Unknown configuration key or out-of-range hyperparameter."""


class ModelNotInitialized(LottoError):
    """A model or prediction was used before it existed (attribution, feedback)."""


class NumericDegeneracy(LottoError):
    """Zero variance or zero weight sum. Clamped inside the core, never propagated."""


class PredictionCancelled(LottoError):
    """The cancellation token fired or the deadline passed. Partial results are dropped."""
