## Project: Lotto Ensemble Predictor
## Purpose of File: Record Types Shared by the Prediction Core
## Description:
## Draw records are validated on construction and never change afterwards.
## Everything else here is produced fresh per request by a pipeline step.

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from config.errors import InvalidDraw

MIN_NUMBER = 1
MAX_NUMBER = 90
PICK_SIZE = 5


def validate_numbers(numbers, label="Numbers"):
    try:
        values = tuple(int(n) for n in numbers)
    except (TypeError, ValueError) as e:
        raise InvalidDraw(f"{label} must be integers: {e}")
    if len(values) != PICK_SIZE:
        raise InvalidDraw(f"{label} needs exactly {PICK_SIZE} numbers, got {len(values)}.")
    if len(set(values)) != PICK_SIZE:
        raise InvalidDraw(f"{label} contains duplicates: {list(values)}")
    bad = [n for n in values if not MIN_NUMBER <= n <= MAX_NUMBER]
    if bad:
        raise InvalidDraw(f"{label} out of range {MIN_NUMBER}-{MAX_NUMBER}: {bad}")
    return values


@dataclass(frozen=True)
class Draw:
    """One historical observation. Numbers keep the order they were drawn in."""
    id: int
    name: str
    date: date
    main_numbers: Tuple[int, ...]
    secondary_numbers: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        if not isinstance(self.date, date):
            raise InvalidDraw(f"Draw {self.id}: date must be a datetime.date, got {self.date!r}")
        object.__setattr__(self, "main_numbers", validate_numbers(self.main_numbers, f"Draw {self.id} main numbers"))
        if self.secondary_numbers is not None:
            object.__setattr__(
                self,
                "secondary_numbers",
                validate_numbers(self.secondary_numbers, f"Draw {self.id} secondary numbers"),
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date.isoformat(),
            "main_numbers": list(self.main_numbers),
            "secondary_numbers": list(self.secondary_numbers) if self.secondary_numbers else None,
        }


@dataclass(frozen=True)
class FeatureVector:
    names: Tuple[str, ...]
    values: Tuple[float, ...]

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.names, self.values))

    def __getitem__(self, name: str) -> float:
        return self.values[self.names.index(name)]

    def __len__(self):
        return len(self.values)


@dataclass
class BayesianPosterior:
    number: int
    alpha: float
    beta: float
    mean: float
    variance: float
    credible_interval: Tuple[float, float]

    @property
    def probability(self) -> float:
        return self.mean


@dataclass
class EstimatorOutput:
    """
    numbers: 5 distinct numbers, ascending.
    probabilities: number -> probability in [0, 1]; numbers not reported count as 0.
    confidence: 0..100.
    auxiliary: estimator specific payload (importances, attention, scenarios, Q-values).
    """
    name: str
    numbers: List[int]
    probabilities: Dict[int, float]
    confidence: float
    auxiliary: Dict[str, Any] = field(default_factory=dict)
    metrics: Dict[str, float] = field(default_factory=dict)


@dataclass
class FeatureContribution:
    feature: str
    value: float
    contribution: float
    description: str = ""


@dataclass
class AttributionResult:
    base_value: float
    prediction: float
    contributions: List[FeatureContribution]
    expected_value: float
    top_positive: List[FeatureContribution]
    top_negative: List[FeatureContribution]
    total_contribution: float

    @property
    def feature_importances(self) -> Dict[str, float]:
        return {c.feature: abs(c.contribution) for c in self.contributions}


@dataclass
class GlobalAttributionResult:
    feature_importances: Dict[str, float]
    average_contributions: Dict[str, float]
    interaction_scores: Dict[str, float]
    most_important: List[str]
    least_important: List[str]
    stability_score: float
    samples_explained: int


@dataclass
class FinalPrediction:
    numbers: List[int]
    confidence: float
    probabilities: Dict[int, float]
    weights: Dict[str, float]
    estimators: Dict[str, EstimatorOutput]
    failures: Dict[str, str]
    attribution: Optional[Dict[str, Any]] = None
    monte_carlo: Optional[Dict[str, Any]] = None
    reinforcement: Optional[Dict[str, Any]] = None
    metrics: Dict[str, float] = field(default_factory=dict)
