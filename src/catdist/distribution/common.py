"""Shared constants, errors and argument helpers for the distribution engine."""

from __future__ import annotations

import math
import sys
from enum import Enum
from typing import Hashable, Iterable, List, Optional

DEFAULT_CROSSOVER = 30
DEFAULT_PRECISION = 2
MAX_PRECISION = 10
# Headroom so that a sum plus one increment can never reach inf.
SAFE_MAX = sys.float_info.max / 4.0
SAFE_MIN = 1e-250
SUM_TOLERANCE = 1e-9
# Relative excess over the capacity that a bulk load tolerates without forgetting.
CAPACITY_TOLERANCE = 1e-12

CAPACITY_MODE = "capacity"
RECENCY_MODE = "recency"
MODES = (CAPACITY_MODE, RECENCY_MODE)

PROPORTIONAL_FORGETTING = "proportional"
SAMPLED_FORGETTING = "sampled"
FORGETTING_STRATEGIES = (PROPORTIONAL_FORGETTING, SAMPLED_FORGETTING)


class ErrorKind(Enum):
    NOT_AN_ARRAY = "NotAnArray"
    INVALID_DUMP = "InvalidDump"
    INVALID_DISTRIBUTION = "InvalidDistribution"
    INVALID_WEIGHT = "InvalidWeight"
    INVALID_MASS = "InvalidMass"
    INVALID_ADAPTATION_RATE = "InvalidAdaptationRate"
    OVERFLOW = "Overflow"


class DistributionError(ValueError):
    """Base class for errors reported by :class:`CategoricalDistribution`."""

    kind: ErrorKind


class NotAnArrayError(DistributionError):
    """Raised when a sequence of categories was expected."""

    kind = ErrorKind.NOT_AN_ARRAY


class InvalidDumpError(DistributionError):
    """Raised when a snapshot sequence is structurally malformed."""

    kind = ErrorKind.INVALID_DUMP


class InvalidDistributionError(DistributionError):
    """Raised when a bulk distribution has negative or non-finite weights."""

    kind = ErrorKind.INVALID_DISTRIBUTION


class InvalidWeightError(DistributionError):
    kind = ErrorKind.INVALID_WEIGHT


class InvalidMassError(DistributionError):
    kind = ErrorKind.INVALID_MASS


class InvalidAdaptationRateError(DistributionError):
    kind = ErrorKind.INVALID_ADAPTATION_RATE


class DistributionOverflowError(DistributionError, OverflowError):
    """Raised when an increment cannot be represented even after rescaling."""

    kind = ErrorKind.OVERFLOW


def coerce_float(value: object) -> Optional[float]:
    # bool is an int subclass but never a meaningful weight.
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def coerce_mass(value: object) -> float:
    """Return ``value`` as a finite float or raise :class:`InvalidMassError`."""

    mass = coerce_float(value)
    if mass is None or not math.isfinite(mass):
        raise InvalidMassError(f"Mass must be a finite number, got {value!r}")
    return mass


def coerce_capacity(value: object) -> float:
    """Normalise a capacity: ``None`` is unbounded and negatives clamp to 0."""

    if value is None:
        return math.inf
    capacity = coerce_float(value)
    if capacity is None or math.isnan(capacity):
        raise InvalidWeightError(f"Capacity must be a number or None, got {value!r}")
    return max(0.0, capacity)


def coerce_learning_rate(value: object) -> float:
    """Return ``value`` as a learning rate in ``[0, inf]``.

    Any rate in the domain is accepted here; whether a given mass can be
    learned at that rate is checked when the event arrives.
    """

    rate = coerce_float(value)
    if rate is None or math.isnan(rate) or rate < 0.0:
        raise InvalidAdaptationRateError(
            f"Learning rate must be a real number in [0, inf], got {value!r}"
        )
    return rate


def learning_rate_from_adaptation(value: object) -> float:
    """Map an adaptation rate ``a`` in [0, 1] to the learning rate ``1 / (1 - a)``."""

    rate = coerce_float(value)
    if rate is None or not 0.0 <= rate <= 1.0:
        raise InvalidAdaptationRateError(
            f"Adaptation rate must be a real number in [0, 1], got {value!r}"
        )
    if rate == 1.0:
        return math.inf
    return 1.0 / (1.0 - rate)


def adaptation_from_learning_rate(rate: float) -> float:
    if math.isinf(rate):
        return 1.0
    if rate < 1.0:
        # Rates below one favour old events; there is no adaptation to report.
        return 0.0
    return 1.0 - 1.0 / rate


def is_hashable(value: object) -> bool:
    # ``isinstance(value, Hashable)`` accepts tuples holding lists.
    try:
        hash(value)
    except TypeError:
        return False
    return True


def ensure_categories(value: object) -> List[Hashable]:
    """Return ``value`` as a list of categories.

    Strings and bytes are rejected instead of being split into characters;
    use the single-category form of a method for them.
    """

    if isinstance(value, (str, bytes, bytearray)):
        raise NotAnArrayError(
            f"Expected a sequence of categories, got a single {type(value).__name__}"
        )
    if not isinstance(value, Iterable):
        raise NotAnArrayError(f"Expected a sequence of categories, got {value!r}")
    categories = list(value)
    for category in categories:
        if not is_hashable(category):
            raise NotAnArrayError(f"Category {category!r} is not hashable")
    return categories


__all__ = [
    "CAPACITY_MODE",
    "CAPACITY_TOLERANCE",
    "DEFAULT_CROSSOVER",
    "DEFAULT_PRECISION",
    "DistributionError",
    "DistributionOverflowError",
    "ErrorKind",
    "FORGETTING_STRATEGIES",
    "InvalidAdaptationRateError",
    "InvalidDistributionError",
    "InvalidDumpError",
    "InvalidMassError",
    "InvalidWeightError",
    "MAX_PRECISION",
    "MODES",
    "NotAnArrayError",
    "PROPORTIONAL_FORGETTING",
    "RECENCY_MODE",
    "SAFE_MAX",
    "SAFE_MIN",
    "SAMPLED_FORGETTING",
    "SUM_TOLERANCE",
    "adaptation_from_learning_rate",
    "coerce_capacity",
    "coerce_float",
    "coerce_learning_rate",
    "coerce_mass",
    "ensure_categories",
    "is_hashable",
    "learning_rate_from_adaptation",
]
