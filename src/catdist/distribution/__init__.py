"""Adaptive categorical distribution engine."""

from .categorical import CategoricalDistribution, DistributionConfig
from .codec import from_json, load_snapshot, save_snapshot, to_json
from .common import (
    DistributionError,
    DistributionOverflowError,
    ErrorKind,
    InvalidAdaptationRateError,
    InvalidDistributionError,
    InvalidDumpError,
    InvalidMassError,
    InvalidWeightError,
    NotAnArrayError,
)
from .sampling import SamplingConfig, random_ordered_uniforms, shuffle
from .store import WeightStore

__all__ = [
    "CategoricalDistribution",
    "DistributionConfig",
    "DistributionError",
    "DistributionOverflowError",
    "ErrorKind",
    "InvalidAdaptationRateError",
    "InvalidDistributionError",
    "InvalidDumpError",
    "InvalidMassError",
    "InvalidWeightError",
    "NotAnArrayError",
    "SamplingConfig",
    "WeightStore",
    "from_json",
    "load_snapshot",
    "random_ordered_uniforms",
    "save_snapshot",
    "shuffle",
    "to_json",
]
