"""Weighted sampling from a :class:`WeightStore`.

Two algorithms are provided.  ``sample_simple`` rebuilds the cumulative sum
for every draw and costs ``O(n * m)`` for ``n`` draws over ``m`` categories.
``sample_ordered`` draws ``n`` uniform variates already sorted and merges
them against the cumulative weights in one pass, ``O(n + m)``, producing the
results in probability order.  :class:`Sampler` picks between them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, List, MutableSequence, Optional, TypeVar, Union

import numpy as np

from .common import DEFAULT_CROSSOVER
from .store import WeightStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
RandomSource = Union[None, int, np.random.Generator]


def make_rng(source: RandomSource = None) -> np.random.Generator:
    """Return a generator for ``source`` (an existing generator, a seed or ``None``)."""

    if isinstance(source, np.random.Generator):
        return source
    return np.random.default_rng(source)


def random_ordered_uniforms(
    n: int,
    low: float,
    high: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Return ``n`` ascending uniform variates from ``[low, high)`` in ``O(n)``.

    The ``i``-th order statistic of ``n`` uniforms follows
    ``u_i = u_{i-1} + (1 - u_{i-1}) * (1 - U ** (1 / (n - i)))``.  Unrolled,
    ``1 - u_i`` is the running product of ``U_j ** (1 / (n - j))``, which
    numpy evaluates without a Python loop.
    """

    if n < 1:
        return np.empty(0, dtype=np.float64)
    draws = rng.random(n)
    exponents = 1.0 / np.arange(n, 0, -1, dtype=np.float64)
    unit = 1.0 - np.cumprod(draws ** exponents)
    return low + (high - low) * unit


def shuffle(items: MutableSequence[T], rng: np.random.Generator) -> MutableSequence[T]:
    """Fisher-Yates shuffle of ``items`` in place; returns ``items``."""

    counter = len(items)
    while counter > 1:
        pick = int(rng.integers(counter))
        counter -= 1
        items[counter], items[pick] = items[pick], items[counter]
    return items


def sample_simple(store: WeightStore, n: int, rng: np.random.Generator) -> List[Hashable]:
    """Draw ``n`` categories independently by linear scans."""

    result: List[Hashable] = []
    if n <= 0 or len(store) == 0:
        return result
    total = store.weight_sum
    pairs = list(store.items())
    last = pairs[-1][0]
    for x in rng.random(n) * total:
        cumulative = 0.0
        chosen = last
        for category, weight in pairs:
            cumulative += weight
            if x < cumulative:
                chosen = category
                break
        # Rounding can leave the final cumulative sum just below ``total``;
        # such draws belong to the last category.
        result.append(chosen)
    return result


def sample_ordered(store: WeightStore, n: int, rng: np.random.Generator) -> List[Hashable]:
    """Draw ``n`` categories and return them most probable first."""

    result: List[Hashable] = []
    if n <= 0 or len(store) == 0:
        return result
    targets = random_ordered_uniforms(n, 0.0, store.weight_sum, rng)
    last = len(store) - 1
    position = 0
    cumulative = store.weight_at(0)
    category = store.at(0)
    for target in targets:
        # Half-open intervals: a target equal to a boundary moves on.
        while cumulative <= target and position < last:
            position += 1
            cumulative += store.weight_at(position)
            category = store.at(position)
        result.append(category)
    return result


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling knobs.

    ``crossover`` is the category count above which unordered sampling pays
    for batch sampling plus a shuffle instead of repeated linear scans.  It is
    measured, not derived; see :mod:`catdist.tools.sampling_benchmark`.
    """

    crossover: int = DEFAULT_CROSSOVER
    rng_seed: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.crossover, bool) or not isinstance(self.crossover, int):
            raise ValueError("crossover must be an integer")
        if self.crossover < 0:
            raise ValueError("crossover must be non-negative")


class Sampler:
    """Chooses the sampling algorithm per call and owns the random source."""

    def __init__(self, config: Optional[SamplingConfig] = None, rng: RandomSource = None) -> None:
        self.config = config or SamplingConfig()
        self.rng = make_rng(rng if rng is not None else self.config.rng_seed)

    def sample(self, store: WeightStore, n: int = 1, ordered: bool = False) -> List[Hashable]:
        if ordered:
            return sample_ordered(store, n, self.rng)
        if len(store) > self.config.crossover:
            logger.debug("Sampling %d from %d categories with batch + shuffle", n, len(store))
            return list(shuffle(sample_ordered(store, n, self.rng), self.rng))
        return sample_simple(store, n, self.rng)

    def draw_one(self, store: WeightStore) -> Optional[Hashable]:
        drawn = sample_simple(store, 1, self.rng)
        return drawn[0] if drawn else None


__all__ = [
    "RandomSource",
    "Sampler",
    "SamplingConfig",
    "make_rng",
    "random_ordered_uniforms",
    "sample_ordered",
    "sample_simple",
    "shuffle",
]
