"""Measure where batch sampling overtakes linear scans.

Unordered sampling either scans the cumulative weights once per draw or
draws an ordered batch and shuffles it.  The scan wins on small category
counts; this tool times both over a doubling range of category counts and
reports the smallest count where the batch path is faster.  That count is
the value to configure as :attr:`SamplingConfig.crossover`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from catdist.distribution.sampling import make_rng, sample_ordered, sample_simple, shuffle
from catdist.distribution.store import WeightStore

logger = logging.getLogger(__name__)

DEFAULT_MIN_CATEGORIES = 2
DEFAULT_MAX_CATEGORIES = 256
DEFAULT_SAMPLES = 100
DEFAULT_REPEATS = 5


@dataclass(frozen=True)
class CrossoverTiming:
    categories: int
    simple_seconds: float
    batch_seconds: float

    @property
    def batch_wins(self) -> bool:
        return self.batch_seconds < self.simple_seconds


@dataclass
class CrossoverReport:
    samples: int
    repeats: int
    timings: List[CrossoverTiming] = field(default_factory=list)

    @property
    def crossover(self) -> Optional[int]:
        """Smallest measured category count where batch sampling is faster."""

        for timing in self.timings:
            if timing.batch_wins:
                return timing.categories
        return None

    def format(self) -> str:
        lines = [f"{'categories':>10} {'simple[s]':>12} {'batch[s]':>12}"]
        for timing in self.timings:
            marker = " *" if timing.batch_wins else ""
            lines.append(
                f"{timing.categories:>10} {timing.simple_seconds:>12.6f} "
                f"{timing.batch_seconds:>12.6f}{marker}"
            )
        crossover = self.crossover
        if crossover is None:
            lines.append("batch sampling never won in the measured range")
        else:
            lines.append(f"crossover: {crossover}")
        return "\n".join(lines)


def category_counts(minimum: int, maximum: int) -> List[int]:
    """Doubling sequence from ``minimum`` up to and including ``maximum``."""

    if minimum < 1:
        raise ValueError("minimum category count must be positive")
    if maximum < minimum:
        raise ValueError("maximum category count must not be below the minimum")
    counts = []
    current = minimum
    while current < maximum:
        counts.append(current)
        current *= 2
    counts.append(maximum)
    return counts


def build_store(categories: int, rng: np.random.Generator) -> WeightStore:
    store = WeightStore()
    for category, weight in enumerate(rng.random(categories) + 1e-3):
        store.upsert(category, float(weight))
    return store


def _best_of(repeats: int, run: Callable[[], object]) -> float:
    best = float("inf")
    for _ in range(repeats):
        started = time.perf_counter()
        run()
        best = min(best, time.perf_counter() - started)
    return best


def measure_crossover(
    min_categories: int = DEFAULT_MIN_CATEGORIES,
    max_categories: int = DEFAULT_MAX_CATEGORIES,
    samples: int = DEFAULT_SAMPLES,
    repeats: int = DEFAULT_REPEATS,
    seed: Optional[int] = None,
) -> CrossoverReport:
    """Time both unordered sampling paths for each category count."""

    if samples < 1:
        raise ValueError("samples must be positive")
    if repeats < 1:
        raise ValueError("repeats must be positive")
    rng = make_rng(seed)
    report = CrossoverReport(samples=samples, repeats=repeats)
    for categories in category_counts(min_categories, max_categories):
        store = build_store(categories, rng)
        simple = _best_of(repeats, lambda: sample_simple(store, samples, rng))
        batch = _best_of(repeats, lambda: shuffle(sample_ordered(store, samples, rng), rng))
        logger.debug("%d categories: simple=%.6fs batch=%.6fs", categories, simple, batch)
        report.timings.append(CrossoverTiming(categories, simple, batch))
    return report


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="catdist-benchmark",
        description="Find the category count where batch sampling beats linear scans",
    )
    parser.add_argument(
        "--min-categories",
        type=int,
        default=DEFAULT_MIN_CATEGORIES,
        help="Smallest category count to measure",
    )
    parser.add_argument(
        "--max-categories",
        type=int,
        default=DEFAULT_MAX_CATEGORIES,
        help="Largest category count to measure",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=DEFAULT_SAMPLES,
        help="Draws per sampling call",
    )
    parser.add_argument(
        "--repeats",
        type=int,
        default=DEFAULT_REPEATS,
        help="Timing repetitions; the fastest is kept",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    return parser.parse_args(None if argv is None else list(argv))


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = _parse_args(list(argv) if argv is not None else None)
    try:
        report = measure_crossover(
            args.min_categories,
            args.max_categories,
            args.samples,
            args.repeats,
            args.seed,
        )
    except ValueError as exc:
        print(f"catdist-benchmark: {exc}", file=sys.stderr)
        return 1
    print(report.format())
    return 0


__all__ = [
    "CrossoverReport",
    "CrossoverTiming",
    "build_store",
    "category_counts",
    "main",
    "measure_crossover",
]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main(sys.argv[1:]))
