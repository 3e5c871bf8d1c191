"""Learn a categorical distribution from a stream of categories.

Each non-blank input line is one event; the category is the stripped line.
The learned table is printed most probable first.  A previous state can be
restored with ``--load`` and the resulting state written with ``--dump``;
both use the JSON snapshot format of :mod:`catdist.distribution.codec`.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, TextIO

from catdist.distribution import (
    CategoricalDistribution,
    DistributionConfig,
    DistributionError,
    SamplingConfig,
    load_snapshot,
    save_snapshot,
)
from catdist.distribution.common import (
    CAPACITY_MODE,
    DEFAULT_PRECISION,
    FORGETTING_STRATEGIES,
    MODES,
    PROPORTIONAL_FORGETTING,
    RECENCY_MODE,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="catdist",
        description="Learn category frequencies from lines of text and print them",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="File with one category per line; '-' (default) reads stdin",
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help=(
            "Adaptation mode. Defaults to recency when --learning-rate is given"
            " and to capacity otherwise."
        ),
    )
    parser.add_argument(
        "--capacity",
        type=float,
        default=None,
        help="Maximum weight sum in capacity mode (unbounded by default)",
    )
    parser.add_argument(
        "--learning-rate",
        type=float,
        default=None,
        help="Weight growth per event in recency mode; 'inf' keeps only the newest",
    )
    parser.add_argument(
        "--forgetting",
        choices=FORGETTING_STRATEGIES,
        default=PROPORTIONAL_FORGETTING,
        help="How capacity mode forgets old evidence",
    )
    parser.add_argument(
        "--load",
        type=Path,
        default=None,
        help="Restore a JSON snapshot before learning",
    )
    parser.add_argument(
        "--dump",
        type=Path,
        default=None,
        help="Write the learned state as a JSON snapshot",
    )
    parser.add_argument(
        "--sample",
        type=int,
        default=0,
        help="Print this many categories drawn from the learned distribution",
    )
    parser.add_argument(
        "--ordered",
        action="store_true",
        help="Print sampled categories most probable first",
    )
    parser.add_argument(
        "--head",
        type=int,
        default=None,
        help="Print the given number of most probable categories",
    )
    parser.add_argument(
        "--precision",
        type=int,
        default=DEFAULT_PRECISION,
        help="Decimal places of the printed probabilities",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for sampling")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging verbosity",
    )
    return parser.parse_args(None if argv is None else list(argv))


def _build_config(args: argparse.Namespace) -> DistributionConfig:
    mode = args.mode
    if mode is None:
        mode = RECENCY_MODE if args.learning_rate is not None else CAPACITY_MODE
    return DistributionConfig(
        mode=mode,
        capacity=args.capacity,
        learning_rate=1.0 if args.learning_rate is None else args.learning_rate,
        forgetting=args.forgetting,
        sampling=SamplingConfig(rng_seed=args.seed),
    )


def _read_categories(stream: TextIO) -> List[str]:
    return [line.strip() for line in stream if line.strip()]


def _load_events(source: str) -> List[str]:
    if source == "-":
        return _read_categories(sys.stdin)
    with open(source, "r", encoding="utf-8") as handle:
        return _read_categories(handle)


def _format_categories(categories: Iterable[object]) -> str:
    return " ".join(str(category) for category in categories)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = _parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        distribution = CategoricalDistribution(_build_config(args))
        if args.load is not None:
            distribution.load(load_snapshot(args.load))
            # An explicit scalar on the command line wins over the snapshot.
            if args.capacity is not None and distribution.mode == CAPACITY_MODE:
                distribution.capacity = args.capacity
            if args.learning_rate is not None and distribution.mode == RECENCY_MODE:
                distribution.learning_rate = args.learning_rate

        events = _load_events(args.input)
        logger.info("Learning %d events", len(events))
        distribution.learn(events)

        sys.stdout.write(distribution.render(args.precision))
        if args.head is not None:
            print(f"head: {_format_categories(distribution.head(args.head))}")
        if args.sample > 0:
            drawn = distribution.sample(args.sample, ordered=args.ordered)
            print(f"sample: {_format_categories(drawn)}")

        if args.dump is not None:
            save_snapshot(args.dump, distribution.dump())
        return 0
    except (DistributionError, OSError) as exc:
        print(f"catdist: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main(sys.argv[1:]))
