from __future__ import annotations

import numpy as np
import pytest

from catdist.tools import sampling_benchmark
from catdist.tools.sampling_benchmark import (
    CrossoverReport,
    CrossoverTiming,
    build_store,
    category_counts,
    measure_crossover,
)


def test_category_counts_double_up_to_maximum() -> None:
    assert category_counts(2, 20) == [2, 4, 8, 16, 20]
    assert category_counts(4, 4) == [4]


@pytest.mark.parametrize("minimum, maximum", [(0, 4), (8, 4)])
def test_category_counts_rejects_invalid_range(minimum: int, maximum: int) -> None:
    with pytest.raises(ValueError):
        category_counts(minimum, maximum)


def test_build_store_has_positive_weights() -> None:
    store = build_store(16, np.random.default_rng(0))

    assert len(store) == 16
    assert store.check_invariants() == []


def test_measure_crossover_times_each_count() -> None:
    report = measure_crossover(2, 8, samples=10, repeats=1, seed=0)

    assert [timing.categories for timing in report.timings] == [2, 4, 8]
    assert all(timing.simple_seconds >= 0.0 for timing in report.timings)
    assert all(timing.batch_seconds >= 0.0 for timing in report.timings)


def test_report_picks_first_winning_count() -> None:
    report = CrossoverReport(
        samples=10,
        repeats=1,
        timings=[
            CrossoverTiming(2, 1.0, 2.0),
            CrossoverTiming(4, 1.0, 0.5),
            CrossoverTiming(8, 1.0, 0.25),
        ],
    )

    assert report.crossover == 4
    assert report.format().splitlines()[-1] == "crossover: 4"


def test_report_without_winner() -> None:
    report = CrossoverReport(samples=10, repeats=1, timings=[CrossoverTiming(2, 1.0, 2.0)])

    assert report.crossover is None
    assert "never won" in report.format()


def test_main_prints_report(capsys) -> None:
    argv = ["--min-categories", "2", "--max-categories", "4", "--samples", "5", "--repeats", "1"]

    assert sampling_benchmark.main(argv + ["--seed", "1"]) == 0

    assert "categories" in capsys.readouterr().out


def test_main_rejects_invalid_arguments(capsys) -> None:
    assert sampling_benchmark.main(["--samples", "0"]) == 1

    assert capsys.readouterr().err.startswith("catdist-benchmark: ")
