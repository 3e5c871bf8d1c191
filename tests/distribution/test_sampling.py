from __future__ import annotations

from collections import Counter

import numpy as np
import pytest

from catdist.distribution.sampling import (
    Sampler,
    SamplingConfig,
    random_ordered_uniforms,
    sample_ordered,
    sample_simple,
    shuffle,
)
from catdist.distribution.store import WeightStore


def _store(**weights: float) -> WeightStore:
    store = WeightStore()
    for category, weight in weights.items():
        store.upsert(category, weight)
    return store


def test_random_ordered_uniforms_are_sorted_and_bounded() -> None:
    rng = np.random.default_rng(0)

    values = random_ordered_uniforms(10_000, 2.0, 5.0, rng)

    assert values.shape == (10_000,)
    assert np.all(np.diff(values) >= 0.0)
    assert values.min() >= 2.0
    assert values.max() <= 5.0
    assert float(values.mean()) == pytest.approx(3.5, abs=0.05)


def test_random_ordered_uniforms_empty() -> None:
    assert random_ordered_uniforms(0, 0.0, 1.0, np.random.default_rng(0)).size == 0


def test_shuffle_permutes_in_place() -> None:
    items = list(range(50))

    result = shuffle(items, np.random.default_rng(3))

    assert result is items
    assert sorted(items) == list(range(50))
    assert items != list(range(50))


@pytest.mark.parametrize("items", [[], ["only"]])
def test_shuffle_trivial_sequences(items: list) -> None:
    assert shuffle(list(items), np.random.default_rng(0)) == items


@pytest.mark.parametrize("sampler", [sample_simple, sample_ordered])
def test_sampling_matches_weights(sampler) -> None:
    store = _store(A=1.0, B=3.0)

    draws = sampler(store, 100_000, np.random.default_rng(11))
    counts = Counter(draws)

    assert len(draws) == 100_000
    assert counts["B"] / 100_000 == pytest.approx(0.75, abs=0.01)


def test_sample_ordered_returns_most_probable_first() -> None:
    store = _store(a=3.0, b=2.0, c=1.0)

    draws = sample_ordered(store, 500, np.random.default_rng(5))
    positions = [store.index(category) for category in draws]

    assert positions == sorted(positions)
    assert set(draws) == {"a", "b", "c"}


@pytest.mark.parametrize("n", [0, -4])
def test_non_positive_draw_count_yields_nothing(n: int) -> None:
    store = _store(a=1.0)
    rng = np.random.default_rng(0)

    assert sample_simple(store, n, rng) == []
    assert sample_ordered(store, n, rng) == []


def test_empty_store_yields_nothing() -> None:
    sampler = Sampler(rng=0)

    assert sampler.sample(WeightStore(), 10) == []
    assert sampler.draw_one(WeightStore()) is None


def test_sampler_batch_path_matches_weights() -> None:
    store = _store(A=1.0, B=3.0)
    sampler = Sampler(SamplingConfig(crossover=0), rng=21)

    draws = sampler.sample(store, 40_000)
    counts = Counter(draws)

    assert counts["B"] / 40_000 == pytest.approx(0.75, abs=0.015)
    # The batch path shuffles, so draws are not grouped by category.
    assert draws != sorted(draws, key=store.index)


def test_sampler_is_reproducible_with_seed() -> None:
    store = _store(a=1.0, b=2.0, c=4.0)

    first = Sampler(SamplingConfig(rng_seed=42)).sample(store, 20)
    second = Sampler(SamplingConfig(rng_seed=42)).sample(store, 20)

    assert first == second


@pytest.mark.parametrize("crossover", [-1, 2.5, True])
def test_sampling_config_rejects_invalid_crossover(crossover: object) -> None:
    with pytest.raises(ValueError):
        SamplingConfig(crossover=crossover)  # type: ignore[arg-type]
