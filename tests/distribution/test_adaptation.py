from __future__ import annotations

import math
import sys

import pytest

from catdist.distribution.adaptation import (
    CapacityPolicy,
    RecencyPolicy,
    forget_by_sampling,
    forget_proportionally,
)
from catdist.distribution.common import SAFE_MAX, SAFE_MIN, DistributionOverflowError
from catdist.distribution.sampling import Sampler
from catdist.distribution.store import WeightStore


def _store(**weights: float) -> WeightStore:
    store = WeightStore()
    for category, weight in weights.items():
        store.upsert(category, weight)
    return store


def test_forget_proportionally_keeps_ratios() -> None:
    store = _store(a=6.0, b=2.0)

    forget_proportionally(store, 4.0)

    assert store.weight("a") == pytest.approx(3.0)
    assert store.weight("b") == pytest.approx(1.0)
    assert store.weight_sum == pytest.approx(4.0)


def test_forget_proportionally_can_empty_the_store() -> None:
    store = _store(a=1.0)

    forget_proportionally(store, 10.0)

    assert len(store) == 0
    assert store.weight_sum == 0.0


def test_forget_by_sampling_removes_exact_amount() -> None:
    store = _store(a=5.0, b=5.0)

    forget_by_sampling(store, 3.0, Sampler(rng=1))

    assert store.weight_sum == pytest.approx(7.0)
    assert store.check_invariants() == []


@pytest.mark.parametrize("forgetting", ["proportional", "sampled"])
def test_capacity_bounds_weight_sum(forgetting: str) -> None:
    store = WeightStore()
    policy = CapacityPolicy(10.0, forgetting, Sampler(rng=4))

    for step in range(60):
        policy.learn(store, "ab"[step % 2], 1.0)
        assert store.weight_sum <= 10.0 * (1.0 + 1e-9)
    assert store.check_invariants() == []


def test_capacity_clamps_single_event_mass() -> None:
    store = WeightStore()
    policy = CapacityPolicy(5.0)

    policy.learn(store, "a", 100.0)

    assert store.weight("a") == pytest.approx(5.0)


def test_zero_capacity_learns_nothing() -> None:
    store = WeightStore()
    policy = CapacityPolicy(0.0)

    policy.learn(store, "a", 1.0)

    assert len(store) == 0


def test_capacity_set_scalar_shrinks_proportionally() -> None:
    store = _store(a=6.0, b=2.0)
    policy = CapacityPolicy()

    policy.set_scalar(store, 4.0)

    assert policy.capacity == 4.0
    assert store.weight("a") == pytest.approx(3.0)
    assert store.weight("b") == pytest.approx(1.0)


def test_capacity_negative_clamps_to_zero() -> None:
    assert CapacityPolicy(-3.0).capacity == 0.0
    assert CapacityPolicy(None).capacity == math.inf


def test_capacity_rejects_unknown_forgetting() -> None:
    with pytest.raises(ValueError):
        CapacityPolicy(1.0, "random")


def test_capacity_preflight_detects_sum_overflow() -> None:
    store = _store(a=SAFE_MAX / 2.0)

    with pytest.raises(DistributionOverflowError):
        CapacityPolicy().preflight(store, 3, SAFE_MAX / 2.0)


def test_recency_grows_event_weight() -> None:
    store = WeightStore()
    policy = RecencyPolicy(2.0)

    policy.learn(store, "a", 1.0)
    policy.learn(store, "b", 1.0)

    assert store.weight("a") == pytest.approx(2.0)
    assert store.weight("b") == pytest.approx(4.0)
    assert policy.event_weight == pytest.approx(4.0)
    assert store.order == ("b", "a")


def test_recency_unit_rate_counts_events() -> None:
    store = WeightStore()
    policy = RecencyPolicy(1.0)

    for category in "aab":
        policy.learn(store, category, 1.0)

    assert store.weight("a") == pytest.approx(2.0)
    assert store.weight("b") == pytest.approx(1.0)


def test_recency_infinite_rate_keeps_only_newest() -> None:
    store = WeightStore()
    policy = RecencyPolicy(math.inf)

    for category in "abc":
        policy.learn(store, category, 1.0)

    assert store.order == ("c",)
    assert policy.event_weight == 1.0


def test_recency_unlearn_reverses_learn() -> None:
    store = WeightStore()
    policy = RecencyPolicy(1.5)
    policy.learn(store, "x", 1.0)
    before = policy.event_weight

    for category in "aba":
        policy.learn(store, category, 1.0)
    for category in reversed("aba"):
        policy.unlearn(store, category, 1.0)

    assert policy.event_weight == pytest.approx(before)
    assert store.weight("a") == pytest.approx(0.0, abs=1e-9)
    assert store.weight("b") == pytest.approx(0.0, abs=1e-9)
    assert store.weight("x") == pytest.approx(1.5)


def test_recency_rescales_before_overflow() -> None:
    store = WeightStore()
    policy = RecencyPolicy(1e10)

    for step in range(400):
        policy.learn(store, "ab"[step % 2], 1.0)

    assert math.isfinite(store.weight_sum)
    assert math.isfinite(policy.event_weight)
    assert store.check_invariants() == []
    assert store.weight("b") / store.weight_sum > 0.99


def test_recency_preflight_rejects_unrepresentable_mass() -> None:
    with pytest.raises(DistributionOverflowError):
        RecencyPolicy(4.0).preflight(WeightStore(), 1, sys.float_info.max)


def test_recency_set_scalar_restarts_collapsed_event_weight() -> None:
    store = WeightStore()
    policy = RecencyPolicy(0.0)
    policy.learn(store, "a", 1.0)
    assert policy.event_weight == 0.0

    policy.set_scalar(store, 2.0)

    assert policy.learning_rate == 2.0
    assert policy.event_weight == 1.0


def test_capacity_replaced_tolerates_rounding_above_capacity() -> None:
    store = WeightStore()
    store.replace([("a", 2.0), ("b", 1.0 + 2.0**-50)])
    assert store.weight_sum > 3.0

    CapacityPolicy(3.0).replaced(store)

    assert store.weight("a") == 2.0
    assert store.weight("b") == 1.0 + 2.0**-50


def test_capacity_replaced_forgets_real_excess() -> None:
    store = WeightStore()
    store.replace([("a", 6.0), ("b", 2.0)])

    CapacityPolicy(4.0).replaced(store)

    assert store.weight("a") == pytest.approx(3.0)
    assert store.weight("b") == pytest.approx(1.0)


@pytest.mark.parametrize("rate", [2.0, 1.5, 1.0, 0.8])
def test_recency_replaced_recovers_event_weight_of_unit_stream(rate: float) -> None:
    learned = WeightStore()
    policy = RecencyPolicy(rate)
    for step in range(20):
        policy.learn(learned, "abc"[step % 3], 1.0)

    restored = RecencyPolicy(rate, event_weight=123.0)
    restored.replaced(learned.copy())

    assert restored.event_weight == pytest.approx(policy.event_weight, rel=1e-9)


def test_recency_replaced_with_more_weight_than_rate_allows() -> None:
    store = _store(a=3.0)
    policy = RecencyPolicy(0.5)

    policy.replaced(store)

    assert policy.event_weight == SAFE_MIN
    assert store.weight("a") == 3.0


def test_recency_preflight_accepts_huge_finite_rate() -> None:
    RecencyPolicy(1e308).preflight(WeightStore(), 1, 1.0)
