from __future__ import annotations

import numpy as np
import pytest

from catdist.distribution.store import WeightStore, sorted_pairs


def _store(*pairs: tuple[str, float]) -> WeightStore:
    store = WeightStore()
    for category, weight in pairs:
        store.upsert(category, weight)
    return store


def test_upsert_keeps_probability_order() -> None:
    store = _store(("a", 1.0), ("b", 3.0), ("c", 2.0))

    assert store.order == ("b", "c", "a")
    assert [store.index(category) for category in "bca"] == [0, 1, 2]
    assert store.weight_sum == pytest.approx(6.0)
    assert store.check_invariants() == []


def test_new_category_ranks_ahead_of_equal_weights() -> None:
    store = _store(("a", 1.0), ("b", 1.0), ("c", 1.0))

    assert store.order == ("c", "b", "a")


def test_lowering_a_weight_moves_category_back() -> None:
    store = _store(("a", 5.0), ("b", 3.0), ("c", 2.0))

    store.upsert("a", 1.0)

    assert store.order == ("b", "c", "a")
    assert store.check_invariants() == []


def test_add_floors_at_zero_and_prunes() -> None:
    store = _store(("a", 2.0), ("b", 1.0))

    applied = store.add("a", -5.0)

    assert applied == pytest.approx(-2.0)
    assert "a" not in store
    assert store.order == ("b",)
    assert store.index("b") == 0
    assert store.weight_sum == pytest.approx(1.0)


def test_add_to_unknown_category_with_negative_delta_is_noop() -> None:
    store = _store(("a", 2.0))

    assert store.add("z", -1.0) == 0.0
    assert "z" not in store
    assert len(store) == 1


def test_remove_reindexes_tail() -> None:
    store = _store(("a", 3.0), ("b", 2.0), ("c", 1.0))

    store.remove("b")

    assert store.order == ("a", "c")
    assert store.index("c") == 1
    assert store.index("b") is None
    assert store.check_invariants() == []


def test_scale_prunes_underflowed_weights() -> None:
    store = _store(("a", 1.0), ("b", 1e-300))

    store.scale(1e-100)

    assert store.order == ("a",)
    assert store.weight("a") == pytest.approx(1e-100)
    assert store.weight_sum == pytest.approx(1e-100)
    assert store.check_invariants() == []


def test_replace_is_positional_and_skips_non_positive_weights() -> None:
    store = WeightStore()

    store.replace([("a", 3.0), ("b", 0.0), ("c", 1.0)])

    assert store.order == ("a", "c")
    assert store.index("c") == 1
    assert store.weight_sum == pytest.approx(4.0)


def test_copy_is_independent() -> None:
    store = _store(("a", 2.0), ("b", 1.0))
    clone = store.copy()

    clone.add("b", 5.0)

    assert store.order == ("a", "b")
    assert clone.order == ("b", "a")
    assert store.weight("b") == pytest.approx(1.0)


def test_check_invariants_reports_sum_drift() -> None:
    store = _store(("a", 2.0))
    store._sum = 5.0

    problems = store.check_invariants()

    assert any("drifted" in problem for problem in problems)
    store.resync()
    assert store.check_invariants() == []


def test_sorted_pairs_is_stable_among_ties() -> None:
    pairs = [("a", 1.0), ("b", 2.0), ("c", 1.0)]

    assert sorted_pairs(pairs) == [("b", 2.0), ("a", 1.0), ("c", 1.0)]


def test_random_updates_preserve_invariants() -> None:
    rng = np.random.default_rng(7)
    store = WeightStore()
    for _ in range(2000):
        category = int(rng.integers(25))
        delta = float(rng.normal(0.5, 2.0))
        store.add(category, delta)
        assert store.check_invariants() == []
    assert all(weight > 0.0 for _, weight in store.items())


def test_replace_sums_weights_exactly() -> None:
    store = WeightStore()

    store.replace([("a", 1e16), ("b", 1.0), ("c", 1.0)])

    assert store.weight_sum == 1e16 + 2.0
    assert store.check_invariants(tolerance=0.0) == []
