"""Category weights kept in probability order.

The store owns three structures that must agree at all times: the weight
mapping, the ``order`` list (most probable first) and the ``index`` mapping
that inverts ``order``.  A single weight change is repaired by moving the
category towards its sorted position, insertion-sort style, so the cost is
proportional to the distance moved rather than to the number of categories.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

from .common import SUM_TOLERANCE

logger = logging.getLogger(__name__)

_CANCELLATION_RATIO = 1e-3


class WeightStore:
    """Mapping ``category -> weight`` with an incrementally sorted ranking.

    Categories whose weight drops to zero are pruned, so every stored weight
    is strictly positive.
    """

    __slots__ = ("_weights", "_order", "_index", "_sum")

    def __init__(self) -> None:
        self._weights: Dict[Hashable, float] = {}
        self._order: List[Hashable] = []
        self._index: Dict[Hashable, int] = {}
        self._sum = 0.0

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, category: object) -> bool:
        return category in self._weights

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._order)

    @property
    def weight_sum(self) -> float:
        return self._sum

    @property
    def order(self) -> Tuple[Hashable, ...]:
        return tuple(self._order)

    def weight(self, category: Hashable) -> float:
        return self._weights.get(category, 0.0)

    def index(self, category: Hashable) -> Optional[int]:
        return self._index.get(category)

    def at(self, position: int) -> Hashable:
        return self._order[position]

    def weight_at(self, position: int) -> float:
        return self._weights[self._order[position]]

    def items(self) -> Iterator[Tuple[Hashable, float]]:
        """Yield ``(category, weight)`` pairs in probability order."""

        weights = self._weights
        for category in self._order:
            yield category, weights[category]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def upsert(self, category: Hashable, weight: float) -> None:
        """Set the weight of ``category`` and restore the ordering.

        New categories are appended to the tail before being moved.  A weight
        of zero or less removes the category.
        """

        if weight <= 0.0:
            if category in self._weights:
                self.remove(category)
            return
        previous = self._weights.get(category)
        if previous is None:
            self._index[category] = len(self._order)
            self._order.append(category)
            previous = 0.0
        self._weights[category] = weight
        self._account(weight - previous)
        self._sort_one(category)

    def add(self, category: Hashable, delta: float) -> float:
        """Add ``delta`` to the weight of ``category``, flooring at zero.

        Returns the change actually applied, which differs from ``delta``
        only when the floor was hit.
        """

        previous = self._weights.get(category, 0.0)
        updated = max(0.0, previous + delta)
        self.upsert(category, updated)
        return updated - previous

    def remove(self, category: Hashable) -> None:
        position = self._index.pop(category)
        weight = self._weights.pop(category)
        del self._order[position]
        for shifted in range(position, len(self._order)):
            self._index[self._order[shifted]] = shifted
        self._account(-weight)

    def _account(self, delta: float) -> None:
        self._sum += delta
        # A subtraction that cancels most of the sum leaves mostly rounding
        # error behind.
        if not self._order or self._sum < -delta * _CANCELLATION_RATIO:
            self.resync()

    def scale(self, factor: float) -> None:
        """Multiply every weight by ``factor`` (``factor >= 0``).

        A global positive factor keeps every ratio and therefore the order,
        so only the pruning of underflowed weights touches ``order``.  The
        sum is recomputed from scratch since the scan is paid anyway.
        """

        if factor == 1.0:
            return
        weights = self._weights
        total = 0.0
        survivors: List[Hashable] = []
        for category in self._order:
            value = weights[category] * factor
            if value > 0.0:
                weights[category] = value
                total += value
                survivors.append(category)
            else:
                del weights[category]
        if len(survivors) != len(self._order):
            logger.debug(
                "Scaling by %r pruned %d categories",
                factor,
                len(self._order) - len(survivors),
            )
            self._order = survivors
            self._index = {category: i for i, category in enumerate(survivors)}
        self._sum = total

    def replace(self, pairs: Iterable[Tuple[Hashable, float]]) -> None:
        """Rebuild the store positionally from pairs already in probability order.

        The ordering is trusted, not checked.  Pairs with a non-positive weight
        are skipped to keep the pruning rule.
        """

        self._weights = {}
        self._order = []
        self._index = {}
        for category, weight in pairs:
            if weight <= 0.0:
                continue
            self._index[category] = len(self._order)
            self._order.append(category)
            self._weights[category] = weight
        self.resync()

    def clear(self) -> None:
        self.replace(())

    def resync(self) -> None:
        """Recompute the weight sum by a full scan."""

        self._sum = math.fsum(self._weights.values()) if self._weights else 0.0

    def copy(self) -> "WeightStore":
        clone = WeightStore()
        clone._weights = dict(self._weights)
        clone._order = list(self._order)
        clone._index = dict(self._index)
        clone._sum = self._sum
        return clone

    def _sort_one(self, category: Hashable) -> None:
        # Precondition: ``category`` is the only element out of order.  The
        # moved category lands ahead of older categories of equal weight.
        order = self._order
        index = self._index
        weights = self._weights
        position = index[category]
        weight = weights[category]
        last = len(order) - 1

        if position == last:
            backwards = True
        elif position == 0:
            backwards = False
        else:
            backwards = weights[order[position - 1]] <= weight

        if backwards:
            while position > 0 and weights[order[position - 1]] <= weight:
                neighbour = order[position - 1]
                order[position] = neighbour
                index[neighbour] = position
                position -= 1
        else:
            while position < last and weights[order[position + 1]] > weight:
                neighbour = order[position + 1]
                order[position] = neighbour
                index[neighbour] = position
                position += 1

        order[position] = category
        index[category] = position

    def check_invariants(self, tolerance: float = SUM_TOLERANCE) -> List[str]:
        """Return human readable descriptions of every violated invariant."""

        problems: List[str] = []
        if not len(self._order) == len(self._weights) == len(self._index):
            problems.append(
                f"size mismatch: order={len(self._order)} "
                f"weights={len(self._weights)} index={len(self._index)}"
            )
        for position, category in enumerate(self._order):
            if self._index.get(category) != position:
                problems.append(f"index of {category!r} is not {position}")
            if self._weights.get(category, 0.0) <= 0.0:
                problems.append(f"weight of {category!r} is not positive")
            if position > 0:
                previous = self._order[position - 1]
                if self._weights.get(previous, 0.0) < self._weights.get(category, 0.0):
                    problems.append(f"{previous!r} ranks ahead of heavier {category!r}")
        exact = math.fsum(self._weights.values())
        if abs(self._sum - exact) > tolerance * max(1.0, exact):
            problems.append(f"weight sum drifted: {self._sum!r} != {exact!r}")
        return problems


def sorted_pairs(weights: Iterable[Tuple[Hashable, float]]) -> List[Tuple[Hashable, float]]:
    """Sort pairs by descending weight, keeping input order among ties."""

    return sorted(weights, key=lambda pair: pair[1], reverse=True)


__all__ = ["WeightStore", "sorted_pairs"]
