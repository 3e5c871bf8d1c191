"""Policies turning learned events into weight changes.

Two mutually exclusive policies are available:

``CapacityPolicy``
    Every event adds its mass to the category weight.  When the sum of weights
    would exceed ``capacity`` older evidence is forgotten first, either by
    shrinking every weight proportionally or by decrementing categories drawn
    from the distribution itself.

``RecencyPolicy``
    Every event weighs ``learning_rate`` times the previous event, so with a
    rate above one older evidence fades geometrically.  Instead of decaying the
    stored weights the policy grows the weight of new events; guards rescale
    everything by a common positive factor before values leave the safe float
    range.  A common factor changes no ratio, hence no probability.
"""

from __future__ import annotations

import logging
import math
from typing import Hashable, Optional

from .common import (
    CAPACITY_MODE,
    CAPACITY_TOLERANCE,
    FORGETTING_STRATEGIES,
    PROPORTIONAL_FORGETTING,
    RECENCY_MODE,
    SAFE_MAX,
    SAFE_MIN,
    DistributionOverflowError,
    coerce_capacity,
    coerce_learning_rate,
)
from .sampling import Sampler
from .store import WeightStore

logger = logging.getLogger(__name__)


def forget_proportionally(store: WeightStore, amount: float) -> None:
    """Shrink every weight so that the sum decreases by ``amount`` down to zero."""

    total = store.weight_sum
    if total <= 0.0 or amount <= 0.0:
        return
    target = max(0.0, total - amount)
    logger.debug("Forgetting %r of %r proportionally", amount, total)
    store.scale(target / total)


def forget_by_sampling(store: WeightStore, amount: float, sampler: Sampler) -> None:
    """Decrement categories drawn by probability, one unit at a time."""

    remaining = amount
    steps = 0
    while remaining > 0.0 and len(store) > 0:
        category = sampler.draw_one(store)
        if category is None:
            break
        decrement = min(1.0, remaining, store.weight(category))
        store.add(category, -decrement)
        remaining -= decrement
        steps += 1
    logger.debug("Forgot %r by %d sampled decrements", amount - remaining, steps)


class CapacityPolicy:
    """Flat increments with a bounded weight sum."""

    mode = CAPACITY_MODE

    def __init__(
        self,
        capacity: object = math.inf,
        forgetting: str = PROPORTIONAL_FORGETTING,
        sampler: Optional[Sampler] = None,
    ) -> None:
        if forgetting not in FORGETTING_STRATEGIES:
            raise ValueError(
                f"forgetting must be one of {FORGETTING_STRATEGIES}, got {forgetting!r}"
            )
        self.capacity = coerce_capacity(capacity)
        self.forgetting = forgetting
        self.sampler = sampler or Sampler()

    @property
    def scalar(self) -> float:
        return self.capacity

    def set_scalar(self, store: WeightStore, value: object) -> None:
        capacity = coerce_capacity(value)
        excess = store.weight_sum - capacity
        if excess > 0.0:
            # Shrinking the capacity always divides; sampled decrements would
            # need as many draws as the excess is large.
            forget_proportionally(store, excess)
        self.capacity = capacity

    def preflight(self, store: WeightStore, events: int, mass: float) -> None:
        if store.weight_sum + events * max(mass, 0.0) > SAFE_MAX:
            raise DistributionOverflowError(
                f"Learning {events} events of mass {mass!r} overflows the weight sum"
            )

    def learn(self, store: WeightStore, category: Hashable, mass: float) -> None:
        if mass > 0.0:
            # A single event never outweighs the whole capacity.
            mass = min(mass, self.capacity)
            if mass == 0.0:
                return
            excess = store.weight_sum + mass - self.capacity
            if excess > 0.0:
                self._forget(store, excess)
        store.add(category, mass)

    def unlearn(self, store: WeightStore, category: Hashable, mass: float) -> None:
        self.learn(store, category, -mass)

    def replaced(self, store: WeightStore) -> None:
        """Re-establish the capacity bound after a bulk replacement.

        A sum within rounding of the capacity is kept as is, so a snapshot of
        a full distribution loads back unchanged.
        """

        excess = store.weight_sum - self.capacity
        if excess > self.capacity * CAPACITY_TOLERANCE:
            forget_proportionally(store, excess)

    def copy(self, sampler: Sampler) -> "CapacityPolicy":
        return CapacityPolicy(self.capacity, self.forgetting, sampler)

    def _forget(self, store: WeightStore, amount: float) -> None:
        if self.forgetting == PROPORTIONAL_FORGETTING:
            forget_proportionally(store, amount)
        else:
            forget_by_sampling(store, amount, self.sampler)


class RecencyPolicy:
    """Exponential recency weighting driven by ``learning_rate``.

    ``event_weight`` is the weight given to the most recent event; the next
    event receives ``event_weight * learning_rate``.
    """

    mode = RECENCY_MODE

    def __init__(self, learning_rate: object = 1.0, event_weight: float = 1.0) -> None:
        self.learning_rate = coerce_learning_rate(learning_rate)
        self.event_weight = event_weight

    @property
    def scalar(self) -> float:
        return self.learning_rate

    def set_scalar(self, store: WeightStore, value: object) -> None:
        self.learning_rate = coerce_learning_rate(value)
        if self.event_weight == 0.0:
            # A zero rate collapsed the event weight; restart in event units.
            self.event_weight = 1.0

    def preflight(self, store: WeightStore, events: int, mass: float) -> None:
        rate = self.learning_rate
        if math.isinf(rate):
            return
        # The guards in ``learn`` rescale any finite product; only an
        # increment that is infinite on its own cannot be represented.
        if not math.isfinite(abs(mass) * max(rate, 1.0)):
            raise DistributionOverflowError(
                f"Mass {mass!r} at learning rate {rate!r} is not representable"
            )
        if 0.0 < rate and not math.isfinite(1.0 / rate):
            raise DistributionOverflowError(
                f"Learning rate {rate!r} cannot be inverted by unlearn"
            )

    def learn(self, store: WeightStore, category: Hashable, mass: float) -> None:
        rate = self.learning_rate
        if math.isinf(rate):
            # Only the newest event matters: forget everything.
            logger.debug("Infinite learning rate: resetting %d categories", len(store))
            store.clear()
            self.event_weight = 1.0
            store.add(category, mass)
            return

        upcoming = self.event_weight * rate
        if max(1.0, abs(mass)) * upcoming > SAFE_MAX:
            logger.debug("Event weight %r would overflow; rescaling", upcoming)
            store.scale(1.0 / self.event_weight)
            self.event_weight = 1.0
            upcoming = rate
        elif 0.0 < upcoming < SAFE_MIN:
            self._renormalize(store)
            upcoming = self.event_weight * rate

        increment = mass * upcoming
        if store.weight_sum + abs(increment) > SAFE_MAX:
            # Bring the post-event total back to about 2.  Halving first keeps
            # the intermediate sum finite.
            factor = 1.0 / (0.5 * store.weight_sum + 0.5 * abs(increment))
            logger.debug("Weight sum near overflow; rescaling by %r", factor)
            store.scale(factor)
            upcoming *= factor
            increment = mass * upcoming
        if not math.isfinite(increment):
            raise DistributionOverflowError(f"Event weight {increment!r} is not finite")

        self.event_weight = upcoming
        store.add(category, increment)

    def unlearn(self, store: WeightStore, category: Hashable, mass: float) -> None:
        decrement = mass * self.event_weight
        if not math.isfinite(decrement):
            raise DistributionOverflowError(f"Event weight {decrement!r} is not finite")
        store.add(category, -decrement)

        rate = self.learning_rate
        # Rates 0 and inf destroyed the previous event weight; keep the current.
        if rate == 0.0 or math.isinf(rate):
            return
        previous = self.event_weight / rate
        if previous > SAFE_MAX:
            store.scale(1.0 / self.event_weight)
            self.event_weight = 1.0
            previous = 1.0 / rate
        elif 0.0 < previous < SAFE_MIN:
            self._renormalize(store)
            previous = self.event_weight / rate
        self.event_weight = previous

    def replaced(self, store: WeightStore) -> None:
        """Derive the event weight from bulk weights.

        The weights are read as the outcome of unit events learned from an
        event weight of 1.  ``k`` such events at rate ``r`` sum to
        ``S = r + r**2 + ... + r**k``, so the latest event weighed
        ``r**k = 1 + S * (r - 1) / r``.  The relation is exact for such
        streams and a close estimate once a guard has rescaled the weights.
        """

        rate = self.learning_rate
        if rate == 0.0 or math.isinf(rate):
            # Either no event ever counts again or only the next one will.
            self.event_weight = 1.0
            return
        event_weight = 1.0 + store.weight_sum * (rate - 1.0) / rate
        if not event_weight > 0.0:
            # More weight than a rate below one can accumulate: the past
            # dominates every future event.
            event_weight = SAFE_MIN
        elif event_weight > SAFE_MAX:
            store.scale(1.0 / event_weight)
            event_weight = 1.0
        logger.debug("Derived event weight %r from weight sum %r", event_weight, store.weight_sum)
        self.event_weight = event_weight

    def copy(self, sampler: Sampler) -> "RecencyPolicy":
        return RecencyPolicy(self.learning_rate, self.event_weight)

    def _renormalize(self, store: WeightStore) -> None:
        peak = max(store.weight_sum, self.event_weight)
        if peak <= 0.0:
            return
        factor = 1.0 / peak
        if not math.isfinite(factor) or 0.5 <= factor <= 2.0:
            return
        logger.debug("Event weight %r near underflow; rescaling by %r", self.event_weight, factor)
        store.scale(factor)
        self.event_weight *= factor


__all__ = [
    "CapacityPolicy",
    "RecencyPolicy",
    "forget_by_sampling",
    "forget_proportionally",
]
