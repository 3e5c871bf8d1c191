"""Adaptive categorical distribution.

``CategoricalDistribution`` tracks the relative frequency of an unbounded set
of categories observed as a stream of events.  It ranks categories by
probability, samples from the learned distribution and can forget old
evidence either by capping the total weight (capacity mode) or by weighting
recent events more (recency mode).

Usage::

    d = CategoricalDistribution()
    d.learn(["a", "a", "b", "c"])
    d.prob("a")          # 0.5
    d.head(2)            # ["a", "c"]
    d.sample(10)

The structure is a single-threaded value: callers sharing it across threads
must serialise mutations themselves.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)

from .adaptation import CapacityPolicy, RecencyPolicy
from .codec import decode_snapshot, encode_snapshot
from .common import (
    CAPACITY_MODE,
    DEFAULT_PRECISION,
    FORGETTING_STRATEGIES,
    MAX_PRECISION,
    MODES,
    PROPORTIONAL_FORGETTING,
    RECENCY_MODE,
    InvalidDistributionError,
    adaptation_from_learning_rate,
    coerce_capacity,
    coerce_float,
    coerce_learning_rate,
    coerce_mass,
    ensure_categories,
    learning_rate_from_adaptation,
)
from .sampling import RandomSource, Sampler, SamplingConfig
from .store import WeightStore, sorted_pairs

logger = logging.getLogger(__name__)

T = TypeVar("T")
Policy = Union[CapacityPolicy, RecencyPolicy]
Visitor = Callable[[Hashable, float, int], Any]


def _coerce_dataclass_config(
    value: object,
    cls: Type[T],
    factory: Callable[[], T],
) -> T:
    """Return an instance of ``cls`` merging ``value`` with default fields.

    Nested configuration sections may be given as dictionaries so that callers
    override only the parameters they care about.  ``factory`` is evaluated for
    each coercion to avoid sharing defaults between configurations.
    """

    if isinstance(value, cls):
        return value
    if isinstance(value, dict):
        default = factory()
        init_fields = {field.name for field in dataclasses.fields(cls) if field.init}
        merged = {name: getattr(default, name) for name in init_fields}
        for key, val in value.items():
            if key in init_fields:
                merged[key] = val
        return cls(**merged)  # type: ignore[arg-type]
    raise TypeError(f"Expected {cls.__name__} or dict, got {type(value)!r}")


@dataclass(frozen=True)
class DistributionConfig:
    mode: str = CAPACITY_MODE
    capacity: Optional[float] = math.inf
    learning_rate: float = 1.0
    forgetting: str = PROPORTIONAL_FORGETTING
    sampling: SamplingConfig = field(default_factory=SamplingConfig)

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}")
        if self.forgetting not in FORGETTING_STRATEGIES:
            raise ValueError(
                f"forgetting must be one of {FORGETTING_STRATEGIES}, got {self.forgetting!r}"
            )
        object.__setattr__(self, "capacity", coerce_capacity(self.capacity))
        object.__setattr__(self, "learning_rate", coerce_learning_rate(self.learning_rate))
        object.__setattr__(
            self,
            "sampling",
            _coerce_dataclass_config(self.sampling, SamplingConfig, SamplingConfig),
        )


class CategoricalDistribution:
    """Adaptive categorical distribution over hashable categories."""

    def __init__(
        self,
        config: Union[DistributionConfig, Mapping[str, object], None] = None,
        *,
        rng: RandomSource = None,
    ) -> None:
        if config is None:
            config = DistributionConfig()
        elif not isinstance(config, DistributionConfig):
            config = _coerce_dataclass_config(dict(config), DistributionConfig, DistributionConfig)
        self.config = config
        self._store = WeightStore()
        self._sampler = Sampler(config.sampling, rng)
        self._policy: Policy = self._make_policy(config.mode, config.capacity, config.learning_rate)

    @classmethod
    def with_capacity(
        cls,
        capacity: Optional[float] = math.inf,
        forgetting: str = PROPORTIONAL_FORGETTING,
        *,
        rng: RandomSource = None,
    ) -> "CategoricalDistribution":
        config = DistributionConfig(mode=CAPACITY_MODE, capacity=capacity, forgetting=forgetting)
        return cls(config, rng=rng)

    @classmethod
    def with_learning_rate(
        cls, learning_rate: float = 1.0, *, rng: RandomSource = None
    ) -> "CategoricalDistribution":
        return cls(DistributionConfig(mode=RECENCY_MODE, learning_rate=learning_rate), rng=rng)

    @classmethod
    def from_dump(
        cls,
        snapshot: Sequence[object],
        config: Union[DistributionConfig, Mapping[str, object], None] = None,
        *,
        rng: RandomSource = None,
    ) -> "CategoricalDistribution":
        """Build a distribution from a snapshot; ``config`` selects the mode."""

        return cls(config, rng=rng).load(snapshot)

    def _make_policy(self, mode: str, capacity: float, learning_rate: float) -> Policy:
        if mode == RECENCY_MODE:
            return RecencyPolicy(learning_rate)
        return CapacityPolicy(capacity, self.config.forgetting, self._sampler)

    # ------------------------------------------------------------------
    # Python protocols
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, category: object) -> bool:
        return category in self._store

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._store.order)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoricalDistribution):
            return NotImplemented
        return (
            self.mode == other.mode
            and self._policy.scalar == other._policy.scalar
            and list(self._store.items()) == list(other._store.items())
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"CategoricalDistribution(mode={self.mode!r}, "
            f"categories={len(self._store)}, weight_sum={self._store.weight_sum!r})"
        )

    def __str__(self) -> str:
        return self.render()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def mode(self) -> str:
        return self._policy.mode

    @property
    def store(self) -> WeightStore:
        return self._store

    @property
    def weight_sum(self) -> float:
        return self._store.weight_sum

    def size(self) -> float:
        """Sum of all weights."""

        return self._store.weight_sum

    def num_categories(self) -> int:
        return len(self._store)

    def weight(self, category: Hashable) -> float:
        return self._store.weight(category)

    def prob(self, category: Hashable) -> float:
        """Probability of ``category``; 0 for unknown categories."""

        total = self._store.weight_sum
        if total <= 0.0:
            return 0.0
        return self._store.weight(category) / total

    def probs(self, categories: Optional[Sequence[Hashable]] = None) -> List[float]:
        """Probabilities of ``categories``, or of every category in rank order."""

        if categories is None:
            categories = self._store.order
        else:
            categories = ensure_categories(categories)
        return [self.prob(category) for category in categories]

    def rank(self, category: Hashable) -> Union[int, float]:
        """Position of ``category`` in probability order, ``inf`` if unknown."""

        position = self._store.index(category)
        return math.inf if position is None else position

    def ranks(self, categories: Optional[Sequence[Hashable]] = None) -> List[Union[int, float]]:
        if categories is None:
            return list(range(len(self._store)))
        return [self.rank(category) for category in ensure_categories(categories)]

    def head(self, n: int = 0) -> List[Hashable]:
        """The ``n`` most probable categories; ``0`` returns all of them."""

        order = self._store.order
        if n < 0:
            return []
        if n == 0:
            return list(order)
        return list(order[:n])

    def peak(self, tolerance: float = 0.0) -> List[Hashable]:
        """Most probable category plus those within ``tolerance`` of it.

        ``tolerance`` is a fraction of the top weight, in ``[0, 1]``.
        """

        if len(self._store) == 0:
            return []
        top = self._store.weight_at(0)
        floor = top - top * tolerance
        result: List[Hashable] = []
        for category, weight in self._store.items():
            if result and weight < floor:
                break
            result.append(category)
        return result

    def each(self, visitor: Visitor) -> "CategoricalDistribution":
        """Call ``visitor(category, probability, rank)`` in probability order."""

        # Iterate over a copy: the visitor may mutate the distribution.
        for rank, (category, weight) in enumerate(list(self._store.items())):
            visitor(category, self._probability_of_weight(weight), rank)
        return self

    def map(self, visitor: Visitor) -> List[Any]:
        return [
            visitor(category, self._probability_of_weight(weight), rank)
            for rank, (category, weight) in enumerate(list(self._store.items()))
        ]

    def sample(self, n: Optional[int] = 1, ordered: bool = False) -> List[Hashable]:
        """Draw ``n`` categories with replacement, proportionally to weight.

        With ``ordered`` the draws come back most probable first at no extra
        cost.  ``n <= 0`` or an empty distribution yields ``[]``.
        """

        if n is None:
            n = 1
        return self._sampler.sample(self._store, int(n), ordered)

    def render(self, precision: Optional[int] = DEFAULT_PRECISION) -> str:
        """Human readable table: one ``category probability`` line per category."""

        if precision is None:
            precision = DEFAULT_PRECISION
        precision = max(0, min(int(precision), MAX_PRECISION))
        labels = [str(category) for category in self._store.order]
        width = max((len(label) for label in labels), default=0)
        lines = [
            f"{label.ljust(width)} {probability:.{precision}f}\n"
            for label, probability in zip(labels, self.probs())
        ]
        return "".join(lines)

    def dist(
        self, new_distribution: Optional[Mapping[Hashable, float]] = None
    ) -> Union[Dict[Hashable, float], "CategoricalDistribution"]:
        """Get the normalised distribution, or replace it.

        Without an argument returns ``{category: probability}``.  With a
        mapping of non-negative weights (not necessarily normalised) the
        current state is replaced and ``self`` is returned.
        """

        if new_distribution is None:
            return {
                category: self._probability_of_weight(weight)
                for category, weight in self._store.items()
            }

        if not isinstance(new_distribution, Mapping):
            raise InvalidDistributionError(
                f"Distribution must be a mapping, got {type(new_distribution).__name__}"
            )
        pairs = []
        for category, raw in new_distribution.items():
            weight = coerce_float(raw)
            if weight is None or math.isnan(weight) or weight < 0.0:
                raise InvalidDistributionError(
                    f"Weight of {category!r} must be a non-negative number, got {raw!r}"
                )
            pairs.append((category, weight))
        if not math.isfinite(math.fsum(weight for _, weight in pairs)):
            raise InvalidDistributionError("Distribution total is not finite")

        self._store.replace(sorted_pairs(pairs))
        self._policy.replaced(self._store)
        return self

    # ------------------------------------------------------------------
    # Adaptation parameters
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> float:
        """Maximum weight sum in capacity mode; ``inf`` when unbounded."""

        if isinstance(self._policy, CapacityPolicy):
            return self._policy.capacity
        return math.inf

    @capacity.setter
    def capacity(self, value: Optional[float]) -> None:
        if isinstance(self._policy, CapacityPolicy):
            self._policy.set_scalar(self._store, value)
            return
        logger.debug("Switching from recency mode to capacity mode")
        policy = CapacityPolicy(coerce_capacity(value), self.config.forgetting, self._sampler)
        policy.replaced(self._store)
        self._policy = policy

    @property
    def learning_rate(self) -> float:
        """Per-event weight growth in recency mode; 1 in capacity mode."""

        if isinstance(self._policy, RecencyPolicy):
            return self._policy.learning_rate
        return 1.0

    @learning_rate.setter
    def learning_rate(self, value: float) -> None:
        if isinstance(self._policy, RecencyPolicy):
            self._policy.set_scalar(self._store, value)
            return
        logger.debug("Switching from capacity mode to recency mode")
        self._policy = RecencyPolicy(coerce_learning_rate(value))

    @property
    def adaptation_rate(self) -> float:
        """Learning rate expressed in ``[0, 1]``: 0 never forgets, 1 keeps only the newest."""

        return adaptation_from_learning_rate(self.learning_rate)

    @adaptation_rate.setter
    def adaptation_rate(self, value: float) -> None:
        self.learning_rate = learning_rate_from_adaptation(value)

    @property
    def event_weight(self) -> Optional[float]:
        """Weight of the most recent event in recency mode, else ``None``."""

        if isinstance(self._policy, RecencyPolicy):
            return self._policy.event_weight
        return None

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def learn(self, categories: Sequence[Hashable], mass: float = 1.0) -> "CategoricalDistribution":
        """Learn one event per entry of ``categories``, each of the given mass.

        Mass may be negative.  Returns ``self`` for chaining.
        """

        events = ensure_categories(categories)
        mass = coerce_mass(mass)
        self._policy.preflight(self._store, len(events), mass)
        for category in events:
            self._policy.learn(self._store, category, mass)
        return self

    def learn_one(self, category: Hashable, mass: float = 1.0) -> "CategoricalDistribution":
        return self.learn([category], mass)

    def unlearn(self, categories: Sequence[Hashable], mass: float = 1.0) -> "CategoricalDistribution":
        """Inverse of :meth:`learn`, clamped so no weight goes below zero.

        Events are reversed last first, so ``unlearn`` of the same sequence
        undoes a ``learn`` exactly in recency mode.
        """

        events = ensure_categories(categories)
        mass = coerce_mass(mass)
        self._policy.preflight(self._store, len(events), -mass)
        for category in reversed(events):
            self._policy.unlearn(self._store, category, mass)
        return self

    def unlearn_one(self, category: Hashable, mass: float = 1.0) -> "CategoricalDistribution":
        return self.unlearn([category], mass)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def dump(self) -> List[object]:
        """Flat snapshot ``[cat, weight, ..., scalar]`` in probability order."""

        return encode_snapshot(self._store.items(), self._policy.scalar)

    def load(self, snapshot: Sequence[object], *, strict: bool = False) -> "CategoricalDistribution":
        """Replace the state with ``snapshot``.

        The pairs must already be in probability order; the order is rebuilt
        positionally.  The final scalar is read as capacity or learning rate
        depending on the current mode; in recency mode the event weight is
        derived from the loaded weight sum.  Returns ``self``.
        """

        pairs, scalar = decode_snapshot(snapshot, strict=strict)
        if isinstance(self._policy, RecencyPolicy):
            rate = coerce_learning_rate(scalar)
            self._store.replace(pairs)
            self._policy.learning_rate = rate
        else:
            capacity = coerce_capacity(scalar)
            self._store.replace(pairs)
            self._policy.capacity = capacity
        self._policy.replaced(self._store)
        logger.debug("Loaded %d categories in %s mode", len(self._store), self.mode)
        return self

    def copy(self) -> "CategoricalDistribution":
        """Independent copy sharing configuration but not state or random stream."""

        return self._spawn().load(self.dump())

    def subset(self, categories: Sequence[Hashable]) -> "CategoricalDistribution":
        """New distribution with only ``categories``, keeping their weights.

        Probabilities are renormalised over the subset; ratios between the
        kept categories are unchanged.  Unknown categories are ignored.
        """

        wanted = set(ensure_categories(categories))
        clone = self._spawn()
        clone._store.replace(
            (category, weight) for category, weight in self._store.items() if category in wanted
        )
        clone._policy = self._policy.copy(clone._sampler)
        return clone

    def _spawn(self) -> "CategoricalDistribution":
        # Empty instance of the same class and mode with a child random stream.
        return type(self)(
            dataclasses.replace(self.config, mode=self.mode),
            rng=self._sampler.rng.spawn(1)[0],
        )

    def check_invariants(self) -> List[str]:
        return self._store.check_invariants()

    def _probability_of_weight(self, weight: float) -> float:
        total = self._store.weight_sum
        return weight / total if total > 0.0 else 0.0


__all__ = [
    "CategoricalDistribution",
    "DistributionConfig",
]
