"""Weighted discrete distribution with O(log k) sampling.

Built once from (value, weight) pairs and queried many times.  The prefix-sum
table is immutable after construction, so a single instance can be shared by
any number of callers as long as each one brings its own random source.
"""

import bisect
import itertools
import math
import random
from typing import Generic, Iterable, Sequence, TypeVar

from trafficgen.errors import ConfigurationError

T = TypeVar("T")


class DiscreteDistribution(Generic[T]):
    __slots__ = ("values", "cumulative", "total")

    def __init__(self, pairs: Iterable[tuple[T, float]]):
        pairs = list(pairs)
        if not pairs:
            raise ConfigurationError("distribution needs at least one value")

        weights = []
        for value, weight in pairs:
            weight = float(weight)
            if not math.isfinite(weight) or weight < 0:
                raise ConfigurationError(
                    f"weight for {value!r} must be finite and >= 0, got {weight}"
                )
            weights.append(weight)

        self.values: tuple[T, ...] = tuple(v for v, _ in pairs)
        self.cumulative: tuple[float, ...] = tuple(itertools.accumulate(weights))
        self.total: float = self.cumulative[-1]

    @classmethod
    def uniform(cls, values: Sequence[T]) -> "DiscreteDistribution[T]":
        return cls((v, 1) for v in values)

    def pick_index(self, rng: random.Random) -> int:
        """Index of a value chosen with probability weight / total.

        bisect_right returns the first slot whose cumulative weight is
        strictly greater than the draw, which skips zero-weight entries.
        """
        if len(self.values) == 1:
            return 0
        if self.total <= 0:
            return rng.randrange(len(self.values))
        u = rng.random() * self.total
        idx = bisect.bisect_right(self.cumulative, u)
        if idx == len(self.values):
            # random() * total rounded up to total: take the last entry that
            # carries weight, skipping any zero-weight tail
            idx = bisect.bisect_left(self.cumulative, self.total)
        return idx

    def pick(self, rng: random.Random) -> T:
        return self.values[self.pick_index(rng)]

    def __len__(self) -> int:
        return len(self.values)
