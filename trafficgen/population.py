"""Simulated user population with skewed activity weights.

Each user gets one weight drawn from a heavy-tailed distribution (log-normal
or Pareto), so a small minority of "heavy users" ends up owning a large share
of the total and receives proportionally more events.  The weights go into a
DiscreteDistribution over user indices; picking a user is a binary search
over its cumulative table.
"""

import random
from dataclasses import dataclass
from typing import Sequence

from trafficgen.distributions import DiscreteDistribution
from trafficgen.errors import ConfigurationError

_USER_ID_BASE = 90000

DISTRIBUTIONS = ("lognormal", "pareto")


@dataclass(frozen=True)
class SimulatedUser:
    index: int
    weight: float

    @property
    def user_id(self) -> str:
        return f"u_{_USER_ID_BASE + self.index}"


def draw_weights(rng: random.Random, population: int, distribution: str,
                 mu=0.0, sigma=1.0, alpha=1.16, x_min=1.0) -> list[float]:
    """One independent weight per user."""
    if population < 1:
        raise ConfigurationError(f"population must be >= 1, got {population}")

    if distribution == "lognormal":
        if sigma <= 0:
            raise ConfigurationError(f"lognormal sigma must be > 0, got {sigma}")
        return [rng.lognormvariate(mu, sigma) for _ in range(population)]

    if distribution == "pareto":
        if alpha <= 0:
            raise ConfigurationError(f"pareto alpha must be > 0, got {alpha}")
        if x_min <= 0:
            raise ConfigurationError(f"pareto x_min must be > 0, got {x_min}")
        return [x_min * rng.paretovariate(alpha) for _ in range(population)]

    raise ConfigurationError(
        f"Unknown weight distribution '{distribution}' "
        f"(expected one of {', '.join(DISTRIBUTIONS)})"
    )


class PopulationWeights:

    def __init__(self, weights: Sequence[float]):
        self._weights = tuple(float(w) for w in weights)
        self.table: DiscreteDistribution[int] = DiscreteDistribution(
            zip(range(len(self._weights)), self._weights)
        )

    @classmethod
    def build(cls, rng: random.Random, population: int,
              distribution: str = "lognormal", **params) -> "PopulationWeights":
        return cls(draw_weights(rng, population, distribution, **params))

    @classmethod
    def from_weights(cls, weights: Sequence[float]) -> "PopulationWeights":
        return cls(weights)

    @property
    def cumulative(self) -> tuple[float, ...]:
        return self.table.cumulative

    @property
    def total(self) -> float:
        return self.table.total

    def pick(self, rng: random.Random) -> int:
        return self.table.pick_index(rng)

    def user(self, index: int) -> SimulatedUser:
        return SimulatedUser(index=index, weight=self._weights[index])

    def heavy_share(self, fraction: float = 0.1) -> float:
        """Share of total weight owned by the heaviest *fraction* of users."""
        if self.total <= 0:
            return 0.0
        top = max(1, int(len(self) * fraction))
        heaviest = sorted(self._weights, reverse=True)[:top]
        return sum(heaviest) / self.total

    def __len__(self) -> int:
        return len(self._weights)
