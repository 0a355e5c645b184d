"""Arrival sampler: expected rate in, event count for one slice out.

The expected rate is jittered first so consecutive slices at the same
calendar hour do not look machine-flat, then fed to a Poisson draw.
"""

import math
import random

from trafficgen.errors import ConfigurationError

# Above this mean the multiplicative method gets slow and exp(-mean)
# underflows toward zero; switch to the normal approximation.
_NORMAL_APPROX_THRESHOLD = 30.0


def poisson(rng: random.Random, mean: float) -> int:
    if mean <= 0:
        return 0

    if mean > _NORMAL_APPROX_THRESHOLD:
        return max(0, round(rng.gauss(mean, math.sqrt(mean))))

    # Knuth: multiply uniforms until the product drops below e^-mean.
    threshold = math.exp(-mean)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p < threshold:
            return k - 1


class ArrivalSampler:

    def __init__(self, jitter_ratio: float = 0.2):
        if not 0 <= jitter_ratio < 1:
            raise ConfigurationError(
                f"jitter_ratio must be in [0, 1), got {jitter_ratio}"
            )
        self.jitter_ratio = jitter_ratio

    def sample(self, rng: random.Random, expected_rate: float) -> int:
        if expected_rate <= 0:
            return 0
        factor = rng.uniform(1 - self.jitter_ratio, 1 + self.jitter_ratio)
        return poisson(rng, expected_rate * factor)
