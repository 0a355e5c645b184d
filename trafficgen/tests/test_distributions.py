"""Tests for DiscreteDistribution: table shape, zero weights, proportional picks."""

import random
from collections import Counter

import pytest

from trafficgen.distributions import DiscreteDistribution
from trafficgen.errors import ConfigurationError


class TestConstruction:
    def test_cumulative_is_prefix_sum(self):
        d = DiscreteDistribution([("a", 1), ("b", 2), ("c", 3)])
        assert d.cumulative == (1.0, 3.0, 6.0)
        assert d.total == 6.0

    def test_uniform_gives_equal_steps(self):
        d = DiscreteDistribution.uniform(["x", "y", "z", "w"])
        assert d.cumulative == (1.0, 2.0, 3.0, 4.0)
        assert len(d) == 4

    def test_empty_is_rejected(self):
        with pytest.raises(ConfigurationError):
            DiscreteDistribution([])

    def test_negative_weight_is_rejected(self):
        with pytest.raises(ConfigurationError):
            DiscreteDistribution([("a", 1), ("b", -0.5)])

    def test_nan_weight_is_rejected(self):
        with pytest.raises(ConfigurationError):
            DiscreteDistribution([("a", float("nan"))])


class TestPick:
    def setup_method(self):
        self.rng = random.Random(42)

    def test_single_value_always_returned(self):
        d = DiscreteDistribution([("only", 5)])
        assert {d.pick(self.rng) for _ in range(100)} == {"only"}

    def test_single_zero_weight_value_still_returned(self):
        d = DiscreteDistribution([("only", 0)])
        assert d.pick(self.rng) == "only"

    def test_zero_weight_never_picked(self):
        d = DiscreteDistribution([("a", 0), ("b", 1), ("c", 0), ("d", 1), ("e", 0)])
        seen = {d.pick(self.rng) for _ in range(5000)}
        assert seen == {"b", "d"}

    def test_all_zero_weights_fall_back_to_uniform(self):
        d = DiscreteDistribution([("a", 0), ("b", 0)])
        seen = {d.pick(self.rng) for _ in range(200)}
        assert seen == {"a", "b"}

    def test_frequencies_track_weights(self):
        d = DiscreteDistribution([("a", 1), ("b", 2), ("c", 3), ("d", 4)])
        n = 100_000
        counts = Counter(d.pick(self.rng) for _ in range(n))
        for value, weight in zip("abcd", (1, 2, 3, 4)):
            assert counts[value] / n == pytest.approx(weight / 10, abs=0.01)

    def test_pick_index_matches_pick(self):
        d = DiscreteDistribution([("a", 1), ("b", 1)])
        a, b = random.Random(9), random.Random(9)
        for _ in range(50):
            assert d.values[d.pick_index(a)] == d.pick(b)

    def test_draw_rounded_up_to_total_skips_zero_weight_tail(self):
        class TopOfRange(random.Random):
            def random(self):
                return 1.0

        d = DiscreteDistribution([("a", 1), ("b", 1), ("c", 0), ("d", 0)])
        assert d.pick(TopOfRange()) == "b"
