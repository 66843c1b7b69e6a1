"""
Tests for the linear decay curve and its exact trapezoid integral.
"""

import pytest

from epochvault.vault.core.decay import apply_boost, trapezoid_area, weight_at
from epochvault.vault.core.indexed_set import IndexedSet


class TestWeightAt:
    """Test suite for the weight function."""

    @pytest.mark.parametrize("peak,start,end", [
        (1_000, 0, 10),
        (100, 1_000, 1_010),
        (7, 5, 6),
        (10 ** 24, 0, 4 * 365 * 24 * 3600),
    ])
    def test_endpoints(self, peak, start, end):
        assert weight_at(peak, start, end, start) == peak
        assert weight_at(peak, start, end, end) == 0
        assert weight_at(peak, start, end, end + 1) == 0

    def test_non_increasing(self):
        weights = [weight_at(997, 100, 137, t) for t in range(100, 140)]
        assert all(a >= b for a, b in zip(weights, weights[1:]))

    def test_linear_values_are_floored(self):
        assert weight_at(1_000, 0, 10, 5) == 500
        assert weight_at(1_000, 0, 3, 1) == 666

    def test_minimum_lock_has_nonzero_weight(self):
        # Minimum amount for the minimum duration still yields weight before the end
        assert weight_at(100, 0, 10, 9) == 10
        assert trapezoid_area(100, 0, 10, 0, 10) == 500

    def test_zero_peak(self):
        assert weight_at(0, 0, 10, 0) == 0


class TestTrapezoidArea:
    """Test suite for the contribution integral."""

    def test_full_window_is_half_peak_times_duration(self):
        assert trapezoid_area(1_000, 1_000, 1_010, 1_000, 1_010) == 5_000

    def test_partial_window(self):
        # Weight falls from 600 at t=40 to 0 at t=100
        assert trapezoid_area(1_000, 0, 100, 40, 100) == 18_000
        assert trapezoid_area(1_000, 0, 100, 0, 40) == 32_000

    def test_empty_or_inverted_window(self):
        assert trapezoid_area(1_000, 0, 100, 50, 50) == 0
        assert trapezoid_area(1_000, 0, 100, 60, 50) == 0

    def test_apply_boost(self):
        assert apply_boost(75_000, 0) == 75_000
        assert apply_boost(50_000, 5_000) == 75_000
        assert apply_boost(3, 3_333) == 3


class TestIndexedSet:
    """Test suite for the swap-and-pop set."""

    def test_add_and_discard(self):
        items = IndexedSet([1, 2, 3, 4])
        assert items.add(2) is False
        assert items.discard(2) is True
        assert items.discard(2) is False
        assert sorted(items) == [1, 3, 4]
        assert len(items) == 3

    def test_discard_last_and_only(self):
        items = IndexedSet(["a"])
        assert items.discard("a")
        assert len(items) == 0
        assert items.add("b")
        assert "b" in items

    def test_clear_returns_contents(self):
        items = IndexedSet([("PUNKS", 1), ("PUNKS", 2)])
        assert items.clear() == [("PUNKS", 1), ("PUNKS", 2)]
        assert len(items) == 0
