"""
Linear decay curve for locked positions.

A lock's weight starts at its peak when the lock (re)starts and falls in a
straight line to zero at the lock end. Because the curve is linear, the
area under it over any window is exactly the trapezoid formed by the two
endpoint weights, which is what epoch contributions are built from.
"""

import logging

logger = logging.getLogger(__name__)

BASIS_POINTS = 10_000


def weight_at(peak_weight: int, lock_start: int, lock_end: int, t: int) -> int:
    """
    Weight of a lock at time ``t``.

    Args:
        peak_weight: Weight at ``lock_start``
        lock_start: Start of the decay window
        lock_end: End of the decay window, strictly after ``lock_start``
        t: Time to evaluate at

    Returns:
        The floored weight; exactly ``peak_weight`` at ``lock_start`` and
        exactly 0 at and after ``lock_end``
    """
    if peak_weight <= 0 or t >= lock_end:
        return 0
    if t <= lock_start:
        return peak_weight
    duration = lock_end - lock_start
    return peak_weight * (duration - (t - lock_start)) // duration


def trapezoid_area(
    peak_weight: int,
    lock_start: int,
    lock_end: int,
    window_start: int,
    window_end: int
) -> int:
    """
    Exact area under the decay curve between ``window_start`` and ``window_end``.

    Returns 0 for an empty or inverted window.
    """
    if window_start >= window_end:
        return 0
    head = weight_at(peak_weight, lock_start, lock_end, window_start)
    tail = weight_at(peak_weight, lock_start, lock_end, window_end)
    return (head + tail) * (window_end - window_start) // 2


def apply_boost(area: int, boost_bps: int) -> int:
    """Scale ``area`` up by ``boost_bps`` basis points."""
    if boost_bps <= 0:
        return area
    return area + area * boost_bps // BASIS_POINTS
