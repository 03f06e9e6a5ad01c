from __future__ import annotations

import numpy as np
import pytest

from scalelink.dgt4.processing import MedianSmoother, apply_deadband, apply_zero_tolerance, distribute


def test_median_smoother_window_three():
    smoother = MedianSmoother(3)
    assert smoother.push(5) == 5
    assert smoother.push(1) == 3.0
    assert smoother.push(9) == 5
    # 5 is evicted before 3 is admitted
    assert smoother.push(3) == 3
    assert len(smoother) == 3


def test_median_smoother_reset_and_minimum_window():
    smoother = MedianSmoother(0)
    assert smoother.window == 1
    assert smoother.push(4.0) == 4.0
    assert smoother.push(-2.0) == -2.0
    smoother.reset()
    assert len(smoother) == 0


def test_distribute_equal_signals():
    weights, percents = distribute(100.0, [10, 10, 10, 10], [2.0, 2.0, 2.0, 2.0])
    assert weights == pytest.approx([25.0, 25.0, 25.0, 25.0])
    assert percents == pytest.approx([25.0, 25.0, 25.0, 25.0])


def test_distribute_weights_by_sensitivity():
    weights, _ = distribute(90.0, [10, 10, 0, 0], [1.0, 2.0, 1.0, 1.0])
    assert weights == pytest.approx([60.0, 30.0, 0.0, 0.0])
    assert sum(weights) == pytest.approx(90.0)


def test_distribute_uses_signal_magnitude():
    weights, percents = distribute(-40.0, [-10, 10, -10, 10], [1.0] * 4)
    assert weights == pytest.approx([-10.0] * 4)
    assert percents == pytest.approx([25.0] * 4)


def test_distribute_clamps_tiny_sensitivity():
    weights, _ = distribute(20.0, [10, 10, 0, 0], [0.0, 1.0, 1.0, 1.0])
    assert weights == pytest.approx([10.0, 10.0, 0.0, 0.0])


def test_distribute_zero_cases():
    assert distribute(100.0, [0, 0, 0, 0], [1.0] * 4) == ([0.0] * 4, [0.0] * 4)
    assert distribute(0.0, [5, 5, 5, 5], [1.0] * 4) == ([0.0] * 4, [0.0] * 4)


def test_distribute_requires_four_channels():
    with pytest.raises(ValueError):
        distribute(10.0, [1, 2, 3], [1.0] * 4)


def test_deadband_and_zero_tolerance_disabled_at_zero():
    assert apply_deadband(3, 0) == 3
    assert apply_deadband(3, 5) == 0
    assert apply_deadband(-7, 5) == -7
    assert apply_zero_tolerance(0.4, 0.0) == 0.4
    assert apply_zero_tolerance(0.4, 0.5) == 0.0
    assert apply_zero_tolerance(-0.6, 0.5) == -0.6


def test_distribute_single_active_channel():
    weights, percents = distribute(100.0, [10, 0, 0, 0], [1.0] * 4)
    assert weights == pytest.approx([100.0, 0.0, 0.0, 0.0])
    assert percents == pytest.approx([100.0, 0.0, 0.0, 0.0])


def test_median_smoother_matches_sorted_median():
    rng = np.random.default_rng(3)
    values = rng.normal(0.0, 10.0, size=40).tolist()
    for window in (1, 2, 5, 8):
        smoother = MedianSmoother(window)
        for count, value in enumerate(values, start=1):
            recent = sorted(values[max(0, count - window):count])
            mid = len(recent) // 2
            expected = recent[mid] if len(recent) % 2 else (recent[mid - 1] + recent[mid]) / 2.0
            assert smoother.push(value) == pytest.approx(expected)
