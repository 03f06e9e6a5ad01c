from __future__ import annotations

from collections import deque
from typing import Deque, List, Sequence, Tuple

from ..models import CHANNEL_COUNT, effective_sensitivity

SIGNAL_SUM_EPSILON = 1e-4
GROSS_EPSILON = 1e-6


def distribute(
    gross: float,
    signals: Sequence[float],
    sensitivities: Sequence[float],
) -> Tuple[List[float], List[float]]:
    """
    Split *gross* across the four channels in proportion to
    |signal| / sensitivity. Returns (weights, percents).

    This is an instantaneous proportional split of one summed reading, not an
    independent per-channel measurement.
    """
    if len(signals) != CHANNEL_COUNT or len(sensitivities) != CHANNEL_COUNT:
        raise ValueError(f"Expected {CHANNEL_COUNT} signals and sensitivities")
    normalized = [abs(float(s)) / effective_sensitivity(float(k)) for s, k in zip(signals, sensitivities)]
    total = sum(normalized)
    if total <= SIGNAL_SUM_EPSILON or gross == 0:
        return [0.0] * CHANNEL_COUNT, [0.0] * CHANNEL_COUNT
    weights = [gross * n / total for n in normalized]
    denom = max(abs(gross), GROSS_EPSILON)
    percents = [abs(w) / denom * 100.0 for w in weights]
    return weights, percents


def apply_deadband(signal: float, deadband: float) -> float:
    if deadband <= 0:
        return signal
    return 0 if abs(signal) < deadband else signal


def apply_zero_tolerance(weight: float, tolerance: float) -> float:
    if tolerance <= 0:
        return weight
    return 0.0 if abs(weight) < tolerance else weight


class MedianSmoother:
    """Rolling median over the last *window* pushed values."""

    def __init__(self, window: int) -> None:
        self.window = max(1, int(window))
        self._buffer: Deque[float] = deque()

    def push(self, value: float) -> float:
        if len(self._buffer) == self.window:
            self._buffer.popleft()
        self._buffer.append(float(value))
        ordered = sorted(self._buffer)
        mid = len(ordered) // 2
        if len(ordered) % 2 == 1:
            return ordered[mid]
        return (ordered[mid - 1] + ordered[mid]) / 2.0

    def reset(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)
