"""Stable-plateau detection and robust averaging for recorded sessions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .models import RecordedSample, StableWindow

MAD_SCALE = 1.4826
MAD_FLOOR = 1e-12
RANGE_FLOOR = 1e-9
LOOSE_FACTOR_SCALE = 1.8
MAX_HOLES = 3


@dataclass
class AnalysisConfig:
    active_threshold: float = 5.0
    median_window: int = 7
    plateau_range_factor: float = 0.06
    take_middle_fraction: float = 0.60
    min_stable_samples: int = 12
    mad_k: float = 3.5


@dataclass(frozen=True)
class SessionSummary:
    """Stable window of one recorded session plus per-field averages over it."""

    window: StableWindow
    field_name: str
    sample_count: int
    averages: Dict[str, float] = field(default_factory=dict)
    last_active_rx: Mapping[str, str] = field(default_factory=dict)

    @property
    def average(self) -> float:
        return self.averages.get(self.field_name, 0.0)


def find_active_segment(values: Sequence[float], threshold: float, max_holes: int = MAX_HOLES) -> Tuple[int, int]:
    """
    Locate the last contiguous run of samples at or above *threshold*.

    Scanning back from the last active sample, up to *max_holes* consecutive
    sub-threshold samples are bridged; leading sub-threshold samples are then
    trimmed. When nothing reaches the threshold the whole sequence is returned.
    """
    data = np.asarray(values, dtype=float)
    active = np.flatnonzero(data >= threshold)
    if active.size == 0:
        return 0, data.size - 1

    end = int(active[-1])
    start = end
    holes = 0
    while start > 0:
        if data[start - 1] >= threshold:
            holes = 0
        else:
            holes += 1
            if holes > max_holes:
                break
        start -= 1

    while start < end and data[start] < threshold:
        start += 1
    return start, end


def rolling_median(values: Sequence[float], window: int) -> np.ndarray:
    """
    Centered running median. Even windows are widened by one; near the edges
    the neighbourhood is truncated and the upper median is taken.
    """
    data = np.asarray(values, dtype=float)
    if data.size == 0 or window <= 1:
        return data.copy()
    if window % 2 == 0:
        window += 1
    half = window // 2
    result = np.empty_like(data)
    for idx in range(data.size):
        lo = max(0, idx - half)
        hi = min(data.size, idx + half + 1)
        neighbourhood = np.sort(data[lo:hi])
        result[idx] = neighbourhood[neighbourhood.size // 2]
    return result


def _expand(smooth: np.ndarray, peak: int, threshold: float) -> Tuple[int, int]:
    left = peak
    while left > 0 and smooth[left - 1] >= threshold:
        left -= 1
    right = peak
    while right < smooth.size - 1 and smooth[right + 1] >= threshold:
        right += 1
    return left, right


def find_plateau(smooth: Sequence[float], factor: float, min_len: int) -> Tuple[int, int]:
    """Expand around the first maximum while values stay within *factor* of the range."""
    data = np.asarray(smooth, dtype=float)
    peak = int(np.argmax(data))
    top = float(data[peak])
    spread = max(RANGE_FLOOR, top - float(data.min()))

    left, right = _expand(data, peak, top - spread * factor)
    if right - left + 1 < min_len:
        left, right = _expand(data, peak, top - spread * factor * LOOSE_FACTOR_SCALE)
    return left, right


def compute_stable_window(values: Sequence[float], params: Optional[AnalysisConfig] = None) -> StableWindow:
    """Return the absolute index window of the stable plateau of *values*."""
    params = params or AnalysisConfig()
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        return StableWindow.empty()

    seg_start, seg_end = find_active_segment(data, params.active_threshold)
    segment = data[seg_start : seg_end + 1]
    if segment.size == 0:
        return StableWindow(0, data.size - 1)

    smooth = rolling_median(segment, params.median_window)
    left, right = find_plateau(smooth, params.plateau_range_factor, params.min_stable_samples)
    plateau = right - left + 1

    if plateau >= params.min_stable_samples:
        take = round(plateau * params.take_middle_fraction)
        take = max(params.min_stable_samples, min(plateau, take))
        mid = left + plateau // 2
        start = max(left, mid - take // 2)
        end = start + take - 1
        if end > right:
            end = right
            start = max(left, end - take + 1)
    else:
        n = segment.size
        start, end = n // 3, (2 * n // 3) - 1
        if end <= start:
            start, end = 0, n - 1

    last = data.size - 1
    abs_start = min(max(seg_start + start, 0), last)
    abs_end = min(max(seg_start + end, 0), last)
    if abs_end < abs_start:
        abs_start, abs_end = abs_end, abs_start
    return StableWindow(abs_start, abs_end)


def mad_filter(values: Sequence[float], k: float) -> np.ndarray:
    """Drop values further than k scaled MADs from the median."""
    data = np.asarray(values, dtype=float)
    if data.size < 6:
        return data
    median = float(np.median(data))
    mad = float(np.median(np.abs(data - median)))
    if mad < MAD_FLOOR:
        return data
    sigma = MAD_SCALE * mad
    return data[(data >= median - k * sigma) & (data <= median + k * sigma)]


def robust_average(values: Sequence[float], window: StableWindow, k: float) -> float:
    if window.length <= 0:
        return 0.0
    data = np.asarray(values, dtype=float)[window.start : window.end + 1]
    if data.size == 0:
        return 0.0
    filtered = mad_filter(data, k)
    used = filtered if filtered.size >= max(5, data.size // 2) else data
    return float(used.mean())


class StableWindowAnalyzer:
    """Finds the stable window of a finished recording and averages over it."""

    def __init__(self, params: Optional[AnalysisConfig] = None) -> None:
        self.params = params or AnalysisConfig()

    def window(self, values: Sequence[float]) -> StableWindow:
        return compute_stable_window(values, self.params)

    def average(self, values: Sequence[float], window: StableWindow) -> float:
        return robust_average(values, window, self.params.mad_k)

    def analyze(self, values: Sequence[float]) -> Tuple[StableWindow, float]:
        window = self.window(values)
        return window, self.average(values, window)

    def summarize(self, samples: Sequence[RecordedSample], field: str = "total") -> SessionSummary:
        """
        Locate the window on *field* and average every recorded field over it.

        Field order follows the first sample; a field missing from later samples
        reads as 0.
        """
        if not samples:
            return SessionSummary(window=StableWindow.empty(), field_name=field, sample_count=0)

        selected = [sample.value(field) for sample in samples]
        window = self.window(selected)
        averages: Dict[str, float] = {}
        for name in samples[0].fields():
            averages[name] = self.average([sample.value(name) for sample in samples], window)
        averages.setdefault(field, self.average(selected, window))

        last_active = samples[-1]
        for sample, value in zip(reversed(samples), reversed(selected)):
            if value >= self.params.active_threshold:
                last_active = sample
                break

        return SessionSummary(
            window=window,
            field_name=field,
            sample_count=len(samples),
            averages=averages,
            last_active_rx=dict(last_active.rx_times),
        )
