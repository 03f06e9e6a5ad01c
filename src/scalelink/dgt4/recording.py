from __future__ import annotations

import csv
import logging
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Sequence, TextIO, Tuple

from ..models import AggregatedSnapshot, RecordedSample
from .aggregation import AggregationEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 5000


def format_rx_time(timestamp: Optional[datetime]) -> str:
    if timestamp is None:
        return ""
    return timestamp.strftime("%H:%M:%S.") + f"{timestamp.microsecond // 1000:03d}"


def sample_from_snapshot(
    snapshot: AggregatedSnapshot,
    devices: Sequence[str],
    groups: Sequence[str],
) -> RecordedSample:
    rx_times: Dict[str, str] = {}
    weights: Dict[str, float] = {}
    for name in devices:
        reading = snapshot.scales.get(name)
        rx_times[name] = format_rx_time(reading.timestamp if reading else None)
        weights[name] = round(reading.weight if reading else 0.0, 2)
    return RecordedSample(
        rx_times=rx_times,
        total=round(snapshot.total, 2),
        device_weights=weights,
        group_weights={name: round(snapshot.groups.get(name, 0.0), 2) for name in groups},
    )


class SessionRecorder:
    """Bounded, append-only sequence of samples captured from the live snapshot."""

    def __init__(
        self,
        aggregation: AggregationEngine,
        devices: Sequence[str],
        groups: Sequence[str],
        max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> None:
        self._aggregation = aggregation
        self.devices = list(devices)
        self.groups = list(groups)
        self._lock = threading.Lock()
        self._samples: Deque[RecordedSample] = deque(maxlen=max(1, int(max_samples)))
        self._callbacks: List[Callable[[RecordedSample], None]] = []

    def record(self) -> RecordedSample:
        with self._lock:
            sample = sample_from_snapshot(self._aggregation.snapshot, self.devices, self.groups)
            self._samples.append(sample)
        for callback in self._callbacks:
            callback(sample)
        return sample

    def samples(self) -> Tuple[RecordedSample, ...]:
        with self._lock:
            return tuple(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def register_callback(self, callback: Callable[[RecordedSample], None]) -> None:
        self._callbacks.append(callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)


class RecordingLoop(threading.Thread):
    """Records a sample every interval while at least one device has reported."""

    def __init__(self, recorder: SessionRecorder, aggregation: AggregationEngine, interval_ms: int = 250) -> None:
        super().__init__(daemon=True, name="session-recorder")
        self.recorder = recorder
        self.aggregation = aggregation
        self.interval_sec = max(int(interval_ms), 10) / 1000.0
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            if self.aggregation.snapshot.scales:
                try:
                    self.recorder.record()
                except Exception:
                    logger.exception("Failed to record sample")
            self._stop_event.wait(self.interval_sec)

    def stop(self) -> None:
        self._stop_event.set()


def sample_columns(sample: RecordedSample) -> List[str]:
    return (
        ["index"]
        + [f"rx:{name}" for name in sample.rx_times]
        + ["total"]
        + [f"device:{name}" for name in sample.device_weights]
        + [f"group:{name}" for name in sample.group_weights]
    )


def sample_row(index: int, sample: RecordedSample) -> Dict[str, object]:
    row: Dict[str, object] = {"index": index}
    row.update({f"rx:{name}": value for name, value in sample.rx_times.items()})
    row["total"] = sample.total
    row.update({f"device:{name}": value for name, value in sample.device_weights.items()})
    row.update({f"group:{name}": value for name, value in sample.group_weights.items()})
    return row


class RecordingCsvWriter:
    """
    Lazily creates the CSV file when the first sample arrives so dry runs and
    tests never touch the filesystem.
    """

    def __init__(self, path: Path):
        self.path = path
        self._writer: Optional[csv.DictWriter[str]] = None
        self._file_handle: Optional[TextIO] = None
        self._count = 0

    def append(self, sample: RecordedSample) -> None:
        if self._writer is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = self.path.open("w", newline="", encoding="utf-8")
            self._writer = csv.DictWriter(self._file_handle, fieldnames=sample_columns(sample))
            self._writer.writeheader()
        self._count += 1
        self._writer.writerow(sample_row(self._count, sample))
        if self._file_handle is not None:
            self._file_handle.flush()

    def close(self) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
            self._writer = None


def write_recording_csv(path: Path, samples: Sequence[RecordedSample]) -> None:
    writer = RecordingCsvWriter(path)
    try:
        for sample in samples:
            writer.append(sample)
    finally:
        writer.close()
