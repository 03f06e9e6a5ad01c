from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from ..models import AggregatedSnapshot, ChannelId, ChannelReading, GroupDefinition, ScaleReading

logger = logging.getLogger(__name__)


class MeasurementStore:
    """
    Thread-safe latest readings per device and per channel. A device's scale
    reading and its channel readings are replaced together.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scales: Dict[str, ScaleReading] = {}
        self._channels: Dict[ChannelId, ChannelReading] = {}
        self._callbacks: List[Callable[[], None]] = []

    def publish(self, scale: ScaleReading, channels: Sequence[ChannelReading]) -> None:
        with self._lock:
            self._scales[scale.device] = scale
            for reading in channels:
                self._channels[reading.channel] = reading
        self._notify()

    def discard_device(self, device: str) -> None:
        with self._lock:
            removed = self._scales.pop(device, None) is not None
            for channel in [c for c in self._channels if c.device == device]:
                del self._channels[channel]
                removed = True
        if removed:
            self._notify()

    def scales(self) -> Dict[str, ScaleReading]:
        with self._lock:
            return dict(self._scales)

    def channels(self) -> Dict[ChannelId, ChannelReading]:
        with self._lock:
            return dict(self._channels)

    def state(self) -> Tuple[Dict[str, ScaleReading], Dict[ChannelId, ChannelReading]]:
        """Copies of the scale and channel readings taken under one lock."""
        with self._lock:
            return dict(self._scales), dict(self._channels)

    def register_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def _notify(self) -> None:
        for callback in self._callbacks:
            callback()


class AggregationEngine:
    """Rebuilds the aggregated snapshot synchronously on every store update."""

    def __init__(self, store: MeasurementStore, groups: Iterable[GroupDefinition] = ()) -> None:
        self._store = store
        self._groups = list(groups)
        self._lock = threading.Lock()
        self._snapshot = AggregatedSnapshot(
            timestamp=datetime.now(),
            groups={group.name: 0.0 for group in self._groups},
        )
        self._callbacks: List[Callable[[AggregatedSnapshot], None]] = []
        store.register_callback(self.recompute)

    @property
    def groups(self) -> List[GroupDefinition]:
        return list(self._groups)

    @property
    def snapshot(self) -> AggregatedSnapshot:
        return self._snapshot

    def register_callback(self, callback: Callable[[AggregatedSnapshot], None]) -> None:
        self._callbacks.append(callback)

    def recompute(self) -> AggregatedSnapshot:
        with self._lock:
            scales, channels = self._store.state()
            total = sum(reading.weight for reading in scales.values())
            sums: Dict[str, float] = {}
            for group in self._groups:
                sums[group.name] = sum(
                    channels[member].weight for member in group.members if member in channels
                )
            snapshot = AggregatedSnapshot(
                timestamp=datetime.now(),
                scales=scales,
                channels=channels,
                total=total,
                groups=sums,
            )
            self._snapshot = snapshot
        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")
        return snapshot
