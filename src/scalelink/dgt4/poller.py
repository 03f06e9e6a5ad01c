from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from ..errors import ScaleLinkError
from ..models import CHANNEL_COUNT, ChannelId, ChannelReading, ScaleReading
from .aggregation import MeasurementStore
from .processing import MedianSmoother, apply_deadband, apply_zero_tolerance, distribute
from .session import DeviceSession

logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 50


class PollingEngine:
    """
    Polls one DeviceSession on a fixed interval, smooths gross and channel
    weights and publishes the result to the store.

    A failed cycle leaves the previously published reading in place.
    """

    def __init__(
        self,
        session: DeviceSession,
        store: MeasurementStore,
        sensitivities: Sequence[float],
        *,
        median_window: int = 5,
        weight_per_division: float = 1.0,
        interval_ms: int = 200,
        signal_deadband: float = 0.0,
        zero_tolerance: float = 0.0,
    ) -> None:
        if len(sensitivities) != CHANNEL_COUNT:
            raise ValueError(f"Expected {CHANNEL_COUNT} sensitivities, got {len(sensitivities)}")
        self.session = session
        self.store = store
        self.sensitivities = [float(value) for value in sensitivities]
        self.weight_per_division = weight_per_division
        self.interval_ms = max(MIN_INTERVAL_MS, int(interval_ms))
        self.signal_deadband = signal_deadband
        self.zero_tolerance = zero_tolerance
        self._gross_filter = MedianSmoother(median_window)
        self._channel_filters = [MedianSmoother(median_window) for _ in range(CHANNEL_COUNT)]
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._cycles = 0
        self._failures = 0

    @property
    def is_running(self) -> bool:
        if self._thread is None or not self._thread.is_alive():
            return False
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self) -> None:
        if self.is_running:
            return
        if self._thread is not None and self._thread.is_alive():
            # A stopped loop still finishing its last cycle shares the smoothers.
            logger.debug("Waiting for previous poll loop of %s to exit", self.session.name)
            self._thread.join()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=f"poll-{self.session.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Polling %s every %d ms", self.session.name, self.interval_ms)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the poll loop to exit. Returns True when no loop is alive."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def close(self, grace: float = 0.25) -> bool:
        self.stop()
        if not self.join(grace):
            logger.warning("Poll loop for %s did not exit within %.2fs", self.session.name, grace)
            return False
        return True

    def reset_filters(self) -> None:
        self._gross_filter.reset()
        for smoother in self._channel_filters:
            smoother.reset()

    def stats(self) -> dict[str, int]:
        return {"cycles": self._cycles, "failures": self._failures}

    def poll_once(self) -> Optional[ScaleReading]:
        """Run one read/smooth/publish cycle. Returns the published reading."""
        reading = self.session.read_scale(self.weight_per_division)
        if reading is None:
            return None
        gross = apply_zero_tolerance(reading.weight, self.zero_tolerance)
        smoothed = reading.with_weight(self._gross_filter.push(gross))

        signals = [apply_deadband(value, self.signal_deadband) for value in reading.signals]
        weights, percents = distribute(smoothed.weight, signals, self.sensitivities)
        channels: List[ChannelReading] = []
        for idx in range(CHANNEL_COUNT):
            channels.append(
                ChannelReading(
                    channel=ChannelId.of(reading.device, idx + 1),
                    timestamp=reading.timestamp,
                    signal=reading.signals[idx],
                    weight=self._channel_filters[idx].push(weights[idx]),
                    percent=percents[idx],
                )
            )
        self.store.publish(smoothed, channels)
        return smoothed

    def _run(self, stop_event: threading.Event) -> None:
        interval_sec = self.interval_ms / 1000.0
        while not stop_event.is_set():
            self._cycles += 1
            try:
                self.poll_once()
            except (ScaleLinkError, OSError) as exc:
                self._failures += 1
                logger.debug("Poll of %s failed: %s", self.session.name, exc)
            except Exception:
                self._failures += 1
                logger.exception("Unexpected error while polling %s", self.session.name)
            stop_event.wait(interval_sec)
