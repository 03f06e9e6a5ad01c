from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import ScaleLinkError, UnknownDeviceError
from ..models import AggregatedSnapshot, DeviceEndpoint, RecordedSample
from ..stable_window import SessionSummary, StableWindowAnalyzer
from .aggregation import AggregationEngine, MeasurementStore
from .client import Dgt4Client
from .config import DeviceConfig, StationConfig
from .poller import PollingEngine
from .recording import RecordingCsvWriter, RecordingLoop, SessionRecorder
from .session import DeviceSession

logger = logging.getLogger(__name__)

ClientFactory = Callable[[DeviceEndpoint], Dgt4Client]


class ScaleStation:
    """
    Owns one session and polling engine per configured transmitter, the shared
    measurement store, the aggregation engine and the session recorder.

    The boolean entry points never raise for device failures; they log the
    error and return False.
    """

    def __init__(self, config: StationConfig, client_factory: Optional[ClientFactory] = None) -> None:
        self.config = config
        self._client_factory = client_factory or (lambda endpoint: Dgt4Client())
        self.store = MeasurementStore()
        self.aggregation = AggregationEngine(self.store, [group.definition() for group in config.groups])
        self.recorder = SessionRecorder(
            self.aggregation,
            devices=[device.name for device in config.devices],
            groups=[group.name for group in config.groups],
            max_samples=config.recording.max_samples,
        )
        self.analyzer = StableWindowAnalyzer(config.analysis)
        self._devices: Dict[str, Tuple[DeviceSession, PollingEngine]] = {}
        for device in config.devices:
            self._devices[device.name] = self._build(device.endpoint(), device)
        self._recording_loop: Optional[RecordingLoop] = None
        self._csv_writer: Optional[RecordingCsvWriter] = None

    def _build(self, endpoint: DeviceEndpoint, device: DeviceConfig) -> Tuple[DeviceSession, PollingEngine]:
        session = DeviceSession(endpoint, self._client_factory(endpoint))
        poller = PollingEngine(
            session,
            self.store,
            device.sensitivities,
            median_window=self.config.median_window,
            weight_per_division=self.config.weight_per_division,
            interval_ms=endpoint.poll_interval_ms,
            signal_deadband=self.config.signal_deadband,
            zero_tolerance=self.config.zero_tolerance,
        )
        return session, poller

    def _entry(self, name: str) -> Tuple[DeviceSession, PollingEngine]:
        try:
            return self._devices[name]
        except KeyError:
            raise UnknownDeviceError(f"Unknown device '{name}'") from None

    @property
    def device_names(self) -> List[str]:
        return list(self._devices)

    def session(self, name: str) -> DeviceSession:
        return self._entry(name)[0]

    def poller(self, name: str) -> PollingEngine:
        return self._entry(name)[1]

    def is_connected(self, name: str) -> bool:
        return self._entry(name)[0].is_connected

    def connect(self, name: str) -> bool:
        session, poller = self._entry(name)
        try:
            session.connect(self.config.timeout_ms / 1000.0)
        except ScaleLinkError as exc:
            logger.error("Connect to %s failed: %s", name, exc)
            return False
        if not poller.is_running:
            poller.join()
            poller.reset_filters()
            poller.start()
        return True

    def disconnect(self, name: str) -> bool:
        session, poller = self._entry(name)
        poller.stop()
        try:
            session.disconnect()
        finally:
            # An in-flight cycle may still publish; discard only after the loop exits.
            poller.join()
            self.store.discard_device(name)
        return True

    def zero(self, name: str) -> bool:
        session, _ = self._entry(name)
        if not session.is_connected:
            logger.warning("Zero ignored, %s is not connected", name)
            return False
        try:
            session.zero()
        except ScaleLinkError as exc:
            logger.error("Zero on %s failed: %s", name, exc)
            return False
        return True

    def connect_all(self) -> Dict[str, bool]:
        return {name: self.connect(name) for name in self._devices}

    def disconnect_all(self) -> None:
        for name in self._devices:
            self.disconnect(name)

    def update_host(self, name: str, host: str) -> None:
        """Point a device at a new address. The device is left disconnected."""
        session, _ = self._entry(name)
        if session.endpoint.host == host:
            return
        self.disconnect(name)
        device = self.config.device(name)
        device.host = host
        self._devices[name] = self._build(session.endpoint.with_host(host), device)
        logger.info("Device %s now targets %s", name, host)

    @property
    def snapshot(self) -> AggregatedSnapshot:
        return self.aggregation.snapshot

    def samples(self) -> Tuple[RecordedSample, ...]:
        return self.recorder.samples()

    def record(self) -> RecordedSample:
        return self.recorder.record()

    def clear_samples(self) -> None:
        self.recorder.clear()

    @property
    def is_recording(self) -> bool:
        return self._recording_loop is not None and self._recording_loop.is_alive()

    def start_recording(self) -> None:
        if self.is_recording:
            return
        output_csv = self.config.recording.output_csv
        if output_csv is not None and self._csv_writer is None:
            self._csv_writer = RecordingCsvWriter(output_csv)
            self.recorder.register_callback(self._csv_writer.append)
        self._recording_loop = RecordingLoop(self.recorder, self.aggregation, self.config.recording.interval_ms)
        self._recording_loop.start()
        logger.info("Recording every %d ms", self.config.recording.interval_ms)

    def stop_recording(self) -> None:
        loop, self._recording_loop = self._recording_loop, None
        if loop is None:
            return
        loop.stop()
        loop.join(timeout=1.0)
        logger.info("Recording stopped with %d samples", len(self.recorder))

    def analyze(self, samples: Optional[Sequence[RecordedSample]] = None, field: str = "total") -> SessionSummary:
        return self.analyzer.summarize(self.samples() if samples is None else samples, field)

    def close(self) -> None:
        self.stop_recording()
        for _, poller in self._devices.values():
            poller.close()
        for session, _ in self._devices.values():
            session.close()
        if self._csv_writer is not None:
            self._csv_writer.close()

    def __enter__(self) -> "ScaleStation":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
