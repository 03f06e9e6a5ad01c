from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from ..models import DeviceEndpoint, ScaleReading
from .client import Dgt4Client
from .registers import LIVE_PAGE

logger = logging.getLogger(__name__)


class FairGate:
    """Single-holder lock granted in arrival order."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._next_ticket = 0
        self._serving = 0

    def acquire(self) -> None:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._serving:
                self._cond.wait()

    def release(self) -> None:
        with self._cond:
            self._serving += 1
            self._cond.notify_all()

    def __enter__(self) -> "FairGate":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class DeviceSession:
    """
    One transmitter endpoint. Every wire operation runs behind a single gate
    so connect/disconnect/zero/read never interleave on the connection.
    """

    def __init__(self, endpoint: DeviceEndpoint, client: Optional[Dgt4Client] = None) -> None:
        self.endpoint = endpoint
        self._client = client or Dgt4Client()
        self._gate = FairGate()
        self._connected = False

    @property
    def name(self) -> str:
        return self.endpoint.name

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self, timeout: float = 1.5) -> None:
        with self._gate:
            if self._connected:
                return
            ep = self.endpoint
            self._client.connect(ep.host, ep.port, timeout)
            try:
                # Live reads are only well-defined on the live page.
                self._client.change_page(ep.unit_id, LIVE_PAGE)
            except Exception:
                self._client.close()
                raise
            self._connected = True
            logger.info("Connected to %s (%s:%d unit=%d)", ep.name, ep.host, ep.port, ep.unit_id)

    def disconnect(self) -> None:
        with self._gate:
            was_connected = self._connected
            self._client.close()
            self._connected = False
        if was_connected:
            logger.info("Disconnected from %s", self.endpoint.name)

    def zero(self) -> None:
        with self._gate:
            if not self._connected:
                return
            self._client.zero(self.endpoint.unit_id)
            logger.info("Zero command sent to %s", self.endpoint.name)

    def read_scale(self, weight_per_division: float = 1.0) -> Optional[ScaleReading]:
        with self._gate:
            if not self._connected:
                return None
            live = self._client.read_live(self.endpoint.unit_id)
        # Stability bit mapping depends on transmitter configuration; report stable.
        return ScaleReading(
            device=self.endpoint.name,
            timestamp=datetime.now(),
            weight=live.gross * weight_per_division,
            stable=True,
            raw_gross=live.gross,
            input_status=live.input_status,
            signals=tuple(live.signals),
        )

    def close(self) -> None:
        self.disconnect()
