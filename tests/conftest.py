from __future__ import annotations

import struct
from typing import List, Optional, Sequence

import pytest

from scalelink.dgt4.client import Dgt4Client
from scalelink.errors import DeviceConnectionError


def live_registers(gross: int, signals: Sequence[int], net: Optional[int] = None) -> List[int]:
    net = gross if net is None else net
    words = list(struct.unpack(">HHHH", struct.pack(">ii", gross, net)))
    words += [0x0001, 0x0000, 0x0000, 3001]
    words += [value & 0xFFFF for value in signals]
    return words


class FakeTransport:
    def __init__(self, registers: Optional[List[int]] = None) -> None:
        self.registers = registers if registers is not None else live_registers(0, [0, 0, 0, 0])
        self.calls: list[tuple] = []
        self.closed = False
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None

    def write_registers(self, address, values, unit_id):
        if self.write_error is not None:
            raise self.write_error
        self.calls.append(("write_registers", address, list(values), unit_id))

    def write_register(self, address, value, unit_id):
        self.calls.append(("write_register", address, value, unit_id))

    def read_input_registers(self, address, count, unit_id):
        if self.read_error is not None:
            raise self.read_error
        self.calls.append(("read_input_registers", address, count, unit_id))
        return list(self.registers[:count])

    def close(self):
        self.closed = True


class FakeFactory:
    """Transport factory handing out one FakeTransport per connect."""

    def __init__(self, refuse: bool = False) -> None:
        self.refuse = refuse
        self.transports: List[FakeTransport] = []
        self.targets: list[tuple] = []
        self.registers = live_registers(0, [0, 0, 0, 0])

    def __call__(self, host: str, port: int, timeout: float) -> FakeTransport:
        self.targets.append((host, port, timeout))
        if self.refuse:
            raise DeviceConnectionError(f"Connect to {host}:{port} refused or timed out")
        transport = FakeTransport(list(self.registers))
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def client(factory: FakeFactory, sleeps: List[float]) -> Dgt4Client:
    return Dgt4Client(transport_factory=factory, sleep=sleeps.append)
