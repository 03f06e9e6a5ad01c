from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence

from pymodbus.client import ModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException

from ..errors import DeviceConnectionError, NotConnectedError, ProtocolError
from ..models import LiveFrame
from .registers import (
    CMD_CHANGE_PAGE,
    CMD_DATA_READING,
    CMD_ZERO,
    LIVE_INPUT_ADDRESS,
    LIVE_REGISTER_COUNT,
    OUTPUT_AREA_ADDRESS,
    command_registers,
    decode_live_frame,
)

logger = logging.getLogger(__name__)

DATA_READING_SETTLE_SEC = 0.120
CHANGE_PAGE_SETTLE_SEC = 0.160
ZERO_SETTLE_SEC = 0.220


class RegisterTransport(Protocol):
    def write_registers(self, address: int, values: Sequence[int], unit_id: int) -> None:
        """Write consecutive holding registers starting at *address*."""

    def write_register(self, address: int, value: int, unit_id: int) -> None:
        """Write a single holding register."""

    def read_input_registers(self, address: int, count: int, unit_id: int) -> List[int]:
        """Read *count* input registers starting at *address*."""

    def close(self) -> None:
        """Release the underlying connection."""


TransportFactory = Callable[[str, int, float], RegisterTransport]


class ModbusTcpTransport:
    """Register transport over Modbus/TCP backed by pymodbus, without retries."""

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self._client = ModbusTcpClient(host, port=port, timeout=timeout, retries=0)

    def open(self) -> None:
        try:
            connected = self._client.connect()
        except (ModbusException, OSError) as exc:
            raise DeviceConnectionError(f"Connect to {self.host}:{self.port} failed: {exc}") from exc
        if not connected:
            raise DeviceConnectionError(f"Connect to {self.host}:{self.port} refused or timed out")

    def write_registers(self, address: int, values: Sequence[int], unit_id: int) -> None:
        self._call("write_registers", self._client.write_registers, address, list(values), device_id=unit_id)

    def write_register(self, address: int, value: int, unit_id: int) -> None:
        self._call("write_register", self._client.write_register, address, value, device_id=unit_id)

    def read_input_registers(self, address: int, count: int, unit_id: int) -> List[int]:
        response = self._call(
            "read_input_registers",
            self._client.read_input_registers,
            address,
            count=count,
            device_id=unit_id,
        )
        return list(getattr(response, "registers", None) or [])

    def close(self) -> None:
        self._client.close()

    def _call(self, name: str, func: Callable, *args, **kwargs):
        try:
            response = func(*args, **kwargs)
        except ConnectionException as exc:
            raise DeviceConnectionError(f"{name} on {self.host}:{self.port}: {exc}") from exc
        except ModbusException as exc:
            raise ProtocolError(f"{name} on {self.host}:{self.port}: {exc}") from exc
        if response is None or response.isError():
            raise ProtocolError(f"{name} on {self.host}:{self.port} returned error response {response!r}")
        return response


def open_modbus_tcp(host: str, port: int, timeout: float) -> ModbusTcpTransport:
    transport = ModbusTcpTransport(host, port, timeout)
    transport.open()
    return transport


class Dgt4Client:
    """
    Command/read primitives for one transmitter over one transport connection.

    Commands are written to the 6-register output area and cleared again after
    a fixed settle delay; the firmware ignores a command whose register is
    cleared too early, so the delays are not optional.
    """

    def __init__(
        self,
        transport_factory: Optional[TransportFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._factory = transport_factory or open_modbus_tcp
        self._sleep = sleep
        self._transport: Optional[RegisterTransport] = None

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    def connect(self, host: str, port: int, timeout: float) -> None:
        self.close()
        self._transport = self._factory(host, port, timeout)
        logger.debug("Transport open to %s:%d (timeout=%.2fs)", host, port, timeout)

    def close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception:
            logger.debug("Error while closing transport", exc_info=True)

    def change_page(self, unit_id: int, page: int) -> None:
        self._write_command(unit_id, CMD_DATA_READING, 0)
        self._sleep(DATA_READING_SETTLE_SEC)
        self._clear_command(unit_id)

        self._write_command(unit_id, CMD_CHANGE_PAGE, page)
        self._sleep(CHANGE_PAGE_SETTLE_SEC)
        self._clear_command(unit_id)

    def zero(self, unit_id: int) -> None:
        self._write_command(unit_id, CMD_ZERO, 0)
        self._sleep(ZERO_SETTLE_SEC)
        self._clear_command(unit_id)

    def read_live(self, unit_id: int) -> LiveFrame:
        transport = self._require()
        registers = transport.read_input_registers(LIVE_INPUT_ADDRESS, LIVE_REGISTER_COUNT, unit_id)
        return decode_live_frame(registers)

    def _write_command(self, unit_id: int, code: int, parameter: int) -> None:
        self._require().write_registers(OUTPUT_AREA_ADDRESS, command_registers(code, parameter), unit_id)

    def _clear_command(self, unit_id: int) -> None:
        self._require().write_register(OUTPUT_AREA_ADDRESS, 0x0000, unit_id)

    def _require(self) -> RegisterTransport:
        if self._transport is None:
            raise NotConnectedError("Transmitter is not connected")
        return self._transport
