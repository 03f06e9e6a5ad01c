from __future__ import annotations

import struct
from typing import List, Sequence

from ..errors import FramingError, ProtocolError
from ..models import LiveFrame

CMD_ZERO = 0x01
CMD_CHANGE_PAGE = 0x1D
CMD_DATA_READING = 0x23

LIVE_PAGE = 3001

OUTPUT_AREA_ADDRESS = 0
OUTPUT_AREA_BYTES = 12
LIVE_INPUT_ADDRESS = 0
LIVE_REGISTER_COUNT = 12


def bytes_to_registers(data: bytes) -> List[int]:
    """Pack *data* into big-endian 16-bit registers."""
    if len(data) % 2 != 0:
        raise FramingError(f"Buffer must have even length, got {len(data)} bytes")
    return list(struct.unpack(f">{len(data) // 2}H", bytes(data)))


def registers_to_int32(high: int, low: int) -> int:
    return struct.unpack(">i", struct.pack(">HH", high & 0xFFFF, low & 0xFFFF))[0]


def register_to_int16(value: int) -> int:
    return struct.unpack(">h", struct.pack(">H", value & 0xFFFF))[0]


def build_command_frame(code: int, parameter: int = 0) -> bytes:
    """
    Output area layout: byte0 reserved, byte1 command code, bytes 2-5 the
    big-endian uint32 parameter, remaining bytes zero.
    """
    frame = bytearray(OUTPUT_AREA_BYTES)
    frame[1] = code & 0xFF
    frame[2:6] = struct.pack(">I", parameter & 0xFFFFFFFF)
    return bytes(frame)


def command_registers(code: int, parameter: int = 0) -> List[int]:
    return bytes_to_registers(build_command_frame(code, parameter))


def decode_live_frame(registers: Sequence[int]) -> LiveFrame:
    if len(registers) < LIVE_REGISTER_COUNT:
        raise ProtocolError(
            f"Live page read returned {len(registers)} registers, expected {LIVE_REGISTER_COUNT}"
        )
    r = [int(value) & 0xFFFF for value in registers[:LIVE_REGISTER_COUNT]]
    return LiveFrame(
        gross=registers_to_int32(r[0], r[1]),
        net=registers_to_int32(r[2], r[3]),
        input_status=r[4],
        command_status=r[5],
        output_status=r[6],
        selected_page=r[7],
        signals=(
            register_to_int16(r[8]),
            register_to_int16(r[9]),
            register_to_int16(r[10]),
            register_to_int16(r[11]),
        ),
    )
