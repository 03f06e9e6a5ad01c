"""
Live acquisition stack for DGT4 load-cell transmitters over Modbus/TCP.

The subpackage holds the register codec, protocol client, per-device sessions
and polling engines, and the aggregation/recording layer that the station
composes. The offline stable-window analysis lives one level up so it can be
used on recordings without pulling in the transport.
"""

from .aggregation import AggregationEngine, MeasurementStore
from .client import Dgt4Client, ModbusTcpTransport, RegisterTransport
from .config import DeviceConfig, GroupConfig, RecordingConfig, StationConfig, load_config
from .poller import PollingEngine
from .processing import MedianSmoother, distribute
from .recording import RecordingCsvWriter, SessionRecorder
from .registers import bytes_to_registers, decode_live_frame, register_to_int16, registers_to_int32
from .session import DeviceSession
from .station import ScaleStation

__all__ = [
    "DeviceConfig",
    "GroupConfig",
    "RecordingConfig",
    "StationConfig",
    "load_config",
    "bytes_to_registers",
    "registers_to_int32",
    "register_to_int16",
    "decode_live_frame",
    "Dgt4Client",
    "ModbusTcpTransport",
    "RegisterTransport",
    "DeviceSession",
    "MedianSmoother",
    "distribute",
    "PollingEngine",
    "MeasurementStore",
    "AggregationEngine",
    "SessionRecorder",
    "RecordingCsvWriter",
    "ScaleStation",
]
