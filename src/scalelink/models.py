from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, NamedTuple, Tuple

CHANNEL_COUNT = 4
SENSITIVITY_EPSILON = 1e-6


@dataclass(frozen=True)
class DeviceEndpoint:
    """Network identity of one transmitter. Rebuild the session to change it."""

    name: str
    host: str
    port: int = 502
    unit_id: int = 1
    poll_interval_ms: int = 200

    def with_host(self, host: str) -> "DeviceEndpoint":
        return replace(self, host=host)


@dataclass(frozen=True)
class LiveFrame:
    """Decoded live page: gross/net, status words and four channel signals."""

    gross: int
    net: int
    input_status: int
    command_status: int
    output_status: int
    selected_page: int
    signals: Tuple[int, int, int, int]


class ChannelId(NamedTuple):
    device: str
    index: int

    @classmethod
    def of(cls, device: str, index: int) -> "ChannelId":
        if not 1 <= int(index) <= CHANNEL_COUNT:
            raise ValueError(f"Channel index must be 1..{CHANNEL_COUNT}, got {index}")
        return cls(device, int(index))

    def __str__(self) -> str:
        return f"{self.device}/CH{self.index}"


@dataclass(frozen=True)
class ChannelSignal:
    signal: int
    sensitivity: float

    @property
    def effective_sensitivity(self) -> float:
        return effective_sensitivity(self.sensitivity)


def effective_sensitivity(value: float) -> float:
    return value if value > SENSITIVITY_EPSILON else 1.0


@dataclass(frozen=True)
class ScaleReading:
    device: str
    timestamp: datetime
    weight: float
    stable: bool
    raw_gross: int
    input_status: int
    signals: Tuple[int, ...]

    def with_weight(self, weight: float) -> "ScaleReading":
        return replace(self, weight=weight)


@dataclass(frozen=True)
class ChannelReading:
    channel: ChannelId
    timestamp: datetime
    signal: int
    weight: float
    percent: float


@dataclass(frozen=True)
class GroupDefinition:
    name: str
    members: Tuple[ChannelId, ...]


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class AggregatedSnapshot:
    """Latest readings of every device and channel plus derived sums."""

    timestamp: datetime
    scales: Mapping[str, ScaleReading] = field(default_factory=dict)
    channels: Mapping[ChannelId, ChannelReading] = field(default_factory=dict)
    total: float = 0.0
    groups: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scales", _frozen(self.scales))
        object.__setattr__(self, "channels", _frozen(self.channels))
        object.__setattr__(self, "groups", _frozen(self.groups))

    def group_percent(self, name: str) -> float:
        if self.total <= 1e-4:
            return 0.0
        return self.groups.get(name, 0.0) / self.total * 100.0

    def device_weight(self, device: str) -> float:
        reading = self.scales.get(device)
        return reading.weight if reading is not None else 0.0


@dataclass(frozen=True)
class RecordedSample:
    """One row of a recorded session, holding display-rounded values."""

    rx_times: Mapping[str, str]
    total: float
    device_weights: Mapping[str, float]
    group_weights: Mapping[str, float]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rx_times", _frozen(self.rx_times))
        object.__setattr__(self, "device_weights", _frozen(self.device_weights))
        object.__setattr__(self, "group_weights", _frozen(self.group_weights))

    def fields(self) -> Tuple[str, ...]:
        return (
            ("total",)
            + tuple(f"device:{name}" for name in self.device_weights)
            + tuple(f"group:{name}" for name in self.group_weights)
        )

    def value(self, field_name: str) -> float:
        if field_name == "total":
            return self.total
        kind, _, name = field_name.partition(":")
        if kind == "device":
            return self.device_weights.get(name, 0.0)
        if kind == "group":
            return self.group_weights.get(name, 0.0)
        raise KeyError(f"Unknown sample field '{field_name}'")


@dataclass(frozen=True)
class StableWindow:
    start: int
    end: int

    @property
    def length(self) -> int:
        return max(0, self.end - self.start + 1)

    @classmethod
    def empty(cls) -> "StableWindow":
        return cls(0, -1)
