from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..errors import ConfigError
from ..models import CHANNEL_COUNT, ChannelId, DeviceEndpoint, GroupDefinition
from ..stable_window import AnalysisConfig


@dataclass
class DeviceConfig:
    name: str
    host: str
    port: int = 502
    unit_id: int = 1
    poll_interval_ms: int = 200
    sensitivities: List[float] = field(default_factory=lambda: [1.0] * CHANNEL_COUNT)

    def endpoint(self) -> DeviceEndpoint:
        return DeviceEndpoint(
            name=self.name,
            host=self.host,
            port=self.port,
            unit_id=self.unit_id,
            poll_interval_ms=self.poll_interval_ms,
        )

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "DeviceConfig":
        if "name" not in data or "host" not in data:
            raise ConfigError("devices[] entries require 'name' and 'host'")
        sensitivities = data.get("sensitivities") or [1.0] * CHANNEL_COUNT
        if not isinstance(sensitivities, list) or len(sensitivities) != CHANNEL_COUNT:
            raise ConfigError(f"Device '{data['name']}' needs exactly {CHANNEL_COUNT} sensitivities")
        return DeviceConfig(
            name=str(data["name"]),
            host=str(data["host"]),
            port=int(data.get("port", 502)),
            unit_id=int(data.get("unit_id", 1)),
            poll_interval_ms=int(data.get("poll_interval_ms", 200)),
            sensitivities=[float(value) for value in sensitivities],
        )


@dataclass
class GroupConfig:
    name: str
    members: List[ChannelId] = field(default_factory=list)

    def definition(self) -> GroupDefinition:
        return GroupDefinition(name=self.name, members=tuple(self.members))

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "GroupConfig":
        if "name" not in data:
            raise ConfigError("groups[] entries require 'name'")
        members: List[ChannelId] = []
        for member in data.get("members") or []:
            if not isinstance(member, (list, tuple)) or len(member) != 2:
                raise ConfigError(f"Group '{data['name']}' members must be [device, channel] pairs")
            try:
                members.append(ChannelId.of(str(member[0]), int(member[1])))
            except ValueError as exc:
                raise ConfigError(f"Group '{data['name']}': {exc}") from exc
        return GroupConfig(name=str(data["name"]), members=members)


@dataclass
class RecordingConfig:
    interval_ms: int = 250
    max_samples: int = 5000
    output_csv: Path | None = None


@dataclass
class StationConfig:
    devices: List[DeviceConfig] = field(default_factory=list)
    groups: List[GroupConfig] = field(default_factory=list)
    median_window: int = 5
    weight_per_division: float = 1.0
    timeout_ms: int = 1500
    signal_deadband: float = 0.0
    zero_tolerance: float = 0.0
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    def device(self, name: str) -> DeviceConfig:
        for device in self.devices:
            if device.name == name:
                return device
        raise KeyError(name)

    def validate(self) -> None:
        names = [device.name for device in self.devices]
        if len(set(names)) != len(names):
            raise ConfigError(f"Device names must be unique, got {names}")
        known = set(names)
        for group in self.groups:
            for member in group.members:
                if member.device not in known:
                    raise ConfigError(f"Group '{group.name}' references unknown device '{member.device}'")


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)  # type: ignore[index]
        else:
            merged[key] = value
    return merged


def config_from_mapping(data: Dict[str, Any]) -> StationConfig:
    recording = data.get("recording") or {}
    analysis = data.get("analysis") or {}
    try:
        cfg = StationConfig(
            devices=[DeviceConfig.from_mapping(item) for item in data.get("devices") or []],
            groups=[GroupConfig.from_mapping(item) for item in data.get("groups") or []],
            median_window=int(data.get("median_window", 5)),
            weight_per_division=float(data.get("weight_per_division", 1.0)),
            timeout_ms=int(data.get("timeout_ms", 1500)),
            signal_deadband=float(data.get("signal_deadband", 0.0)),
            zero_tolerance=float(data.get("zero_tolerance", 0.0)),
            recording=RecordingConfig(
                interval_ms=int(recording.get("interval_ms", 250)),
                max_samples=int(recording.get("max_samples", 5000)),
                output_csv=Path(recording["output_csv"]) if recording.get("output_csv") else None,
            ),
            analysis=AnalysisConfig(
                active_threshold=float(analysis.get("active_threshold", 5.0)),
                median_window=int(analysis.get("median_window", 7)),
                plateau_range_factor=float(analysis.get("plateau_range_factor", 0.06)),
                take_middle_fraction=float(analysis.get("take_middle_fraction", 0.60)),
                min_stable_samples=int(analysis.get("min_stable_samples", 12)),
                mad_k=float(analysis.get("mad_k", 3.5)),
            ),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid station configuration: {exc}") from exc
    cfg.validate()
    return cfg


def load_config(path: Path | str, overrides: Sequence[str] | None = None) -> StationConfig:
    """
    Load a station configuration from JSON and apply CLI-style overrides.

    Overrides are expressed as dotted `key=value` pairs, e.g.:
        ["median_window=7", "recording.interval_ms=500"]
    """
    config_path = Path(path)
    data = _load_json(config_path)
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    return config_from_mapping(_merge(data, override_data))


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ConfigError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ConfigError("Override key may not be empty")
    value = _coerce_value(raw_value.strip())
    return key, value


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    if raw.startswith("[") and raw.endswith("]"):
        return json.loads(raw)
    if raw.startswith("{") and raw.endswith("}"):
        return json.loads(raw)
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
