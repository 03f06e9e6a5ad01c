from __future__ import annotations

import json
from pathlib import Path

import pytest

from scalelink.dgt4.config import StationConfig, config_from_mapping, load_config
from scalelink.errors import ConfigError
from scalelink.models import ChannelId

SAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "station" / "config.json"


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_sample_config_loads():
    cfg = load_config(SAMPLE_CONFIG)
    assert [device.name for device in cfg.devices] == ["scale1", "scale2"]
    assert cfg.devices[0].host == "192.168.199.123"
    assert cfg.devices[1].sensitivities == [2.008, 2.0055, 2.0073, 2.0080]
    assert [group.name for group in cfg.groups] == ["G1", "G2", "G3", "G4"]
    assert cfg.groups[3].members == [ChannelId("scale2", 3), ChannelId("scale2", 4)]
    assert cfg.timeout_ms == 1500
    assert cfg.recording.interval_ms == 250
    assert cfg.analysis.min_stable_samples == 12


def test_load_config_overrides(tmp_path: Path) -> None:
    path = _write(tmp_path, {"devices": [{"name": "a", "host": "10.0.0.1"}]})
    cfg = load_config(
        path,
        overrides=[
            "median_window=7",
            "recording.interval_ms=500",
            "recording.output_csv=out/session.csv",
            "analysis.active_threshold=2.5",
        ],
    )
    assert cfg.median_window == 7
    assert cfg.recording.interval_ms == 500
    assert cfg.recording.output_csv == Path("out/session.csv")
    assert cfg.analysis.active_threshold == 2.5
    assert cfg.devices[0].port == 502
    assert cfg.devices[0].sensitivities == [1.0, 1.0, 1.0, 1.0]


def test_defaults():
    cfg = config_from_mapping({})
    assert cfg == StationConfig()
    assert cfg.median_window == 5
    assert cfg.weight_per_division == 1.0


@pytest.mark.parametrize(
    "data",
    [
        {"devices": [{"name": "a"}]},
        {"devices": [{"name": "a", "host": "h", "sensitivities": [1.0, 2.0]}]},
        {"devices": [{"name": "a", "host": "h"}, {"name": "a", "host": "h2"}]},
        {"devices": [{"name": "a", "host": "h"}], "groups": [{"name": "G", "members": [["b", 1]]}]},
        {"devices": [{"name": "a", "host": "h"}], "groups": [{"name": "G", "members": [["a", 5]]}]},
        {"median_window": "wide"},
    ],
)
def test_invalid_configs(data):
    with pytest.raises(ConfigError):
        config_from_mapping(data)


def test_override_requires_key_value(tmp_path: Path):
    path = _write(tmp_path, {})
    with pytest.raises(ConfigError):
        load_config(path, overrides=["median_window"])


def test_device_lookup():
    cfg = load_config(SAMPLE_CONFIG)
    assert cfg.device("scale2").endpoint().host == "192.168.199.124"
    with pytest.raises(KeyError):
        cfg.device("missing")
