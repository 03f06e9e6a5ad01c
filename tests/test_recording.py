from __future__ import annotations

import csv
from datetime import datetime

import pytest

from scalelink.dgt4.aggregation import AggregationEngine, MeasurementStore
from scalelink.dgt4.recording import (
    RecordingCsvWriter,
    SessionRecorder,
    format_rx_time,
    sample_from_snapshot,
    write_recording_csv,
)
from scalelink.models import AggregatedSnapshot, ChannelId, ChannelReading, GroupDefinition, ScaleReading


def _engine():
    store = MeasurementStore()
    groups = [GroupDefinition("G1", (ChannelId.of("scale1", 1), ChannelId.of("scale1", 2)))]
    return store, AggregationEngine(store, groups)


def _publish(store, device, weight, when):
    scale = ScaleReading(device, when, weight, True, int(weight), 0, (1, 1, 1, 1))
    channels = [ChannelReading(ChannelId.of(device, idx), when, 1, weight / 4, 25.0) for idx in range(1, 5)]
    store.publish(scale, channels)


def test_format_rx_time():
    assert format_rx_time(datetime(2024, 5, 1, 9, 3, 7, 45_600)) == "09:03:07.045"
    assert format_rx_time(None) == ""


def test_sample_rounds_and_marks_missing_devices():
    store, engine = _engine()
    _publish(store, "scale1", 10.006, datetime(2024, 5, 1, 9, 0, 0))
    sample = sample_from_snapshot(engine.snapshot, ["scale1", "scale2"], ["G1"])
    assert sample.total == 10.01
    assert dict(sample.device_weights) == {"scale1": 10.01, "scale2": 0.0}
    assert dict(sample.group_weights) == {"G1": 5.0}
    assert sample.rx_times["scale1"] == "09:00:00.000"
    assert sample.rx_times["scale2"] == ""
    assert sample.fields() == ("total", "device:scale1", "device:scale2", "group:G1")
    assert sample.value("group:G1") == 5.0
    with pytest.raises(KeyError):
        sample.value("weird")


def test_recorder_is_bounded_and_notifies():
    store, engine = _engine()
    recorder = SessionRecorder(engine, ["scale1"], ["G1"], max_samples=3)
    seen = []
    recorder.register_callback(seen.append)
    for weight in range(5):
        _publish(store, "scale1", float(weight), datetime(2024, 5, 1, 9, 0, weight))
        recorder.record()
    samples = recorder.samples()
    assert isinstance(samples, tuple)
    assert [sample.total for sample in samples] == [2.0, 3.0, 4.0]
    assert len(seen) == 5
    recorder.clear()
    assert len(recorder) == 0


def test_csv_writer_is_lazy(tmp_path):
    path = tmp_path / "out" / "session.csv"
    writer = RecordingCsvWriter(path)
    writer.close()
    assert not path.exists()


def test_write_recording_csv_columns(tmp_path):
    store, engine = _engine()
    recorder = SessionRecorder(engine, ["scale1", "scale2"], ["G1"])
    _publish(store, "scale1", 12.5, datetime(2024, 5, 1, 9, 0, 0))
    recorder.record()
    _publish(store, "scale2", 7.25, datetime(2024, 5, 1, 9, 0, 1))
    recorder.record()

    path = tmp_path / "session.csv"
    write_recording_csv(path, recorder.samples())
    with path.open(newline="", encoding="utf-8") as fh:
        rows = list(csv.DictReader(fh))
    assert list(rows[0]) == ["index", "rx:scale1", "rx:scale2", "total", "device:scale1", "device:scale2", "group:G1"]
    assert rows[0]["index"] == "1"
    assert rows[0]["rx:scale2"] == ""
    assert rows[1]["total"] == "19.75"
    assert rows[1]["group:G1"] == "6.25"


def test_empty_snapshot_records_zeros():
    snapshot = AggregatedSnapshot(timestamp=datetime(2024, 5, 1), groups={"G1": 0.0})
    sample = sample_from_snapshot(snapshot, ["scale1"], ["G1"])
    assert sample.total == 0.0
    assert dict(sample.group_weights) == {"G1": 0.0}
