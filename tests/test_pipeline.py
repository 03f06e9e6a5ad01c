from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from scalelink.data import load_recording_csv
from scalelink.demo import create_demo_recording, run_demo
from scalelink.dgt4.recording import write_recording_csv
from scalelink.pipeline import run_analysis
from scalelink.reporting import export_summary


def _recording(tmp_path: Path) -> Path:
    path = tmp_path / "session.csv"
    write_recording_csv(path, create_demo_recording())
    return path


def test_load_recording_roundtrip(tmp_path: Path) -> None:
    samples = create_demo_recording()
    path = _recording(tmp_path)
    loaded = load_recording_csv(path)
    assert len(loaded) == len(samples)
    assert loaded[30] == samples[30]
    assert loaded[0].fields() == ("total", "device:scale1", "device:scale2", "group:G1", "group:G2", "group:G3", "group:G4")


def test_load_recording_requires_total(tmp_path: Path) -> None:
    path = tmp_path / "bad.csv"
    pd.DataFrame({"index": [1], "device:scale1": [1.0]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="total"):
        load_recording_csv(path)


def test_load_recording_blank_cells_are_zero(tmp_path: Path) -> None:
    path = tmp_path / "blank.csv"
    path.write_text("index,rx:scale1,total,device:scale1\n1,,,\n2,09:00:00.250,12.5,12.5\n", encoding="utf-8")
    samples = load_recording_csv(path)
    assert samples[0].total == 0.0
    assert samples[0].rx_times["scale1"] == ""
    assert samples[1].device_weights["scale1"] == 12.5


def test_run_analysis_on_demo(tmp_path: Path) -> None:
    result = run_analysis(_recording(tmp_path))
    summary = result.summary
    assert summary.average == pytest.approx(120.0, abs=1.0)
    assert summary.window.length >= 12
    assert 35 <= summary.window.start and summary.window.end <= 114
    assert summary.averages["device:scale1"] + summary.averages["device:scale2"] == pytest.approx(
        summary.average, abs=0.5
    )


def test_run_analysis_rejects_unknown_field(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        run_analysis(_recording(tmp_path), field="group:G9")


def test_run_analysis_on_group_field(tmp_path: Path) -> None:
    result = run_analysis(_recording(tmp_path), field="group:G1")
    assert result.summary.field_name == "group:G1"
    assert result.summary.average > 0


def test_export_summary(tmp_path: Path) -> None:
    result = run_analysis(_recording(tmp_path))
    out_dir = tmp_path / "report"
    export_summary(result, out_dir)

    summary = pd.read_csv(out_dir / "summary.csv")
    assert summary["field"].tolist()[:3] == ["total", "device:scale1", "device:scale2"]
    assert set(summary["window_length"].dropna().astype(int)) == {result.summary.window.length}
    window_rows = pd.read_csv(out_dir / "window.csv")
    assert len(window_rows) == result.summary.window.length
    assert window_rows["index"].iloc[0] == result.summary.window.start + 1


def test_run_demo(tmp_path: Path) -> None:
    result = run_demo(tmp_path)
    assert (tmp_path / "demo_recording.csv").exists()
    assert (tmp_path / "summary.csv").exists()
    assert (tmp_path / "window.csv").exists()
    assert result.summary.sample_count == 140
