"""Demo recording utilities."""
from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import numpy as np

from .dgt4.recording import format_rx_time, write_recording_csv
from .models import RecordedSample
from .pipeline import AnalysisResult, run_analysis
from .reporting import export_summary

DEMO_DEVICES = ("scale1", "scale2")
DEMO_GROUPS = {"G1": ("scale1", 0.52), "G2": ("scale1", 0.48), "G3": ("scale2", 0.55), "G4": ("scale2", 0.45)}


def create_demo_recording(load_kg: float = 120.0, interval_ms: int = 250) -> List[RecordedSample]:
    rng = np.random.default_rng(42)
    baseline = rng.normal(0.0, 0.2, size=20)
    ramp = np.linspace(0.0, load_kg, 15)
    plateau = load_kg + rng.normal(0.0, 0.4, size=80)
    # a few handling knocks on the platform
    spikes = rng.choice(plateau.size, size=4, replace=False)
    plateau[spikes] += rng.choice([-1.0, 1.0], size=4) * load_kg * 0.05
    unload = np.linspace(load_kg, 0.0, 10)
    tail = rng.normal(0.0, 0.2, size=15)
    totals = np.concatenate([baseline, ramp, plateau, unload, tail])

    share = np.clip(0.58 + rng.normal(0.0, 0.005, size=totals.size), 0.0, 1.0)
    started = datetime(2024, 1, 1, 9, 0, 0)
    samples: List[RecordedSample] = []
    for idx, total in enumerate(totals):
        device_weights = {
            "scale1": round(float(total * share[idx]), 2),
            "scale2": round(float(total * (1.0 - share[idx])), 2),
        }
        rx = format_rx_time(started + timedelta(milliseconds=idx * interval_ms))
        samples.append(
            RecordedSample(
                rx_times={name: rx for name in DEMO_DEVICES},
                total=round(float(total), 2),
                device_weights=device_weights,
                group_weights={
                    group: round(device_weights[device] * fraction, 2)
                    for group, (device, fraction) in DEMO_GROUPS.items()
                },
            )
        )
    return samples


def run_demo(out_dir: Path) -> AnalysisResult:
    out_dir.mkdir(parents=True, exist_ok=True)
    csv_path = out_dir / "demo_recording.csv"
    write_recording_csv(csv_path, create_demo_recording())

    result = run_analysis(csv_path)
    export_summary(result, out_dir)
    return result
