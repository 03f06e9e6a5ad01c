"""Report writers for analysed sessions."""
from __future__ import annotations

from pathlib import Path

import pandas as pd

from .pipeline import AnalysisResult


def export_summary(result: AnalysisResult, output_dir: Path) -> None:
    """Persist the per-field averages and the stable-window rows to *output_dir*."""

    output_dir.mkdir(parents=True, exist_ok=True)
    _write_summary_csv(result, output_dir)
    result.window_table().to_csv(output_dir / "window.csv", index=False)


def _write_summary_csv(result: AnalysisResult, output_dir: Path) -> None:
    summary = result.summary
    window = summary.window
    rows: list[dict[str, object]] = []
    for name, average in summary.averages.items():
        rows.append(
            {
                "field": name,
                "average": round(average, 2),
                "window_start": window.start,
                "window_end": window.end,
                "window_length": window.length,
                "located_on": summary.field_name,
            }
        )
    for device, rx_time in summary.last_active_rx.items():
        rows.append({"field": f"rx:{device}", "average": None, "last_active_rx": rx_time})
    columns = ["field", "average", "window_start", "window_end", "window_length", "located_on", "last_active_rx"]
    pd.DataFrame(rows, columns=columns).to_csv(output_dir / "summary.csv", index=False)
