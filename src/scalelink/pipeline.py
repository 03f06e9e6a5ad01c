"""High level orchestration for offline session analysis."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .data import load_recording_csv
from .dgt4.recording import sample_columns, sample_row
from .models import RecordedSample
from .stable_window import AnalysisConfig, SessionSummary, StableWindowAnalyzer


@dataclass(frozen=True)
class AnalysisResult:
    samples: List[RecordedSample]
    summary: SessionSummary

    def window_table(self) -> pd.DataFrame:
        """Rows of the recording that fall inside the stable window."""
        window = self.summary.window
        if not self.samples:
            return pd.DataFrame(columns=["index", "total"])
        rows = [
            sample_row(idx + 1, sample)
            for idx, sample in enumerate(self.samples)
            if window.start <= idx <= window.end
        ]
        return pd.DataFrame(rows, columns=sample_columns(self.samples[0]))


def run_analysis(
    path: str | Path,
    params: Optional[AnalysisConfig] = None,
    *,
    field: str = "total",
) -> AnalysisResult:
    """Load a recording and locate its stable window on *field*."""

    samples = load_recording_csv(path)
    if samples and field not in samples[0].fields():
        raise ValueError(f"Unknown field '{field}', expected one of {list(samples[0].fields())}")
    summary = StableWindowAnalyzer(params).summarize(samples, field)
    return AnalysisResult(samples=samples, summary=summary)
