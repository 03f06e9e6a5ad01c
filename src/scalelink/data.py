"""Loading utilities for recorded station sessions."""
from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from .models import RecordedSample

REQUIRED_COLUMNS = {"total"}
RX_PREFIX = "rx:"
DEVICE_PREFIX = "device:"
GROUP_PREFIX = "group:"


def load_recording_csv(path: str | Path) -> List[RecordedSample]:
    """Load a recording written by the station and rebuild its samples.

    Parameters
    ----------
    path:
        CSV file with a `total` column and optional `rx:<device>`,
        `device:<device>` and `group:<group>` columns. Blank cells read as 0.

    Returns
    -------
    list[RecordedSample]
        Samples in file order, with column order preserved for every mapping.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    rx_cols = [col for col in df.columns if col.startswith(RX_PREFIX)]
    device_cols = [col for col in df.columns if col.startswith(DEVICE_PREFIX)]
    group_cols = [col for col in df.columns if col.startswith(GROUP_PREFIX)]

    numeric = df[["total"] + device_cols + group_cols].apply(_to_float)

    samples: List[RecordedSample] = []
    for idx in range(len(df)):
        samples.append(
            RecordedSample(
                rx_times={col[len(RX_PREFIX):]: df.at[idx, col] for col in rx_cols},
                total=float(numeric.at[idx, "total"]),
                device_weights={col[len(DEVICE_PREFIX):]: float(numeric.at[idx, col]) for col in device_cols},
                group_weights={col[len(GROUP_PREFIX):]: float(numeric.at[idx, col]) for col in group_cols},
            )
        )
    return samples


def _to_float(column: pd.Series) -> pd.Series:
    cleaned = column.str.strip().replace("", "0")
    values = pd.to_numeric(cleaned, errors="coerce")
    if values.isna().any():
        bad = column[values.isna()].iloc[0]
        raise ValueError(f"Column '{column.name}' holds a non-numeric value: {bad!r}")
    return values.astype(float)
