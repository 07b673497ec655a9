from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from yearcast.core.forecast import ForecastPoint
from yearcast.core.normalize import PreparedSeries

COLUMNS = ["Year", "Value", "Type"]


def forecast_table(
    history: PreparedSeries,
    points: Sequence[ForecastPoint],
    history_tail: Optional[int] = None,
) -> pd.DataFrame:
    """
    Historical rows followed by forecast rows; values rounded to whole counts.
    history_tail keeps only the most recent N historical years.
    """
    years = history.years.tolist()
    values = history.values.tolist()
    if history_tail is not None:
        n = max(0, int(history_tail))
        years = years[-n:] if n else []
        values = values[-n:] if n else []

    rows = [(y, v, "historical") for y, v in zip(years, values)]
    rows += [(p.year, p.predicted_value, "forecast") for p in points]

    out = pd.DataFrame(rows, columns=COLUMNS)
    out["Year"] = out["Year"].astype("int64")
    out["Value"] = np.rint(out["Value"].astype(float)).astype("int64")
    return out


def to_csv_text(table: pd.DataFrame) -> str:
    return table[COLUMNS].to_csv(index=False, lineterminator="\n")


def export_filename(dataset_id: str, horizon: int) -> str:
    return f"forecast-{dataset_id}-{int(horizon)}years.csv"


def write_forecast_csv(table: pd.DataFrame, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_csv_text(table), encoding="utf-8")
    return path
