from __future__ import annotations

import logging
import math
from numbers import Number
from typing import Any, Iterable, Mapping, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

YEAR_KEY = "Year"
COUNT_KEYS: Tuple[str, ...] = ("count", "emigrants")


def _extract_count(value: Any, count_keys: Tuple[str, ...] = COUNT_KEYS) -> float:
    """
    A category value is either a bare number or a mapping holding the count.
    Anything that is not a positive finite number counts as 0.
    """
    if isinstance(value, Mapping):
        for k in count_keys:
            if k in value:
                value = value[k]
                break
        else:
            return 0.0

    if isinstance(value, bool) or not isinstance(value, Number):
        return 0.0
    v = float(value)
    if not math.isfinite(v) or v <= 0:
        return 0.0
    return v


def aggregate_yearly(
    records: Iterable[Mapping[str, Any]],
    year_key: str = YEAR_KEY,
    count_keys: Tuple[str, ...] = COUNT_KEYS,
) -> pd.DataFrame:
    """
    Collapse per-year category records into one scalar series.

    Each record maps category -> count (or -> {"count": n}) plus a year field.
    Output columns: year, value (sorted by year, one row per year).
    Records sharing a year are summed together.
    """
    rows = []
    for rec in records:
        try:
            year = int(rec[year_key])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping record without a usable %r field", year_key)
            continue

        total = 0.0
        for key, value in rec.items():
            if key == year_key:
                continue
            total += _extract_count(value, count_keys)
        rows.append({"year": year, "value": total})

    if not rows:
        return pd.DataFrame({"year": pd.Series(dtype="int64"), "value": pd.Series(dtype=float)})

    df = pd.DataFrame(rows)
    df = df.groupby("year", as_index=False)["value"].sum()
    df = df.sort_values("year").reset_index(drop=True)
    df["year"] = df["year"].astype("int64")
    df["value"] = df["value"].astype(float)
    return df
