from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from yearcast.core.errors import InsufficientDataError


@dataclass(frozen=True)
class NormalizationParams:
    min: float
    max: float

    def __post_init__(self) -> None:
        if self.max < self.min:
            raise ValueError(f"max ({self.max}) must be >= min ({self.min})")

    @property
    def span(self) -> float:
        return float(self.max - self.min)

    def apply(self, values: Sequence[float] | np.ndarray) -> np.ndarray:
        """Scale with these (fixed) params; a constant series maps to 0."""
        x = np.asarray(values, dtype=float)
        if self.span == 0:
            return np.zeros_like(x)
        return (x - self.min) / self.span

    def invert(self, scaled: Sequence[float] | np.ndarray) -> np.ndarray:
        s = np.asarray(scaled, dtype=float)
        return s * self.span + self.min


def normalize(values: Sequence[float] | np.ndarray) -> Tuple[np.ndarray, NormalizationParams]:
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        raise ValueError("Cannot normalize an empty series.")
    params = NormalizationParams(min=float(np.min(x)), max=float(np.max(x)))
    return params.apply(x), params


def denormalize(scaled: Sequence[float] | np.ndarray, params: NormalizationParams) -> np.ndarray:
    return params.invert(scaled)


@dataclass(frozen=True)
class PreparedSeries:
    """
    A scalar yearly series together with its scaled values and the
    normalization params computed once for it.
    """
    years: np.ndarray
    values: np.ndarray
    scaled: np.ndarray
    params: NormalizationParams

    def __len__(self) -> int:
        return int(self.values.size)

    @property
    def last_year(self) -> int:
        return int(self.years[-1])


def prepare_series(series: pd.DataFrame) -> PreparedSeries:
    """series columns: year, value (as produced by aggregate_yearly)."""
    missing = {"year", "value"} - set(series.columns)
    if missing:
        raise ValueError(f"Series is missing columns: {sorted(missing)}")

    df = series.dropna(subset=["year", "value"]).sort_values("year")
    if df.empty:
        raise InsufficientDataError(required=1, available=0, message="Dataset holds no yearly records.")
    years = df["year"].to_numpy(dtype="int64")
    if years.size > 1 and np.any(np.diff(years) <= 0):
        raise ValueError("Series years must be strictly increasing.")

    values = df["value"].to_numpy(dtype=float)
    scaled, params = normalize(values)
    return PreparedSeries(years=years, values=values, scaled=scaled, params=params)
