from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from yearcast.core.errors import InsufficientDataError


@dataclass(frozen=True)
class Window:
    inputs: Tuple[float, ...]
    target: float


def build_windows(scaled: Sequence[float] | np.ndarray, lookback: int) -> List[Window]:
    """
    Slide a `lookback`-long input window over the series; each window's target
    is the value right after it. Yields len(series) - lookback windows.
    """
    x = np.asarray(scaled, dtype=float)
    lookback = int(lookback)
    if lookback < 1:
        raise ValueError("lookback must be >= 1")

    n_windows = len(x) - lookback
    if n_windows < 0:
        raise InsufficientDataError(required=lookback, available=len(x))

    return [
        Window(inputs=tuple(float(v) for v in x[i - lookback:i]), target=float(x[i]))
        for i in range(lookback, len(x))
    ]


def split_chronological(
    windows: Sequence[Window],
    train_fraction: float = 0.8,
) -> Tuple[List[Window], List[Window]]:
    """
    Time-safe split: the first floor(n * train_fraction) windows train,
    the most recent remainder tests.
    """
    if not 0.0 < train_fraction <= 1.0:
        raise ValueError("train_fraction must be in (0, 1]")

    # round() first so that e.g. 10 * 0.7 does not floor to 6
    cut = int(math.floor(round(len(windows) * train_fraction, 9)))
    return list(windows[:cut]), list(windows[cut:])


def windows_to_arrays(windows: Sequence[Window]) -> Tuple[np.ndarray, np.ndarray]:
    if not windows:
        return np.empty((0, 0), dtype=float), np.empty((0,), dtype=float)
    X = np.array([w.inputs for w in windows], dtype=float)
    y = np.array([w.target for w in windows], dtype=float)
    return X, y
