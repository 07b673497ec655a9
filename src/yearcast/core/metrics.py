from __future__ import annotations

import numpy as np


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    m = np.isfinite(y_true) & np.isfinite(y_pred)
    if m.sum() == 0:
        return float("nan")
    return float(np.mean(np.abs(y_true[m] - y_pred[m])))


def accuracy_percent(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Mean of max(0, 1 - |pred - actual| / |actual|) * 100.
    Points with actual == 0 are left out of the mean; if every point is
    left out the accuracy is 0.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    m = np.isfinite(y_true) & np.isfinite(y_pred) & (y_true != 0)
    if m.sum() == 0:
        return 0.0
    rel_err = np.abs(y_pred[m] - y_true[m]) / np.abs(y_true[m])
    score = np.maximum(0.0, 1.0 - rel_err)
    return float(np.mean(score) * 100.0)
