from __future__ import annotations

from typing import Dict, List

import numpy as np
import pandas as pd
import pytest

from yearcast.core.normalize import prepare_series


class LastValuePredictor:
    """Persistence model: next value = last value in the window."""

    def __init__(self, loss: float = 0.0) -> None:
        self.loss = loss
        self.epochs = 0
        self.seen: List[List[float]] = []

    def fit_epoch(self, X, y) -> float:
        self.epochs += 1
        return self.loss

    def predict(self, X):
        X = np.asarray(X, dtype=float)
        self.seen.extend(X.tolist())
        return X[:, -1]


class ConstantPredictor(LastValuePredictor):
    def __init__(self, value: float) -> None:
        super().__init__()
        self.value = value

    def predict(self, X):
        X = np.asarray(X, dtype=float)
        self.seen.extend(X.tolist())
        return np.full(len(X), self.value)


def last_value_factory(config, train_cfg):
    return LastValuePredictor()


class DictRecordSource:
    def __init__(self, datasets: Dict[str, List[dict]]) -> None:
        self.datasets = datasets
        self.calls = 0

    def fetch(self, dataset_id: str) -> List[dict]:
        self.calls += 1
        return list(self.datasets[dataset_id])


def make_records(values, start_year: int = 2001) -> List[dict]:
    # split each total across two categories, one bare and one nested
    out = []
    for i, v in enumerate(values):
        out.append({"Year": start_year + i, "USA": {"emigrants": v - 10}, "Canada": 10})
    return out


LONG_VALUES = [100 + 10 * i + (i % 3) * 5 for i in range(20)]  # 2001..2020


@pytest.fixture
def long_series():
    years = list(range(2001, 2021))
    return prepare_series(pd.DataFrame({"year": years, "value": LONG_VALUES}))


@pytest.fixture
def short_series():
    values = [10, 12, 11, 15, 20, 18, 25, 30, 28, 35]
    return prepare_series(pd.DataFrame({"year": list(range(2011, 2021)), "value": values}))


@pytest.fixture
def source():
    return DictRecordSource({"emigrantData_destination": make_records(LONG_VALUES)})
