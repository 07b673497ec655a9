from __future__ import annotations

import warnings
from typing import Callable, Optional, Protocol

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.neural_network import MLPRegressor


class WindowPredictor(Protocol):
    """
    Anything that learns window -> next value by iterative gradient fitting.
    fit_epoch makes one pass over (X, y) and returns the training loss.
    """

    def fit_epoch(self, X: np.ndarray, y: np.ndarray) -> float:
        ...

    def predict(self, X: np.ndarray) -> np.ndarray:
        ...


class MLPWindowPredictor:
    """
    Single hidden layer network over the lookback window.

    Dropout is applied to the input window during fitting (inverted dropout,
    a fresh mask per epoch); prediction always sees the full window.
    """

    def __init__(
        self,
        hidden_units: int,
        dropout_rate: float,
        batch_size: int = 8,
        learning_rate: float = 0.001,
        l2: float = 1e-4,
        random_state: Optional[int] = 42,
    ) -> None:
        self.hidden_units = int(hidden_units)
        self.dropout_rate = float(dropout_rate)
        self.batch_size = int(batch_size)
        self._rng = np.random.default_rng(random_state)
        self.model = MLPRegressor(
            hidden_layer_sizes=(self.hidden_units,),
            activation="tanh",
            solver="adam",
            alpha=l2,
            batch_size=self.batch_size,
            learning_rate_init=learning_rate,
            shuffle=False,
            random_state=random_state,
        )

    def _drop_inputs(self, X: np.ndarray) -> np.ndarray:
        p = self.dropout_rate
        if p <= 0:
            return X
        if p >= 1:
            return np.zeros_like(X)
        mask = self._rng.random(X.shape) >= p
        return X * mask / (1.0 - p)

    def fit_epoch(self, X: np.ndarray, y: np.ndarray) -> float:
        order = self._rng.permutation(len(X))
        Xe = self._drop_inputs(X[order])
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            self.model.partial_fit(Xe, y[order])
        return float(self.model.loss_)

    def predict(self, X: np.ndarray) -> np.ndarray:
        return np.asarray(self.model.predict(np.asarray(X, dtype=float)), dtype=float).reshape(-1)


PredictorFactory = Callable[..., WindowPredictor]


def make_predictor(config, train_cfg) -> WindowPredictor:
    """Default factory: (HyperparameterConfig, TrainConfig) -> predictor."""
    return MLPWindowPredictor(
        hidden_units=config.hidden_units,
        dropout_rate=config.dropout_rate,
        batch_size=train_cfg.batch_size,
        learning_rate=train_cfg.learning_rate,
        l2=train_cfg.l2,
        random_state=train_cfg.random_state,
    )
