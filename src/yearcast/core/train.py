from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import numpy as np

from yearcast.core.errors import ConfigurationError, InsufficientDataError, TrainingFailure
from yearcast.core.features import build_windows, split_chronological, windows_to_arrays
from yearcast.core.metrics import accuracy_percent, mae
from yearcast.core.normalize import NormalizationParams, PreparedSeries
from yearcast.core.predictor import PredictorFactory, WindowPredictor, make_predictor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainConfig:
    """Session-wide training budget; never part of the searched grid."""
    epochs: int = 50
    batch_size: int = 8
    learning_rate: float = 0.001
    l2: float = 1e-4
    train_fraction: float = 0.8
    min_extra_points: int = 10  # series must hold lookback + this many points
    random_state: Optional[int] = 42


@dataclass(frozen=True)
class HyperparameterConfig:
    lookback: int
    hidden_units: int
    dropout_rate: float

    def __post_init__(self) -> None:
        if int(self.lookback) < 1:
            raise ConfigurationError(f"lookback must be >= 1, got {self.lookback}")
        if int(self.hidden_units) < 1:
            raise ConfigurationError(f"hidden_units must be >= 1, got {self.hidden_units}")
        if not 0.0 <= float(self.dropout_rate) <= 1.0:
            raise ConfigurationError(f"dropout_rate must be in [0, 1], got {self.dropout_rate}")

    @property
    def name(self) -> str:
        return f"L{self.lookback}_N{self.hidden_units}_D{self.dropout_rate}"

    def describe(self) -> str:
        return f"Lookback: {self.lookback}, Neurons: {self.hidden_units}, Dropout: {self.dropout_rate}"


@dataclass(frozen=True)
class CandidateResult:
    """
    One trained candidate. The predictor lives in memory only; persisting a
    candidate keeps its hyperparameters and metrics, never its weights.
    """
    config: HyperparameterConfig
    predictor: WindowPredictor = field(repr=False, compare=False)
    normalization: NormalizationParams
    mean_absolute_error: float
    accuracy_percent: float
    test_actual: Tuple[float, ...]
    test_predicted: Tuple[float, ...]

    @property
    def name(self) -> str:
        return self.config.name


def min_points_required(config: HyperparameterConfig, train_cfg: TrainConfig = TrainConfig()) -> int:
    return int(config.lookback) + int(train_cfg.min_extra_points)


def _check_finite(values: np.ndarray, config: HyperparameterConfig, what: str) -> None:
    if not np.all(np.isfinite(values)):
        raise TrainingFailure(config, f"non-finite {what}")


def train_candidate(
    series: PreparedSeries,
    config: HyperparameterConfig,
    train_cfg: TrainConfig = TrainConfig(),
    predictor_factory: PredictorFactory = make_predictor,
    on_epoch: Optional[Callable[[int, float], None]] = None,
) -> CandidateResult:
    """
    Fit one predictor for `config` on the first 80% of windows and score it
    on the most recent 20%, in the series' original scale.

    on_epoch(epoch, loss) is called at every epoch boundary.
    """
    required = min_points_required(config, train_cfg)
    if len(series) < required:
        raise InsufficientDataError(required=required, available=len(series))

    windows = build_windows(series.scaled, config.lookback)
    train_w, test_w = split_chronological(windows, train_cfg.train_fraction)
    if not train_w or not test_w:
        raise InsufficientDataError(
            required=required,
            available=len(series),
            message=f"Split left {len(train_w)} train / {len(test_w)} test windows.",
        )

    X_train, y_train = windows_to_arrays(train_w)
    X_test, y_test = windows_to_arrays(test_w)

    logger.debug("Training %s on %d windows (%d held out)", config.name, len(train_w), len(test_w))
    try:
        predictor = predictor_factory(config, train_cfg)
        for epoch in range(1, int(train_cfg.epochs) + 1):
            loss = predictor.fit_epoch(X_train, y_train)
            _check_finite(np.asarray([loss], dtype=float), config, f"loss at epoch {epoch}")
            if on_epoch is not None:
                on_epoch(epoch, float(loss))
        pred_scaled = np.asarray(predictor.predict(X_test), dtype=float).reshape(-1)
    except TrainingFailure:
        raise
    except (ValueError, ArithmeticError) as e:
        raise TrainingFailure(config, str(e)) from e

    _check_finite(pred_scaled, config, "predictions")
    if pred_scaled.size != y_test.size:
        raise TrainingFailure(config, f"expected {y_test.size} predictions, got {pred_scaled.size}")

    params = series.params
    actual = params.invert(y_test)
    predicted = params.invert(pred_scaled)

    return CandidateResult(
        config=config,
        predictor=predictor,
        normalization=params,
        mean_absolute_error=mae(actual, predicted),
        accuracy_percent=accuracy_percent(actual, predicted),
        test_actual=tuple(float(v) for v in actual),
        test_predicted=tuple(float(v) for v in predicted),
    )
