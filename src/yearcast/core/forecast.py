from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from yearcast.core.errors import ConfigurationError
from yearcast.core.normalize import PreparedSeries
from yearcast.core.train import CandidateResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastConfig:
    min_horizon: int = 1
    max_horizon: int = 10
    clamp: bool = False  # clamp out-of-range horizons instead of raising


@dataclass(frozen=True)
class ForecastPoint:
    year: int
    predicted_value: float


def resolve_horizon(horizon: int, cfg: ForecastConfig = ForecastConfig()) -> int:
    if isinstance(horizon, bool) or not isinstance(horizon, (int, np.integer)):
        raise ConfigurationError(f"Forecast horizon must be an integer, got {horizon!r}")
    h = int(horizon)
    if cfg.min_horizon <= h <= cfg.max_horizon:
        return h
    if not cfg.clamp:
        raise ConfigurationError(
            f"Forecast horizon {h} outside [{cfg.min_horizon}, {cfg.max_horizon}]"
        )
    clamped = min(cfg.max_horizon, max(cfg.min_horizon, h))
    logger.warning("Forecast horizon %d clamped to %d", h, clamped)
    return clamped


def iter_forecast(
    candidate: CandidateResult,
    history: PreparedSeries,
    horizon: int,
    cfg: ForecastConfig = ForecastConfig(),
) -> Iterator[ForecastPoint]:
    """
    Autoregressive rollout: each prediction is fed back as the newest input.

    Uses the candidate's training-time normalization params, not ones
    recomputed from `history`. Errors compound with the horizon.
    """
    if not isinstance(candidate, CandidateResult):
        raise TypeError(
            "Forecasting needs a trained CandidateResult; retrain a stored model record first."
        )
    n = resolve_horizon(horizon, cfg)
    lookback = int(candidate.config.lookback)
    if len(history) < lookback:
        raise ConfigurationError(
            f"History has {len(history)} points but the model needs a {lookback}-year window"
        )

    params = candidate.normalization
    scaled = params.apply(history.values)
    window = deque(scaled[-lookback:].tolist(), maxlen=lookback)
    last_year = history.last_year

    for step in range(1, n + 1):
        X = np.asarray([list(window)], dtype=float)
        y_scaled = float(np.asarray(candidate.predictor.predict(X), dtype=float).reshape(-1)[0])
        window.append(y_scaled)
        y = float(params.invert([y_scaled])[0])
        yield ForecastPoint(year=last_year + step, predicted_value=y)


def forecast_recursive(
    candidate: CandidateResult,
    history: PreparedSeries,
    horizon: int,
    cfg: ForecastConfig = ForecastConfig(),
) -> List[ForecastPoint]:
    points = list(iter_forecast(candidate, history, horizon, cfg))
    logger.info(
        "Forecast %d years (%d-%d) with %s",
        len(points), points[0].year, points[-1].year, candidate.name,
    )
    return points

