from __future__ import annotations

import itertools
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

import pandas as pd

from yearcast.core.errors import ConfigurationError, InsufficientDataError, TrainingFailure
from yearcast.core.normalize import PreparedSeries
from yearcast.core.predictor import PredictorFactory, make_predictor
from yearcast.core.train import CandidateResult, HyperparameterConfig, TrainConfig, train_candidate

logger = logging.getLogger(__name__)

GRID_FIELDS = ("lookback", "hidden_units", "dropout_rate")
GRID_ALIASES = {
    "hiddenUnits": "hidden_units",
    "lstmNeurons": "hidden_units",
    "neurons": "hidden_units",
    "dropout": "dropout_rate",
    "dropoutRate": "dropout_rate",
}

EpochCallback = Callable[[HyperparameterConfig, int, float], None]

DEFAULT_GRID: Dict[str, List[float]] = {
    "lookback": [3],
    "hidden_units": [32, 50, 64, 100],
    "dropout_rate": [0.1],
}


@dataclass(frozen=True)
class TuningConfig:
    # Checked between candidates; a running candidate is never interrupted.
    max_seconds: Optional[float] = None


@dataclass(frozen=True)
class BestSoFar:
    accuracy: float
    config: str


@dataclass(frozen=True)
class ProgressEvent:
    current: int
    total: int
    config: str
    status: str  # "ok" | "failed" | "skipped"
    best_so_far: Optional[BestSoFar]
    error: Optional[str] = None


def _canonical_grid(grid: Mapping[str, Sequence]) -> Dict[str, List]:
    out: Dict[str, List] = {}
    for key, values in grid.items():
        name = GRID_ALIASES.get(key, key)
        if name not in GRID_FIELDS:
            raise ConfigurationError(f"Unknown hyperparameter in grid: {key!r}")
        if name in out:
            raise ConfigurationError(f"Hyperparameter given twice in grid: {name!r}")
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise ConfigurationError(f"Grid entry {key!r} must be a list of values")
        if len(values) == 0:
            raise ConfigurationError(f"Grid entry {key!r} is empty; no combinations to try")
        out[name] = list(values)

    missing = [f for f in GRID_FIELDS if f not in out]
    if missing:
        raise ConfigurationError(f"Grid is missing hyperparameters: {missing}")
    return out


def expand_grid(grid: Mapping[str, Sequence]) -> List[HyperparameterConfig]:
    """Cartesian product of the grid's value lists, in lookback-major order."""
    g = _canonical_grid(grid)
    try:
        return [
            HyperparameterConfig(lookback=int(lb), hidden_units=int(hu), dropout_rate=float(d))
            for lb, hu, d in itertools.product(g["lookback"], g["hidden_units"], g["dropout_rate"])
        ]
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid grid value: {e}") from e


def load_grid(path: str | Path) -> Dict[str, List]:
    path = Path(path)
    try:
        grid = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read grid file {path}: {e}") from e
    if not isinstance(grid, dict):
        raise ConfigurationError("Grid file must hold a JSON object of name -> list of values")
    expand_grid(grid)
    return grid


def rank_candidates(results: Sequence[CandidateResult]) -> List[CandidateResult]:
    """Best first: higher accuracy, then lower MAE."""
    return sorted(results, key=lambda r: (-r.accuracy_percent, r.mean_absolute_error))


class TuningSession:
    """
    Sequential grid search over one series.

    steps() trains one candidate per iteration and yields a ProgressEvent
    after each attempt; `status` always holds the latest event for polling.
    on_epoch(config, epoch, loss) fires at every epoch boundary of every candidate.
    """

    def __init__(
        self,
        series: PreparedSeries,
        grid: Mapping[str, Sequence],
        train_cfg: TrainConfig = TrainConfig(),
        tuning_cfg: TuningConfig = TuningConfig(),
        predictor_factory: PredictorFactory = make_predictor,
        clock: Callable[[], float] = time.monotonic,
        on_epoch: Optional[EpochCallback] = None,
    ) -> None:
        self.series = series
        self.configs = expand_grid(grid)
        self.train_cfg = train_cfg
        self.tuning_cfg = tuning_cfg
        self.predictor_factory = predictor_factory
        self.clock = clock
        self.on_epoch = on_epoch

        self.results: List[CandidateResult] = []
        self.failures: Dict[str, str] = {}
        self.status: Optional[ProgressEvent] = None
        self.timed_out = False
        self._best: Optional[CandidateResult] = None

    @property
    def total(self) -> int:
        return len(self.configs)

    def _best_so_far(self) -> Optional[BestSoFar]:
        if self._best is None:
            return None
        return BestSoFar(accuracy=self._best.accuracy_percent, config=self._best.name)

    def _epoch_hook(self, cfg: HyperparameterConfig) -> Optional[Callable[[int, float], None]]:
        if self.on_epoch is None:
            return None
        on_epoch = self.on_epoch
        return lambda epoch, loss: on_epoch(cfg, epoch, loss)

    def _emit(self, event: ProgressEvent) -> ProgressEvent:
        self.status = event
        return event

    def steps(self) -> Iterator[ProgressEvent]:
        started = self.clock()
        max_s = self.tuning_cfg.max_seconds
        logger.info("Grid search: testing %d hyperparameter combinations", self.total)

        for i, cfg in enumerate(self.configs, start=1):
            if self.timed_out or (max_s is not None and self.clock() - started >= max_s):
                if not self.timed_out:
                    logger.warning(
                        "Grid search stopped after %.1fs; %d combinations left untried",
                        self.clock() - started, self.total - i + 1,
                    )
                self.timed_out = True
                yield self._emit(ProgressEvent(i, self.total, cfg.describe(), "skipped", self._best_so_far()))
                continue

            logger.info("Training model %d/%d: %s", i, self.total, cfg.name)
            try:
                res = train_candidate(
                    self.series,
                    cfg,
                    self.train_cfg,
                    predictor_factory=self.predictor_factory,
                    on_epoch=self._epoch_hook(cfg),
                )
            except (TrainingFailure, InsufficientDataError) as e:
                logger.warning("Failed to train %s: %s", cfg.name, e)
                self.failures[cfg.name] = str(e)
                yield self._emit(
                    ProgressEvent(i, self.total, cfg.describe(), "failed", self._best_so_far(), error=str(e))
                )
                continue

            self.results.append(res)
            if self._best is None or rank_candidates([res, self._best])[0] is res:
                self._best = res
            logger.info(
                "%s: MAE=%.2f, Accuracy=%.2f%%", cfg.name, res.mean_absolute_error, res.accuracy_percent
            )
            yield self._emit(ProgressEvent(i, self.total, cfg.describe(), "ok", self._best_so_far()))

    def ranked(self) -> List[CandidateResult]:
        return rank_candidates(self.results)

    def run(self, on_progress: Optional[Callable[[ProgressEvent], None]] = None) -> List[CandidateResult]:
        for event in self.steps():
            if on_progress is not None:
                on_progress(event)
        ranked = self.ranked()
        if ranked:
            logger.info("Best model: %s with %.2f%% accuracy", ranked[0].name, ranked[0].accuracy_percent)
        else:
            logger.warning("No hyperparameter combination produced a usable model")
        return ranked


def run_search(
    series: PreparedSeries,
    grid: Mapping[str, Sequence] = DEFAULT_GRID,
    train_cfg: TrainConfig = TrainConfig(),
    tuning_cfg: TuningConfig = TuningConfig(),
    on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    predictor_factory: PredictorFactory = make_predictor,
    on_epoch: Optional[EpochCallback] = None,
) -> List[CandidateResult]:
    """Successful candidates only, best first. Empty means no usable model."""
    session = TuningSession(
        series,
        grid,
        train_cfg=train_cfg,
        tuning_cfg=tuning_cfg,
        predictor_factory=predictor_factory,
        on_epoch=on_epoch,
    )
    return session.run(on_progress)


def results_frame(results: Sequence[CandidateResult]) -> pd.DataFrame:
    """Tabular view of ranked candidates for display."""
    rows = [
        {
            "rank": i,
            "model": r.name,
            "lookback": r.config.lookback,
            "hidden_units": r.config.hidden_units,
            "dropout_rate": r.config.dropout_rate,
            "mae": round(r.mean_absolute_error, 2),
            "accuracy": round(r.accuracy_percent, 2),
        }
        for i, r in enumerate(results, start=1)
    ]
    return pd.DataFrame(rows, columns=["rank", "model", "lookback", "hidden_units", "dropout_rate", "mae", "accuracy"])
