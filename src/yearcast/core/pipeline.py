from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Mapping, Optional, Sequence

from yearcast.core.aggregate import aggregate_yearly
from yearcast.core.forecast import ForecastConfig, ForecastPoint, forecast_recursive, resolve_horizon
from yearcast.core.normalize import PreparedSeries, prepare_series
from yearcast.core.predictor import PredictorFactory, make_predictor
from yearcast.core.train import CandidateResult, HyperparameterConfig, TrainConfig, train_candidate
from yearcast.core.tuning import DEFAULT_GRID, EpochCallback, ProgressEvent, TuningConfig, TuningSession
from yearcast.store.records import RecordSource
from yearcast.store.registry import ModelRecord, ModelRegistry, best_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    grid: Mapping[str, Sequence] = field(default_factory=lambda: dict(DEFAULT_GRID))
    train: TrainConfig = TrainConfig()
    tuning: TuningConfig = TuningConfig()
    forecast: ForecastConfig = ForecastConfig()
    horizon: int = 10
    save_best: bool = False


@dataclass
class PipelineResult:
    dataset_id: str
    series: PreparedSeries
    ranked: List[CandidateResult]
    forecast: List[ForecastPoint]
    record: Optional[ModelRecord] = None
    record_id: Optional[str] = None

    @property
    def best(self) -> Optional[CandidateResult]:
        return self.ranked[0] if self.ranked else None

    @property
    def has_model(self) -> bool:
        return bool(self.ranked)


def load_series(source: RecordSource, dataset_id: str) -> PreparedSeries:
    """Fetch records (through whatever cache the source carries) and aggregate them."""
    records = source.fetch(dataset_id)
    return prepare_series(aggregate_yearly(records))


def run_auto(
    source: RecordSource,
    dataset_id: str,
    cfg: PipelineConfig = PipelineConfig(),
    registry: Optional[ModelRegistry] = None,
    on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    predictor_factory: PredictorFactory = make_predictor,
    on_epoch: Optional[EpochCallback] = None,
) -> PipelineResult:
    """
    Grid search -> best candidate -> (optional) registry save -> forecast.

    A search where nothing trains returns an empty ranking and no forecast;
    fetch and configuration errors propagate before any training starts.
    """
    horizon = resolve_horizon(cfg.horizon, cfg.forecast)
    series = load_series(source, dataset_id)
    session = TuningSession(
        series,
        cfg.grid,
        train_cfg=cfg.train,
        tuning_cfg=cfg.tuning,
        predictor_factory=predictor_factory,
        on_epoch=on_epoch,
    )
    ranked = session.run(on_progress)
    result = PipelineResult(dataset_id=dataset_id, series=series, ranked=ranked, forecast=[])
    if not ranked:
        return result

    best = ranked[0]
    if cfg.save_best and registry is not None:
        result.record = ModelRecord.from_candidate(best, dataset_id)
        result.record_id = registry.save(result.record)

    result.forecast = forecast_recursive(best, series, horizon, cfg.forecast)
    return result


def retrain_from_record(
    record: ModelRecord,
    series: PreparedSeries,
    train_cfg: TrainConfig = TrainConfig(),
    predictor_factory: PredictorFactory = make_predictor,
) -> CandidateResult:
    """A stored record has no weights; train its configuration again on `series`."""
    logger.info("Retraining %s (saved %s) on current data", record.name, record.trained_at.isoformat())
    return train_candidate(series, record.config, train_cfg, predictor_factory=predictor_factory)


def run_manual(
    source: RecordSource,
    dataset_id: str,
    config: HyperparameterConfig,
    cfg: PipelineConfig = PipelineConfig(),
    predictor_factory: PredictorFactory = make_predictor,
) -> PipelineResult:
    """Train one chosen configuration and forecast from it; data errors are fatal here."""
    horizon = resolve_horizon(cfg.horizon, cfg.forecast)
    series = load_series(source, dataset_id)
    candidate = train_candidate(series, config, cfg.train, predictor_factory=predictor_factory)
    points = forecast_recursive(candidate, series, horizon, cfg.forecast)
    return PipelineResult(dataset_id=dataset_id, series=series, ranked=[candidate], forecast=points)


def run_from_registry(
    source: RecordSource,
    dataset_id: str,
    registry: ModelRegistry,
    record_id: Optional[str] = None,
    cfg: PipelineConfig = PipelineConfig(),
    predictor_factory: PredictorFactory = make_predictor,
) -> Optional[PipelineResult]:
    """
    Forecast with a stored configuration (the given record, or the most
    accurate one). Returns None when the dataset has no stored records.
    """
    cfg = replace(cfg, horizon=resolve_horizon(cfg.horizon, cfg.forecast))
    if record_id is not None:
        record: Optional[ModelRecord] = registry.load(dataset_id, record_id)
    else:
        record = best_record(registry.list(dataset_id))
    if record is None:
        logger.warning("No saved models for %s", dataset_id)
        return None

    result = run_manual(source, dataset_id, record.config, cfg, predictor_factory=predictor_factory)
    result.record = record
    result.record_id = record.record_id
    return result
