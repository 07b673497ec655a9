from datetime import datetime, timezone

import numpy as np
import pytest

from conftest import ConstantPredictor, LastValuePredictor
from yearcast.core.errors import ConfigurationError
from yearcast.core.forecast import ForecastConfig, forecast_recursive, iter_forecast, resolve_horizon
from yearcast.core.normalize import NormalizationParams
from yearcast.core.train import CandidateResult, HyperparameterConfig
from yearcast.store.registry import ModelRecord


def _candidate(predictor, params, lookback=3):
    return CandidateResult(
        config=HyperparameterConfig(lookback, 32, 0.1),
        predictor=predictor,
        normalization=params,
        mean_absolute_error=1.0,
        accuracy_percent=90.0,
        test_actual=(),
        test_predicted=(),
    )


def test_five_years_after_2020(short_series):
    cand = _candidate(LastValuePredictor(), short_series.params)
    points = forecast_recursive(cand, short_series, 5)
    assert [p.year for p in points] == [2021, 2022, 2023, 2024, 2025]
    np.testing.assert_allclose([p.predicted_value for p in points], [35.0] * 5)


def test_window_rolls_forward_with_predictions(short_series):
    pred = ConstantPredictor(0.5)
    cand = _candidate(pred, short_series.params)
    forecast_recursive(cand, short_series, 3)
    s = short_series.scaled
    np.testing.assert_allclose(pred.seen[0], s[-3:])
    np.testing.assert_allclose(pred.seen[1], [s[-2], s[-1], 0.5])
    np.testing.assert_allclose(pred.seen[2], [s[-1], 0.5, 0.5])


def test_uses_training_time_params(short_series):
    cand = _candidate(ConstantPredictor(0.5), NormalizationParams(0.0, 100.0))
    points = forecast_recursive(cand, short_series, 2)
    assert [p.predicted_value for p in points] == [50.0, 50.0]


def test_training_params_also_seed_the_window(short_series):
    pred = LastValuePredictor()
    cand = _candidate(pred, NormalizationParams(0.0, 100.0))
    forecast_recursive(cand, short_series, 1)
    np.testing.assert_allclose(pred.seen[0], [0.30, 0.28, 0.35])


@pytest.mark.parametrize("h", [0, -1, 11, 2.5, True])
def test_out_of_range_horizon_rejected(h):
    with pytest.raises(ConfigurationError):
        resolve_horizon(h)


def test_clamped_horizon(short_series, caplog):
    cfg = ForecastConfig(max_horizon=10, clamp=True)
    assert resolve_horizon(0, cfg) == 1
    cand = _candidate(LastValuePredictor(), short_series.params)
    points = forecast_recursive(cand, short_series, 25, cfg)
    assert len(points) == 10
    assert points[-1].year == 2030
    assert "clamped" in caplog.text


def test_wider_policy():
    assert resolve_horizon(20, ForecastConfig(max_horizon=20)) == 20


def test_stored_record_cannot_forecast(short_series):
    rec = ModelRecord(
        name="L3_N32_D0.1", lookback=3, hidden_units=32, dropout_rate=0.1,
        mean_absolute_error=1.0, accuracy_percent=90.0, dataset_id="d",
        trained_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    with pytest.raises(TypeError):
        forecast_recursive(rec, short_series, 3)


def test_history_shorter_than_lookback(short_series):
    cand = _candidate(LastValuePredictor(), short_series.params, lookback=12)
    with pytest.raises(ConfigurationError):
        list(iter_forecast(cand, short_series, 3))
