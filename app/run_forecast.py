from __future__ import annotations

import argparse
import logging
from pathlib import Path

from yearcast.core.errors import YearcastError
from yearcast.core.forecast import ForecastConfig
from yearcast.core.pipeline import PipelineConfig, run_auto, run_from_registry
from yearcast.core.train import TrainConfig
from yearcast.core.tuning import DEFAULT_GRID, TuningConfig, load_grid, results_frame
from yearcast.io.export import export_filename, forecast_table, write_forecast_csv
from yearcast.store.cache import QueryCache
from yearcast.store.records import CachedRecordSource, HttpRecordSource, JsonFileRecordSource
from yearcast.store.registry import JsonModelRegistry

logger = logging.getLogger("run_forecast")


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Yearly series grid search + autoregressive forecast.")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--base-url", type=str, help="Document store endpoint serving <base-url>/<dataset>")
    src.add_argument("--records-dir", type=str, help="Directory holding <dataset>.json record files")
    p.add_argument("--dataset", type=str, default="emigrantData_destination", help="Dataset identifier")
    p.add_argument("--grid", type=str, default=None, help="JSON file: hyperparameter -> list of values")
    p.add_argument("--horizon", type=int, default=10, help="Years to forecast")
    p.add_argument("--max-horizon", type=int, default=10, help="Largest horizon allowed")
    p.add_argument("--clamp-horizon", action="store_true", help="Clamp out-of-range horizons instead of failing")
    p.add_argument("--epochs", type=int, default=50, help="Training epochs per candidate")
    p.add_argument("--batch-size", type=int, default=8, help="Training batch size")
    p.add_argument("--max-seconds", type=float, default=None, help="Stop the search after this many seconds")
    p.add_argument("--registry-dir", type=str, default="models", help="Model metadata directory")
    p.add_argument("--save-best", action="store_true", help="Save the best model's metadata")
    p.add_argument("--from-registry", action="store_true", help="Retrain the best saved configuration instead of searching")
    p.add_argument("--history-tail", type=int, default=10, help="Historical years in the export (0 = none)")
    p.add_argument("--outdir", type=str, default="outputs", help="Output directory")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    raw = HttpRecordSource(args.base_url) if args.base_url else JsonFileRecordSource(args.records_dir)
    source = CachedRecordSource(raw, QueryCache())
    registry = JsonModelRegistry(args.registry_dir)

    try:
        cfg = PipelineConfig(
            grid=load_grid(args.grid) if args.grid else dict(DEFAULT_GRID),
            train=TrainConfig(epochs=int(args.epochs), batch_size=int(args.batch_size)),
            tuning=TuningConfig(max_seconds=args.max_seconds),
            forecast=ForecastConfig(max_horizon=int(args.max_horizon), clamp=bool(args.clamp_horizon)),
            horizon=int(args.horizon),
            save_best=bool(args.save_best),
        )
        if args.from_registry:
            result = run_from_registry(source, args.dataset, registry, cfg=cfg)
            if result is None:
                logger.error("No saved models for %s; run a search first", args.dataset)
                return 1
        else:
            result = run_auto(source, args.dataset, cfg, registry=registry)
    except YearcastError as e:
        logger.error("%s", e)
        return 2

    print(results_frame(result.ranked).to_string(index=False))
    if not result.has_model:
        logger.error("No usable model: every hyperparameter combination failed")
        return 1

    table = forecast_table(result.series, result.forecast, history_tail=args.history_tail)
    out = write_forecast_csv(table, Path(args.outdir) / export_filename(args.dataset, len(result.forecast)))
    print(f"Saved: {out}")
    if result.record_id:
        print(f"Saved model: {result.record_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
