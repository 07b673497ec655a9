from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from yearcast.core.errors import ConfigurationError, ExternalFetchError
from yearcast.core.train import CandidateResult, HyperparameterConfig

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass(frozen=True)
class ModelRecord:
    """
    Persisted model metadata. Never holds trained weights: forecasting from a
    record means training its configuration again on current data.
    """
    name: str
    lookback: int
    hidden_units: int
    dropout_rate: float
    mean_absolute_error: float
    accuracy_percent: float
    dataset_id: str
    trained_at: datetime
    record_id: Optional[str] = None

    @classmethod
    def from_candidate(
        cls, candidate: CandidateResult, dataset_id: str, trained_at: Optional[datetime] = None
    ) -> "ModelRecord":
        cfg = candidate.config
        return cls(
            name=cfg.name,
            lookback=cfg.lookback,
            hidden_units=cfg.hidden_units,
            dropout_rate=cfg.dropout_rate,
            mean_absolute_error=round(candidate.mean_absolute_error, 2),
            accuracy_percent=round(candidate.accuracy_percent, 2),
            dataset_id=dataset_id,
            trained_at=trained_at or datetime.now(timezone.utc),
        )

    @property
    def config(self) -> HyperparameterConfig:
        return HyperparameterConfig(
            lookback=self.lookback, hidden_units=self.hidden_units, dropout_rate=self.dropout_rate
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["trained_at"] = self.trained_at.isoformat()
        d.pop("record_id")
        return d

    @classmethod
    def from_dict(cls, d: dict, record_id: Optional[str] = None) -> "ModelRecord":
        return cls(
            name=str(d["name"]),
            lookback=int(d["lookback"]),
            hidden_units=int(d["hidden_units"]),
            dropout_rate=float(d["dropout_rate"]),
            mean_absolute_error=float(d["mean_absolute_error"]),
            accuracy_percent=float(d["accuracy_percent"]),
            dataset_id=str(d["dataset_id"]),
            trained_at=datetime.fromisoformat(d["trained_at"]),
            record_id=record_id,
        )


def make_record_id(trained_at: datetime) -> str:
    return f"best_model_{int(trained_at.timestamp() * 1000)}"


class ModelRegistry(Protocol):
    def save(self, record: ModelRecord) -> str:
        ...

    def list(self, dataset_id: str) -> List[ModelRecord]:
        ...

    def load(self, dataset_id: str, record_id: str) -> ModelRecord:
        ...

    def delete(self, dataset_id: str, record_id: str) -> None:
        ...


def best_record(records: List[ModelRecord]) -> Optional[ModelRecord]:
    if not records:
        return None
    return max(records, key=lambda r: (r.accuracy_percent, -r.mean_absolute_error))


class JsonModelRegistry:
    """Stores records as <root>/<dataset_id>/models/<record_id>.json."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _dir(self, dataset_id: str) -> Path:
        if not _SAFE_ID.match(dataset_id):
            raise ConfigurationError(f"Invalid dataset id: {dataset_id!r}")
        return self.root / dataset_id / "models"

    def _path(self, dataset_id: str, record_id: str) -> Path:
        if not _SAFE_ID.match(record_id):
            raise ConfigurationError(f"Invalid record id: {record_id!r}")
        return self._dir(dataset_id) / f"{record_id}.json"

    def save(self, record: ModelRecord) -> str:
        record_id = record.record_id or make_record_id(record.trained_at)
        fp = self._path(record.dataset_id, record_id)
        try:
            fp.parent.mkdir(parents=True, exist_ok=True)
            fp.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise ExternalFetchError(f"Failed to save model {record.name}: {e}") from e
        logger.info("Saved model %s for %s as %s", record.name, record.dataset_id, record_id)
        return record_id

    def list(self, dataset_id: str) -> List[ModelRecord]:
        d = self._dir(dataset_id)
        if not d.exists():
            return []
        out = []
        for fp in sorted(d.glob("*.json")):
            out.append(self._read(fp))
        logger.debug("Found %d saved models for %s", len(out), dataset_id)
        return out

    def load(self, dataset_id: str, record_id: str) -> ModelRecord:
        fp = self._path(dataset_id, record_id)
        if not fp.exists():
            raise ExternalFetchError(f"No saved model {record_id} for {dataset_id}")
        return self._read(fp)

    def delete(self, dataset_id: str, record_id: str) -> None:
        fp = self._path(dataset_id, record_id)
        try:
            fp.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise ExternalFetchError(f"Failed to delete model {record_id}: {e}") from e

    def best(self, dataset_id: str) -> Optional[ModelRecord]:
        return best_record(self.list(dataset_id))

    @staticmethod
    def _read(fp: Path) -> ModelRecord:
        try:
            return ModelRecord.from_dict(json.loads(fp.read_text(encoding="utf-8")), record_id=fp.stem)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ExternalFetchError(f"Failed to load model record {fp.name}: {e}") from e
