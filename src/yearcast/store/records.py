from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import requests

from yearcast.core.aggregate import YEAR_KEY
from yearcast.core.errors import ExternalFetchError
from yearcast.store.cache import QueryCache

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordSource(Protocol):
    def fetch(self, dataset_id: str) -> List[Record]:
        """All yearly documents of one dataset, ordered by year."""
        ...


def _sort_by_year(records: List[Record], year_key: str = YEAR_KEY) -> List[Record]:
    def _year(r: Record) -> float:
        try:
            return float(r[year_key])
        except (KeyError, TypeError, ValueError):
            return float("inf")

    return sorted(records, key=_year)


def _extract_documents(payload: Any) -> List[Record]:
    """
    Accept either a bare list of documents or {"documents": [...]}.
    Documents wrapped as {"data": {...}} are unwrapped.
    """
    if isinstance(payload, dict) and "documents" in payload:
        payload = payload["documents"]
    if not isinstance(payload, list):
        raise ExternalFetchError("Unexpected payload: expected a list of documents")

    docs: List[Record] = []
    for d in payload:
        if isinstance(d, dict) and isinstance(d.get("data"), dict):
            d = d["data"]
        if not isinstance(d, dict):
            raise ExternalFetchError("Unexpected payload: document is not an object")
        docs.append(d)
    return docs


@dataclass(frozen=True)
class HttpConfig:
    timeout_s: int = 60
    order_by: str = YEAR_KEY


class HttpRecordSource:
    """GET {base_url}/{dataset_id} -> JSON documents."""

    def __init__(self, base_url: str, cfg: HttpConfig = HttpConfig(), session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.cfg = cfg
        self.session = session or requests.Session()

    def fetch(self, dataset_id: str) -> List[Record]:
        url = f"{self.base_url}/{dataset_id}"
        try:
            resp = self.session.get(url, params={"orderBy": self.cfg.order_by}, timeout=self.cfg.timeout_s)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise ExternalFetchError(f"Failed to load {dataset_id}: {e}") from e

        docs = _sort_by_year(_extract_documents(payload), self.cfg.order_by)
        logger.info("Loaded %d years of %s data", len(docs), dataset_id)
        return docs


class JsonFileRecordSource:
    """Reads <root>/<dataset_id>.json (same payload shapes as the HTTP source)."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def fetch(self, dataset_id: str) -> List[Record]:
        return load_records_json(self.root / f"{dataset_id}.json")


def load_records_json(path: str | Path) -> List[Record]:
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ExternalFetchError(f"Failed to read records from {path}: {e}") from e
    return _sort_by_year(_extract_documents(payload))


class CachedRecordSource:
    """
    Any RecordSource behind a shared QueryCache keyed by dataset id.
    The cache holds a tuple; each caller gets its own copy of the documents.
    """

    def __init__(self, source: RecordSource, cache: QueryCache) -> None:
        self.source = source
        self.cache = cache

    def fetch(self, dataset_id: str) -> List[Record]:
        docs = self.cache.get_or_fetch(dataset_id, lambda: tuple(self.source.fetch(dataset_id)))
        return copy.deepcopy(list(docs))
