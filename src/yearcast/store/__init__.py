"""
External collaborators of the forecasting core: record sources, query cache, model registry.
"""

from .cache import QueryCache  # noqa: F401
from .records import CachedRecordSource, HttpRecordSource, JsonFileRecordSource, load_records_json  # noqa: F401
from .registry import JsonModelRegistry, ModelRecord  # noqa: F401
