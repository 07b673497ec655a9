from __future__ import annotations

from typing import Optional


class YearcastError(Exception):
    """Base class for all forecasting pipeline errors."""


class InsufficientDataError(YearcastError, ValueError):
    def __init__(self, required: int, available: int, message: Optional[str] = None) -> None:
        self.required = int(required)
        self.available = int(available)
        super().__init__(
            message or f"Not enough data. Need at least {self.required} data points, got {self.available}."
        )


class TrainingFailure(YearcastError, RuntimeError):
    """Numerical or fitting error for one hyperparameter configuration."""

    def __init__(self, config: object, reason: str) -> None:
        self.config = config
        self.reason = reason
        label = getattr(config, "name", repr(config))
        super().__init__(f"Training failed for {label}: {reason}")


class ConfigurationError(YearcastError, ValueError):
    pass


class ExternalFetchError(YearcastError, RuntimeError):
    pass
