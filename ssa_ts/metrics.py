"""
Forecast accuracy metrics.

All helpers accept plain sequences (lists, numpy arrays, pandas Series) and
compare them position by position; no index alignment is attempted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from .exceptions import LengthMismatchError


@dataclass(frozen=True)
class EvaluationReport:
    mae: float
    rmse: float
    n_observations: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _paired(actual: Sequence[float], forecast: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    actual_vals = np.asarray(list(actual), dtype=float)
    forecast_vals = np.asarray(list(forecast), dtype=float)
    if actual_vals.size == 0 or forecast_vals.size == 0:
        raise LengthMismatchError("Actual and forecast sequences must be non-empty")
    if actual_vals.shape != forecast_vals.shape:
        raise LengthMismatchError(
            f"Length mismatch: {actual_vals.shape[0]} actual vs "
            f"{forecast_vals.shape[0]} forecast values"
        )
    return actual_vals, forecast_vals


def mae(actual: Sequence[float], forecast: Sequence[float]) -> float:
    """Mean Absolute Error."""
    actual_vals, forecast_vals = _paired(actual, forecast)
    return float(np.mean(np.abs(actual_vals - forecast_vals)))


def rmse(actual: Sequence[float], forecast: Sequence[float]) -> float:
    """Root Mean Squared Error."""
    actual_vals, forecast_vals = _paired(actual, forecast)
    return float(np.sqrt(np.mean((actual_vals - forecast_vals) ** 2)))


def evaluate(actual: Sequence[float], forecast: Sequence[float]) -> EvaluationReport:
    actual_vals, forecast_vals = _paired(actual, forecast)
    errors = actual_vals - forecast_vals
    return EvaluationReport(
        mae=float(np.mean(np.abs(errors))),
        rmse=float(np.sqrt(np.mean(errors ** 2))),
        n_observations=int(errors.shape[0]),
    )


__all__ = ["EvaluationReport", "evaluate", "mae", "rmse"]
