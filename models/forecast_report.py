"""Console presentation of evaluation metrics and rental forecasts."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import click
import numpy as np
import pandas as pd

from ssa_ts.metrics import EvaluationReport
from ssa_ts.model import ForecastResult
from ssa_ts.series_buffer import Observation


def forecast_frame(
    result: ForecastResult,
    holdout: Sequence[Observation],
    floor: Optional[float] = 0.0,
) -> pd.DataFrame:
    """
    Pair forecast steps with the matching holdout observations.

    The lower bound is clamped to ``floor`` here only; the model itself
    reports unclamped bounds.
    """
    steps = min(result.horizon, len(holdout))
    lower = result.lower_bound[:steps]
    if floor is not None:
        lower = np.maximum(lower, floor)
    return pd.DataFrame(
        {
            "date": [obs.timestamp for obs in holdout[:steps]],
            "actual": [obs.value for obs in holdout[:steps]],
            "lower": lower,
            "forecast": result.point_forecast[:steps],
            "upper": result.upper_bound[:steps],
        }
    )


class ConsoleForecastReporter:
    def __init__(
        self,
        floor: Optional[float] = 0.0,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self.floor = floor
        self.echo = echo

    def emit(
        self,
        report: EvaluationReport,
        result: ForecastResult,
        holdout: Sequence[Observation],
    ) -> None:
        self.echo("Evaluation Metrics")
        self.echo("---------------------")
        self.echo(f"Mean Absolute Error: {report.mae:.3f}")
        self.echo(f"Root Mean Squared Error: {report.rmse:.3f}\n")

        self.echo("Rental Forecast")
        self.echo("---------------------")
        for row in forecast_frame(result, holdout, self.floor).itertuples(index=False):
            self.echo(
                f"Date: {row.date.isoformat()}\n"
                f"Actual Rentals: {row.actual:.0f}\n"
                f"Lower Estimate: {row.lower:.1f}\n"
                f"Forecast: {row.forecast:.1f}\n"
                f"Upper Estimate: {row.upper:.1f}\n"
            )
