"""
Models package - Forecast orchestration and presentation

This package contains:
- ForecastRunner: Load -> split -> fit -> evaluate -> checkpoint -> forecast
- ConsoleForecastReporter: Prints evaluation metrics and the rental forecast
"""

from models.forecast_runner import (
    ForecastRun,
    ForecastRunner,
    ForecastRunnerConfig,
)

from models.forecast_report import (
    ConsoleForecastReporter,
    forecast_frame,
)

__all__ = [
    'ForecastRun',
    'ForecastRunner',
    'ForecastRunnerConfig',
    'ConsoleForecastReporter',
    'forecast_frame',
]
