from datetime import date, timedelta

import numpy as np

from models.forecast_report import ConsoleForecastReporter, forecast_frame
from ssa_ts.metrics import EvaluationReport
from ssa_ts.model import ForecastResult
from ssa_ts.series_buffer import Observation


def _holdout(n):
    return [
        Observation(timestamp=date(2012, 1, 1) + timedelta(days=i), year=1.0, value=100.0 + i)
        for i in range(n)
    ]


def _result():
    return ForecastResult(
        point_forecast=np.array([5.0, 50.0, 60.0]),
        lower_bound=np.array([-10.0, 20.0, 25.0]),
        upper_bound=np.array([20.0, 80.0, 95.0]),
        confidence_level=0.95,
    )


def test_forecast_frame_clamps_lower_bound_only_for_presentation():
    result = _result()
    frame = forecast_frame(result, _holdout(3), floor=0.0)

    assert frame["lower"].tolist() == [0.0, 20.0, 25.0]
    assert frame["forecast"].tolist() == [5.0, 50.0, 60.0]
    assert frame["actual"].tolist() == [100.0, 101.0, 102.0]
    assert result.lower_bound[0] == -10.0


def test_forecast_frame_without_floor_and_short_holdout():
    frame = forecast_frame(_result(), _holdout(2), floor=None)
    assert len(frame) == 2
    assert frame["lower"].tolist() == [-10.0, 20.0]


def test_reporter_prints_metrics_and_forecast():
    lines = []
    reporter = ConsoleForecastReporter(floor=0.0, echo=lines.append)
    reporter.emit(EvaluationReport(mae=1.5, rmse=2.25, n_observations=3), _result(), _holdout(3))

    text = "\n".join(lines)
    assert lines[0] == "Evaluation Metrics"
    assert "Mean Absolute Error: 1.500" in text
    assert "Root Mean Squared Error: 2.250" in text
    assert "Rental Forecast" in text
    assert "Date: 2012-01-01" in text
    assert "Actual Rentals: 100" in text
    assert "Lower Estimate: 0.0" in text
    assert "Upper Estimate: 95.0" in text
    assert text.count("Forecast: ") == 3
