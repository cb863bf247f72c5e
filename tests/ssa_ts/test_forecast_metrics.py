import math

import numpy as np
import pandas as pd
import pytest

from ssa_ts.exceptions import LengthMismatchError
from ssa_ts.metrics import EvaluationReport, evaluate, mae, rmse


def test_perfect_forecast_has_zero_error():
    report = evaluate([1, 2, 3], [1, 2, 3])
    assert report.mae == 0.0
    assert report.rmse == 0.0
    assert report.n_observations == 3


def test_known_errors():
    report = evaluate([0, 0], [1, 3])
    assert report.mae == pytest.approx(2.0)
    assert report.rmse == pytest.approx(math.sqrt((1 + 9) / 2))
    assert report.rmse == pytest.approx(2.2360679, rel=1e-6)


def test_metric_helpers_match_evaluate():
    actual = np.array([10.0, 12.0, 9.0, 11.0])
    forecast = np.array([11.0, 11.5, 9.5, 13.0])
    report = evaluate(actual, forecast)

    assert mae(actual, forecast) == pytest.approx(report.mae, rel=1e-12)
    assert rmse(actual, forecast) == pytest.approx(report.rmse, rel=1e-12)
    assert report.mae <= report.rmse


def test_accepts_generators_and_series():
    actual = pd.Series([1.0, 2.0, 4.0])
    report = evaluate(actual, (v for v in [1.0, 1.0, 1.0]))
    assert report.mae == pytest.approx(4.0 / 3.0)


@pytest.mark.parametrize(
    "actual, forecast",
    [
        ([1.0, 2.0], [1.0]),
        ([], []),
        ([1.0], []),
    ],
)
def test_length_mismatch_or_empty_raises(actual, forecast):
    with pytest.raises(LengthMismatchError):
        evaluate(actual, forecast)


def test_report_as_dict():
    report = EvaluationReport(mae=1.5, rmse=2.0, n_observations=4)
    payload = report.as_dict()
    assert payload == {"mae": 1.5, "rmse": 2.0, "n_observations": 4}
    assert isinstance(payload["n_observations"], int)
