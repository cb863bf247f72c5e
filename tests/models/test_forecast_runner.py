"""End-to-end tests for the rental ForecastRunner pipeline."""

from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pytest

from etl.checkpoint_store import CheckpointStore
from etl.database_manager import RentalDatabase
from etl.synthetic_rentals import generate_daily_rentals
from models.forecast_runner import (
    DEFAULT_CONFIG_PATH,
    ForecastRunner,
    ForecastRunnerConfig,
    walk_forward_forecasts,
)
from ssa_ts.exceptions import LengthMismatchError
from ssa_ts.model import ForecastModel, ModelState, SSAForecastConfig
from ssa_ts.series_buffer import Observation, SeriesBuffer


class _RecordingOutput:
    def __init__(self):
        self.calls = []

    def emit(self, report, result, holdout):
        self.calls.append((report, result, list(holdout)))


@pytest.fixture
def seeded_db(tmp_path):
    db = RentalDatabase(str(tmp_path / "daily_demand.db"))
    db.insert_rentals(generate_daily_rentals())
    yield db
    db.close()


def _runner(db, tmp_path, **overrides):
    config = ForecastRunnerConfig(**overrides)
    output = _RecordingOutput()
    store = CheckpointStore(tmp_path / "artifacts")
    return ForecastRunner(config=config, source=db, store=store, output=output), output, store


def test_pipeline_runs_end_to_end(seeded_db, tmp_path):
    runner, output, store = _runner(seeded_db, tmp_path)
    run = runner.run()

    assert run.report.n_observations == 365
    assert np.isfinite(run.report.mae) and np.isfinite(run.report.rmse)
    assert 0.0 < run.report.mae <= run.report.rmse

    assert run.forecast.horizon == 7
    assert len(run.holdout) == 7
    assert run.holdout[0].timestamp == date(2012, 1, 1)
    assert np.all(np.diff(run.forecast.interval_width) >= 0)

    assert len(output.calls) == 1
    report, result, holdout = output.calls[0]
    assert report is run.report
    assert result is run.forecast
    assert [o.timestamp for o in holdout] == [o.timestamp for o in run.holdout]

    assert run.summary["state"] == ModelState.CHECKPOINTED.value
    assert Path(run.checkpoint_destination).exists()


def test_checkpoint_reproduces_final_forecast(seeded_db, tmp_path):
    runner, _, store = _runner(seeded_db, tmp_path, model_path="nested/model.json")
    run = runner.run()

    restored = ForecastModel.restore(store.read("nested/model.json"))
    replay = restored.predict(7)
    np.testing.assert_allclose(replay.point_forecast, run.forecast.point_forecast, atol=1e-6)
    np.testing.assert_allclose(replay.lower_bound, run.forecast.lower_bound, atol=1e-6)


def test_horizon_override_changes_forecast_length(seeded_db, tmp_path):
    runner, _, _ = _runner(seeded_db, tmp_path, model=SSAForecastConfig(horizon=3))
    run = runner.run()
    assert run.forecast.horizon == 3
    assert len(run.holdout) == 3


def test_empty_holdout_surfaces_length_mismatch(seeded_db, tmp_path):
    runner, output, _ = _runner(seeded_db, tmp_path, year_boundary=5.0)
    with pytest.raises(LengthMismatchError):
        runner.run()
    assert output.calls == []


def test_walk_forward_does_not_mutate_fitted_model():
    values = 100 + 10 * np.sin(2 * np.pi * np.arange(60) / 7)
    observations = [
        Observation(timestamp=date(2011, 1, 1) + timedelta(days=i), year=0.0, value=float(v))
        for i, v in enumerate(values)
    ]
    buffer = SeriesBuffer.load(observations)
    train, holdout = buffer.split(lambda o: o.timestamp < date(2011, 2, 10))

    model = ForecastModel(SSAForecastConfig(train_size=30, rank=3)).fit(train)
    window = model.retained_window
    forecasts = walk_forward_forecasts(model, holdout)

    assert len(forecasts) == len(holdout)
    np.testing.assert_array_equal(model.retained_window, window)
    np.testing.assert_allclose(forecasts, list(holdout.values()), atol=1e-6)


# ==================== Configuration ====================

def test_config_defaults_when_file_missing(tmp_path):
    cfg = ForecastRunnerConfig.from_yaml(tmp_path / "missing.yml")
    assert cfg == ForecastRunnerConfig()
    assert cfg.model.window_size == 7
    assert cfg.model.series_length == 30
    assert cfg.model.train_size == 365
    assert cfg.model.confidence_level == 0.95


def test_config_reads_yaml_sections(tmp_path):
    path = tmp_path / "forecast.yml"
    path.write_text(
        "\n".join(
            [
                "rental_forecast:",
                "  data_source:",
                "    db_path: /tmp/rentals.db",
                "  split:",
                "    year_boundary: 2",
                "  model:",
                "    window_size: 14",
                "    series_length: 60",
                "    rank: 4",
                "  persistence:",
                "    model_path: out/model.json",
                "  output:",
                "    lower_bound_floor: 10",
            ]
        ),
        encoding="utf-8",
    )
    cfg = ForecastRunnerConfig.from_yaml(path)

    assert cfg.db_path == "/tmp/rentals.db"
    assert cfg.year_boundary == 2.0
    assert cfg.model.window_size == 14
    assert cfg.model.series_length == 60
    assert cfg.model.rank == 4
    assert cfg.model.horizon == 7
    assert cfg.model_path == "out/model.json"
    assert cfg.lower_bound_floor == 10.0


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yml"
    path.write_text("rental_forecast:\n  split:\n    year_boundary: 3\n", encoding="utf-8")
    monkeypatch.setenv("RENTAL_FORECAST_CONFIG", str(path))
    assert ForecastRunnerConfig.from_yaml().year_boundary == 3.0


def test_shipped_config_is_valid():
    cfg = ForecastRunnerConfig.from_yaml(DEFAULT_CONFIG_PATH)
    assert cfg.model.validate() is cfg.model
    assert cfg.model.rank == 3
    assert cfg.checkpoint_root == "artifacts"
    assert "FROM Rentals" in cfg.query


def test_shipped_model_config_keeps_weekly_cycle_on_demo_data():
    cfg = ForecastRunnerConfig.from_yaml(DEFAULT_CONFIG_PATH)
    buffer = SeriesBuffer.from_frame(generate_daily_rentals())
    train, _ = buffer.split(lambda o: o.year < cfg.year_boundary)

    model = ForecastModel(cfg.model).fit(train)
    forecast = model.predict(7).point_forecast

    assert model.summary()["rank"] == 3
    assert np.ptp(forecast) > 100.0
