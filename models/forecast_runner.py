"""Sequential rental forecasting pipeline: load, split, fit, evaluate, persist, forecast."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import yaml

from etl.database_manager import DEFAULT_QUERY
from ssa_ts.metrics import EvaluationReport, evaluate
from ssa_ts.model import ForecastModel, ForecastResult, SSAForecastConfig
from ssa_ts.series_buffer import Observation, SeriesBuffer

logger = logging.getLogger(__name__)

ROOT_PATH = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = ROOT_PATH / "config" / "forecast_config.yml"


class ObservationSource(Protocol):
    def load_observations(self, query: str) -> Sequence[Observation]: ...


class CheckpointSink(Protocol):
    def write(self, blob: bytes, destination: Any) -> Any: ...


class ForecastOutput(Protocol):
    def emit(
        self,
        report: EvaluationReport,
        result: ForecastResult,
        holdout: Sequence[Observation],
    ) -> None: ...


@dataclass
class ForecastRunnerConfig:
    db_path: str = "data/daily_demand.db"
    query: str = DEFAULT_QUERY
    year_boundary: float = 1.0
    checkpoint_root: str = "artifacts"
    model_path: str = "ssa_model.json"
    lower_bound_floor: float = 0.0
    model: SSAForecastConfig = field(default_factory=SSAForecastConfig)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "ForecastRunnerConfig":
        """
        Read the ``rental_forecast`` section; missing files or keys fall back
        to defaults. ``RENTAL_FORECAST_CONFIG`` overrides the default path.
        """
        if path is None:
            env_path = os.environ.get("RENTAL_FORECAST_CONFIG")
            path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
        path = Path(path)
        if not path.exists():
            logger.info("Forecast config %s not found; using defaults", path)
            return cls()

        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        root = raw.get("rental_forecast") or {}
        source = root.get("data_source") or {}
        split = root.get("split") or {}
        persistence = root.get("persistence") or {}
        output = root.get("output") or {}
        defaults = cls()
        return cls(
            db_path=str(source.get("db_path", defaults.db_path)),
            query=str(source.get("query", defaults.query)),
            year_boundary=float(split.get("year_boundary", defaults.year_boundary)),
            checkpoint_root=str(persistence.get("checkpoint_root", defaults.checkpoint_root)),
            model_path=str(persistence.get("model_path", defaults.model_path)),
            lower_bound_floor=float(output.get("lower_bound_floor", defaults.lower_bound_floor)),
            model=SSAForecastConfig.from_dict(root.get("model")),
        )


@dataclass
class ForecastRun:
    report: EvaluationReport
    forecast: ForecastResult
    holdout: List[Observation]
    checkpoint_destination: Any
    summary: Dict[str, Any]


def walk_forward_forecasts(model: ForecastModel, holdout: SeriesBuffer) -> List[float]:
    """
    One-step-ahead forecasts over ``holdout`` on a shadow copy of ``model``:
    predict the next value, then feed the actual observation.
    """
    shadow = model.copy()
    forecasts: List[float] = []
    for observation in holdout.iter_observations():
        forecasts.append(float(shadow.predict(1).point_forecast[0]))
        shadow.update(observation)
    return forecasts


class ForecastRunner:
    """Wire the SSA core to its data, persistence and output collaborators."""

    def __init__(
        self,
        config: ForecastRunnerConfig,
        source: ObservationSource,
        store: CheckpointSink,
        output: ForecastOutput,
    ) -> None:
        self.config = config
        self.source = source
        self.store = store
        self.output = output

    def run(self) -> ForecastRun:
        cfg = self.config
        buffer = SeriesBuffer.load(self.source.load_observations(cfg.query))
        train, holdout = buffer.split(lambda obs: obs.year < cfg.year_boundary)
        logger.info(
            "Split %s observations at year %s: train=%s, holdout=%s",
            len(buffer),
            cfg.year_boundary,
            len(train),
            len(holdout),
        )

        model = ForecastModel(cfg.model).fit(train)

        report = evaluate(list(holdout.values()), walk_forward_forecasts(model, holdout))
        logger.info("Holdout evaluation: MAE=%.3f RMSE=%.3f", report.mae, report.rmse)

        destination = self.store.write(model.checkpoint(), cfg.model_path)

        forecast = model.predict(cfg.model.horizon)
        holdout_head = list(holdout.head(forecast.horizon))
        self.output.emit(report, forecast, holdout_head)

        return ForecastRun(
            report=report,
            forecast=forecast,
            holdout=holdout_head,
            checkpoint_destination=destination,
            summary=model.summary(),
        )
