#!/usr/bin/env python3
"""
Rental demand forecast.

Loads daily rental counts from SQLite, fits the SSA forecaster on the first
year, evaluates it on the second, checkpoints the trained model and prints
a 7-day forecast with confidence bounds.
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

import click

ROOT_PATH = Path(__file__).resolve().parent.parent
if str(ROOT_PATH) not in sys.path:
    sys.path.insert(0, str(ROOT_PATH))

from etl.checkpoint_store import CheckpointStore
from etl.database_manager import RentalDatabase
from etl.synthetic_rentals import generate_daily_rentals
from models.forecast_report import ConsoleForecastReporter
from models.forecast_runner import ForecastRunner, ForecastRunnerConfig
from ssa_ts.exceptions import ForecastError
from utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def _project_path(raw: str) -> Path:
    path = Path(raw).expanduser()
    return path if path.is_absolute() else ROOT_PATH / path


@click.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config (defaults to RENTAL_FORECAST_CONFIG or config/forecast_config.yml).",
)
@click.option("--db-path", default=None, help="Override the SQLite rentals database path.")
@click.option("--model-path", default=None, help="Override the checkpoint destination.")
@click.option("--horizon", default=None, type=int, help="Override the forecast horizon (days).")
@click.option(
    "--seed-demo/--no-seed-demo",
    default=False,
    show_default=True,
    help="Populate an empty database with two years of synthetic rentals.",
)
@click.option("--log-dir", default=None, type=click.Path(file_okay=False, path_type=Path))
@click.option("--verbose", is_flag=True, help="Enable debug logging.")
def main(
    config_path: Optional[Path],
    db_path: Optional[str],
    model_path: Optional[str],
    horizon: Optional[int],
    seed_demo: bool,
    log_dir: Optional[Path],
    verbose: bool,
) -> None:
    configure_logging(level="DEBUG" if verbose else "INFO", log_dir=log_dir)

    cfg = ForecastRunnerConfig.from_yaml(config_path)
    if db_path:
        cfg.db_path = db_path
    if model_path:
        cfg.model_path = model_path
    if horizon is not None:
        cfg.model = dataclasses.replace(cfg.model, horizon=horizon)

    with RentalDatabase(str(_project_path(cfg.db_path))) as db:
        if seed_demo and db.row_count() == 0:
            db.insert_rentals(generate_daily_rentals())

        runner = ForecastRunner(
            config=cfg,
            source=db,
            store=CheckpointStore(_project_path(cfg.checkpoint_root)),
            output=ConsoleForecastReporter(floor=cfg.lower_bound_floor),
        )
        try:
            run = runner.run()
        except ForecastError as exc:
            logger.error("Rental forecast failed: %s", exc)
            raise click.ClickException(str(exc)) from exc

    logger.info("Model checkpoint written to %s", run.checkpoint_destination)


if __name__ == "__main__":
    main()
