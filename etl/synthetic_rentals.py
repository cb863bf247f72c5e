"""Synthetic daily rental generator.

Deterministic (seeded) stand-in for the production rental history so the
pipeline, demos and tests can run without the real database. Demand is a
slow linear trend, an annual cycle, a day-of-week multiplier and Gaussian
noise, clipped at zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class SyntheticRentalConfig:
    start_date: str = "2011-01-01"
    days: int = 730
    seed: int = 123
    base_level: float = 4000.0
    trend_per_day: float = 2.5
    annual_amplitude: float = 1500.0
    noise_std: float = 250.0
    # Monday=0 ... Sunday=6
    day_weights: Dict[int, float] = field(
        default_factory=lambda: {0: 0.95, 1: 1.0, 2: 1.0, 3: 1.02, 4: 1.08, 5: 1.15, 6: 0.9}
    )


def generate_daily_rentals(config: SyntheticRentalConfig | None = None) -> pd.DataFrame:
    """Return RentalDate / Year / TotalRentals rows, one per day."""
    cfg = config or SyntheticRentalConfig()
    rng = np.random.default_rng(cfg.seed)

    dates = pd.date_range(cfg.start_date, periods=cfg.days, freq="D")
    t = np.arange(cfg.days, dtype=float)
    annual = cfg.annual_amplitude * np.sin(2.0 * np.pi * (t - 80.0) / 365.25)
    weekday = np.array([cfg.day_weights.get(int(d), 1.0) for d in dates.dayofweek])
    noise = rng.normal(0.0, cfg.noise_std, size=cfg.days)

    rentals = (cfg.base_level + cfg.trend_per_day * t + annual) * weekday + noise
    rentals = np.clip(np.round(rentals), 0, None).astype(int)

    first = dates[0]
    years = ((dates - first).days // 365).astype(int)

    frame = pd.DataFrame({"RentalDate": dates, "Year": years, "TotalRentals": rentals})
    logger.info(
        "Generated %s synthetic rental days (seed=%s, mean=%.1f)",
        len(frame),
        cfg.seed,
        float(frame["TotalRentals"].mean()),
    )
    return frame
