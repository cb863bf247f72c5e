import pandas as pd

from etl.synthetic_rentals import SyntheticRentalConfig, generate_daily_rentals


def test_generator_is_deterministic_per_seed():
    first = generate_daily_rentals(SyntheticRentalConfig(days=60, seed=1))
    second = generate_daily_rentals(SyntheticRentalConfig(days=60, seed=1))
    other = generate_daily_rentals(SyntheticRentalConfig(days=60, seed=2))

    pd.testing.assert_frame_equal(first, second)
    assert not first["TotalRentals"].equals(other["TotalRentals"])


def test_default_frame_covers_two_years():
    frame = generate_daily_rentals()

    assert list(frame.columns) == ["RentalDate", "Year", "TotalRentals"]
    assert len(frame) == 730
    assert frame["RentalDate"].is_monotonic_increasing
    assert (frame["Year"] == 0).sum() == 365
    assert (frame["Year"] == 1).sum() == 365
    assert (frame["TotalRentals"] >= 0).all()


def test_weekly_pattern_is_visible():
    frame = generate_daily_rentals(SyntheticRentalConfig(noise_std=0.0, annual_amplitude=0.0, trend_per_day=0.0))
    by_day = frame.groupby(frame["RentalDate"].dt.dayofweek)["TotalRentals"].mean()
    assert by_day.idxmax() == 5
    assert by_day.idxmin() == 6
