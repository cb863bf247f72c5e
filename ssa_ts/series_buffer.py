"""
Ordered container of historical observations.

The buffer is the only entry point for raw data into the forecasting core:
it validates ordering once at load time and hands out read-only views
afterwards. Callers choose between the materialised ``observations`` tuple
and the lazy ``iter_observations()`` / ``values()`` accessors.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Optional, Tuple

import pandas as pd

from .exceptions import DataError


@dataclass(frozen=True)
class Observation:
    timestamp: date
    year: float
    value: float


class _ValueView(Sequence):
    """Restartable, lazy view over the ``value`` field of a buffer slice."""

    def __init__(self, observations: Tuple[Observation, ...]) -> None:
        self._observations = observations

    def __len__(self) -> int:
        return len(self._observations)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [obs.value for obs in self._observations[index]]
        return self._observations[index].value

    def __iter__(self) -> Iterator[float]:
        for obs in self._observations:
            yield obs.value

    def __repr__(self) -> str:
        return f"_ValueView(n={len(self)})"


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


class SeriesBuffer:
    """
    Immutable, timestamp-ordered sequence of :class:`Observation`.

    ``load`` enforces the strict ordering invariant; partitions produced by
    ``split`` inherit it without re-checking and may be empty.
    """

    def __init__(self, observations: Tuple[Observation, ...] = ()) -> None:
        self._observations = tuple(observations)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, observations: Iterable[Observation]) -> "SeriesBuffer":
        materialised = tuple(observations)
        if len(materialised) < 2:
            raise DataError(
                f"At least 2 observations are required (received {len(materialised)})"
            )
        for previous, current in zip(materialised, materialised[1:]):
            if not current.timestamp > previous.timestamp:
                raise DataError(
                    "Timestamps must be strictly increasing "
                    f"({previous.timestamp} followed by {current.timestamp})"
                )
        return cls(materialised)

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        *,
        timestamp_column: str = "RentalDate",
        year_column: str = "Year",
        value_column: str = "TotalRentals",
    ) -> "SeriesBuffer":
        """Build a buffer from a tabular extract (one row per observation)."""
        missing = [
            col
            for col in (timestamp_column, year_column, value_column)
            if col not in frame.columns
        ]
        if missing:
            raise DataError(f"Frame is missing required columns: {missing}")

        observations = [
            Observation(
                timestamp=_as_date(row[timestamp_column]),
                year=float(row[year_column]),
                value=float(row[value_column]),
            )
            for _, row in frame.iterrows()
        ]
        return cls.load(observations)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def observations(self) -> Tuple[Observation, ...]:
        return self._observations

    def iter_observations(self) -> Iterator[Observation]:
        return iter(self._observations)

    def values(self) -> _ValueView:
        return _ValueView(self._observations)

    def window(self, start: int, stop: Optional[int] = None) -> "SeriesBuffer":
        return SeriesBuffer(self._observations[start:stop])

    def tail(self, n: int) -> "SeriesBuffer":
        if n <= 0:
            return SeriesBuffer()
        return SeriesBuffer(self._observations[-n:])

    def head(self, n: int) -> "SeriesBuffer":
        return SeriesBuffer(self._observations[: max(n, 0)])

    @property
    def last_timestamp(self) -> Optional[date]:
        return self._observations[-1].timestamp if self._observations else None

    def to_series(self) -> pd.Series:
        index = pd.DatetimeIndex([pd.Timestamp(obs.timestamp) for obs in self._observations])
        return pd.Series([obs.value for obs in self._observations], index=index, dtype=float)

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------
    def split(
        self, predicate: Callable[[Observation], bool]
    ) -> Tuple["SeriesBuffer", "SeriesBuffer"]:
        """Partition into (matching, non-matching) preserving order."""
        train = []
        holdout = []
        for obs in self._observations:
            (train if predicate(obs) else holdout).append(obs)
        return SeriesBuffer(tuple(train)), SeriesBuffer(tuple(holdout))

    def __len__(self) -> int:
        return len(self._observations)

    def __iter__(self) -> Iterator[Observation]:
        return iter(self._observations)

    def __bool__(self) -> bool:
        return bool(self._observations)

    def __repr__(self) -> str:
        if not self._observations:
            return "SeriesBuffer(n=0)"
        return (
            f"SeriesBuffer(n={len(self)}, start={self._observations[0].timestamp}, "
            f"end={self._observations[-1].timestamp})"
        )
