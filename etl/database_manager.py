"""
Rental Database Manager

SQLite-backed source of daily rental counts for the forecasting pipeline.

Database Schema:
- Rentals: one row per rental date with the zero-based year index and the
  total number of rentals recorded that day.
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ssa_ts.series_buffer import Observation, SeriesBuffer

logger = logging.getLogger(__name__)

DEFAULT_QUERY = (
    "SELECT RentalDate, CAST(Year AS REAL) AS Year, "
    "CAST(TotalRentals AS REAL) AS TotalRentals FROM Rentals"
)


class RentalDatabase:
    """
    Manage the rental history database.

    The connection is opened eagerly and kept for the lifetime of the
    instance; use as a context manager or call ``close()``.
    """

    def __init__(self, db_path: str = "data/daily_demand.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path).resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if not self.db_path.exists():
                self.db_path.touch()
            os.chmod(self.db_path, 0o600)
        except OSError as exc:  # pragma: no cover - best effort on Windows/WSL mounts
            logger.debug("Unable to adjust permissions for %s: %s", self.db_path, exc)

        self.conn: Optional[sqlite3.Connection] = sqlite3.connect(str(self.db_path))
        self._initialize_schema()
        logger.info("Rental database opened at: %s", self.db_path)

    def _initialize_schema(self) -> None:
        """Create the Rentals table if it does not exist yet."""
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS Rentals (
                RentalDate TEXT PRIMARY KEY,
                Year INTEGER NOT NULL,
                TotalRentals INTEGER NOT NULL CHECK (TotalRentals >= 0)
            )
            """
        )
        self.conn.commit()

    def row_count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) FROM Rentals")
        return int(cursor.fetchone()[0])

    def insert_rentals(self, frame: pd.DataFrame) -> int:
        """
        Upsert rental rows.

        Args:
            frame: DataFrame with RentalDate, Year and TotalRentals columns

        Returns:
            Number of rows written
        """
        records = [
            (
                pd.Timestamp(row.RentalDate).date().isoformat(),
                int(row.Year),
                int(row.TotalRentals),
            )
            for row in frame.itertuples(index=False)
        ]
        with self.conn:
            self.conn.executemany(
                "INSERT OR REPLACE INTO Rentals (RentalDate, Year, TotalRentals) VALUES (?, ?, ?)",
                records,
            )
        logger.info("Stored %s rental rows in %s", len(records), self.db_path.name)
        return len(records)

    def load_frame(self, query: str = DEFAULT_QUERY) -> pd.DataFrame:
        df = pd.read_sql_query(query, self.conn)
        if df.empty:
            logger.info("Rental query returned no rows")
            return df
        df["RentalDate"] = pd.to_datetime(df["RentalDate"])
        return df.sort_values("RentalDate").reset_index(drop=True)

    def load_observations(self, query: str = DEFAULT_QUERY) -> List[Observation]:
        """Run ``query`` and return observations ordered by rental date."""
        frame = self.load_frame(query)
        observations = [
            Observation(
                timestamp=row.RentalDate.date(),
                year=float(row.Year),
                value=float(row.TotalRentals),
            )
            for row in frame.itertuples(index=False)
        ]
        logger.info("Loaded %s rental observations", len(observations))
        return observations

    def load_buffer(self, query: str = DEFAULT_QUERY) -> SeriesBuffer:
        return SeriesBuffer.load(self.load_observations(query))

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "RentalDatabase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
