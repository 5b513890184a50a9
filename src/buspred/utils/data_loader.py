"""Data loading utilities for bus trip records."""

import logging
from pathlib import Path

import pandas as pd

from ..config import BASELINE_PREDICTION, PREDICTORS, TARGET
from .duckdb_utils import DuckDBConnection

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "mta_bus_data"
DEFAULT_TIMEZONE = "America/New_York"

# Source column -> record field
COLUMN_RENAMES = {
    "t_stamp": "timestamp",
    "stop_gtfs_seq": "stop_sequence",
}

RECORD_FIELDS = [
    "vehicle",
    "timestamp",
    "stop_sequence",
    "hist_cum",
    "rece_cum",
    "sche_cum",
    "t_predicted",
    "t_measured",
    "route",
    "depot",
    "is_express",
]

NUMERIC_FIELDS = [*PREDICTORS, BASELINE_PREDICTION, TARGET]


def _parse_timestamps(values: pd.Series, tz: str) -> pd.Series:
    """Epoch seconds or datetime strings -> tz-aware timestamps."""
    if pd.api.types.is_numeric_dtype(values):
        return pd.to_datetime(values, unit="s", utc=True).dt.tz_convert(tz)

    parsed = pd.to_datetime(values)
    if parsed.dt.tz is None:
        return parsed.dt.tz_localize(tz)
    return parsed.dt.tz_convert(tz)


def prepare_records(df: pd.DataFrame, tz: str = DEFAULT_TIMEZONE) -> pd.DataFrame:
    """Normalize raw rows into trip records.

    - Renames source columns (t_stamp, stop_gtfs_seq)
    - Converts timestamps to the local timezone
    - Coerces travel-time columns to float and drops rows missing any of them

    Args:
        df: Raw rows from the record source
        tz: Timezone for the timestamp column

    Returns:
        DataFrame with RECORD_FIELDS columns that were present, in that order
    """
    df = df.rename(columns=COLUMN_RENAMES)

    missing = [col for col in NUMERIC_FIELDS if col not in df.columns]
    if missing:
        raise ValueError(f"Trip records are missing required columns: {missing}")

    df = df[[col for col in RECORD_FIELDS if col in df.columns]].copy()

    for col in NUMERIC_FIELDS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    if "timestamp" in df.columns:
        df["timestamp"] = _parse_timestamps(df["timestamp"], tz)

    n_before = len(df)
    df = df.dropna(subset=NUMERIC_FIELDS)
    n_dropped = n_before - len(df)
    if n_dropped:
        logger.warning("Dropped %d records with missing travel times", n_dropped)

    return df.reset_index(drop=True)


class TripRecordSource:
    """Reads trip records from Parquet, CSV or a DuckDB database table."""

    def __init__(
        self,
        path: str | Path,
        table: str = DEFAULT_TABLE,
        tz: str = DEFAULT_TIMEZONE,
    ):
        self.path = Path(path)
        self.table = table
        self.tz = tz

    def _is_database(self) -> bool:
        return self.path.suffix.lower() in (".db", ".duckdb")

    def _relation(self) -> str:
        if self._is_database():
            return self.table
        if self.path.is_dir():
            pattern = str(self.path / "**" / "*.parquet")
            return f"read_parquet('{pattern}', hive_partitioning=1)"
        if self.path.suffix.lower() == ".parquet":
            return f"read_parquet('{self.path}')"
        if self.path.suffix.lower() == ".csv":
            return f"read_csv_auto('{self.path}')"
        raise ValueError(f"Unsupported record source: {self.path}")

    def fetch(self, is_express: bool | None = None, route: str | None = None) -> pd.DataFrame:
        """Load trip records, optionally restricted to express/local service or a route.

        Args:
            is_express: If set, keep only express (True) or local (False) trips
            route: If set, keep only this route

        Returns:
            DataFrame of trip records
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Trip record source not found: {self.path}")

        where_clauses = []
        params = []
        if is_express is not None:
            where_clauses.append("is_express = ?")
            params.append(int(is_express))
        if route is not None:
            where_clauses.append("route = ?")
            params.append(route)

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"SELECT * FROM {self._relation()} {where_sql}"

        database = str(self.path) if self._is_database() else None
        with DuckDBConnection(database, read_only=True) as con:
            logger.info("Querying trip records from %s", self.path)
            if where_sql:
                logger.info("Filters: %s %s", where_sql, params)
            df = con.execute(query, params).fetchdf()

        records = prepare_records(df, self.tz)
        logger.info("Loaded %d trip records", len(records))
        return records


def load_trip_records(
    path: str | Path,
    is_express: bool | None = None,
    route: str | None = None,
    table: str = DEFAULT_TABLE,
) -> pd.DataFrame:
    """Load trip records from a file or database (see TripRecordSource)."""
    return TripRecordSource(path, table=table).fetch(is_express=is_express, route=route)
