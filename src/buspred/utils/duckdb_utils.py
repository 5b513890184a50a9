"""DuckDB utilities for reading trip records and exporting results."""

from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd


class DuckDBConnection:
    """Context manager for DuckDB connections."""

    def __init__(self, database: Optional[str] = None, read_only: bool = False):
        """Initialize connection.

        Args:
            database: Path to database file. If None, uses in-memory database.
            read_only: Open the database file read-only
        """
        self.database = database
        self.read_only = read_only
        self.con = None

    def __enter__(self):
        """Enter context and create connection."""
        if self.database is None:
            self.con = duckdb.connect()
        else:
            self.con = duckdb.connect(self.database, read_only=self.read_only)
        return self.con

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context and close connection."""
        if self.con:
            self.con.close()


def write_table(df: pd.DataFrame, database: Path, table: str, replace: bool = True) -> None:
    """Store a DataFrame as a table in a DuckDB database file.

    Args:
        df: Rows to store
        database: Path to the database file (created if missing)
        table: Table name
        replace: Replace an existing table of the same name
    """
    database.parent.mkdir(parents=True, exist_ok=True)
    with DuckDBConnection(str(database)) as con:
        con.register("temp_df", df)
        create_sql = "CREATE OR REPLACE TABLE" if replace else "CREATE TABLE"
        con.execute(f"{create_sql} {table} AS SELECT * FROM temp_df")


def export_to_parquet(
    df: pd.DataFrame,
    output_path: Path,
    compression: str = "zstd",
) -> None:
    """Export DataFrame to Parquet using DuckDB.

    Args:
        df: DataFrame to export (a named index is written as a column)
        output_path: Output path for parquet file
        compression: Compression algorithm (zstd, snappy, gzip, etc.)
    """
    if df.index.name is not None:
        df = df.reset_index()

    with DuckDBConnection() as con:
        # Register DataFrame as a view
        con.register("temp_df", df)

        output_path.parent.mkdir(parents=True, exist_ok=True)

        con.execute(
            f"""
            COPY temp_df TO '{output_path}' (
                FORMAT PARQUET,
                COMPRESSION '{compression}'
            )
        """
        )
