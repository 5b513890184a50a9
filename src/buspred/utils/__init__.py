"""Utility functions for bus trip record loading and export."""

from .data_loader import TripRecordSource, load_trip_records, prepare_records
from .duckdb_utils import DuckDBConnection, export_to_parquet, write_table
from .helpers import get_project_root, load_config

__all__ = [
    "TripRecordSource",
    "load_trip_records",
    "prepare_records",
    "DuckDBConnection",
    "export_to_parquet",
    "write_table",
    "get_project_root",
    "load_config",
]
