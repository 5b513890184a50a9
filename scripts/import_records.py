#!/usr/bin/env python3
"""
Import raw trip-record CSV exports into the DuckDB database read by run.py.

This script:
1. Reads every CSV file given on the command line
2. Normalizes column names, timestamps and travel-time columns
3. Stores the combined records as the mta_bus_data table

Usage:
    python scripts/import_records.py exports/*.csv
    python scripts/import_records.py exports/*.csv --database data/mta_bus_data.duckdb
"""

import argparse
from pathlib import Path

import pandas as pd
from tqdm import tqdm

from buspred.utils import prepare_records, write_table
from buspred.utils.data_loader import DEFAULT_TABLE


def main():
    parser = argparse.ArgumentParser(description="Import trip-record CSV files into DuckDB")
    parser.add_argument("csv_files", nargs="+", help="CSV exports to import")
    parser.add_argument(
        "--database",
        type=str,
        default="data/mta_bus_data.duckdb",
        help="DuckDB database file to write",
    )
    parser.add_argument("--table", type=str, default=DEFAULT_TABLE, help="Table name")
    args = parser.parse_args()

    frames = []
    for csv_file in tqdm(args.csv_files, desc="Reading CSV files"):
        frames.append(pd.read_csv(csv_file, low_memory=False))

    records = prepare_records(pd.concat(frames, ignore_index=True))
    print(f"Prepared {len(records):,} records from {len(frames)} files")

    database = Path(args.database)
    write_table(records, database, args.table)
    print(f"✓ Wrote table {args.table} to {database}")


if __name__ == "__main__":
    main()
