#!/usr/bin/env python3
"""
Main script to run the bus arrival-time model evaluation.

Usage:
    python run.py                          # Run with default config
    python run.py --config custom.yaml     # Run with custom config
    python run.py --data trips.parquet     # Override record source
    python run.py --express                # Express routes only
    python run.py --route M15 --workers 1  # One route, no process pool
"""

import argparse
import json
import logging
import math
from datetime import datetime
from pathlib import Path

import pandas as pd

from buspred.config import EvaluationConfig
from buspred.evaluation import BinnedEvaluation
from buspred.utils import export_to_parquet, load_config, load_trip_records

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bus Arrival-Time Model Evaluation")
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Trip record source: .duckdb/.db, .parquet, .csv or parquet directory (overrides config)",
    )
    service = parser.add_mutually_exclusive_group()
    service.add_argument(
        "--express",
        dest="is_express",
        action="store_const",
        const=True,
        default=None,
        help="Only evaluate express trips",
    )
    service.add_argument(
        "--local",
        dest="is_express",
        action="store_const",
        const=False,
        help="Only evaluate local (non-express) trips",
    )
    parser.add_argument(
        "--route",
        type=str,
        default=None,
        help="Only evaluate this route (overrides config)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes for per-bin work (overrides config)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory (overrides config)",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Print results without writing output files",
    )
    return parser.parse_args()


def print_model_comparison(summary: pd.DataFrame):
    """Print mean absolute residual per bin for each model against the original."""
    print("\n" + "=" * 70)
    print("MODEL COMPARISON (mean absolute residual, seconds)")
    print("=" * 70)

    print(f"\n{'Bin':<16} {'Original':>12} {'Optimized':>12} {'Normalized':>12} {'Better?':>12}")
    print("-" * 70)

    improvements = 0
    n_bins = 0
    for bin_label, rows in summary.groupby("Bin", sort=False):
        means = rows["Mean"]
        original = means.loc["Original"]
        optimized = means.loc["Optimized"]
        normalized = means.loc["Normalized"]
        n_bins += 1

        if math.isnan(original) or math.isnan(optimized):
            better_str = "n/a"
        elif optimized < original:
            better_str = "Yes"
            improvements += 1
        else:
            better_str = "No"

        print(
            f"{bin_label:<16} {original:>12.1f} {optimized:>12.1f} {normalized:>12.1f} {better_str:>12}"
        )

    print("-" * 70)
    print(f"\nOptimized beat Original in {improvements}/{n_bins} bins")


def main():
    """Main entry point."""
    args = parse_args()

    print("=" * 60)
    print("Bus Arrival-Time Model Evaluation")
    print("=" * 60)

    config = load_config(args.config)
    print(f"\nLoaded config from: {args.config}")

    data_config = config.setdefault("data", {})
    filters = config.setdefault("filters", {})
    eval_config = config.setdefault("evaluation", {})

    # Override config with command line args
    if args.data:
        data_config["record_path"] = args.data
    if args.output_dir:
        data_config["output_dir"] = args.output_dir
    if args.is_express is not None:
        filters["is_express"] = args.is_express
    if args.route:
        filters["route"] = args.route
    if args.workers is not None:
        eval_config["n_workers"] = args.workers

    settings = EvaluationConfig.from_dict(config)

    # Load data
    print("\n" + "-" * 40)
    print("Loading Trip Records")
    print("-" * 40)

    records = load_trip_records(
        data_config.get("record_path", "data/mta_bus_data.duckdb"),
        is_express=filters.get("is_express"),
        route=filters.get("route"),
        table=data_config.get("table", "mta_bus_data"),
    )
    print(f"Loaded {len(records):,} records")

    # Evaluate
    print("\n" + "-" * 40)
    print("Fitting and Evaluating Models")
    print("-" * 40)

    evaluation = BinnedEvaluation(records, settings, verbose=True).run()
    params = evaluation.get_params()
    logging.info(f"Evaluation settings: {params}")

    global_coef = evaluation.get_model_coefficients("optimized")
    print(f"\nWhole-table optimized coefficients: {global_coef.to_dict()}")

    summary = evaluation.get_summary_table()
    bin_reports = evaluation.get_bin_reports()

    with pd.option_context("display.max_columns", None, "display.width", 200):
        print("\n" + summary.to_string(float_format=lambda v: f"{v:.3f}"))

    for report in bin_reports:
        if report.fit_error:
            print(f"  {report.display_name}: fit failed ({report.fit_error})")

    print_model_comparison(summary)

    if not args.no_save:
        output_dir = Path(data_config.get("output_dir", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        summary_file = output_dir / f"summary_{timestamp}.csv"
        summary.to_csv(summary_file)
        export_to_parquet(summary, output_dir / f"summary_{timestamp}.parquet")

        results = {
            "config": config,
            "params": params,
            "global_coefficients": {
                model.value: coef.to_dict() for model, coef in evaluation.global_coefficients.items()
            },
            "bins": [report.to_dict() for report in bin_reports],
            "timestamp": timestamp,
        }
        reports_file = output_dir / f"bin_reports_{timestamp}.json"
        with open(reports_file, "w") as f:
            json.dump(results, f, indent=2, default=str)

        print(f"\nSummary saved to: {summary_file}")
        print(f"Bin reports saved to: {reports_file}")

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    main()
