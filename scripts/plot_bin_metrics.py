#!/usr/bin/env python3
"""Plot per-bin metrics and residual histograms from a saved summary table.

Usage:
    python scripts/plot_bin_metrics.py                       # latest outputs/summary_*.csv
    python scripts/plot_bin_metrics.py outputs/summary_X.csv
"""

import sys
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from buspred.config import METRIC_NAMES

# Set style
sns.set_style("whitegrid")
plt.rcParams["figure.facecolor"] = "white"

output_dir = Path(__file__).parent.parent / "outputs"

if len(sys.argv) > 1:
    summary_file = Path(sys.argv[1])
else:
    candidates = sorted(output_dir.glob("summary_*.csv"))
    if not candidates:
        sys.exit(f"No summary files found in {output_dir}. Run run.py first.")
    summary_file = candidates[-1]

summary = pd.read_csv(summary_file)
bin_order = list(dict.fromkeys(summary["Bin"]))

# Residual bucket columns sit between the coefficients and "Total"
columns = list(summary.columns)
bucket_columns = columns[columns.index("Schedule") + 1 : columns.index("Total")]

fig, axes = plt.subplots(2, 2, figsize=(16, 10))

for ax, metric in zip(axes.flat, METRIC_NAMES):
    sns.barplot(data=summary, x="Bin", y=metric, hue="Model", order=bin_order, ax=ax)
    ax.set_title(metric, fontsize=12, fontweight="bold")
    ax.set_xlabel("Predicted travel time bin (s)")
    ax.tick_params(axis="x", rotation=30)

plt.tight_layout()
metrics_file = summary_file.with_name(summary_file.stem + "_metrics.png")
plt.savefig(metrics_file, dpi=150)
print(f"Saved metric comparison to: {metrics_file}")

# Share of records per residual bucket, one panel per model
fig, axes = plt.subplots(1, 3, figsize=(20, 6), sharey=True)
for ax, (model, rows) in zip(axes, summary.groupby("Model", sort=False)):
    shares = rows.set_index("Bin")[bucket_columns].div(rows.set_index("Bin")["Total"], axis=0)
    shares.loc[bin_order].plot(kind="bar", stacked=True, ax=ax, colormap="viridis", legend=False)
    ax.set_title(f"{model}: absolute residuals", fontsize=12, fontweight="bold")
    ax.set_xlabel("Predicted travel time bin (s)")
    ax.set_ylabel("Share of records")
    ax.tick_params(axis="x", rotation=30)

axes[-1].legend(title="Absolute residual", bbox_to_anchor=(1.02, 1), loc="upper left")
plt.tight_layout()
hist_file = summary_file.with_name(summary_file.stem + "_residuals.png")
plt.savefig(hist_file, dpi=150)
print(f"Saved residual histograms to: {hist_file}")
