"""Binning, metrics and reporting for arrival-time prediction models."""

from .binning import assign_bins, bin_display_names, bin_labels, residual_labels, split_by_bin
from .metrics import compute_mae, compute_r2, compute_residual_metrics, count_residuals
from .pipeline import (
    BinFit,
    BinnedEvaluation,
    ModelPredictions,
    evaluate_bin,
    fit_bin,
    run_binned_evaluation,
    validate_records,
)
from .report import BinReport, HistogramRow, MetricRow, assemble_summary, summary_columns

__all__ = [
    "assign_bins",
    "bin_labels",
    "bin_display_names",
    "residual_labels",
    "split_by_bin",
    "compute_mae",
    "compute_r2",
    "compute_residual_metrics",
    "count_residuals",
    "BinFit",
    "BinnedEvaluation",
    "ModelPredictions",
    "evaluate_bin",
    "fit_bin",
    "run_binned_evaluation",
    "validate_records",
    "BinReport",
    "HistogramRow",
    "MetricRow",
    "assemble_summary",
    "summary_columns",
]
