"""Evaluation metrics for arrival-time prediction models."""

import logging
from typing import Sequence

import numpy as np

from ..errors import ZeroVarianceError
from .binning import assign_bins, residual_labels
from .report import HistogramRow, MetricRow

logger = logging.getLogger(__name__)


def compute_mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Compute Mean Absolute Error."""
    return np.mean(np.abs(y_true - y_pred))


def compute_r2(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Squared Pearson correlation between measured and predicted times.

    Raises:
        ZeroVarianceError: If either series is constant (or has fewer than two values)
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    if len(y_true) < 2 or np.std(y_true) == 0 or np.std(y_pred) == 0:
        raise ZeroVarianceError("Correlation is undefined for a constant series")

    correlation = np.corrcoef(y_true, y_pred)[0, 1]
    return float(correlation**2)


def compute_residual_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> MetricRow:
    """Compute R2, SD, mean and median of the absolute residuals for one group.

    SD is the sample standard deviation (ddof=1). Every value is NaN for an
    empty group; R2 is NaN when either series has zero variance.

    Args:
        y_true: Measured travel times
        y_pred: Model-predicted travel times

    Returns:
        MetricRow for the group
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    n_records = len(y_true)

    if n_records == 0:
        return MetricRow(r2=np.nan, sd=np.nan, mean=np.nan, median=np.nan, n_records=0)

    abs_residuals = np.abs(y_true - y_pred)

    try:
        r2 = compute_r2(y_true, y_pred)
    except ZeroVarianceError:
        logger.debug("R2 undefined for group of %d records", n_records)
        r2 = np.nan

    return MetricRow(
        r2=r2,
        sd=float(np.std(abs_residuals, ddof=1)) if n_records > 1 else np.nan,
        mean=float(compute_mae(y_true, y_pred)),
        median=float(np.median(abs_residuals)),
        n_records=n_records,
    )


def count_residuals(abs_residuals: np.ndarray, cutoffs: Sequence[float]) -> HistogramRow:
    """Count absolute residuals per half-open bucket [cutoffs[i], cutoffs[i+1]).

    Args:
        abs_residuals: Absolute residuals in seconds
        cutoffs: Residual bucket boundaries

    Returns:
        HistogramRow with one count per bucket; NaN residuals are counted as
        undefined so the total always equals the number of residuals
    """
    abs_residuals = np.asarray(abs_residuals, dtype=float)
    undefined = np.isnan(abs_residuals)

    buckets = assign_bins(abs_residuals[~undefined], cutoffs)
    codes = np.asarray(buckets.codes)
    counts = np.bincount(codes[codes >= 0], minlength=len(cutoffs) - 1)

    return HistogramRow(
        labels=tuple(residual_labels(cutoffs)[:-1]),
        counts=tuple(int(c) for c in counts),
        n_undefined=int(undefined.sum()),
    )
