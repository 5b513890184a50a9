"""Assign records to half-open travel-time bins."""

import logging
import math
from typing import Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def _format_boundary(value: float, scale: float = 1.0) -> str:
    if math.isinf(value):
        return "Inf"
    return f"{value / scale:g}"


def bin_labels(cutoffs: Sequence[float]) -> list[str]:
    """Interval labels such as "[0, 120)", ordered low to high."""
    return [
        f"[{_format_boundary(lo)}, {_format_boundary(hi)})" for lo, hi in zip(cutoffs, cutoffs[1:])
    ]


def bin_display_names(cutoffs: Sequence[float]) -> list[str]:
    """Human-readable bin names in minutes, e.g. "0 to 2 mins"."""
    return [
        f"{_format_boundary(lo, 60)} to {_format_boundary(hi, 60)} mins"
        for lo, hi in zip(cutoffs, cutoffs[1:])
    ]


def residual_labels(cutoffs: Sequence[float]) -> list[str]:
    """Histogram column names: one per residual bucket plus "Total"."""
    return bin_display_names(cutoffs) + ["Total"]


def assign_bins(values, cutoffs: Sequence[float]) -> pd.Categorical:
    """Map each value to the bin [cutoffs[i], cutoffs[i+1]) containing it.

    A value equal to a cutoff lands in the bin that starts at it. Values below
    the first cutoff are clipped into the first bin; NaN values stay unassigned.

    Args:
        values: Travel times in seconds
        cutoffs: Strictly increasing bin boundaries

    Returns:
        Ordered Categorical with one category per bin (including empty ones)
    """
    values = np.asarray(values, dtype=float)

    below = values < cutoffs[0]
    if below.any():
        logger.warning(
            "Clipping %d values below %s into the first bin", int(below.sum()), cutoffs[0]
        )
        values = np.where(below, cutoffs[0], values)

    bins = pd.cut(values, bins=list(cutoffs), right=False, labels=bin_labels(cutoffs))

    n_missing = int(pd.isna(bins).sum())
    if n_missing:
        logger.warning("%d values could not be assigned to a bin", n_missing)

    return bins


def split_by_bin(
    records: pd.DataFrame,
    bins: pd.Categorical,
) -> dict[str, pd.DataFrame]:
    """Group records by bin, keeping every bin in cutoff order.

    Args:
        records: Records aligned with ``bins``
        bins: Output of assign_bins for the same rows

    Returns:
        Dict mapping bin label -> records in that bin (empty frames for empty bins)
    """
    if len(records) != len(bins):
        raise ValueError(f"Got {len(bins)} bin assignments for {len(records)} records")

    codes = np.asarray(bins.codes)
    return {
        label: records.iloc[np.flatnonzero(codes == code)]
        for code, label in enumerate(bins.categories)
    }
