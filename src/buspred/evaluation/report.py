"""Per-bin result records and the flattened summary table."""

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
import pandas as pd

from ..config import COEF_NAMES, METRIC_NAMES, MODEL_ORDER, EvaluationConfig, ModelName
from ..models.base import CoefficientSet
from .binning import residual_labels


@dataclass(frozen=True)
class MetricRow:
    """Accuracy of one model inside one bin."""

    r2: float
    sd: float
    mean: float
    median: float
    n_records: int = 0

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.r2, self.sd, self.mean, self.median)

    def to_dict(self) -> dict[str, float]:
        return dict(zip(METRIC_NAMES, self.as_tuple()))


@dataclass(frozen=True)
class HistogramRow:
    """Absolute-residual counts per magnitude bucket."""

    labels: tuple[str, ...]
    counts: tuple[int, ...]
    # Records whose residual is NaN (prediction from an undefined fit)
    n_undefined: int = 0

    def __post_init__(self):
        if len(self.labels) != len(self.counts):
            raise ValueError(f"Got {len(self.counts)} counts for {len(self.labels)} buckets")

    @property
    def total(self) -> int:
        return sum(self.counts) + self.n_undefined

    def to_dict(self) -> dict[str, int]:
        return {**dict(zip(self.labels, self.counts)), "Undefined": self.n_undefined, "Total": self.total}


@dataclass(frozen=True)
class BinReport:
    """Coefficients, metrics and residual histograms of every model for one bin."""

    label: str
    display_name: str
    lower: float
    upper: float
    n_fit_records: int
    coefficients: dict[ModelName, CoefficientSet]
    metrics: dict[ModelName, MetricRow]
    histograms: dict[ModelName, HistogramRow]
    fit_error: str | None = None
    notes: tuple[str, ...] = field(default=())

    def coefficient(self, model) -> CoefficientSet:
        return self.coefficients[ModelName.parse(model)]

    def metric(self, model) -> MetricRow:
        return self.metrics[ModelName.parse(model)]

    def histogram(self, model) -> HistogramRow:
        return self.histograms[ModelName.parse(model)]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (NaN becomes None)."""

        def clean(values: dict) -> dict:
            return {
                k: None if isinstance(v, float) and math.isnan(v) else v for k, v in values.items()
            }

        return {
            "bin": self.label,
            "bin_str": self.display_name,
            "lower": None if math.isinf(self.lower) else self.lower,
            "upper": None if math.isinf(self.upper) else self.upper,
            "n_fit_records": self.n_fit_records,
            "fit_error": self.fit_error,
            "notes": list(self.notes),
            "models": {
                model.value: {
                    "coefficients": clean(self.coefficients[model].to_dict()),
                    "metrics": clean(self.metrics[model].to_dict()),
                    "residual_counts": self.histograms[model].to_dict(),
                    "n_records": self.metrics[model].n_records,
                }
                for model in MODEL_ORDER
            },
        }


def summary_columns(config: EvaluationConfig) -> list[str]:
    """Fixed column order of the summary table."""
    return ["Bin", *COEF_NAMES, *residual_labels(config.residual_cutoffs), *METRIC_NAMES]


def assemble_summary(bin_reports: Sequence[BinReport], config: EvaluationConfig) -> pd.DataFrame:
    """Flatten bin reports into one row per (bin, model).

    Rows follow the given bin order, and within each bin the model order
    Original, Optimized, Normalized.

    Args:
        bin_reports: One report per bin, in bin order
        config: Shared evaluation settings (for column names)

    Returns:
        DataFrame indexed by model name with summary_columns() as columns
    """
    columns = summary_columns(config)
    count_columns = residual_labels(config.residual_cutoffs)

    rows = []
    models = []
    for report in bin_reports:
        for model in MODEL_ORDER:
            histogram = report.histograms[model]
            rows.append(
                [
                    report.label,
                    *report.coefficients[model].as_array(),
                    *histogram.counts,
                    histogram.total,
                    *report.metrics[model].as_tuple(),
                ]
            )
            models.append(model.value)

    summary = pd.DataFrame(rows, columns=columns, index=pd.Index(models, name="Model"))
    summary[count_columns] = summary[count_columns].astype(np.int64)
    return summary
