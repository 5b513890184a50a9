"""Unit tests for binning, evaluation metrics and the summary table."""

import math

import numpy as np
import pandas as pd
import pytest

from buspred.config import COEF_NAMES, METRIC_NAMES, MODEL_ORDER, EvaluationConfig, ModelName
from buspred.errors import ZeroVarianceError
from buspred.evaluation import (
    BinReport,
    HistogramRow,
    MetricRow,
    assemble_summary,
    assign_bins,
    bin_display_names,
    bin_labels,
    compute_mae,
    compute_r2,
    compute_residual_metrics,
    count_residuals,
    residual_labels,
    split_by_bin,
    summary_columns,
)
from buspred.models import CoefficientSet

BIN_CUTOFFS = (0, 120, 240, 360, 600, 900, 1200, math.inf)
RESIDUAL_CUTOFFS = (0, 60, 120, 240, 360, math.inf)


class TestBinLabels:
    """Tests for bin and bucket naming."""

    def test_interval_labels(self):
        """Labels should describe right-open intervals in seconds."""
        labels = bin_labels(BIN_CUTOFFS)

        assert labels[0] == "[0, 120)"
        assert labels[-1] == "[1200, Inf)"
        assert len(labels) == 7

    def test_display_names_in_minutes(self):
        """Display names should be in minutes."""
        names = bin_display_names(BIN_CUTOFFS)

        assert names[0] == "0 to 2 mins"
        assert names[3] == "6 to 10 mins"
        assert names[-1] == "20 to Inf mins"

    def test_residual_labels_end_with_total(self):
        """Residual columns are one per bucket plus Total."""
        labels = residual_labels(RESIDUAL_CUTOFFS)

        assert labels == [
            "0 to 1 mins",
            "1 to 2 mins",
            "2 to 4 mins",
            "4 to 6 mins",
            "6 to Inf mins",
            "Total",
        ]


class TestAssignBins:
    """Tests for travel-time bin assignment."""

    def test_boundary_goes_to_upper_bin(self):
        """A value equal to a cutoff falls into the bin starting at it."""
        bins = assign_bins([120.0, 240.0, 1200.0], BIN_CUTOFFS)

        assert list(bins) == ["[120, 240)", "[240, 360)", "[1200, Inf)"]

    def test_zero_maps_to_first_bin(self):
        """A predicted time of exactly 0 belongs to the first bin."""
        bins = assign_bins([0.0], BIN_CUTOFFS)

        assert bins[0] == "[0, 120)"

    def test_large_values_map_to_last_bin(self):
        """Everything from the last finite cutoff upward is in the open bin."""
        bins = assign_bins([1199.999, 5000.0, 1e9], BIN_CUTOFFS)

        assert list(bins) == ["[900, 1200)", "[1200, Inf)", "[1200, Inf)"]

    def test_categories_ordered_low_to_high(self):
        """Categories follow cutoff order regardless of the data."""
        bins = assign_bins([1000.0, 10.0], BIN_CUTOFFS)

        assert list(bins.categories) == bin_labels(BIN_CUTOFFS)
        assert bins.ordered

    def test_negative_values_clipped_to_first_bin(self):
        """Negative predictions are placed in the first bin."""
        bins = assign_bins([-5.0, 50.0], BIN_CUTOFFS)

        assert list(bins) == ["[0, 120)", "[0, 120)"]

    def test_nan_stays_unassigned(self):
        """NaN values have no bin."""
        bins = assign_bins([np.nan, 50.0], BIN_CUTOFFS)

        assert pd.isna(bins[0])
        assert bins[1] == "[0, 120)"

    def test_bins_partition_records(self, sample_records):
        """Every record lands in exactly one bin."""
        bins = assign_bins(sample_records["t_predicted"], BIN_CUTOFFS)
        groups = split_by_bin(sample_records, bins)

        assert sum(len(g) for g in groups.values()) == len(sample_records)
        combined = pd.concat(groups.values()).index.sort_values()
        assert list(combined) == list(sample_records.index)


class TestSplitByBin:
    """Tests for grouping records by bin."""

    def test_empty_bins_are_kept(self):
        """Every bin appears in the output, even with no records."""
        records = pd.DataFrame({"t_predicted": [10.0, 20.0, 700.0]})
        bins = assign_bins(records["t_predicted"], BIN_CUTOFFS)

        groups = split_by_bin(records, bins)

        assert list(groups) == bin_labels(BIN_CUTOFFS)
        assert len(groups["[0, 120)"]) == 2
        assert len(groups["[600, 900)"]) == 1
        assert len(groups["[1200, Inf)"]) == 0

    def test_length_mismatch_raises(self):
        """Bins must align with records."""
        records = pd.DataFrame({"t_predicted": [10.0, 20.0]})
        bins = assign_bins([10.0], BIN_CUTOFFS)

        with pytest.raises(ValueError):
            split_by_bin(records, bins)


class TestResidualMetrics:
    """Tests for per-group residual metrics."""

    def test_known_values(self):
        """Metrics should match hand-computed values."""
        y_true = np.array([10.0, 20.0, 30.0, 40.0])
        y_pred = np.array([12.0, 18.0, 33.0, 40.0])

        row = compute_residual_metrics(y_true, y_pred)

        # abs residuals: 2, 2, 3, 0
        assert row.mean == pytest.approx(1.75)
        assert row.median == pytest.approx(2.0)
        assert row.sd == pytest.approx(np.sqrt(4.75 / 3))
        assert row.r2 == pytest.approx(np.corrcoef(y_true, y_pred)[0, 1] ** 2)
        assert row.n_records == 4

    def test_perfect_prediction(self):
        """Perfect predictions give R2 of 1 and zero residuals."""
        y = np.array([100.0, 250.0, 400.0])

        row = compute_residual_metrics(y, y)

        assert row.r2 == pytest.approx(1.0)
        assert row.mean == 0.0
        assert row.median == 0.0
        assert row.sd == 0.0

    def test_empty_group_is_nan(self):
        """An empty group has undefined metrics."""
        row = compute_residual_metrics(np.array([]), np.array([]))

        assert all(math.isnan(v) for v in row.as_tuple())
        assert row.n_records == 0

    def test_constant_series_has_nan_r2(self):
        """R2 is undefined when the measured series is constant."""
        row = compute_residual_metrics(np.array([60.0, 60.0, 60.0]), np.array([50.0, 70.0, 65.0]))

        assert math.isnan(row.r2)
        assert row.mean == pytest.approx(25 / 3)

    def test_single_record_has_nan_sd(self):
        """Sample SD needs at least two records."""
        row = compute_residual_metrics(np.array([100.0]), np.array([90.0]))

        assert math.isnan(row.sd)
        assert math.isnan(row.r2)
        assert row.mean == 10.0
        assert row.median == 10.0

    def test_inputs_not_mutated(self):
        """The evaluator must not change its inputs."""
        y_true = np.array([10.0, 20.0, 30.0])
        y_pred = np.array([12.0, 18.0, 33.0])

        compute_residual_metrics(y_true, y_pred)

        np.testing.assert_array_equal(y_true, [10.0, 20.0, 30.0])
        np.testing.assert_array_equal(y_pred, [12.0, 18.0, 33.0])

    def test_compute_r2_raises_on_zero_variance(self):
        """compute_r2 reports zero variance explicitly."""
        with pytest.raises(ZeroVarianceError):
            compute_r2(np.array([1.0, 2.0, 3.0]), np.array([5.0, 5.0, 5.0]))

    def test_compute_mae(self):
        """MAE is the mean absolute residual."""
        assert compute_mae(np.array([10, 10, 10]), np.array([12, 8, 10])) == pytest.approx(4 / 3)


class TestCountResiduals:
    """Tests for the residual histogram."""

    def test_bucket_boundaries(self):
        """Residuals are counted in right-open buckets."""
        residuals = np.array([0.0, 59.9, 60.0, 119.0, 240.0, 359.0, 360.0, 10_000.0])

        row = count_residuals(residuals, RESIDUAL_CUTOFFS)

        assert row.counts == (2, 2, 0, 2, 2)
        assert row.total == len(residuals)

    def test_counts_sum_to_total(self):
        """Bucket counts always add up to Total."""
        rng = np.random.default_rng(0)
        residuals = np.abs(rng.normal(0, 200, 500))

        row = count_residuals(residuals, RESIDUAL_CUTOFFS)

        assert sum(row.counts) == row.total == 500
        assert row.to_dict()["Total"] == 500

    def test_empty_group(self):
        """An empty group has all-zero counts."""
        row = count_residuals(np.array([]), RESIDUAL_CUTOFFS)

        assert row.counts == (0, 0, 0, 0, 0)
        assert row.total == 0

    def test_undefined_residuals_counted_in_total(self):
        """NaN residuals are not bucketed but still count toward Total."""
        residuals = np.array([10.0, np.nan, 100.0, np.nan])

        row = count_residuals(residuals, RESIDUAL_CUTOFFS)

        assert row.counts == (1, 1, 0, 0, 0)
        assert row.n_undefined == 2
        assert row.total == 4
        assert row.to_dict()["Undefined"] == 2

    def test_all_undefined(self):
        """A group of undefined residuals has empty buckets and a full Total."""
        row = count_residuals(np.full(3, np.nan), RESIDUAL_CUTOFFS)

        assert row.counts == (0, 0, 0, 0, 0)
        assert row.total == 3

    def test_labels(self):
        """Histogram labels follow the residual cutoffs."""
        row = count_residuals(np.array([30.0]), RESIDUAL_CUTOFFS)

        assert row.labels == tuple(residual_labels(RESIDUAL_CUTOFFS)[:-1])

    def test_mismatched_counts_raise(self):
        """A histogram row needs one count per label."""
        with pytest.raises(ValueError):
            HistogramRow(labels=("a", "b"), counts=(1,))


def make_report(label: str, lower: float, upper: float, n_records: int) -> BinReport:
    """Build a bin report with simple placeholder values."""
    labels = tuple(residual_labels(RESIDUAL_CUTOFFS)[:-1])
    return BinReport(
        label=label,
        display_name=label,
        lower=lower,
        upper=upper,
        n_fit_records=n_records,
        coefficients={
            ModelName.ORIGINAL: CoefficientSet(ModelName.ORIGINAL, 0.4, 0.4, 0.2),
            ModelName.OPTIMIZED: CoefficientSet(ModelName.OPTIMIZED, 0.6, 0.3, 0.3),
            ModelName.NORMALIZED: CoefficientSet(ModelName.NORMALIZED, 0.5, 0.25, 0.25),
        },
        metrics={m: MetricRow(0.9, 10.0, 20.0, 15.0, n_records) for m in MODEL_ORDER},
        histograms={m: HistogramRow(labels, (n_records, 0, 0, 0, 0)) for m in MODEL_ORDER},
    )


class TestAssembleSummary:
    """Tests for the flattened summary table."""

    def test_shape_and_columns(self):
        """Three rows per bin with a fixed column order."""
        config = EvaluationConfig()
        reports = [make_report("[0, 120)", 0, 120, 5), make_report("[120, 240)", 120, 240, 3)]

        summary = assemble_summary(reports, config)

        assert summary.shape == (6, len(summary_columns(config)))
        assert list(summary.columns) == [
            "Bin",
            *COEF_NAMES,
            *residual_labels(RESIDUAL_CUTOFFS),
            *METRIC_NAMES,
        ]
        assert summary.index.name == "Model"

    def test_row_order(self):
        """Rows follow bin order, then Original/Optimized/Normalized."""
        config = EvaluationConfig()
        reports = [make_report("[0, 120)", 0, 120, 5), make_report("[120, 240)", 120, 240, 3)]

        summary = assemble_summary(reports, config)

        assert list(summary.index) == ["Original", "Optimized", "Normalized"] * 2
        assert list(summary["Bin"]) == ["[0, 120)"] * 3 + ["[120, 240)"] * 3

    def test_values(self):
        """Cells carry coefficients, counts and metrics of the right model."""
        config = EvaluationConfig()
        summary = assemble_summary([make_report("[0, 120)", 0, 120, 5)], config)

        normalized = summary.iloc[2]
        assert normalized["Historical"] == 0.5
        assert normalized["0 to 1 mins"] == 5
        assert normalized["Total"] == 5
        assert normalized["R2 (Pearson)"] == 0.9
        assert summary["Total"].dtype == np.int64

    def test_report_to_dict(self):
        """Bin reports serialize NaN as None and unbounded edges as None."""
        report = make_report("[1200, Inf)", 1200, math.inf, 0)

        data = report.to_dict()

        assert data["upper"] is None
        assert data["models"]["Optimized"]["coefficients"]["Recent"] == 0.3
        assert data["models"]["Original"]["residual_counts"]["Total"] == 0
