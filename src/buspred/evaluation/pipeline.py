"""Binned fitting and evaluation of the three arrival-time models.

Records are binned on the baseline prediction, an optimized no-intercept
model is fitted inside every bin, and the Original / Optimized / Normalized
predictions are then scored bin by bin. Per-bin work runs on a process pool
and results are always reassembled in cutoff order.
"""

import logging
import os
import time
from collections.abc import Callable
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..config import (
    BASELINE_PREDICTION,
    MODEL_ORDER,
    PREDICTORS,
    TARGET,
    EvaluationConfig,
    ModelName,
)
from ..errors import DegenerateFitError, EmptyInputError, ZeroSumCoefficientError
from ..models import CoefficientSet, NormalizedModel, OptimizedModel, OriginalModel
from .binning import assign_bins, bin_display_names, bin_labels, split_by_bin
from .metrics import compute_residual_metrics, count_residuals
from .report import BinReport, HistogramRow, MetricRow, assemble_summary

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = (*PREDICTORS, BASELINE_PREDICTION, TARGET)


@dataclass(frozen=True)
class BinFit:
    """Outcome of fitting the optimized model on one bin."""

    label: str
    n_records: int
    optimized: CoefficientSet
    normalized: CoefficientSet
    error: str | None = None


@dataclass(frozen=True)
class ModelPredictions:
    """Per-record output of one model: predicted time, residual and bins."""

    model: ModelName
    index: pd.Index
    predicted_time: np.ndarray
    abs_residual: np.ndarray
    bin_label: pd.Categorical
    fit_bin_label: pd.Categorical

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "predicted_time": self.predicted_time,
                "abs_residual": self.abs_residual,
                "bin_label": self.bin_label,
                "fit_bin_label": self.fit_bin_label,
            },
            index=self.index,
        )


def validate_records(records: pd.DataFrame) -> pd.DataFrame:
    """Check that records can be evaluated.

    Raises:
        EmptyInputError: If there are no records
        ValueError: If required columns are missing or contain nulls
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in records.columns]
    if missing:
        raise ValueError(f"Trip records are missing required columns: {missing}")

    if len(records) == 0:
        raise EmptyInputError("No trip records to evaluate")

    null_counts = records[list(REQUIRED_COLUMNS)].isna().sum()
    null_counts = null_counts[null_counts > 0]
    if len(null_counts) > 0:
        raise ValueError(f"Trip records contain missing values: {null_counts.to_dict()}")

    return records


def fit_bin(label: str, records: pd.DataFrame, config: EvaluationConfig) -> BinFit:
    """Fit the optimized and normalized coefficients for one bin.

    Fit failures are returned on the BinFit (with NaN coefficients) rather
    than raised, so one bad bin does not stop the others.
    """
    n_records = len(records)
    try:
        optimized = OptimizedModel(config).fit(records).coefficients
    except DegenerateFitError as e:
        return BinFit(
            label,
            n_records,
            CoefficientSet.undefined(ModelName.OPTIMIZED),
            CoefficientSet.undefined(ModelName.NORMALIZED),
            error=str(e),
        )

    try:
        normalized = NormalizedModel.from_coefficients(config, optimized).coefficients
    except ZeroSumCoefficientError as e:
        return BinFit(
            label,
            n_records,
            optimized,
            CoefficientSet.undefined(ModelName.NORMALIZED),
            error=str(e),
        )

    return BinFit(label, n_records, optimized, normalized)


def evaluate_bin(
    label: str,
    groups: dict[ModelName, tuple[np.ndarray, np.ndarray]],
    residual_cutoffs: tuple[float, ...],
) -> dict[ModelName, tuple[MetricRow, HistogramRow]]:
    """Score every model on its records for one bin.

    Args:
        label: Bin label (for logging)
        groups: Model -> (measured, predicted) arrays of the records in this bin
        residual_cutoffs: Residual histogram boundaries

    Returns:
        Model -> (metrics, residual histogram)
    """
    results = {}
    for model, (measured, predicted) in groups.items():
        metrics = compute_residual_metrics(measured, predicted)
        histogram = count_residuals(np.abs(measured - predicted), residual_cutoffs)
        results[model] = (metrics, histogram)
    logger.debug("Evaluated bin %s", label)
    return results


def _run_per_bin(
    func: Callable,
    tasks: dict[str, tuple],
    n_workers: int,
    timeout: float | None = None,
    on_timeout: Callable[[str], Any] | None = None,
    desc: str = "Bins",
    verbose: bool = False,
) -> dict[str, Any]:
    """Apply func to every bin's arguments, in parallel when n_workers > 1.

    The timeout only applies to pool execution and counts from each bin's
    submission; in-process runs always finish.
    """
    results = {}

    if n_workers == 1:
        for label, args in tqdm(tasks.items(), desc=desc, disable=not verbose):
            results[label] = func(*args)
        return results

    executor = ProcessPoolExecutor(max_workers=n_workers)
    try:
        futures = {}
        deadlines = {}
        for label, args in tasks.items():
            futures[label] = executor.submit(func, *args)
            deadlines[label] = None if timeout is None else time.monotonic() + timeout

        for label, future in tqdm(futures.items(), desc=desc, disable=not verbose):
            remaining = None
            if deadlines[label] is not None:
                remaining = max(0.0, deadlines[label] - time.monotonic())
            try:
                results[label] = future.result(timeout=remaining)
            except FutureTimeoutError:
                if on_timeout is None:
                    raise
                future.cancel()
                logger.warning("Bin %s did not finish within %ss", label, timeout)
                results[label] = on_timeout(label)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return results


class BinnedEvaluation:
    """Compare the Original, Optimized and Normalized models bin by bin.

    Usage:
        evaluation = BinnedEvaluation(records, config).run()
        summary = evaluation.get_summary_table()
    """

    def __init__(
        self,
        records: pd.DataFrame,
        config: EvaluationConfig | None = None,
        verbose: bool = False,
    ):
        self.records = records
        self.config = config or EvaluationConfig()
        self.verbose = verbose

        self.labels = bin_labels(self.config.bin_cutoffs)
        self.display_names = dict(zip(self.labels, bin_display_names(self.config.bin_cutoffs)))

        # Whole-table fit, used as the fallback for failed bins
        self.global_coefficients: dict[ModelName, CoefficientSet] = {}

        self._bin_fits: dict[str, BinFit] = {}
        self._predictions: dict[ModelName, ModelPredictions] = {}
        self._bin_reports: list[BinReport] = []
        self._summary: pd.DataFrame | None = None
        self.is_run = False

    def _n_workers(self) -> int:
        if self.config.n_workers is not None:
            return self.config.n_workers
        return max(1, (os.cpu_count() or 1) - 1)

    def _fit_global(self, records: pd.DataFrame) -> None:
        # Fatal on failure: nothing downstream can be trusted without it
        optimized = OptimizedModel(self.config).fit(records).coefficients
        try:
            normalized = NormalizedModel.from_coefficients(self.config, optimized).coefficients
        except ZeroSumCoefficientError as e:
            logger.warning("Whole-table normalized coefficients undefined: %s", e)
            normalized = CoefficientSet.undefined(ModelName.NORMALIZED)

        self.global_coefficients = {
            ModelName.ORIGINAL: OriginalModel(self.config).coefficients,
            ModelName.OPTIMIZED: optimized,
            ModelName.NORMALIZED: normalized,
        }

    def _resolve_fit(self, fit: BinFit) -> tuple[BinFit, tuple[str, ...]]:
        """Apply the degenerate-bin policy to a failed bin fit."""
        if fit.error is None:
            return fit, ()

        logger.warning("Bin %s: fit failed (%s)", fit.label, fit.error)
        if self.config.degenerate_policy != "global":
            return fit, ()

        if fit.optimized.is_defined:
            # Only the normalization failed
            return (
                BinFit(
                    fit.label,
                    fit.n_records,
                    fit.optimized,
                    self.global_coefficients[ModelName.NORMALIZED],
                    error=fit.error,
                ),
                ("Using whole-table normalized coefficients",),
            )

        return (
            BinFit(
                fit.label,
                fit.n_records,
                self.global_coefficients[ModelName.OPTIMIZED],
                self.global_coefficients[ModelName.NORMALIZED],
                error=fit.error,
            ),
            ("Using whole-table coefficients",),
        )

    def _fit_bins(self, records: pd.DataFrame, fit_bins: pd.Categorical, n_workers: int):
        groups = split_by_bin(records[list(REQUIRED_COLUMNS)], fit_bins)

        def timed_out(label: str) -> BinFit:
            return BinFit(
                label,
                len(groups[label]),
                CoefficientSet.undefined(ModelName.OPTIMIZED),
                CoefficientSet.undefined(ModelName.NORMALIZED),
                error=f"Fit exceeded {self.config.fit_timeout_seconds}s deadline",
            )

        return _run_per_bin(
            fit_bin,
            {label: (label, groups[label], self.config) for label in self.labels},
            n_workers,
            timeout=self.config.fit_timeout_seconds,
            on_timeout=timed_out,
            desc="Fitting bins",
            verbose=self.verbose,
        )

    def _predict(self, records: pd.DataFrame, fit_bins: pd.Categorical) -> None:
        design = records[list(PREDICTORS)].to_numpy(dtype=float)
        measured = records[TARGET].to_numpy(dtype=float)
        codes = np.asarray(fit_bins.codes)
        assigned = codes >= 0

        predicted = {
            ModelName.ORIGINAL: OriginalModel(self.config).fit(records).predict(records),
        }
        for model in (ModelName.OPTIMIZED, ModelName.NORMALIZED):
            attr = model.value.lower()
            table = np.vstack([getattr(self._bin_fits[label], attr).as_array() for label in self.labels])
            per_record = np.full(design.shape, np.nan)
            per_record[assigned] = table[codes[assigned]]
            predicted[model] = (design * per_record).sum(axis=1)

        for model in MODEL_ORDER:
            values = predicted[model]
            if self.config.evaluation_binning == "model":
                undefined = np.isnan(values)
                model_bins = assign_bins(values[~undefined], self.config.bin_cutoffs)
                # Records without a defined prediction stay in their fit bin
                eval_codes = codes.copy()
                eval_codes[~undefined] = model_bins.codes
                eval_bins = pd.Categorical.from_codes(eval_codes, dtype=fit_bins.dtype)
            else:
                eval_bins = fit_bins
            self._predictions[model] = ModelPredictions(
                model=model,
                index=records.index,
                predicted_time=values,
                abs_residual=np.abs(measured - values),
                bin_label=eval_bins,
                fit_bin_label=fit_bins,
            )

    def _evaluate_bins(self, records: pd.DataFrame, n_workers: int):
        measured = records[TARGET].to_numpy(dtype=float)

        tasks = {}
        for code, label in enumerate(self.labels):
            groups = {}
            for model in MODEL_ORDER:
                predictions = self._predictions[model]
                mask = np.asarray(predictions.bin_label.codes) == code
                groups[model] = (measured[mask], predictions.predicted_time[mask])
            tasks[label] = (label, groups, self.config.residual_cutoffs)

        return _run_per_bin(
            evaluate_bin, tasks, n_workers, desc="Evaluating bins", verbose=self.verbose
        )

    def run(self) -> "BinnedEvaluation":
        """Fit, bin, evaluate and assemble. Returns self for chaining.

        Raises:
            EmptyInputError: If there are no records
            DegenerateFitError: If the whole-table fit fails
        """
        records = validate_records(self.records)
        n_workers = self._n_workers()
        logger.info(
            "Evaluating %d records over %d bins with %d worker(s)",
            len(records),
            self.config.n_bins,
            n_workers,
        )

        self._fit_global(records)

        fit_bins = assign_bins(records[BASELINE_PREDICTION], self.config.bin_cutoffs)
        fits = self._fit_bins(records, fit_bins, n_workers)

        notes = {}
        for label in self.labels:
            self._bin_fits[label], notes[label] = self._resolve_fit(fits[label])

        self._predict(records, fit_bins)
        evaluated = self._evaluate_bins(records, n_workers)

        original = self.global_coefficients[ModelName.ORIGINAL]
        lowers = self.config.bin_cutoffs[:-1]
        uppers = self.config.bin_cutoffs[1:]

        self._bin_reports = [
            BinReport(
                label=label,
                display_name=self.display_names[label],
                lower=lower,
                upper=upper,
                n_fit_records=self._bin_fits[label].n_records,
                coefficients={
                    ModelName.ORIGINAL: original,
                    ModelName.OPTIMIZED: self._bin_fits[label].optimized,
                    ModelName.NORMALIZED: self._bin_fits[label].normalized,
                },
                metrics={model: evaluated[label][model][0] for model in MODEL_ORDER},
                histograms={model: evaluated[label][model][1] for model in MODEL_ORDER},
                fit_error=self._bin_fits[label].error,
                notes=notes[label],
            )
            for label, lower, upper in zip(self.labels, lowers, uppers)
        ]
        self._summary = assemble_summary(self._bin_reports, self.config)
        self.is_run = True
        return self

    def _require_run(self) -> None:
        if not self.is_run:
            raise ValueError("Evaluation must be run before reading results")

    def get_bin_reports(self) -> list[BinReport]:
        self._require_run()
        return list(self._bin_reports)

    def get_bin_report(self, bin_label: str) -> BinReport:
        """Look up a bin by interval label ("[0, 120)") or display name ("0 to 2 mins")."""
        self._require_run()
        for report in self._bin_reports:
            if bin_label in (report.label, report.display_name):
                return report
        raise KeyError(f"Unknown bin: {bin_label}. Available: {self.labels}")

    def get_summary_table(self) -> pd.DataFrame:
        self._require_run()
        return self._summary.copy()

    def get_model_coefficients(self, model_name, bin_label: str | None = None) -> CoefficientSet:
        """Coefficients of a model, for one bin or (by default) the whole table."""
        self._require_run()
        model = ModelName.parse(model_name)
        if bin_label is None:
            return self.global_coefficients[model]
        return self.get_bin_report(bin_label).coefficient(model)

    def get_model_predictions(self, model_name) -> ModelPredictions:
        self._require_run()
        return self._predictions[ModelName.parse(model_name)]

    def get_params(self) -> dict[str, Any]:
        """Return run settings for logging."""
        return {
            "n_records": len(self.records),
            "bin_cutoffs": list(self.config.bin_cutoffs),
            "residual_cutoffs": list(self.config.residual_cutoffs),
            "degenerate_policy": self.config.degenerate_policy,
            "evaluation_binning": self.config.evaluation_binning,
            "n_workers": self._n_workers(),
        }


def run_binned_evaluation(
    records: pd.DataFrame,
    config: EvaluationConfig | None = None,
    verbose: bool = True,
) -> tuple[list[BinReport], pd.DataFrame]:
    """Run the binned evaluation and return (bin_reports, summary_table).

    Args:
        records: Trip records
        config: Evaluation settings (defaults if None)
        verbose: Whether to print progress

    Returns:
        Tuple of (bin_reports, summary_table)
    """
    evaluation = BinnedEvaluation(records, config, verbose=verbose).run()
    return evaluation.get_bin_reports(), evaluation.get_summary_table()
