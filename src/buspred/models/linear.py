"""No-intercept least-squares models fitted to measured travel times."""

from typing import Sequence

import numpy as np
import pandas as pd
from scipy import linalg

from ..config import PREDICTORS, TARGET, EvaluationConfig, ModelName
from ..errors import DegenerateFitError, ZeroSumCoefficientError
from .base import BaseModel, CoefficientSet


def normalize_coefficients(coef: Sequence[float]) -> np.ndarray:
    """Rescale coefficients so they sum to 1, keeping their order and ratios.

    Args:
        coef: Coefficient vector (historical, recent, schedule)

    Returns:
        Array of coef / sum(coef)

    Raises:
        ZeroSumCoefficientError: If the sum is zero or not finite
    """
    values = np.asarray(coef, dtype=float)
    total = values.sum()
    if total == 0 or not np.isfinite(total):
        raise ZeroSumCoefficientError(f"Cannot normalize coefficients {values.tolist()}: sum is {total}")
    return values / total


def fit_no_intercept(
    records: pd.DataFrame,
    predictors: Sequence[str] = PREDICTORS,
    target: str = TARGET,
) -> np.ndarray:
    """Ordinary least squares of target on predictors with no intercept term.

    Gives the same solution as solving the normal equations X'X b = X'y for a
    full-rank design matrix.

    Args:
        records: Trip records containing the predictor and target columns
        predictors: Predictor column names, in coefficient order
        target: Measured travel time column

    Returns:
        Coefficient array in predictor order

    Raises:
        DegenerateFitError: For too few rows, non-finite values or a
            rank-deficient design matrix
    """
    n_predictors = len(predictors)
    if len(records) < n_predictors:
        raise DegenerateFitError(
            f"Need at least {n_predictors} records to fit {n_predictors} coefficients, got {len(records)}"
        )

    design = records[list(predictors)].to_numpy(dtype=float)
    response = records[target].to_numpy(dtype=float)

    if not (np.isfinite(design).all() and np.isfinite(response).all()):
        raise DegenerateFitError("Fit input contains missing or infinite values")

    coef, _, rank, _ = linalg.lstsq(design, response)
    if rank < n_predictors:
        raise DegenerateFitError(
            f"Design matrix has rank {rank} < {n_predictors}; predictors are collinear or constant"
        )

    return coef


class OptimizedModel(BaseModel):
    """Least-squares fit of t_measured on the three cumulative predictors."""

    model_name = ModelName.OPTIMIZED

    def __init__(self, config: EvaluationConfig):
        super().__init__(config)
        self._coef = None

    @classmethod
    def from_coefficients(cls, config: EvaluationConfig, coefficients: CoefficientSet):
        """Build an already-fitted model from known coefficients."""
        model = cls(config)
        model._coef = coefficients.as_array()
        model.is_fitted = True
        return model

    def fit(self, records: pd.DataFrame) -> "BaseModel":
        self._coef = fit_no_intercept(records)
        self.n_records = len(records)
        self.is_fitted = True
        return self

    @property
    def coefficients(self) -> CoefficientSet:
        if self._coef is None:
            raise ValueError("Model must be fitted before reading coefficients")
        return CoefficientSet.from_array(self.model_name, self._coef)


class NormalizedModel(OptimizedModel):
    """Optimized coefficients rescaled to sum to 1."""

    model_name = ModelName.NORMALIZED

    @classmethod
    def from_coefficients(cls, config: EvaluationConfig, coefficients: CoefficientSet):
        """Derive the normalized model from an optimized coefficient set."""
        return super().from_coefficients(
            config,
            CoefficientSet.from_array(cls.model_name, normalize_coefficients(coefficients.as_array())),
        )

    def fit(self, records: pd.DataFrame) -> "BaseModel":
        super().fit(records)
        self._coef = normalize_coefficients(self._coef)
        return self
