"""Baseline weighted model used by the production arrival-time predictor.

t_predicted = 0.4 * hist_cum + 0.4 * rece_cum + 0.2 * sche_cum

The recorded ``t_predicted`` column already holds this model's output, so
predictions come from that column when it is present.
"""

import numpy as np
import pandas as pd

from ..config import BASELINE_PREDICTION, ModelName
from .base import BaseModel, CoefficientSet


class OriginalModel(BaseModel):
    """Fixed-coefficient baseline. Any useful fitted model should beat this."""

    model_name = ModelName.ORIGINAL

    def fit(self, records: pd.DataFrame) -> "BaseModel":
        """No training needed - coefficients are fixed."""
        self.n_records = len(records)
        self.is_fitted = True
        return self

    @property
    def coefficients(self) -> CoefficientSet:
        return CoefficientSet.from_array(self.model_name, self.config.original_coef)

    def predict(self, records: pd.DataFrame) -> np.ndarray:
        """Return the recorded baseline prediction, or recompute it if missing."""
        if not self.is_fitted:
            raise ValueError("Model must be fitted before prediction")
        if BASELINE_PREDICTION in records.columns:
            return records[BASELINE_PREDICTION].to_numpy(dtype=float, copy=True)
        return super().predict(records)
