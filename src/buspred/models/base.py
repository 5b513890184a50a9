"""Base model class defining the interface for arrival-time prediction."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np
import pandas as pd

from ..config import COEF_NAMES, PREDICTORS, EvaluationConfig, ModelName


@dataclass(frozen=True)
class CoefficientSet:
    """Weights applied to the historical, recent and scheduled predictors."""

    model: ModelName
    historical: float
    recent: float
    schedule: float

    @classmethod
    def from_array(cls, model, values) -> "CoefficientSet":
        historical, recent, schedule = (float(v) for v in values)
        return cls(ModelName.parse(model), historical, recent, schedule)

    @classmethod
    def undefined(cls, model) -> "CoefficientSet":
        """Coefficient set marking a fit that could not be computed."""
        return cls(ModelName.parse(model), math.nan, math.nan, math.nan)

    def as_array(self) -> np.ndarray:
        return np.array([self.historical, self.recent, self.schedule], dtype=float)

    @property
    def is_defined(self) -> bool:
        return bool(np.all(np.isfinite(self.as_array())))

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(COEF_NAMES, self.as_array().tolist()))


class BaseModel(ABC):
    """Abstract base class for all arrival-time prediction models.

    All models must implement:
    - fit(): Learn coefficients from trip records (may be a no-op)
    - coefficients: The CoefficientSet used for prediction
    """

    model_name: ModelName

    def __init__(self, config: EvaluationConfig):
        """Initialize model with configuration.

        Args:
            config: Shared evaluation settings
        """
        self.config = config
        self.is_fitted = False
        self.n_records = 0

    @abstractmethod
    def fit(self, records: pd.DataFrame) -> "BaseModel":
        """Learn the model from trip records.

        Args:
            records: DataFrame with hist_cum, rece_cum, sche_cum, t_measured columns

        Returns:
            self (for method chaining)
        """
        pass

    @property
    @abstractmethod
    def coefficients(self) -> CoefficientSet:
        """Coefficients applied to the three cumulative predictors."""
        pass

    def predict(self, records: pd.DataFrame) -> np.ndarray:
        """Predict travel time (seconds) as the weighted sum of the predictors."""
        if not self.is_fitted:
            raise ValueError("Model must be fitted before prediction")
        design = records[list(PREDICTORS)].to_numpy(dtype=float)
        return design @ self.coefficients.as_array()

    def get_name(self) -> str:
        """Return the model name."""
        return self.model_name.value

    def get_params(self) -> Dict[str, Any]:
        """Return model parameters for logging."""
        return {"name": self.get_name(), "n_records": self.n_records, **self.coefficients.to_dict()}
