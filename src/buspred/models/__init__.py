"""Models for bus arrival-time prediction."""

from ..config import EvaluationConfig, ModelName
from .base import BaseModel, CoefficientSet
from .baseline import OriginalModel
from .linear import NormalizedModel, OptimizedModel, fit_no_intercept, normalize_coefficients

__all__ = [
    "BaseModel",
    "CoefficientSet",
    "OriginalModel",
    "OptimizedModel",
    "NormalizedModel",
    "fit_no_intercept",
    "normalize_coefficients",
    "get_model",
]


def get_model(name, config: EvaluationConfig) -> BaseModel:
    """Factory function to get model by name.

    Args:
        name: Model name ("original", "optimized", "normalized" or a ModelName)
        config: Shared evaluation settings

    Returns:
        Unfitted model instance

    Available models:
        - "original": Fixed 0.4/0.4/0.2 weighting (recorded t_predicted)
        - "optimized": No-intercept least-squares fit
        - "normalized": Optimized coefficients rescaled to sum to 1
    """
    models = {
        ModelName.ORIGINAL: OriginalModel,
        ModelName.OPTIMIZED: OptimizedModel,
        ModelName.NORMALIZED: NormalizedModel,
    }

    return models[ModelName.parse(name)](config)
