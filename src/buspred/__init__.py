"""Bus arrival-time model evaluation package.

This package fits and compares bus travel-time prediction models
bin by bin over predicted travel time.

Modules:
    models: Original (fixed weights), Optimized and Normalized models
    evaluation: Binning, metrics, per-bin reports and summary table
    utils: Trip record loading and helper functions
"""

from buspred.config import EvaluationConfig, ModelName
from buspred.errors import (
    BusPredError,
    DegenerateFitError,
    EmptyInputError,
    ZeroSumCoefficientError,
    ZeroVarianceError,
)
from buspred.evaluation import (
    BinnedEvaluation,
    BinReport,
    assemble_summary,
    run_binned_evaluation,
)
from buspred.models import (
    BaseModel,
    CoefficientSet,
    NormalizedModel,
    OptimizedModel,
    OriginalModel,
    get_model,
)
from buspred.utils import (
    TripRecordSource,
    load_config,
    load_trip_records,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "EvaluationConfig",
    "ModelName",
    # Errors
    "BusPredError",
    "DegenerateFitError",
    "EmptyInputError",
    "ZeroSumCoefficientError",
    "ZeroVarianceError",
    # Models
    "BaseModel",
    "CoefficientSet",
    "OriginalModel",
    "OptimizedModel",
    "NormalizedModel",
    "get_model",
    # Evaluation
    "BinnedEvaluation",
    "BinReport",
    "assemble_summary",
    "run_binned_evaluation",
    # Utils
    "TripRecordSource",
    "load_config",
    "load_trip_records",
]
