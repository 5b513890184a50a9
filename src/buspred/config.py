"""Shared evaluation settings.

Every component that needs cutoffs, coefficient names or model names takes an
:class:`EvaluationConfig`, so the fitting, binning and reporting stages always
agree on them.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ModelName(str, Enum):
    """The three compared prediction models, in report order."""

    ORIGINAL = "Original"
    OPTIMIZED = "Optimized"
    NORMALIZED = "Normalized"

    @classmethod
    def parse(cls, name) -> "ModelName":
        """Look up a model by enum member, value or case-insensitive name."""
        if isinstance(name, cls):
            return name
        for member in cls:
            if str(name).lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown model: {name}. Available: {[m.value for m in cls]}")


MODEL_ORDER = (ModelName.ORIGINAL, ModelName.OPTIMIZED, ModelName.NORMALIZED)

PREDICTORS = ("hist_cum", "rece_cum", "sche_cum")
TARGET = "t_measured"
BASELINE_PREDICTION = "t_predicted"

COEF_NAMES = ("Historical", "Recent", "Schedule")
METRIC_NAMES = ("R2 (Pearson)", "SD", "Mean", "Median")

DEFAULT_BIN_CUTOFFS = (0, 120, 240, 360, 600, 900, 1200, math.inf)
DEFAULT_RESIDUAL_CUTOFFS = (0, 60, 120, 240, 360, math.inf)
DEFAULT_ORIGINAL_COEF = (0.4, 0.4, 0.2)

# How a bin whose optimized fit fails is filled in
DEGENERATE_POLICIES = ("nan", "global")

# Which predicted time decides a record's evaluation bin
EVALUATION_BINNINGS = ("model", "fit")


def _as_cutoffs(values, name: str) -> tuple[float, ...]:
    cutoffs = tuple(math.inf if str(v).lower() in ("inf", ".inf") else float(v) for v in values)
    if len(cutoffs) < 2:
        raise ValueError(f"{name} needs at least two boundaries, got {list(cutoffs)}")
    if any(math.isnan(c) for c in cutoffs):
        raise ValueError(f"{name} must not contain NaN")
    if any(lo >= hi for lo, hi in zip(cutoffs, cutoffs[1:])):
        raise ValueError(f"{name} must be strictly increasing, got {list(cutoffs)}")
    return cutoffs


@dataclass(frozen=True)
class EvaluationConfig:
    """Cutoffs, fixed coefficients and execution settings for one run."""

    bin_cutoffs: tuple[float, ...] = DEFAULT_BIN_CUTOFFS
    residual_cutoffs: tuple[float, ...] = DEFAULT_RESIDUAL_CUTOFFS
    original_coef: tuple[float, float, float] = DEFAULT_ORIGINAL_COEF
    degenerate_policy: str = "nan"
    evaluation_binning: str = "model"
    n_workers: int | None = None
    fit_timeout_seconds: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "bin_cutoffs", _as_cutoffs(self.bin_cutoffs, "bin_cutoffs"))
        object.__setattr__(
            self, "residual_cutoffs", _as_cutoffs(self.residual_cutoffs, "residual_cutoffs")
        )
        if len(self.original_coef) != len(COEF_NAMES):
            raise ValueError(
                f"original_coef needs {len(COEF_NAMES)} values, got {list(self.original_coef)}"
            )
        object.__setattr__(self, "original_coef", tuple(float(c) for c in self.original_coef))
        if self.degenerate_policy not in DEGENERATE_POLICIES:
            raise ValueError(
                f"Unknown degenerate_policy: {self.degenerate_policy}. "
                f"Available: {list(DEGENERATE_POLICIES)}"
            )
        if self.evaluation_binning not in EVALUATION_BINNINGS:
            raise ValueError(
                f"Unknown evaluation_binning: {self.evaluation_binning}. "
                f"Available: {list(EVALUATION_BINNINGS)}"
            )
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError("n_workers must be positive")
        if self.fit_timeout_seconds is not None and self.fit_timeout_seconds <= 0:
            raise ValueError("fit_timeout_seconds must be positive")

    @property
    def n_bins(self) -> int:
        return len(self.bin_cutoffs) - 1

    @property
    def n_residual_buckets(self) -> int:
        return len(self.residual_cutoffs) - 1

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "EvaluationConfig":
        """Build settings from the ``evaluation`` section of a loaded config.

        Args:
            config: Full configuration dictionary (as read from config.yaml)

        Returns:
            EvaluationConfig with defaults for missing keys
        """
        section = (config or {}).get("evaluation", {}) or {}
        kwargs = {}
        for key in (
            "bin_cutoffs",
            "residual_cutoffs",
            "original_coef",
            "degenerate_policy",
            "evaluation_binning",
            "n_workers",
            "fit_timeout_seconds",
        ):
            if section.get(key) is not None:
                kwargs[key] = section[key]
        return cls(**kwargs)
