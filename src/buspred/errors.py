"""Exceptions raised by the evaluation pipeline."""


class BusPredError(Exception):
    """Base class for all pipeline errors."""


class EmptyInputError(BusPredError, ValueError):
    """The record source returned no usable rows."""


class DegenerateFitError(BusPredError, ValueError):
    """Too few or collinear observations for a least-squares fit."""


class ZeroVarianceError(BusPredError, ValueError):
    """Correlation is undefined because a series is constant."""


class ZeroSumCoefficientError(BusPredError, ValueError):
    """Coefficients cannot be normalized because they sum to zero."""
