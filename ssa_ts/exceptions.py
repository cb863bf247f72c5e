"""
Error taxonomy for the SSA forecasting core.

Every concrete error also derives from ``ValueError`` (or ``RuntimeError``
for lifecycle misuse) so callers written against the builtin exceptions keep
working.
"""

from __future__ import annotations


class ForecastError(Exception):
    """Base class for all forecasting core errors."""


class DataError(ForecastError, ValueError):
    """Malformed input: too few observations or non-increasing timestamps."""


class ConfigError(ForecastError, ValueError):
    """Invalid window/series/horizon relationships."""


class InsufficientDataError(ForecastError, ValueError):
    """Training data shorter than the retained series length."""


class NumericalError(ForecastError, ValueError):
    """
    Degenerate decomposition (rank-deficient trajectory or vertical
    recurrence). Usually recoverable by lowering ``rank`` or ``window_size``.
    """


class LengthMismatchError(ForecastError, ValueError):
    """Actual and forecast sequences differ in length or are empty."""


class NotFittedError(ForecastError, RuntimeError):
    """Model used before ``fit`` or ``restore``."""


class CheckpointError(DataError):
    """Checkpoint blob is malformed, from an unknown version, or corrupted."""


__all__ = [
    "ForecastError",
    "DataError",
    "ConfigError",
    "InsufficientDataError",
    "NumericalError",
    "LengthMismatchError",
    "NotFittedError",
    "CheckpointError",
]
