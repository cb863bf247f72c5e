"""
SSA TS package

Seasonal time-series forecasting via Singular Spectrum Analysis: series
buffering, spectral decomposition, recurrent forecasting with confidence
bands, and accuracy evaluation.
"""

from .series_buffer import Observation, SeriesBuffer  # noqa: F401
from .decomposition import EigenBasis, SpectralDecomposer  # noqa: F401
from .model import ForecastModel, ForecastResult, ModelState, SSAForecastConfig  # noqa: F401
from .metrics import EvaluationReport, evaluate  # noqa: F401
from .exceptions import (  # noqa: F401
    CheckpointError,
    ConfigError,
    DataError,
    ForecastError,
    InsufficientDataError,
    LengthMismatchError,
    NotFittedError,
    NumericalError,
)

__all__ = [
    "Observation",
    "SeriesBuffer",
    "EigenBasis",
    "SpectralDecomposer",
    "ForecastModel",
    "ForecastResult",
    "ModelState",
    "SSAForecastConfig",
    "EvaluationReport",
    "evaluate",
    "ForecastError",
    "DataError",
    "ConfigError",
    "InsufficientDataError",
    "NumericalError",
    "LengthMismatchError",
    "NotFittedError",
    "CheckpointError",
]
