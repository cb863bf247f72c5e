"""
Stateful SSA forecaster with confidence intervals.

Lifecycle: UNFIT -> fit() -> FITTED -> checkpoint() -> CHECKPOINTED.
``update`` keeps the model FITTED (an update after a checkpoint means the
live state no longer matches the snapshot). ``restore`` always yields a
FITTED model. Instances are not re-entrant; callers serialise access.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np
from scipy import stats

from .decomposition import EigenBasis, SpectralDecomposer, one_step_errors
from .exceptions import (
    CheckpointError,
    ConfigError,
    DataError,
    InsufficientDataError,
    NotFittedError,
)
from .series_buffer import Observation, SeriesBuffer

logger = logging.getLogger(__name__)

CHECKPOINT_FORMAT = "ssa-forecast-checkpoint"
CHECKPOINT_VERSION = 1
EPSILON = 1e-12


@dataclass
class SSAForecastConfig:
    window_size: int = 7
    series_length: int = 30
    train_size: int = 365
    horizon: int = 7
    confidence_level: float = 0.95
    rank: Optional[int] = None
    energy_threshold: float = 0.99
    # CUSUM decision interval (in residual standard deviations) that forces a
    # full re-decomposition during update(); 0 re-decomposes on every update.
    drift_threshold: float = 5.0
    drift_allowance: float = 0.5
    rank_tolerance: float = 1e-10

    def validate(self) -> "SSAForecastConfig":
        if self.window_size < 2:
            raise ConfigError(f"window_size must be >= 2 (received {self.window_size})")
        if self.window_size >= self.series_length:
            raise ConfigError(
                f"window_size ({self.window_size}) must be smaller than "
                f"series_length ({self.series_length})"
            )
        if self.train_size < self.series_length:
            raise ConfigError(
                f"train_size ({self.train_size}) must be >= series_length "
                f"({self.series_length})"
            )
        if self.horizon < 1:
            raise ConfigError(f"horizon must be >= 1 (received {self.horizon})")
        if not 0.0 < self.confidence_level < 1.0:
            raise ConfigError(
                f"confidence_level must lie in (0, 1) (received {self.confidence_level})"
            )
        if self.rank is not None and not 1 <= self.rank < self.window_size:
            raise ConfigError(
                f"rank must lie in [1, {self.window_size - 1}] (received {self.rank})"
            )
        if not 0.0 < self.energy_threshold <= 1.0:
            raise ConfigError(
                f"energy_threshold must lie in (0, 1] (received {self.energy_threshold})"
            )
        if self.drift_threshold < 0 or self.drift_allowance < 0:
            raise ConfigError("drift_threshold and drift_allowance must be non-negative")
        return self

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "SSAForecastConfig":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in (raw or {}).items() if k in known}
        return cls(**kwargs)


class ModelState(str, Enum):
    UNFIT = "unfit"
    FITTED = "fitted"
    CHECKPOINTED = "checkpointed"


@dataclass(frozen=True, eq=False)
class ForecastResult:
    point_forecast: np.ndarray
    lower_bound: np.ndarray
    upper_bound: np.ndarray
    confidence_level: float

    def __post_init__(self) -> None:
        for name in ("point_forecast", "lower_bound", "upper_bound"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @property
    def horizon(self) -> int:
        return int(self.point_forecast.shape[0])

    @property
    def interval_width(self) -> np.ndarray:
        return self.upper_bound - self.lower_bound


def z_value(confidence_level: float) -> float:
    """Two-sided standard normal quantile, e.g. 1.959964 for 0.95."""
    return float(stats.norm.ppf(0.5 + confidence_level / 2.0))


class _FittedState:
    """Mutable internals owned exclusively by a ForecastModel."""

    __slots__ = (
        "basis",
        "coefficients",
        "window",
        "error_count",
        "error_mean",
        "error_m2",
        "cusum_pos",
        "cusum_neg",
        "last_timestamp",
        "untimed_updates",
        "redecompositions",
    )

    def __init__(
        self,
        basis: EigenBasis,
        coefficients: np.ndarray,
        window: np.ndarray,
        errors: np.ndarray,
        last_timestamp: Optional[date],
    ) -> None:
        self.basis = basis
        self.coefficients = coefficients
        self.window = window
        self.error_count = int(errors.shape[0])
        self.error_mean = float(errors.mean()) if errors.size else 0.0
        self.error_m2 = float(np.sum((errors - self.error_mean) ** 2)) if errors.size else 0.0
        self.cusum_pos = 0.0
        self.cusum_neg = 0.0
        self.last_timestamp = last_timestamp
        self.untimed_updates = 0
        self.redecompositions = 0

    @property
    def residual_variance(self) -> float:
        if self.error_count < 2:
            return 0.0
        return self.error_m2 / (self.error_count - 1)


class ForecastModel:
    """
    SSA forecaster producing point forecasts and normal confidence bands.

    Decomposition runs over the most recent ``series_length`` training
    points; the residual variance is estimated from one-step-ahead errors
    over the most recent ``train_size`` points.
    """

    def __init__(
        self,
        config: Optional[SSAForecastConfig] = None,
        decomposer: Optional[SpectralDecomposer] = None,
    ) -> None:
        self.config = (config or SSAForecastConfig()).validate()
        self._decomposer = decomposer or SpectralDecomposer(self.config.rank_tolerance)
        self._state: Optional[_FittedState] = None
        self._lifecycle = ModelState.UNFIT

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> ModelState:
        return self._lifecycle

    @property
    def coefficients(self) -> np.ndarray:
        return self._require_state().coefficients.copy()

    @property
    def residual_variance(self) -> float:
        return self._require_state().residual_variance

    @property
    def retained_window(self) -> np.ndarray:
        return self._require_state().window.copy()

    @property
    def redecompositions(self) -> int:
        return self._require_state().redecompositions

    def _require_state(self) -> _FittedState:
        if self._state is None or self._lifecycle is ModelState.UNFIT:
            raise NotFittedError("fit() or restore() must be called first")
        return self._state

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _decompose(self, window: np.ndarray) -> tuple[EigenBasis, np.ndarray]:
        basis = self._decomposer.fit_basis(
            window,
            self.config.window_size,
            rank=self.config.rank,
            energy_threshold=self.config.energy_threshold,
        )
        coefficients = self._decomposer.recurrence_coefficients(basis)
        return basis, coefficients

    def _next_value(self, history: np.ndarray, coefficients: np.ndarray) -> float:
        lags = coefficients.shape[0]
        return float(history[-lags:] @ coefficients)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fit(self, training: SeriesBuffer) -> "ForecastModel":
        cfg = self.config
        values = np.fromiter(training.values(), dtype=float, count=len(training))
        if values.shape[0] < cfg.series_length:
            raise InsufficientDataError(
                f"Training data has {values.shape[0]} points; series_length "
                f"requires at least {cfg.series_length}"
            )

        window = values[-cfg.series_length :].copy()
        basis, coefficients = self._decompose(window)

        train_span = values[-min(cfg.train_size, values.shape[0]) :]
        errors = one_step_errors(train_span, coefficients)

        self._state = _FittedState(
            basis=basis,
            coefficients=coefficients,
            window=window,
            errors=errors,
            last_timestamp=training.last_timestamp,
        )
        self._lifecycle = ModelState.FITTED

        logger.info(
            "SSA fit complete (window=%s, rank=%s, energy=%.3f, residual_var=%.4f, train_points=%s)",
            cfg.window_size,
            basis.rank,
            basis.explained_energy_ratio,
            self._state.residual_variance,
            train_span.shape[0],
        )
        return self

    def update(self, observation: Union[Observation, float]) -> "ForecastModel":
        state = self._require_state()
        cfg = self.config

        if isinstance(observation, Observation):
            if state.last_timestamp is not None and not observation.timestamp > state.last_timestamp:
                raise DataError(
                    f"Observation at {observation.timestamp} is not after "
                    f"{state.last_timestamp}"
                )
            if state.untimed_updates:
                logger.warning(
                    "Observation at %s re-anchors the timeline after %s untimed updates "
                    "(last known timestamp %s)",
                    observation.timestamp,
                    state.untimed_updates,
                    state.last_timestamp,
                )
            value = float(observation.value)
            timestamp: Optional[date] = observation.timestamp
            untimed = 0
        else:
            # The last known timestamp stays as the ordering floor.
            value = float(observation)
            timestamp = state.last_timestamp
            untimed = state.untimed_updates + 1
        if not np.isfinite(value):
            raise DataError(f"Observed value must be finite (received {value})")

        error = value - self._next_value(state.window, state.coefficients)
        sigma = max(float(np.sqrt(state.residual_variance)), EPSILON)
        z = error / sigma
        cusum_pos = max(0.0, state.cusum_pos + z - cfg.drift_allowance)
        cusum_neg = min(0.0, state.cusum_neg + z + cfg.drift_allowance)
        window = np.append(state.window, value)[-cfg.series_length :]

        drifted = cusum_pos > cfg.drift_threshold or -cusum_neg > cfg.drift_threshold
        if drifted or cfg.drift_threshold == 0:
            # Computed before any mutation so a NumericalError leaves the model intact.
            basis, coefficients = self._decompose(window)
            fresh = _FittedState(
                basis=basis,
                coefficients=coefficients,
                window=window,
                errors=one_step_errors(window, coefficients),
                last_timestamp=timestamp,
            )
            fresh.untimed_updates = untimed
            fresh.redecompositions = state.redecompositions + 1
            self._state = fresh
            logger.info(
                "SSA drift re-decomposition #%s (cusum_pos=%.3f, cusum_neg=%.3f, rank=%s)",
                fresh.redecompositions,
                cusum_pos,
                cusum_neg,
                basis.rank,
            )
        else:
            state.error_count += 1
            delta = error - state.error_mean
            state.error_mean += delta / state.error_count
            state.error_m2 += delta * (error - state.error_mean)
            state.cusum_pos = cusum_pos
            state.cusum_neg = cusum_neg
            state.window = window
            state.last_timestamp = timestamp
            state.untimed_updates = untimed
            logger.debug("SSA update (error=%.4f, z=%.3f)", error, z)

        self._lifecycle = ModelState.FITTED
        return self

    def predict(self, horizon: Optional[int] = None) -> ForecastResult:
        state = self._require_state()
        steps = self.config.horizon if horizon is None else int(horizon)
        if steps < 1:
            raise ConfigError(f"horizon must be >= 1 (received {steps})")

        history = state.window.copy()
        forecasts = np.empty(steps)
        for k in range(steps):
            forecasts[k] = self._next_value(history, state.coefficients)
            history = np.append(history[1:], forecasts[k])

        step_index = np.arange(1, steps + 1, dtype=float)
        half_width = z_value(self.config.confidence_level) * np.sqrt(
            step_index * state.residual_variance
        )
        return ForecastResult(
            point_forecast=forecasts,
            lower_bound=forecasts - half_width,
            upper_bound=forecasts + half_width,
            confidence_level=self.config.confidence_level,
        )

    def copy(self) -> "ForecastModel":
        return copy.deepcopy(self)

    def summary(self) -> Dict[str, Any]:
        if self._state is None:
            return {"state": self._lifecycle.value}
        state = self._state
        return {
            "state": self._lifecycle.value,
            "window_size": self.config.window_size,
            "series_length": self.config.series_length,
            "rank": state.basis.rank,
            "explained_energy_ratio": state.basis.explained_energy_ratio,
            "residual_variance": state.residual_variance,
            "retained_length": int(state.window.shape[0]),
            "redecompositions": state.redecompositions,
            # Unknown once values arrive without timestamps.
            "last_timestamp": (
                state.last_timestamp.isoformat()
                if state.last_timestamp and not state.untimed_updates
                else None
            ),
            "untimed_updates": state.untimed_updates,
        }

    # ------------------------------------------------------------------
    # Checkpointing
    # ------------------------------------------------------------------
    def checkpoint(self) -> bytes:
        state = self._require_state()
        payload = {
            "config": asdict(self.config),
            "state": {
                "eigenvalues": state.basis.eigenvalues.tolist(),
                "eigenvectors": state.basis.eigenvectors.tolist(),
                "total_energy": state.basis.total_energy,
                "coefficients": state.coefficients.tolist(),
                "window": state.window.tolist(),
                "error_count": state.error_count,
                "error_mean": state.error_mean,
                "error_m2": state.error_m2,
                "cusum_pos": state.cusum_pos,
                "cusum_neg": state.cusum_neg,
                "last_timestamp": state.last_timestamp.isoformat() if state.last_timestamp else None,
                "untimed_updates": state.untimed_updates,
                "redecompositions": state.redecompositions,
            },
        }
        body = json.dumps(payload, sort_keys=True)
        envelope = {
            "format": CHECKPOINT_FORMAT,
            "version": CHECKPOINT_VERSION,
            "sha256": hashlib.sha256(body.encode("utf-8")).hexdigest(),
            "payload": payload,
        }
        self._lifecycle = ModelState.CHECKPOINTED
        return json.dumps(envelope, sort_keys=True).encode("utf-8")

    @classmethod
    def restore(cls, blob: bytes) -> "ForecastModel":
        try:
            envelope = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, AttributeError) as exc:
            raise CheckpointError(f"Checkpoint blob is not valid JSON: {exc}") from exc

        if not isinstance(envelope, dict) or envelope.get("format") != CHECKPOINT_FORMAT:
            raise CheckpointError("Unrecognised checkpoint format")
        if envelope.get("version") != CHECKPOINT_VERSION:
            raise CheckpointError(f"Unsupported checkpoint version {envelope.get('version')!r}")

        payload = envelope.get("payload")
        body = json.dumps(payload, sort_keys=True)
        if hashlib.sha256(body.encode("utf-8")).hexdigest() != envelope.get("sha256"):
            raise CheckpointError("Checkpoint digest mismatch")

        if not isinstance(payload, dict):
            raise CheckpointError("Checkpoint payload is missing")
        try:
            config = SSAForecastConfig.from_dict(payload.get("config"))
            model = cls(config)
        except (ConfigError, TypeError) as exc:
            raise CheckpointError(f"Checkpoint config is invalid: {exc}") from exc
        try:
            raw = payload["state"]
            basis = EigenBasis(
                eigenvalues=np.asarray(raw["eigenvalues"], dtype=float),
                eigenvectors=np.asarray(raw["eigenvectors"], dtype=float).reshape(
                    config.window_size, -1
                ),
                total_energy=float(raw["total_energy"]),
            )
            last_timestamp = (
                date.fromisoformat(raw["last_timestamp"]) if raw["last_timestamp"] else None
            )
            state = _FittedState(
                basis=basis,
                coefficients=np.asarray(raw["coefficients"], dtype=float),
                window=np.asarray(raw["window"], dtype=float),
                errors=np.empty(0),
                last_timestamp=last_timestamp,
            )
            state.error_count = int(raw["error_count"])
            state.error_mean = float(raw["error_mean"])
            state.error_m2 = float(raw["error_m2"])
            state.cusum_pos = float(raw["cusum_pos"])
            state.cusum_neg = float(raw["cusum_neg"])
            state.redecompositions = int(raw["redecompositions"])
            state.untimed_updates = int(raw.get("untimed_updates", 0))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise CheckpointError(f"Checkpoint payload is incomplete: {exc}") from exc

        _check_restored_state(config, state)
        model._state = state
        model._lifecycle = ModelState.FITTED
        logger.info(
            "SSA model restored (rank=%s, retained=%s)", basis.rank, state.window.shape[0]
        )
        return model


def _check_restored_state(config: SSAForecastConfig, state: _FittedState) -> None:
    """Reject payloads whose arrays do not fit the config they were saved with."""
    basis = state.basis
    if basis.eigenvalues.ndim != 1 or not 1 <= basis.rank < config.window_size:
        raise CheckpointError(
            f"Checkpoint rank {basis.eigenvalues.shape} does not fit "
            f"window_size {config.window_size}"
        )
    if basis.eigenvectors.shape != (config.window_size, basis.rank):
        raise CheckpointError(
            f"Checkpoint eigenvectors have shape {basis.eigenvectors.shape}, "
            f"expected {(config.window_size, basis.rank)}"
        )
    if state.coefficients.shape != (config.window_size - 1,):
        raise CheckpointError(
            f"Checkpoint coefficients have shape {state.coefficients.shape}, "
            f"expected {(config.window_size - 1,)}"
        )
    if state.window.shape != (config.series_length,):
        raise CheckpointError(
            f"Checkpoint window has shape {state.window.shape}, "
            f"expected {(config.series_length,)}"
        )
    if state.error_count < 0 or state.error_m2 < 0 or state.untimed_updates < 0:
        raise CheckpointError("Checkpoint accumulators are negative")

    arrays = (basis.eigenvalues, basis.eigenvectors, state.coefficients, state.window)
    scalars = (
        basis.total_energy,
        state.error_mean,
        state.error_m2,
        state.cusum_pos,
        state.cusum_neg,
    )
    if not all(np.all(np.isfinite(a)) for a in arrays) or not np.all(np.isfinite(scalars)):
        raise CheckpointError("Checkpoint contains non-finite values")


__all__ = [
    "SSAForecastConfig",
    "ModelState",
    "ForecastResult",
    "ForecastModel",
    "z_value",
]
