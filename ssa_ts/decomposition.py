"""
Singular Spectrum Analysis building blocks.

It performs:
  1. Embedding of a series into an L x K trajectory (Hankel) matrix.
  2. Eigen-decomposition of the lag-covariance matrix X X^T.
  3. Derivation of the linear recurrence formula (LRF) used to extrapolate
     the series one step at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .exceptions import ConfigError, NumericalError

logger = logging.getLogger(__name__)

# Verticality coefficients this close to 1 make the LRF numerically unusable.
VERTICALITY_EPSILON = 1e-9


@dataclass(frozen=True)
class EigenBasis:
    """Leading eigenpairs of a trajectory matrix, sorted by eigenvalue magnitude."""

    eigenvalues: np.ndarray  # (rank,)
    eigenvectors: np.ndarray  # (window_size, rank), columns are unit vectors
    total_energy: float

    @property
    def rank(self) -> int:
        return int(self.eigenvalues.shape[0])

    @property
    def window_size(self) -> int:
        return int(self.eigenvectors.shape[0])

    @property
    def explained_energy_ratio(self) -> float:
        if self.total_energy <= 0:
            return 0.0
        return float(np.sum(np.abs(self.eigenvalues)) / self.total_energy)


class SpectralDecomposer:
    """Stateless SSA decomposition helpers."""

    def __init__(self, rank_tolerance: float = 1e-10) -> None:
        self.rank_tolerance = float(rank_tolerance)

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------
    def embed(self, series: Sequence[float], window_size: int) -> np.ndarray:
        values = np.asarray(series, dtype=float)
        L = int(window_size)
        T = values.shape[0]
        if L < 2:
            raise ConfigError(f"window_size must be >= 2 (received {L})")
        if L >= T:
            raise ConfigError(
                f"window_size ({L}) must be smaller than the series length ({T})"
            )
        if not np.all(np.isfinite(values)):
            raise NumericalError("Series contains non-finite values")

        K = T - L + 1
        return np.column_stack([values[i : i + L] for i in range(K)])  # L x K

    # ------------------------------------------------------------------
    # Eigen-decomposition
    # ------------------------------------------------------------------
    def spectrum(self, matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Full eigen-spectrum of ``matrix @ matrix.T`` ordered by descending
        magnitude.

        Each eigenvector is indexed by the lag coordinate it loads on most
        heavily (first one on ties) and signed so that coordinate is
        positive. Eigenvalues equal within ``rank_tolerance`` of the peak are
        ordered by that index ascending, so degenerate eigenspaces come out
        in the same order whatever LAPACK returns.
        """
        trajectory = np.asarray(matrix, dtype=float)
        covariance = trajectory @ trajectory.T
        eigenvalues, eigenvectors = np.linalg.eigh(covariance)

        anchors = np.argmax(np.abs(eigenvectors), axis=0)
        signs = np.sign(eigenvectors[anchors, np.arange(eigenvectors.shape[1])])
        signs[signs == 0] = 1.0
        eigenvectors = eigenvectors * signs

        magnitudes = np.abs(eigenvalues)
        order = np.argsort(-magnitudes, kind="stable")
        tolerance = self.rank_tolerance * float(magnitudes.max()) if magnitudes.size else 0.0
        start = 0
        while start < order.size:
            stop = start + 1
            while stop < order.size and magnitudes[order[start]] - magnitudes[order[stop]] <= tolerance:
                stop += 1
            tied = order[start:stop]
            order[start:stop] = tied[np.argsort(anchors[tied], kind="stable")]
            start = stop
        return eigenvalues[order], eigenvectors[:, order]

    def _effective_rank(self, eigenvalues: np.ndarray) -> int:
        magnitudes = np.abs(eigenvalues)
        peak = float(magnitudes.max()) if magnitudes.size else 0.0
        if peak <= 0.0:
            return 0
        return int(np.sum(magnitudes > peak * self.rank_tolerance))

    def suggest_rank(self, matrix: np.ndarray, energy_threshold: float = 0.99) -> int:
        """
        Smallest number of leading components whose cumulative energy share
        reaches ``energy_threshold``, capped at ``window_size - 1``.
        """
        eigenvalues, _ = self.spectrum(matrix)
        magnitudes = np.abs(eigenvalues)
        total = float(magnitudes.sum())
        if total <= 0.0:
            raise NumericalError("Trajectory matrix has zero energy")

        cumulative = np.cumsum(magnitudes) / total
        rank = int(np.searchsorted(cumulative, energy_threshold)) + 1
        rank = min(rank, self._effective_rank(eigenvalues), matrix.shape[0] - 1)
        return max(1, rank)

    def decompose(self, matrix: np.ndarray, rank: int) -> EigenBasis:
        L = int(np.asarray(matrix).shape[0])
        if rank < 1 or rank > L:
            raise ConfigError(f"rank must be within [1, {L}] (received {rank})")

        eigenvalues, eigenvectors = self.spectrum(matrix)
        effective = self._effective_rank(eigenvalues)
        if effective < rank:
            raise NumericalError(
                f"Trajectory matrix is rank-deficient (effective rank {effective}, "
                f"requested {rank})"
            )

        basis = EigenBasis(
            eigenvalues=eigenvalues[:rank].copy(),
            eigenvectors=eigenvectors[:, :rank].copy(),
            total_energy=float(np.sum(np.abs(eigenvalues))),
        )
        logger.debug(
            "SSA decomposition (window=%s, rank=%s, energy=%.4f)",
            L,
            rank,
            basis.explained_energy_ratio,
        )
        return basis

    # ------------------------------------------------------------------
    # Linear recurrence
    # ------------------------------------------------------------------
    def recurrence_coefficients(self, basis: EigenBasis) -> np.ndarray:
        """
        LRF coefficients R (length L-1, oldest lag first) such that
        x_n = sum_j R_j * x_{n-L+j}.
        """
        vectors = basis.eigenvectors
        last_row = vectors[-1, :]
        verticality = float(np.sum(last_row ** 2))
        if verticality >= 1.0 - VERTICALITY_EPSILON:
            raise NumericalError(
                f"Verticality coefficient {verticality:.6f} too close to 1; "
                "reduce rank or increase window_size"
            )

        head = vectors[:-1, :]
        return (head @ last_row) / (1.0 - verticality)

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------
    def fit_basis(
        self,
        series: Sequence[float],
        window_size: int,
        rank: Optional[int] = None,
        energy_threshold: float = 0.99,
    ) -> EigenBasis:
        matrix = self.embed(series, window_size)
        if rank is None:
            rank = self.suggest_rank(matrix, energy_threshold)
        return self.decompose(matrix, rank)


def one_step_errors(values: Sequence[float], coefficients: np.ndarray) -> np.ndarray:
    """
    In-sample one-step-ahead errors of the recurrence: for every position
    with a full lag window, actual minus LRF prediction.
    """
    series = np.asarray(values, dtype=float)
    lags = coefficients.shape[0]
    if series.shape[0] <= lags:
        return np.empty(0)
    windows = np.lib.stride_tricks.sliding_window_view(series[:-1], lags)
    predictions = windows @ coefficients
    return series[lags:] - predictions
