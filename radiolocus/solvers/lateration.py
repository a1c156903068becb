"""Lateration solvers: position from distances to known points."""

from typing import Optional

import numpy as np

from radiolocus.exceptions import SolverError
from radiolocus.solvers.fitting import FitResult, WeightedLeastSquaresFitter


# relative singular value below which a lateration system is rank deficient
RANK_TOLERANCE = 1e-10


def _normalize(positions: np.ndarray, distances: np.ndarray):
    """Center and scale positions so the linear systems are well conditioned."""
    center = positions.mean(axis=0)
    centered = positions - center
    scale = float(np.mean(np.linalg.norm(centered, axis=1)))
    if scale <= 0.0:
        raise SolverError("All readings are located at the same position")
    return centered / scale, distances / scale, center, scale


class LinearLaterationSolver:
    """
    Closed-form lateration.

    The homogeneous variant solves [-2q, 1, |q|^2 - d^2] . [y, |y|^2, 1] = 0
    for the null vector of the system; the inhomogeneous variant subtracts
    the first equation from the others to remove the quadratic term.
    """

    def __init__(self, homogeneous: bool = True):
        self.homogeneous = homogeneous

    def min_points(self, dims: int) -> int:
        return dims + 1

    def solve(self, positions: np.ndarray, distances: np.ndarray) -> np.ndarray:
        """
        Estimate the position of the emitter.

        Args:
            positions: (m, d) array of reading positions
            distances: (m,) array of measured distances

        Returns:
            Estimated (d,) position

        Raises:
            SolverError: If the geometry is degenerate
        """
        positions = np.asarray(positions, dtype=float)
        distances = np.asarray(distances, dtype=float)
        dims = positions.shape[1]
        if positions.shape[0] < self.min_points(dims):
            raise SolverError(f"At least {self.min_points(dims)} readings are required")

        q, d, center, scale = _normalize(positions, distances)
        if self.homogeneous:
            y = self._solve_homogeneous(q, d)
        else:
            y = self._solve_inhomogeneous(q, d)
        return center + scale * y

    @staticmethod
    def _solve_homogeneous(q: np.ndarray, d: np.ndarray) -> np.ndarray:
        dims = q.shape[1]
        a = np.hstack([-2.0 * q,
                       np.ones((q.shape[0], 1)),
                       (np.sum(q ** 2, axis=1) - d ** 2)[:, np.newaxis]])
        try:
            _, s, vt = np.linalg.svd(a)
        except np.linalg.LinAlgError as e:
            raise SolverError("Lateration SVD did not converge") from e

        if s[dims] <= RANK_TOLERANCE * s[0]:
            raise SolverError("Degenerate lateration geometry")
        h = vt[-1]
        if abs(h[-1]) <= RANK_TOLERANCE * np.linalg.norm(h):
            raise SolverError("Lateration solution at infinity")
        return h[:dims] / h[-1]

    @staticmethod
    def _solve_inhomogeneous(q: np.ndarray, d: np.ndarray) -> np.ndarray:
        dims = q.shape[1]
        sqr_norms = np.sum(q ** 2, axis=1)
        a = 2.0 * (q[1:] - q[0])
        b = sqr_norms[1:] - sqr_norms[0] - d[1:] ** 2 + d[0] ** 2
        y, _, rank, s = np.linalg.lstsq(a, b, rcond=None)
        if rank < dims or s[-1] <= RANK_TOLERANCE * s[0]:
            raise SolverError("Degenerate lateration geometry")
        return y


class NonLinearLaterationSolver:
    """Weighted non-linear lateration with covariance of the position."""

    def __init__(self, fitter: Optional[WeightedLeastSquaresFitter] = None):
        self.fitter = fitter or WeightedLeastSquaresFitter()

    def solve(self, positions: np.ndarray, distances: np.ndarray,
              standard_deviations: np.ndarray, initial_position: np.ndarray,
              with_covariance: bool = True) -> FitResult:
        """Minimize sum(((|x - p_i| - d_i) / sigma_i)^2) starting from initial_position."""
        positions = np.asarray(positions, dtype=float)
        distances = np.asarray(distances, dtype=float)
        sigma = np.asarray(standard_deviations, dtype=float)

        def residuals(x):
            return (np.linalg.norm(x - positions, axis=1) - distances) / sigma

        def jacobian(x):
            diff = x - positions
            norms = np.maximum(np.linalg.norm(diff, axis=1), 1e-12)
            return diff / (norms * sigma)[:, np.newaxis]

        return self.fitter.fit(residuals, jacobian, initial_position, with_covariance)
