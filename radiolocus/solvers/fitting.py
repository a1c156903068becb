"""Weighted non-linear least squares using Levenberg-Marquardt."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.optimize import least_squares

from radiolocus.exceptions import SolverError


logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    """Parameters found by a fit and their propagated covariance."""
    params: np.ndarray
    covariance: Optional[np.ndarray]
    chi_sq: float
    dof: int


class WeightedLeastSquaresFitter:
    """
    Fit parameters to whitened residuals.

    Residual and Jacobian callables must already be divided by the standard
    deviation of each measurement, so that the covariance of the fitted
    parameters is (J^T J)^-1.
    """

    def __init__(self, max_evaluations: int = 1000, tolerance: float = 1e-12):
        self.max_evaluations = max_evaluations
        self.tolerance = tolerance

    def fit(self, residuals: Callable[[np.ndarray], np.ndarray],
            jacobian: Callable[[np.ndarray], np.ndarray],
            initial: np.ndarray, with_covariance: bool = True) -> FitResult:
        """
        Run the fit.

        Args:
            residuals: Whitened residual vector as a function of parameters
            jacobian: Jacobian of the whitened residuals
            initial: Starting parameters
            with_covariance: Whether to propagate the parameter covariance

        Returns:
            FitResult

        Raises:
            SolverError: If the system is under-determined, the fit diverges
                or the covariance is not positive definite
        """
        initial = np.asarray(initial, dtype=float)
        n_residuals = residuals(initial).size
        if n_residuals < initial.size:
            raise SolverError("Not enough measurements to fit parameters")

        try:
            result = least_squares(residuals, initial, jac=jacobian, method='lm',
                                   ftol=self.tolerance, xtol=self.tolerance,
                                   gtol=self.tolerance, max_nfev=self.max_evaluations)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise SolverError(f"Least squares fit failed: {e}") from e

        if not np.all(np.isfinite(result.x)) or not np.isfinite(result.cost):
            raise SolverError("Least squares fit diverged")
        if result.status == 0:
            logger.debug("Fit stopped after %d evaluations", result.nfev)

        chi_sq = float(2.0 * result.cost)
        dof = n_residuals - initial.size
        covariance = None
        if with_covariance:
            covariance = self.propagate_covariance(result.jac, chi_sq, dof)
        return FitResult(params=result.x, covariance=covariance, chi_sq=chi_sq, dof=dof)

    @staticmethod
    def propagate_covariance(jac: np.ndarray, chi_sq: float, dof: int) -> np.ndarray:
        """
        Covariance of the fitted parameters.

        Input standard deviations are already folded in the whitened
        Jacobian; the result is inflated by the reduced chi-square when the
        residuals are larger than the input noise model explains.
        """
        jac = np.asarray(jac, dtype=float)
        try:
            covariance = np.linalg.inv(jac.T @ jac)
        except np.linalg.LinAlgError as e:
            raise SolverError("Singular normal equations") from e

        if dof > 0:
            covariance *= max(1.0, chi_sq / dof)
        covariance = 0.5 * (covariance + covariance.T)
        try:
            np.linalg.cholesky(covariance)
        except np.linalg.LinAlgError as e:
            raise SolverError("Covariance is not positive definite") from e
        return covariance
