"""Solvers for the log-distance RSSI path-loss model."""

import math
from typing import List, Optional, Tuple

import numpy as np

from radiolocus.exceptions import SolverError
from radiolocus.solvers.fitting import FitResult, WeightedLeastSquaresFitter
from radiolocus.utils.radio import MIN_SQR_DISTANCE, expected_rssi


def _sqr_distances(position: np.ndarray, positions: np.ndarray) -> np.ndarray:
    return np.maximum(np.sum((positions - position) ** 2, axis=1), MIN_SQR_DISTANCE)


def initial_transmitted_power(position: np.ndarray, positions: np.ndarray,
                              rssi: np.ndarray, k_db: np.ndarray,
                              path_loss_exponent: float) -> float:
    """Transmitted power (dBm) that best explains the RSSI values at a known position."""
    sqr_distances = _sqr_distances(position, positions)
    return float(np.mean(rssi - path_loss_exponent * k_db
                         + 5.0 * path_loss_exponent * np.log10(sqr_distances)))


def solve_power_and_exponent(position: np.ndarray, positions: np.ndarray,
                             rssi: np.ndarray, k_db: np.ndarray,
                             standard_deviations: np.ndarray,
                             transmitted_power_dbm: float, path_loss_exponent: float,
                             estimate_power: bool = True,
                             estimate_exponent: bool = False) -> Tuple[float, float]:
    """
    Linear weighted fit of rssi_i = P + n * (k_i - 5*log10(d_i^2)).

    Parameters not being estimated keep the given values.
    """
    a = k_db - 5.0 * np.log10(_sqr_distances(position, positions))
    w = 1.0 / np.asarray(standard_deviations, dtype=float)

    if estimate_power and estimate_exponent:
        design = np.column_stack([np.ones_like(a), a]) * w[:, np.newaxis]
        solution, _, rank, s = np.linalg.lstsq(design, rssi * w, rcond=None)
        if rank < 2 or s[-1] <= 1e-10 * s[0]:
            raise SolverError("Path loss exponent is not observable from these readings")
        return float(solution[0]), float(solution[1])

    if estimate_power:
        weights = w ** 2
        power = np.sum(weights * (rssi - path_loss_exponent * a)) / np.sum(weights)
        return float(power), path_loss_exponent

    if estimate_exponent:
        weights = w ** 2
        denominator = np.sum(weights * a ** 2)
        if denominator <= 0.0:
            raise SolverError("Path loss exponent is not observable from these readings")
        exponent = np.sum(weights * a * (rssi - transmitted_power_dbm)) / denominator
        return transmitted_power_dbm, float(exponent)

    return transmitted_power_dbm, path_loss_exponent


def rssi_jacobian(position: np.ndarray, positions: np.ndarray, k_db: np.ndarray,
                  path_loss_exponent: float, estimate_position: bool = True,
                  estimate_power: bool = True,
                  estimate_exponent: bool = False) -> np.ndarray:
    """Derivatives of the expected RSSI with respect to the enabled parameters."""
    diff = position - positions
    sqr_distances = _sqr_distances(position, positions)
    columns = []
    if estimate_position:
        columns.append(-10.0 * path_loss_exponent * diff
                       / (math.log(10.0) * sqr_distances)[:, np.newaxis])
    if estimate_power:
        columns.append(np.ones((positions.shape[0], 1)))
    if estimate_exponent:
        columns.append((k_db - 5.0 * np.log10(sqr_distances))[:, np.newaxis])
    return np.hstack(columns)


class RssiSolver:
    """Non-linear fit of position, transmitted power and path-loss exponent."""

    def __init__(self, fitter: Optional[WeightedLeastSquaresFitter] = None):
        self.fitter = fitter or WeightedLeastSquaresFitter()

    @staticmethod
    def parameter_names(dims: int, estimate_position: bool, estimate_power: bool,
                        estimate_exponent: bool) -> List[str]:
        names = [f"x{i}" for i in range(dims)] if estimate_position else []
        if estimate_power:
            names.append("transmitted_power_dbm")
        if estimate_exponent:
            names.append("path_loss_exponent")
        return names

    @staticmethod
    def _packing(dims: int, initial_position: np.ndarray, initial_power_dbm: float,
                 initial_exponent: float, estimate_position: bool,
                 estimate_power: bool, estimate_exponent: bool):
        """Initial parameter vector and the function splitting it back."""
        initial = []
        if estimate_position:
            initial.extend(initial_position)
        if estimate_power:
            initial.append(initial_power_dbm)
        if estimate_exponent:
            initial.append(initial_exponent)
        if not initial:
            raise SolverError("No parameter enabled for estimation")

        def unpack(params):
            i = 0
            position = initial_position
            if estimate_position:
                position = params[:dims]
                i = dims
            power = initial_power_dbm
            if estimate_power:
                power = params[i]
                i += 1
            exponent = initial_exponent
            if estimate_exponent:
                exponent = params[i]
            return position, power, exponent

        return np.array(initial, dtype=float), unpack

    def solve(self, positions: np.ndarray, rssi: np.ndarray, k_db: np.ndarray,
              standard_deviations: np.ndarray, initial_position: np.ndarray,
              initial_power_dbm: Optional[float] = None,
              initial_exponent: float = 2.0,
              estimate_position: bool = True, estimate_power: bool = True,
              estimate_exponent: bool = False,
              with_covariance: bool = True) -> Tuple[np.ndarray, float, float, FitResult]:
        """
        Fit the path-loss model to RSSI readings.

        Args:
            positions: (m, d) reading positions
            rssi: (m,) received power in dBm
            k_db: (m,) free-space constant of each reading
            standard_deviations: (m,) RSSI standard deviations in dB
            initial_position: Starting (or fixed) emitter position
            initial_power_dbm: Starting (or fixed) power; estimated in closed
                form when None
            initial_exponent: Starting (or fixed) path-loss exponent
            estimate_position: Whether the position is a free parameter
            estimate_power: Whether the transmitted power is a free parameter
            estimate_exponent: Whether the path-loss exponent is a free parameter
            with_covariance: Whether to propagate the parameter covariance

        Returns:
            Tuple of (position, power dBm, path-loss exponent, fit result)
        """
        positions = np.asarray(positions, dtype=float)
        rssi = np.asarray(rssi, dtype=float)
        sigma = np.asarray(standard_deviations, dtype=float)
        initial_position = np.asarray(initial_position, dtype=float)
        if initial_power_dbm is None:
            initial_power_dbm = initial_transmitted_power(
                initial_position, positions, rssi, k_db, initial_exponent)

        initial, unpack = self._packing(positions.shape[1], initial_position,
                                        initial_power_dbm, initial_exponent,
                                        estimate_position, estimate_power,
                                        estimate_exponent)

        def residuals(params):
            position, power, exponent = unpack(params)
            sqr_distances = _sqr_distances(position, positions)
            return (expected_rssi(sqr_distances, k_db, power, exponent) - rssi) / sigma

        def jacobian(params):
            position, _, exponent = unpack(params)
            return rssi_jacobian(position, positions, k_db, exponent, estimate_position,
                                 estimate_power, estimate_exponent) / sigma[:, np.newaxis]

        result = self.fitter.fit(residuals, jacobian, initial, with_covariance)
        position, power, exponent = unpack(result.params)
        return np.array(position, dtype=float), float(power), float(exponent), result


class RangingRssiSolver(RssiSolver):
    """Joint fit of distances and RSSI values sharing the emitter position."""

    def solve(self, positions: np.ndarray, distances: np.ndarray,
              distance_standard_deviations: np.ndarray, rssi: np.ndarray,
              k_db: np.ndarray, rssi_standard_deviations: np.ndarray,
              initial_position: np.ndarray, initial_power_dbm: float,
              initial_exponent: float = 2.0, estimate_power: bool = True,
              estimate_exponent: bool = False,
              with_covariance: bool = True) -> Tuple[np.ndarray, float, float, FitResult]:
        """
        Fit position, power and path-loss exponent to both measurement kinds.

        Ranging residuals (|x - p_i| - d_i) / sigma_d and RSSI residuals
        (expected_i - rssi_i) / sigma_rssi are stacked into one system.
        """
        positions = np.asarray(positions, dtype=float)
        distances = np.asarray(distances, dtype=float)
        rssi = np.asarray(rssi, dtype=float)
        sigma_d = np.asarray(distance_standard_deviations, dtype=float)
        sigma_rssi = np.asarray(rssi_standard_deviations, dtype=float)
        dims = positions.shape[1]
        initial_position = np.asarray(initial_position, dtype=float)

        initial, unpack = self._packing(dims, initial_position, initial_power_dbm,
                                        initial_exponent, True, estimate_power,
                                        estimate_exponent)

        def residuals(params):
            position, power, exponent = unpack(params)
            ranging = (np.linalg.norm(position - positions, axis=1) - distances) / sigma_d
            sqr_distances = _sqr_distances(position, positions)
            power_residuals = (expected_rssi(sqr_distances, k_db, power, exponent)
                               - rssi) / sigma_rssi
            return np.concatenate([ranging, power_residuals])

        def jacobian(params):
            position, _, exponent = unpack(params)
            diff = position - positions
            norms = np.maximum(np.linalg.norm(diff, axis=1), 1e-12)
            ranging = np.zeros((positions.shape[0], initial.size))
            ranging[:, :dims] = diff / (norms * sigma_d)[:, np.newaxis]
            power_rows = rssi_jacobian(position, positions, k_db, exponent, True,
                                       estimate_power, estimate_exponent)
            return np.vstack([ranging, power_rows / sigma_rssi[:, np.newaxis]])

        result = self.fitter.fit(residuals, jacobian, initial, with_covariance)
        position, power, exponent = unpack(result.params)
        return np.array(position, dtype=float), float(power), float(exponent), result
