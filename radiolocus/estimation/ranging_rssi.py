"""Robust estimation from readings carrying both a distance and an RSSI value."""

import numpy as np

from radiolocus.estimation.ranging import RobustRangingEstimator
from radiolocus.estimation.rssi import RobustRssiEstimator
from radiolocus.models import Hypothesis, Reading
from radiolocus.solvers.rssi import RangingRssiSolver, RssiSolver, solve_power_and_exponent


class RobustRangingAndRssiEstimator(RobustRangingEstimator, RobustRssiEstimator):
    """
    Locate a radio source and its path-loss parameters from distance and RSSI.

    Hypotheses come from lateration of the distances, followed by a linear
    fit of the transmitted power and/or path-loss exponent at that position.
    The residual of a reading is the largest of its ranging and RSSI
    residuals, and refinement fits both measurement kinds jointly.
    """

    def _min_readings_for(self, dims: int) -> int:
        return dims + max(1, self._rssi_parameters())

    def _check_reading(self, reading: Reading):
        RobustRangingEstimator._check_reading(self, reading)
        RobustRssiEstimator._check_reading(self, reading)

    def _solve_subset(self, subset: np.ndarray) -> Hypothesis:
        position = RobustRangingEstimator._solve_subset(self, subset).position
        initial_power = self._initial_transmitted_power_dbm
        power, exponent = solve_power_and_exponent(
            position, self._positions[subset], self._rssi[subset], self._k_db[subset],
            self._rssi_stds[subset],
            initial_power if initial_power is not None else 0.0,
            self._initial_path_loss_exponent,
            estimate_power=self._transmitted_power_estimation_enabled,
            estimate_exponent=self._path_loss_estimation_enabled)
        return Hypothesis(position, power, exponent)

    def _residuals(self, hypothesis: Hypothesis) -> np.ndarray:
        return np.maximum(self._ranging_residuals(hypothesis.position),
                          self._rssi_residuals(hypothesis))

    def _refine(self, hypothesis: Hypothesis, inliers: np.ndarray):
        position_stds = self._position_stds[inliers]
        position_stds_db = self._position_stds_db(hypothesis.position,
                                                  hypothesis.path_loss_exponent)[inliers]
        sigma_distance = np.sqrt(self._distance_stds[inliers] ** 2 + position_stds ** 2)
        sigma_rssi = np.sqrt(self._rssi_stds[inliers] ** 2 + position_stds_db ** 2)

        position, power, exponent, fit = RangingRssiSolver(self._fitter).solve(
            self._positions[inliers], self._distances[inliers], sigma_distance,
            self._rssi[inliers], self._k_db[inliers], sigma_rssi,
            hypothesis.position, hypothesis.transmitted_power_dbm,
            initial_exponent=hypothesis.path_loss_exponent,
            estimate_power=self._transmitted_power_estimation_enabled,
            estimate_exponent=self._path_loss_estimation_enabled,
            with_covariance=self._keep_covariance)
        names = RssiSolver.parameter_names(self.dims, True,
                                           self._transmitted_power_estimation_enabled,
                                           self._path_loss_estimation_enabled)
        return Hypothesis(position, power, exponent), fit, names
