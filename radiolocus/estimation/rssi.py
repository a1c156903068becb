"""Robust estimation of a radio source position and path-loss parameters from RSSI."""

import math
from typing import Optional, Sequence

import numpy as np

from radiolocus.config import DEFAULT_CONFIG
from radiolocus.estimation.base import (EstimatorListener, RobustRadioSourceEstimator,
                                        check_positive)
from radiolocus.models import Hypothesis, Reading, RobustMethod
from radiolocus.solvers.rssi import RssiSolver
from radiolocus.utils.radio import (dbm_to_power, expected_rssi, path_loss_constant_db,
                                    power_to_dbm, rssi_std_from_position_std)


class RobustRssiEstimator(RobustRadioSourceEstimator):
    """
    Locate a radio source from received signal strength readings.

    The log-distance model rssi = n*10*log10(c/(4*pi*f)) + P - 5*n*log10(d^2)
    is fitted over the position and, when enabled, the transmitted power P
    and the path-loss exponent n. Parameters not estimated keep their
    initial values.
    """

    def __init__(self, readings: Optional[Sequence[Reading]] = None,
                 method: RobustMethod = RobustMethod.PROMEDS,
                 quality_scores: Optional[Sequence[float]] = None,
                 initial_position: Optional[np.ndarray] = None,
                 initial_transmitted_power_dbm: Optional[float] = None,
                 initial_path_loss_exponent: Optional[float] = None,
                 listener: Optional[EstimatorListener] = None,
                 seed: Optional[int] = None, **kwargs):
        rssi = DEFAULT_CONFIG["rssi"]
        self._transmitted_power_estimation_enabled = rssi["transmitted_power_estimation"]
        self._path_loss_estimation_enabled = rssi["path_loss_estimation"]
        self._power_standard_deviation = rssi["power_standard_deviation"]
        self._default_frequency = rssi["frequency"]
        self._initial_transmitted_power_dbm = None
        self._initial_path_loss_exponent = rssi["path_loss_exponent"]
        self._rssi = None
        self._k_db = None
        self._rssi_stds = None
        super().__init__(readings=readings, method=method, quality_scores=quality_scores,
                         initial_position=initial_position, listener=listener, seed=seed,
                         **kwargs)
        if initial_transmitted_power_dbm is not None:
            self.initial_transmitted_power_dbm = initial_transmitted_power_dbm
        if initial_path_loss_exponent is not None:
            self.initial_path_loss_exponent = initial_path_loss_exponent

    # -- configuration ----------------------------------------------------

    @property
    def transmitted_power_estimation_enabled(self) -> bool:
        return self._transmitted_power_estimation_enabled

    @transmitted_power_estimation_enabled.setter
    def transmitted_power_estimation_enabled(self, value: bool):
        self._check_unlocked()
        self._transmitted_power_estimation_enabled = bool(value)

    @property
    def path_loss_estimation_enabled(self) -> bool:
        return self._path_loss_estimation_enabled

    @path_loss_estimation_enabled.setter
    def path_loss_estimation_enabled(self, value: bool):
        self._check_unlocked()
        self._path_loss_estimation_enabled = bool(value)

    @property
    def initial_transmitted_power_dbm(self) -> Optional[float]:
        """Starting transmitted power, or its fixed value when not estimated."""
        return self._initial_transmitted_power_dbm

    @initial_transmitted_power_dbm.setter
    def initial_transmitted_power_dbm(self, value: Optional[float]):
        self._check_unlocked()
        if value is not None:
            value = float(value)
            if not math.isfinite(value):
                raise ValueError("Initial transmitted power must be finite")
        self._initial_transmitted_power_dbm = value

    @property
    def initial_transmitted_power(self) -> Optional[float]:
        """Initial transmitted power in mW."""
        if self._initial_transmitted_power_dbm is None:
            return None
        return dbm_to_power(self._initial_transmitted_power_dbm)

    @initial_transmitted_power.setter
    def initial_transmitted_power(self, value: Optional[float]):
        self._check_unlocked()
        if value is None:
            self.initial_transmitted_power_dbm = None
            return
        self.initial_transmitted_power_dbm = power_to_dbm(
            check_positive(value, "Initial transmitted power"))

    @property
    def initial_path_loss_exponent(self) -> float:
        return self._initial_path_loss_exponent

    @initial_path_loss_exponent.setter
    def initial_path_loss_exponent(self, value: float):
        self._check_unlocked()
        self._initial_path_loss_exponent = check_positive(value, "Path loss exponent")

    @property
    def power_standard_deviation(self) -> float:
        """RSSI standard deviation (dB) of readings that do not carry one."""
        return self._power_standard_deviation

    @power_standard_deviation.setter
    def power_standard_deviation(self, value: float):
        self._check_unlocked()
        self._power_standard_deviation = check_positive(value, "Power standard deviation")

    @property
    def default_frequency(self) -> float:
        """Carrier frequency (Hz) of readings without a radio source."""
        return self._default_frequency

    @default_frequency.setter
    def default_frequency(self, value: float):
        self._check_unlocked()
        self._default_frequency = check_positive(value, "Frequency")

    @property
    def is_ready(self) -> bool:
        if not super().is_ready:
            return False
        # a fixed transmitted power must be known
        return (self._transmitted_power_estimation_enabled
                or self._initial_transmitted_power_dbm is not None)

    # -- results ----------------------------------------------------------

    @property
    def estimated_transmitted_power_dbm(self) -> Optional[float]:
        return self._result.transmitted_power_dbm if self._result is not None else None

    @property
    def estimated_transmitted_power(self) -> Optional[float]:
        """Estimated transmitted power in mW."""
        power = self.estimated_transmitted_power_dbm
        return dbm_to_power(power) if power is not None else None

    @property
    def estimated_transmitted_power_variance(self) -> Optional[float]:
        """Variance of the estimated transmitted power in dBm^2."""
        return self._result.transmitted_power_variance if self._result is not None else None

    @property
    def estimated_path_loss_exponent(self) -> Optional[float]:
        return self._result.path_loss_exponent if self._result is not None else None

    @property
    def estimated_path_loss_exponent_variance(self) -> Optional[float]:
        return self._result.path_loss_exponent_variance if self._result is not None else None

    # -- estimation hooks -------------------------------------------------

    def _rssi_parameters(self) -> int:
        return (int(self._transmitted_power_estimation_enabled)
                + int(self._path_loss_estimation_enabled))

    def _min_readings_for(self, dims: int) -> int:
        return dims + self._rssi_parameters()

    def _check_reading(self, reading: Reading):
        if not reading.has_rssi:
            raise ValueError("RSSI readings must carry an RSSI value")

    def _prepare(self):
        super()._prepare()
        readings = self._readings
        self._rssi = np.array([r.rssi for r in readings])
        self._k_db = np.array([path_loss_constant_db(
            r.source.frequency if r.source is not None else self._default_frequency)
            for r in readings])
        self._rssi_stds = np.array([
            r.rssi_std if r.rssi_std is not None else self._power_standard_deviation
            for r in readings])

    def _solve_subset(self, subset: np.ndarray) -> Hypothesis:
        positions = self._positions[subset]
        start = self._initial_position
        if start is None:
            start = positions.mean(axis=0)

        position, power, exponent, _ = RssiSolver(self._fitter).solve(
            positions, self._rssi[subset], self._k_db[subset], self._rssi_stds[subset],
            start, initial_power_dbm=self._initial_transmitted_power_dbm,
            initial_exponent=self._initial_path_loss_exponent,
            estimate_power=self._transmitted_power_estimation_enabled,
            estimate_exponent=self._path_loss_estimation_enabled,
            with_covariance=False)
        return Hypothesis(position, power, exponent)

    def _position_stds_db(self, position: np.ndarray, exponent: float) -> np.ndarray:
        distances = np.linalg.norm(self._positions - position, axis=1)
        return rssi_std_from_position_std(self._position_stds, distances, exponent)

    def _rssi_residuals(self, hypothesis: Hypothesis) -> np.ndarray:
        position = hypothesis.position
        sqr_distances = np.sum((self._positions - position) ** 2, axis=1)
        residuals = np.abs(expected_rssi(sqr_distances, self._k_db,
                                         hypothesis.transmitted_power_dbm,
                                         hypothesis.path_loss_exponent) - self._rssi)
        position_stds = self._position_stds_db(position, hypothesis.path_loss_exponent)
        return residuals * self._weighting(self._rssi_stds, position_stds)

    def _residuals(self, hypothesis: Hypothesis) -> np.ndarray:
        return self._rssi_residuals(hypothesis)

    def _refine(self, hypothesis: Hypothesis, inliers: np.ndarray):
        position_stds = self._position_stds_db(hypothesis.position,
                                               hypothesis.path_loss_exponent)[inliers]
        sigma = np.sqrt(self._rssi_stds[inliers] ** 2 + position_stds ** 2)

        position, power, exponent, fit = RssiSolver(self._fitter).solve(
            self._positions[inliers], self._rssi[inliers], self._k_db[inliers], sigma,
            hypothesis.position, initial_power_dbm=hypothesis.transmitted_power_dbm,
            initial_exponent=hypothesis.path_loss_exponent,
            estimate_power=self._transmitted_power_estimation_enabled,
            estimate_exponent=self._path_loss_estimation_enabled,
            with_covariance=self._keep_covariance)
        names = RssiSolver.parameter_names(self.dims, True,
                                           self._transmitted_power_estimation_enabled,
                                           self._path_loss_estimation_enabled)
        return Hypothesis(position, power, exponent), fit, names
