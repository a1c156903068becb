"""
Robust radio source estimator base class.

Owns configuration, readings and listener, guards re-entrance while an
estimation runs, and orchestrates the consensus loop and refinement.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np

from radiolocus.config import DEFAULT_CONFIG
from radiolocus.exceptions import (LockedError, NotReadyError, RobustEstimatorError,
                                   SolverError)
from radiolocus.models import (EstimationResult, Hypothesis, InliersData, Reading,
                               RobustMethod)
from radiolocus.robust.controller import ConsensusEstimator
from radiolocus.robust.methods import build_policies
from radiolocus.solvers.fitting import WeightedLeastSquaresFitter
from radiolocus.utils.radio import average_accuracy


logger = logging.getLogger(__name__)

DEFAULT_DIMS = 3


class EstimatorListener:
    """Receives notifications of a running estimation. Override what you need."""

    def on_estimate_start(self, estimator):
        pass

    def on_estimate_end(self, estimator):
        pass

    def on_estimate_next_iteration(self, estimator, iteration: int):
        pass

    def on_estimate_progress_change(self, estimator, progress: float):
        pass


def check_positive(value: float, name: str) -> float:
    value = float(value)
    if not (value > 0.0 and math.isfinite(value)):
        raise ValueError(f"{name} must be greater than 0")
    return value


def check_open_unit(value: float, name: str) -> float:
    value = float(value)
    if not 0.0 < value < 1.0:
        raise ValueError(f"{name} must be between 0 and 1 (exclusive)")
    return value


class RobustRadioSourceEstimator:
    """
    Common state machine of the robust estimators.

    Subclasses define which measurements a reading must carry, the number
    of readings needed for a hypothesis, how a hypothesis is solved from a
    subset, the residual of each reading and the refinement of the consensus.
    """

    def __init__(self, readings: Optional[Sequence[Reading]] = None,
                 method: RobustMethod = RobustMethod.PROMEDS,
                 quality_scores: Optional[Sequence[float]] = None,
                 initial_position: Optional[np.ndarray] = None,
                 listener: Optional[EstimatorListener] = None,
                 seed: Optional[int] = None):
        robust = DEFAULT_CONFIG["robust"]
        progressive = DEFAULT_CONFIG["progressive"]
        refinement = DEFAULT_CONFIG["refinement"]

        self._locked = False
        self._method = RobustMethod(method)
        self._threshold = robust["threshold"]
        self._stop_threshold = robust["stop_threshold"]
        self._inlier_factor = robust["inlier_factor"]
        self._confidence = robust["confidence"]
        self._max_iterations = robust["max_iterations"]
        self._progress_delta = robust["progress_delta"]
        self._seed = seed
        self._beta = progressive["beta"]
        self._non_random_threshold = progressive["non_random_threshold"]
        self._refine_result = refinement["refine_result"]
        self._keep_covariance = refinement["keep_covariance"]
        self._use_reading_position_covariances = refinement["use_reading_position_covariances"]
        self._fitter = WeightedLeastSquaresFitter(refinement["max_evaluations"])
        self._preliminary_subset_size = None
        self._readings = None
        self._quality_scores = None
        self._initial_position = None
        self._listener = listener
        self._result = None
        self._positions = None
        self._position_stds = None

        if initial_position is not None:
            self.initial_position = initial_position
        if readings is not None:
            self.readings = readings
        if quality_scores is not None:
            self.quality_scores = quality_scores

    # -- subclass hooks ---------------------------------------------------

    def _min_readings_for(self, dims: int) -> int:
        raise NotImplementedError

    def _check_reading(self, reading: Reading):
        """Raise ValueError if the reading lacks a required measurement."""
        raise NotImplementedError

    def _prepare(self):
        """Cache per-reading arrays before the consensus loop."""
        readings = self._readings
        self._positions = np.array([r.position for r in readings])
        if self._use_reading_position_covariances:
            self._position_stds = np.array([average_accuracy(r.position_covariance)
                                            for r in readings])
        else:
            self._position_stds = np.zeros(len(readings))

    def _solve_subset(self, subset: np.ndarray) -> Hypothesis:
        raise NotImplementedError

    def _residuals(self, hypothesis: Hypothesis) -> np.ndarray:
        raise NotImplementedError

    def _refine(self, hypothesis: Hypothesis, inliers: np.ndarray):
        """Return (hypothesis, FitResult, parameter names) refined over the inliers."""
        raise NotImplementedError

    # -- state ------------------------------------------------------------

    def _check_unlocked(self):
        if self._locked:
            raise LockedError()

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def dims(self) -> int:
        if self._readings:
            return self._readings[0].dims
        if self._initial_position is not None:
            return self._initial_position.size
        return DEFAULT_DIMS

    @property
    def min_readings(self) -> int:
        """Readings needed to solve one hypothesis."""
        return self._min_readings_for(self.dims)

    @property
    def is_ready(self) -> bool:
        if not self._readings:
            return False
        subset_size = self.preliminary_subset_size
        if subset_size < self.min_readings or len(self._readings) < subset_size:
            return False
        if (self._method.is_progressive and self._quality_scores is not None
                and len(self._quality_scores) != len(self._readings)):
            return False
        return True

    # -- configuration ----------------------------------------------------

    @property
    def method(self) -> RobustMethod:
        return self._method

    @method.setter
    def method(self, value):
        self._check_unlocked()
        self._method = RobustMethod(value)

    @property
    def threshold(self) -> float:
        """Residual below which a reading is an inlier (RANSAC, MSAC, PROSAC)."""
        return self._threshold

    @threshold.setter
    def threshold(self, value: float):
        self._check_unlocked()
        self._threshold = check_positive(value, "Threshold")

    @property
    def stop_threshold(self) -> float:
        """Median residual at which median based methods stop early."""
        return self._stop_threshold

    @stop_threshold.setter
    def stop_threshold(self, value: float):
        self._check_unlocked()
        self._stop_threshold = check_positive(value, "Stop threshold")

    @property
    def inlier_factor(self) -> float:
        return self._inlier_factor

    @inlier_factor.setter
    def inlier_factor(self, value: float):
        self._check_unlocked()
        self._inlier_factor = check_positive(value, "Inlier factor")

    @property
    def confidence(self) -> float:
        return self._confidence

    @confidence.setter
    def confidence(self, value: float):
        self._check_unlocked()
        value = float(value)
        if not 0.0 <= value < 1.0:
            raise ValueError("Confidence must be in [0, 1)")
        self._confidence = value

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int):
        self._check_unlocked()
        if int(value) != value or value < 1:
            raise ValueError("Maximum iterations must be an integer >= 1")
        self._max_iterations = int(value)

    @property
    def progress_delta(self) -> float:
        return self._progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float):
        self._check_unlocked()
        value = float(value)
        if not 0.0 <= value <= 1.0:
            raise ValueError("Progress delta must be in [0, 1]")
        self._progress_delta = value

    @property
    def preliminary_subset_size(self) -> int:
        """Readings drawn per iteration, min_readings unless set."""
        if self._preliminary_subset_size is None:
            return self.min_readings
        return self._preliminary_subset_size

    @preliminary_subset_size.setter
    def preliminary_subset_size(self, value: int):
        self._check_unlocked()
        if int(value) != value or value < self.min_readings:
            raise ValueError(f"Preliminary subset size must be an integer >= "
                             f"{self.min_readings}")
        self._preliminary_subset_size = int(value)

    @property
    def refine_result(self) -> bool:
        return self._refine_result

    @refine_result.setter
    def refine_result(self, value: bool):
        self._check_unlocked()
        self._refine_result = bool(value)

    @property
    def keep_covariance(self) -> bool:
        return self._keep_covariance

    @keep_covariance.setter
    def keep_covariance(self, value: bool):
        self._check_unlocked()
        self._keep_covariance = bool(value)

    @property
    def use_reading_position_covariances(self) -> bool:
        return self._use_reading_position_covariances

    @use_reading_position_covariances.setter
    def use_reading_position_covariances(self, value: bool):
        self._check_unlocked()
        self._use_reading_position_covariances = bool(value)

    @property
    def seed(self) -> Optional[int]:
        """Sampler seed; every estimate() restarts from it when set."""
        return self._seed

    @seed.setter
    def seed(self, value: Optional[int]):
        self._check_unlocked()
        self._seed = None if value is None else int(value)

    @property
    def beta(self) -> float:
        """Probability that an outlier is consistent with a wrong hypothesis (PROSAC)."""
        return self._beta

    @beta.setter
    def beta(self, value: float):
        self._check_unlocked()
        self._beta = check_open_unit(value, "Beta")

    @property
    def non_random_threshold(self) -> float:
        return self._non_random_threshold

    @non_random_threshold.setter
    def non_random_threshold(self, value: float):
        self._check_unlocked()
        self._non_random_threshold = check_open_unit(value, "Non-random threshold")

    @property
    def max_evaluations(self) -> int:
        """Function evaluations allowed to each non-linear fit."""
        return self._fitter.max_evaluations

    @max_evaluations.setter
    def max_evaluations(self, value: int):
        self._check_unlocked()
        if int(value) != value or value < 1:
            raise ValueError("Maximum evaluations must be an integer >= 1")
        self._fitter.max_evaluations = int(value)

    @property
    def listener(self) -> Optional[EstimatorListener]:
        return self._listener

    @listener.setter
    def listener(self, value: Optional[EstimatorListener]):
        self._check_unlocked()
        self._listener = value

    @property
    def initial_position(self) -> Optional[np.ndarray]:
        return self._initial_position

    @initial_position.setter
    def initial_position(self, value: Optional[np.ndarray]):
        self._check_unlocked()
        if value is None:
            self._initial_position = None
            return
        position = np.asarray(value, dtype=float).ravel()
        if position.size not in (2, 3) or not np.all(np.isfinite(position)):
            raise ValueError("Initial position must have 2 or 3 finite coordinates")
        if self._readings and position.size != self.dims:
            raise ValueError("Initial position dimension does not match the readings")
        self._initial_position = position

    @property
    def readings(self) -> Optional[Sequence[Reading]]:
        return self._readings

    @readings.setter
    def readings(self, value: Sequence[Reading]):
        self._check_unlocked()
        if value is None or len(value) == 0:
            raise ValueError("Readings must be a non-empty sequence")
        dims = None
        for reading in value:
            if not isinstance(reading, Reading):
                raise ValueError("Readings must be Reading instances")
            if dims is None:
                dims = reading.dims
            elif reading.dims != dims:
                raise ValueError("All readings must have the same dimension")
            self._check_reading(reading)
        if self._initial_position is not None and self._initial_position.size != dims:
            raise ValueError("Readings dimension does not match the initial position")
        min_readings = self._min_readings_for(dims)
        if len(value) < min_readings:
            raise ValueError(f"At least {min_readings} readings are required")
        self._readings = value

    @property
    def quality_scores(self) -> Optional[Sequence[float]]:
        """Quality of each reading, higher is better. Only used by progressive methods."""
        if not self._method.is_progressive:
            return None
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, value: Optional[Sequence[float]]):
        self._check_unlocked()
        # only progressive methods use them
        if value is not None and self._method.is_progressive:
            if np.ndim(value) != 1:
                raise ValueError("Quality scores must be a one-dimensional sequence")
            if len(value) < self.min_readings:
                raise ValueError(f"At least {self.min_readings} quality scores are required")
        self._quality_scores = value

    # -- results ----------------------------------------------------------

    @property
    def result(self) -> Optional[EstimationResult]:
        return self._result

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return self._result.inliers_data if self._result is not None else None

    @property
    def covariance(self) -> Optional[np.ndarray]:
        """Covariance of every refined parameter, position first."""
        return self._result.covariance if self._result is not None else None

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        return self._result.position if self._result is not None else None

    @property
    def estimated_position_covariance(self) -> Optional[np.ndarray]:
        return self._result.position_covariance if self._result is not None else None

    # -- estimation -------------------------------------------------------

    def estimate(self) -> EstimationResult:
        """
        Run the robust estimation.

        Returns:
            EstimationResult, also available through the result property

        Raises:
            LockedError: If an estimation is already running
            NotReadyError: If readings or quality scores are insufficient
            RobustEstimatorError: If no consensus is found or refinement fails.
                A failed refinement stores the unrefined consensus as result.
        """
        self._check_unlocked()
        if not self.is_ready:
            raise NotReadyError()

        self._locked = True
        try:
            if self._listener is not None:
                self._listener.on_estimate_start(self)

            n_readings = len(self._readings)
            subset_size = self.preliminary_subset_size
            logger.debug("Estimating with %s over %d readings, subset size %d",
                         self._method.name, n_readings, subset_size)

            self._prepare()
            sampler, scorer = build_policies(
                self._method, np.random.default_rng(self._seed),
                threshold=self._threshold, stop_threshold=self._stop_threshold,
                inlier_factor=self._inlier_factor, quality_scores=self.quality_scores,
                beta=self._beta, non_random_threshold=self._non_random_threshold)
            controller = ConsensusEstimator(sampler, scorer, self._confidence,
                                            self._max_iterations, self._progress_delta)

            on_iteration = on_progress = None
            if self._listener is not None:
                listener = self._listener

                def on_iteration(iteration):
                    listener.on_estimate_next_iteration(self, iteration)

                def on_progress(progress):
                    listener.on_estimate_progress_change(self, progress)

            hypothesis, inliers_data, iterations = controller.fit(
                n_readings, subset_size, self._hypothesize, self._residuals,
                on_iteration=on_iteration, on_progress=on_progress)

            if inliers_data.num_inliers < self.min_readings:
                raise RobustEstimatorError(
                    f"Consensus has {inliers_data.num_inliers} inliers, "
                    f"{self.min_readings} are required")

            previous = self._result
            result = self._build_result(hypothesis, inliers_data, iterations)
            self._result = result
            logger.info("%s estimation finished after %d iterations with %d/%d inliers",
                        self._method.name, iterations, inliers_data.num_inliers, n_readings)

            if self._listener is not None:
                try:
                    self._listener.on_estimate_end(self)
                except Exception:
                    self._result = previous
                    raise
            return result
        finally:
            self._locked = False

    def _hypothesize(self, subset: np.ndarray) -> Optional[Hypothesis]:
        try:
            return self._solve_subset(subset)
        except (SolverError, np.linalg.LinAlgError) as e:
            logger.debug("No hypothesis from subset %s: %s", subset.tolist(), e)
            return None

    def _build_result(self, hypothesis: Hypothesis, inliers_data: InliersData,
                      iterations: int) -> EstimationResult:
        consensus = EstimationResult(position=hypothesis.position,
                                     inliers_data=inliers_data,
                                     method=self._method,
                                     iterations=iterations,
                                     transmitted_power_dbm=hypothesis.transmitted_power_dbm,
                                     path_loss_exponent=hypothesis.path_loss_exponent)
        if not self._refine_result:
            return consensus

        try:
            refined, fit, names = self._refine(hypothesis, inliers_data.inliers)
        except (SolverError, np.linalg.LinAlgError) as e:
            logger.warning("Refinement failed, keeping consensus only: %s", e)
            self._result = consensus
            raise RobustEstimatorError(f"Refinement failed: {e}",
                                       consensus=consensus) from e

        covariance = position_covariance = None
        if self._keep_covariance and fit.covariance is not None:
            covariance = fit.covariance
            if "x0" in names:
                position_covariance = covariance[:self.dims, :self.dims]

        return EstimationResult(position=refined.position,
                                inliers_data=inliers_data,
                                method=self._method,
                                iterations=iterations,
                                transmitted_power_dbm=refined.transmitted_power_dbm,
                                path_loss_exponent=refined.path_loss_exponent,
                                covariance=covariance,
                                position_covariance=position_covariance,
                                parameter_names=tuple(names),
                                refined=True)

    @staticmethod
    def _weighting(sigma: np.ndarray, position_sigma: np.ndarray) -> np.ndarray:
        """Scale applied to residuals of readings with an uncertain position."""
        return sigma / np.sqrt(sigma ** 2 + position_sigma ** 2)
