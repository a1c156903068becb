"""Robust position estimation from distance readings."""

from typing import Optional, Sequence

import numpy as np

from radiolocus.config import DEFAULT_CONFIG
from radiolocus.estimation.base import (EstimatorListener, RobustRadioSourceEstimator,
                                        check_positive)
from radiolocus.models import Hypothesis, Reading, RobustMethod
from radiolocus.solvers.lateration import LinearLaterationSolver, NonLinearLaterationSolver


class RobustRangingEstimator(RobustRadioSourceEstimator):
    """
    Locate a radio source from readings carrying a distance.

    Each hypothesis is a lateration over preliminary_subset_size readings:
    linear (homogeneous or inhomogeneous) without an initial position,
    non-linear starting from it otherwise. The residual of a reading is
    | |x - p| - d |.
    """

    def __init__(self, readings: Optional[Sequence[Reading]] = None,
                 method: RobustMethod = RobustMethod.PROMEDS,
                 quality_scores: Optional[Sequence[float]] = None,
                 initial_position: Optional[np.ndarray] = None,
                 listener: Optional[EstimatorListener] = None,
                 seed: Optional[int] = None, **kwargs):
        lateration = DEFAULT_CONFIG["lateration"]
        self._linear_solver = LinearLaterationSolver(lateration["use_homogeneous_linear_solver"])
        self._distance_standard_deviation = lateration["distance_standard_deviation"]
        self._distances = None
        self._distance_stds = None
        super().__init__(readings=readings, method=method, quality_scores=quality_scores,
                         initial_position=initial_position, listener=listener, seed=seed,
                         **kwargs)

    @property
    def homogeneous_linear_solver_used(self) -> bool:
        return self._linear_solver.homogeneous

    @homogeneous_linear_solver_used.setter
    def homogeneous_linear_solver_used(self, value: bool):
        self._check_unlocked()
        self._linear_solver.homogeneous = bool(value)

    @property
    def distance_standard_deviation(self) -> float:
        """Distance standard deviation of readings that do not carry one."""
        return self._distance_standard_deviation

    @distance_standard_deviation.setter
    def distance_standard_deviation(self, value: float):
        self._check_unlocked()
        self._distance_standard_deviation = check_positive(value, "Distance standard deviation")

    def _min_readings_for(self, dims: int) -> int:
        return self._linear_solver.min_points(dims)

    def _check_reading(self, reading: Reading):
        if not reading.has_distance:
            raise ValueError("Ranging readings must carry a distance")

    def _prepare(self):
        super()._prepare()
        self._distances = np.array([r.distance for r in self._readings])
        self._distance_stds = np.array([
            r.distance_std if r.distance_std is not None else self._distance_standard_deviation
            for r in self._readings])

    def _solve_subset(self, subset: np.ndarray) -> Hypothesis:
        positions = self._positions[subset]
        distances = self._distances[subset]
        if self._initial_position is None:
            return Hypothesis(self._linear_solver.solve(positions, distances))

        fit = NonLinearLaterationSolver(self._fitter).solve(
            positions, distances, self._distance_stds[subset], self._initial_position,
            with_covariance=False)
        return Hypothesis(fit.params)

    def _ranging_residuals(self, position: np.ndarray) -> np.ndarray:
        residuals = np.abs(np.linalg.norm(self._positions - position, axis=1)
                           - self._distances)
        return residuals * self._weighting(self._distance_stds, self._position_stds)

    def _residuals(self, hypothesis: Hypothesis) -> np.ndarray:
        return self._ranging_residuals(hypothesis.position)

    def _refine(self, hypothesis: Hypothesis, inliers: np.ndarray):
        sigma = np.sqrt(self._distance_stds[inliers] ** 2 + self._position_stds[inliers] ** 2)
        fit = NonLinearLaterationSolver(self._fitter).solve(
            self._positions[inliers], self._distances[inliers], sigma,
            hypothesis.position, with_covariance=self._keep_covariance)
        names = [f"x{i}" for i in range(self.dims)]
        return Hypothesis(np.array(fit.params, dtype=float)), fit, names
