"""Generic sample-consensus iteration loop."""

import logging
import math
from typing import Any, Callable, Optional, Tuple

import numpy as np

from radiolocus.exceptions import RobustEstimatorError
from radiolocus.models import InliersData


logger = logging.getLogger(__name__)


class ConsensusEstimator:
    """
    Drive the sample -> solve -> score loop of a robust estimator.

    The sampler decides which subsets are drawn and how many iterations the
    current best consensus still requires; the scorer ranks hypotheses.
    """

    def __init__(self, sampler, scorer, confidence: float = 0.99,
                 max_iterations: int = 5000, progress_delta: float = 0.05):
        self.sampler = sampler
        self.scorer = scorer
        self.confidence = confidence
        self.max_iterations = max_iterations
        self.progress_delta = progress_delta

    def fit(self, n_samples: int, subset_size: int,
            model_func: Callable[[np.ndarray], Optional[Any]],
            residual_func: Callable[[Any], np.ndarray],
            on_iteration: Optional[Callable[[int], None]] = None,
            on_progress: Optional[Callable[[float], None]] = None
            ) -> Tuple[Any, InliersData, int]:
        """
        Find the hypothesis best supported by the samples.

        Args:
            n_samples: Total number of samples
            subset_size: Number of samples drawn per iteration
            model_func: Builds a hypothesis from subset indices, None on failure
            residual_func: Residual of every sample against a hypothesis
            on_iteration: Called with the 1-based iteration count
            on_progress: Called with the progress fraction when it advanced
                by at least progress_delta

        Returns:
            Tuple of (best hypothesis, inliers data, iterations performed)

        Raises:
            RobustEstimatorError: If no subset produced a hypothesis
        """
        self.sampler.reset(n_samples, subset_size, self.max_iterations)

        best_model = None
        best_score = None
        best_residuals = None
        iterations = 0
        dynamic_iterations = self.max_iterations
        last_progress = 0.0

        while iterations < dynamic_iterations:
            subset = self.sampler.draw(iterations + 1)
            iterations += 1
            stop = False

            model = model_func(subset)
            if model is not None:
                residuals = np.asarray(residual_func(model), dtype=float)
                residuals = np.where(np.isfinite(residuals), residuals, np.inf)
                score = self.scorer.score(residuals, subset_size)

                if best_score is None or self.scorer.is_better(score, best_score):
                    best_model, best_score, best_residuals = model, score, residuals
                    bound = self.sampler.iteration_bound(score.support, self.confidence)
                    dynamic_iterations = self._clamp(bound, iterations)
                    logger.debug("Iteration %d: new best fitness %.6g with %d inliers, "
                                 "%d iterations required", iterations, score.fitness,
                                 score.num_inliers, dynamic_iterations)
                elif (self.scorer.confirmable
                      and self.sampler.confirms(subset, best_score.support)):
                    logger.debug("Iteration %d: all-inlier subset confirmed consensus",
                                 iterations)
                    stop = True

                if self.scorer.converged(best_score):
                    stop = True

            if on_iteration is not None:
                on_iteration(iterations)

            progress = min(iterations / max(dynamic_iterations, 1), 1.0)
            if (on_progress is not None and progress > last_progress
                    and progress - last_progress >= self.progress_delta):
                last_progress = progress
                on_progress(progress)

            if stop:
                break

        if best_model is None:
            raise RobustEstimatorError(
                f"No hypothesis could be computed in {iterations} iterations")

        inliers_data = InliersData(inliers=best_score.inliers,
                                   residuals=best_residuals,
                                   num_inliers=best_score.num_inliers,
                                   best_score=best_score.fitness,
                                   threshold=best_score.threshold)
        return best_model, inliers_data, iterations

    def _clamp(self, bound: float, iterations: int) -> int:
        """Keep the adaptive bound within [iterations done, configured maximum]."""
        if math.isinf(bound) or bound > self.max_iterations:
            return self.max_iterations
        return max(int(bound), iterations)
