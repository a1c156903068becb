"""Scoring policies ranking hypotheses against all samples."""

from dataclasses import dataclass
from typing import Optional

import numpy as np


# consistency constant of the median absolute deviation for gaussian noise
MAD_SCALE = 1.4826


@dataclass
class Score:
    """
    Fitness of one hypothesis and the inlier partition it induces.

    support marks the samples the hypothesis is known to explain; it drives
    the adaptive iteration bound and defaults to the inliers.
    """
    fitness: float
    inliers: np.ndarray
    threshold: float
    tie_breaker: float = 0.0
    support: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.support is None:
            self.support = self.inliers

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inliers))


class ConsensusScoring:
    """RANSAC: number of samples with residual below the threshold, the more the better."""

    # inliers come from a fixed threshold, an all-inlier draw can confirm them
    confirmable = True

    def __init__(self, threshold: float):
        self.threshold = threshold

    def score(self, residuals: np.ndarray, subset_size: int) -> Score:
        inliers = residuals < self.threshold
        return Score(fitness=float(np.count_nonzero(inliers)), inliers=inliers,
                     threshold=self.threshold,
                     tie_breaker=float(np.sum(residuals[inliers])))

    def is_better(self, candidate: Score, best: Score) -> bool:
        if candidate.fitness != best.fitness:
            return candidate.fitness > best.fitness
        return candidate.tie_breaker < best.tie_breaker

    def converged(self, best: Score) -> bool:
        return False


class TruncatedCostScoring(ConsensusScoring):
    """MSAC: sum of squared residuals truncated at the squared threshold, the lower the better."""

    def score(self, residuals: np.ndarray, subset_size: int) -> Score:
        sqr_threshold = self.threshold ** 2
        cost = np.sum(np.minimum(residuals ** 2, sqr_threshold))
        return Score(fitness=float(cost), inliers=residuals < self.threshold,
                     threshold=self.threshold)

    def is_better(self, candidate: Score, best: Score) -> bool:
        return candidate.fitness < best.fitness


class MedianScoring:
    """
    LMedS: median of squared residuals, the lower the better.

    The inlier threshold is derived from the robust standard deviation
    1.4826 * (1 + 5 / (n - k)) * sqrt(median), scaled by the inlier factor and
    never below the stop threshold.
    """

    confirmable = False

    def __init__(self, stop_threshold: float, inlier_factor: float = 1.5):
        self.stop_threshold = stop_threshold
        self.inlier_factor = inlier_factor

    def score(self, residuals: np.ndarray, subset_size: int) -> Score:
        n = residuals.size
        median = float(np.median(residuals ** 2))
        correction = 1.0 + 5.0 / (n - subset_size) if n > subset_size else 1.0
        sigma = MAD_SCALE * correction * np.sqrt(median)
        threshold = max(self.inlier_factor * sigma, self.stop_threshold)
        # the threshold scales with the hypothesis itself, only the lower half
        # of the residuals counts as support
        support = residuals ** 2 <= max(median, self.stop_threshold ** 2)
        return Score(fitness=median, inliers=residuals <= threshold,
                     threshold=float(threshold), support=support)

    def is_better(self, candidate: Score, best: Score) -> bool:
        return candidate.fitness < best.fitness

    def converged(self, best: Score) -> bool:
        return np.sqrt(best.fitness) <= self.stop_threshold
