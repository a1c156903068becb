"""Subset sampling policies for robust estimation."""

import math
from typing import Optional, Sequence

import numpy as np
from scipy.stats import binom


def ransac_iterations(inlier_ratio: float, subset_size: int, confidence: float) -> float:
    """
    Number of draws needed to pick one all-inlier subset with the given confidence.

    N = log(1 - confidence) / log(1 - w^k)

    Returns 0 when every sample is an inlier and infinity when the inlier
    ratio is too small for the bound to be finite.
    """
    if inlier_ratio >= 1.0:
        return 0.0
    probability = inlier_ratio ** subset_size
    if probability <= np.finfo(float).eps:
        return math.inf
    if confidence <= 0.0:
        return 0.0
    return math.ceil(math.log(1.0 - confidence) / math.log1p(-probability))


class UniformSampler:
    """Draw subsets uniformly at random without replacement (RANSAC, MSAC, LMedS)."""

    progressive = False

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.n_samples = 0
        self.subset_size = 0

    def reset(self, n_samples: int, subset_size: int, max_iterations: int):
        """Prepare a new estimation run."""
        if subset_size > n_samples:
            raise ValueError("Subset size cannot exceed the number of samples")
        self.n_samples = n_samples
        self.subset_size = subset_size

    def draw(self, iteration: int) -> np.ndarray:
        """Indices of the subset used on the given (1-based) iteration."""
        return self.rng.choice(self.n_samples, self.subset_size, replace=False)

    def iteration_bound(self, inliers: np.ndarray, confidence: float) -> float:
        """Iterations needed given the current best inlier partition."""
        ratio = float(np.count_nonzero(inliers)) / self.n_samples
        return ransac_iterations(ratio, self.subset_size, confidence)

    def confirms(self, subset: np.ndarray, inliers: np.ndarray) -> bool:
        return False


class ProgressiveSampler(UniformSampler):
    """
    PROSAC sampling (Chum & Matas, 2005).

    Samples are drawn from a prefix of the readings sorted by decreasing
    quality. The prefix grows following
    T_n = T_N * prod_{i<k} (n - i) / (N - i) and T'_{n+1} = T'_n + ceil(T_{n+1} - T_n),
    where T_N is the maximum number of iterations, so that the whole set is
    reached by the last iteration. Termination uses the non-randomness and
    maximality criteria over all prefixes.
    """

    progressive = True

    def __init__(self, quality_scores: Sequence[float],
                 rng: Optional[np.random.Generator] = None,
                 beta: float = 0.01, non_random_threshold: float = 0.05):
        super().__init__(rng)
        self.quality_scores = quality_scores
        self.beta = beta
        self.non_random_threshold = non_random_threshold
        self.order = None
        self.prefix_size = 0
        self._t_n = 0.0
        self._t_n_prime = 1
        self._min_inliers = None

    def reset(self, n_samples: int, subset_size: int, max_iterations: int):
        super().reset(n_samples, subset_size, max_iterations)
        scores = np.asarray(self.quality_scores, dtype=float)
        if scores.size != n_samples:
            raise ValueError("Quality scores must have one value per sample")

        # descending quality; stable sort keeps original order among ties
        self.order = np.argsort(-scores, kind='stable')
        self.prefix_size = subset_size
        self._t_n = float(max_iterations)
        for i in range(subset_size):
            self._t_n *= (subset_size - i) / (n_samples - i)
        self._t_n_prime = 1
        self._min_inliers = self._non_random_minimums()

    def _non_random_minimums(self) -> np.ndarray:
        """Smallest inlier count of each prefix that cannot be explained by chance."""
        n, k = self.n_samples, self.subset_size
        minimums = np.full(n + 1, np.iinfo(np.int64).max, dtype=np.int64)
        # with every sample in the subset there is nothing left to test against chance
        minimums[k] = k + 1 if n > k else k
        if n > k:
            trials = np.arange(1, n - k + 1)
            random_support = binom.isf(self.non_random_threshold, trials, self.beta)
            minimums[k + 1:] = k + random_support.astype(np.int64) + 1
        return minimums

    def draw(self, iteration: int) -> np.ndarray:
        k = self.subset_size
        if iteration > self._t_n_prime and self.prefix_size < self.n_samples:
            n = self.prefix_size
            t_next = self._t_n * (n + 1) / (n + 1 - k)
            self._t_n_prime += int(math.ceil(t_next - self._t_n))
            self._t_n = t_next
            self.prefix_size = n + 1

        n = self.prefix_size
        if self._t_n_prime < iteration:
            ranks = self.rng.choice(n, k, replace=False)
        else:
            # newest reading of the prefix plus k - 1 of the previous ones
            ranks = np.append(self.rng.choice(n - 1, k - 1, replace=False), n - 1)
        return self.order[ranks]

    def iteration_bound(self, inliers: np.ndarray, confidence: float) -> float:
        """Smallest maximality bound among prefixes passing the non-randomness test."""
        k = self.subset_size
        cumulative = np.cumsum(np.asarray(inliers, dtype=bool)[self.order])
        best = math.inf
        for n_star in range(k, self.n_samples + 1):
            count = int(cumulative[n_star - 1])
            if count < self._min_inliers[n_star]:
                continue
            probability = 1.0
            for j in range(k):
                probability *= (count - j) / (n_star - j)
            if probability >= 1.0:
                return 0.0
            if probability <= np.finfo(float).eps or confidence <= 0.0:
                bound = 0.0 if confidence <= 0.0 else math.inf
            else:
                bound = math.ceil(math.log(1.0 - confidence) / math.log1p(-probability))
            best = min(best, bound)
        return best

    def confirms(self, subset: np.ndarray, inliers: np.ndarray) -> bool:
        """Whether an all-inlier draw re-confirms a non-random consensus."""
        inliers = np.asarray(inliers, dtype=bool)
        return (bool(np.all(inliers[subset]))
                and np.count_nonzero(inliers) >= self._min_inliers[self.n_samples])
