"""Select the sampling and scoring policies of a robust method."""

from typing import Optional, Sequence, Tuple

import numpy as np

from radiolocus.models import RobustMethod
from radiolocus.robust.sampling import ProgressiveSampler, UniformSampler
from radiolocus.robust.scoring import ConsensusScoring, MedianScoring, TruncatedCostScoring


def build_policies(method: RobustMethod, rng: np.random.Generator,
                   threshold: float = 0.1, stop_threshold: float = 1e-4,
                   inlier_factor: float = 1.5,
                   quality_scores: Optional[Sequence[float]] = None,
                   beta: float = 0.01,
                   non_random_threshold: float = 0.05) -> Tuple[object, object]:
    """
    Build the (sampler, scorer) pair implementing a robust method.

    Progressive methods fall back to uniform sampling when no quality
    scores are available.
    """
    method = RobustMethod(method)

    if method.is_progressive and quality_scores is not None:
        sampler = ProgressiveSampler(quality_scores, rng=rng, beta=beta,
                                     non_random_threshold=non_random_threshold)
    else:
        sampler = UniformSampler(rng=rng)

    if method.is_median:
        scorer = MedianScoring(stop_threshold, inlier_factor)
    elif method == RobustMethod.MSAC:
        scorer = TruncatedCostScoring(threshold)
    else:
        scorer = ConsensusScoring(threshold)

    return sampler, scorer
