"""Generic sample-consensus engine."""

from .controller import ConsensusEstimator
from .methods import build_policies
from .sampling import ProgressiveSampler, UniformSampler, ransac_iterations
from .scoring import ConsensusScoring, MedianScoring, Score, TruncatedCostScoring

__all__ = [
    'ConsensusEstimator',
    'build_policies',
    'ProgressiveSampler',
    'UniformSampler',
    'ransac_iterations',
    'ConsensusScoring',
    'MedianScoring',
    'Score',
    'TruncatedCostScoring',
]
