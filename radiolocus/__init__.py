"""
radiolocus - robust radio source localization
"""

__version__ = "1.0.0"

from .core import create_estimator
from .estimation import (EstimatorListener, RobustRangingAndRssiEstimator,
                         RobustRangingEstimator, RobustRssiEstimator)
from .exceptions import (LockedError, NotReadyError, RadioLocusError, RobustEstimatorError,
                         SolverError)
from .models import EstimationResult, InliersData, RadioSource, Reading, RobustMethod

__all__ = [
    'create_estimator',
    'EstimatorListener',
    'RobustRangingAndRssiEstimator',
    'RobustRangingEstimator',
    'RobustRssiEstimator',
    'LockedError',
    'NotReadyError',
    'RadioLocusError',
    'RobustEstimatorError',
    'SolverError',
    'EstimationResult',
    'InliersData',
    'RadioSource',
    'Reading',
    'RobustMethod',
]
