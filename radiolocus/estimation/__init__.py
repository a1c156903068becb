"""Robust radio source estimators."""

from .base import EstimatorListener, RobustRadioSourceEstimator
from .ranging import RobustRangingEstimator
from .ranging_rssi import RobustRangingAndRssiEstimator
from .rssi import RobustRssiEstimator

__all__ = [
    'EstimatorListener',
    'RobustRadioSourceEstimator',
    'RobustRangingEstimator',
    'RobustRangingAndRssiEstimator',
    'RobustRssiEstimator',
]
