"""
radiolocus core
Entry point building configured robust estimators
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from radiolocus.config import DEFAULT_CONFIG
from radiolocus.estimation import (EstimatorListener, RobustRadioSourceEstimator,
                                   RobustRangingAndRssiEstimator, RobustRangingEstimator,
                                   RobustRssiEstimator)
from radiolocus.models import Reading, RobustMethod


logger = logging.getLogger(__name__)

ESTIMATORS = {
    "ranging": RobustRangingEstimator,
    "rssi": RobustRssiEstimator,
    "ranging_rssi": RobustRangingAndRssiEstimator,
}

# config keys whose property name differs
_PROPERTY_NAMES = {
    "use_homogeneous_linear_solver": "homogeneous_linear_solver_used",
    "frequency": "default_frequency",
    "path_loss_exponent": "initial_path_loss_exponent",
    "transmitted_power_estimation": "transmitted_power_estimation_enabled",
    "path_loss_estimation": "path_loss_estimation_enabled",
}

_SECTIONS = ("robust", "progressive", "refinement", "lateration", "rssi")


def create_estimator(measurement: str,
                     method: Union[RobustMethod, str, None] = None,
                     readings: Optional[Sequence[Reading]] = None,
                     quality_scores: Optional[Sequence[float]] = None,
                     initial_position: Optional[np.ndarray] = None,
                     listener: Optional[EstimatorListener] = None,
                     config: Optional[Dict[str, Any]] = None,
                     **options) -> RobustRadioSourceEstimator:
    """
    Build a robust estimator for a measurement kind.

    Args:
        measurement: "ranging", "rssi" or "ranging_rssi"
        method: Robust method; defaults to config["robust"]["method"]
        readings: Readings of the radio source
        quality_scores: Reading quality, only kept for progressive methods
        initial_position: Optional starting position
        listener: Optional EstimatorListener
        config: Configuration dictionary (see radiolocus.config.DEFAULT_CONFIG)
        **options: Estimator properties overriding the configuration

    Returns:
        Configured estimator

    Raises:
        ValueError: If the measurement kind, method or a setting is invalid
    """
    if measurement not in ESTIMATORS:
        raise ValueError(f"Unknown measurement kind: {measurement}. "
                         f"Expected one of {sorted(ESTIMATORS)}")
    config = config or DEFAULT_CONFIG
    estimator_class = ESTIMATORS[measurement]

    if method is None:
        method = config.get("robust", {}).get("method", DEFAULT_CONFIG["robust"]["method"])
    method = RobustMethod(method)

    estimator = estimator_class(method=method, initial_position=initial_position,
                                listener=listener)

    # settings go first, min_readings may depend on them
    for section in _SECTIONS:
        for key, value in config.get(section, {}).items():
            name = _PROPERTY_NAMES.get(key, key)
            if key == "method" or not hasattr(estimator_class, name):
                continue
            setattr(estimator, name, value)

    subset_size = options.pop("preliminary_subset_size", None)
    for name, value in options.items():
        if not hasattr(estimator_class, name):
            raise ValueError(f"{estimator_class.__name__} has no setting {name}")
        setattr(estimator, name, value)

    if readings is not None:
        estimator.readings = readings
    if quality_scores is not None and method.is_progressive:
        estimator.quality_scores = quality_scores
    if subset_size is not None:
        estimator.preliminary_subset_size = subset_size

    logger.debug("Created %s using %s", estimator_class.__name__, method.name)
    return estimator
