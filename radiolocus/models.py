"""Data model shared by solvers and estimators."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from radiolocus.config import DEFAULT_CONFIG


DEFAULT_FREQUENCY = DEFAULT_CONFIG["rssi"]["frequency"]


class RobustMethod(Enum):
    """Robust estimation variants."""
    RANSAC = "ransac"
    MSAC = "msac"
    LMEDS = "lmeds"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @property
    def is_progressive(self) -> bool:
        return self in (RobustMethod.PROSAC, RobustMethod.PROMEDS)

    @property
    def is_median(self) -> bool:
        return self in (RobustMethod.LMEDS, RobustMethod.PROMEDS)


@dataclass(frozen=True)
class RadioSource:
    """Radio source being located (access point, beacon...)."""
    identifier: str
    frequency: float = DEFAULT_FREQUENCY

    def __post_init__(self):
        if not (self.frequency > 0 and math.isfinite(self.frequency)):
            raise ValueError("Frequency must be a positive finite value")


def _optional_positive(value: Optional[float], name: str) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    if not (value > 0 and math.isfinite(value)):
        raise ValueError(f"{name} must be positive and finite")
    return value


@dataclass(frozen=True, eq=False)
class Reading:
    """
    Located measurement of a radio source.

    A reading carries the position where it was taken and a distance
    (ranging), a received signal strength in dBm (RSSI), or both.
    """
    position: np.ndarray
    source: Optional[RadioSource] = None
    position_covariance: Optional[np.ndarray] = None
    distance: Optional[float] = None
    distance_std: Optional[float] = None
    rssi: Optional[float] = None
    rssi_std: Optional[float] = None

    def __post_init__(self):
        position = np.asarray(self.position, dtype=float).ravel()
        if position.size not in (2, 3):
            raise ValueError("Reading position must have 2 or 3 coordinates")
        if not np.all(np.isfinite(position)):
            raise ValueError("Reading position must be finite")
        object.__setattr__(self, "position", position)

        if self.distance is None and self.rssi is None:
            raise ValueError("Reading requires a distance or an RSSI value")
        if self.distance is not None:
            distance = float(self.distance)
            if not (distance >= 0 and math.isfinite(distance)):
                raise ValueError("Distance must be non-negative and finite")
            object.__setattr__(self, "distance", distance)
        if self.rssi is not None:
            rssi = float(self.rssi)
            if not math.isfinite(rssi):
                raise ValueError("RSSI must be finite")
            object.__setattr__(self, "rssi", rssi)

        object.__setattr__(self, "distance_std",
                           _optional_positive(self.distance_std, "Distance standard deviation"))
        object.__setattr__(self, "rssi_std",
                           _optional_positive(self.rssi_std, "RSSI standard deviation"))

        if self.position_covariance is not None:
            cov = np.asarray(self.position_covariance, dtype=float)
            if cov.shape != (position.size, position.size):
                raise ValueError("Position covariance must be a square matrix "
                                 "matching the position dimension")
            object.__setattr__(self, "position_covariance", cov)

    @property
    def dims(self) -> int:
        return self.position.size

    @property
    def has_distance(self) -> bool:
        return self.distance is not None

    @property
    def has_rssi(self) -> bool:
        return self.rssi is not None

    @property
    def frequency(self) -> float:
        return self.source.frequency if self.source is not None else DEFAULT_FREQUENCY


@dataclass
class Hypothesis:
    """Candidate solution produced from one subset of readings."""
    position: np.ndarray
    transmitted_power_dbm: Optional[float] = None
    path_loss_exponent: Optional[float] = None


@dataclass
class InliersData:
    """Inlier/outlier partition of the best consensus."""
    inliers: np.ndarray
    residuals: np.ndarray
    num_inliers: int
    best_score: float
    threshold: float


@dataclass
class EstimationResult:
    """Outcome of a successful robust estimation."""
    position: np.ndarray
    inliers_data: InliersData
    method: RobustMethod
    iterations: int
    transmitted_power_dbm: Optional[float] = None
    path_loss_exponent: Optional[float] = None
    covariance: Optional[np.ndarray] = None
    position_covariance: Optional[np.ndarray] = None
    parameter_names: tuple = field(default_factory=tuple)
    refined: bool = False

    def variance_of(self, name: str) -> Optional[float]:
        """Variance of a fitted parameter, if a covariance was kept."""
        if self.covariance is None or name not in self.parameter_names:
            return None
        index = self.parameter_names.index(name)
        return float(self.covariance[index, index])

    @property
    def transmitted_power_variance(self) -> Optional[float]:
        return self.variance_of("transmitted_power_dbm")

    @property
    def path_loss_exponent_variance(self) -> Optional[float]:
        return self.variance_of("path_loss_exponent")
