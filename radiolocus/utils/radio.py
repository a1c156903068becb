"""Radio propagation helpers for the log-distance path-loss model."""

import math
from typing import Optional

import numpy as np


SPEED_OF_LIGHT = 299792458.0

# smallest squared distance used in log terms, avoids log10(0) when a
# hypothesis lands exactly on a reading position
MIN_SQR_DISTANCE = 1e-12


def dbm_to_power(value_dbm: float) -> float:
    """Convert dBm to milliwatts."""
    return math.pow(10.0, value_dbm / 10.0)


def power_to_dbm(value_mw: float) -> float:
    """Convert milliwatts to dBm."""
    return 10.0 * math.log10(value_mw)


def path_loss_constant_db(frequency: float) -> float:
    """Return 10*log10(c / (4*pi*f)), the per-exponent free-space constant."""
    return 10.0 * math.log10(SPEED_OF_LIGHT / (4.0 * math.pi * frequency))


def expected_rssi(sqr_distances: np.ndarray, k_db: np.ndarray,
                  transmitted_power_dbm: float,
                  path_loss_exponent: float) -> np.ndarray:
    """
    Received power predicted by the log-distance model.

    Pr (dBm) = n*k_db + Pte (dBm) - 5*n*log10(d^2)
    """
    sqr_distances = np.maximum(sqr_distances, MIN_SQR_DISTANCE)
    return (path_loss_exponent * k_db + transmitted_power_dbm
            - 5.0 * path_loss_exponent * np.log10(sqr_distances))


def average_accuracy(covariance: Optional[np.ndarray]) -> float:
    """
    Average standard deviation along the principal axes of a covariance.

    Returns 0.0 when no covariance is available or it is not positive
    semi-definite.
    """
    if covariance is None:
        return 0.0
    cov = np.asarray(covariance, dtype=float)
    if not np.allclose(cov, cov.T):
        return 0.0
    eigenvalues = np.linalg.eigvalsh(cov)
    if np.any(eigenvalues < 0):
        return 0.0
    return float(np.mean(np.sqrt(eigenvalues)))


def rssi_std_from_position_std(position_std: np.ndarray, distances: np.ndarray,
                               path_loss_exponent: float) -> np.ndarray:
    """Propagate a position standard deviation (meters) into dB."""
    distances = np.maximum(distances, math.sqrt(MIN_SQR_DISTANCE))
    return 10.0 * path_loss_exponent * position_std / (math.log(10.0) * distances)
