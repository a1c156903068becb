"""Synthetic readings around a known radio source."""

from typing import List, Optional, Tuple

import numpy as np

from radiolocus.models import DEFAULT_FREQUENCY, RadioSource, Reading
from radiolocus.utils.radio import expected_rssi, path_loss_constant_db


def random_positions(n: int, dims: int = 3, extent: float = 50.0,
                     rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Uniform positions in [-extent, extent]^dims."""
    rng = rng if rng is not None else np.random.default_rng()
    return rng.uniform(-extent, extent, size=(n, dims))


def _errors(n: int, outlier_ratio: float, outlier_std: float,
            rng: np.random.Generator) -> np.ndarray:
    """Gaussian gross errors added to a random subset of the readings."""
    outliers = np.zeros(n, dtype=bool)
    n_outliers = int(round(outlier_ratio * n))
    outliers[rng.choice(n, n_outliers, replace=False)] = True
    errors = np.where(outliers, rng.normal(0.0, outlier_std, n), 0.0)
    return errors


def quality_scores_from_errors(errors: np.ndarray) -> np.ndarray:
    """Quality score 1 / (1 + |error|): exact readings score 1."""
    return 1.0 / (1.0 + np.abs(errors))


def ranging_readings(source_position: np.ndarray, positions: np.ndarray,
                     outlier_ratio: float = 0.0, outlier_std: float = 10.0,
                     source: Optional[RadioSource] = None,
                     distance_std: Optional[float] = None,
                     rng: Optional[np.random.Generator] = None
                     ) -> Tuple[List[Reading], np.ndarray]:
    """
    Distance readings, a fraction of them corrupted by gaussian errors.

    Returns:
        Tuple of (readings, errors added to each distance)
    """
    rng = rng if rng is not None else np.random.default_rng()
    positions = np.asarray(positions, dtype=float)
    distances = np.linalg.norm(positions - source_position, axis=1)
    errors = _errors(len(positions), outlier_ratio, outlier_std, rng)
    readings = [Reading(position=p, source=source, distance=abs(d + e),
                        distance_std=distance_std)
                for p, d, e in zip(positions, distances, errors)]
    return readings, errors


def rssi_values(source_position: np.ndarray, positions: np.ndarray,
                transmitted_power_dbm: float, path_loss_exponent: float = 2.0,
                frequency: Optional[float] = None) -> np.ndarray:
    """Exact RSSI of each position under the log-distance model."""
    frequency = frequency if frequency is not None else DEFAULT_FREQUENCY
    sqr_distances = np.sum((np.asarray(positions) - source_position) ** 2, axis=1)
    return expected_rssi(sqr_distances, path_loss_constant_db(frequency),
                         transmitted_power_dbm, path_loss_exponent)


def rssi_readings(source_position: np.ndarray, positions: np.ndarray,
                  transmitted_power_dbm: float, path_loss_exponent: float = 2.0,
                  outlier_ratio: float = 0.0, outlier_std: float = 10.0,
                  source: Optional[RadioSource] = None,
                  rssi_std: Optional[float] = None,
                  rng: Optional[np.random.Generator] = None
                  ) -> Tuple[List[Reading], np.ndarray]:
    """RSSI readings, a fraction of them corrupted by gaussian errors (dB)."""
    rng = rng if rng is not None else np.random.default_rng()
    frequency = source.frequency if source is not None else None
    rssi = rssi_values(source_position, positions, transmitted_power_dbm,
                       path_loss_exponent, frequency)
    errors = _errors(len(positions), outlier_ratio, outlier_std, rng)
    readings = [Reading(position=p, source=source, rssi=r + e, rssi_std=rssi_std)
                for p, r, e in zip(np.asarray(positions, dtype=float), rssi, errors)]
    return readings, errors


def ranging_rssi_readings(source_position: np.ndarray, positions: np.ndarray,
                          transmitted_power_dbm: float, path_loss_exponent: float = 2.0,
                          outlier_ratio: float = 0.0, outlier_std: float = 10.0,
                          source: Optional[RadioSource] = None,
                          rng: Optional[np.random.Generator] = None
                          ) -> Tuple[List[Reading], np.ndarray]:
    """Readings with both a distance and an RSSI value; outliers corrupt both."""
    rng = rng if rng is not None else np.random.default_rng()
    positions = np.asarray(positions, dtype=float)
    frequency = source.frequency if source is not None else None
    distances = np.linalg.norm(positions - source_position, axis=1)
    rssi = rssi_values(source_position, positions, transmitted_power_dbm,
                       path_loss_exponent, frequency)
    errors = _errors(len(positions), outlier_ratio, outlier_std, rng)
    readings = [Reading(position=p, source=source, distance=abs(d + e), rssi=r + e)
                for p, d, r, e in zip(positions, distances, rssi, errors)]
    return readings, errors
