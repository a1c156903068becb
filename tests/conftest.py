"""Shared fixtures for radiolocus tests."""

import numpy as np
import pytest

from radiolocus.models import Reading
from radiolocus.utils.simulation import random_positions, rssi_values


SOURCE_POSITION = np.array([3.0, -2.0, 1.5])
SOURCE_POSITION_2D = np.array([3.0, -2.0])
TRANSMITTED_POWER_DBM = -10.0


def biased_errors(n, outlier_ratio, rng):
    """Positive gross errors of at least 5 units on a random fraction of readings."""
    errors = np.zeros(n)
    outliers = rng.choice(n, int(round(outlier_ratio * n)), replace=False)
    errors[outliers] = 5.0 + np.abs(rng.normal(0.0, 10.0, outliers.size))
    return errors


def make_ranging_readings(source_position, n, outlier_ratio=0.0, seed=0):
    rng = np.random.default_rng(seed)
    positions = random_positions(n, source_position.size, rng=rng)
    distances = np.linalg.norm(positions - source_position, axis=1)
    errors = biased_errors(n, outlier_ratio, rng)
    readings = [Reading(position=p, distance=d + e)
                for p, d, e in zip(positions, distances, errors)]
    return readings, errors > 0


def make_rssi_readings(source_position, n, outlier_ratio=0.0, seed=0,
                       path_loss_exponent=2.0, with_distance=False):
    rng = np.random.default_rng(seed)
    positions = random_positions(n, source_position.size, rng=rng)
    distances = np.linalg.norm(positions - source_position, axis=1)
    rssi = rssi_values(source_position, positions, TRANSMITTED_POWER_DBM,
                       path_loss_exponent)
    errors = biased_errors(n, outlier_ratio, rng)
    readings = [Reading(position=p, rssi=r + e,
                        distance=d + e if with_distance else None)
                for p, r, d, e in zip(positions, rssi, distances, errors)]
    return readings, errors > 0


@pytest.fixture
def ranging_readings():
    """20 exact 3D distance readings."""
    readings, _ = make_ranging_readings(SOURCE_POSITION, 20)
    return readings


@pytest.fixture
def contaminated_ranging_readings():
    """80 3D distance readings, 20% with a large positive bias."""
    return make_ranging_readings(SOURCE_POSITION, 80, outlier_ratio=0.2, seed=1)


@pytest.fixture
def rssi_readings():
    """30 exact 3D RSSI readings."""
    readings, _ = make_rssi_readings(SOURCE_POSITION, 30)
    return readings
