"""Tests for the estimator factory."""

import copy

import pytest
import numpy as np
from conftest import SOURCE_POSITION, TRANSMITTED_POWER_DBM, make_rssi_readings
from radiolocus import (RobustRangingAndRssiEstimator, RobustRangingEstimator,
                        RobustRssiEstimator, RobustMethod, create_estimator)
from radiolocus.config import DEFAULT_CONFIG


class TestCreateEstimator:
    """Test create_estimator."""

    def test_estimator_types(self):
        """Test each measurement kind builds its estimator."""
        assert type(create_estimator('ranging')) is RobustRangingEstimator
        assert type(create_estimator('rssi')) is RobustRssiEstimator
        assert type(create_estimator('ranging_rssi')) is RobustRangingAndRssiEstimator

    def test_unknown_measurement(self):
        """Test unknown measurement kinds are rejected."""
        with pytest.raises(ValueError):
            create_estimator('doppler')

    def test_methods(self):
        """Test method from argument, name or configuration."""
        assert create_estimator('ranging').method is RobustMethod.PROMEDS
        assert create_estimator('ranging', RobustMethod.MSAC).method is RobustMethod.MSAC
        assert create_estimator('ranging', 'lmeds').method is RobustMethod.LMEDS

        config = copy.deepcopy(DEFAULT_CONFIG)
        config['robust']['method'] = 'ransac'
        assert create_estimator('rssi', config=config).method is RobustMethod.RANSAC

        with pytest.raises(ValueError):
            create_estimator('ranging', 'least_squares')

    def test_config_applied(self):
        """Test configuration sections become estimator settings."""
        config = copy.deepcopy(DEFAULT_CONFIG)
        config['robust'].update(threshold=0.5, confidence=0.9, max_iterations=200, seed=4)
        config['progressive']['beta'] = 0.05
        config['refinement'].update(keep_covariance=False, max_evaluations=50)
        config['lateration'].update(use_homogeneous_linear_solver=False,
                                    distance_standard_deviation=0.2)
        config['rssi'].update(frequency=5e9, path_loss_exponent=3.0,
                              path_loss_estimation=True)

        ranging = create_estimator('ranging', config=config)
        assert ranging.threshold == 0.5
        assert ranging.confidence == 0.9
        assert ranging.max_iterations == 200
        assert ranging.seed == 4
        assert ranging.beta == 0.05
        assert not ranging.keep_covariance
        assert ranging.max_evaluations == 50
        assert not ranging.homogeneous_linear_solver_used
        assert ranging.distance_standard_deviation == 0.2

        rssi = create_estimator('rssi', config=config)
        assert rssi.default_frequency == 5e9
        assert rssi.initial_path_loss_exponent == 3.0
        assert rssi.path_loss_estimation_enabled
        assert rssi.min_readings == 5

        combined = create_estimator('ranging_rssi', config=config)
        assert not combined.homogeneous_linear_solver_used
        assert combined.path_loss_estimation_enabled

    def test_options_override_config(self):
        """Test keyword options override the configuration."""
        estimator = create_estimator('ranging', threshold=0.3, refine_result=False)
        assert estimator.threshold == 0.3
        assert not estimator.refine_result

        with pytest.raises(ValueError):
            create_estimator('ranging', path_loss_estimation_enabled=True)
        with pytest.raises(ValueError):
            create_estimator('ranging', threshold=-1.0)

    def test_readings_and_quality_scores(self):
        """Test quality scores are only kept by progressive methods."""
        readings, _ = make_rssi_readings(SOURCE_POSITION, 12, with_distance=True)
        scores = np.linspace(1.0, 0.5, 12)

        progressive = create_estimator('ranging', 'prosac', readings=readings,
                                       quality_scores=scores)
        assert progressive.readings is readings
        assert progressive.quality_scores is scores
        assert progressive.is_ready

        uniform = create_estimator('ranging', 'ransac', readings=readings,
                                   quality_scores=scores)
        uniform.method = RobustMethod.PROSAC
        assert uniform.quality_scores is None

    def test_preliminary_subset_size(self):
        """Test the subset size is set after readings and settings."""
        readings, _ = make_rssi_readings(SOURCE_POSITION, 12, with_distance=True)
        estimator = create_estimator('rssi', readings=readings, preliminary_subset_size=6,
                                     path_loss_estimation_enabled=True)
        assert estimator.min_readings == 5
        assert estimator.preliminary_subset_size == 6

        with pytest.raises(ValueError):
            create_estimator('rssi', preliminary_subset_size=4,
                             path_loss_estimation_enabled=True)

    def test_end_to_end(self):
        """Test estimation through the factory."""
        readings, _ = make_rssi_readings(SOURCE_POSITION, 40, outlier_ratio=0.2, seed=2,
                                         with_distance=True)
        estimator = create_estimator('ranging_rssi', 'msac', readings=readings, seed=1)
        result = estimator.estimate()

        assert np.allclose(result.position, SOURCE_POSITION, atol=1e-6)
        assert result.transmitted_power_dbm == pytest.approx(TRANSMITTED_POWER_DBM, abs=1e-5)
        assert result.inliers_data.num_inliers == 32
