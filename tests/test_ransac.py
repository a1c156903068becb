"""Tests for the sample-consensus iteration controller."""

import pytest
import numpy as np
from radiolocus.exceptions import RobustEstimatorError
from radiolocus.robust.controller import ConsensusEstimator
from radiolocus.robust.sampling import UniformSampler
from radiolocus.robust.scoring import ConsensusScoring, MedianScoring, TruncatedCostScoring


def line_data(seed=42):
    """Noisy points on y = 2x + 1 with two gross outliers."""
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 10, 50)
    y = 2 * x + 1 + rng.normal(0, 0.1, 50)
    y[0] = 100
    y[10] = -50
    return np.column_stack([x, y])


def line_model(data):
    def model(subset):
        p1, p2 = data[subset[:2]]
        if np.isclose(p1[0], p2[0]):
            return None
        return p1, p2
    return model


def line_residuals(data):
    def residuals(model):
        p1, p2 = model
        v = (p2 - p1) / np.linalg.norm(p2 - p1)
        w = data - p1
        # distance to the line through p1 and p2
        return np.abs(w[:, 0] * v[1] - w[:, 1] * v[0])
    return residuals


class TestConsensusEstimator:
    """Test iteration controller."""
    
    def test_initialization(self):
        """Test controller parameters."""
        controller = ConsensusEstimator(UniformSampler(), ConsensusScoring(3.0))
        assert controller.confidence == 0.99
        assert controller.max_iterations == 5000
        assert controller.progress_delta == 0.05
    
    def test_line_fitting(self):
        """Test consensus with line fitting."""
        data = line_data()
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        ConsensusScoring(2.0), max_iterations=100)
        model, inliers_data, iterations = controller.fit(
            len(data), 2, line_model(data), line_residuals(data))
        
        assert model is not None
        assert 1 <= iterations <= 100
        assert inliers_data.num_inliers >= 45
        assert not inliers_data.inliers[0]
        assert not inliers_data.inliers[10]
        assert inliers_data.residuals.shape == (50,)
    
    def test_line_fitting_msac(self):
        """Test truncated cost scoring finds the same inliers."""
        data = line_data()
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(1)),
                                        TruncatedCostScoring(2.0), max_iterations=100)
        _, inliers_data, _ = controller.fit(len(data), 2, line_model(data),
                                            line_residuals(data))
        assert inliers_data.num_inliers >= 45
    
    def test_circle_fitting_median(self):
        """Test median scoring with circle fitting."""
        rng = np.random.default_rng(42)
        theta = np.linspace(0, 2 * np.pi, 100, endpoint=False)
        cx, cy, r = 5, 5, 3
        data = np.column_stack([cx + r * np.cos(theta), cy + r * np.sin(theta)])
        data[:20] += rng.uniform(5, 10, size=(20, 2))
        
        def circle_model(subset):
            # circumscribed circle of three points
            (ax, ay), (bx, by), (qx, qy) = data[subset]
            d = 2 * (ax * (by - qy) + bx * (qy - ay) + qx * (ay - by))
            if abs(d) < 1e-12:
                return None
            ux = ((ax**2 + ay**2) * (by - qy) + (bx**2 + by**2) * (qy - ay)
                  + (qx**2 + qy**2) * (ay - by)) / d
            uy = ((ax**2 + ay**2) * (qx - bx) + (bx**2 + by**2) * (ax - qx)
                  + (qx**2 + qy**2) * (bx - ax)) / d
            center = np.array([ux, uy])
            return center, np.linalg.norm(data[subset[0]] - center)
        
        def circle_residuals(model):
            center, radius = model
            return np.abs(np.linalg.norm(data - center, axis=1) - radius)
        
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        MedianScoring(stop_threshold=1e-6))
        (center, radius), inliers_data, _ = controller.fit(
            len(data), 3, circle_model, circle_residuals)
        
        assert np.allclose(center, [cx, cy], atol=1e-6)
        assert radius == pytest.approx(r, abs=1e-6)
        assert inliers_data.num_inliers == 80
    
    def test_median_stops_when_converged(self):
        """Test median scoring stops as soon as the median vanishes."""
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        MedianScoring(stop_threshold=1e-4))
        _, _, iterations = controller.fit(10, 2, lambda subset: 0.0,
                                          lambda model: np.zeros(10))
        assert iterations == 1
    
    def test_median_does_not_stop_on_poor_first_hypothesis(self):
        """Test a poor hypothesis marking every sample as inlier keeps the loop going."""
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        MedianScoring(stop_threshold=1e-4))
        models = iter(['poor', 'exact'])

        def residuals(model):
            if model == 'poor':
                return np.linspace(1.0, 2.0, 20)
            return np.r_[np.zeros(16), np.full(4, 10.0)]

        model, inliers_data, iterations = controller.fit(
            20, 2, lambda subset: next(models), residuals)

        assert model == 'exact'
        assert iterations == 2
        assert inliers_data.num_inliers == 16

    def test_no_hypothesis(self):
        """Test failure when every draw is degenerate."""
        controller = ConsensusEstimator(UniformSampler(), ConsensusScoring(1.0),
                                        max_iterations=20)
        calls = []
        
        def failing_model(subset):
            calls.append(subset)
            return None
        
        with pytest.raises(RobustEstimatorError):
            controller.fit(10, 3, failing_model, lambda model: np.zeros(10))
        assert len(calls) == 20
    
    def test_non_finite_residuals(self):
        """Test NaN residuals count as outliers."""
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        ConsensusScoring(1.0), max_iterations=5)
        residuals = np.array([0.0, np.nan, 0.5, np.inf])
        _, inliers_data, _ = controller.fit(4, 2, lambda subset: 0.0,
                                            lambda model: residuals)
        assert inliers_data.inliers.tolist() == [True, False, True, False]
        assert inliers_data.residuals[1] == np.inf
    
    def test_callbacks(self):
        """Test iteration and debounced progress notifications."""
        data = line_data()
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(3)),
                                        ConsensusScoring(0.01), max_iterations=200,
                                        progress_delta=0.1)
        iterations_seen = []
        progress_seen = []
        _, _, iterations = controller.fit(len(data), 2, line_model(data),
                                          line_residuals(data),
                                          on_iteration=iterations_seen.append,
                                          on_progress=progress_seen.append)
        
        assert iterations_seen == list(range(1, iterations + 1))
        assert len(progress_seen) <= iterations
        assert all(0.0 < p <= 1.0 for p in progress_seen)
        steps = np.diff([0.0] + progress_seen)
        assert np.all(steps >= 0.1 - 1e-12)
    
    def test_bound_never_below_iterations_done(self):
        """Test iterations stop once the adaptive bound is reached."""
        controller = ConsensusEstimator(UniformSampler(np.random.default_rng(0)),
                                        ConsensusScoring(1.0), max_iterations=1000)
        _, inliers_data, iterations = controller.fit(
            20, 2, lambda subset: 0.0, lambda model: np.zeros(20))
        assert iterations == 1
        assert inliers_data.num_inliers == 20
