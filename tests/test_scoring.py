"""Tests for hypothesis scoring policies."""

import pytest
import numpy as np
from radiolocus.robust.scoring import (MAD_SCALE, ConsensusScoring, MedianScoring,
                                       TruncatedCostScoring)


class TestConsensusScoring:
    """Test inlier count scoring."""
    
    def test_count(self):
        """Test inliers are residuals strictly below the threshold."""
        scorer = ConsensusScoring(0.1)
        score = scorer.score(np.array([0.05, 0.2, 0.01, 0.1]), 2)
        assert score.fitness == 2
        assert score.num_inliers == 2
        assert score.inliers.tolist() == [True, False, True, False]
        assert score.tie_breaker == pytest.approx(0.06)
        assert score.threshold == 0.1
    
    def test_more_inliers_is_better(self):
        """Test higher count wins."""
        scorer = ConsensusScoring(0.1)
        best = scorer.score(np.array([0.01, 0.01, 0.5]), 2)
        worse = scorer.score(np.array([0.01, 0.5, 0.5]), 2)
        assert scorer.is_better(best, worse)
        assert not scorer.is_better(worse, best)
    
    def test_tie_break(self):
        """Test equal counts are broken by the lower inlier residual sum."""
        scorer = ConsensusScoring(0.1)
        tight = scorer.score(np.array([0.01, 0.01, 0.5]), 2)
        loose = scorer.score(np.array([0.09, 0.09, 0.5]), 2)
        assert scorer.is_better(tight, loose)
        assert not scorer.is_better(loose, tight)
        assert not scorer.is_better(tight, tight)
        assert not scorer.converged(tight)


class TestTruncatedCostScoring:
    """Test MSAC scoring."""
    
    def test_cost(self):
        """Test squared residuals truncated at the squared threshold."""
        scorer = TruncatedCostScoring(0.1)
        score = scorer.score(np.array([0.0, 0.05, 1.0, np.inf]), 2)
        assert score.fitness == pytest.approx(0.0025 + 0.01 + 0.01)
        assert score.inliers.tolist() == [True, True, False, False]
    
    def test_lower_is_better(self):
        """Test lower cost wins even with equal inlier counts."""
        scorer = TruncatedCostScoring(0.1)
        tight = scorer.score(np.array([0.01, 0.01, 0.5]), 2)
        loose = scorer.score(np.array([0.09, 0.09, 0.5]), 2)
        assert scorer.is_better(tight, loose)
        assert not scorer.is_better(loose, tight)


class TestMedianScoring:
    """Test LMedS scoring."""
    
    def test_median_and_threshold(self):
        """Test derived threshold from the robust standard deviation."""
        scorer = MedianScoring(stop_threshold=1e-4, inlier_factor=1.5)
        residuals = np.array([1.0, 2.0, 3.0, 4.0, 50.0])
        score = scorer.score(residuals, 2)
        
        assert score.fitness == pytest.approx(9.0)
        expected = 1.5 * MAD_SCALE * (1.0 + 5.0 / 3.0) * 3.0
        assert score.threshold == pytest.approx(expected)
        assert score.inliers.tolist() == [True, True, True, True, False]
    
    def test_threshold_floor(self):
        """Test the derived threshold never falls below the stop threshold."""
        scorer = MedianScoring(stop_threshold=1e-3)
        score = scorer.score(np.zeros(6), 3)
        assert score.threshold == 1e-3
        assert score.num_inliers == 6
        assert scorer.converged(score)
    
    def test_lower_median_is_better(self):
        """Test lower median wins and convergence needs a small median."""
        scorer = MedianScoring(stop_threshold=1e-4)
        good = scorer.score(np.array([0.1, 0.1, 0.2, 5.0]), 2)
        bad = scorer.score(np.array([1.0, 1.0, 2.0, 5.0]), 2)
        assert scorer.is_better(good, bad)
        assert not scorer.is_better(bad, good)
        assert not scorer.converged(good)
    
    def test_infinite_residuals(self):
        """Test infinite residuals are outliers."""
        scorer = MedianScoring(stop_threshold=1e-4)
        score = scorer.score(np.array([0.0, 0.0, 0.0, np.inf]), 2)
        assert score.fitness == 0.0
        assert score.inliers.tolist() == [True, True, True, False]
    
    def test_support_is_lower_half(self):
        """Test a loose derived threshold does not widen the support."""
        scorer = MedianScoring(stop_threshold=1e-4)
        residuals = np.array([1.0, 1.5, 2.0, 2.5, 3.0, 3.5])
        score = scorer.score(residuals, 2)
        
        assert score.num_inliers == 6
        assert score.support.tolist() == [True, True, True, False, False, False]
        assert not scorer.confirmable
    
    def test_support_of_exact_fit(self):
        """Test readings within the stop threshold all support an exact fit."""
        scorer = MedianScoring(stop_threshold=1e-4)
        score = scorer.score(np.array([0.0, 0.0, 0.0, 0.0, 4.0]), 2)
        assert score.support.tolist() == [True, True, True, True, False]
    
    def test_consensus_support_is_inliers(self):
        """Test fixed threshold scorers report their inliers as support."""
        scorer = ConsensusScoring(threshold=0.1)
        score = scorer.score(np.array([0.05, 0.2]), 1)
        assert score.support is score.inliers
        assert scorer.confirmable
