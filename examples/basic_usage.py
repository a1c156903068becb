"""Basic usage example for radiolocus."""

import numpy as np
from radiolocus import EstimatorListener, RobustMethod, RobustRangingEstimator
from radiolocus.utils.simulation import random_positions, ranging_readings


class ProgressPrinter(EstimatorListener):
    """Print estimation progress."""

    def on_estimate_progress_change(self, estimator, progress):
        print(f"  progress {progress:.0%}")


def main():
    """Locate a simulated radio source from contaminated distances."""
    rng = np.random.default_rng(42)
    source_position = np.array([12.0, -4.0, 2.5])

    # Simulate readings, 20% of them outliers
    positions = random_positions(80, 3, rng=rng)
    readings, errors = ranging_readings(source_position, positions,
                                        outlier_ratio=0.2, rng=rng)
    print(f"Simulated {len(readings)} readings, {np.count_nonzero(errors)} outliers")

    # Estimate
    estimator = RobustRangingEstimator(readings, method=RobustMethod.RANSAC,
                                       listener=ProgressPrinter(), seed=0)
    print("Estimating...")
    result = estimator.estimate()

    print(f"Estimated position: {np.round(result.position, 4)}")
    print(f"True position:      {source_position}")
    print(f"Inliers: {result.inliers_data.num_inliers}/{len(readings)} "
          f"after {result.iterations} iterations")
    if result.position_covariance is not None:
        print(f"Position standard deviations: "
              f"{np.sqrt(np.diag(result.position_covariance))}")


if __name__ == "__main__":
    main()
