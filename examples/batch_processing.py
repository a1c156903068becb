"""Batch estimation example comparing robust methods."""

import numpy as np
from radiolocus import RobustEstimatorError, RobustMethod, create_estimator
from radiolocus.config import load_config
from radiolocus.utils.logger import create_session_log_file, setup_logger
from radiolocus.utils.simulation import (quality_scores_from_errors, random_positions,
                                         ranging_rssi_readings)


def run_trial(method, config, rng):
    """Estimate one simulated source with a method."""
    source_position = rng.uniform(-20.0, 20.0, 3)
    positions = random_positions(60, 3, rng=rng)
    readings, errors = ranging_rssi_readings(source_position, positions,
                                             transmitted_power_dbm=-5.0,
                                             outlier_ratio=0.25, rng=rng)

    estimator = create_estimator('ranging_rssi', method, readings=readings,
                                 quality_scores=quality_scores_from_errors(errors),
                                 config=config)
    result = estimator.estimate()
    return {
        'position_error': float(np.linalg.norm(result.position - source_position)),
        'power_error': abs(result.transmitted_power_dbm + 5.0),
        'iterations': result.iterations,
        'inliers': result.inliers_data.num_inliers
    }


def main():
    """Run every robust method over the same simulated sources."""
    logger = setup_logger('batch_processor', log_file=create_session_log_file())
    config = load_config()

    trials = 20
    for method in RobustMethod:
        rng = np.random.default_rng(7)
        logger.info(f"Running {trials} trials with {method.name}")

        results = []
        for i in range(trials):
            try:
                results.append(run_trial(method, config, rng))
            except RobustEstimatorError as e:
                logger.warning(f"Trial {i+1} failed: {e}")

        if not results:
            continue
        errors = [r['position_error'] for r in results]
        iterations = [r['iterations'] for r in results]
        logger.info(f"{method.name}: {len(results)}/{trials} succeeded, "
                    f"median position error {np.median(errors):.2e}, "
                    f"mean iterations {np.mean(iterations):.1f}")

    logger.info("Batch processing complete!")


if __name__ == "__main__":
    main()
