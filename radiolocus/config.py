"""
Configuration management for radiolocus
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml


CONFIG_ENV_VAR = "RADIOLOCUS_CONFIG"

DEFAULT_CONFIG = {
    "robust": {
        "method": "promeds",
        "threshold": 0.1,
        "stop_threshold": 1e-4,
        "inlier_factor": 1.5,
        "confidence": 0.99,
        "max_iterations": 5000,
        "progress_delta": 0.05,
        "seed": None
    },
    "progressive": {
        "beta": 0.01,
        "non_random_threshold": 0.05
    },
    "refinement": {
        "refine_result": True,
        "keep_covariance": True,
        "use_reading_position_covariances": True,
        "max_evaluations": 1000
    },
    "lateration": {
        "use_homogeneous_linear_solver": True,
        "distance_standard_deviation": 1.0
    },
    "rssi": {
        "frequency": 2.4e9,
        "path_loss_exponent": 2.0,
        "power_standard_deviation": 1.0,
        "transmitted_power_estimation": True,
        "path_loss_estimation": False
    },
    "logging": {
        "level": "INFO",
        "file": None
    }
}


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides on top of defaults."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(defaults.get(key), dict):
            _merge(defaults[key], value)
        else:
            defaults[key] = value
    return defaults


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file merged over DEFAULT_CONFIG.

    Args:
        config_file: Path to a YAML file. Falls back to the RADIOLOCUS_CONFIG
            environment variable, then to the defaults alone.

    Returns:
        A new configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_file = config_file or os.environ.get(CONFIG_ENV_VAR)
    if not config_file or not os.path.exists(config_file):
        return config

    with open(config_file, "r", encoding="utf-8") as f:
        overrides = yaml.safe_load(f) or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {config_file} must contain a mapping")
    return _merge(config, overrides)
