"""Minimal-subset and refinement solvers."""

from .fitting import FitResult, WeightedLeastSquaresFitter
from .lateration import LinearLaterationSolver, NonLinearLaterationSolver
from .rssi import RangingRssiSolver, RssiSolver, solve_power_and_exponent

__all__ = [
    'FitResult',
    'WeightedLeastSquaresFitter',
    'LinearLaterationSolver',
    'NonLinearLaterationSolver',
    'RangingRssiSolver',
    'RssiSolver',
    'solve_power_and_exponent',
]
