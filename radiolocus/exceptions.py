"""Errors raised by radiolocus estimators."""


class RadioLocusError(Exception):
    """Base class for estimation errors."""


class LockedError(RadioLocusError):
    """Raised when an estimator is modified or re-entered while estimating."""

    def __init__(self, message: str = "Estimator is locked while estimating"):
        super().__init__(message)


class NotReadyError(RadioLocusError):
    """Raised when estimate() is called before the estimator is ready."""

    def __init__(self, message: str = "Estimator is not ready"):
        super().__init__(message)


class SolverError(RadioLocusError):
    """Raised by a solver when its system is degenerate or does not converge."""


class RobustEstimatorError(RadioLocusError):
    """
    Raised when robust estimation fails.

    Attributes:
        consensus: Unrefined result available when only refinement failed
    """

    def __init__(self, message: str, consensus=None):
        super().__init__(message)
        self.consensus = consensus
