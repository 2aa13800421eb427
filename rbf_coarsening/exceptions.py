"""Custom exceptions for rbf_coarsening package"""

class RBFCoarseningError(Exception):
    """Base exception for rbf_coarsening package"""
    pass

class ConfigurationError(RBFCoarseningError):
    """Raised for invalid coarsening parameters"""
    pass

class SelectionError(RBFCoarseningError):
    """Raised when a selection buffer does not match the selected indices"""
    pass

class DistributionError(RBFCoarseningError):
    """Raised for inconsistent row ownership between distributed matrices"""
    pass

class InterpolationError(RBFCoarseningError):
    """Raised when an RBF system cannot be built or evaluated"""
    pass

class ConvergenceWarning(UserWarning):
    """Issued when the selection is capped at max_points above tolerance"""
    pass
