"""
RBF_COARSENING: Adaptive point selection for RBF mesh interpolation
"""

__version__ = "0.1.0"

# Main API
from .coarsening import (
    AdaptiveCoarsening,
    NoCoarsening,
)

# Core components (for advanced users)
from .interpolation import RBFInterpolation
from .projection import project, select_data
from .distributed import DistributedMatrix, SerialComm, as_distributed, block_owners
from .kernels import (
    RBFFunction,
    WendlandC0Function,
    WendlandC2Function,
    WendlandC4Function,
    WendlandC6Function,
    GaussianFunction,
    InverseMultiquadricFunction,
    get_function,
)

# Exceptions
from .exceptions import (
    RBFCoarseningError,
    ConfigurationError,
    SelectionError,
    DistributionError,
    InterpolationError,
    ConvergenceWarning,
)

__all__ = [
    # Main API
    'AdaptiveCoarsening',
    'NoCoarsening',

    # Core components
    'RBFInterpolation',
    'project',
    'select_data',
    'DistributedMatrix',
    'SerialComm',
    'as_distributed',
    'block_owners',

    # RBF functions
    'RBFFunction',
    'WendlandC0Function',
    'WendlandC2Function',
    'WendlandC4Function',
    'WendlandC6Function',
    'GaussianFunction',
    'InverseMultiquadricFunction',
    'get_function',

    # Exceptions
    'RBFCoarseningError',
    'ConfigurationError',
    'SelectionError',
    'DistributionError',
    'InterpolationError',
    'ConvergenceWarning',
]
