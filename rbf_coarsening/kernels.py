"""
Radial basis functions for mesh interpolation.

Each function object maps an array of distances r to kernel values
phi(r). Compactly supported Wendland functions vanish for r >= radius;
the global functions use radius as a length scale. All functions are
positive definite, so interpolation needs no polynomial term.
"""

import numpy as np
from typing import Optional


class RBFFunction:
    """Base class for radial basis functions."""

    name = "base"

    def __init__(self, radius: float = 1.0):
        if radius <= 0:
            raise ValueError(f"RBF radius must be positive, got {radius}")
        self.radius = float(radius)

    def evaluate(self, r: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __call__(self, r: np.ndarray) -> np.ndarray:
        return self.evaluate(np.asarray(r, dtype=float))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(radius={self.radius})"


class WendlandC0Function(RBFFunction):
    """phi(r) = (1 - r/R)^2 for r < R."""

    name = "wendland_c0"

    def evaluate(self, r):
        s = np.clip(1.0 - r / self.radius, 0.0, None)
        return s**2


class WendlandC2Function(RBFFunction):
    """phi(r) = (1 - r/R)^4 (4 r/R + 1) for r < R."""

    name = "wendland_c2"

    def evaluate(self, r):
        xi = r / self.radius
        s = np.clip(1.0 - xi, 0.0, None)
        return s**4 * (4 * xi + 1)


class WendlandC4Function(RBFFunction):
    """phi(r) = (1 - r/R)^6 (35/3 (r/R)^2 + 6 r/R + 1) for r < R."""

    name = "wendland_c4"

    def evaluate(self, r):
        xi = r / self.radius
        s = np.clip(1.0 - xi, 0.0, None)
        return s**6 * (35.0 / 3.0 * xi**2 + 6 * xi + 1)


class WendlandC6Function(RBFFunction):
    """phi(r) = (1 - r/R)^8 (32 (r/R)^3 + 25 (r/R)^2 + 8 r/R + 1) for r < R."""

    name = "wendland_c6"

    def evaluate(self, r):
        xi = r / self.radius
        s = np.clip(1.0 - xi, 0.0, None)
        return s**8 * (32 * xi**3 + 25 * xi**2 + 8 * xi + 1)


class GaussianFunction(RBFFunction):
    """phi(r) = exp(-(r/R)^2)"""

    name = "gaussian"

    def evaluate(self, r):
        return np.exp(-(r / self.radius)**2)


class InverseMultiquadricFunction(RBFFunction):
    """phi(r) = 1 / sqrt(1 + (r/R)^2)"""

    name = "inverse_multiquadric"

    def evaluate(self, r):
        return 1.0 / np.sqrt(1.0 + (r / self.radius)**2)


# Convenience dictionary for function selection
FUNCTIONS = {
    cls.name: cls for cls in (
        WendlandC0Function,
        WendlandC2Function,
        WendlandC4Function,
        WendlandC6Function,
        GaussianFunction,
        InverseMultiquadricFunction,
    )
}


def get_function(name: str, radius: Optional[float] = None) -> RBFFunction:
    """Get a radial basis function by name."""
    if name not in FUNCTIONS:
        raise ValueError(f"Unknown RBF function: {name}. Available: {list(FUNCTIONS.keys())}")
    if radius is None:
        return FUNCTIONS[name]()
    return FUNCTIONS[name](radius)
