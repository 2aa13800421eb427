"""
RBF interpolation for a fixed set of centers.

The interpolant f(x) = sum_j w_j phi(|x - c_j|) is fitted to the values
at the centers and evaluated at a second set of points. Center sets are
small after coarsening, so they are replicated on every rank and the
interpolation matrix is factored redundantly; the evaluation matrix only
holds the target rows owned by the local rank.
"""

import numpy as np
from scipy.linalg import lu_factor, lu_solve, LinAlgWarning
from scipy.spatial.distance import cdist
from typing import Optional
import warnings

from rbf_coarsening.distributed import DistributedMatrix
from rbf_coarsening.exceptions import InterpolationError
from rbf_coarsening.kernels import RBFFunction


class RBFInterpolation:
    """
    Interpolation from RBF centers to target positions.

    Attributes
    ----------
    function : RBFFunction
        Radial basis function used for both matrices
    n_centers : int
        Number of RBF centers
    positions_interpolation : DistributedMatrix
        Target positions; results are distributed like this matrix
    """

    def __init__(
        self,
        function: Optional[RBFFunction] = None,
        positions: Optional[DistributedMatrix] = None,
        positions_interpolation: Optional[DistributedMatrix] = None
    ):
        self.function = None
        self.n_centers = 0
        self.positions_interpolation = None
        self._lu = None
        self._phi_interpolation = None

        if function is not None:
            self.compute(function, positions, positions_interpolation)

    @property
    def initialized(self) -> bool:
        return self._lu is not None

    def compute(
        self,
        function: RBFFunction,
        positions: DistributedMatrix,
        positions_interpolation: DistributedMatrix
    ) -> None:
        """
        Factor the interpolation matrix and build the evaluation matrix.

        Collective over the communicator of ``positions``.

        :param function: Radial basis function
        :param positions: RBF centers, shape (n_centers, dim)
        :param positions_interpolation: Evaluation points, shape (n_targets, dim)
        """
        if positions is None or positions_interpolation is None:
            raise InterpolationError("Both center and target positions are required")
        if positions.height == 0:
            raise InterpolationError("Need at least one RBF center")
        if positions.width != positions_interpolation.width:
            raise InterpolationError(
                f"Centers have dimension {positions.width}, "
                f"targets have dimension {positions_interpolation.width}"
            )

        centers = positions.to_global()
        phi = function(cdist(centers, centers))

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(phi)

        if np.any(np.diag(lu) == 0):
            raise InterpolationError(
                f"RBF interpolation matrix is singular for {len(centers)} centers; "
                "check for coincident positions"
            )

        self.function = function
        self.n_centers = len(centers)
        self.positions_interpolation = positions_interpolation
        self._lu = (lu, piv)
        self._phi_interpolation = function(cdist(positions_interpolation.local, centers))

    def interpolate(self, values: DistributedMatrix) -> DistributedMatrix:
        """
        Evaluate the interpolant of ``values`` at the target positions.

        :param values: Values at the centers, shape (n_centers, n_components)
        :return: Interpolated values, shape (n_targets, n_components)
        """
        if not self.initialized:
            raise InterpolationError("RBF interpolation not computed. Call compute() first.")
        if values.height != self.n_centers:
            raise InterpolationError(
                f"Expected values for {self.n_centers} centers, got {values.height} rows"
            )

        coefficients = lu_solve(self._lu, values.to_global())
        targets = self.positions_interpolation

        return DistributedMatrix(
            targets.height,
            values.width,
            comm=targets.comm,
            owners=targets.owners,
            local=self._phi_interpolation @ coefficients
        )
