"""
Adaptive coarsening for RBF mesh interpolation.

Instead of using every source point as an RBF center, a greedy algorithm
selects a small subset: starting from two seed points, the point with the
largest interpolation error is added until the error relative to the
largest value drops below a tolerance. The selection is kept for later
calls as long as its error on the new data stays below a looser
reselection tolerance.
"""

from typing import Dict, List, Tuple
import warnings

from .distributed import DistributedMatrix, SerialComm, as_distributed
from .exceptions import (
    ConfigurationError,
    ConvergenceWarning,
    DistributionError,
    InterpolationError,
)
from .interpolation import RBFInterpolation
from .kernels import RBFFunction
from .projection import project


class AdaptiveCoarsening:
    """
    Greedy selection of RBF centers driven by the interpolation error.

    Two interpolants are kept: a coarse one from the selected points to
    all source positions, used to measure the error during selection, and
    the production one from the selected points to the interpolation
    positions, used by ``interpolate()``.

    Attributes
    ----------
    tol : float
        Relative error tolerance of the greedy selection
    reselection_tol : float
        Relative error above which a converged selection is redone
    min_points, max_points : int
        Bounds on the number of selected points
    selected_positions : List[int]
        Selected source rows, in selection order
    diagnostics : Dict
        Report of the last selection and reselection check

    Examples
    --------
    >>> coarsening = AdaptiveCoarsening(1e-3, 1e-2, 10, 200)
    >>> coarsening.compute(WendlandC2Function(radius=2.0), positions, positions_fluid)
    >>> displacement_fluid = coarsening.interpolate(displacement)
    """

    def __init__(
        self,
        tol: float,
        reselection_tol: float,
        min_points: int,
        max_points: int,
        comm=None,
        verbose: bool = True
    ) -> None:
        """
        :param tol: Relative error tolerance, 0 < tol <= 1
        :param reselection_tol: Reselection tolerance, >= tol
        :param min_points: Minimum number of selected points
        :param max_points: Maximum number of selected points, >= min_points
        :param comm: mpi4py-style communicator, serial if omitted
        :param verbose: Print selection reports on rank 0
        """
        if not 0 < tol <= 1:
            raise ConfigurationError(f"tol must satisfy 0 < tol <= 1, got {tol}")
        if reselection_tol < tol:
            raise ConfigurationError(
                f"reselection_tol ({reselection_tol}) must be >= tol ({tol})"
            )
        if min_points < 0:
            raise ConfigurationError(f"min_points must be non-negative, got {min_points}")
        if max_points < 1:
            raise ConfigurationError(f"max_points must be at least 1, got {max_points}")
        if max_points < min_points:
            raise ConfigurationError(
                f"max_points ({max_points}) must be >= min_points ({min_points})"
            )

        self.tol = tol
        self.reselection_tol = reselection_tol
        self.min_points = int(min_points)
        self.max_points = int(max_points)
        self.comm = comm if comm is not None else SerialComm()
        self.rank = self.comm.Get_rank()
        self.verbose = verbose

        self.function = None
        self.positions = None
        self.positions_interpolation = None
        self.selected_positions: List[int] = []
        self.rbf = RBFInterpolation()
        self.rbf_coarse = None
        self.diagnostics = None

    def compute(
        self,
        function: RBFFunction,
        positions,
        positions_interpolation
    ) -> None:
        """
        Store the data of a new coupling cycle and reset the selection.

        Selection itself is deferred to the first ``interpolate()`` call.

        :param function: Radial basis function
        :param positions: Source positions, shape (n_points, dim)
        :param positions_interpolation: Target positions, shape (n_targets, dim)
        """
        positions = as_distributed(positions, comm=self.comm)
        positions_interpolation = as_distributed(positions_interpolation, comm=self.comm)

        if positions.width != positions_interpolation.width:
            raise InterpolationError(
                f"Source positions have dimension {positions.width}, "
                f"interpolation positions have dimension {positions_interpolation.width}"
            )

        self.function = function
        self.positions = positions
        self.positions_interpolation = positions_interpolation
        self.selected_positions = []
        self.rbf = RBFInterpolation()
        self.rbf_coarse = None
        self.diagnostics = None

    @property
    def initialized(self) -> bool:
        return self.rbf.initialized or (
            self.positions is not None and self.positions.height > 0
        )

    def _point_limits(self) -> Tuple[int, int]:
        n_points = self.positions.height
        return min(self.min_points, n_points), min(self.max_points, n_points)

    def _check_values(self, values) -> DistributedMatrix:
        if self.positions is None:
            raise InterpolationError("Coarsening not computed. Call compute() first.")

        values = as_distributed(values, comm=self.positions.comm, like=self.positions)

        if values.height != self.positions.height:
            raise InterpolationError(
                f"Expected values at {self.positions.height} positions, got {values.height} rows"
            )
        if not values.is_aligned(self.positions):
            raise DistributionError("Values must be distributed like the source positions")

        return values

    def _error_norms(self, values: DistributedMatrix) -> Tuple[DistributedMatrix, float]:
        """Row-wise error of the coarse interpolant and the largest row norm of values."""
        if self.rbf_coarse is None:
            raise InterpolationError(
                "No coarse interpolant available. Call greedy_selection() first."
            )

        values_coarse = project(values, self.selected_positions)
        result = self.rbf_coarse.interpolate(values_coarse)

        diff = values.copy()
        diff.axpy(-1.0, result)

        return diff.row_norms(), values.row_norms().max_abs()

    @staticmethod
    def _relative_error(errors: DistributedMatrix, max_value: float) -> Tuple[int, float]:
        index, max_error = errors.max_abs_loc()
        if max_value != 0:
            return index, max_error / max_value
        return index, max_error

    def compute_error(self, values) -> Tuple[int, float]:
        """
        Largest interpolation error of the current coarse interpolant.

        The error is relative to the largest row norm of ``values``, or
        absolute when all values are zero.

        :param values: Values at the source positions, shape (n_points, n_components)
        :return: (row with the largest error, error)
        """
        values = self._check_values(values)
        errors, max_value = self._error_norms(values)
        return self._relative_error(errors, max_value)

    def _build_coarse_interpolant(self) -> None:
        positions_coarse = project(self.positions, self.selected_positions)
        self.rbf_coarse = RBFInterpolation(self.function, positions_coarse, self.positions)

    def _select_seed_points(self, values: DistributedMatrix, max_points: int) -> None:
        """
        The first point has the largest value, the second point is the
        point farthest away from the first one.
        """
        self.selected_positions = []

        first, _ = values.row_norms().max_abs_loc()
        self.selected_positions.append(first)

        distance = self.positions.copy()
        distance.local -= self.positions.get_row(first)
        second, max_distance = distance.row_norms().max_abs_loc()

        # All positions coincide with the first point
        if max_distance > 0 and max_points > 1:
            self.selected_positions.append(second)

    def greedy_selection(self, values, clear: bool = True) -> float:
        """
        Grow the selection until the coarse interpolant meets ``tol``.

        The loop stops at ``max_points`` even when the tolerance is not
        met; the achieved error is returned in both cases.

        :param values: Values at the source positions, shape (n_points, n_components)
        :param clear: Restart from the seed points instead of growing the
            current selection
        :return: Relative error of the final selection
        """
        values = self._check_values(values)
        min_points, max_points = self._point_limits()

        if clear or len(self.selected_positions) < 2:
            self._select_seed_points(values, max_points)

        error = 0.0
        n_iterations = 0

        for _ in range(max_points):
            self._build_coarse_interpolant()
            errors, max_value = self._error_norms(values)
            _, error = self._relative_error(errors, max_value)
            n_iterations += 1

            if len(self.selected_positions) >= max_points:
                break

            if error < self.tol and len(self.selected_positions) >= min_points:
                break

            index, _ = errors.max_abs_loc(exclude=self.selected_positions)
            self.selected_positions.append(index)

        converged = error < self.tol
        self.diagnostics = {
            'n_selected': len(self.selected_positions),
            'n_points': self.positions.height,
            'error': error,
            'tol': self.tol,
            'converged': converged,
            'n_iterations': n_iterations,
        }

        if self.rank == 0:
            if self.verbose:
                print(
                    f"RBF interpolation coarsening: selected "
                    f"{len(self.selected_positions)}/{self.positions.height} points, "
                    f"error = {error:.4e}, tol = {self.tol:.4e}"
                )
            if not converged:
                warnings.warn(
                    f"Coarsening stopped at max_points = {max_points} with "
                    f"error = {error:.4e} above tol = {self.tol:.4e}",
                    ConvergenceWarning
                )

        positions_coarse = project(self.positions, self.selected_positions)
        self.rbf = RBFInterpolation(self.function, positions_coarse, self.positions_interpolation)

        return error

    def interpolate(self, values) -> DistributedMatrix:
        """
        Interpolate ``values`` from the source to the interpolation positions.

        Runs the greedy selection on first use, and again whenever the
        error of the current selection reaches ``reselection_tol``.

        :param values: Values at the source positions, shape (n_points, n_components)
        :return: Values at the interpolation positions, shape (n_targets, n_components)
        """
        values = self._check_values(values)
        greedy_performed = False

        if not self.rbf.initialized:
            # Values without information (e.g. before any displacement) do
            # not drive a selection
            if values.max_abs() > 0:
                self.greedy_selection(values)
                greedy_performed = True
            else:
                targets = self.positions_interpolation
                return DistributedMatrix.zeros(
                    targets.height, values.width, comm=targets.comm, owners=targets.owners
                )

        if not greedy_performed:
            _, error = self.compute_error(values)
            reselection = error >= self.reselection_tol

            if self.rank == 0 and self.verbose:
                print(
                    f"RBF interpolation coarsening: error = {error:.4e}, "
                    f"tol = {self.reselection_tol:.4e}, "
                    f"reselection = {str(reselection).lower()}"
                )

            if reselection:
                # Small selections are cheap to redo from scratch, large
                # ones are extended
                clear = 2 * len(self.selected_positions) < self.max_points
                self.greedy_selection(values, clear=clear)

            self.diagnostics.update({
                'reselection_error': error,
                'reselection_tol': self.reselection_tol,
                'reselection': reselection,
            })

        selected_values = project(values, self.selected_positions)
        return self.rbf.interpolate(selected_values)

    def get_selection_info(self) -> Dict:
        """
        Summary of the current selection.

        :return: Dict with the selected rows and the last diagnostics
        """
        return {
            'selected_positions': list(self.selected_positions),
            'n_selected': len(self.selected_positions),
            'n_points': self.positions.height if self.positions is not None else 0,
            'diagnostics': dict(self.diagnostics) if self.diagnostics else {},
        }


class NoCoarsening:
    """
    Interpolation from every source point, without selection.

    Same interface as ``AdaptiveCoarsening``; serves as the reference the
    coarsened interpolation is compared against.
    """

    def __init__(self, comm=None):
        self.comm = comm if comm is not None else SerialComm()
        self.positions = None
        self.rbf = RBFInterpolation()

    def compute(self, function: RBFFunction, positions, positions_interpolation) -> None:
        self.positions = as_distributed(positions, comm=self.comm)
        positions_interpolation = as_distributed(positions_interpolation, comm=self.comm)
        self.rbf = RBFInterpolation(function, self.positions, positions_interpolation)

    @property
    def initialized(self) -> bool:
        return self.rbf.initialized

    def interpolate(self, values) -> DistributedMatrix:
        if not self.initialized:
            raise InterpolationError("Interpolation not computed. Call compute() first.")
        values = as_distributed(values, comm=self.positions.comm, like=self.positions)
        return self.rbf.interpolate(values)
