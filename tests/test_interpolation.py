"""
Unit tests for rbf_coarsening.interpolation module.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the package to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from rbf_coarsening.distributed import DistributedMatrix
from rbf_coarsening.interpolation import RBFInterpolation
from rbf_coarsening.kernels import FUNCTIONS, WendlandC2Function, GaussianFunction
from rbf_coarsening.exceptions import InterpolationError


class TestRBFInterpolation:
    """Test RBF interpolation for a fixed set of centers"""

    def setup_method(self):
        rng = np.random.default_rng(7)
        self.centers = rng.uniform(0, 1, size=(15, 2))
        self.targets = rng.uniform(0, 1, size=(40, 2))
        self.values = np.column_stack([
            np.sin(self.centers[:, 0]),
            self.centers[:, 0] * self.centers[:, 1],
        ])
        self.function = WendlandC2Function(radius=1.5)

    def test_not_initialized_by_default(self):
        rbf = RBFInterpolation()
        assert not rbf.initialized

    def test_interpolate_before_compute(self):
        with pytest.raises(InterpolationError, match="Call compute\\(\\) first"):
            RBFInterpolation().interpolate(DistributedMatrix.zeros(3, 1))

    def test_reproduces_values_at_centers(self):
        centers = DistributedMatrix.from_global(self.centers)
        rbf = RBFInterpolation(self.function, centers, centers)
        assert rbf.initialized
        assert rbf.n_centers == 15

        result = rbf.interpolate(DistributedMatrix.from_global(self.values))
        np.testing.assert_allclose(result.to_global(), self.values, atol=1e-8)

    def test_result_shape_follows_targets(self):
        rbf = RBFInterpolation(
            self.function,
            DistributedMatrix.from_global(self.centers),
            DistributedMatrix.from_global(self.targets),
        )
        result = rbf.interpolate(DistributedMatrix.from_global(self.values))
        assert result.shape == (40, 2)

    def test_linear_in_values(self):
        rbf = RBFInterpolation(
            GaussianFunction(radius=0.5),
            DistributedMatrix.from_global(self.centers),
            DistributedMatrix.from_global(self.targets),
        )
        a = rbf.interpolate(DistributedMatrix.from_global(self.values)).to_global()
        b = rbf.interpolate(DistributedMatrix.from_global(-3.0 * self.values)).to_global()
        np.testing.assert_allclose(b, -3.0 * a, rtol=1e-10, atol=1e-12)

    def test_compact_support_leaves_far_targets_at_zero(self):
        function = WendlandC2Function(radius=0.5)
        centers = DistributedMatrix.from_global(np.array([[0.0, 0.0], [1.0, 0.0]]))
        targets = DistributedMatrix.from_global(np.array([[5.0, 5.0], [0.0, 0.0]]))
        rbf = RBFInterpolation(function, centers, targets)

        result = rbf.interpolate(DistributedMatrix.from_global(np.array([2.0, 3.0])))
        np.testing.assert_array_equal(result.to_global()[:, 0], [0.0, 2.0])

    def test_coincident_centers_are_singular(self):
        centers = DistributedMatrix.from_global(np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 1.0]]))
        with pytest.raises(InterpolationError, match="singular"):
            RBFInterpolation(self.function, centers, centers)

    @pytest.mark.parametrize("name", sorted(FUNCTIONS))
    def test_single_and_unit_spaced_centers(self, name):
        """Smallest center sets of a selection are solvable for every function"""
        function = FUNCTIONS[name](radius=2.0)
        for points in ([[0.5, 0.5]], [[0.0, 0.0], [1.0, 0.0]]):
            centers = DistributedMatrix.from_global(np.array(points))
            rbf = RBFInterpolation(function, centers, centers)
            values = np.arange(1.0, len(points) + 1)
            result = rbf.interpolate(DistributedMatrix.from_global(values))
            np.testing.assert_allclose(result.to_global()[:, 0], values, atol=1e-12)

    def test_dimension_mismatch(self):
        with pytest.raises(InterpolationError, match="dimension"):
            RBFInterpolation(
                self.function,
                DistributedMatrix.from_global(self.centers),
                DistributedMatrix.from_global(np.zeros((4, 3))),
            )

    def test_no_centers(self):
        with pytest.raises(InterpolationError, match="at least one RBF center"):
            RBFInterpolation(
                self.function,
                DistributedMatrix.zeros(0, 2),
                DistributedMatrix.from_global(self.targets),
            )

    def test_wrong_number_of_values(self):
        centers = DistributedMatrix.from_global(self.centers)
        rbf = RBFInterpolation(self.function, centers, centers)
        with pytest.raises(InterpolationError, match="Expected values for 15 centers"):
            rbf.interpolate(DistributedMatrix.zeros(14, 1))

    def test_multi_rank_matches_serial(self, spmd):
        serial = RBFInterpolation(
            self.function,
            DistributedMatrix.from_global(self.centers),
            DistributedMatrix.from_global(self.targets),
        ).interpolate(DistributedMatrix.from_global(self.values)).to_global()

        def run(comm):
            rbf = RBFInterpolation(
                self.function,
                DistributedMatrix.from_global(self.centers, comm=comm),
                DistributedMatrix.from_global(self.targets, comm=comm),
            )
            return rbf.interpolate(DistributedMatrix.from_global(self.values, comm=comm)).to_global()

        for result in spmd(3, run):
            np.testing.assert_allclose(result, serial, rtol=1e-12, atol=1e-14)
