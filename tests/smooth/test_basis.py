"""Tests for P-spline bases, constraints and the mixed-model split."""

import numpy as np
import pytest

from neurogamm.smooth.basis import (
    Margin, SmoothBasis, mixed_split, row_kron, sum_to_zero, tensor_penalty,
)


@pytest.fixture
def x():
    return np.random.default_rng(7).uniform(8.0, 20.0, 300)


class TestMargin:

    def test_partition_of_unity(self, x):
        margin = Margin.over_range('age', x, 8)
        B = margin.evaluate(x)
        assert B.shape == (300, 8)
        np.testing.assert_allclose(B.sum(axis=1), 1.0, atol=1e-10)
        assert np.all(B >= -1e-12)

    def test_knots_cover_range(self, x):
        margin = Margin.over_range('age', x, 6)
        assert len(margin.knots) == 6 + 4
        np.testing.assert_allclose(margin.knots[3], x.min())
        np.testing.assert_allclose(margin.knots[-4], x.max())

    def test_constant_covariate(self):
        margin = Margin.over_range('age', np.full(10, 3.0), 5)
        assert np.all(np.diff(margin.knots) > 0)

    def test_penalty_null_space_is_linear(self):
        S = Margin.over_range('age', np.arange(10.0), 7).penalty()
        np.testing.assert_allclose(S @ np.ones(7), 0.0, atol=1e-12)
        np.testing.assert_allclose(S @ np.arange(7.0), 0.0, atol=1e-12)
        assert np.linalg.matrix_rank(S) == 5


class TestHelpers:

    def test_row_kron(self):
        A = np.array([[1.0, 2.0], [3.0, 4.0]])
        B = np.array([[1.0, 0.0, 1.0], [0.0, 1.0, 0.0]])
        out = row_kron(A, B)
        assert out.shape == (2, 6)
        np.testing.assert_array_equal(out[0], np.kron(A[0], B[0]))
        np.testing.assert_array_equal(out[1], np.kron(A[1], B[1]))

    def test_tensor_penalty_shape(self):
        S1 = np.diag([1.0, 2.0])
        S2 = np.diag([3.0, 4.0, 5.0])
        S = tensor_penalty([S1, S2])
        assert S.shape == (6, 6)
        np.testing.assert_allclose(S, np.kron(S1, np.eye(3)) + np.kron(np.eye(2), S2))

    def test_sum_to_zero(self, x):
        B = Margin.over_range('age', x, 6).evaluate(x)
        Zc = sum_to_zero(B)
        assert Zc.shape == (6, 5)
        np.testing.assert_allclose((B @ Zc).sum(axis=0), 0.0, atol=1e-8)
        np.testing.assert_allclose(Zc.T @ Zc, np.eye(5), atol=1e-12)

    def test_mixed_split(self):
        S = Margin.over_range('age', np.arange(10.0), 8).penalty()
        fixed_map, random_map = mixed_split(S)
        assert fixed_map.shape == (8, 2)
        assert random_map.shape == (8, 6)
        np.testing.assert_allclose(random_map.T @ S @ random_map, np.eye(6), atol=1e-8)
        np.testing.assert_allclose(S @ fixed_map, 0.0, atol=1e-8)


class TestSmoothBasis:

    def test_centred_single_smooth(self, x):
        basis = SmoothBasis.build({'age': x}, ('age',), (6,))
        B = basis.evaluate({'age': x})
        assert basis.n_coef == 5
        assert B.shape == (300, 5)
        np.testing.assert_allclose(B.sum(axis=0), 0.0, atol=1e-8)

    def test_centred_null_space_is_one_dimensional(self, x):
        basis = SmoothBasis.build({'age': x}, ('age',), (10,))
        fixed_map, random_map = mixed_split(basis.penalty)
        assert fixed_map.shape[1] == 1
        assert random_map.shape[1] == 8

    def test_uncentred(self, x):
        basis = SmoothBasis.build({'age': x}, ('age',), (6,), centred=False)
        assert basis.n_coef == 6
        assert basis.joint_constraint is None

    def test_te_dimension(self, x):
        z = np.random.default_rng(8).normal(size=300)
        basis = SmoothBasis.build({'age': x, 'snp': z}, ('age', 'snp'), (4, 5))
        assert basis.n_coef == 4 * 5 - 1
        assert basis.variables == ('age', 'snp')
        B = basis.evaluate({'age': x, 'snp': z})
        np.testing.assert_allclose(B.sum(axis=0), 0.0, atol=1e-8)

    def test_ti_dimension(self, x):
        z = np.random.default_rng(8).normal(size=300)
        basis = SmoothBasis.build({'age': x, 'snp': z}, ('age', 'snp'), (4, 5),
                                  interaction_only=True)
        assert basis.n_coef == 3 * 4
        assert basis.joint_constraint is None
        assert len(basis.constraints) == 2

    def test_evaluate_new_points_extrapolates(self, x):
        basis = SmoothBasis.build({'age': x}, ('age',), (6,))
        B = basis.evaluate({'age': np.array([x.min() - 1.0, x.max() + 1.0])})
        assert B.shape == (2, 5)
        assert np.all(np.isfinite(B))
