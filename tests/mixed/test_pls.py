"""Tests for the Penalized Least Squares solver and the profiled deviance."""

import numpy as np
import pytest
from scipy import stats

from neurogamm.mixed._deviance import deviance_from_pls, profiled_deviance_lmm
from neurogamm.mixed._pls import joint_covariance, solve_pls
from neurogamm.mixed._random_effects import (
    build_lambda, build_z_matrix, grouping_block,
)


@pytest.fixture
def small_problem():
    rng = np.random.default_rng(42)
    n_groups, n_per = 5, 20
    n = n_groups * n_per
    group = np.repeat(np.arange(n_groups), n_per)
    x = rng.normal(0, 1, n)
    X = np.column_stack([np.ones(n), x])
    y = 10.0 + 2.0 * x + rng.normal(0, 3.0, n_groups)[group] + rng.normal(0, 1.0, n)
    specs = [grouping_block('g', group)]
    return X, build_z_matrix(specs), y, specs


class TestSolvePLS:

    def test_basic_random_intercept(self, small_problem):
        X, Z, y, specs = small_problem
        result = solve_pls(X, Z, y, build_lambda(np.array([1.0]), specs))

        np.testing.assert_allclose(result.beta, [10.0, 2.0], atol=3.0)
        np.testing.assert_allclose(result.fitted + result.residuals, y, atol=1e-10)
        np.testing.assert_allclose(result.b, result.u)
        assert result.pwrss > 0

    def test_zero_theta_is_ols(self, small_problem):
        X, Z, y, specs = small_problem
        result = solve_pls(X, Z, y, build_lambda(np.array([0.0]), specs), reml=True)

        beta_ols, *_ = np.linalg.lstsq(X, y, rcond=None)
        np.testing.assert_allclose(result.beta, beta_ols, rtol=1e-8)
        np.testing.assert_allclose(result.b, 0.0)
        rss = np.sum((y - X @ beta_ols) ** 2)
        np.testing.assert_allclose(result.pwrss, rss, rtol=1e-8)
        np.testing.assert_allclose(result.sigma_sq, rss / (len(y) - 2), rtol=1e-8)

    def test_ml_variance_divides_by_n(self, small_problem):
        X, Z, y, specs = small_problem
        lam = build_lambda(np.array([0.5]), specs)
        ml = solve_pls(X, Z, y, lam, reml=False)
        np.testing.assert_allclose(ml.sigma_sq, ml.pwrss / len(y))

    def test_larger_theta_shrinks_less(self, small_problem):
        X, Z, y, specs = small_problem
        small = solve_pls(X, Z, y, build_lambda(np.array([0.1]), specs))
        large = solve_pls(X, Z, y, build_lambda(np.array([10.0]), specs))
        assert np.abs(large.b).sum() > np.abs(small.b).sum()


class TestJointCovariance:

    def test_zero_theta_matches_ols_covariance(self, small_problem):
        X, Z, y, specs = small_problem
        lam = build_lambda(np.array([0.0]), specs)
        vcov, influence = joint_covariance(X, Z, lam, sigma_sq=2.0)

        p = X.shape[1]
        np.testing.assert_allclose(vcov[:p, :p], 2.0 * np.linalg.inv(X.T @ X), rtol=1e-8)
        np.testing.assert_allclose(vcov[p:, p:], 0.0, atol=1e-12)
        np.testing.assert_allclose(influence[:p], 1.0, atol=1e-10)
        np.testing.assert_allclose(influence[p:], 0.0, atol=1e-10)

    def test_fixed_columns_have_unit_influence(self, small_problem):
        X, Z, y, specs = small_problem
        lam = build_lambda(np.array([1.3]), specs)
        vcov, influence = joint_covariance(X, Z, lam, sigma_sq=1.0)

        np.testing.assert_allclose(influence[:2], 1.0, atol=1e-8)
        assert np.all(influence[2:] > 0) and np.all(influence[2:] < 1)
        np.testing.assert_allclose(vcov, vcov.T, atol=1e-12)


class TestDeviance:

    def test_profiled_matches_pls(self, small_problem):
        X, Z, y, specs = small_problem
        theta = np.array([0.8])
        for reml in (True, False):
            pls = solve_pls(X, Z, y, build_lambda(theta, specs), reml=reml)
            np.testing.assert_allclose(
                profiled_deviance_lmm(theta, X, Z, y, specs, reml=reml),
                deviance_from_pls(pls, len(y), X.shape[1], reml),
            )

    def test_ml_at_zero_theta_is_ols_likelihood(self, small_problem):
        X, Z, y, specs = small_problem
        beta, *_ = np.linalg.lstsq(X, y, rcond=None)
        resid = y - X @ beta
        sigma = np.sqrt(resid @ resid / len(y))
        expected = -2.0 * stats.norm.logpdf(resid, scale=sigma).sum()

        dev = profiled_deviance_lmm(np.array([0.0]), X, Z, y, specs, reml=False)
        np.testing.assert_allclose(dev, expected, rtol=1e-8)
