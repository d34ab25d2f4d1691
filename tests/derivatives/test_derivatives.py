"""
Tests for derivative curves and significant intervals.

A duck-typed linear model (prediction matrix [1, x]) gives exact
derivatives; real fits check the end-to-end behaviour.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from neurogamm.core.exceptions import (
    DimensionError, EmptySignificantRegionWarning, ValidationError,
)
from neurogamm.derivatives import DerivativeCurve, derivatives_of, significant_intervals
from neurogamm.derivatives._common import runs_of
from neurogamm.formula import ModelSpec
from neurogamm.smooth import gamm


class LinearModel:
    """Fitted-model stand-in: y = intercept + slope * age."""

    def __init__(self, intercept, slope, se_slope=0.01):
        self.spec = ModelSpec.parse('y ~ s(age)')
        self.coefficients = np.array([intercept, slope])
        self.vcov = np.diag([1.0, se_slope ** 2])

    def training_range(self, variable):
        if variable != 'age':
            raise ValidationError(f"'{variable}' is not a smooth variable")
        return 0.0, 10.0

    def reference_frame(self, n_rows=1, **overrides):
        return pd.DataFrame({'age': overrides.get('age', np.zeros(n_rows))})

    def prediction_matrix(self, frame):
        age = frame['age'].to_numpy(dtype=float)
        return np.column_stack([np.ones_like(age), age])


class TestRunsOf:

    def test_two_runs(self):
        mask = [False, False, True, True, True, False, True]
        assert runs_of(mask, np.arange(7.0)) == [(2.0, 4.0), (6.0, 6.0)]

    def test_empty(self):
        assert runs_of([False] * 5, np.arange(5.0)) == []

    def test_whole_domain(self):
        x = np.linspace(8.0, 20.0, 13)
        assert runs_of([True] * 13, x) == [(8.0, 20.0)]

    def test_run_at_start(self):
        assert runs_of([True, True, False], np.array([1.0, 2.0, 3.0])) == [(1.0, 2.0)]


class TestDerivativeCurve:

    def _curve(self, significant):
        n = len(significant)
        x = np.arange(float(n))
        d = np.where(significant, 1.0, 0.1)
        return DerivativeCurve(
            variable='age', x=x, derivative=d, se=np.full(n, 0.2),
            lower=d - 0.4, upper=d + 0.4, significant=np.asarray(significant),
        )

    def test_intervals_and_mask(self):
        curve = self._curve([False, True, True, False])
        assert curve.intervals == [(1.0, 2.0)]
        assert significant_intervals(curve) == [(1.0, 2.0)]
        np.testing.assert_array_equal(curve.masked_derivative, [0.0, 1.0, 1.0, 0.0])
        assert curve.any_significant
        assert curve.grid_size == 4

    def test_length_mismatch(self):
        with pytest.raises(DimensionError, match="se"):
            DerivativeCurve(
                variable='age', x=np.arange(3.0), derivative=np.zeros(3),
                se=np.zeros(2), lower=np.zeros(3), upper=np.zeros(3),
                significant=np.zeros(3, dtype=bool),
            )

    def test_summary(self):
        text = self._curve([False, True, True, False]).summary()
        assert "Derivative of s(age)" in text
        assert "increasing" in text
        empty = self._curve([False, False]).summary()
        assert "No region of significant change" in empty


class TestDerivativesOfLinearModel:

    def test_recovers_slope(self):
        curve = derivatives_of(LinearModel(3.0, 0.7), 'age', grid_size=50)
        np.testing.assert_allclose(curve.derivative, 0.7, rtol=1e-6)
        np.testing.assert_allclose(curve.se, 0.01, rtol=1e-6)
        np.testing.assert_allclose(curve.x, np.linspace(0.0, 10.0, 50))
        assert significant_intervals(curve) == [(0.0, 10.0)]

    def test_interval_uses_multiplier(self):
        curve = derivatives_of(LinearModel(0.0, 0.7), 'age', grid_size=5, ci_multiplier=3.0)
        np.testing.assert_allclose(curve.upper - curve.derivative, 3.0 * curve.se)
        np.testing.assert_allclose(curve.derivative - curve.lower, 3.0 * curve.se)
        assert curve.ci_multiplier == 3.0

    def test_zero_slope_warns(self):
        with pytest.warns(EmptySignificantRegionWarning):
            curve = derivatives_of(LinearModel(3.0, 0.0), 'age', grid_size=20)
        np.testing.assert_allclose(curve.derivative, 0.0, atol=1e-8)
        assert significant_intervals(curve) == []
        assert not curve.any_significant

    def test_slope_within_noise_is_not_significant(self):
        with pytest.warns(EmptySignificantRegionWarning):
            curve = derivatives_of(LinearModel(0.0, 0.015, se_slope=0.01), 'age',
                                   grid_size=10)
        assert curve.intervals == []

    def test_custom_eps(self):
        curve = derivatives_of(LinearModel(0.0, -1.5), 'age', grid_size=10, eps=0.5)
        np.testing.assert_allclose(curve.derivative, -1.5)

    @pytest.mark.parametrize("grid_size", [0, 1, 2.5])
    def test_bad_grid_size(self, grid_size):
        with pytest.raises(ValidationError):
            derivatives_of(LinearModel(0.0, 1.0), 'age', grid_size=grid_size)

    def test_bad_multiplier(self):
        with pytest.raises(ValidationError):
            derivatives_of(LinearModel(0.0, 1.0), 'age', ci_multiplier=0.0)

    def test_bad_eps(self):
        with pytest.raises(ValidationError):
            derivatives_of(LinearModel(0.0, 1.0), 'age', eps=0.0)

    def test_unknown_variable(self):
        with pytest.raises(ValidationError):
            derivatives_of(LinearModel(0.0, 1.0), 'icv')

    def test_by_level_without_by_smooth(self):
        with pytest.raises(ValidationError, match="no by-variable"):
            derivatives_of(LinearModel(0.0, 1.0), 'age', by_level='M')


class TestDerivativesOfFittedSmooth:

    def test_sine_trajectory(self, nonlinear_data):
        fit = gamm('y ~ sex + s(age, k=8)', nonlinear_data, 'subject')
        curve = derivatives_of(fit, 'age', grid_size=200)
        # d/da 2 sin((a - 8) / 3) is positive early on and negative after
        # a = 8 + 1.5 pi (about 12.7)
        early = curve.x < 10.0
        late = (curve.x > 15.0) & (curve.x < 19.0)
        assert np.all(curve.derivative[early] > 0)
        assert np.all(curve.derivative[late] < 0)
        assert len(curve.intervals) >= 2

    def test_by_level_curves_differ(self, make_longitudinal, rng):
        ds = make_longitudinal(rng, lambda a: np.zeros_like(a), sex_slope=0.5)
        fit = gamm('y ~ sex + s(age, k=5, by=sex)', ds, 'subject')
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', EmptySignificantRegionWarning)
            female = derivatives_of(fit, 'age', grid_size=50, by_level='F')
        male = derivatives_of(fit, 'age', grid_size=50, by_level='M')
        assert female.by_level == 'F'
        assert np.mean(male.derivative) - np.mean(female.derivative) > 0.3
        assert male.any_significant

    def test_flat_trajectory_has_no_significant_change(self, flat_data):
        fit = gamm('y ~ sex + s(age, k=6)', flat_data, 'subject')
        with pytest.warns(EmptySignificantRegionWarning):
            curve = derivatives_of(fit, 'age', grid_size=100)
        assert not curve.any_significant
        assert significant_intervals(curve) == []
        assert np.max(np.abs(curve.derivative)) < 0.2
