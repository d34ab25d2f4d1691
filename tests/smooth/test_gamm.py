"""Tests for gamm() fits and GAMMSolution."""

import numpy as np
import pandas as pd
import pytest

from neurogamm.core.exceptions import InvalidSpecError, ValidationError
from neurogamm.formula import ModelSpec
from neurogamm.smooth import GAMMSolution, gamm

FORMULA = 'y ~ sex + s(age, k=6)'


@pytest.fixture
def nonlinear_fit(nonlinear_data):
    return gamm(FORMULA, nonlinear_data, 'subject')


class TestGAMMFit:

    def test_returns_solution(self, nonlinear_fit):
        assert isinstance(nonlinear_fit, GAMMSolution)
        assert nonlinear_fit.converged
        assert nonlinear_fit.reml
        assert nonlinear_fit.spec == ModelSpec.parse(FORMULA)
        assert nonlinear_fit.group_var == 'subject'
        assert nonlinear_fit.n_obs == 160
        assert nonlinear_fit.n_groups == 40

    def test_accepts_model_spec(self, nonlinear_data):
        fit = gamm(ModelSpec.parse(FORMULA), nonlinear_data, 'subject')
        assert fit.info['formula'] == FORMULA
        assert fit.info['method'] == 'REML'

    def test_nonlinear_smooth_is_significant(self, nonlinear_fit):
        table = nonlinear_fit.smooth_table()
        assert list(table.index) == ['s(age)']
        assert table.loc['s(age)', 'p_value'] < 1e-6
        assert table.loc['s(age)', 'edf'] > 1.5

    def test_fixed_effects(self, nonlinear_fit):
        table = nonlinear_fit.coefficient_table()
        assert list(table.index) == ['(Intercept)', 'sexM']
        assert list(table.columns) == ['estimate', 'std_error', 't_value', 'p_value']
        assert table.index.name == 'term'
        np.testing.assert_allclose(table.loc['sexM', 'estimate'], 0.5, atol=1.0)

    def test_fitted_plus_residuals(self, nonlinear_fit, nonlinear_data):
        np.testing.assert_allclose(
            nonlinear_fit.fitted_values + nonlinear_fit.residuals,
            nonlinear_data.numeric('y'), atol=1e-10,
        )

    def test_population_prediction_plus_intercepts_is_fitted(self, nonlinear_fit,
                                                              nonlinear_data):
        est, _ = nonlinear_fit.predict(nonlinear_data)
        _, ids = np.unique(nonlinear_data['subject'].to_numpy(), return_inverse=True)
        ri = nonlinear_fit.params.random_intercepts['subject']
        np.testing.assert_allclose(est + ri[ids], nonlinear_fit.fitted_values, atol=1e-8)

    def test_coefficients_align_with_matrix(self, nonlinear_fit):
        assert nonlinear_fit.model_matrix.shape[1] == len(nonlinear_fit.coefficients)
        assert nonlinear_fit.vcov.shape == (len(nonlinear_fit.coefficients),) * 2
        assert len(nonlinear_fit.params.coefficient_names) == len(nonlinear_fit.coefficients)

    def test_edf_accounting(self, nonlinear_fit):
        params = nonlinear_fit.params
        np.testing.assert_allclose(params.df_residual, params.n_obs - params.edf_total)
        assert nonlinear_fit.edf['s(age)'] <= 5.0 + 1e-8

    def test_ml_fit(self, nonlinear_data):
        fit = gamm(FORMULA, nonlinear_data, 'subject', reml=False)
        assert not fit.reml
        assert fit.info['method'] == 'ML'


class TestSmoothness:

    def test_linear_trend_uses_about_one_df(self, linear_data):
        fit = gamm('y ~ sex + s(age, k=8)', linear_data, 'subject')
        assert fit.edf['s(age)'] < 2.5
        assert fit.smooth_table().loc['s(age)', 'p_value'] < 1e-6

    def test_flat_data_is_not_wiggly(self, flat_data):
        fit = gamm('y ~ sex + s(age, k=8)', flat_data, 'subject')
        assert fit.edf['s(age)'] < 3.0

    def test_fixed_df_uses_full_basis(self, nonlinear_data):
        fit = gamm('y ~ sex + s(age, k=6, fx=TRUE)', nonlinear_data, 'subject')
        np.testing.assert_allclose(fit.edf['s(age)'], 5.0, atol=1e-6)
        assert fit.smooth_table().loc['s(age)', 'ref_df'] == 5.0

    def test_by_factor_components(self, make_longitudinal, rng):
        ds = make_longitudinal(rng, lambda a: np.sin((a - 8.0) / 3.0), sex_slope=0.4)
        fit = gamm('y ~ sex + s(age, k=5) + s(age, k=5, by=sex, diff=TRUE)', ds, 'subject')
        table = fit.smooth_table()
        assert list(table.index) == ['s(age)', 's(age):sexM']
        assert table.loc['s(age):sexM', 'p_value'] < 0.01


class TestPrediction:

    def test_reference_frame(self, nonlinear_fit, nonlinear_data):
        frame = nonlinear_fit.reference_frame(3)
        assert list(frame.columns) == ['sex', 'age']
        assert list(frame['sex']) == ['F', 'F', 'F']
        np.testing.assert_allclose(frame['age'], np.median(nonlinear_data.numeric('age')))

    def test_reference_frame_overrides(self, nonlinear_fit):
        grid = np.linspace(9.0, 19.0, 5)
        frame = nonlinear_fit.reference_frame(5, age=grid, sex='M')
        np.testing.assert_allclose(frame['age'], grid)
        assert set(frame['sex']) == {'M'}

    def test_reference_frame_errors(self, nonlinear_fit):
        with pytest.raises(ValidationError, match="Unknown covariate"):
            nonlinear_fit.reference_frame(1, icv=1.0)
        with pytest.raises(ValidationError, match="expected 4"):
            nonlinear_fit.reference_frame(4, age=[10.0, 11.0])

    def test_predict_shapes(self, nonlinear_fit):
        frame = nonlinear_fit.reference_frame(5, age=np.linspace(9.0, 19.0, 5))
        est, se = nonlinear_fit.predict(frame)
        assert est.shape == se.shape == (5,)
        assert np.all(se > 0)

    def test_predict_sex_shift(self, nonlinear_fit):
        age = np.linspace(9.0, 19.0, 4)
        f, _ = nonlinear_fit.predict(nonlinear_fit.reference_frame(4, age=age, sex='F'))
        m, _ = nonlinear_fit.predict(nonlinear_fit.reference_frame(4, age=age, sex='M'))
        shift = nonlinear_fit.coefficient_table().loc['sexM', 'estimate']
        np.testing.assert_allclose(m - f, shift, atol=1e-10)

    def test_unknown_level(self, nonlinear_fit):
        with pytest.raises(ValidationError, match="not seen"):
            nonlinear_fit.predict(nonlinear_fit.reference_frame(1, sex='X'))

    def test_training_range(self, nonlinear_fit, nonlinear_data):
        lo, hi = nonlinear_fit.training_range('age')
        assert lo == nonlinear_data['age'].min()
        assert hi == nonlinear_data['age'].max()
        with pytest.raises(ValidationError, match="not a smooth variable"):
            nonlinear_fit.training_range('sex')


class TestExclusion:

    def test_excluded_rows_dropped(self, nonlinear_data):
        flags = np.zeros(len(nonlinear_data), dtype=bool)
        flags[:8] = True
        ds = nonlinear_data.with_column('excluded', flags)
        fit = gamm(FORMULA, ds, 'subject', exclude='excluded')
        assert fit.n_obs == 152
        assert fit.info['n_excluded'] == 8

    def test_callable_exclusion(self, nonlinear_data):
        fit = gamm(FORMULA, nonlinear_data, 'subject',
                   exclude=lambda df: df['age'] > 18.0)
        assert fit.training_range('age')[1] <= 18.0


class TestGAMMErrors:

    def test_unknown_variable(self, nonlinear_data):
        with pytest.raises(InvalidSpecError):
            gamm('y ~ s(icv)', nonlinear_data, 'subject')

    def test_unknown_group(self, nonlinear_data):
        with pytest.raises(ValidationError, match="Grouping variable"):
            gamm(FORMULA, nonlinear_data, 'family')

    def test_bad_formula_text(self, nonlinear_data):
        with pytest.raises(InvalidSpecError):
            gamm('y ~ s(age', nonlinear_data, 'subject')


class TestExport:

    def test_to_csv(self, nonlinear_fit, tmp_path):
        path = nonlinear_fit.to_csv(tmp_path / 'model.csv')
        table = pd.read_csv(path, index_col='term')
        assert list(table.index) == ['(Intercept)', 'sexM', 's(age)']
        assert list(table['kind']) == ['parametric', 'parametric', 'smooth']
        assert set(table['formula']) == {FORMULA}

    def test_summary_and_repr(self, nonlinear_fit):
        text = nonlinear_fit.summary()
        assert "Additive mixed model fit by REML" in text
        assert "Approximate significance of smooth terms" in text
        assert "s(age)" in text
        assert repr(nonlinear_fit) == f"GAMMSolution('{FORMULA}', REML, n=160)"

    def test_timing_sections(self, nonlinear_fit):
        assert set(nonlinear_fit.timing) >= {'design', 'fit', 'inference'}
