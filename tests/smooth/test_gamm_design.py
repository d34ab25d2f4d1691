"""Tests for GAMM model matrices."""

import numpy as np
import pandas as pd
import pytest

from neurogamm.core.dataset import Dataset
from neurogamm.core.exceptions import InvalidSpecError, ValidationError
from neurogamm.formula import ModelSpec
from neurogamm.smooth import build_design, model_matrix
from neurogamm.smooth.design import INTERCEPT


def design_of(text, dataset):
    return build_design(ModelSpec.parse(text), dataset)


class TestFixedColumns:

    def test_intercept_and_treatment_dummies(self, nonlinear_data):
        design = design_of('y ~ sex', nonlinear_data)
        assert design.fixed_names == (INTERCEPT, 'sexM')
        np.testing.assert_array_equal(design.X[:, 0], 1.0)
        np.testing.assert_array_equal(
            design.X[:, 1], (nonlinear_data['sex'] == 'M').to_numpy(dtype=float))
        assert design.term_slices == {'sex': slice(1, 2)}
        assert design.penalized == {}

    def test_continuous_parametric(self, nonlinear_data):
        design = design_of('y ~ age', nonlinear_data)
        np.testing.assert_allclose(design.X[:, 1], nonlinear_data.numeric('age'))

    def test_penalized_smooth_split(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=6)', nonlinear_data)
        assert design.fixed_names == (INTERCEPT, 'sexM', 's(age).1')
        assert list(design.penalized) == ['s(age)']
        assert design.penalized['s(age)'].shape == (design.n, 4)
        assert design.n_random == 4
        assert design.fixed_slices == {'s(age)': slice(2, 3)}

    def test_fixed_df_smooth_has_no_penalty(self, nonlinear_data):
        design = design_of('y ~ s(age, k=6, fx=TRUE)', nonlinear_data)
        assert design.penalized == {}
        assert design.X.shape == (design.n, 1 + 5)

    def test_model_matrix_is_full_basis(self, nonlinear_data):
        X, names = model_matrix(ModelSpec.parse('y ~ sex + s(age, k=6)'), nonlinear_data)
        assert X.shape == (len(nonlinear_data), 1 + 1 + 5)
        assert names[:2] == (INTERCEPT, 'sexM')
        assert np.linalg.matrix_rank(X) == X.shape[1]


class TestByVariables:

    def test_per_level_smooths(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=5, by=sex)', nonlinear_data)
        labels = [c.label for c in design.components]
        assert labels == ['s(age):sexF', 's(age):sexM']
        male = (nonlinear_data['sex'] == 'M').to_numpy()
        block = design.penalized['s(age):sexF']
        np.testing.assert_array_equal(block[male], 0.0)

    def test_difference_smooth(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=5) + s(age, k=5, by=sex, diff=TRUE)',
                           nonlinear_data)
        labels = [c.label for c in design.components]
        assert labels == ['s(age)', 's(age):sexM']

    def test_ordered_factor_defaults_to_difference(self, nonlinear_data):
        sex = nonlinear_data['sex'].astype(str)
        ordered = pd.Categorical(sex, categories=['F', 'M'], ordered=True)
        ds = nonlinear_data.with_column('sex', ordered)
        design = design_of('y ~ sex + s(age, k=5) + s(age, k=5, by=sex)', ds)
        assert [c.label for c in design.components] == ['s(age)', 's(age):sexM']

    def test_continuous_by_is_uncentred(self, nonlinear_data):
        ds = nonlinear_data.with_column('icv', np.linspace(0.5, 1.5, len(nonlinear_data)))
        design = design_of('y ~ s(age, k=5) + s(age, k=5, by=icv)', ds)
        comp = design.components[1]
        assert comp.label == 's(age):icv'
        assert comp.basis.n_coef == 5


class TestPredictionMatrix:

    def test_rebuilds_training_columns(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=6) + s(age, k=5, by=sex, diff=TRUE)',
                           nonlinear_data)
        np.testing.assert_allclose(
            design.prediction_matrix(nonlinear_data.frame), design.full_matrix(),
            atol=1e-10,
        )

    def test_missing_column(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=6)', nonlinear_data)
        with pytest.raises(ValidationError, match="missing column"):
            design.prediction_matrix(pd.DataFrame({'age': [10.0]}))

    def test_unknown_level(self, nonlinear_data):
        design = design_of('y ~ sex + s(age, k=6)', nonlinear_data)
        with pytest.raises(ValidationError, match="not seen"):
            design.prediction_matrix(pd.DataFrame({'age': [10.0], 'sex': ['X']}))


class TestDesignErrors:

    def test_unknown_variable(self, nonlinear_data):
        with pytest.raises(InvalidSpecError, match="not found"):
            design_of('y ~ s(nope)', nonlinear_data)

    def test_smooth_of_factor(self, nonlinear_data):
        with pytest.raises(InvalidSpecError, match="must be continuous"):
            design_of('y ~ s(sex)', nonlinear_data)

    def test_factor_response(self, nonlinear_data):
        with pytest.raises(ValidationError, match="Response"):
            design_of('sex ~ s(age)', nonlinear_data)

    def test_missing_values(self, nonlinear_data):
        age = nonlinear_data.numeric('age').copy()
        age[0] = np.nan
        with pytest.raises(ValidationError, match="missing value"):
            design_of('y ~ s(age)', nonlinear_data.with_column('age', age))

    def test_single_level_by(self):
        ds = Dataset.from_arrays(y=np.arange(20.0), age=np.arange(20.0),
                                 sex=np.array(['F'] * 20))
        with pytest.raises(InvalidSpecError, match="at least 2 levels"):
            design_of('y ~ s(age, k=4, by=sex)', ds)
