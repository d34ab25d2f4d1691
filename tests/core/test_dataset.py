"""Tests for Dataset, CovariateKind and exclusion rules."""

import numpy as np
import pandas as pd
import pytest

from neurogamm.core.dataset import CovariateKind, Dataset, classify_series
from neurogamm.core.exceptions import ValidationError


@pytest.fixture
def small():
    return Dataset.from_dataframe(pd.DataFrame({
        'y': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        'age': [10.0, 11.0, 12.0, 10.5, 11.5, 12.5],
        'sex': ['M', 'M', 'M', 'F', 'F', 'F'],
        'site': pd.Categorical(['b', 'a', 'b', 'a', 'b', 'a'], categories=['b', 'a']),
        'dose': pd.Categorical(['lo', 'hi', 'lo', 'hi', 'lo', 'hi'],
                               categories=['lo', 'hi'], ordered=True),
        'subject': ['s1', 's1', 's1', 's2', 's2', 's2'],
        'flag': [False, True, False, False, False, True],
    }))


class TestCovariateKind:

    def test_numeric_is_continuous(self, small):
        assert small.covariate_kind('age') is CovariateKind.CONTINUOUS

    def test_strings_are_categorical(self, small):
        assert small.covariate_kind('sex') is CovariateKind.CATEGORICAL

    def test_unordered_categorical(self, small):
        assert small.covariate_kind('site') is CovariateKind.CATEGORICAL

    def test_ordered_categorical(self, small):
        assert small.covariate_kind('dose') is CovariateKind.ORDERED_CATEGORICAL

    def test_bool_is_categorical(self):
        assert classify_series(pd.Series([True, False])) is CovariateKind.CATEGORICAL

    def test_is_factor(self):
        assert not CovariateKind.CONTINUOUS.is_factor
        assert CovariateKind.CATEGORICAL.is_factor
        assert CovariateKind.ORDERED_CATEGORICAL.is_factor


class TestColumns:

    def test_levels_sorted_for_strings(self, small):
        assert small.levels('sex') == ['F', 'M']

    def test_levels_keep_category_order(self, small):
        assert small.levels('site') == ['b', 'a']

    def test_numeric(self, small):
        np.testing.assert_allclose(small.numeric('y'), [1, 2, 3, 4, 5, 6])

    def test_numeric_rejects_factor(self, small):
        with pytest.raises(ValidationError, match="categorical"):
            small.numeric('sex')

    def test_missing_column(self, small):
        with pytest.raises(KeyError, match="no column 'nope'"):
            small['nope']
        assert 'nope' not in small
        assert 'age' in small

    def test_frame_is_a_copy(self, small):
        frame = small.frame
        frame.loc[0, 'y'] = 100.0
        assert small['y'].iloc[0] == 1.0

    def test_with_column(self, small):
        ds = small.with_column('z', np.arange(6))
        assert 'z' in ds
        assert 'z' not in small


class TestExclusion:

    def test_none_excludes_nothing(self, small):
        assert small.subset(None) is small

    def test_column_rule(self, small):
        kept = small.subset('flag')
        assert len(kept) == 4
        assert kept.metadata['n_excluded'] == 2

    def test_callable_rule(self, small):
        kept = small.subset(lambda df: df['age'] >= 12.0)
        assert len(kept) == 4
        assert kept['age'].max() < 12.0

    def test_bad_mask_shape(self, small):
        with pytest.raises(ValidationError, match="shape"):
            small.exclusion_mask(lambda df: [True, False])

    def test_bad_rule_type(self, small):
        with pytest.raises(ValidationError):
            small.exclusion_mask(3)


class TestGrouping:

    def test_group_ids(self, small):
        assert list(small.group_ids('subject')) == ['s1'] * 3 + ['s2'] * 3

    def test_missing_group_column(self, small):
        with pytest.raises(ValidationError, match="not found"):
            small.group_ids('family')

    def test_missing_group_values(self, small):
        ds = small.with_column('subject', ['s1', None, 's1', 's2', 's2', 's2'])
        with pytest.raises(ValidationError, match="missing value"):
            ds.group_ids('subject')

    def test_single_group(self, small):
        ds = small.with_column('subject', ['s1'] * 6)
        with pytest.raises(ValidationError, match="at least 2 groups"):
            ds.group_ids('subject')


class TestFactories:

    def test_from_arrays_keeps_categoricals(self):
        ds = Dataset.from_arrays(
            y=np.arange(4.0),
            g=pd.Categorical(['lo', 'hi', 'lo', 'hi'], categories=['lo', 'hi'], ordered=True),
        )
        assert ds.covariate_kind('g') is CovariateKind.ORDERED_CATEGORICAL
        assert ds.levels('g') == ['lo', 'hi']

    def test_from_arrays_length_mismatch(self):
        with pytest.raises(ValidationError, match="Inconsistent"):
            Dataset.from_arrays(a=[1, 2], b=[1, 2, 3])

    def test_from_arrays_requires_columns(self):
        with pytest.raises(ValidationError):
            Dataset.from_arrays()

    def test_from_file_csv(self, small, tmp_path):
        path = tmp_path / "data.csv"
        small.frame.to_csv(path, index=False)
        ds = Dataset.from_file(path)
        assert len(ds) == 6
        assert ds.metadata['source_path'] == str(path)
        assert ds.covariate_kind('sex') is CovariateKind.CATEGORICAL

    def test_from_file_unknown_suffix(self, tmp_path):
        with pytest.raises(ValidationError, match="Unknown file format"):
            Dataset.from_file(tmp_path / "data.xlsx")
