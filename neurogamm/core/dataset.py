"""
Dataset: the tabular input every fit consumes.

A Dataset is a read-only view over a pandas DataFrame plus the knowledge
of what kind of covariate each column is. It does not know which column
is the response, the smooth variable or the grouping unit; those are
passed explicitly to each fit, together with an explicit exclusion
predicate, so no hidden "current dataset" or injected alias columns exist.

Usage:
    from neurogamm import Dataset

    ds = Dataset.from_dataframe(df)
    ds = Dataset.from_file("volumes.csv")
    ds = Dataset.from_arrays(y=y, age=age, subject=subject)

    ds.covariate_kind('sex')        # CovariateKind.CATEGORICAL
    kept = ds.subset('excluded')    # drop rows flagged in a boolean column
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from neurogamm.core.exceptions import ValidationError


class CovariateKind(enum.Enum):
    """Tagged variant describing how a covariate enters a model."""
    CONTINUOUS = 'continuous'
    CATEGORICAL = 'categorical'
    ORDERED_CATEGORICAL = 'ordered_categorical'

    @property
    def is_factor(self) -> bool:
        return self is not CovariateKind.CONTINUOUS


# A row-exclusion rule: either a boolean column name or a callable
# mapping the frame to a boolean mask (True = exclude the row).
ExclusionRule = Union[str, Callable[[pd.DataFrame], Any], None]


def classify_series(series: pd.Series) -> CovariateKind:
    """Map a pandas column onto a CovariateKind."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        if series.dtype.ordered:
            return CovariateKind.ORDERED_CATEGORICAL
        return CovariateKind.CATEGORICAL
    if pd.api.types.is_bool_dtype(series) or not pd.api.types.is_numeric_dtype(series):
        return CovariateKind.CATEGORICAL
    return CovariateKind.CONTINUOUS


@dataclass(frozen=True)
class Dataset:
    """
    Immutable tabular dataset.

    Construct via factory classmethods, not directly.
    """
    _frame: pd.DataFrame
    _metadata: dict[str, Any] = field(default_factory=dict)

    # === Column Access ===

    def keys(self) -> frozenset[str]:
        """Return the names of all available columns."""
        return frozenset(str(c) for c in self._frame.columns)

    def __getitem__(self, key: str) -> pd.Series:
        """
        Access a named column.

        Raises:
            KeyError: If key not found, listing available columns
        """
        if key not in self._frame.columns:
            raise KeyError(
                f"Dataset has no column '{key}'. Available: {sorted(self.keys())}"
            )
        return self._frame[key]

    def __contains__(self, key: str) -> bool:
        return key in self._frame.columns

    def __len__(self) -> int:
        return len(self._frame)

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the underlying DataFrame."""
        return self._frame.copy()

    @property
    def n_observations(self) -> int:
        """Number of rows."""
        return len(self._frame)

    @property
    def metadata(self) -> dict[str, Any]:
        return self._metadata.copy()

    # === Covariate kinds ===

    def covariate_kind(self, column: str) -> CovariateKind:
        """Classify a column as continuous, categorical or ordered categorical."""
        return classify_series(self[column])

    def levels(self, column: str) -> list:
        """
        Factor levels in model order.

        Categorical columns keep their declared category order; other
        columns use sorted unique values.
        """
        series = self[column]
        if isinstance(series.dtype, pd.CategoricalDtype):
            present = set(series.dropna().unique())
            return [c for c in series.cat.categories if c in present]
        return sorted(series.dropna().unique().tolist())

    def numeric(self, column: str) -> NDArray:
        """Return a continuous column as float64."""
        if self.covariate_kind(column) is not CovariateKind.CONTINUOUS:
            raise ValidationError(
                f"Column '{column}' is {self.covariate_kind(column).value}, "
                f"expected continuous"
            )
        return self[column].to_numpy(dtype=np.float64)

    # === Row selection ===

    def exclusion_mask(self, exclude: ExclusionRule) -> NDArray:
        """
        Evaluate an exclusion rule to a boolean mask (True = excluded).

        Args:
            exclude: None, a boolean column name, or a callable taking the
                DataFrame and returning a boolean mask.
        """
        n = len(self._frame)
        if exclude is None:
            return np.zeros(n, dtype=bool)
        if isinstance(exclude, str):
            raw = self[exclude]
        elif callable(exclude):
            raw = exclude(self._frame)
        else:
            raise ValidationError(
                f"exclude must be None, a column name or a callable, "
                f"got {type(exclude).__name__}"
            )
        mask = np.asarray(raw, dtype=bool)
        if mask.shape != (n,):
            raise ValidationError(
                f"exclusion mask has shape {mask.shape}, expected ({n},)"
            )
        return mask

    def subset(self, exclude: ExclusionRule = None) -> Dataset:
        """Return a new Dataset without the excluded rows."""
        mask = self.exclusion_mask(exclude)
        if not mask.any():
            return self
        kept = self._frame.loc[~mask].reset_index(drop=True)
        meta = dict(self._metadata)
        meta['n_excluded'] = int(mask.sum())
        return Dataset(_frame=kept, _metadata=meta)

    def group_ids(self, group_var: str) -> NDArray:
        """
        Validate and return the grouping column.

        Every row must carry exactly one group value and at least two
        groups must be present.

        Raises:
            ValidationError: On missing column, missing values, or < 2 groups
        """
        if group_var not in self._frame.columns:
            raise ValidationError(
                f"Grouping variable '{group_var}' not found. "
                f"Available: {sorted(self.keys())}"
            )
        groups = self._frame[group_var]
        if groups.isna().any():
            raise ValidationError(
                f"Grouping variable '{group_var}' has {int(groups.isna().sum())} "
                f"missing value(s); every row needs exactly one group"
            )
        values = groups.to_numpy()
        if len(pd.unique(values)) < 2:
            raise ValidationError(
                f"Grouping variable '{group_var}' needs at least 2 groups"
            )
        return values

    def with_column(self, name: str, values: Any) -> Dataset:
        """Return a new Dataset with a column added or replaced."""
        frame = self._frame.copy()
        frame[name] = values
        return Dataset(_frame=frame, _metadata=dict(self._metadata))

    # === Factory Methods ===

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, source_path: str | None = None) -> Dataset:
        """Construct from a pandas DataFrame (copied)."""
        metadata: dict[str, Any] = {
            'source': 'dataframe',
            'columns': [str(c) for c in df.columns],
        }
        if source_path:
            metadata['source_path'] = source_path
        return cls(_frame=df.reset_index(drop=True).copy(), _metadata=metadata)

    @classmethod
    def from_arrays(cls, **columns: Any) -> Dataset:
        """Construct from equally long array-likes, one per column."""
        if not columns:
            raise ValidationError("from_arrays requires at least one column")
        lengths = {name: len(values) for name, values in columns.items()}
        if len(set(lengths.values())) > 1:
            raise ValidationError(f"Inconsistent column lengths: {lengths}")
        # pd.Categorical values keep their (ordered) dtype
        df = pd.DataFrame({
            name: values.to_numpy() if isinstance(values, pd.Series) and not
            isinstance(values.dtype, pd.CategoricalDtype) else values
            for name, values in columns.items()
        })
        return cls(
            _frame=df,
            _metadata={'source': 'arrays', 'columns': list(columns)},
        )

    @classmethod
    def from_file(cls, path: str | Path, *, columns: list[str] | None = None) -> Dataset:
        """Construct from a CSV/TSV file."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == '.csv':
            df = pd.read_csv(path, usecols=columns)
        elif suffix == '.tsv':
            df = pd.read_csv(path, sep='\t', usecols=columns)
        else:
            raise ValidationError(f"Unknown file format: {suffix}")
        return cls.from_dataframe(df, source_path=str(path))
