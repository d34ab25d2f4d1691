"""
Model matrices for additive mixed models.

build_design() turns a ModelSpec and a Dataset into the pieces the LMM
engine needs: a fixed-effects matrix (intercept, parametric columns and
smooth null spaces) and one penalized block per smooth component. The
resulting GAMMDesign can rebuild the same columns for new data, which
is what prediction, derivatives and plotting use.

A smooth *component* is one fitted function: ``s(age)`` has one,
``s(age, by=sex)`` has one per level of sex (or per non-reference level
for difference smooths).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from neurogamm.core.dataset import CovariateKind, Dataset
from neurogamm.core.exceptions import InvalidSpecError, ValidationError
from neurogamm.core.validation import check_columns
from neurogamm.formula.algebra import to_unpenalized
from neurogamm.formula.terms import ModelSpec, Term, TermKind
from neurogamm.smooth.basis import SmoothBasis, mixed_split

INTERCEPT = '(Intercept)'


@dataclass(frozen=True)
class ParametricColumns:
    """Columns of one parametric term."""
    term: Term
    kind: CovariateKind
    levels: tuple = ()

    @property
    def names(self) -> tuple[str, ...]:
        var = self.term.variables[0]
        if self.kind is CovariateKind.CONTINUOUS:
            return (var,)
        return tuple(f"{var}{lvl}" for lvl in self.levels[1:])

    def evaluate(self, frame: pd.DataFrame) -> NDArray:
        var = self.term.variables[0]
        if self.kind is CovariateKind.CONTINUOUS:
            return frame[var].to_numpy(dtype=np.float64)[:, np.newaxis]
        values = _factor_values(frame, var, self.levels)
        return np.column_stack([(values == lvl).astype(np.float64)
                                for lvl in self.levels[1:]]) if len(self.levels) > 1 \
            else np.zeros((len(frame), 0))


@dataclass(frozen=True)
class SmoothComponent:
    """One fitted function of a smooth term.

    Attributes:
        label: mgcv-style label, e.g. ``s(age)`` or ``s(age):sexM``.
        term: The term the component belongs to.
        basis: Constrained spline basis.
        fixed_map: Constrained coefficients → fixed-effect columns.
        random_map: Constrained coefficients → penalized columns
            (zero columns for fx=TRUE).
        by: By-variable name, or None.
        by_kind: CovariateKind of the by-variable.
        level: Factor level this component is switched on for.
        by_levels: Training levels of a factor by-variable.
    """
    label: str
    term: Term
    basis: SmoothBasis
    fixed_map: NDArray
    random_map: NDArray
    by: str | None = None
    by_kind: CovariateKind | None = None
    level: object = None
    by_levels: tuple = ()

    @property
    def variables(self) -> tuple[str, ...]:
        return self.basis.variables

    @property
    def penalized(self) -> bool:
        return self.random_map.shape[1] > 0

    def constrained_basis(self, frame: pd.DataFrame) -> NDArray:
        """Constrained basis times the by-multiplier, shape (n, n_coef)."""
        cols = {v: frame[v].to_numpy(dtype=np.float64) for v in self.variables}
        B = self.basis.evaluate(cols)
        if self.by is None:
            return B
        if self.by_kind is CovariateKind.CONTINUOUS:
            return B * frame[self.by].to_numpy(dtype=np.float64)[:, np.newaxis]
        values = _factor_values(frame, self.by, self.by_levels)
        return B * (values == self.level).astype(np.float64)[:, np.newaxis]

    def evaluate(self, frame: pd.DataFrame) -> tuple[NDArray, NDArray]:
        """(fixed columns, penalized columns) for ``frame``."""
        B = self.constrained_basis(frame)
        return B @ self.fixed_map, B @ self.random_map


@dataclass(frozen=True)
class GAMMDesign:
    """Model matrices of a ModelSpec on a dataset.

    Attributes:
        spec: The specification the design was built from.
        y: Response (n,).
        X: Fixed effects matrix (n, p).
        fixed_names: Column names of X.
        penalized: Component label → penalized columns (n, J).
        parametric: Parametric terms in spec order.
        components: Smooth components in spec order.
        fixed_slices: Component label → its fixed columns in X.
        term_slices: Parametric term variable → its columns in X.
    """
    spec: ModelSpec
    y: NDArray
    X: NDArray
    fixed_names: tuple[str, ...]
    penalized: dict[str, NDArray]
    parametric: tuple[ParametricColumns, ...]
    components: tuple[SmoothComponent, ...]
    fixed_slices: dict[str, slice]
    term_slices: dict[str, slice]
    kinds: dict[str, CovariateKind] = field(default_factory=dict)

    @property
    def n(self) -> int:
        return len(self.y)

    @property
    def n_random(self) -> int:
        return sum(block.shape[1] for block in self.penalized.values())

    def random_slices(self) -> dict[str, slice]:
        """Component label → its columns in the stacked penalized matrix."""
        out = {}
        offset = 0
        for label, block in self.penalized.items():
            out[label] = slice(offset, offset + block.shape[1])
            offset += block.shape[1]
        return out

    def full_matrix(self) -> NDArray:
        """[X | penalized blocks] on the training data."""
        blocks = [self.X] + list(self.penalized.values())
        return np.hstack(blocks)

    def prediction_matrix(self, frame: pd.DataFrame) -> NDArray:
        """[X | penalized blocks] rebuilt for new covariate values.

        Random intercepts are not part of the matrix: predictions are
        population-level.
        """
        _check_frame(frame, self.spec.variables())
        n = len(frame)
        fixed = [np.ones((n, 1))]
        random = []
        for pc in self.parametric:
            fixed.append(pc.evaluate(frame))
        for comp in self.components:
            f, r = comp.evaluate(frame)
            fixed.append(f)
            if comp.penalized:
                random.append(r)
        return np.hstack(fixed + random)


def _factor_values(frame: pd.DataFrame, var: str, levels: tuple) -> NDArray:
    values = frame[var].to_numpy()
    if isinstance(frame[var].dtype, pd.CategoricalDtype):
        values = np.asarray(frame[var].astype(object))
    unknown = set(pd.unique(values)) - set(levels)
    if unknown:
        raise ValidationError(
            f"Column '{var}' has level(s) {sorted(map(str, unknown))} not seen "
            f"when the model was fit. Known: {list(levels)}"
        )
    return values


def _check_frame(frame: pd.DataFrame, variables) -> None:
    check_columns([str(c) for c in frame.columns], variables, 'new data')


def _check_spec_columns(spec: ModelSpec, dataset: Dataset) -> None:
    needed = (spec.response,) + spec.variables()
    missing = [v for v in needed if v not in dataset]
    if missing:
        raise InvalidSpecError(
            f"Variable(s) {missing} of '{spec}' not found in the dataset. "
            f"Available: {sorted(dataset.keys())}",
            spec=str(spec),
        )
    for v in needed:
        n_missing = int(dataset[v].isna().sum())
        if n_missing:
            raise ValidationError(
                f"Column '{v}' has {n_missing} missing value(s); exclude those "
                f"rows explicitly before fitting"
            )


def _smooth_components(term: Term, dataset: Dataset, frame: pd.DataFrame,
                       kinds: dict[str, CovariateKind]) -> list[SmoothComponent]:
    for v in term.variables:
        if kinds[v] is not CovariateKind.CONTINUOUS:
            raise InvalidSpecError(
                f"Smooth variable '{v}' in {term} must be continuous, "
                f"got {kinds[v].value}"
            )
    cols = {v: frame[v].to_numpy(dtype=np.float64) for v in term.variables}
    ks = term.k if isinstance(term.k, tuple) else (term.k,)
    interaction_only = term.kind is TermKind.TENSOR and bool(term.interaction_only)

    def component(label, weights=None, centred=True, **by_info):
        basis = SmoothBasis.build(
            cols, term.variables, ks, weights=weights,
            interaction_only=interaction_only, centred=centred,
        )
        n_coef = basis.n_coef
        if term.fx:
            fixed_map, random_map = np.eye(n_coef), np.zeros((n_coef, 0))
        else:
            fixed_map, random_map = mixed_split(basis.penalty)
        return SmoothComponent(
            label=label, term=term, basis=basis,
            fixed_map=fixed_map, random_map=random_map, **by_info,
        )

    if term.kind is not TermKind.SMOOTH_BY:
        return [component(term.label)]

    by = term.by
    by_kind = kinds[by]
    if by_kind is CovariateKind.CONTINUOUS:
        return [component(term.label, weights=frame[by].to_numpy(dtype=np.float64),
                          centred=False, by=by, by_kind=by_kind)]

    levels = tuple(dataset.levels(by))
    if len(levels) < 2:
        raise InvalidSpecError(f"By-variable '{by}' needs at least 2 levels, got {levels}")
    difference = (term.interaction_only if term.interaction_only is not None
                  else by_kind is CovariateKind.ORDERED_CATEGORICAL)
    values = _factor_values(frame, by, levels)
    used = levels[1:] if difference else levels
    return [
        component(f"s({term.variables[0]}):{by}{lvl}",
                  weights=(values == lvl).astype(np.float64),
                  by=by, by_kind=by_kind, level=lvl, by_levels=levels)
        for lvl in used
    ]


def build_design(spec: ModelSpec, dataset: Dataset) -> GAMMDesign:
    """Build fixed and penalized model matrices for ``spec``.

    Raises:
        InvalidSpecError: Unknown variables, smooths of factors.
        ValidationError: Missing values or a non-continuous response.
    """
    _check_spec_columns(spec, dataset)
    frame = dataset.frame
    kinds = {v: dataset.covariate_kind(v) for v in (spec.response,) + spec.variables()}
    if kinds[spec.response] is not CovariateKind.CONTINUOUS:
        raise ValidationError(
            f"Response '{spec.response}' must be continuous, got {kinds[spec.response].value}"
        )

    parametric: list[ParametricColumns] = []
    components: list[SmoothComponent] = []
    for term in spec.terms:
        if term.kind is TermKind.PARAMETRIC:
            var = term.variables[0]
            levels = tuple(dataset.levels(var)) if kinds[var].is_factor else ()
            parametric.append(ParametricColumns(term=term, kind=kinds[var], levels=levels))
        else:
            components.extend(_smooth_components(term, dataset, frame, kinds))

    fixed_blocks = [np.ones((len(frame), 1))]
    names: list[str] = [INTERCEPT]
    term_slices: dict[str, slice] = {}
    fixed_slices: dict[str, slice] = {}
    penalized: dict[str, NDArray] = {}

    for pc in parametric:
        block = pc.evaluate(frame)
        term_slices[pc.term.variables[0]] = slice(len(names), len(names) + block.shape[1])
        fixed_blocks.append(block)
        names.extend(pc.names)

    for comp in components:
        f, r = comp.evaluate(frame)
        fixed_slices[comp.label] = slice(len(names), len(names) + f.shape[1])
        fixed_blocks.append(f)
        names.extend(f"{comp.label}.{j + 1}" for j in range(f.shape[1]))
        if comp.penalized:
            penalized[comp.label] = r

    return GAMMDesign(
        spec=spec,
        y=dataset.numeric(spec.response),
        X=np.hstack(fixed_blocks),
        fixed_names=tuple(names),
        penalized=penalized,
        parametric=tuple(parametric),
        components=tuple(components),
        fixed_slices=fixed_slices,
        term_slices=term_slices,
        kinds=kinds,
    )


def model_matrix(spec: ModelSpec, dataset: Dataset) -> tuple[NDArray, tuple[str, ...]]:
    """Full fixed-effects basis expansion of ``spec`` (no random effects).

    Every smooth contributes all of its constrained basis columns, so the
    model is linear in these columns whatever the penalization flags.
    """
    design = build_design(to_unpenalized(spec), dataset)
    return design.X, design.fixed_names
