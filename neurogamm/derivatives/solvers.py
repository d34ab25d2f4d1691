"""
Where does a fitted smooth change significantly?

Public API:
    derivatives_of()        - derivative curve of a smooth with its CI
    significant_intervals() - maximal runs where the CI excludes zero

The derivative is a central finite difference of the prediction matrix,
so D @ coefficients is the derivative of the population-level curve and
D V D' its delta-method covariance (Wood 2017, §7.2.4).
"""

from __future__ import annotations

import warnings

import numpy as np

from neurogamm.core.exceptions import EmptySignificantRegionWarning, ValidationError
from neurogamm.core.validation import check_positive_int
from neurogamm.derivatives._common import DerivativeCurve
from neurogamm.formula.terms import TermKind

_EPS_SCALE = 1e-6


def _by_variable(spec, smooth_var: str) -> str | None:
    for term in spec.smooth_terms:
        if term.kind is TermKind.SMOOTH_BY and term.variables[0] == smooth_var:
            return term.by
    return None


def derivatives_of(
    fitted,
    smooth_var: str,
    grid_size: int = 1000,
    *,
    by_level=None,
    ci_multiplier: float = 2.0,
    eps: float | None = None,
) -> DerivativeCurve:
    """
    First derivative of the fitted curve in ``smooth_var``.

    Other covariates are held at their representative values (median or
    first level); ``by_level`` selects the level of the smooth's
    by-variable.

    Args:
        fitted: A fitted GAMMSolution.
        smooth_var: Smooth covariate to differentiate along.
        grid_size: Number of evenly spaced grid points over the
            training range (>= 2).
        by_level: Level of the by-variable of ``s(smooth_var, by=...)``.
        ci_multiplier: Interval half-width in standard errors.
        eps: Finite-difference step; defaults to 1e-6 of the range.

    Returns:
        DerivativeCurve.

    Raises:
        ValidationError: grid_size < 2, unknown smooth variable, or a
            by_level without a by-smooth.

    Warns:
        EmptySignificantRegionWarning: No grid point is significant.
    """
    check_positive_int(grid_size, 'grid_size', minimum=2)
    if ci_multiplier <= 0:
        raise ValidationError(f"ci_multiplier: must be positive, got {ci_multiplier}")

    lo, hi = fitted.training_range(smooth_var)
    x = np.linspace(lo, hi, grid_size)
    h = eps if eps is not None else _EPS_SCALE * max(hi - lo, 1.0)
    if h <= 0:
        raise ValidationError(f"eps: must be positive, got {h}")

    overrides = {}
    if by_level is not None:
        by = _by_variable(fitted.spec, smooth_var)
        if by is None:
            raise ValidationError(
                f"by_level given but s({smooth_var}) has no by-variable in '{fitted.spec}'"
            )
        overrides[by] = by_level

    X_plus = fitted.prediction_matrix(
        fitted.reference_frame(grid_size, **{smooth_var: x + h}, **overrides))
    X_minus = fitted.prediction_matrix(
        fitted.reference_frame(grid_size, **{smooth_var: x - h}, **overrides))
    D = (X_plus - X_minus) / (2.0 * h)

    derivative = D @ fitted.coefficients
    se = np.sqrt(np.maximum(np.einsum('ij,jk,ik->i', D, fitted.vcov, D), 0.0))
    lower = derivative - ci_multiplier * se
    upper = derivative + ci_multiplier * se

    curve = DerivativeCurve(
        variable=smooth_var,
        x=x,
        derivative=derivative,
        se=se,
        lower=lower,
        upper=upper,
        significant=(lower > 0) | (upper < 0),
        by_level=by_level,
        ci_multiplier=ci_multiplier,
    )
    if not curve.any_significant:
        warnings.warn(
            f"No significant change of s({smooth_var}) anywhere on "
            f"[{lo:.4g}, {hi:.4g}]",
            EmptySignificantRegionWarning,
            stacklevel=2,
        )
    return curve


def significant_intervals(curve: DerivativeCurve) -> list[tuple[float, float]]:
    """
    Maximal runs of consecutive significant grid points.

    Returns:
        List of (start, end) grid values, empty when nothing is
        significant; a single run over the whole grid gives the domain.
    """
    return curve.intervals
