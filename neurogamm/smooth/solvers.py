"""
Fitter for additive mixed models.

Public API:
    gamm() - fit a formula with smooth terms and a random intercept per
             group, the way gamm4 does: penalized smooths become variance
             components of one linear mixed model.
"""

from __future__ import annotations

import warnings

import numpy as np

from neurogamm.core.compute.timing import Timer
from neurogamm.core.dataset import CovariateKind, Dataset, ExclusionRule
from neurogamm.core.exceptions import ValidationError
from neurogamm.core.result import Result
from neurogamm.formula.terms import ModelSpec
from neurogamm.mixed.solvers import lmm
from neurogamm.smooth._common import GAMMParams
from neurogamm.smooth._inference import parametric_summaries, smooth_summaries
from neurogamm.smooth.design import build_design
from neurogamm.smooth.solution import GAMMSolution


def gamm(
    spec: ModelSpec | str,
    dataset: Dataset,
    group_var: str,
    *,
    exclude: ExclusionRule = None,
    reml: bool = True,
    tol: float = 1e-8,
    max_iter: int = 200,
) -> GAMMSolution:
    """Fit an additive mixed model with a random intercept for ``group_var``.

    Args:
        spec: Model specification (or formula text).
        dataset: Input data.
        group_var: Column identifying the repeated-measures unit.
        exclude: Rows to leave out (column name or callable mask).
        reml: REML (default) or ML.
        tol: Optimizer tolerance.
        max_iter: Maximum optimizer iterations.

    Returns:
        GAMMSolution.

    Raises:
        InvalidSpecError: Formula refers to unknown or unsuitable columns.
        ValidationError: Missing values, bad grouping, too few rows.
        FitConvergenceError: The REML/ML optimizer did not converge.

    Examples:
        >>> fit = gamm("volume ~ sex + s(age, k=4)", ds, 'subject')
        >>> fit.smooth_table()
    """
    if isinstance(spec, str):
        spec = ModelSpec.parse(spec)

    timer = Timer()
    timer.start()

    with timer.section('design'):
        data = dataset.subset(exclude)
        design = build_design(spec, data)
        group_ids = data.group_ids(group_var)

    with timer.section('fit'):
        fit = lmm(
            design.y, design.X, {group_var: group_ids},
            penalized=design.penalized,
            coefficient_names=list(design.fixed_names),
            reml=reml, tol=tol, max_iter=max_iter,
            model=str(spec),
        )

    with timer.section('inference'):
        lp = fit.params
        p = design.X.shape[1]
        pen_b = np.concatenate(
            [np.arange(lp.block_slices[label].start, lp.block_slices[label].stop)
             for label in design.penalized] or [np.arange(0, dtype=int)]
        )
        idx = np.concatenate([np.arange(p), p + pen_b])
        coef = np.concatenate([lp.coefficients, lp.b[pen_b]])
        vcov = lp.vcov_joint[np.ix_(idx, idx)]
        influence = lp.influence[idx]
        names = tuple(design.fixed_names) + tuple(
            f"{label}.r{j + 1}"
            for label, block in design.penalized.items()
            for j in range(block.shape[1])
        )

        df_resid = lp.df_residual
        if df_resid <= 0:
            raise ValidationError(
                f"Model '{spec}' uses {design.n - df_resid:.1f} effective degrees "
                f"of freedom for {design.n} observations"
            )
        smooths = smooth_summaries(design, coef, vcov, influence, df_resid)
        parametric = parametric_summaries(design, coef, vcov, df_resid)

    warn_list = list(fit.warnings)
    for message in warn_list:
        warnings.warn(f"{spec}: {message}", RuntimeWarning, stacklevel=2)

    timer.stop()

    params = GAMMParams(
        coefficients=coef,
        coefficient_names=names,
        vcov=vcov,
        parametric=parametric,
        smooths=smooths,
        var_components=lp.var_components,
        residual_variance=lp.residual_variance,
        random_intercepts={group_var: lp.random_effects[group_var]},
        log_likelihood=lp.log_likelihood,
        reml=reml,
        aic=lp.aic,
        bic=lp.bic,
        n_obs=lp.n_obs,
        n_groups=lp.n_groups,
        edf_total=float(design.n - df_resid),
        df_residual=float(df_resid),
        fitted_values=lp.fitted_values,
        residuals=lp.residuals,
        converged=lp.converged,
        n_iter=lp.n_iter,
    )

    result = Result(
        params=params,
        info={
            'method': 'REML' if reml else 'ML',
            'formula': str(spec),
            'group_var': group_var,
            'n_excluded': data.metadata.get('n_excluded', 0),
            'converged': lp.converged,
            'n_iter': lp.n_iter,
        },
        timing=timer.result(),
        backend_name='cpu_gamm',
        warnings=tuple(warn_list),
    )

    return GAMMSolution(
        _result=result,
        _design=design,
        _reference=_reference_values(spec, data),
        _ranges={v: (float(data[v].min()), float(data[v].max()))
                 for v in spec.smooth_variables()},
    )


def _reference_values(spec: ModelSpec, data: Dataset) -> dict[str, object]:
    """Median of continuous covariates, first level of factors."""
    out: dict[str, object] = {}
    for v in spec.variables():
        if data.covariate_kind(v) is CovariateKind.CONTINUOUS:
            out[v] = float(np.median(data.numeric(v)))
        else:
            out[v] = data.levels(v)[0]
    return out
