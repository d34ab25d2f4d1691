"""
Solver for linear mixed models.

Public API:
    lmm() - fit y = Xβ + Zb + ε by profiled REML or ML, where Z stacks
            random intercept blocks and penalized smooth blocks.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike
from scipy.optimize import minimize
from scipy import stats

from neurogamm.core.compute.timing import Timer
from neurogamm.core.exceptions import FitConvergenceError
from neurogamm.core.result import Result
from neurogamm.mixed._common import LMMParams, VarCompSummary
from neurogamm.mixed._deviance import deviance_from_pls, profiled_deviance_lmm
from neurogamm.mixed._pls import joint_covariance, solve_pls
from neurogamm.mixed._random_effects import (
    GROUPING, RandomEffectSpec, block_slices, build_lambda, build_z_matrix,
    grouping_block, penalty_block, theta_lower_bounds, theta_start,
)
from neurogamm.mixed.design import MixedDesign
from neurogamm.mixed.solution import LMMSolution

# L-BFGS-B status codes (scipy): 0 converged, 1 iteration/evaluation
# limit, 2 stopped in the line search (precision-limited at the optimum)
_STATUS_LIMIT = 1


def lmm(
    y: ArrayLike,
    X: ArrayLike,
    groups: dict[str, ArrayLike],
    *,
    penalized: dict[str, ArrayLike] | None = None,
    coefficient_names: list[str] | None = None,
    reml: bool = True,
    tol: float = 1e-8,
    max_iter: int = 200,
    compute_inference: bool = True,
    model: str | None = None,
) -> LMMSolution:
    """Fit a linear mixed model.

    Estimates fixed effects β, the variance parameter of every block
    (random intercepts and penalized smooths) and the conditional modes
    of the random effects, using the profiled REML/ML deviance approach
    of Bates et al. (2015).

    Args:
        y: Response vector (n,).
        X: Fixed effects design matrix (n, p), intercept included.
        groups: Grouping factor name → labels; one random intercept each.
            Example: {'subject': subject_ids}.
        penalized: Smooth label → range-space columns (n, J). Each block
            gets iid N(0, σ²θ²) coefficients.
        coefficient_names: Names of the columns of X.
        reml: REML (default) or ML. Likelihood ratio tests between models
            with different fixed effects need ML (reml=False).
        tol: Optimizer tolerance.
        max_iter: Maximum optimizer iterations.
        compute_inference: Also compute the joint covariance, EDF, standard
            errors and p-values. Disable for bootstrap replicates where only
            the likelihood is needed.
        model: Description used in error messages (e.g. formula text).

    Returns:
        LMMSolution.

    Raises:
        FitConvergenceError: If the optimizer hits its iteration limit or
            ends at a non-finite deviance.

    Examples:
        >>> result = lmm(y, X, groups={'subject': subject_ids})
        >>> result = lmm(y, X, groups={'subject': subject_ids},
        ...              penalized={'s(age)': Z_age}, reml=True)
    """
    timer = Timer()
    timer.start()

    design = MixedDesign.validate(
        np.asarray(y, dtype=np.float64),
        np.asarray(X, dtype=np.float64),
        groups,
        penalized,
    )

    with timer.section('setup'):
        specs: list[RandomEffectSpec] = [
            grouping_block(name, labels) for name, labels in design.groups.items()
        ]
        specs.extend(
            penalty_block(name, block) for name, block in design.penalized.items()
        )
        Z = build_z_matrix(specs)
        theta0 = theta_start(specs)
        lb = theta_lower_bounds(specs)
        bounds = [(lb[i], None) for i in range(len(theta0))]

    with timer.section('optimization'):
        opt_result = minimize(
            profiled_deviance_lmm,
            theta0,
            args=(design.X, Z, design.y, specs, reml),
            method='L-BFGS-B',
            bounds=bounds,
            options={'maxiter': max_iter, 'ftol': tol, 'gtol': tol * 10},
        )

    theta_hat = opt_result.x
    n_iter = int(opt_result.nit)
    if opt_result.status == _STATUS_LIMIT or not np.isfinite(opt_result.fun):
        raise FitConvergenceError(
            f"LMM optimizer did not converge after {n_iter} iterations"
            + (f" for '{model}'" if model else "")
            + f": {opt_result.message}",
            iterations=n_iter,
            reason=str(opt_result.message),
            model=model,
        )
    converged = True
    warn_list = []
    if not opt_result.success:
        warn_list.append(
            f"Optimizer stopped early but within tolerance: {opt_result.message}"
        )

    with timer.section('final_solve'):
        lam = build_lambda(theta_hat, specs)
        pls = solve_pls(design.X, Z, design.y, lam, reml=reml)

    slices = block_slices(specs)
    var_comps = tuple(
        VarCompSummary(
            group=spec.name,
            kind=spec.kind,
            variance=float(pls.sigma_sq * theta_hat[k] ** 2),
            std_dev=float(np.sqrt(pls.sigma_sq) * theta_hat[k]),
        )
        for k, spec in enumerate(specs)
    )
    random_effs = {name: pls.b[sl] for name, sl in slices.items()}

    with timer.section('inference'):
        p = design.p
        if compute_inference:
            vcov_joint, influence = joint_covariance(design.X, Z, lam, pls.sigma_sq)
            se = np.sqrt(np.maximum(np.diag(vcov_joint)[:p], 0.0))
            df_resid = float(design.n - np.sum(influence))
            with np.errstate(divide='ignore', invalid='ignore'):
                t_vals = pls.beta / se
            p_vals = 2.0 * stats.t.sf(np.abs(t_vals), df_resid)
        else:
            vcov_joint = influence = None
            se = t_vals = p_vals = np.full(p, np.nan)
            df_resid = float(design.n - p)

    with timer.section('model_fit'):
        deviance = deviance_from_pls(pls, design.n, p, reml)
        ll = -0.5 * deviance
        n_params = p + len(theta_hat) + 1
        aic = -2.0 * ll + 2.0 * n_params
        bic = -2.0 * ll + np.log(design.n) * n_params

    names = tuple(coefficient_names) if coefficient_names is not None else _make_coef_names(p)
    if len(names) != p:
        raise ValueError(f"{len(names)} coefficient names for {p} columns of X")

    timer.stop()

    params = LMMParams(
        coefficients=pls.beta,
        coefficient_names=names,
        se=se,
        df_residual=df_resid,
        t_values=t_vals,
        p_values=p_vals,
        var_components=var_comps,
        residual_variance=pls.sigma_sq,
        residual_std=float(np.sqrt(pls.sigma_sq)),
        log_likelihood=float(ll),
        reml=reml,
        aic=float(aic),
        bic=float(bic),
        n_obs=design.n,
        n_groups={s.name: s.n_levels for s in specs if s.kind == GROUPING},
        converged=converged,
        n_iter=n_iter,
        random_effects=random_effs,
        b=pls.b,
        block_slices=slices,
        vcov_joint=vcov_joint,
        influence=influence,
        fitted_values=pls.fitted,
        residuals=pls.residuals,
        theta=theta_hat,
    )

    result = Result(
        params=params,
        info={
            'method': 'REML' if reml else 'ML',
            'optimizer': 'L-BFGS-B',
            'converged': converged,
            'n_iter': n_iter,
            'deviance': float(opt_result.fun),
            'model': model,
        },
        timing=timer.result(),
        backend_name='cpu_lmm',
        warnings=tuple(warn_list),
    )

    return LMMSolution(_result=result, _design=design, _specs=tuple(specs))


def _make_coef_names(p: int) -> tuple[str, ...]:
    """Default coefficient names."""
    return ('(Intercept)',) + tuple(f'X{i}' for i in range(1, p))
