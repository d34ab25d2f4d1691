"""
Term-level inference for additive mixed models.

Smooth terms are tested with a Wald statistic on their constrained
coefficients γ = M c, where M maps the fixed (null space) and penalized
(range space) coefficients back onto the basis:

    T = γ' V_γ^{r-} γ,    F = T / r,    p = P(F(r, df_resid) > F)

V_γ^{r-} is the rank-r pseudo-inverse (largest r eigenvalues) with
r = round(edf) for penalized terms, in the spirit of Wood (2013), and the
full basis rank for fx=TRUE terms.

References:
    Wood, S. N. (2013). On p-values for smooth components of an extended
    generalized additive model. Biometrika, 100(1), 221-228.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from neurogamm.smooth._common import ParametricSummary, SmoothSummary
from neurogamm.smooth.design import GAMMDesign, SmoothComponent

_EIG_TOL = 1e-10


def component_columns(design: GAMMDesign, comp: SmoothComponent) -> tuple[NDArray, NDArray]:
    """Indices of a component's fixed and penalized columns in [β, b_smooth]."""
    p = design.X.shape[1]
    fixed = np.arange(design.X.shape[1])[design.fixed_slices[comp.label]]
    if comp.penalized:
        sl = design.random_slices()[comp.label]
        random = p + np.arange(sl.start, sl.stop)
    else:
        random = np.arange(0, dtype=int)
    return fixed, random


def wald_test(gamma: NDArray, V: NDArray, rank: int, df_resid: float) -> tuple[float, float]:
    """F statistic and p-value of H0: γ = 0 with a rank-``rank`` pseudo-inverse."""
    V = 0.5 * (V + V.T)
    d, U = np.linalg.eigh(V)
    order = np.argsort(d)[::-1]
    d, U = d[order], U[:, order]
    usable = int(np.sum(d > _EIG_TOL * max(float(d[0]), _EIG_TOL)))
    r = max(1, min(rank, usable))
    z = U[:, :r].T @ gamma
    T = float(np.sum(z ** 2 / d[:r]))
    F = T / r
    return F, float(stats.f.sf(F, r, df_resid))


def smooth_summaries(
    design: GAMMDesign,
    coef: NDArray,
    vcov: NDArray,
    edf_of: NDArray,
    df_resid: float,
) -> tuple[SmoothSummary, ...]:
    """Smooth term table, one row per component.

    Args:
        coef: [β, b_smooth].
        vcov: Covariance of ``coef``.
        edf_of: Influence of each entry of ``coef``.
        df_resid: Residual degrees of freedom.
    """
    rows = []
    for comp in design.components:
        fixed, random = component_columns(design, comp)
        idx = np.concatenate([fixed, random])
        M = np.hstack([comp.fixed_map, comp.random_map])
        gamma = M @ coef[idx]
        V_gamma = M @ vcov[np.ix_(idx, idx)] @ M.T
        edf = float(np.sum(edf_of[idx]))
        rank = comp.basis.n_coef if comp.term.fx else int(round(edf))
        F, p = wald_test(gamma, V_gamma, rank, df_resid)
        rows.append(SmoothSummary(
            label=comp.label, edf=edf, ref_df=float(max(1, min(rank, len(gamma)))),
            f_value=F, p_value=p,
        ))
    return tuple(rows)


def parametric_summaries(
    design: GAMMDesign,
    coef: NDArray,
    vcov: NDArray,
    df_resid: float,
) -> tuple[ParametricSummary, ...]:
    """t tests for the intercept and parametric term columns."""
    n_param = 1 + sum(len(pc.names) for pc in design.parametric)
    rows = []
    for j in range(n_param):
        se = float(np.sqrt(max(vcov[j, j], 0.0)))
        est = float(coef[j])
        t = est / se if se > 0 else np.nan
        p = float(2.0 * stats.t.sf(abs(t), df_resid)) if se > 0 else np.nan
        rows.append(ParametricSummary(
            name=design.fixed_names[j], estimate=est, std_error=se,
            t_value=t, p_value=p,
        ))
    return tuple(rows)
