"""
Common data types for additive mixed models.

Frozen parameter payloads that go inside Result[P] envelopes. Pure data,
no computation.
"""

from dataclasses import dataclass

from numpy.typing import NDArray

from neurogamm.mixed._common import VarCompSummary


@dataclass(frozen=True)
class ParametricSummary:
    """One row of the parametric coefficient table."""
    name: str
    estimate: float
    std_error: float
    t_value: float
    p_value: float


@dataclass(frozen=True)
class SmoothSummary:
    """
    One row of the smooth term table (mgcv's s.table).

    Attributes:
        label: Component label, e.g. 's(age)' or 's(age):sexM'.
        edf: Effective degrees of freedom.
        ref_df: Rank used for the Wald test.
        f_value: Wald statistic divided by ref_df.
        p_value: Upper tail of F(ref_df, df_residual).
    """
    label: str
    edf: float
    ref_df: float
    f_value: float
    p_value: float


@dataclass(frozen=True)
class GAMMParams:
    """
    Parameter payload for a fitted additive mixed model.

    The coefficient vector stacks the fixed effects and the penalized
    smooth coefficients, [β, b_smooth], matching the columns of
    GAMMDesign.prediction_matrix(). Random intercepts are kept separately.
    """
    coefficients: NDArray                  # (p + q_smooth,)
    coefficient_names: tuple[str, ...]
    vcov: NDArray                          # Bayesian covariance of coefficients

    parametric: tuple[ParametricSummary, ...]
    smooths: tuple[SmoothSummary, ...]

    var_components: tuple[VarCompSummary, ...]
    residual_variance: float
    random_intercepts: dict[str, NDArray]

    log_likelihood: float
    reml: bool
    aic: float
    bic: float
    n_obs: int
    n_groups: dict[str, int]
    edf_total: float
    df_residual: float

    fitted_values: NDArray
    residuals: NDArray

    converged: bool
    n_iter: int
