"""
Common data types for linear mixed models.

Frozen parameter payloads that go inside Result[P] envelopes. Pure data,
no computation.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48.
"""

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class VarCompSummary:
    """Variance component of one random effect block.

    Attributes:
        group: Grouping factor name (e.g. 'subject') or smooth label.
        kind: 'grouping' or 'penalty'.
        variance: Estimated variance σ²_b.
        std_dev: Standard deviation (sqrt of variance).
    """
    group: str
    kind: str
    variance: float
    std_dev: float


@dataclass(frozen=True)
class LMMParams:
    """
    Parameter payload for a fitted linear mixed model.
    """
    # Fixed effects
    coefficients: NDArray              # β̂ (p,)
    coefficient_names: tuple[str, ...]
    se: NDArray                        # (p,)
    df_residual: float                 # n - total edf
    t_values: NDArray                  # (p,)
    p_values: NDArray                  # (p,)

    # Random effects
    var_components: tuple[VarCompSummary, ...]
    residual_variance: float           # σ²
    residual_std: float                # σ

    # Model fit
    log_likelihood: float
    reml: bool
    aic: float
    bic: float
    n_obs: int
    n_groups: dict[str, int]           # grouping factor → number of levels

    # Convergence
    converged: bool
    n_iter: int

    # Conditional modes
    random_effects: dict[str, NDArray]  # block name → (J,)
    b: NDArray                          # all conditional modes (q,)
    block_slices: dict[str, slice]      # block name → columns of Z / b

    # Joint Bayesian covariance of (β, b) and per-coefficient influence;
    # None when inference was skipped
    vcov_joint: NDArray | None
    influence: NDArray | None

    # Predictions
    fitted_values: NDArray             # Xβ̂ + Zb̂ (n,)
    residuals: NDArray

    theta: NDArray
