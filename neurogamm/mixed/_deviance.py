"""
Profiled deviance for the linear mixed model.

The outer optimizer minimizes this over θ; β and σ² are profiled out
analytically by the PLS solve.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), Sections 2-3.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from neurogamm.mixed._random_effects import RandomEffectSpec, build_lambda
from neurogamm.mixed._pls import PLSResult, solve_pls


def log_det_factors(pls: PLSResult) -> tuple[float, float]:
    """log|L|² and log|RX|² from the PLS Cholesky factors."""
    log_det_L = 2.0 * np.sum(np.log(np.maximum(np.diag(pls.L), 1e-20)))
    log_det_RX = 2.0 * np.sum(np.log(np.maximum(np.abs(np.diag(pls.RX)), 1e-20)))
    return float(log_det_L), float(log_det_RX)


def deviance_from_pls(pls: PLSResult, n: int, p: int, reml: bool) -> float:
    """Profiled deviance (-2 log-likelihood) at the θ that produced ``pls``.

    ML:   d(θ) = log|L|² + n [1 + log(2π pwrss / n)]
    REML: d(θ) = log|L|² + log|RX|² + (n-p) [1 + log(2π pwrss / (n-p))]
    """
    log_det_L, log_det_RX = log_det_factors(pls)
    if reml:
        df = n - p
        return float(log_det_L + log_det_RX
                     + df * (1.0 + np.log(2.0 * np.pi * pls.pwrss / df)))
    return float(log_det_L + n * (1.0 + np.log(2.0 * np.pi * pls.pwrss / n)))


def profiled_deviance_lmm(
    theta: NDArray,
    X: NDArray,
    Z: NDArray,
    y: NDArray,
    specs: list[RandomEffectSpec],
    reml: bool = True,
) -> float:
    """Objective for the θ optimizer (scalar to minimize)."""
    n, p = X.shape
    pls = solve_pls(X, Z, y, build_lambda(theta, specs), reml=reml)
    return deviance_from_pls(pls, n, p, reml)
