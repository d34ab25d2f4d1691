"""
Penalized Least Squares (PLS) solver for Linear Mixed Models.

For fixed θ (and hence fixed Λ_θ), this solves

    minimize ‖y - Xβ - ZΛu‖² + ‖u‖²

where u = Λ⁻¹b are the "spherical" random effects. σ² is profiled out
from the penalized RSS.

Λ_θ is diagonal here (one θ per block), so ZΛ is a column scaling of Z.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48. Section 2.
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray
import scipy.linalg as sla


@dataclass(frozen=True)
class PLSResult:
    """Result from penalized least squares solve.

    Attributes:
        beta: Fixed effects estimates (p,).
        u: Spherical random effects (q,).
        b: Conditional modes b = Λu (q,).
        sigma_sq: Profiled residual variance.
        pwrss: Penalized RSS = ‖y - Xβ - Zb‖² + ‖u‖².
        L: Cholesky factor of (Λ'Z'ZΛ + I), shape (q, q).
        RX: Cholesky factor of the Schur complement for β, shape (p, p).
        fitted: Xβ + Zb (n,).
        residuals: y - fitted (n,).
    """
    beta: NDArray
    u: NDArray
    b: NDArray
    sigma_sq: float
    pwrss: float
    L: NDArray
    RX: NDArray
    fitted: NDArray
    residuals: NDArray


def solve_pls(
    X: NDArray,
    Z: NDArray,
    y: NDArray,
    lam: NDArray,
    reml: bool = True,
) -> PLSResult:
    """Solve the penalized least squares problem for diagonal Λ.

    Normal equations of the penalized system:

        [Λ'Z'ZΛ + I   Λ'Z'X ] [u]   [Λ'Z'y]
        [X'ZΛ         X'X   ] [β] = [X'y  ]

    u is eliminated through L = chol(Λ'Z'ZΛ + I); β comes from the
    Schur complement RX RX' = X'X - CX'CX.

    Args:
        X: Fixed effects design matrix (n, p).
        Z: Random effects design matrix (n, q).
        y: Response vector (n,).
        lam: Diagonal of Λ_θ (q,).
        reml: If True, σ² = pwrss / (n - p); else pwrss / n.

    Returns:
        PLSResult with all estimates.
    """
    n, p = X.shape
    q = Z.shape[1]

    ZLam = Z * lam[np.newaxis, :]

    LtL = ZLam.T @ ZLam + np.eye(q)
    try:
        L = np.linalg.cholesky(LtL)
    except np.linalg.LinAlgError:
        LtL += 1e-10 * np.eye(q)
        L = np.linalg.cholesky(LtL)

    ZLam_t_y = ZLam.T @ y
    ZLam_t_X = ZLam.T @ X

    cu = sla.solve_triangular(L, ZLam_t_y, lower=True)
    CX = sla.solve_triangular(L, ZLam_t_X, lower=True)

    RtR = X.T @ X - CX.T @ CX
    rhs_beta = X.T @ y - CX.T @ cu

    try:
        RX = np.linalg.cholesky(RtR)
        tmp = sla.solve_triangular(RX, rhs_beta, lower=True)
        beta = sla.solve_triangular(RX.T, tmp, lower=False)
    except np.linalg.LinAlgError:
        # Rank-deficient fixed effects: minimum-norm solution
        beta, _, _, _ = np.linalg.lstsq(RtR, rhs_beta, rcond=None)
        eigvals = np.maximum(np.linalg.eigvalsh(RtR), 1e-20)
        RX = np.diag(np.sqrt(eigvals))

    cu_final = sla.solve_triangular(L, ZLam_t_y - ZLam_t_X @ beta, lower=True)
    u = sla.solve_triangular(L.T, cu_final, lower=False)
    b = lam * u

    fitted = X @ beta + Z @ b
    residuals = y - fitted
    pwrss = float(residuals @ residuals) + float(u @ u)
    sigma_sq = pwrss / (n - p) if reml else pwrss / n

    return PLSResult(
        beta=beta,
        u=u,
        b=b,
        sigma_sq=sigma_sq,
        pwrss=pwrss,
        L=L,
        RX=RX,
        fitted=fitted,
        residuals=residuals,
    )


def augmented_system(X: NDArray, Z: NDArray, lam: NDArray) -> tuple[NDArray, NDArray]:
    """Cross-product and penalty of the stacked design W = [X | ZΛ].

    Returns:
        (W'W, P) where P = diag(0_p, I_q).
    """
    p = X.shape[1]
    q = Z.shape[1]
    W = np.hstack([X, Z * lam[np.newaxis, :]])
    WtW = W.T @ W
    P = np.zeros_like(WtW)
    P[p:, p:] = np.eye(q)
    return WtW, P


def joint_covariance(
    X: NDArray,
    Z: NDArray,
    lam: NDArray,
    sigma_sq: float,
) -> tuple[NDArray, NDArray]:
    """Bayesian covariance of (β, b) and the per-coefficient influence.

    With W = [X | ZΛ] and P = diag(0, I):

        Var(β, u | y) = σ² (W'W + P)⁻¹
        Var(β, b | y) = D Var(β, u | y) D,   D = diag(1_p, λ)

    The influence diagonal diag((W'W + P)⁻¹ W'W) sums to the effective
    degrees of freedom of each coefficient group (fixed columns give 1).

    Returns:
        (vcov, influence): vcov has shape (p+q, p+q) in the (β, b)
        parameterization; influence has length p+q.
    """
    p = X.shape[1]
    WtW, P = augmented_system(X, Z, lam)
    A = WtW + P
    try:
        A_inv = np.linalg.inv(A)
    except np.linalg.LinAlgError:
        A_inv = np.linalg.pinv(A)

    scale = np.concatenate([np.ones(p), lam])
    vcov = sigma_sq * A_inv * np.outer(scale, scale)
    influence = np.einsum('ij,ji->i', A_inv, WtW)
    return vcov, influence
