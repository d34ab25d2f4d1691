"""
Penalized regression spline bases.

Each smooth is a cubic B-spline basis with a second-order difference
penalty (P-spline, Eilers & Marx 1996). Tensor products use row-wise
Kronecker products of marginal bases with summed Kronecker penalties.

Identifiability constraints are absorbed by QR, as mgcv does: with
C = 1'B the column sums of the basis over the training data,
C' = Q R and the constrained basis is B Q[:, 1:].

For the mixed-model fit the constrained penalty S is eigendecomposed,
S = U diag(d) U'. Columns with d ≈ 0 (the null space, e.g. the linear
trend) become fixed effects; the rest are scaled by 1/√d so their
penalty is the identity and enter as an iid random-effect block
(Wood 2017, §6.6; gamm4). With fx=TRUE every column is a fixed effect.

References:
    Eilers, P. H. C., & Marx, B. D. (1996). Flexible smoothing with
    B-splines and penalties. Statistical Science, 11(2), 89-121.
    Wood, S. N. (2017). Generalized Additive Models: An Introduction
    with R (2nd ed.). CRC Press.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import BSpline

DEGREE = 3
NULL_SPACE_TOL = 1e-8


@dataclass(frozen=True)
class Margin:
    """One-dimensional cubic B-spline basis over a fixed knot vector."""
    variable: str
    knots: NDArray
    k: int

    @classmethod
    def over_range(cls, variable: str, x: NDArray, k: int) -> Margin:
        """Equally spaced knots with the basis complete on [min(x), max(x)]."""
        lo, hi = float(np.min(x)), float(np.max(x))
        if hi <= lo:
            hi = lo + 1.0
        h = (hi - lo) / (k - DEGREE)
        knots = lo + h * np.arange(-DEGREE, k + 1, dtype=np.float64)
        return cls(variable=variable, knots=knots, k=k)

    def evaluate(self, x: NDArray) -> NDArray:
        """Basis matrix (n, k)."""
        spline = BSpline(self.knots, np.eye(self.k), DEGREE, extrapolate=True)
        return np.atleast_2d(spline(np.asarray(x, dtype=np.float64)))

    def penalty(self) -> NDArray:
        """Second-order difference penalty D'D (k, k)."""
        D = np.diff(np.eye(self.k), n=2, axis=0)
        return D.T @ D


def row_kron(A: NDArray, B: NDArray) -> NDArray:
    """Row-wise Kronecker product: row i is kron(A[i], B[i])."""
    n = A.shape[0]
    return (A[:, :, np.newaxis] * B[:, np.newaxis, :]).reshape(n, -1)


def tensor_penalty(penalties: list[NDArray]) -> NDArray:
    """Sum of marginal penalties, each expanded with identities."""
    dims = [S.shape[0] for S in penalties]
    total = np.zeros((int(np.prod(dims)),) * 2)
    for j, S in enumerate(penalties):
        term = np.ones((1, 1))
        for i, d in enumerate(dims):
            term = np.kron(term, S if i == j else np.eye(d))
        total += term
    return total


def sum_to_zero(B: NDArray) -> NDArray:
    """Constraint matrix Zc (k, k-1) so that 1'(B Zc) = 0."""
    C = B.sum(axis=0)[:, np.newaxis]
    Q, _ = np.linalg.qr(C, mode='complete')
    return Q[:, 1:]


def mixed_split(S: NDArray) -> tuple[NDArray, NDArray]:
    """Split a penalty into fixed and scaled random maps.

    Returns:
        (fixed_map, random_map): fixed_map spans the null space of S;
        random_map = U₊ diag(1/√d₊), so (B random_map) carries an
        identity penalty.
    """
    S = 0.5 * (S + S.T)
    d, U = np.linalg.eigh(S)
    tol = NULL_SPACE_TOL * max(float(np.max(np.abs(d))), 1.0)
    null = d <= tol
    fixed_map = U[:, null]
    random_map = U[:, ~null] / np.sqrt(d[~null])[np.newaxis, :]
    return fixed_map, random_map


@dataclass(frozen=True)
class SmoothBasis:
    """A constrained (tensor) spline basis with its penalty.

    Attributes:
        margins: One Margin per variable.
        constraints: Per-margin constraint matrices (``ti``), or None.
        joint_constraint: Constraint on the full product (``s``/``te``),
            or None for uncentred bases.
        penalty: Penalty on the constrained coefficients.
    """
    margins: tuple[Margin, ...]
    constraints: tuple[NDArray, ...] | None
    joint_constraint: NDArray | None
    penalty: NDArray

    @property
    def variables(self) -> tuple[str, ...]:
        return tuple(m.variable for m in self.margins)

    @property
    def n_coef(self) -> int:
        return self.penalty.shape[0]

    def evaluate(self, columns: dict[str, NDArray]) -> NDArray:
        """Constrained basis matrix for the given covariate values."""
        blocks = []
        for j, margin in enumerate(self.margins):
            B = margin.evaluate(columns[margin.variable])
            if self.constraints is not None:
                B = B @ self.constraints[j]
            blocks.append(B)
        B = blocks[0]
        for nxt in blocks[1:]:
            B = row_kron(B, nxt)
        if self.joint_constraint is not None:
            B = B @ self.joint_constraint
        return B

    @classmethod
    def build(
        cls,
        columns: dict[str, NDArray],
        variables: tuple[str, ...],
        k: tuple[int, ...],
        *,
        weights: NDArray | None = None,
        interaction_only: bool = False,
        centred: bool = True,
    ) -> SmoothBasis:
        """Construct the basis from training data.

        Args:
            columns: Covariate name → training values.
            variables: Covariates of the smooth (one, or several for tensors).
            k: Basis dimension per margin.
            weights: Row multipliers applied before computing constraints
                (factor-level indicators for by-smooths).
            interaction_only: Constrain each margin separately (``ti``).
            centred: Apply a sum-to-zero constraint (False for smooths
                with a continuous by-variable).
        """
        margins = tuple(
            Margin.over_range(v, columns[v], kv) for v, kv in zip(variables, k)
        )
        w = np.ones(len(columns[variables[0]])) if weights is None else weights
        raw = [m.evaluate(columns[m.variable]) * w[:, np.newaxis] for m in margins]
        penalties = [m.penalty() for m in margins]

        if interaction_only:
            constraints = tuple(sum_to_zero(B) for B in raw)
            raw = [B @ Zc for B, Zc in zip(raw, constraints)]
            penalties = [Zc.T @ S @ Zc for S, Zc in zip(penalties, constraints)]
            joint = None
            S = tensor_penalty(penalties)
        else:
            constraints = None
            B = raw[0]
            for nxt in raw[1:]:
                B = row_kron(B, nxt)
            S = tensor_penalty(penalties)
            joint = sum_to_zero(B) if centred else None
            if joint is not None:
                S = joint.T @ S @ joint

        return cls(
            margins=margins,
            constraints=constraints,
            joint_constraint=joint,
            penalty=S,
        )
