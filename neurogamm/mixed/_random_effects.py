"""
Random effect blocks, Z matrix construction, and the Λ_θ parameterization.

Two kinds of block share one representation:

1. Grouping blocks - a random intercept per level of a grouping factor
   (e.g. subject). Z has one indicator column per level.
2. Penalty blocks - the range-space columns of a penalized smooth after
   the mixed-model reparameterization. Their coefficients are iid
   N(0, σ² θ²), which is exactly an identity ridge penalty with smoothing
   parameter 1/θ² (Wood 2017, §6.6; gamm4).

Every block carries a single θ (relative standard deviation), so Λ_θ is
diagonal and is stored as a vector of length q.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48.
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray

GROUPING = 'grouping'
PENALTY = 'penalty'


@dataclass(frozen=True)
class RandomEffectSpec:
    """One block of random effects.

    Attributes:
        name: Grouping factor name (e.g. 'subject') or smooth label
            (e.g. 's(age)').
        kind: GROUPING or PENALTY.
        Z_block: Design matrix block, shape (n, J).
        n_levels: Number of columns J (groups, or penalized basis columns).
        group_ids: For grouping blocks, 0-indexed level of each row (n,);
            None for penalty blocks.
        levels: Original level labels of a grouping block.
    """
    name: str
    kind: str
    Z_block: NDArray
    n_levels: int
    group_ids: NDArray | None = None
    levels: NDArray | None = None

    @property
    def theta_size(self) -> int:
        return 1


def grouping_block(name: str, labels: NDArray) -> RandomEffectSpec:
    """Random intercept block for one grouping factor."""
    labels = np.asarray(labels)
    levels, group_ids = np.unique(labels, return_inverse=True)
    n = labels.shape[0]
    Z = np.zeros((n, len(levels)), dtype=np.float64)
    Z[np.arange(n), group_ids] = 1.0
    return RandomEffectSpec(
        name=name,
        kind=GROUPING,
        Z_block=Z,
        n_levels=len(levels),
        group_ids=group_ids,
        levels=levels,
    )


def penalty_block(name: str, Z_block: NDArray) -> RandomEffectSpec:
    """Penalized smooth block with identity penalty on its columns."""
    Z_block = np.asarray(Z_block, dtype=np.float64)
    if Z_block.ndim != 2 or Z_block.shape[1] == 0:
        raise ValueError(
            f"Penalty block '{name}' needs a non-empty 2D matrix, "
            f"got shape {Z_block.shape}"
        )
    return RandomEffectSpec(
        name=name,
        kind=PENALTY,
        Z_block=Z_block,
        n_levels=Z_block.shape[1],
    )


def build_z_matrix(specs: list[RandomEffectSpec]) -> NDArray:
    """Concatenate Z blocks: Z = [Z_1 | Z_2 | ...], shape (n, q)."""
    if not specs:
        raise ValueError("At least one random effect block required")
    return np.hstack([spec.Z_block for spec in specs])


def block_slices(specs: list[RandomEffectSpec]) -> dict[str, slice]:
    """Column range of each block inside Z (and inside b)."""
    out = {}
    offset = 0
    for spec in specs:
        out[spec.name] = slice(offset, offset + spec.n_levels)
        offset += spec.n_levels
    return out


def build_lambda(theta: NDArray, specs: list[RandomEffectSpec]) -> NDArray:
    """Diagonal of Λ_θ: θ_k repeated over the J_k columns of block k."""
    return np.concatenate([
        np.full(spec.n_levels, theta[k], dtype=np.float64)
        for k, spec in enumerate(specs)
    ])


def theta_lower_bounds(specs: list[RandomEffectSpec]) -> NDArray:
    """θ are relative standard deviations: bounded below by 0."""
    return np.zeros(len(specs), dtype=np.float64)


def theta_start(specs: list[RandomEffectSpec]) -> NDArray:
    """Start every block at σ_b/σ = 1."""
    return np.ones(len(specs), dtype=np.float64)
