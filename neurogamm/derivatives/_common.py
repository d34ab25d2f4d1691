"""
Common data structures for derivative analysis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from neurogamm.core.exceptions import DimensionError


def runs_of(mask: NDArray, x: NDArray) -> list[tuple[float, float]]:
    """(x[start], x[end]) of every maximal run of True in ``mask``."""
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return []
    padded = np.concatenate([[False], mask, [False]]).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return [(float(x[s]), float(x[e])) for s, e in zip(starts, ends)]


@dataclass(frozen=True)
class DerivativeCurve:
    """
    First derivative of a fitted smooth over an evenly spaced grid.

    Attributes:
        variable: The smooth covariate.
        x: Grid (grid_size,).
        derivative: Estimated derivative at each grid point.
        se: Delta-method standard error of the derivative.
        lower: derivative - ci_multiplier * se.
        upper: derivative + ci_multiplier * se.
        significant: True where the interval excludes zero.
        by_level: Factor level the curve was evaluated for, if any.
        ci_multiplier: Half-width of the interval in standard errors.
    """
    variable: str
    x: NDArray[np.floating[Any]]
    derivative: NDArray[np.floating[Any]]
    se: NDArray[np.floating[Any]]
    lower: NDArray[np.floating[Any]]
    upper: NDArray[np.floating[Any]]
    significant: NDArray[np.bool_]
    by_level: object = None
    ci_multiplier: float = 2.0

    def __post_init__(self):
        n = len(self.x)
        for name in ('derivative', 'se', 'lower', 'upper', 'significant'):
            if len(getattr(self, name)) != n:
                raise DimensionError(
                    f"DerivativeCurve.{name} has length {len(getattr(self, name))}, "
                    f"expected {n}"
                )

    @property
    def grid_size(self) -> int:
        return len(self.x)

    @property
    def masked_derivative(self) -> NDArray[np.floating[Any]]:
        """Derivative where significant, zero elsewhere."""
        return np.where(self.significant, self.derivative, 0.0)

    @property
    def intervals(self) -> list[tuple[float, float]]:
        """Maximal runs of significance as (start, end) grid values."""
        return runs_of(self.significant, self.x)

    @property
    def any_significant(self) -> bool:
        return bool(np.any(self.significant))

    def summary(self) -> str:
        lines = [
            f"Derivative of s({self.variable})"
            + (f" at level {self.by_level}" if self.by_level is not None else "")
            + f", {self.grid_size} grid points, CI = d ± {self.ci_multiplier:g}·SE",
        ]
        intervals = self.intervals
        if not intervals:
            lines.append("No region of significant change")
        for start, end in intervals:
            sel = (self.x >= start) & (self.x <= end)
            direction = 'increasing' if np.mean(self.derivative[sel]) > 0 else 'decreasing'
            lines.append(f"  [{start:.4g}, {end:.4g}]  {direction}")
        return '\n'.join(lines)
