"""
Design validation for mixed models.

MixedDesign validates and organizes the inputs of an LMM fit: the
response y, the fixed effects matrix X, the grouping factors (random
intercepts) and the penalized smooth blocks.
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray

from neurogamm.core.exceptions import ValidationError, DimensionError
from neurogamm.core.validation import (
    check_array, check_consistent_length, check_finite, check_min_samples, check_ndim,
)


@dataclass(frozen=True)
class MixedDesign:
    """Validated design for a linear mixed model.

    Attributes:
        y: Response vector (n,).
        X: Fixed effects design matrix (n, p).
        groups: Grouping factor name → group labels (n,).
        penalized: Penalty block name → range-space columns (n, J).
        n: Number of observations.
        p: Number of fixed effect columns.
    """
    y: NDArray
    X: NDArray
    groups: dict[str, NDArray]
    penalized: dict[str, NDArray]
    n: int
    p: int

    @staticmethod
    def validate(
        y: NDArray,
        X: NDArray,
        groups: dict[str, NDArray],
        penalized: dict[str, NDArray] | None = None,
    ) -> 'MixedDesign':
        """Validate inputs and create a MixedDesign.

        Raises:
            ValidationError: On too few observations, < 2 levels in a
                grouping factor, or non-finite data.
            DimensionError: On inconsistent lengths.
        """
        y = check_array(y, 'y').ravel()
        n = len(y)

        X = check_array(X, 'X')
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        check_ndim(X, 2, 'X')
        check_consistent_length(y, X, names=('y', 'X'))
        p = X.shape[1]
        check_min_samples(n, p + 2, f"LMM with {p} fixed effects")

        if not groups:
            raise ValidationError("At least one grouping factor required")

        groups_validated = {}
        for name, g in groups.items():
            g = np.asarray(g)
            if g.shape[0] != n:
                raise DimensionError(
                    f"Group '{name}' has {g.shape[0]} elements, expected {n}"
                )
            if len(np.unique(g)) < 2:
                raise ValidationError(
                    f"Group '{name}' has only {len(np.unique(g))} level(s), "
                    f"need at least 2"
                )
            groups_validated[name] = g

        penalized_validated = {}
        for name, block in (penalized or {}).items():
            block = np.asarray(block, dtype=np.float64)
            if block.ndim != 2 or block.shape[0] != n:
                raise DimensionError(
                    f"Penalty block '{name}' has shape {block.shape}, "
                    f"expected ({n}, J)"
                )
            if name in groups_validated:
                raise ValidationError(
                    f"Penalty block '{name}' clashes with a grouping factor name"
                )
            check_finite(block, f"penalty block '{name}'")
            penalized_validated[name] = block

        check_finite(y, 'y')
        check_finite(X, 'X')

        return MixedDesign(
            y=y,
            X=X,
            groups=groups_validated,
            penalized=penalized_validated,
            n=n,
            p=p,
        )
