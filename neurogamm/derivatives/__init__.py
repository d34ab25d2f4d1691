"""
Derivative analysis of fitted smooths.

Usage:
    from neurogamm.derivatives import derivatives_of, significant_intervals

    curve = derivatives_of(fit, 'age', grid_size=1000)
    significant_intervals(curve)   # [(12.1, 17.8)]
"""

from neurogamm.derivatives._common import DerivativeCurve
from neurogamm.derivatives.solvers import derivatives_of, significant_intervals

__all__ = [
    "DerivativeCurve",
    "derivatives_of",
    "significant_intervals",
]
