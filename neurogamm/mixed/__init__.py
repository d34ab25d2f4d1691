"""
Linear mixed models with random intercepts and penalized smooth blocks.

This is the numerical engine under neurogamm.smooth.gamm(): penalized
smooths enter as iid random-effect blocks, so one REML/ML optimizer
selects smoothing parameters and the random intercept variance together.

Public API:
    lmm()        - fit a linear mixed model (REML or ML)
    LMMSolution  - result wrapper
"""

from neurogamm.mixed.solvers import lmm
from neurogamm.mixed.solution import LMMSolution

__all__ = [
    "lmm",
    "LMMSolution",
]
