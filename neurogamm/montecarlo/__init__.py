"""
Monte Carlo model comparison.

Parametric bootstrap likelihood ratio test between a model and the same
model without its last term.

Usage:
    from neurogamm.montecarlo import compare

    res = compare("volume ~ sex + s(age, k=4)", ds, 'subject',
                  sim_count=1000, seed=42, n_jobs=4)
    res.p_value, res.best_spec
"""

from neurogamm.montecarlo.solvers import compare
from neurogamm.montecarlo.solution import BootstrapLRTSolution

__all__ = [
    "compare",
    "BootstrapLRTSolution",
]
