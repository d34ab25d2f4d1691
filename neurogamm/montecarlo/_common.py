"""
Common data structures for the parametric bootstrap LRT.

BootstrapLRTParams is the parameter payload wrapped by Result[P] and
exposed through BootstrapLRTSolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class BootstrapLRTParams:
    """
    Parameter payload for a bootstrap likelihood ratio test.

    - observed: LR = max(0, 2(ℓ_full - ℓ_reduced)) on the real data (ML)
    - null_distribution: LR of each replicate simulated under the reduced fit
    - p_value: (count(null >= observed) + 1) / (sim_count + 1), Phipson-Smyth
    - full_selected: p_value < alpha
    """
    observed: float
    null_distribution: NDArray[np.floating[Any]]   # shape (sim_count,)
    p_value: float
    sim_count: int
    alpha: float
    full_selected: bool
    loglik_full: float
    loglik_reduced: float
    df_difference: int
    entropy: int
