"""
Solution wrapper for the bootstrap likelihood ratio test.

BootstrapLRTSolution wraps Result[BootstrapLRTParams], carries the
verdict (best_spec) and prints an R-style summary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from neurogamm.core.result import Result
from neurogamm.formula.terms import ModelSpec
from neurogamm.montecarlo._common import BootstrapLRTParams

if TYPE_CHECKING:
    from neurogamm.montecarlo.design import LRTDesign


@dataclass(frozen=True)
class BootstrapLRTSolution:
    """
    User-facing bootstrap LRT results.

    The decision rule: keep the full model if p_value < alpha, otherwise
    the reduced one.
    """
    _result: Result[BootstrapLRTParams]
    _design: 'LRTDesign'

    @property
    def observed_statistic(self) -> float:
        """LR statistic on the real data."""
        return self._result.params.observed

    @property
    def null_distribution(self) -> NDArray[np.floating[Any]]:
        """LR statistics of the replicates, shape (sim_count,)."""
        return self._result.params.null_distribution

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def sim_count(self) -> int:
        return self._result.params.sim_count

    @property
    def alpha(self) -> float:
        return self._result.params.alpha

    @property
    def seed(self) -> int | None:
        return self._design.seed

    @property
    def entropy(self) -> int:
        """Entropy of the root SeedSequence; reproduces an unseeded run."""
        return self._result.params.entropy

    @property
    def full_spec(self) -> ModelSpec:
        return self._design.full

    @property
    def reduced_spec(self) -> ModelSpec:
        return self._design.reduced

    @property
    def full_selected(self) -> bool:
        return self._result.params.full_selected

    @property
    def best_spec(self) -> ModelSpec:
        """Full spec if the last term is significant, else the reduced spec."""
        return self._design.full if self.full_selected else self._design.reduced

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        """Summary in the manner of pbkrtest::PBmodcomp."""
        params = self._result.params
        lines = [
            "Parametric bootstrap test; time: "
            f"{(self.timing or {}).get('total_seconds', float('nan')):.2f} sec; "
            f"samples: {params.sim_count}",
            "",
            f"large : {self.full_spec}",
            f"small : {self.reduced_spec}",
            "",
            f"{'':>8s} {'stat':>10s} {'df':>4s} {'p.value':>10s}",
            f"{'PBtest':>8s} {params.observed:10.4f} {params.df_difference:4d} "
            f"{params.p_value:10.4f}",
            "",
            f"logLik (ML): full {params.loglik_full:.3f}, "
            f"reduced {params.loglik_reduced:.3f}",
            f"Selected (alpha = {params.alpha}): {self.best_spec}",
        ]
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return (
            f"BootstrapLRTSolution(LR={self.observed_statistic:.4f}, "
            f"p={self.p_value:.4f}, R={self.sim_count})"
        )
