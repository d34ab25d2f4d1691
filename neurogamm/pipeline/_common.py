"""
Common data structures for model-testing tasks.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from neurogamm.formula.terms import ModelSpec

if TYPE_CHECKING:
    from neurogamm.derivatives._common import DerivativeCurve
    from neurogamm.montecarlo.solution import BootstrapLRTSolution
    from neurogamm.smooth.solution import GAMMSolution


class PipelineState(enum.Enum):
    """States of a model-testing task, in visiting order."""
    FITTING = 'fitting'
    TESTING_TERM = 'testing_term'
    SELECTING = 'selecting'
    REFITTING_FOR_INFERENCE = 'refitting_for_inference'
    REFITTING_FOR_PLOTTING = 'refitting_for_plotting'
    DERIVING_SIGNIFICANCE = 'deriving_significance'
    DONE = 'done'


@dataclass(frozen=True)
class TaskResult:
    """
    Everything a model-testing task produced.

    Attributes:
        spec: The selected specification.
        full_spec: The specification the task started from.
        inference_fit: Fit of the selected spec with unpenalized smooths.
        plotting_fit: Fit of the selected spec with penalized smooths.
        bootstrap: Bootstrap LRT result, when that test ran.
        interaction_p_value: Smallest smooth-table p-value of the last
            term, when the non-bootstrap interaction test ran.
        interaction_threshold: alpha / bonferroni_divisor for that test.
        full_selected: Verdict of the term test (None if no test ran).
        derivative: Derivative curve of the plotting fit, if requested.
        states: Visited states in order, ending with DONE.
    """
    spec: ModelSpec
    full_spec: ModelSpec
    inference_fit: 'GAMMSolution'
    plotting_fit: 'GAMMSolution'
    bootstrap: 'BootstrapLRTSolution | None' = None
    interaction_p_value: float | None = None
    interaction_threshold: float | None = None
    full_selected: bool | None = None
    derivative: 'DerivativeCurve | None' = None
    states: tuple[PipelineState, ...] = ()

    @property
    def bic(self) -> float:
        """Fit quality of the inference model."""
        return self.inference_fit.bic

    @property
    def n_obs(self) -> int:
        return self.inference_fit.n_obs

    @property
    def tested(self) -> bool:
        return self.full_selected is not None

    def summary(self) -> str:
        lines = [
            f"Model task: {self.full_spec}",
            f"Selected:   {self.spec}",
        ]
        if self.bootstrap is not None:
            lines.append(
                f"Bootstrap LRT: LR = {self.bootstrap.observed_statistic:.4f}, "
                f"p = {self.bootstrap.p_value:.4f} ({self.bootstrap.sim_count} replicates)"
            )
        if self.interaction_p_value is not None:
            lines.append(
                f"Interaction test: p = {self.interaction_p_value:.4g} "
                f"vs threshold {self.interaction_threshold:.4g}"
            )
        if not self.tested:
            lines.append("Last term not tested")
        lines.append(f"BIC = {self.bic:.2f}, n = {self.n_obs}")
        if self.derivative is not None:
            lines.append(self.derivative.summary())
        lines.append("States: " + " -> ".join(s.name for s in self.states))
        return '\n'.join(lines)
