"""
Model-testing task: fit, test the last term, select, refit, differentiate.

Public API:
    run_model_task() - run the whole task and return a TaskResult

Each stage runs inside _stage(), which records the visited state and
turns any failure into TaskFailedError naming that state.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from neurogamm.core.config import StatsConfig
from neurogamm.core.dataset import Dataset, ExclusionRule
from neurogamm.core.exceptions import TaskFailedError
from neurogamm.derivatives.solvers import derivatives_of
from neurogamm.formula.algebra import (
    drop_last_term, term_under_test, to_penalized_for_plotting, to_unpenalized,
)
from neurogamm.formula.terms import ModelSpec
from neurogamm.montecarlo.solvers import compare
from neurogamm.pipeline._common import PipelineState, TaskResult
from neurogamm.smooth.solution import GAMMSolution
from neurogamm.smooth.solvers import gamm

logger = logging.getLogger(__name__)


@contextmanager
def _stage(state: PipelineState, visited: list[PipelineState]) -> Iterator[None]:
    visited.append(state)
    logger.info("model task: %s", state.name)
    try:
        yield
    except TaskFailedError:
        raise
    except Exception as exc:
        raise TaskFailedError(
            f"Model task failed in state {state.name}: {exc}",
            state=state,
            cause=exc,
        ) from exc


def _interaction_p_value(fit: GAMMSolution, interaction_var: str) -> float:
    """Smallest smooth-table p-value among the components of the last term."""
    last = term_under_test(fit.spec, interaction_var)
    labels = [c.label for c in fit.design.components if c.term == last]
    return float(fit.smooth_table().loc[labels, 'p_value'].min())


def run_model_task(
    full_spec: ModelSpec | str,
    dataset: Dataset,
    group_var: str,
    *,
    exclude: ExclusionRule = None,
    config: StatsConfig = StatsConfig(),
    smooth_var: str | None = None,
    interaction_var: str | None = None,
    derivative: bool = False,
    by_level=None,
) -> TaskResult:
    """
    Run one model-testing task.

    States: FITTING -> TESTING_TERM? -> SELECTING -> REFITTING_FOR_INFERENCE
    -> REFITTING_FOR_PLOTTING -> DERIVING_SIGNIFICANCE? -> DONE.

    The last term is tested by the bootstrap LRT when config.bootstrap is
    set, otherwise (with ``interaction_var``) by comparing its smooth-table
    p-value with alpha / bonferroni_divisor. Without either, the full
    model is kept untested.

    Args:
        full_spec: Full model; the term under test is last.
        dataset: Input data.
        group_var: Grouping column for the random intercept.
        exclude: Rows to leave out (column name or callable mask).
        config: Statistical settings.
        smooth_var: Variable for the derivative analysis (defaults to the
            first smooth variable).
        interaction_var: Variable whose interaction term is tested when
            the bootstrap is off.
        derivative: Compute the derivative curve of the plotting fit.
        by_level: By-variable level for the derivative curve.

    Returns:
        TaskResult.

    Raises:
        TaskFailedError: Any stage failed; ``.state`` names the stage and
            ``.cause`` holds the original exception.
    """
    visited: list[PipelineState] = []

    with _stage(PipelineState.FITTING, visited):
        if isinstance(full_spec, str):
            full_spec = ModelSpec.parse(full_spec)
        fit_spec = to_unpenalized(full_spec) if config.inference_unpenalized else full_spec
        full_fit = gamm(
            fit_spec, dataset, group_var, exclude=exclude,
            tol=config.tol, max_iter=config.max_iter,
        )

    boot = None
    p_interaction = threshold = None
    full_selected = None
    if config.model_test and (config.bootstrap or interaction_var is not None):
        with _stage(PipelineState.TESTING_TERM, visited):
            if config.bootstrap:
                boot = compare(full_spec, dataset, group_var, exclude=exclude, config=config)
                full_selected = boot.full_selected
            else:
                p_interaction = _interaction_p_value(full_fit, interaction_var)
                threshold = config.interaction_threshold
                full_selected = p_interaction < threshold
            logger.info("model task: last term %s", 'kept' if full_selected else 'dropped')

    with _stage(PipelineState.SELECTING, visited):
        best = full_spec if full_selected is not False else drop_last_term(full_spec)

    with _stage(PipelineState.REFITTING_FOR_INFERENCE, visited):
        if best == full_spec:
            inference_fit = full_fit
        else:
            inference_spec = to_unpenalized(best) if config.inference_unpenalized else best
            inference_fit = gamm(
                inference_spec, dataset, group_var, exclude=exclude,
                tol=config.tol, max_iter=config.max_iter,
            )

    with _stage(PipelineState.REFITTING_FOR_PLOTTING, visited):
        plotting_fit = gamm(
            to_penalized_for_plotting(best), dataset, group_var, exclude=exclude,
            tol=config.tol, max_iter=config.max_iter,
        )

    curve = None
    if derivative:
        with _stage(PipelineState.DERIVING_SIGNIFICANCE, visited):
            var = smooth_var
            if var is None:
                smooth_vars = plotting_fit.spec.smooth_variables()
                if not smooth_vars:
                    raise ValueError(f"'{best}' has no smooth term to differentiate")
                var = smooth_vars[0]
            curve = derivatives_of(
                plotting_fit, var, config.grid_size,
                by_level=by_level, ci_multiplier=config.ci_multiplier,
            )

    visited.append(PipelineState.DONE)
    logger.info("model task: DONE (%s)", best)

    return TaskResult(
        spec=best,
        full_spec=full_spec,
        inference_fit=inference_fit,
        plotting_fit=plotting_fit,
        bootstrap=boot,
        interaction_p_value=p_interaction,
        interaction_threshold=threshold,
        full_selected=full_selected,
        derivative=curve,
        states=tuple(visited),
    )
