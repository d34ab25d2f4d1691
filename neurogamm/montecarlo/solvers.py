"""
Parametric bootstrap comparison of nested additive mixed models.

Public API:
    compare() - test the last term of a ModelSpec against the model
                without it.
"""

from __future__ import annotations

from neurogamm.core.config import StatsConfig
from neurogamm.core.dataset import Dataset, ExclusionRule
from neurogamm.formula.terms import ModelSpec
from neurogamm.montecarlo.backends.cpu import CPUBootstrapLRTBackend
from neurogamm.montecarlo.design import LRTDesign
from neurogamm.montecarlo.solution import BootstrapLRTSolution


def compare(
    full_spec: ModelSpec | str,
    dataset: Dataset,
    group_var: str,
    sim_count: int = 1000,
    *,
    seed: int | None = None,
    alpha: float = 0.05,
    exclude: ExclusionRule = None,
    n_jobs: int = 1,
    config: StatsConfig | None = None,
) -> BootstrapLRTSolution:
    """
    Parametric bootstrap likelihood ratio test of the last term.

    Both models are fitted by maximum likelihood with every smooth
    expanded into unpenalized fixed-effect columns and a random intercept
    for ``group_var``. Responses are simulated from the reduced fit.

    Args:
        full_spec: Full model; its last term is the one tested.
        dataset: Input data.
        group_var: Grouping column for the random intercept.
        sim_count: Number of bootstrap replicates.
        seed: Seed of the root SeedSequence.
        alpha: The full model is selected when p < alpha.
        exclude: Rows to leave out (column name or callable mask).
        n_jobs: Worker threads for the replicates; results do not
            depend on it.
        config: When given, supplies sim_count, seed, alpha, n_jobs and
            optimizer settings instead of the keyword arguments.

    Returns:
        BootstrapLRTSolution with the null distribution, p-value and
        selected specification.

    Raises:
        InvalidSpecError: ``full_spec`` has no terms.
        NonNestedModelError: Reduced model not nested in the full one.
        FitConvergenceError: Any ML fit did not converge.

    Examples:
        >>> res = compare("y ~ sex + s(age, k=4)", ds, 'subject', 200, seed=1)
        >>> res.p_value, res.best_spec
    """
    if isinstance(full_spec, str):
        full_spec = ModelSpec.parse(full_spec)

    tol, max_iter = 1e-8, 200
    if config is not None:
        sim_count, seed, alpha, n_jobs = (
            config.sim_count, config.seed, config.alpha, config.n_jobs,
        )
        tol, max_iter = config.tol, config.max_iter

    design = LRTDesign.for_comparison(
        full_spec, dataset, group_var, sim_count,
        seed=seed, alpha=alpha, exclude=exclude, n_jobs=n_jobs,
        tol=tol, max_iter=max_iter,
    )
    result = CPUBootstrapLRTBackend().solve(design)
    return BootstrapLRTSolution(_result=result, _design=design)
