"""
Design for the parametric bootstrap likelihood ratio test.

LRTDesign holds everything the replicate loop needs: both nested
specifications, their fixed-effects basis expansions on the retained
rows, the response and the grouping labels. Immutable, validated at
construction, shared read-only between worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from neurogamm.core.dataset import Dataset, ExclusionRule
from neurogamm.core.validation import check_positive_int, check_probability
from neurogamm.formula.algebra import check_nested, drop_last_term
from neurogamm.formula.terms import ModelSpec
from neurogamm.smooth.design import model_matrix


@dataclass(frozen=True)
class LRTDesign:
    """
    Frozen design for a bootstrap LRT between nested models.

    Attributes:
        full: Full specification (term under test last).
        reduced: full without its last term.
        y: Response on retained rows.
        X_full: Fixed-effects basis expansion of ``full``.
        X_reduced: Fixed-effects basis expansion of ``reduced``.
        group_var: Grouping column name.
        groups: Group labels on retained rows.
        sim_count: Number of bootstrap replicates.
        seed: Task-level seed (None draws fresh entropy).
        alpha: Selection threshold on the p-value.
        n_jobs: Worker threads for the replicate loop.
        tol: Optimizer tolerance.
        max_iter: Maximum optimizer iterations.
    """
    full: ModelSpec
    reduced: ModelSpec
    y: NDArray
    X_full: NDArray
    X_reduced: NDArray
    full_names: tuple[str, ...]
    reduced_names: tuple[str, ...]
    group_var: str
    groups: NDArray
    sim_count: int
    seed: int | None
    alpha: float
    n_jobs: int
    tol: float
    max_iter: int

    @property
    def n(self) -> int:
        return len(self.y)

    @classmethod
    def for_comparison(
        cls,
        full: ModelSpec,
        dataset: Dataset,
        group_var: str,
        sim_count: int = 1000,
        *,
        seed: int | None = None,
        alpha: float = 0.05,
        exclude: ExclusionRule = None,
        n_jobs: int = 1,
        tol: float = 1e-8,
        max_iter: int = 200,
    ) -> LRTDesign:
        """
        Create an LRT design with validation.

        Raises:
            InvalidSpecError: ``full`` has no terms or unknown variables.
            NonNestedModelError: The derived reduced model is not nested.
            ValidationError: Invalid sim_count, alpha, n_jobs or grouping.
        """
        check_positive_int(sim_count, 'sim_count')
        check_positive_int(n_jobs, 'n_jobs')
        check_probability(alpha, 'alpha')

        reduced = drop_last_term(full)
        check_nested(full, reduced)

        data = dataset.subset(exclude)
        X_full, full_names = model_matrix(full, data)
        X_reduced, reduced_names = model_matrix(reduced, data)
        groups = data.group_ids(group_var)

        return cls(
            full=full,
            reduced=reduced,
            y=data.numeric(full.response),
            X_full=X_full,
            X_reduced=X_reduced,
            full_names=full_names,
            reduced_names=reduced_names,
            group_var=group_var,
            groups=np.asarray(groups),
            sim_count=int(sim_count),
            seed=seed,
            alpha=float(alpha),
            n_jobs=int(n_jobs),
            tol=tol,
            max_iter=max_iter,
        )
