"""
CPU backend for the parametric bootstrap likelihood ratio test.

CPUBootstrapLRTBackend: simulate from the reduced ML fit, refit both
nested designs by ML, collect the LR statistics.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numpy.typing import NDArray

from neurogamm.core.compute.timing import Timer
from neurogamm.core.result import Result
from neurogamm.mixed.solution import LMMSolution
from neurogamm.mixed.solvers import lmm
from neurogamm.montecarlo._common import BootstrapLRTParams
from neurogamm.montecarlo.design import LRTDesign

logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 100


def lr_statistic(full: LMMSolution, reduced: LMMSolution) -> float:
    """max(0, 2(ℓ_full - ℓ_reduced)); negative differences are optimizer noise."""
    return max(0.0, 2.0 * (full.log_likelihood - reduced.log_likelihood))


class CPUBootstrapLRTBackend:
    """
    CPU backend for the bootstrap LRT.

    Replicate i draws from a generator seeded by the i-th child of
    SeedSequence(seed), so the null distribution does not depend on n_jobs.
    """

    @property
    def name(self) -> str:
        return 'cpu_bootstrap_lrt'

    def _fit(self, design: LRTDesign, y: NDArray, X: NDArray, names, model: str) -> LMMSolution:
        return lmm(
            y, X, {design.group_var: design.groups},
            coefficient_names=list(names),
            reml=False,
            tol=design.tol,
            max_iter=design.max_iter,
            compute_inference=False,
            model=model,
        )

    def solve(self, design: LRTDesign) -> Result[BootstrapLRTParams]:
        """Run the bootstrap and return Result[BootstrapLRTParams]."""
        timer = Timer()
        timer.start()

        full_text, reduced_text = str(design.full), str(design.reduced)

        with timer.section('observed_fits'):
            fit_full = self._fit(design, design.y, design.X_full, design.full_names, full_text)
            fit_reduced = self._fit(
                design, design.y, design.X_reduced, design.reduced_names, reduced_text,
            )
            observed = lr_statistic(fit_full, fit_reduced)

        R = design.sim_count
        seq = np.random.SeedSequence(design.seed)
        children = seq.spawn(R)
        stats = np.empty(R, dtype=np.float64)
        replicate_warnings: list[tuple[str, ...]] = [()] * R

        logger.info(
            "bootstrap LRT: %d replicates, n_jobs=%d, observed LR=%.4f (%s vs %s)",
            R, design.n_jobs, observed, full_text, reduced_text,
        )

        def replicate(i: int) -> None:
            rng = np.random.default_rng(children[i])
            y_sim = fit_reduced.simulate(rng)
            f = self._fit(design, y_sim, design.X_full, design.full_names, full_text)
            r = self._fit(design, y_sim, design.X_reduced, design.reduced_names, reduced_text)
            stats[i] = lr_statistic(f, r)
            replicate_warnings[i] = tuple(f.warnings) + tuple(r.warnings)
            if (i + 1) % _PROGRESS_EVERY == 0:
                logger.debug("bootstrap LRT: replicate %d/%d done", i + 1, R)

        with timer.section('bootstrap_replicates'):
            if design.n_jobs == 1:
                for i in range(R):
                    replicate(i)
            else:
                with ThreadPoolExecutor(max_workers=design.n_jobs) as pool:
                    # consuming the iterator re-raises replicate failures
                    for _ in pool.map(replicate, range(R)):
                        pass

        with timer.section('p_value'):
            exceed = int(np.sum(stats >= observed))
            p_value = (exceed + 1) / (R + 1)

        warn_list = list(fit_full.warnings) + list(fit_reduced.warnings)
        n_warned = sum(1 for w in replicate_warnings if w)
        if n_warned:
            first = next(w for w in replicate_warnings if w)[0]
            warn_list.append(
                f"{n_warned} of {R} bootstrap replicates raised fit warnings "
                f"(first: {first})"
            )
            logger.warning("bootstrap LRT: %d of %d replicates raised fit warnings", n_warned, R)

        timer.stop()

        params = BootstrapLRTParams(
            observed=observed,
            null_distribution=stats,
            p_value=p_value,
            sim_count=R,
            alpha=design.alpha,
            full_selected=p_value < design.alpha,
            loglik_full=fit_full.log_likelihood,
            loglik_reduced=fit_reduced.log_likelihood,
            df_difference=design.X_full.shape[1] - design.X_reduced.shape[1],
            entropy=int(seq.entropy),
        )

        return Result(
            params=params,
            info={
                'full': full_text,
                'reduced': reduced_text,
                'n': design.n,
                'n_jobs': design.n_jobs,
                'seed': design.seed,
                'replicates_with_warnings': n_warned,
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warn_list),
        )
