"""
neurogamm: additive mixed models for longitudinal neuroimaging data.

Fit penalized smooths with a random intercept per subject, test the last
term of a model with a parametric bootstrap likelihood ratio test, find
where a fitted trajectory changes significantly, and plot the result.

Submodules:
    formula: Model specifications and their structural rewrites
    mixed: Linear mixed model engine (REML/ML)
    smooth: Spline bases, gamm() and fitted models
    montecarlo: Bootstrap likelihood ratio test
    derivatives: Derivative curves and significant intervals
    pipeline: Model-testing tasks
    visualization: Figures (matplotlib)
"""

__version__ = "0.1.0"

from neurogamm.core import (
    CovariateKind,
    Dataset,
    PlotConfig,
    StatsConfig,
)
from neurogamm.formula import ModelSpec, Term
from neurogamm.smooth import gamm, concurvity
from neurogamm.montecarlo import compare
from neurogamm.derivatives import derivatives_of, significant_intervals
from neurogamm.pipeline import run_model_task

__all__ = [
    "__version__",
    "CovariateKind",
    "Dataset",
    "PlotConfig",
    "StatsConfig",
    "ModelSpec",
    "Term",
    "gamm",
    "concurvity",
    "compare",
    "derivatives_of",
    "significant_intervals",
    "run_model_task",
]
