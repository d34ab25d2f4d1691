"""
Additive mixed models: penalized spline smooths plus random intercepts.

Public API:
    gamm()          - fit a ModelSpec with a random intercept per group
    GAMMSolution    - fitted model (tables, prediction, export)
    build_design()  - fixed and penalized model matrices of a ModelSpec
    model_matrix()  - full fixed-effects basis expansion
    concurvity()    - pairwise concurvity of smooth terms
"""

from neurogamm.smooth.design import GAMMDesign, build_design, model_matrix
from neurogamm.smooth.solvers import gamm
from neurogamm.smooth.solution import GAMMSolution
from neurogamm.smooth.concurvity import concurvity

__all__ = [
    "gamm",
    "GAMMSolution",
    "GAMMDesign",
    "build_design",
    "model_matrix",
    "concurvity",
]
