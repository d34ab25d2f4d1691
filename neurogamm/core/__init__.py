"""
Core infrastructure for neurogamm.

Shared abstractions used by every subpackage (formula, mixed, smooth,
montecarlo, derivatives, pipeline, visualization).

Key components:
    dataset: Dataset and the CovariateKind tag
    config: StatsConfig / PlotConfig
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
"""

from neurogamm.core.dataset import Dataset, CovariateKind
from neurogamm.core.config import StatsConfig, PlotConfig
from neurogamm.core.result import Result
from neurogamm.core.exceptions import (
    NeuroGAMMError,
    ValidationError,
    DimensionError,
    InvalidSpecError,
    NonNestedModelError,
    NumericalError,
    SingularMatrixError,
    ConvergenceError,
    FitConvergenceError,
    TaskFailedError,
    EmptySignificantRegionWarning,
)

__all__ = [
    "Dataset",
    "CovariateKind",
    "StatsConfig",
    "PlotConfig",
    "Result",
    "NeuroGAMMError",
    "ValidationError",
    "DimensionError",
    "InvalidSpecError",
    "NonNestedModelError",
    "NumericalError",
    "SingularMatrixError",
    "ConvergenceError",
    "FitConvergenceError",
    "TaskFailedError",
    "EmptySignificantRegionWarning",
]
