"""
Generic result container for neurogamm computations.

Every fit, comparison and derivative analysis wraps its payload in the
same envelope so timing, warnings and provenance travel with the numbers.

Design decisions:
    - Generic over parameter payload P
    - info dict for flexible metadata (converged, iterations, formula)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True): refits produce new results, never edits
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope.

    Attributes:
        params: Domain-specific payload (GAMMParams, BootstrapLRTParams, ...)
        info: Structured metadata (method, convergence, formula)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the code path that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=LMMParams(...),
        ...     info={'method': 'ML', 'converged': True, 'n_iter': 12},
        ...     timing={'total_seconds': 0.05, 'optimization': 0.04},
        ...     backend_name='cpu_lmm'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
