"""
Exception hierarchy for neurogamm.

All exceptions inherit from NeuroGAMMError to allow catching any
library-specific error. Domain-specific exceptions inherit from the
appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
    - A verdict (e.g. "interaction not significant") is a value, not an error
"""


class NeuroGAMMError(Exception):
    """Base exception for all neurogamm errors."""
    pass


class ValidationError(NeuroGAMMError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.
    """
    pass


class InvalidSpecError(ValidationError):
    """
    A model specification is malformed.

    Raised for an empty term list, a term under test that is not last,
    an interaction variable absent from the formula, unparsable formula
    text, or a formula variable missing from the dataset.

    Attributes:
        spec: Formula text of the offending specification, if available
    """

    def __init__(self, message: str, spec: str | None = None):
        super().__init__(message)
        self.spec = spec


class NonNestedModelError(InvalidSpecError):
    """
    Two specifications are not nested as "full minus its last term".

    Attributes:
        full: Formula text of the full model
        reduced: Formula text of the reduced model
    """

    def __init__(self, message: str, full: str | None = None, reduced: str | None = None):
        super().__init__(message, spec=full)
        self.full = full
        self.reduced = reduced


class NumericalError(NeuroGAMMError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        rank: Numerical rank, if computed
        expected_rank: Expected rank
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.rank = rank
        self.expected_rank = expected_rank


class ConvergenceError(NeuroGAMMError):
    """
    Iterative algorithm failed to converge.

    Attributes:
        iterations: Number of iterations completed
        final_change: Final parameter or objective change
        reason: Why convergence failed (optimizer message)
        threshold: The convergence threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold


class FitConvergenceError(ConvergenceError):
    """
    A mixed model fit did not converge.

    Fatal to the current task. Callers may retry with a simpler
    specification; nothing in neurogamm retries automatically.

    Attributes:
        model: Formula text (or description) of the model being fit
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        reason: str | None = None,
        model: str | None = None,
    ):
        super().__init__(message, iterations, reason=reason)
        self.model = model


class TaskFailedError(NeuroGAMMError):
    """
    A model-testing task aborted.

    Attributes:
        state: The pipeline state in which the failure happened
        cause: The underlying exception
    """

    def __init__(self, message: str, state, cause: BaseException):
        super().__init__(message)
        self.state = state
        self.cause = cause


class EmptySignificantRegionWarning(UserWarning):
    """No grid point of a derivative curve is significant."""
    pass
