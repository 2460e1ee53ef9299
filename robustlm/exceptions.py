"""
Exception hierarchy.

Every error raised by robustlm derives from ``RobustLMError`` and carries
the context needed to diagnose it without re-running the fit.
"""

from typing import Optional


class RobustLMError(Exception):
    """Base class for all robustlm errors."""


# ---------------------------------------------------------------------------
# Syntax errors
# ---------------------------------------------------------------------------

class ParseError(RobustLMError, ValueError):
    """Malformed formula string."""

    def __init__(self, reason: str, formula: str = "", position: Optional[int] = None):
        self.reason = reason
        self.formula = formula
        self.position = position
        message = reason
        if formula:
            message = f"{reason} in formula '{formula}'"
            if position is not None:
                message += f"\n  {formula}\n  {' ' * position}^"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Data errors
# ---------------------------------------------------------------------------

class DataError(RobustLMError, ValueError):
    """Input data inconsistent with the requested model."""


class VariableNotFound(DataError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Variable not found in data: '{name}'")


class DimensionMismatch(DataError):
    def __init__(self, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for '{name}': expected {expected}, got {actual}"
        )


class NonNumericVariableError(DataError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Variable '{name}' is not numeric; wrap it in C({name}) to "
            f"treat it as categorical"
        )


class DuplicateColumnError(DataError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Design matrix column '{name}' would appear twice")


class InvalidClusterSpecification(DataError):
    pass


class InvalidLagSpecification(DataError):
    pass


# ---------------------------------------------------------------------------
# Numerical errors
# ---------------------------------------------------------------------------

class NumericalError(RobustLMError, ArithmeticError):
    """Least-squares system cannot be solved as posed."""


class SingularSystemError(NumericalError):
    pass


class InsufficientObservationsError(NumericalError):
    def __init__(self, n_obs: int, n_params: int, what: str = "the model"):
        self.n_obs = n_obs
        self.n_params = n_params
        super().__init__(
            f"Insufficient observations for {what}: {n_obs} observations for "
            f"{n_params} parameters ({n_obs - n_params} residual degrees of freedom)"
        )


class CovarianceTypeNotSupportedError(RobustLMError, TypeError):
    pass
