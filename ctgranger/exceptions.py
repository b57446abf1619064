"""
Error taxonomy for ctgranger.

Validation problems are fatal and surface immediately. Convergence problems
are fatal on the observed-data fits and recoverable inside the bootstrap.

Usage:
    from ctgranger.exceptions import ValidationError, ConvergenceFailure

    try:
        result = granger_test(root, shoot, times)
    except ValidationError as e:
        print(f"Bad input ({e.field}): {e}")
"""

from typing import Optional


class GrangerError(Exception):
    """Base class for all ctgranger errors."""
    pass


class ValidationError(GrangerError, ValueError):
    """Raised when inputs are malformed or parameters are out of domain."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConvergenceFailure(GrangerError):
    """Raised when a required fit did not reach a stable optimum."""

    def __init__(self, message: str, label: Optional[str] = None, fit=None):
        super().__init__(message)
        self.label = label
        self.fit = fit


class NumericDegeneracy(ConvergenceFailure):
    """Raised when the likelihood is non-finite at every starting point."""
    pass


class LowReliabilityWarning(UserWarning):
    """Too few bootstrap replicates converged for a trustworthy p-value."""
    pass
