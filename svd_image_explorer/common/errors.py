"""Exception types raised by the decomposition and reconstruction core.

Input errors derive from ``ValueError`` so that callers validating inputs the
usual NumPy way keep working.
"""

from __future__ import annotations


class InvalidInputError(ValueError):
    """Input data is empty, not 2D, or inconsistent across channels."""


class DimensionMismatch(InvalidInputError):
    """Operand shapes of a matrix product or factorization disagree."""


class FactorizationError(RuntimeError):
    """The dense SVD primitive failed or returned malformed output."""
