"""
Exceptions and warnings raised by dyntool.

All errors derive from :class:`DynToolError` and also from the closest
builtin exception, so callers may catch either.
"""

from typing import Optional, Sequence

import numpy as np


class DynToolError(Exception):
    """Base class for all dyntool errors."""


class InvalidArgument(DynToolError, ValueError):
    """Malformed input supplied at assembly or compile time."""


class DimensionMismatch(DynToolError, ValueError):
    """Vector or matrix sizes do not agree."""


class SingularMassMatrix(DynToolError, np.linalg.LinAlgError):
    """The (augmented) mass matrix is singular at the given configuration.

    Attributes
    ----------
    q : ndarray or None
        Coordinates at which the solve failed
    dq : ndarray or None
        Velocities at which the solve failed
    """

    def __init__(
        self,
        message: str,
        q: Optional[np.ndarray] = None,
        dq: Optional[np.ndarray] = None,
    ):
        if q is not None:
            message = f"{message} (q={np.array2string(q, precision=6)}"
            if dq is not None:
                message += f", dq={np.array2string(dq, precision=6)}"
            message += ")"
        super().__init__(message)
        self.q = q
        self.dq = dq


class InconsistentInitialCondition(DynToolError):
    """Initial state violates the algebraic equations of a DAE."""

    def __init__(self, rows: Sequence[int], residuals: np.ndarray, tol: float):
        self.rows = list(rows)
        self.residuals = residuals
        self.tol = tol
        details = ", ".join(f"eqn[{i}]={r:.3e}" for i, r in zip(self.rows, residuals))
        super().__init__(
            f"Initial condition violates algebraic equations at t=0 (tol={tol:g}): {details}"
        )


class IntegrationFailure(DynToolError, RuntimeError):
    """The stiff integrator could not complete the requested solve."""

    def __init__(self, message: str, duration: Optional[float] = None):
        if duration is not None:
            message = f"{message} (duration={duration:g})"
        super().__init__(message)
        self.duration = duration


class ConstraintsIgnoredWarning(UserWarning):
    """Constraints were declared but the chosen derivation does not use them."""
