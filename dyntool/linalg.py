"""
Numeric linear solves shared by every acceleration evaluator.
"""

import warnings

import numpy as np
from scipy import linalg

from .errors import SingularMassMatrix


def solve_linear(A: np.ndarray, b: np.ndarray, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
    """Solve ``A x = b`` for a mass (or augmented mass) matrix.

    Never forms an inverse. Exactly singular matrices and matrices whose
    reciprocal condition number is below machine precision both raise
    :class:`SingularMassMatrix`, tagged with the configuration (q, dq).

    Parameters
    ----------
    A : ndarray
        Square system matrix
    b : ndarray
        Right hand side vector
    q, dq : ndarray
        Configuration the matrix was evaluated at

    Returns
    -------
    ndarray
        Solution vector, shape (n,)
    """
    if not np.all(np.isfinite(A)):
        raise SingularMassMatrix("Mass matrix has non-finite entries", q, dq)
    with warnings.catch_warnings():
        warnings.simplefilter("error", linalg.LinAlgWarning)
        try:
            x = linalg.solve(A, b.reshape(-1))
        except linalg.LinAlgWarning as exc:
            raise SingularMassMatrix(f"Mass matrix is ill-conditioned: {exc}", q, dq) from exc
        except np.linalg.LinAlgError as exc:
            raise SingularMassMatrix(f"Mass matrix is singular: {exc}", q, dq) from exc
    return x
