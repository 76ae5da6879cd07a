"""
Symbolic backends.

- CasADi: default, fast SX expressions and direct IDAS integration
- SymPy: full computer algebra, readable/simplifiable matrices
"""

from typing import Union

from ..errors import InvalidArgument
from .base import Expr, NumericFunction, SymbolicBackend, check_function_name
from .casadi_backend import CasadiBackend
from .sympy_backend import SympyBackend

BACKENDS = {
    "casadi": CasadiBackend,
    "sympy": SympyBackend,
}


def get_backend(backend: Union[str, SymbolicBackend] = "casadi") -> SymbolicBackend:
    """Resolve a backend name or pass a backend instance through.

    Parameters
    ----------
    backend : str or SymbolicBackend
        'casadi', 'sympy' or an instance

    Returns
    -------
    SymbolicBackend
    """
    if isinstance(backend, SymbolicBackend):
        return backend
    try:
        return BACKENDS[backend.lower()]()
    except KeyError:
        raise InvalidArgument(
            f"Unknown backend '{backend}', expected one of {sorted(BACKENDS)}"
        ) from None


__all__ = [
    "Expr",
    "NumericFunction",
    "SymbolicBackend",
    "CasadiBackend",
    "SympyBackend",
    "BACKENDS",
    "get_backend",
    "check_function_name",
]
