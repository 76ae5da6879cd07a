"""
Conversion of SymPy expressions to CasADi SX.

Lets systems built with the SymPy backend run through CasADi integrators.
"""

import casadi as ca
import sympy

from .errors import InvalidArgument

__all__ = ["sympy_to_casadi"]


_UNARY = {
    sympy.sin: ca.sin,
    sympy.cos: ca.cos,
    sympy.tan: ca.tan,
    sympy.asin: ca.asin,
    sympy.acos: ca.acos,
    sympy.atan: ca.atan,
    sympy.sinh: ca.sinh,
    sympy.cosh: ca.cosh,
    sympy.tanh: ca.tanh,
    sympy.exp: ca.exp,
    sympy.log: ca.log,
    sympy.Abs: ca.fabs,
    sympy.sign: ca.sign,
    sympy.floor: ca.floor,
    sympy.ceiling: ca.ceil,
}


def sympy_to_casadi(f, symbols=None):
    """
    Convert a SymPy expression or matrix to CasADi SX.

    @f: sympy expression or matrix
    @symbols: dict mapping symbol names to casadi SX symbols, extended with
        fresh SX symbols for names not yet present
    @return: (casadi.SX, symbols)
    """
    if symbols is None:
        symbols = {}
    return _sympy_parser(f, symbols), symbols


def _sympy_parser(f, symbols):
    prs = lambda e: _sympy_parser(e, symbols)
    if isinstance(f, sympy.MatrixBase):
        mat = ca.SX(f.shape[0], f.shape[1])
        for i in range(f.shape[0]):
            for j in range(f.shape[1]):
                mat[i, j] = prs(f[i, j])
        return mat
    if isinstance(f, (int, float)):
        return ca.SX(f)
    if isinstance(f, sympy.Symbol):
        if f.name not in symbols:
            symbols[f.name] = ca.SX.sym(f.name)
        return symbols[f.name]
    if f.is_number:
        return ca.SX(float(f))
    if isinstance(f, sympy.Add):
        s = ca.SX(0)
        for arg in f.args:
            s += prs(arg)
        return s
    if isinstance(f, sympy.Mul):
        prod = ca.SX(1)
        for arg in f.args:
            prod *= prs(arg)
        return prod
    if isinstance(f, sympy.Pow):
        base, power = f.args
        if power == sympy.Rational(1, 2):
            return ca.sqrt(prs(base))
        return prs(base) ** prs(power)
    if isinstance(f, sympy.atan2):
        return ca.atan2(prs(f.args[0]), prs(f.args[1]))
    if f.func in _UNARY:
        return _UNARY[f.func](prs(f.args[0]))
    raise InvalidArgument(f"cannot convert {type(f).__name__} to casadi: {f}")
