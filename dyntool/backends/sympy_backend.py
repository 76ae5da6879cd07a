"""SymPy backend implementation.

Useful when the derived matrices should be inspected, simplified or
printed (``sympy.latex``). Numeric functions are generated with
``sympy.lambdify`` for NumPy; CasADi functions (needed by the DAE
integrator) go through :func:`dyntool.symbolic.sympy_to_casadi`.
"""

from typing import List, Sequence, Tuple

import casadi as ca
import sympy as sp

from ..errors import InvalidArgument
from ..symbolic import sympy_to_casadi
from .base import Expr, NumericFunction, SymbolicBackend, check_function_name


def _as_matrix(x) -> sp.MatrixBase:
    if isinstance(x, sp.MatrixBase):
        return x
    return sp.Matrix([[x]])


class SympyBackend(SymbolicBackend):
    """SymPy implementation of the symbolic backend."""

    @property
    def name(self) -> str:
        return "sympy"

    # ========== Symbols ==========

    def sym(self, name: str) -> Expr:
        return sp.Symbol(name, real=True)

    def name_of(self, sym: Expr) -> str:
        return sym.name

    # ========== Matrix Assembly ==========

    def zeros(self, rows: int, cols: int = 1) -> Expr:
        return sp.zeros(rows, cols)

    def vertcat(self, *args: Expr) -> Expr:
        if not args:
            return sp.zeros(0, 1)
        return sp.Matrix.vstack(*[_as_matrix(a) for a in args])

    def horzcat(self, *args: Expr) -> Expr:
        return sp.Matrix.hstack(*[_as_matrix(a) for a in args])

    def transpose(self, x: Expr) -> Expr:
        return _as_matrix(x).T

    def mtimes(self, a: Expr, b: Expr) -> Expr:
        return _as_matrix(a) * _as_matrix(b)

    def shape(self, x: Expr) -> Tuple[int, int]:
        return tuple(_as_matrix(x).shape)

    def elements(self, x: Expr) -> List[Expr]:
        m = _as_matrix(x)
        return [m[i, j] for j in range(m.cols) for i in range(m.rows)]

    # ========== Calculus ==========

    def jacobian(self, f: Expr, x: Expr) -> Expr:
        f_vec = sp.Matrix(self.elements(f))
        return f_vec.jacobian(_as_matrix(x))

    def substitute(self, expr: Expr, old: Expr, new: Expr) -> Expr:
        mapping = dict(zip(self.elements(old), self.elements(new)))
        if isinstance(expr, sp.MatrixBase):
            return expr.xreplace(mapping)
        return sp.sympify(expr).xreplace(mapping)

    def depends_on(self, expr: Expr, x: Expr) -> bool:
        return bool(set(self.elements(x)) & _as_matrix(expr).free_symbols)

    def is_zero(self, expr: Expr) -> bool:
        return all(e.is_zero is True for e in self.elements(expr))

    # ========== Compilation ==========

    def _check_bound(self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]) -> None:
        declared = set()
        for i in inputs:
            declared |= set(self.elements(i))
        used = set()
        for o in outputs:
            used |= _as_matrix(o).free_symbols
        free = sorted(s.name for s in used - declared)
        if free:
            raise InvalidArgument(
                f"{name}: outputs depend on symbols that are not inputs: {free}"
            )

    def function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> NumericFunction:
        check_function_name(name)
        self._check_bound(name, inputs, outputs)
        args = [self.elements(i) for i in inputs]
        funcs = [sp.lambdify(args, _as_matrix(o), modules="numpy") for o in outputs]

        def impl(*vecs):
            return [f(*vecs) for f in funcs]

        return NumericFunction(
            name,
            impl,
            [self.numel(i) for i in inputs],
            [self.shape(o) for o in outputs],
        )

    def casadi_function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> ca.Function:
        check_function_name(name)
        self._check_bound(name, inputs, outputs)
        symbols = {}
        ca_inputs = []
        for i in inputs:
            entries = []
            for s in self.elements(i):
                symbols[s.name] = ca.SX.sym(s.name)
                entries.append(symbols[s.name])
            ca_inputs.append(ca.vertcat(*entries) if entries else ca.SX(0, 1))
        ca_outputs = [sympy_to_casadi(_as_matrix(o), symbols)[0] for o in outputs]
        try:
            return ca.Function(name, ca_inputs, ca_outputs)
        except RuntimeError as exc:
            raise InvalidArgument(f"{name}: cannot build casadi function: {exc}") from exc
