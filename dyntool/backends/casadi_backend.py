"""CasADi backend implementation.

CasADi SX is the primary and default backend for dyntool. Expressions are
``casadi.SX`` matrices, compiled functions are ``casadi.Function``
objects, which also feed the IDAS integrator directly.
"""

from typing import List, Sequence, Tuple

import casadi as ca
import numpy as np

from ..errors import InvalidArgument
from .base import Expr, NumericFunction, SymbolicBackend, check_function_name


def _as_sx(x) -> ca.SX:
    if isinstance(x, ca.SX):
        return x
    return ca.SX(x)


class CasadiBackend(SymbolicBackend):
    """CasADi SX implementation of the symbolic backend."""

    @property
    def name(self) -> str:
        return "casadi"

    # ========== Symbols ==========

    def sym(self, name: str) -> Expr:
        return ca.SX.sym(name)

    def name_of(self, sym: Expr) -> str:
        return sym.name()

    # ========== Matrix Assembly ==========

    def zeros(self, rows: int, cols: int = 1) -> Expr:
        return ca.SX.zeros(rows, cols)

    def vertcat(self, *args: Expr) -> Expr:
        if not args:
            return ca.SX(0, 1)
        return ca.vertcat(*[_as_sx(a) for a in args])

    def horzcat(self, *args: Expr) -> Expr:
        return ca.horzcat(*[_as_sx(a) for a in args])

    def transpose(self, x: Expr) -> Expr:
        return ca.transpose(_as_sx(x))

    def mtimes(self, a: Expr, b: Expr) -> Expr:
        return ca.mtimes(_as_sx(a), _as_sx(b))

    def shape(self, x: Expr) -> Tuple[int, int]:
        return _as_sx(x).shape

    def elements(self, x: Expr) -> List[Expr]:
        x = _as_sx(x)
        return [x[i] for i in range(x.numel())]

    # ========== Calculus ==========

    def jacobian(self, f: Expr, x: Expr) -> Expr:
        return ca.jacobian(ca.vec(_as_sx(f)), x)

    def substitute(self, expr: Expr, old: Expr, new: Expr) -> Expr:
        return ca.substitute(_as_sx(expr), old, _as_sx(new))

    def depends_on(self, expr: Expr, x: Expr) -> bool:
        return bool(ca.depends_on(_as_sx(expr), x))

    def is_zero(self, expr: Expr) -> bool:
        return ca.sparsify(_as_sx(expr)).nnz() == 0

    # ========== Compilation ==========

    def _check_bound(self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]) -> None:
        declared = ca.symvar(ca.vertcat(*[ca.vec(_as_sx(i)) for i in inputs])) if inputs else []
        used = ca.symvar(ca.vertcat(*[ca.vec(_as_sx(o)) for o in outputs])) if outputs else []
        free = [v.name() for v in used if not any(ca.is_equal(v, d) for d in declared)]
        if free:
            raise InvalidArgument(
                f"{name}: outputs depend on symbols that are not inputs: {free}"
            )

    def casadi_function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> ca.Function:
        check_function_name(name)
        self._check_bound(name, inputs, outputs)
        try:
            return ca.Function(name, [_as_sx(i) for i in inputs], [_as_sx(o) for o in outputs])
        except RuntimeError as exc:
            raise InvalidArgument(f"{name}: cannot build casadi function: {exc}") from exc

    def function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> NumericFunction:
        f = self.casadi_function(name, inputs, outputs)

        def impl(*args):
            res = f(*args)
            if f.n_out() == 1:
                res = (res,)
            return [np.array(r) for r in res]

        return NumericFunction(
            name,
            impl,
            [_as_sx(i).numel() for i in inputs],
            [_as_sx(o).shape for o in outputs],
        )
