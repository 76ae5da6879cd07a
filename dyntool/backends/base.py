"""Symbolic backend interface.

The derivation code in dyntool only talks to a :class:`SymbolicBackend`,
never to a computer algebra system directly. A backend supplies real
scalar symbols, matrix assembly, Jacobians, substitution and compilation
of expressions into numeric functions.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Sequence, Tuple

import casadi as ca
import numpy as np

from ..errors import DimensionMismatch, InvalidArgument

# Symbolic expression handled by a backend (casadi.SX, sympy.Expr, sympy.Matrix)
Expr = Any

# CasADi rules: letter first, then letters, digits and non-consecutive underscores
_FUNCTION_NAME = re.compile(r"[A-Za-z](?:_?[A-Za-z0-9])*_?")
RESERVED_FUNCTION_NAMES = ("null", "jac", "hess")


def check_function_name(name: str) -> None:
    """Raise :class:`InvalidArgument` unless name is usable for a compiled function."""
    if not _FUNCTION_NAME.fullmatch(name) or name in RESERVED_FUNCTION_NAMES:
        raise InvalidArgument(
            f"Function name '{name}' is not valid: use letters, digits and single underscores, "
            f"starting with a letter and not one of {list(RESERVED_FUNCTION_NAMES)}"
        )


class NumericFunction:
    """Numeric function compiled from symbolic expressions.

    Every argument is flattened to a float vector and checked against the
    size of the corresponding symbolic input. Every output is returned as
    a 2-D ``numpy.ndarray`` with the shape of the symbolic output.

    Parameters
    ----------
    name : str
        Function name, used in error messages
    impl : callable
        Evaluates the outputs given flat float vectors, returns a sequence
        with one entry per output
    input_sizes : list of int
        Number of elements of each input
    output_shapes : list of (int, int)
        Shape of each output
    """

    def __init__(
        self,
        name: str,
        impl: Callable,
        input_sizes: List[int],
        output_shapes: List[Tuple[int, int]],
    ):
        self.name = name
        self._impl = impl
        self.input_sizes = input_sizes
        self.output_shapes = output_shapes

    @property
    def n_in(self) -> int:
        return len(self.input_sizes)

    @property
    def n_out(self) -> int:
        return len(self.output_shapes)

    def __call__(self, *args):
        if len(args) != self.n_in:
            raise DimensionMismatch(
                f"{self.name}: expected {self.n_in} arguments, got {len(args)}"
            )
        flat = []
        for i, (arg, size) in enumerate(zip(args, self.input_sizes)):
            vec = np.asarray(arg, dtype=float).reshape(-1)
            if vec.size != size:
                raise DimensionMismatch(
                    f"{self.name}: argument {i} has {vec.size} elements, expected {size}"
                )
            flat.append(vec)
        outs = self._impl(*flat)
        res = tuple(
            np.asarray(out, dtype=float).reshape(shape, order="F")
            for out, shape in zip(outs, self.output_shapes)
        )
        if len(res) == 1:
            return res[0]
        return res

    def __repr__(self) -> str:
        return (
            f"NumericFunction('{self.name}', inputs={self.input_sizes}, "
            f"outputs={self.output_shapes})"
        )


class SymbolicBackend(ABC):
    """Abstract symbolic algebra provider.

    Vectors are always column matrices. ``jacobian(f, x)`` returns a
    ``numel(f) x numel(x)`` matrix regardless of the orientation of ``f``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name."""

    # ========== Symbols ==========

    @abstractmethod
    def sym(self, name: str) -> Expr:
        """Create a real scalar symbol."""

    @abstractmethod
    def name_of(self, sym: Expr) -> str:
        """Name of a scalar symbol."""

    # ========== Matrix Assembly ==========

    @abstractmethod
    def zeros(self, rows: int, cols: int = 1) -> Expr:
        """Symbolic zero matrix."""

    @abstractmethod
    def vertcat(self, *args: Expr) -> Expr:
        """Stack scalars or matrices vertically. No arguments gives a 0x1 matrix."""

    @abstractmethod
    def horzcat(self, *args: Expr) -> Expr:
        """Stack matrices horizontally."""

    @abstractmethod
    def transpose(self, x: Expr) -> Expr:
        pass

    @abstractmethod
    def mtimes(self, a: Expr, b: Expr) -> Expr:
        """Matrix product."""

    @abstractmethod
    def shape(self, x: Expr) -> Tuple[int, int]:
        """(rows, cols); scalars are 1x1."""

    def numel(self, x: Expr) -> int:
        rows, cols = self.shape(x)
        return rows * cols

    def is_scalar(self, x: Expr) -> bool:
        return self.shape(x) == (1, 1)

    @abstractmethod
    def elements(self, x: Expr) -> List[Expr]:
        """Scalar entries of a vector or matrix (column-major)."""

    # ========== Calculus ==========

    @abstractmethod
    def jacobian(self, f: Expr, x: Expr) -> Expr:
        """Partial derivatives of the entries of f with respect to x."""

    @abstractmethod
    def substitute(self, expr: Expr, old: Expr, new: Expr) -> Expr:
        """Replace the symbols of vector ``old`` by the entries of ``new``."""

    @abstractmethod
    def depends_on(self, expr: Expr, x: Expr) -> bool:
        """True if expr depends on any symbol of vector x."""

    @abstractmethod
    def is_zero(self, expr: Expr) -> bool:
        """True if every entry of expr is structurally zero."""

    # ========== Compilation ==========

    @abstractmethod
    def function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> NumericFunction:
        """Compile outputs into a numeric function of the input vectors.

        Raises
        ------
        InvalidArgument
            If an output depends on a symbol that is not an input, or the
            name is not a valid CasADi function name.
        """

    @abstractmethod
    def casadi_function(
        self, name: str, inputs: Sequence[Expr], outputs: Sequence[Expr]
    ) -> ca.Function:
        """Compile outputs into a CasADi function of the input vectors."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
