"""
Paired value/derivative symbol creation.

Both the Lagrangian assembler (coordinates q, velocities dq) and the
linear DAE solver (states y, derivatives dy) grow two parallel symbol
vectors with one call per entry. :class:`CoordinateSet` owns that pair
and guarantees symbol names never collide.
"""

import keyword
from typing import List, Tuple

from .backends import Expr, SymbolicBackend
from .errors import InvalidArgument

DERIVATIVE_PREFIX = "d"


def validate_name(name: str) -> None:
    """Raise :class:`InvalidArgument` unless name is a usable symbol name."""
    if not name:
        raise InvalidArgument("Symbol name must be a non-empty string")
    if not name.isidentifier() or keyword.iskeyword(name):
        raise InvalidArgument(f"Symbol name '{name}' is not a valid identifier")


class CoordinateSet:
    """Ordered, append-only pair of symbol vectors.

    ``add("x")`` creates the symbols ``x`` and ``dx``. Every name, whether
    given by the caller or derived for a derivative, may only be used once
    per set, so ``add("x")`` followed by ``add("dx")`` (or the reverse)
    fails instead of producing two symbols called ``dx``.
    """

    def __init__(self, backend: SymbolicBackend):
        self.backend = backend
        self._names: List[str] = []
        self._values: List[Expr] = []
        self._derivatives: List[Expr] = []
        self._taken = set()

    def add(self, name: str) -> Tuple[Expr, Expr]:
        validate_name(name)
        dname = DERIVATIVE_PREFIX + name
        for n in (name, dname):
            if n in self._taken:
                raise InvalidArgument(f"Symbol name '{n}' is already in use")
        value = self.backend.sym(name)
        derivative = self.backend.sym(dname)
        self._taken.update((name, dname))
        self._names.append(name)
        self._values.append(value)
        self._derivatives.append(derivative)
        return value, derivative

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def index(self, name: str) -> int:
        return self._names.index(name)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._names)

    @property
    def values(self) -> Tuple[Expr, ...]:
        return tuple(self._values)

    @property
    def derivatives(self) -> Tuple[Expr, ...]:
        return tuple(self._derivatives)

    @property
    def value_vector(self) -> Expr:
        """Column vector of the value symbols."""
        return self.backend.vertcat(*self._values)

    @property
    def derivative_vector(self) -> Expr:
        """Column vector of the derivative symbols."""
        return self.backend.vertcat(*self._derivatives)
