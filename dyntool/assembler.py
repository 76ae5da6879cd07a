"""
Convenience class for assembling mechanical systems.

Allows for easy coordinate creation, energy terms and
constraints, and derives the standard-form dynamics or a constrained
acceleration function for the user.

Example
-------
>>> import casadi as ca
>>> from dyntool import DynTool
>>> tool = DynTool()
>>> theta, dtheta = tool.add_coordinate("theta")
>>> _ = tool.add_kinetic_energy(0.5 * dtheta**2)
>>> _ = tool.add_potential_energy(-9.81 * ca.cos(theta))
>>> accel = tool.derive_standard_form().accel_function()
>>> round(float(accel([0.5], [0.0])[0]), 3)
-4.703
"""

import logging
import warnings
from typing import Callable, Optional, Tuple, Union

from .backends import Expr, SymbolicBackend, get_backend
from .constrained import ConstrainedDynamics
from .coordinates import CoordinateSet
from .errors import ConstraintsIgnoredWarning, DimensionMismatch
from .standard_form import StandardFormDynamics


class DynTool:
    """Lagrangian system assembler.

    Coordinates, energies and constraints are append-only. Derived objects
    are snapshots of the system at derivation time: finish assembling
    before calling any ``derive_*`` method.

    Parameters
    ----------
    backend : str or SymbolicBackend
        Symbolic backend, 'casadi' (default) or 'sympy'
    logger : logging.Logger, optional
        Receives the assembly diagnostics, defaults to this module's logger
    """

    def __init__(
        self,
        backend: Union[str, SymbolicBackend] = "casadi",
        logger: Optional[logging.Logger] = None,
    ):
        self.backend = get_backend(backend)
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._coords = CoordinateSet(self.backend)
        self._lagrangian = self.backend.elements(self.backend.zeros(1, 1))[0]
        self._constraints = []

    # ========== Assembly ==========

    def add_coordinate(self, name: str) -> Tuple[Expr, Expr]:
        """Add a new generalized coordinate.

        Parameters
        ----------
        name : str
            Symbol name of the coordinate; its velocity is named ``d<name>``

        Returns
        -------
        (expr, dexpr)
            Symbols of the coordinate and of its time derivative

        Raises
        ------
        InvalidArgument
            If the name is not an identifier or collides with an existing
            coordinate or velocity name
        """
        expr, dexpr = self._coords.add(name)
        self.logger.debug("Adding coordinate %s", name)
        return expr, dexpr

    def add_kinetic_energy(self, expr: Expr) -> Expr:
        """Add a kinetic energy term to the Lagrangian."""
        self._check_scalar(expr, "kinetic energy")
        self.logger.debug("Adding kinetic energy expression %s", expr)
        self._lagrangian = self._lagrangian + expr
        return expr

    def add_potential_energy(self, expr: Expr) -> Expr:
        """Subtract a potential energy term from the Lagrangian."""
        self._check_scalar(expr, "potential energy")
        self.logger.debug("Adding potential energy expression %s", expr)
        self._lagrangian = self._lagrangian - expr
        return expr

    def add_constraint(self, expr: Expr) -> Expr:
        """Add a holonomic constraint ``expr = 0``."""
        self._check_scalar(expr, "constraint")
        self.logger.debug("Adding constraint expression %s", expr)
        self._constraints.append(expr)
        return expr

    def _check_scalar(self, expr: Expr, what: str) -> None:
        if not self.backend.is_scalar(expr):
            raise DimensionMismatch(
                f"{what} must be a scalar expression, got shape {self.backend.shape(expr)}"
            )

    # ========== Accessors ==========

    @property
    def q(self) -> Expr:
        """Coordinate column vector."""
        return self._coords.value_vector

    @property
    def dq(self) -> Expr:
        """Velocity column vector."""
        return self._coords.derivative_vector

    @property
    def coordinates(self) -> Tuple[Expr, ...]:
        return self._coords.values

    @property
    def velocities(self) -> Tuple[Expr, ...]:
        return self._coords.derivatives

    @property
    def coordinate_names(self) -> Tuple[str, ...]:
        return self._coords.names

    @property
    def lagrangian(self) -> Expr:
        return self._lagrangian

    @property
    def constraints(self) -> Tuple[Expr, ...]:
        return tuple(self._constraints)

    # ========== Derivation ==========

    def derive_standard_form(self) -> StandardFormDynamics:
        """Derive the standard-form dynamics.

        Constraints are ignored on this path; a
        :class:`ConstraintsIgnoredWarning` is issued if any were added.
        """
        if self._constraints:
            warnings.warn(
                f"{len(self._constraints)} constraint(s) ignored by derive_standard_form(); "
                "use derive_constrained_acceleration_function()",
                ConstraintsIgnoredWarning,
                stacklevel=2,
            )
        return StandardFormDynamics.from_lagrangian(self._lagrangian, self.q, self.dq, self.backend)

    def derive_constrained_dynamics(self) -> ConstrainedDynamics:
        """Derive the Lagrange multiplier system for the declared constraints."""
        constraints = self.backend.vertcat(*self._constraints)
        return ConstrainedDynamics.from_lagrangian(
            self._lagrangian, constraints, self.q, self.dq, self.backend
        )

    def derive_constrained_acceleration_function(self) -> Callable:
        """Generate the acceleration function of the constrained system.

        Returns
        -------
        callable
            ``accel(q, dq, u=None) -> ndarray`` of shape (n,). Without
            constraints this is the standard-form acceleration function.
        """
        if not self._constraints:
            dyn = StandardFormDynamics.from_lagrangian(
                self._lagrangian, self.q, self.dq, self.backend
            )
            return dyn.accel_function()
        return self.derive_constrained_dynamics().accel_function()

    def __repr__(self) -> str:
        return (
            f"DynTool(coordinates={list(self._coords.names)}, "
            f"constraints={len(self._constraints)}, backend='{self.backend.name}')"
        )
