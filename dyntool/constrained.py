"""
Equations of motion with holonomic constraints.

For a Lagrangian L(q, dq) and constraints c(q) = 0 (m of them), the
accelerations ddq and Lagrange multipliers lam solve

    [ dD/d(dq)   J^T ] [ddq]   [ (dL/dq)^T - (dD/dq) dq + u ]
    [ J          0   ] [lam] = [ -Jdot dq                   ]

with D = dL/d(dq), J = dc/dq and Jdot the total time derivative of J.
The second block row is the constraint differentiated twice in time.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from .backends import Expr, NumericFunction, SymbolicBackend, get_backend
from .errors import DimensionMismatch, InvalidArgument
from .linalg import solve_linear
from .standard_form import check_coordinates, check_lagrangian, numeric_vector

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ConstrainedDynamics:
    """Augmented (Lagrange multiplier) linear system for a constrained system.

    Attributes
    ----------
    lhs_matrix : Expr
        (n + m) x (n + m) block matrix
    rhs_vector : Expr
        (n + m) x 1 right hand side for zero generalized force
    constraint_jacobian : Expr
        J, m x n
    pos_vars, vel_vars : Expr
        Coordinate and velocity column vectors
    """

    backend: SymbolicBackend
    lhs_matrix: Expr
    rhs_vector: Expr
    constraint_jacobian: Expr
    pos_vars: Expr
    vel_vars: Expr
    n: int = field(init=False)
    m: int = field(init=False)

    def __post_init__(self):
        n = check_coordinates(self.backend, self.pos_vars, self.vel_vars)
        m = self.backend.shape(self.constraint_jacobian)[0]
        if self.backend.shape(self.lhs_matrix) != (n + m, n + m):
            raise DimensionMismatch(
                f"lhs_matrix has shape {self.backend.shape(self.lhs_matrix)}, "
                f"expected {(n + m, n + m)}"
            )
        if self.backend.shape(self.rhs_vector) != (n + m, 1):
            raise DimensionMismatch(
                f"rhs_vector has shape {self.backend.shape(self.rhs_vector)}, expected {(n + m, 1)}"
            )
        object.__setattr__(self, "n", n)
        object.__setattr__(self, "m", m)

    @classmethod
    def from_lagrangian(
        cls, lagrangian: Expr, constraints: Expr, pos: Expr, vel: Expr, backend="casadi"
    ) -> "ConstrainedDynamics":
        """Build the augmented system.

        Parameters
        ----------
        lagrangian : Expr
            Scalar Lagrangian L(q, dq)
        constraints : Expr
            Column vector c(q), each entry held at zero
        pos, vel : Expr
            Coordinate and velocity column vectors
        backend : str or SymbolicBackend
        """
        be = get_backend(backend)
        n = check_coordinates(be, pos, vel)
        check_lagrangian(be, lagrangian)
        m = be.numel(constraints)
        constraints = be.vertcat(*be.elements(constraints))
        if m and be.depends_on(constraints, vel):
            raise InvalidArgument("Holonomic constraints must not depend on velocities")

        dL_ddr = be.jacobian(lagrangian, vel)
        if m:
            df_dq = be.jacobian(constraints, pos)
            # J(q) dq depends on q only through J, so its q-Jacobian times dq is Jdot dq
            dt_df_dq_qcomp = be.mtimes(be.jacobian(be.mtimes(df_dq, vel), pos), vel)
        else:
            df_dq = be.zeros(0, n)
            dt_df_dq_qcomp = be.zeros(0, 1)

        lhs_mat = be.vertcat(
            be.horzcat(be.jacobian(dL_ddr, vel), be.transpose(df_dq)),
            be.horzcat(df_dq, be.zeros(m, m)),
        )
        rhs = be.vertcat(
            be.transpose(be.jacobian(lagrangian, pos)) - be.mtimes(be.jacobian(dL_ddr, pos), vel),
            -dt_df_dq_qcomp,
        )

        logger.info(
            "derived constrained dynamics: %d coordinates, %d constraints (%s backend)",
            n,
            m,
            be.name,
        )
        return cls(be, lhs_mat, rhs, df_dq, pos, vel)

    def lhs_function(self) -> NumericFunction:
        return self.backend.function(
            "constrained_lhs", [self.pos_vars, self.vel_vars], [self.lhs_matrix]
        )

    def rhs_function(self) -> NumericFunction:
        return self.backend.function(
            "constrained_rhs", [self.pos_vars, self.vel_vars], [self.rhs_vector]
        )

    def _solver(self) -> Callable:
        lhs_fcn = self.lhs_function()
        rhs_fcn = self.rhs_function()
        n, m = self.n, self.m

        def solve(q, dq, u):
            q = numeric_vector(q, n, "q")
            dq = numeric_vector(dq, n, "dq")
            b = rhs_fcn(q, dq).reshape(-1).copy()
            if u is not None:
                b[:n] += numeric_vector(u, n, "u")
            return solve_linear(lhs_fcn(q, dq), b, q, dq)

        return solve

    def accel_function(self) -> Callable:
        """Generate the acceleration function.

        Returns
        -------
        callable
            ``accel(q, dq, u=None) -> ndarray`` of shape (n,). Raises
            :class:`SingularMassMatrix` when the augmented matrix is
            singular, e.g. for redundant constraints.
        """
        solve = self._solver()
        n = self.n

        def accel(q, dq, u=None) -> np.ndarray:
            """Accelerations ddq; the multipliers are discarded."""
            return solve(q, dq, u)[:n]

        return accel

    def multiplier_function(self) -> Callable:
        """``lam(q, dq, u=None) -> ndarray`` of shape (m,), the constraint multipliers."""
        solve = self._solver()
        n = self.n

        def multipliers(q, dq, u=None) -> np.ndarray:
            return solve(q, dq, u)[n:]

        return multipliers

    def __repr__(self) -> str:
        return f"ConstrainedDynamics(n={self.n}, m={self.m}, backend='{self.backend.name}')"
