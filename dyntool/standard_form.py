"""
Standard-form dynamics.

The dynamics of a mechanical system with Lagrangian L(q, dq) take the form

    M(q) * ddq + C(q, dq) * dq + N(q) = u

where q is the coordinate vector, dq the velocity vector, ddq the
acceleration vector and u the generalized force vector. With
D = dL/d(dq):

- M = dD/d(dq), the Hessian of L in the velocities (symmetric)
- C = dD/dq
- N = -(dL/dq)^T

See Murray, Li and Sastry, "A Mathematical Introduction to Robotic
Manipulation", chapter 4.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from .backends import Expr, NumericFunction, SymbolicBackend, get_backend
from .errors import DimensionMismatch
from .linalg import solve_linear

logger = logging.getLogger(__name__)


def check_coordinates(backend: SymbolicBackend, q: Expr, dq: Expr) -> int:
    """Validate coordinate/velocity vectors and return their length."""
    n = backend.numel(q)
    if backend.shape(q) != (n, 1) or backend.shape(dq) != (backend.numel(dq), 1):
        raise DimensionMismatch(
            f"q and dq must be column vectors, got {backend.shape(q)} and {backend.shape(dq)}"
        )
    if backend.numel(dq) != n:
        raise DimensionMismatch(f"len(q)={n} differs from len(dq)={backend.numel(dq)}")
    if n == 0:
        raise DimensionMismatch("System has no coordinates")
    return n


def check_lagrangian(backend: SymbolicBackend, lagrangian: Expr) -> None:
    if not backend.is_scalar(lagrangian):
        raise DimensionMismatch(f"Lagrangian must be scalar, got shape {backend.shape(lagrangian)}")


def numeric_vector(value, n: int, what: str) -> np.ndarray:
    vec = np.asarray(value, dtype=float).reshape(-1)
    if vec.size != n:
        raise DimensionMismatch(f"{what} has {vec.size} elements, expected {n}")
    return vec


@dataclass(frozen=True, eq=False)
class StandardFormDynamics:
    """Mass, Coriolis and position dependent terms derived from a Lagrangian.

    Instances are immutable. Use :meth:`from_lagrangian` to derive them.

    Attributes
    ----------
    mass_matrix : Expr
        M(q), n x n
    coriolis_matrix : Expr
        C(q, dq), n x n
    pos_dep_terms : Expr
        N(q), n x 1
    pos_vars, vel_vars : Expr
        Coordinate and velocity column vectors
    lagrangian : Expr
        Lagrangian the terms were derived from
    """

    backend: SymbolicBackend
    lagrangian: Expr
    mass_matrix: Expr
    coriolis_matrix: Expr
    pos_dep_terms: Expr
    pos_vars: Expr
    vel_vars: Expr
    n: int = field(init=False)

    def __post_init__(self):
        n = check_coordinates(self.backend, self.pos_vars, self.vel_vars)
        for label, expr, shape in (
            ("mass_matrix", self.mass_matrix, (n, n)),
            ("coriolis_matrix", self.coriolis_matrix, (n, n)),
            ("pos_dep_terms", self.pos_dep_terms, (n, 1)),
        ):
            if self.backend.shape(expr) != shape:
                raise DimensionMismatch(
                    f"{label} has shape {self.backend.shape(expr)}, expected {shape}"
                )
        object.__setattr__(self, "n", n)

    @classmethod
    def from_lagrangian(
        cls, lagrangian: Expr, pos: Expr, vel: Expr, backend="casadi"
    ) -> "StandardFormDynamics":
        """Derive the standard form from a Lagrangian.

        Parameters
        ----------
        lagrangian : Expr
            Scalar Lagrangian L(q, dq)
        pos : Expr
            Coordinate column vector q
        vel : Expr
            Velocity column vector dq
        backend : str or SymbolicBackend
            Backend the expressions belong to

        Returns
        -------
        StandardFormDynamics
        """
        backend = get_backend(backend)
        check_coordinates(backend, pos, vel)
        check_lagrangian(backend, lagrangian)

        # D is a 1 x n row
        D_vel_lagr = backend.jacobian(lagrangian, vel)

        mass_matrix = backend.jacobian(D_vel_lagr, vel)
        coriolis_matrix = backend.jacobian(D_vel_lagr, pos)
        pos_dep_terms = backend.transpose(backend.jacobian(-lagrangian, pos))

        logger.info(
            "derived standard form for %d coordinates (%s backend)",
            backend.numel(pos),
            backend.name,
        )
        return cls(backend, lagrangian, mass_matrix, coriolis_matrix, pos_dep_terms, pos, vel)

    # ========== Symbolic ==========

    @property
    def bias_terms(self) -> Expr:
        """C(q, dq) * dq + N(q)."""
        return self.backend.mtimes(self.coriolis_matrix, self.vel_vars) + self.pos_dep_terms

    def equations_of_motion(self, q: Expr, dq: Expr, ddq: Expr, u: Optional[Expr] = None) -> Expr:
        """Residual ``M*ddq + C*dq + N - u`` in terms of other symbol vectors.

        The coordinate and velocity symbols the dynamics were derived with
        are replaced by ``q`` and ``dq``, in ``u`` as well. The result is
        affine in ``ddq``.
        """
        be = self.backend
        res = be.mtimes(self.mass_matrix, ddq) + self.bias_terms
        if u is not None:
            u = be.vertcat(u)
            if be.shape(u) != (self.n, 1):
                raise DimensionMismatch(f"u has shape {be.shape(u)}, expected {(self.n, 1)}")
            res = res - u
        return be.substitute(res, be.vertcat(self.pos_vars, self.vel_vars), be.vertcat(q, dq))

    # ========== Numeric ==========

    def mass_matrix_function(self) -> NumericFunction:
        """M as a numeric function of (q, dq)."""
        return self.backend.function(
            "mass_matrix", [self.pos_vars, self.vel_vars], [self.mass_matrix]
        )

    def coriolis_matrix_function(self) -> NumericFunction:
        """C as a numeric function of (q, dq)."""
        return self.backend.function(
            "coriolis_matrix", [self.pos_vars, self.vel_vars], [self.coriolis_matrix]
        )

    def pos_dep_terms_function(self) -> NumericFunction:
        """N as a numeric function of (q, dq)."""
        return self.backend.function(
            "pos_dep_terms", [self.pos_vars, self.vel_vars], [self.pos_dep_terms]
        )

    def energy_function(self) -> NumericFunction:
        """Total mechanical energy ``D*dq - L`` as a numeric function of (q, dq)."""
        be = self.backend
        D_vel_lagr = be.jacobian(self.lagrangian, self.vel_vars)
        energy = be.mtimes(D_vel_lagr, self.vel_vars) - be.vertcat(self.lagrangian)
        return be.function("energy", [self.pos_vars, self.vel_vars], [energy])

    def _bias_terms_function(self) -> NumericFunction:
        return self.backend.function(
            "bias_terms", [self.pos_vars, self.vel_vars], [self.bias_terms]
        )

    def inverse_dynamics_function(self) -> Callable:
        """Generalized forces required for a given acceleration.

        Returns
        -------
        callable
            ``tau(q, dq, ddq) -> ndarray`` of shape (n,)
        """
        m_fcn = self.mass_matrix_function()
        rhs_fcn = self._bias_terms_function()
        n = self.n

        def inverse_dynamics(q, dq, ddq) -> np.ndarray:
            """Evaluate M(q) ddq + C(q, dq) dq + N(q)."""
            ddq = numeric_vector(ddq, n, "ddq")
            return m_fcn(q, dq) @ ddq + rhs_fcn(q, dq).reshape(-1)

        return inverse_dynamics

    def accel_function(self) -> Callable:
        """Generate the numeric acceleration function.

        Solves ``M(q) ddq = u - (C dq + N)`` at run time rather than
        inverting M symbolically.

        Returns
        -------
        callable
            ``accel(q, dq, u=None) -> ndarray`` of shape (n,). ``u`` defaults
            to zero. Raises :class:`SingularMassMatrix` at configurations
            where M is singular.
        """
        m_fcn = self.mass_matrix_function()
        rhs_fcn = self._bias_terms_function()
        n = self.n

        def accel(q, dq, u=None) -> np.ndarray:
            """Accelerations ddq for positions q, velocities dq and forces u."""
            q = numeric_vector(q, n, "q")
            dq = numeric_vector(dq, n, "dq")
            forces = np.zeros(n) if u is None else numeric_vector(u, n, "u")
            return solve_linear(m_fcn(q, dq), forces - rhs_fcn(q, dq).reshape(-1), q, dq)

        return accel

    def __repr__(self) -> str:
        return f"StandardFormDynamics(n={self.n}, backend='{self.backend.name}')"
