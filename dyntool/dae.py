"""
A tool for formulating and solving differential-algebraic equations
where the system of equations is linear in the derivatives.

Every equation F_i(y, dy) = 0 must be affine in dy, so the system can be
written as

    Mass(y) * dy = f(y),    Mass = dF/d(dy),    f = -F(y, 0)

Mass may be singular: a zero row is an algebraic equation and a zero
column an algebraic variable. The system is integrated with SUNDIALS
IDAS through CasADi, in semi-explicit form: the derivatives w of the
differential variables x become algebraic unknowns,

    dx/dt = w
    0     = Mass(x, z) * [w; 0] - f(x, z)

Example
-------
>>> from dyntool import LinearDAE
>>> dae = LinearDAE()
>>> x, dx = dae.add_variable("x", 1.0)
>>> z, dz = dae.add_variable("z", 2.0)
>>> dae.add_equation(dx, -x + 0.5 * z)
>>> dae.add_equation(z, 2 * x)
>>> traj = dae.solve(1.0)
>>> round(float(traj("x")[-1]), 4)
1.0
"""

import logging
import numbers
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

import casadi as ca
import numpy as np

from .backends import Expr, NumericFunction, SymbolicBackend, get_backend
from .config import IntegratorOptions
from .coordinates import CoordinateSet
from .errors import (
    DimensionMismatch,
    InconsistentInitialCondition,
    IntegrationFailure,
    InvalidArgument,
)
from .standard_form import StandardFormDynamics, numeric_vector

VELOCITY_SUFFIX = "_dot"


@dataclass(frozen=True, eq=False)
class Trajectory:
    """Sampled solution of a DAE.

    Iterating yields ``(t, state)`` pairs in time order and can be
    repeated any number of times.

    Attributes
    ----------
    t : ndarray
        Sample times, shape (N,)
    y : ndarray
        States, shape (N, n)
    names : tuple of str
        Variable names, one per state column
    """

    t: np.ndarray
    y: np.ndarray
    names: Tuple[str, ...]

    def __len__(self) -> int:
        return self.t.shape[0]

    def __iter__(self) -> Iterator[Tuple[float, np.ndarray]]:
        for i in range(len(self)):
            yield float(self.t[i]), self.y[i].copy()

    def __getitem__(self, i: numbers.Integral) -> Tuple[float, np.ndarray]:
        return float(self.t[i]), self.y[i].copy()

    def __call__(self, name: str) -> np.ndarray:
        """Time history of one variable."""
        try:
            j = self.names.index(name)
        except ValueError:
            raise InvalidArgument(
                f"Unknown variable '{name}', expected one of {list(self.names)}"
            ) from None
        return self.y[:, j].copy()

    @property
    def final(self) -> np.ndarray:
        """State at the end of the trajectory."""
        return self.y[-1].copy()

    def sample(self, t: numbers.Real) -> np.ndarray:
        """State at time t, linearly interpolated between samples."""
        if not self.t[0] <= t <= self.t[-1]:
            raise InvalidArgument(f"t={t} outside of trajectory span [{self.t[0]}, {self.t[-1]}]")
        return np.array([np.interp(t, self.t, self.y[:, j]) for j in range(self.y.shape[1])])


class LinearDAE:
    """Linear-in-derivative DAE builder and solver.

    Parameters
    ----------
    backend : str or SymbolicBackend
        Symbolic backend, 'casadi' (default) or 'sympy'
    options : IntegratorOptions, optional
        Integrator configuration
    logger : logging.Logger, optional
        Receives diagnostics, defaults to this module's logger
    """

    def __init__(
        self,
        backend: Union[str, SymbolicBackend] = "casadi",
        options: Optional[IntegratorOptions] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.backend = get_backend(backend)
        self.options = options if options is not None else IntegratorOptions()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._vars = CoordinateSet(self.backend)
        self._y0: List[float] = []
        self._eqns: List[Expr] = []
        self._trajectory: Optional[Trajectory] = None

    # ========== Assembly ==========

    def add_variable(self, name: str, initial_value: numbers.Real) -> Tuple[Expr, Expr]:
        """Add a state variable.

        Parameters
        ----------
        name : str
            Symbol name; the derivative is named ``d<name>``
        initial_value : float
            Value at time 0

        Returns
        -------
        (expr, dexpr)
            Symbols of the variable and of its derivative
        """
        expr, dexpr = self._vars.add(name)
        self._y0.append(float(initial_value))
        self._trajectory = None
        self.logger.debug("Adding variable %s (y0=%g)", name, initial_value)
        return expr, dexpr

    def add_equation(self, lhs: Expr, rhs: Optional[Expr] = None) -> None:
        """Add the equation ``lhs = rhs`` (``lhs = 0`` without rhs).

        Vector equations are split into one equation per entry.
        """
        residual = lhs if rhs is None else lhs - rhs
        for eqn in self.backend.elements(residual):
            self.logger.debug("Adding equation %s = 0", eqn)
            self._eqns.append(eqn)
        self._trajectory = None

    def add_standard_form(
        self,
        dynamics: StandardFormDynamics,
        q0,
        dq0,
        forces: Optional[Expr] = None,
    ) -> Tuple[Tuple[Expr, ...], Tuple[Expr, ...]]:
        """Embed standard-form dynamics as a first order DAE.

        One variable is added per coordinate (same name) and per velocity
        (``<name>_dot``), with the equations ``d<name> = <name>_dot`` and
        ``M * d<name>_dot + C * <name>_dot + N = forces``.

        Parameters
        ----------
        dynamics : StandardFormDynamics
            Must use the same backend as this DAE
        q0, dq0 : array_like
            Initial coordinates and velocities
        forces : Expr, optional
            Generalized forces in terms of the coordinate/velocity symbols
            the dynamics were derived with

        Returns
        -------
        (positions, velocities)
            Tuples of the new position and velocity variables
        """
        be = self.backend
        if dynamics.backend.name != be.name:
            raise InvalidArgument(
                f"Dynamics use the {dynamics.backend.name} backend, this DAE uses {be.name}"
            )
        n = dynamics.n
        q0 = numeric_vector(q0, n, "q0")
        dq0 = numeric_vector(dq0, n, "dq0")
        names = [be.name_of(s) for s in be.elements(dynamics.pos_vars)]

        pos = [self.add_variable(name, q0[i]) for i, name in enumerate(names)]
        vel = [self.add_variable(name + VELOCITY_SUFFIX, dq0[i]) for i, name in enumerate(names)]

        for (_, dqi), (vi, _) in zip(pos, vel):
            self.add_equation(dqi, vi)
        self.add_equation(
            dynamics.equations_of_motion(
                be.vertcat(*[p for p, _ in pos]),
                be.vertcat(*[v for v, _ in vel]),
                be.vertcat(*[dv for _, dv in vel]),
                forces,
            )
        )
        return tuple(p for p, _ in pos), tuple(v for v, _ in vel)

    # ========== Accessors ==========

    @property
    def y(self) -> Expr:
        """State column vector."""
        return self._vars.value_vector

    @property
    def dy(self) -> Expr:
        """Derivative column vector."""
        return self._vars.derivative_vector

    @property
    def y0(self) -> np.ndarray:
        return np.array(self._y0, dtype=float)

    @property
    def names(self) -> Tuple[str, ...]:
        return self._vars.names

    @property
    def eqns(self) -> Expr:
        """Residual column vector, each entry held at zero."""
        return self.backend.vertcat(*self._eqns)

    @property
    def trajectory(self) -> Optional[Trajectory]:
        """Result of the last successful solve, None if unsolved or modified since."""
        return self._trajectory

    # ========== Derivation ==========

    def _check_square(self) -> int:
        n = len(self._vars)
        if n == 0:
            raise DimensionMismatch("DAE has no variables")
        if len(self._eqns) != n:
            raise DimensionMismatch(f"DAE has {len(self._eqns)} equations for {n} variables")
        return n

    def mass_matrix(self) -> Expr:
        """Mass(y) = d(eqns)/d(dy)."""
        self._check_square()
        be = self.backend
        mass = be.jacobian(self.eqns, self.dy)
        if be.depends_on(mass, self.dy):
            raise InvalidArgument("DAE equations must be affine in the derivatives")
        return mass

    def forcing(self) -> Expr:
        """f(y) = -eqns(y, dy=0)."""
        n = self._check_square()
        be = self.backend
        return -be.substitute(self.eqns, self.dy, be.zeros(n, 1))

    def mass_matrix_function(self) -> NumericFunction:
        return self.backend.function("dae_mass", [self.y], [self.mass_matrix()])

    def forcing_function(self) -> NumericFunction:
        return self.backend.function("dae_forcing", [self.y], [self.forcing()])

    # ========== Solve ==========

    def _initial_derivatives(self, mass0: np.ndarray, forcing0: np.ndarray) -> np.ndarray:
        """Least-squares derivatives w of the differential variables at t=0.

        ``Mass(y0) w = f(y0)`` must be solvable. A zero row of Mass is an
        algebraic equation reading ``-f_i(y0) = 0``; a rank deficient Mass
        hides further algebraic equations (combinations of rows). Both show
        up as rows the least-squares solution leaves unsatisfied.
        """
        tol = self.options.consistency_tol
        w0 = np.linalg.lstsq(mass0, forcing0, rcond=None)[0]
        residuals = mass0 @ w0 - forcing0
        # floating point round-off of the product itself is not a violation
        roundoff = 64 * np.finfo(float).eps * (np.abs(mass0) @ np.abs(w0) + np.abs(forcing0))
        bad = [i for i, r in enumerate(residuals) if not abs(r) <= tol + roundoff[i]]
        if bad:
            raise InconsistentInitialCondition(bad, residuals[bad], tol)
        return w0

    def solve(self, duration: numbers.Real) -> Trajectory:
        """Integrate from y0 over [0, duration] and store the trajectory.

        Raises
        ------
        InconsistentInitialCondition
            If y0 violates an algebraic equation, i.e. a zero row of Mass
            or a combination of rows of a rank deficient Mass
        IntegrationFailure
            If the integrator fails; no trajectory is stored
        """
        self._trajectory = None
        if not duration > 0:
            raise InvalidArgument(f"duration must be positive, got {duration}")
        duration = float(duration)
        n = self._check_square()
        be = self.backend
        opts = self.options

        mass = self.mass_matrix()
        forcing = self.forcing()
        diff_idx = [j for j in range(n) if not be.is_zero(mass[:, j])]
        alg_idx = [j for j in range(n) if j not in diff_idx]
        if not diff_idx:
            raise InvalidArgument("DAE has no differential variables")

        y0 = self.y0
        mass_fn = be.function("dae_mass", [self.y], [mass])
        forcing_fn = be.function("dae_forcing", [self.y], [forcing])
        m0 = mass_fn(y0)
        f0 = forcing_fn(y0).reshape(-1)

        # initial guess for the derivatives, also the consistency check
        w0 = self._initial_derivatives(m0[:, diff_idx], f0)

        # semi-explicit form for IDAS
        nd, na = len(diff_idx), len(alg_idx)
        x = ca.SX.sym("x", nd)
        w = ca.SX.sym("w", nd)
        z = ca.SX.sym("z", na)
        y_entries = [None] * n
        dy_entries = [ca.SX(0)] * n
        for k, j in enumerate(diff_idx):
            y_entries[j] = x[k]
            dy_entries[j] = w[k]
        for k, j in enumerate(alg_idx):
            y_entries[j] = z[k]
        f_dae = be.casadi_function("dae_mass_forcing", [self.y], [mass, forcing])
        mass_sx, forcing_sx = f_dae(ca.vertcat(*y_entries))
        dae = {
            "x": x,
            "z": ca.vertcat(w, z),
            "ode": w,
            "alg": ca.mtimes(mass_sx, ca.vertcat(*dy_entries)) - forcing_sx,
        }

        x0 = y0[diff_idx]
        z0 = np.concatenate([w0, y0[alg_idx]])

        n_steps = max(1, int(duration / opts.dt + 0.5))
        t_grid = np.linspace(0.0, duration, n_steps + 1)

        self.logger.info(
            "solving DAE: %d differential, %d algebraic variables over [0, %g] with %s",
            nd,
            na,
            duration,
            opts.method,
        )
        try:
            integ = ca.integrator("dae", opts.method, dae, 0.0, t_grid, opts.as_casadi_options())
            res = integ(x0=x0, z0=z0)
        except RuntimeError as exc:
            raise IntegrationFailure(f"{opts.method} failed: {exc}", duration) from exc
        stats = integ.stats()
        if not stats.get("success", True):
            status = stats.get("return_status", "unknown status")
            raise IntegrationFailure(f"{opts.method} failed: {status}", duration)

        x_traj = np.array(res["xf"]).reshape(nd, -1)
        z_traj = np.array(res["zf"]).reshape(nd + na, -1)
        if not (np.all(np.isfinite(x_traj)) and np.all(np.isfinite(z_traj))):
            raise IntegrationFailure("NaN/Inf in simulation results", duration)

        y_traj = np.empty((t_grid.shape[0], n))
        y_traj[:, diff_idx] = x_traj.T
        y_traj[:, alg_idx] = z_traj[nd:, :].T

        self._trajectory = Trajectory(t_grid, y_traj, self.names)
        self.logger.info("DAE solved: %d samples", t_grid.shape[0])
        return self._trajectory

    def __repr__(self) -> str:
        return (
            f"LinearDAE(variables={list(self.names)}, equations={len(self._eqns)}, "
            f"backend='{self.backend.name}')"
        )
