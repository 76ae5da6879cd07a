"""
Tests for equations of motion with holonomic constraints.
"""

import numpy as np
import pytest

from dyntool import ConstrainedDynamics, DynTool, InvalidArgument, SingularMassMatrix

from common import BACKENDS, GRAVITY, array_close

LENGTH = 1.5
MASS = 2.0


def cartesian_pendulum(backend, duplicate_constraint=False):
    """Point mass on a rigid massless rod, y pointing up."""
    tool = DynTool(backend)
    x, dx = tool.add_coordinate("x")
    y, dy = tool.add_coordinate("y")
    tool.add_kinetic_energy(0.5 * MASS * (dx**2 + dy**2))
    tool.add_potential_energy(MASS * GRAVITY * y)
    tool.add_constraint(x**2 + y**2 - LENGTH**2)
    if duplicate_constraint:
        tool.add_constraint(2 * (x**2 + y**2 - LENGTH**2))
    return tool


def polar_state(theta, dtheta):
    """Cartesian position, velocity and acceleration of the polar pendulum."""
    ddtheta = -GRAVITY / LENGTH * np.sin(theta)
    q = LENGTH * np.array([np.sin(theta), -np.cos(theta)])
    dq = LENGTH * dtheta * np.array([np.cos(theta), np.sin(theta)])
    ddq = np.array(
        [
            LENGTH * np.cos(theta) * ddtheta - LENGTH * np.sin(theta) * dtheta**2,
            LENGTH * np.sin(theta) * ddtheta + LENGTH * np.cos(theta) * dtheta**2,
        ]
    )
    return q, dq, ddq


@pytest.mark.parametrize("backend", BACKENDS)
@pytest.mark.parametrize("theta, dtheta", [(0.0, 0.0), (0.3, 0.0), (-1.2, 0.8), (2.0, -1.5)])
def test_cartesian_matches_polar(backend, theta, dtheta):
    accel = cartesian_pendulum(backend).derive_constrained_acceleration_function()
    q, dq, ddq = polar_state(theta, dtheta)
    assert array_close(accel(q, dq), ddq, tol=1e-8)


@pytest.mark.parametrize("backend", BACKENDS)
def test_multipliers(backend):
    """Radial force balance: m*ddq = -grad(V) - lam*grad(c)."""
    dyn = cartesian_pendulum(backend).derive_constrained_dynamics()
    assert (dyn.n, dyn.m) == (2, 1)
    lam = dyn.multiplier_function()
    q, dq, ddq = polar_state(0.7, 1.3)
    lam_val = lam(q, dq)
    assert lam_val.shape == (1,)
    force = -np.array([0.0, MASS * GRAVITY]) - lam_val[0] * 2 * q
    assert array_close(MASS * ddq, force, tol=1e-8)


@pytest.mark.parametrize("backend", BACKENDS)
def test_generalized_force(backend):
    """A horizontal force adds its tangential component to the acceleration."""
    accel = cartesian_pendulum(backend).derive_constrained_acceleration_function()
    theta = 0.0
    q, dq, _ = polar_state(theta, 0.0)
    ddq = accel(q, dq, [MASS * 3.0, 0.0])
    assert array_close(ddq, [3.0, 0.0], tol=1e-8)


@pytest.mark.parametrize("backend", BACKENDS)
def test_duplicate_constraint_singular(backend):
    tool = cartesian_pendulum(backend, duplicate_constraint=True)
    accel = tool.derive_constrained_acceleration_function()
    q, dq, _ = polar_state(0.4, 0.2)
    with pytest.raises(SingularMassMatrix):
        accel(q, dq)


def test_velocity_dependent_constraint():
    tool = DynTool()
    x, dx = tool.add_coordinate("x")
    tool.add_kinetic_energy(dx**2)
    tool.add_constraint(dx - 1)
    with pytest.raises(InvalidArgument):
        tool.derive_constrained_dynamics()


@pytest.mark.parametrize("backend", BACKENDS)
def test_unconstrained_system(backend):
    """With no constraints the augmented system is the standard form."""
    tool = DynTool(backend)
    x, dx = tool.add_coordinate("x")
    tool.add_kinetic_energy(0.5 * MASS * dx**2)
    tool.add_potential_energy(MASS * GRAVITY * x)
    be = tool.backend
    dyn = ConstrainedDynamics.from_lagrangian(tool.lagrangian, be.vertcat(), tool.q, tool.dq, be)
    assert (dyn.n, dyn.m) == (1, 0)
    assert dyn.accel_function()([0.3], [1.0])[0] == pytest.approx(-GRAVITY)
    assert dyn.multiplier_function()([0.3], [1.0]).shape == (0,)


def test_lhs_rhs_functions():
    dyn = cartesian_pendulum("casadi").derive_constrained_dynamics()
    q, dq, _ = polar_state(0.5, 0.0)
    lhs = dyn.lhs_function()(q, dq)
    rhs = dyn.rhs_function()(q, dq)
    assert lhs.shape == (3, 3)
    assert rhs.shape == (3, 1)
    assert array_close(lhs, lhs.T)
    assert array_close(lhs[:2, :2], MASS * np.eye(2))
    assert array_close(lhs[2, :2], 2 * q)
