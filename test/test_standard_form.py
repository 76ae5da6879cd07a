"""
Tests for standard-form dynamics derivation and its numeric evaluators.
"""

import numpy as np
import pytest
from scipy.integrate import solve_ivp

from dyntool import DimensionMismatch, DynTool, SingularMassMatrix, StandardFormDynamics

from common import (
    BACKENDS,
    GRAVITY,
    ProfiledTestCase,
    array_close,
    double_pendulum_tool,
    pendulum_tool,
)


@pytest.mark.parametrize("backend", BACKENDS)
def test_point_mass(backend):
    """A free point mass has constant diagonal M and no C or N terms."""
    tool = DynTool(backend)
    x, dx = tool.add_coordinate("x")
    y, dy = tool.add_coordinate("y")
    z, dz = tool.add_coordinate("z")
    tool.add_kinetic_energy(0.5 * 4.0 * (dx**2 + dy**2 + dz**2))
    dyn = tool.derive_standard_form()
    assert dyn.n == 3

    mass = dyn.mass_matrix_function()
    coriolis = dyn.coriolis_matrix_function()
    pos_dep = dyn.pos_dep_terms_function()
    accel = dyn.accel_function()
    rng = np.random.default_rng(0)
    for _ in range(5):
        q, dq = rng.normal(size=3), rng.normal(size=3)
        assert array_close(mass(q, dq), 4.0 * np.eye(3))
        assert array_close(coriolis(q, dq), np.zeros((3, 3)))
        assert array_close(pos_dep(q, dq), np.zeros((3, 1)))
        assert array_close(accel(q, dq, [4.0, -8.0, 2.0]), [1.0, -2.0, 0.5])


@pytest.mark.parametrize("backend", BACKENDS)
def test_pendulum(backend):
    dyn = pendulum_tool(backend, length=2.0).derive_standard_form()
    accel = dyn.accel_function()
    for theta in np.linspace(-3.0, 3.0, 7):
        ddq = accel([theta], [0.7])
        assert ddq.shape == (1,)
        assert ddq[0] == pytest.approx(-GRAVITY / 2.0 * np.sin(theta))


@pytest.mark.parametrize("backend", BACKENDS)
def test_pendulum_with_torque(backend):
    length, mass = 2.0, 1.5
    accel = pendulum_tool(backend, length, mass).derive_standard_form().accel_function()
    expected = (3.0 - mass * GRAVITY * length * np.sin(0.4)) / (mass * length**2)
    assert accel([0.4], [0.0], [3.0])[0] == pytest.approx(expected)
    assert accel([0.4], [0.0], u=None)[0] == pytest.approx(-GRAVITY / length * np.sin(0.4))


@pytest.mark.parametrize("backend", BACKENDS)
def test_double_pendulum_structure(backend):
    dyn = double_pendulum_tool(backend).derive_standard_form()
    q, dq = np.array([0.3, -0.8]), np.array([1.1, 0.4])
    M = dyn.mass_matrix_function()(q, dq)
    assert array_close(M, M.T)
    assert np.all(np.linalg.eigvalsh(M) > 0)
    # M only depends on the angle difference
    assert array_close(M, dyn.mass_matrix_function()(q + 0.5, dq))


@pytest.mark.parametrize("backend", BACKENDS)
def test_inverse_dynamics(backend):
    """tau(q, dq, accel(q, dq, u)) == u."""
    dyn = double_pendulum_tool(backend).derive_standard_form()
    accel = dyn.accel_function()
    tau = dyn.inverse_dynamics_function()
    rng = np.random.default_rng(1)
    for _ in range(5):
        q, dq, u = rng.normal(size=2), rng.normal(size=2), rng.normal(size=2)
        assert array_close(tau(q, dq, accel(q, dq, u)), u, tol=1e-8)


@pytest.mark.parametrize("backend", BACKENDS)
def test_singular_mass_matrix(backend):
    tool = DynTool(backend)
    x, dx = tool.add_coordinate("x")
    y, dy = tool.add_coordinate("y")
    tool.add_kinetic_energy(0.5 * (dx + dy) ** 2)
    accel = tool.derive_standard_form().accel_function()
    with pytest.raises(SingularMassMatrix) as exc_info:
        accel([1.0, 2.0], [0.0, 0.0])
    assert isinstance(exc_info.value, np.linalg.LinAlgError)
    np.testing.assert_array_equal(exc_info.value.q, [1.0, 2.0])
    assert "q=" in str(exc_info.value)


def test_wrong_size_inputs():
    dyn = double_pendulum_tool("casadi").derive_standard_form()
    accel = dyn.accel_function()
    with pytest.raises(DimensionMismatch):
        accel([0.1], [0.0, 0.0])
    with pytest.raises(DimensionMismatch):
        accel([0.1, 0.2], [0.0, 0.0], [1.0])
    with pytest.raises(DimensionMismatch):
        dyn.mass_matrix_function()([0.1, 0.2, 0.3], [0.0, 0.0])
    with pytest.raises(DimensionMismatch):
        dyn.inverse_dynamics_function()([0.1, 0.2], [0.0, 0.0], [0.0])


def test_from_lagrangian_checks():
    tool = DynTool()
    x, dx = tool.add_coordinate("x")
    y, dy = tool.add_coordinate("y")
    be = tool.backend
    with pytest.raises(DimensionMismatch):
        StandardFormDynamics.from_lagrangian(tool.dq, tool.q, tool.dq)
    with pytest.raises(DimensionMismatch):
        StandardFormDynamics.from_lagrangian(dx**2, tool.q, be.vertcat(dx))


@pytest.mark.parametrize("backend", BACKENDS)
def test_equations_of_motion(backend):
    """The residual vanishes at the accelerations returned by accel."""
    dyn = double_pendulum_tool(backend).derive_standard_form()
    be = dyn.backend
    q = be.vertcat(be.sym("a"), be.sym("b"))
    dq = be.vertcat(be.sym("va"), be.sym("vb"))
    ddq = be.vertcat(be.sym("aa"), be.sym("ab"))
    res = dyn.equations_of_motion(q, dq, ddq)
    assert not be.depends_on(res, be.vertcat(dyn.pos_vars, dyn.vel_vars))
    assert not be.depends_on(be.jacobian(res, ddq), ddq)

    f = be.function("residual", [q, dq, ddq], [res])
    qn, dqn = np.array([0.5, -0.2]), np.array([0.3, 1.0])
    ddqn = dyn.accel_function()(qn, dqn)
    assert array_close(f(qn, dqn, ddqn), np.zeros((2, 1)), tol=1e-8)


class TestEnergy(ProfiledTestCase):
    """Energy is conserved along unforced trajectories."""

    def check_energy(self, backend):
        dyn = double_pendulum_tool(backend).derive_standard_form()
        accel = dyn.accel_function()
        energy = dyn.energy_function()

        def rhs(t, x):
            return np.concatenate([x[2:], accel(x[:2], x[2:])])

        x0 = np.array([1.0, -0.5, 0.0, 0.3])
        sol = solve_ivp(rhs, [0.0, 3.0], x0, rtol=1e-10, atol=1e-10)
        self.assertTrue(sol.success)
        e = [energy(x[:2], x[2:])[0, 0] for x in sol.y.T]
        self.assertLess(max(e) - min(e), 1e-6)

    def test_energy_casadi(self):
        self.check_energy("casadi")

    def test_energy_sympy(self):
        self.check_energy("sympy")

    def test_energy_value(self):
        length, mass = 2.0, 1.5
        energy = pendulum_tool("casadi", length, mass).derive_standard_form().energy_function()
        expected = 0.5 * mass * length**2 * 0.6**2 - mass * GRAVITY * length * np.cos(0.3)
        self.assertAlmostEqual(energy([0.3], [0.6])[0, 0], expected)
