import cProfile
import unittest
from pathlib import Path
from pstats import Stats

import casadi as ca
import numpy as np
import sympy
from beartype import beartype

EPS = 1e-9
BACKENDS = ["casadi", "sympy"]
GRAVITY = 9.81


@beartype
def math_module(backend: str):
    """Module providing sin/cos for expressions of the given backend."""
    return ca if backend == "casadi" else sympy


@beartype
def array_close(a, b, tol: float = EPS) -> bool:
    """Check if two arrays are close within tol (absolute)."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    close = a.shape == b.shape and bool(np.max(np.abs(a - b), initial=0.0) < tol)
    if not close:
        print(a, b)
    return close


def pendulum_tool(backend: str, length: float = 2.0, mass: float = 1.5):
    """DynTool holding a simple pendulum, theta measured from the downward vertical."""
    from dyntool import DynTool

    m = math_module(backend)
    tool = DynTool(backend)
    theta, dtheta = tool.add_coordinate("theta")
    tool.add_kinetic_energy(0.5 * mass * length**2 * dtheta**2)
    tool.add_potential_energy(-mass * GRAVITY * length * m.cos(theta))
    return tool


def double_pendulum_tool(
    backend: str, l1: float = 1.0, l2: float = 0.7, m1: float = 2.0, m2: float = 1.0
):
    """DynTool holding a planar double pendulum in absolute link angles."""
    from dyntool import DynTool

    m = math_module(backend)
    tool = DynTool(backend)
    th1, dth1 = tool.add_coordinate("th1")
    th2, dth2 = tool.add_coordinate("th2")
    tool.add_kinetic_energy(
        0.5 * (m1 + m2) * l1**2 * dth1**2
        + 0.5 * m2 * l2**2 * dth2**2
        + m2 * l1 * l2 * dth1 * dth2 * m.cos(th1 - th2)
    )
    tool.add_potential_energy(
        -(m1 + m2) * GRAVITY * l1 * m.cos(th1) - m2 * GRAVITY * l2 * m.cos(th2)
    )
    return tool


@beartype
class ProfiledTestCase(unittest.TestCase):
    """Base test case with profiling support."""

    def setUp(self):
        self.pr = cProfile.Profile()
        self.pr.enable()

    def tearDown(self) -> None:
        p = Stats(self.pr)
        p.strip_dirs()
        p.sort_stats("cumtime")
        profile_dir = Path(".profile")
        profile_dir.mkdir(exist_ok=True)
        p.dump_stats(profile_dir / self.id())
