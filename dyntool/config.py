"""
Integrator configuration.
"""

import numbers
from dataclasses import dataclass, field
from typing import Any, Dict

from .errors import InvalidArgument


@dataclass
class IntegratorOptions:
    """Options for :meth:`dyntool.dae.LinearDAE.solve`.

    Numeric fields accept any real (or integral) number and are stored as
    ``float`` (or ``int``).

    Parameters
    ----------
    method : str
        CasADi integrator plugin. Must handle algebraic states ('idas').
    abstol : float
        Absolute tolerance of the integrator
    reltol : float
        Relative tolerance of the integrator
    max_num_steps : int
        Maximum number of internal steps between two output samples
    dt : float
        Output sampling step. The grid always ends exactly at the duration.
    consistency_tol : float
        Largest admissible residual of an algebraic equation at t=0
    extra : dict
        Additional options passed verbatim to ``casadi.integrator``
    """

    method: str = "idas"
    abstol: numbers.Real = 1e-8
    reltol: numbers.Real = 1e-6
    max_num_steps: numbers.Integral = 10000
    dt: numbers.Real = 0.01
    consistency_tol: numbers.Real = 1e-8
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("abstol", "reltol", "dt", "consistency_tol"):
            value = float(getattr(self, name))
            if not value > 0:
                raise InvalidArgument(f"IntegratorOptions.{name} must be positive, got {value}")
            setattr(self, name, value)
        self.max_num_steps = int(self.max_num_steps)
        if self.max_num_steps < 1:
            raise InvalidArgument(
                f"IntegratorOptions.max_num_steps must be >= 1, got {self.max_num_steps}"
            )

    def as_casadi_options(self) -> Dict[str, Any]:
        """Options dict for ``casadi.integrator``."""
        opts = {
            "abstol": self.abstol,
            "reltol": self.reltol,
            "max_num_steps": self.max_num_steps,
        }
        opts.update(self.extra)
        return opts
