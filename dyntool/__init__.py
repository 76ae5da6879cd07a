"""
dyntool - Lagrangian dynamics and linear DAEs with computer algebra

Assemble a mechanical system from coordinates, kinetic and potential
energies and holonomic constraints, derive its standard-form or
constrained equations of motion symbolically (CasADi or SymPy), and
integrate linear-in-derivative DAEs with SUNDIALS IDAS.
"""

from beartype.claw import beartype_package

beartype_package(__name__)

__version__ = "0.1.0"

from . import backends
from .assembler import DynTool
from .backends import get_backend
from .config import IntegratorOptions
from .constrained import ConstrainedDynamics
from .dae import LinearDAE, Trajectory
from .errors import (
    ConstraintsIgnoredWarning,
    DimensionMismatch,
    DynToolError,
    InconsistentInitialCondition,
    IntegrationFailure,
    InvalidArgument,
    SingularMassMatrix,
)
from .standard_form import StandardFormDynamics

__all__ = [
    "backends",
    "get_backend",
    "DynTool",
    "StandardFormDynamics",
    "ConstrainedDynamics",
    "LinearDAE",
    "Trajectory",
    "IntegratorOptions",
    "DynToolError",
    "InvalidArgument",
    "DimensionMismatch",
    "SingularMassMatrix",
    "InconsistentInitialCondition",
    "IntegrationFailure",
    "ConstraintsIgnoredWarning",
    "__version__",
]
