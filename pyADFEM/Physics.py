"""Physics models exported by pyADFEM.

This module exposes the built-in physics model classes and the spatial
function helpers used to describe coefficients. Each physics model implements
the :class:`pyADFEM.physics._physx.Physx` interface and provides element-level
matrices and load vectors used by the assembly kernel.

Available models
- AdvectionDiffusion: stationary advection-diffusion with x-gradient stabilization
"""

from .physics._physx import Physx
from .physics.AdvectionDiffusion import AdvectionDiffusion
from .physics._functions import Function, ConstantFunction, VectorConstantFunction, CallableFunction, as_function
