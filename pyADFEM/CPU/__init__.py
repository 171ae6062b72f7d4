"""CPU backend public API.

Importing from this module gives access to the CPU implementations of the
pyADFEM components (meshes, basis evaluation, DoF handling, assembly kernels,
solvers, the finite-element wrapper and the refinement loop). Typical usage:

>>> from pyADFEM.CPU import AdvectionDiffusionProblem, ProblemConfig
"""

from ..geom.CPU._mesh import QuadMesh, StructuredMesh2D, hyper_cube, hyper_rectangle
from ..FiniteElement.CPU._basis import FE_Q, QGauss, FEValues
from ..FiniteElement.CPU._dofs import DoFHandler
from ..FiniteElement.CPU.FiniteElement import FiniteElement, apply_boundary_values
from ..stiffness.CPU._FEA import SparsityPattern, AssembledSystem, AdvectionDiffusionKernel, assemble
from ..solvers.commons import SolverControl, SolverResult, SolverStatus
from ..solvers.CPU._solvers import (
    CG,
    BiCGSTAB,
    GMRES,
    PreconditionIdentity,
    PreconditionJacobi,
    PreconditionSSOR,
    make_solver,
    make_preconditioner)
from ..Problem._config import ProblemConfig, SolverSettings
from ..Problem._problem import CycleResult
from ..Problem.CPU.AdvectionDiffusionProblem import AdvectionDiffusionProblem
from ..visualizers._vtk import build_grid, write_vtu
from ..visualizers._2d import plot_mesh_2D, plot_field_2D
