from .._problem import Problem, CycleResult
from .._config import ProblemConfig
from ...errors import StructuralError, CycleError, ConvergenceFailure
from ...geom.CPU._mesh import hyper_cube
from ...physics.AdvectionDiffusion import AdvectionDiffusion
from ...FiniteElement.CPU._basis import FE_Q
from ...FiniteElement.CPU._dofs import DoFHandler
from ...FiniteElement.CPU.FiniteElement import FiniteElement
from ...stiffness.CPU._FEA import SparsityPattern, AdvectionDiffusionKernel
from ...solvers.commons import SolverControl
from ...solvers.CPU._solvers import make_solver, make_preconditioner
from ...visualizers._vtk import write_vtu, output_filename
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, List
import logging
logger = logging.getLogger(__name__)


class AdvectionDiffusionProblem(Problem):
    """
    Refinement loop for the stationary advection-diffusion problem.

    Cycle 0 starts from the square [lower, upper]^2 refined
    ``initial_refinements`` times; every later cycle refines all cells once.
    Each cycle distributes DoFs, builds the sparsity pattern, assembles,
    applies the Dirichlet values, solves and optionally writes
    ``<prefix>-XX.vtu``.

    Parameters
    ----------
    config : ProblemConfig, optional
        Scenario parameters (default: ProblemConfig())
    physics : Physx, optional
        Physics model. Built from the coefficients in ``config`` if None

    Attributes
    ----------
    mesh : QuadMesh
        Mesh of the current cycle
    dof_handler : DoFHandler
        DoF handler of the current cycle
    FE : FiniteElement
        Finite element analysis of the current cycle
    results : list of CycleResult
        Results of all cycles run so far

    Raises
    ------
    ConvergenceFailure
        If a solve does not converge and ``config.abort_on_failure`` is set
    CycleError
        If a cycle fails structurally or on a resource (file system, memory);
        the original exception is chained

    Notes
    -----
    The space, pattern, matrix and vectors of a cycle are rebuilt from
    scratch; nothing but the mesh (and the previous solution for a warm start)
    is carried over to the next cycle.

    Examples
    --------
    >>> from pyADFEM.CPU import AdvectionDiffusionProblem, ProblemConfig
    >>> problem = AdvectionDiffusionProblem(ProblemConfig(n_cycles=3, output_dir="out"))
    >>> for r in problem.run():
    ...     print(r.cycle, r.n_active_cells, r.n_dofs, r.iterations)
    """
    def __init__(self, config: Optional[ProblemConfig] = None, physics=None):
        super().__init__()
        self.config = ProblemConfig() if config is None else config

        if physics is None:
            physics = AdvectionDiffusion(
                diffusion=self.config.diffusion,
                advection=self.config.advection,
                direction=self.config.direction,
                forcing=self.config.forcing)
        self.physics = physics
        self.fe = FE_Q(self.config.degree)

        self.mesh = None
        self.dof_handler = None
        self.pattern = None
        self.FE = None
        self.results: List[CycleResult] = []

    @contextmanager
    def _stage(self, cycle, component):
        try:
            yield
        except (StructuralError, OSError, MemoryError, ValueError) as e:
            logger.error("Cycle %d failed in %s: %s", cycle, component, e)
            raise CycleError(cycle, component, e) from e

    def _make_solver(self):
        settings = self.config.solver
        control = SolverControl(
            max_iterations=settings.max_iterations,
            tolerance=settings.tolerance,
            absolute_tolerance=settings.absolute_tolerance)
        preconditioner = make_preconditioner(settings.preconditioner, settings.relaxation)
        return make_solver(settings.method, control, preconditioner, symmetric=self.physics.is_symmetric)

    def setup_cycle(self, cycle):
        config = self.config

        with self._stage(cycle, "mesh"):
            if cycle == 0 or self.mesh is None:
                self.mesh = hyper_cube(config.lower, config.upper)
                self.mesh.refine_global(config.initial_refinements)
            else:
                self.mesh.refine_global(1)

        with self._stage(cycle, "dofs"):
            self.dof_handler = DoFHandler(self.mesh, self.fe).distribute_dofs()

        with self._stage(cycle, "sparsity"):
            self.pattern = SparsityPattern.from_dof_handler(self.dof_handler)

        with self._stage(cycle, "solve"):
            solver = self._make_solver()

        kernel = AdvectionDiffusionKernel(self.dof_handler, self.pattern, self.physics)
        self.FE = FiniteElement(self.dof_handler, kernel, solver)
        return self.FE

    def run_cycle(self, cycle):
        config = self.config
        old_handler = self.dof_handler
        old_solution = self.results[-1].solution if self.results else None

        self.setup_cycle(cycle)
        logger.info("Cycle %d: %d active cells, %d degrees of freedom",
                    cycle, self.mesh.n_active_cells, self.dof_handler.n_dofs)

        with self._stage(cycle, "assembly"):
            self.FE.assemble()

        with self._stage(cycle, "boundary"):
            self.FE.add_dirichlet_boundary_condition(config.boundary_tag, config.boundary_value)
            self.FE.apply_boundary_conditions()

        with self._stage(cycle, "solve"):
            x0 = None
            if config.transfer_solution and old_handler is not None and old_solution is not None:
                x0 = self.dof_handler.prolongate(old_handler, old_solution)
            result = self.FE.solve(x0)

        logger.info("   %s: %s after %d iterations (residual %.3e)",
                    type(self.FE.solver).__name__, result.status.value, result.iterations, result.residual_norm)

        if not result.converged:
            logger.warning("Cycle %d: linear solver stopped with status %s after %d iterations",
                           cycle, result.status.value, result.iterations)
            if config.abort_on_failure:
                raise ConvergenceFailure(result, cycle)

        l2_error = None
        if config.exact_solution is not None:
            l2_error = self.dof_handler.compute_l2_error(result.solution, config.exact_solution)
            logger.info("   L2 error: %.6e", l2_error)

        output_path = None
        if config.output_dir is not None:
            with self._stage(cycle, "output"):
                path = Path(config.output_dir) / output_filename(cycle, config.output_prefix)
                output_path = write_vtu(self.dof_handler, result.solution, path)

        record = CycleResult(
            cycle=cycle,
            n_active_cells=self.mesh.n_active_cells,
            n_dofs=self.dof_handler.n_dofs,
            iterations=result.iterations,
            converged=result.converged,
            residual_norm=result.residual_norm,
            l2_error=l2_error,
            output_path=output_path,
            solution=result.solution)
        self.results.append(record)
        return record

    def run(self):
        """
        Run all ``config.n_cycles`` cycles from scratch.

        Returns
        -------
        list of CycleResult
        """
        self.mesh = None
        self.dof_handler = None
        self.results = []
        for cycle in range(self.config.n_cycles):
            self.run_cycle(cycle)
        return self.results

    def is_terminal(self):
        return len(self.results) >= self.config.n_cycles
