from ..FiniteElement import FiniteElement as FE
from ...core.CPU._ops import apply_dirichlet_csr
from ...errors import StructuralError
from ...stiffness.CPU._FEA import AdvectionDiffusionKernel
from ...solvers.commons import Solver
from ...visualizers._2d import plot_mesh_2D, plot_field_2D
from ...visualizers._vtk import subdivided_quads
from ._dofs import DoFHandler
from typing import Optional, Union, Callable, Dict
from scipy.sparse import issparse
import numpy as np
import logging
logger = logging.getLogger(__name__)


def apply_boundary_values(boundary_values: Dict[int, float], matrix, solution, rhs, eliminate_columns=True):
    """
    Impose Dirichlet values on an assembled system, in place.

    For every constrained DoF i with value g the row i is replaced by
    ``diag * u_i = diag * g``, where diag is the absolute value of the existing
    diagonal (or, if that is zero, the mean absolute diagonal of the
    unconstrained rows). The constrained diagonal is always positive. With
    ``eliminate_columns`` the column i is moved to the right-hand side, so a
    symmetric matrix stays symmetric.

    Parameters
    ----------
    boundary_values : dict
        DoF index -> prescribed value
    matrix : csr_matrix
        Assembled matrix (float64); modified in place, structure unchanged
    solution : ndarray
        Solution vector (float64); constrained entries are set to their values
    rhs : ndarray
        Right-hand side (float64); modified in place
    eliminate_columns : bool, optional
        Also clear the constrained columns (default: True)

    Raises
    ------
    ValueError
        If a DoF is out of range or the arrays have the wrong type
    StructuralError
        If a constrained diagonal entry is not part of the matrix structure

    Notes
    -----
    Applying the same boundary values twice leaves matrix, right-hand side and
    solution unchanged. Entries that become zero are kept as explicit zeros.
    """
    if len(boundary_values) == 0:
        return

    if not issparse(matrix) or matrix.format != 'csr':
        raise ValueError("Boundary values can only be applied to a CSR matrix.")
    if matrix.data.dtype != np.float64:
        raise ValueError("Matrix data must be float64.")
    n = matrix.shape[0]
    for name, vec in (("solution", solution), ("rhs", rhs)):
        if not isinstance(vec, np.ndarray) or vec.dtype != np.float64 or vec.shape != (n,) or not vec.flags.c_contiguous:
            raise ValueError(f"{name} must be a contiguous float64 array of length {n}.")

    dofs = np.fromiter(boundary_values.keys(), dtype=np.int64, count=len(boundary_values))
    values = np.fromiter(boundary_values.values(), dtype=np.float64, count=len(boundary_values))
    if dofs.min() < 0 or dofs.max() >= n:
        raise ValueError(f"Constrained DoFs out of range [0, {n}).")
    order = np.argsort(dofs)
    dofs = dofs[order].astype(np.int32)
    values = values[order]

    matrix.sort_indices()
    diag = matrix.diagonal()
    free = np.ones(n, dtype=bool)
    free[dofs] = False
    candidates = np.abs(diag[free & (diag != 0)])
    fallback = float(candidates.mean()) if candidates.shape[0] > 0 else 1.0

    status = apply_dirichlet_csr(
        matrix.indptr.astype(np.int32), matrix.indices.astype(np.int32), matrix.data,
        dofs, values, solution, rhs, fallback, bool(eliminate_columns))
    if status >= 0:
        raise StructuralError(f"Diagonal entry of constrained DoF {status} is not in the sparsity pattern.")


class FiniteElement(FE):
    """
    Finite element analysis of one refinement cycle.

    Ties together a DoF handler, an assembly kernel and a linear solver, and
    keeps the Dirichlet data and the current solution of one discretization.
    A new instance is built for every refinement cycle.

    Parameters
    ----------
    dof_handler : DoFHandler
        Distributed DoF handler
    kernel : AdvectionDiffusionKernel
        Assembly kernel on the same DoF handler
    solver : Solver
        Linear solver (CG, BiCGSTAB or GMRES)

    Attributes
    ----------
    boundary_values : dict
        DoF index -> prescribed value, accumulated over all conditions
    system : AssembledSystem
        Last assembled matrix and right-hand side (boundary values applied
        after apply_boundary_conditions())
    solution : ndarray
        Current solution, shape (n_dofs,)

    Methods
    -------
    add_dirichlet_boundary_condition(tag, value=0.0)
        Prescribe values on faces with a boundary tag
    reset_dirichlet_boundary_conditions()
        Remove all boundary conditions
    assemble()
        Assemble matrix and right-hand side
    apply_boundary_conditions()
        Impose the Dirichlet values on the assembled system
    solve(x0=None)
        Solve, returns a SolverResult
    visualize_problem(**kwargs)
        Plot the mesh with colored boundary tags
    visualize_field(field, **kwargs)
        Plot a DoF vector

    Notes
    -----
    - Constrained entries of ``solution`` hold their prescribed values, so
      ``solution`` is the default initial guess of the solver
    - Boundary conditions added later for the same DoF overwrite earlier ones

    Examples
    --------
    >>> FE = FiniteElement(dof_handler, kernel, BiCGSTAB(preconditioner=PreconditionSSOR(1.2)))
    >>> FE.add_dirichlet_boundary_condition(tag=0, value=0.0)
    >>> result = FE.solve()
    >>> print(result.status, result.iterations)
    """
    def __init__(self,
                 dof_handler: DoFHandler,
                 kernel: AdvectionDiffusionKernel,
                 solver: Solver):
        super().__init__()

        self.dof_handler = dof_handler
        self.mesh = dof_handler.mesh
        self.kernel = kernel
        self.solver = solver

        self.boundary_values = {}
        self.system = None
        self.has_boundary_values_applied = False
        self.solution = np.zeros(dof_handler.n_dofs, dtype=np.float64)

    def add_dirichlet_boundary_condition(self,
                                        tag: int = 0,
                                        value: Union[float, Callable] = 0.0):
        """
        Prescribe ``value`` on every DoF of faces tagged ``tag``.

        Parameters
        ----------
        tag : int, optional
            Boundary tag (default: 0)
        value : float or callable, optional
            Constant, callable ``value(x, y)`` or Function (default: 0.0)

        Returns
        -------
        int
            Number of DoFs constrained by this call
        """
        values = self.dof_handler.interpolate_boundary_values(tag, value)
        if len(values) == 0:
            logger.warning("No boundary faces carry tag %s; no DoFs constrained.", tag)
        self.boundary_values.update(values)
        self.has_boundary_values_applied = False
        return len(values)

    def reset_dirichlet_boundary_conditions(self):
        """Remove all Dirichlet boundary conditions."""
        self.boundary_values = {}
        self.has_boundary_values_applied = False

    def assemble(self):
        self.system = self.kernel.assemble()
        self.has_boundary_values_applied = False
        return self.system

    def apply_boundary_conditions(self):
        if self.system is None:
            self.assemble()
        apply_boundary_values(self.boundary_values, self.system.matrix, self.solution, self.system.rhs)
        self.has_boundary_values_applied = True
        return self.system

    def solve(self, x0: Optional[np.ndarray] = None):
        """
        Solve the assembled system with boundary values applied.

        Parameters
        ----------
        x0 : ndarray, optional
            Initial guess. Constrained entries are overwritten with their
            prescribed values. Defaults to ``self.solution``

        Returns
        -------
        SolverResult
            Solution, iterations, residuals and status. ``self.solution`` is
            updated with the final iterate.
        """
        if not self.has_boundary_values_applied:
            self.apply_boundary_conditions()

        if x0 is not None:
            x0 = np.array(x0, dtype=np.float64, copy=True)
            if x0.shape != self.solution.shape:
                raise ValueError("x0 must have one entry per DoF.")
            if len(self.boundary_values) > 0:
                dofs = np.fromiter(self.boundary_values.keys(), dtype=np.int64)
                x0[dofs] = self.solution[dofs]
        else:
            x0 = self.solution

        result = self.solver.solve(self.system.matrix, self.system.rhs, x0=x0)
        self.solution = result.solution
        return result

    def visualize_problem(self, ax=None, **kwargs):
        """Plot the mesh with boundary faces colored by tag."""
        return plot_mesh_2D(
            self.mesh.vertices,
            self.mesh.cells,
            face_tags=self.mesh.face_tags,
            ax=ax,
            **kwargs)

    def visualize_field(self, field=None, ax=None, **kwargs):
        """
        Plot a DoF vector (default: the current solution).

        Higher-order cells are split into linear sub-quads; each sub-quad is
        colored with the mean of its corner values.
        """
        if field is None:
            field = self.solution
        return plot_field_2D(
            self.dof_handler.support_points,
            subdivided_quads(self.dof_handler),
            field,
            ax=ax,
            **kwargs)
