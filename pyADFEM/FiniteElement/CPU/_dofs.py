from ...core.CPU._ops import distribute_cell_dofs
from ...errors import StructuralError
from ...physics._functions import as_function
from ._basis import FEValues, QGauss, bilinear_map
import numpy as np
import logging
logger = logging.getLogger(__name__)

class DoFHandler:
    """
    Global numbering of the degrees of freedom of an FE_Q element on a mesh.

    Parameters
    ----------
    mesh : QuadMesh
        Mesh in its current refinement state
    fe : FE_Q
        Finite element

    Attributes
    ----------
    cell_dofs : ndarray
        Global DoF index per (cell, local basis function), shape (n_cells, dofs_per_cell)
    n_dofs : int
        Number of global degrees of freedom
    support_points : ndarray
        Physical location of every DoF, shape (n_dofs, 2)
    generation : int
        Mesh refinement count the numbering was built for

    Notes
    -----
    Numbering is deterministic: vertex DoFs first (same index as the vertex),
    then edge DoFs, then cell-interior DoFs. A DoF on an edge shared by two
    cells gets the same index from both, which makes the space continuous.
    The numbering refers to one mesh state; after refining the mesh a new
    handler is needed.

    Examples
    --------
    >>> dof_handler = DoFHandler(mesh, FE_Q(1)).distribute_dofs()
    >>> u = dof_handler.interpolate(lambda x, y: x + y)
    """
    def __init__(self, mesh, fe):
        self.mesh = mesh
        self.fe = fe
        self.cell_dofs = None
        self.n_dofs = 0
        self.support_points = None
        self.generation = None

    @property
    def dofs_per_cell(self):
        return self.fe.dofs_per_cell

    @property
    def n_cells(self):
        return self.cell_dofs.shape[0]

    def distribute_dofs(self):
        mesh = self.mesh
        edge_vertices, cell_edges = mesh.edges()
        degree = self.fe.degree
        n_vertices = mesh.n_vertices
        n_edges = edge_vertices.shape[0]

        self.cell_dofs = distribute_cell_dofs(mesh.cells, cell_edges, degree, n_vertices, n_edges)
        self.n_dofs = n_vertices + n_edges * (degree - 1) + mesh.n_active_cells * (degree - 1) ** 2

        used = np.zeros(self.n_dofs, dtype=bool)
        used[self.cell_dofs.ravel()] = True
        if not np.all(used):
            raise StructuralError(f"DoFs not attached to any cell: {np.where(~used)[0]}")

        points = bilinear_map(mesh.cell_vertices(), self.fe.support_points)
        self.support_points = np.zeros((self.n_dofs, 2), dtype=np.float64)
        self.support_points[self.cell_dofs.reshape(-1)] = points.reshape(-1, 2)

        self.generation = mesh.n_refinements
        logger.debug("Distributed %d DoFs on %d cells (degree %d)", self.n_dofs, mesh.n_active_cells, degree)
        return self

    def _check_distributed(self):
        if self.cell_dofs is None:
            raise StructuralError("DoFs have not been distributed yet.")

    def boundary_dofs(self, tags=None):
        """Sorted unique DoFs on boundary faces with the given tag(s) (all boundary faces if None)."""
        self._check_distributed()
        cells, faces = self.mesh.boundary_faces(tags)
        if cells.shape[0] == 0:
            return np.zeros(0, dtype=np.int32)
        local = np.stack([self.fe.face_dofs(f) for f in range(4)])
        return np.unique(self.cell_dofs[cells[:, None], local[faces]]).astype(np.int32)

    def interpolate(self, function):
        """Nodal interpolation of a scalar function, shape (n_dofs,)."""
        self._check_distributed()
        function = as_function(function)
        return np.asarray(function(self.support_points), dtype=np.float64).reshape(self.n_dofs)

    def interpolate_boundary_values(self, tag, function):
        """
        Boundary value map for the DoFs on faces tagged ``tag``.

        Returns
        -------
        dict
            DoF index -> prescribed value. Empty if no face carries the tag.
        """
        dofs = self.boundary_dofs(tag)
        if dofs.shape[0] == 0:
            return {}
        function = as_function(function)
        values = np.asarray(function(self.support_points[dofs]), dtype=np.float64).reshape(-1)
        return dict(zip(dofs.tolist(), values.tolist()))

    def evaluate(self, solution, ref_points):
        """
        Evaluate a discrete field at reference points of every cell.

        Parameters
        ----------
        solution : ndarray
            Coefficient vector, shape (n_dofs,)
        ref_points : ndarray
            Points in [-1, 1]^2, shape (n_points, 2)

        Returns
        -------
        values : ndarray
            Field values, shape (n_cells, n_points)
        points : ndarray
            Physical locations, shape (n_cells, n_points, 2)
        """
        self._check_distributed()
        solution = np.asarray(solution, dtype=np.float64)
        if solution.shape != (self.n_dofs,):
            raise ValueError(f"solution must have shape ({self.n_dofs},), got {solution.shape}.")
        ref_points = np.atleast_2d(np.asarray(ref_points, dtype=np.float64))
        phi = self.fe.shape_values(ref_points)
        values = np.einsum('pi,ci->cp', phi, solution[self.cell_dofs])
        points = bilinear_map(self.mesh.cell_vertices(), ref_points)
        return values, points

    def compute_l2_error(self, solution, exact, quadrature=None):
        """L2 norm of (solution - exact) over the mesh, with QGauss(degree + 2) by default."""
        self._check_distributed()
        if quadrature is None:
            quadrature = QGauss(self.fe.degree + 2)
        fe_values = FEValues(self.fe, quadrature).reinit(self.mesh.cell_vertices())
        uh = np.einsum('qi,ci->cq', fe_values.shape_values, np.asarray(solution)[self.cell_dofs])
        u = np.asarray(as_function(exact)(fe_values.quadrature_points), dtype=np.float64)
        return float(np.sqrt(np.sum((uh - u) ** 2 * fe_values.JxW)))

    def prolongate(self, old_handler, old_solution):
        """
        Transfer a solution from the previous refinement level onto this numbering.

        The old field is interpolated exactly at the support points of the
        children, so the result represents the same piecewise polynomial.
        """
        self._check_distributed()
        if old_handler.fe.degree != self.fe.degree:
            raise ValueError("Solution transfer requires the same element degree.")
        if old_handler.generation is None or self.generation != old_handler.generation + 1:
            raise ValueError("Solution transfer requires exactly one global refinement in between.")

        nl = self.dofs_per_cell
        E = self.fe.embedding_matrices()
        old_local = np.asarray(old_solution, dtype=np.float64)[old_handler.cell_dofs]
        new_local = np.einsum('kij,pj->pki', E, old_local).reshape(-1, nl)
        if new_local.shape[0] != self.n_cells:
            raise StructuralError("Refined cell count does not match the old mesh.")

        out = np.zeros(self.n_dofs, dtype=np.float64)
        out[self.cell_dofs.reshape(-1)] = new_local.reshape(-1)
        return out
