from ...core.CPU._ops import (
    sparsity_nnz_per_row,
    sparsity_fill_columns,
    scatter_add_csr)
from ...errors import StructuralError
from ...FiniteElement.CPU._basis import FEValues
from dataclasses import dataclass
import numpy as np
from scipy.sparse import csr_matrix, issparse
import logging
logger = logging.getLogger(__name__)

class SparsityPattern:
    """
    Nonzero structure of a global matrix in CSR form.

    Built from a DoF handler: every pair of DoFs that share a cell is a
    potential nonzero. Rows are deduplicated and sorted.

    Parameters
    ----------
    indptr : ndarray
        Row pointers, shape (n_rows + 1,)
    indices : ndarray
        Sorted column indices per row, shape (nnz,)
    n_rows : int
        Number of rows (= columns)

    Notes
    -----
    - The pattern always contains the diagonal and is structurally symmetric
    - Construction uses the node-basis approach: DoFs are sorted once
      (``sorter``) so that the cells touching each DoF form a contiguous slice
      (``dof_ptr``), then two numba passes count and fill each row

    Examples
    --------
    >>> pattern = SparsityPattern.from_dof_handler(dof_handler)
    >>> A = pattern.empty_matrix()  # CSR with explicit zeros
    """
    def __init__(self, indptr, indices, n_rows):
        self.indptr = np.asarray(indptr, dtype=np.int32)
        self.indices = np.asarray(indices, dtype=np.int32)
        self.n_rows = int(n_rows)

    @classmethod
    def from_dof_handler(cls, dof_handler):
        cell_dofs = dof_handler.cell_dofs
        if cell_dofs is None:
            raise StructuralError("DoFs have not been distributed yet.")
        n_dofs = dof_handler.n_dofs
        dofs_per_cell = cell_dofs.shape[1]

        dofs_flat = np.ascontiguousarray(cell_dofs.reshape(-1), dtype=np.int32)
        sorter = np.argsort(dofs_flat, kind='stable').astype(np.int32)
        dof_ptr = np.searchsorted(dofs_flat, np.arange(n_dofs + 1, dtype=np.int32), sorter=sorter, side='left').astype(np.int32)

        nnz_per_row = sparsity_nnz_per_row(dofs_flat, sorter, dof_ptr, n_dofs, dofs_per_cell)
        indptr = np.zeros(n_dofs + 1, dtype=np.int32)
        indptr[1:] = np.cumsum(nnz_per_row)
        indices = -np.ones(int(indptr[-1]), dtype=np.int32)
        sparsity_fill_columns(dofs_flat, sorter, dof_ptr, n_dofs, dofs_per_cell, indptr, indices)

        logger.debug("Sparsity pattern: %d rows, %d entries", n_dofs, indptr[-1])
        return cls(indptr, indices, n_dofs)

    @property
    def nnz(self):
        return int(self.indptr[-1])

    @property
    def shape(self):
        return (self.n_rows, self.n_rows)

    def contains(self, row, col):
        if row < 0 or row >= self.n_rows:
            return False
        start, end = self.indptr[row], self.indptr[row + 1]
        pos = start + np.searchsorted(self.indices[start:end], col)
        return bool(pos < end and self.indices[pos] == col)

    def row(self, row):
        return self.indices[self.indptr[row]:self.indptr[row + 1]]

    def empty_matrix(self):
        """CSR matrix holding every pattern entry as an explicit zero."""
        data = np.zeros(self.nnz, dtype=np.float64)
        return csr_matrix((data, self.indices.copy(), self.indptr.copy()), shape=self.shape)

    def is_symmetric(self):
        rows = np.repeat(np.arange(self.n_rows, dtype=np.int32), np.diff(self.indptr))
        forward = np.sort(rows.astype(np.int64) * self.n_rows + self.indices)
        backward = np.sort(self.indices.astype(np.int64) * self.n_rows + rows)
        return bool(np.array_equal(forward, backward))


@dataclass
class AssembledSystem:
    """Global matrix and right-hand side produced by one assembly."""
    matrix: csr_matrix
    rhs: np.ndarray

    @property
    def n_dofs(self):
        return self.rhs.shape[0]


class StiffnessKernel:
    """
    Base class for global system assembly kernels.

    Holds an explicit CSR matrix once constructed and exposes it through
    matrix-vector products, so kernels can be handed to iterative solvers
    directly.

    Attributes
    ----------
    shape : tuple
        Global matrix dimensions (n_dofs, n_dofs)
    has_been_constructed : bool
        True once construct() has run
    CSR : csr_matrix
        Last constructed matrix

    Methods
    -------
    construct()
        Assemble and return the explicit CSR matrix
    dot(rhs)
        Matrix-vector product A @ rhs
    rdot(rhs)
        Transposed product A.T @ rhs
    diagonal()
        Diagonal of the assembled matrix
    reset()
        Drop the assembled matrix

    Notes
    -----
    Subclasses implement assemble() and _matvec().
    """
    def __init__(self):
        self.shape = None
        self.CSR = None
        self.has_been_constructed = False
        self.matvec = self.dot
        self.rmatvec = self.rdot
        self.matmat = self.dot
        self.rmatmat = self.rdot

    def assemble(self):
        raise NotImplementedError("assemble method must be implemented in subclasses.")

    def construct(self):
        """
        Build the explicit CSR matrix.

        Returns
        -------
        csr_matrix
            Assembled global matrix
        """
        raise NotImplementedError("construct method must be implemented in subclasses.")

    def _matvec(self, vec):
        raise NotImplementedError("_matvec method must be implemented in subclasses.")

    def dot(self, rhs):
        raise NotImplementedError("dot method must be implemented in subclasses.")

    def rdot(self, rhs):
        raise NotImplementedError("rdot method must be implemented in subclasses.")

    def diagonal(self):
        raise NotImplementedError("diagonal method must be implemented in subclasses.")

    def reset(self):
        """Drop the assembled matrix; the next construct() assembles again."""
        self.CSR = None
        self.has_been_constructed = False

    def __matmul__(self, rhs):
        """Convenience: kernel @ rhs calls dot(rhs)."""
        return self.dot(rhs)


class AdvectionDiffusionKernel(StiffnessKernel):
    """
    Assembly of the advection-diffusion system on a DoF handler.

    Local matrices and load vectors of all cells are computed in one batch by
    the physics model, then added into a zero-initialized CSR matrix with the
    structure of ``pattern`` by a sequential numba kernel. Cells are visited in
    order, then local rows, then local columns, so assembly is bitwise
    reproducible.

    Parameters
    ----------
    dof_handler : DoFHandler
        Distributed DoF handler
    pattern : SparsityPattern
        Pattern built from the same DoF handler
    physics : Physx
        Physics model providing K and F
    quadrature : QGauss, optional
        Quadrature rule (default: QGauss(degree + 1))

    Attributes
    ----------
    shape : tuple
        (n_dofs, n_dofs)
    rhs : ndarray
        Right-hand side from the last assembly

    Raises
    ------
    StructuralError
        If the local and global DoF counts disagree, or a cell writes an entry
        that is not in the pattern

    Examples
    --------
    >>> kernel = AdvectionDiffusionKernel(dof_handler, pattern, AdvectionDiffusion())
    >>> system = kernel.assemble()
    >>> r = system.rhs - kernel @ u
    """
    def __init__(self, dof_handler, pattern, physics, quadrature=None):
        super().__init__()
        self.dof_handler = dof_handler
        self.pattern = pattern
        self.physics = physics
        self.fe_values = FEValues(dof_handler.fe, quadrature)
        self.shape = (dof_handler.n_dofs, dof_handler.n_dofs)
        self.rhs = None

    def local_system(self):
        """Local matrices (n_cells, n_local, n_local) and vectors (n_cells, n_local)."""
        self.fe_values.reinit(self.dof_handler.mesh.cell_vertices())
        return self.physics.K(self.fe_values), self.physics.F(self.fe_values)

    def assemble(self):
        dof_handler = self.dof_handler
        cell_dofs = dof_handler.cell_dofs
        n_local = dof_handler.fe.dofs_per_cell
        n_dofs = dof_handler.n_dofs

        if cell_dofs is None or cell_dofs.shape[1] != n_local:
            raise StructuralError(f"Cell DoF table does not match the element ({n_local} local DoFs).")
        if self.pattern.n_rows != n_dofs:
            raise StructuralError(f"Sparsity pattern has {self.pattern.n_rows} rows but there are {n_dofs} DoFs.")

        Ke, Fe = self.local_system()
        n_cells = cell_dofs.shape[0]
        if Ke.shape != (n_cells, n_local, n_local) or Fe.shape != (n_cells, n_local):
            raise StructuralError(f"Local matrices of shape {Ke.shape} do not match {n_cells} cells with {n_local} DoFs.")

        matrix = self.pattern.empty_matrix()
        rhs = np.zeros(n_dofs, dtype=np.float64)
        status = scatter_add_csr(
            cell_dofs,
            np.ascontiguousarray(Ke, dtype=np.float64),
            np.ascontiguousarray(Fe, dtype=np.float64),
            self.pattern.indptr, self.pattern.indices, matrix.data, rhs)

        if status >= 0:
            raise StructuralError(f"Cell {status} writes an entry outside the sparsity pattern.")

        logger.debug("Assembled %d cells into %d x %d matrix (%d entries)", n_cells, n_dofs, n_dofs, matrix.nnz)

        self.CSR = matrix
        self.rhs = rhs
        self.has_been_constructed = True
        return AssembledSystem(matrix, rhs)

    def construct(self):
        if not self.has_been_constructed:
            self.assemble()
        return self.CSR

    def _matvec(self, vec):
        return self.CSR @ vec

    def _rmatvec(self, vec):
        return self.CSR.T @ vec

    def _check_operand(self, rhs):
        if not self.has_been_constructed:
            raise ValueError("Matrix has not been assembled. dot works only after assemble().")
        if isinstance(rhs, np.ndarray) or issparse(rhs):
            if rhs.shape[0] == self.shape[0]:
                return
            raise ValueError("Shape of the input does not match the number of DoFs.")
        raise NotImplementedError("Only numpy arrays and scipy sparse matrices are supported.")

    def dot(self, rhs):
        self._check_operand(rhs)
        return self._matvec(rhs)

    def rdot(self, rhs):
        self._check_operand(rhs)
        return self._rmatvec(rhs)

    def diagonal(self):
        return self.construct().diagonal()

    def reset(self):
        super().reset()
        self.rhs = None


def assemble(dof_handler, pattern, physics, quadrature=None):
    """
    Assemble the global system for ``physics`` on ``dof_handler``.

    Returns
    -------
    AssembledSystem
        Fresh matrix (structure of ``pattern``) and right-hand side
    """
    return AdvectionDiffusionKernel(dof_handler, pattern, physics, quadrature).assemble()
