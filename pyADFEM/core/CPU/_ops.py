from numba import njit, prange
import numpy as np

@njit("i4[:, :](i4[:, :], i4[:, :], i4, i4, i4)", cache=True, parallel=True)
def distribute_cell_dofs(cells, cell_edges, degree, n_vertices, n_edges):
    """
    Global DoF index of every (cell, local basis function) for FE_Q(degree).

    Vertex DoFs come first (one per vertex, numbered like the vertices), then
    degree-1 DoFs per edge ordered from its lower to its higher vertex index,
    then (degree-1)^2 interior DoFs per cell.
    """
    n_cells = cells.shape[0]
    n1 = degree + 1
    n_inner = degree - 1
    interior_offset = n_vertices + n_edges * n_inner
    cell_dofs = np.zeros((n_cells, n1 * n1), dtype=np.int32)

    for c in prange(n_cells):
        for iy in range(n1):
            for ix in range(n1):
                local = iy * n1 + ix
                on_x = ix == 0 or ix == degree
                on_y = iy == 0 or iy == degree

                if on_x and on_y:
                    if ix == 0 and iy == 0:
                        v = 0
                    elif iy == 0:
                        v = 1
                    elif ix == degree:
                        v = 2
                    else:
                        v = 3
                    cell_dofs[c, local] = cells[c, v]

                elif on_x or on_y:
                    # position s along the face, counted from its first vertex
                    if iy == 0:
                        face = 0
                        s = ix
                    elif ix == degree:
                        face = 1
                        s = iy
                    elif iy == degree:
                        face = 2
                        s = degree - ix
                    else:
                        face = 3
                        s = degree - iy

                    a = cells[c, face]
                    b = cells[c, (face + 1) % 4]
                    if a < b:
                        k = s - 1
                    else:
                        k = degree - 1 - s
                    cell_dofs[c, local] = n_vertices + cell_edges[c, face] * n_inner + k

                else:
                    cell_dofs[c, local] = interior_offset + c * n_inner * n_inner + (iy - 1) * n_inner + (ix - 1)

    return cell_dofs

@njit("i4[:](i4[:], i4[:], i4[:], i4, i4)", cache=True)
def sparsity_nnz_per_row(dofs_flat, sorter, dof_ptr, n_dofs, dofs_per_cell):
    nnz_per_row = np.zeros(n_dofs, dtype=np.int32)
    mask = np.zeros(n_dofs, dtype=np.int32) - 1

    for i in range(n_dofs):
        for j in range(dof_ptr[i], dof_ptr[i+1]):
            cell = sorter[j] // dofs_per_cell
            for l in range(dofs_per_cell):
                k = dofs_flat[cell * dofs_per_cell + l]
                if mask[k] != i:
                    mask[k] = i
                    nnz_per_row[i] += 1
    return nnz_per_row

@njit("void(i4[:], i4[:], i4[:], i4, i4, i4[:], i4[:])", cache=True, parallel=True)
def sparsity_fill_columns(dofs_flat, sorter, dof_ptr, n_dofs, dofs_per_cell, indptr, indices):
    for i in prange(n_dofs):
        start = indptr[i]
        count = 0
        for j in range(dof_ptr[i], dof_ptr[i+1]):
            cell = sorter[j] // dofs_per_cell
            for l in range(dofs_per_cell):
                k = dofs_flat[cell * dofs_per_cell + l]
                found = False
                for m in range(start, start + count):
                    if indices[m] == k:
                        found = True
                        break
                if not found:
                    indices[start + count] = k
                    count += 1
        indices[start:start + count] = np.sort(indices[start:start + count])

@njit("i4(i4[:, :], f8[:, :, :], f8[:, :], i4[:], i4[:], f8[:], f8[:])", cache=True)
def scatter_add_csr(cell_dofs, local_matrices, local_vectors, indptr, indices, data, rhs):
    """
    Add local matrices and vectors into a CSR matrix and a dense vector.

    Cells are processed in order, then local rows, then local columns. Returns
    -1 on success, or the index of the first cell that touches an entry outside
    the CSR structure (nothing of that cell past the failing entry is added).
    """
    n_cells = cell_dofs.shape[0]
    n_local = cell_dofs.shape[1]

    for c in range(n_cells):
        for i in range(n_local):
            row = cell_dofs[c, i]
            start = indptr[row]
            end = indptr[row+1]
            for j in range(n_local):
                col = cell_dofs[c, j]
                pos = start + np.searchsorted(indices[start:end], col)
                if pos >= end or indices[pos] != col:
                    return c
                data[pos] += local_matrices[c, i, j]
            rhs[row] += local_vectors[c, i]
    return -1

@njit("i4(i4[:], i4[:], f8[:], i4[:], f8[:], f8[:], f8[:], f8, boolean)", cache=True)
def apply_dirichlet_csr(indptr, indices, data, dofs, values, solution, rhs, fallback_diagonal, eliminate_columns):
    """
    Pin ``solution[dofs] = values`` in a CSR system, in place.

    Returns -1 on success, or the first constrained DoF whose diagonal is not
    part of the CSR structure.
    """
    for n in range(dofs.shape[0]):
        i = dofs[n]
        start = indptr[i]
        end = indptr[i+1]
        pos = start + np.searchsorted(indices[start:end], i)
        if pos >= end or indices[pos] != i:
            return i

        diagonal = abs(data[pos])
        if diagonal <= 0.0:
            diagonal = fallback_diagonal
        g = values[n]

        if eliminate_columns:
            for k in range(start, end):
                j = indices[k]
                if j == i:
                    continue
                row_start = indptr[j]
                row_end = indptr[j+1]
                q = row_start + np.searchsorted(indices[row_start:row_end], i)
                if q < row_end and indices[q] == i:
                    rhs[j] -= data[q] * g
                    data[q] = 0.0

        for k in range(start, end):
            data[k] = 0.0
        data[pos] = diagonal
        rhs[i] = diagonal * g
        solution[i] = g
    return -1

@njit("f8[:](i4[:], i4[:], f8[:], f8[:], f8[:], f8)", cache=True)
def ssor_apply(indptr, indices, data, diagonal, src, omega):
    """
    Symmetric SOR preconditioner application z = M^{-1} src.

    M = (D + ωL) D^{-1} (D + ωU) / (ω(2-ω)), applied as a forward sweep, a
    diagonal scaling and a backward sweep.
    """
    n = src.shape[0]
    dst = np.empty(n, dtype=np.float64)

    for i in range(n):
        s = src[i]
        for k in range(indptr[i], indptr[i+1]):
            j = indices[k]
            if j < i:
                s -= omega * data[k] * dst[j]
        dst[i] = s / diagonal[i]

    for i in range(n):
        dst[i] *= diagonal[i]

    for i in range(n - 1, -1, -1):
        s = dst[i]
        for k in range(indptr[i], indptr[i+1]):
            j = indices[k]
            if j > i:
                s -= omega * data[k] * dst[j]
        dst[i] = s / diagonal[i]

    scale = omega * (2.0 - omega)
    for i in range(n):
        dst[i] *= scale

    return dst
