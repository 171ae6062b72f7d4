from pathlib import Path
import numpy as np
import pyvista as pv
import logging
logger = logging.getLogger(__name__)


def linear_subcells(fe):
    """
    Local indices of the degree x degree linear quads each cell is split into.

    Returns
    -------
    ndarray
        Shape (degree**2, 4), counter-clockwise local basis indices
    """
    p = fe.degree
    ix, iy = np.meshgrid(np.arange(p), np.arange(p))
    ix = ix.ravel()
    iy = iy.ravel()
    return np.stack([
        fe.local_index(ix, iy),
        fe.local_index(ix + 1, iy),
        fe.local_index(ix + 1, iy + 1),
        fe.local_index(ix, iy + 1),
    ], axis=-1)


def subdivided_quads(dof_handler):
    """Global DoF indices of every linear sub-quad, shape (n_cells * degree**2, 4)."""
    sub = linear_subcells(dof_handler.fe)
    return dof_handler.cell_dofs[:, sub].reshape(-1, 4)


def build_grid(dof_handler, solution, name="solution") -> pv.UnstructuredGrid:
    """
    Unstructured VTK grid of a discrete field.

    Every cell is split into degree x degree bilinear quads through its support
    points, so the nodal values are reproduced exactly at all DoFs.

    Parameters
    ----------
    dof_handler : DoFHandler
        Distributed DoF handler the solution refers to
    solution : ndarray
        Coefficient vector, shape (n_dofs,)
    name : str, optional
        Point data array name (default: "solution")

    Returns
    -------
    pyvista.UnstructuredGrid
        Grid with the field as point data
    """
    solution = np.asarray(solution, dtype=np.float64)
    if solution.shape != (dof_handler.n_dofs,):
        raise ValueError(f"solution must have shape ({dof_handler.n_dofs},), got {solution.shape}.")

    quads = subdivided_quads(dof_handler)
    cells = np.concatenate([np.full((quads.shape[0], 1), 4, dtype=np.int64), quads.astype(np.int64)], axis=1)

    grid = pv.UnstructuredGrid(
        cells.ravel(),
        np.full(quads.shape[0], pv.CellType.QUAD, dtype=np.uint8),
        np.pad(dof_handler.support_points, ((0, 0), (0, 1))),
    )
    grid.point_data[name] = solution
    return grid


def output_filename(cycle, prefix="solution"):
    return f"{prefix}-{cycle:02d}.vtu"


def write_vtu(dof_handler, solution, path):
    """
    Write a discrete field to a VTU file.

    The parent directory is created if missing. Filesystem failures propagate
    as OSError.

    Returns
    -------
    Path
        The written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.is_dir():
        raise IsADirectoryError(f"Output path {path} is a directory.")
    grid = build_grid(dof_handler, solution)
    grid.save(str(path))
    logger.debug("Wrote %s (%d points, %d cells)", path, grid.n_points, grid.n_cells)
    return path
