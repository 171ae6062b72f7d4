from ...core.CPU._geom import generate_structured_mesh, split_quadrilaterals, split_face_tags
import numpy as np
import logging
logger = logging.getLogger(__name__)
from ..commons._mesh import Mesh, StructuredMesh

# local vertex pairs of faces bottom, right, top, left
FACE_VERTICES = np.array([[0, 1], [1, 2], [2, 3], [3, 0]], dtype=np.int32)

class QuadMesh(Mesh):
    """
    Conforming quadrilateral mesh with boundary tags and uniform refinement.

    Parameters
    ----------
    vertices : ndarray
        Vertex coordinates, shape (n_vertices, 2)
    cells : ndarray
        Counter-clockwise cell connectivity, shape (n_cells, 4)
    face_tags : ndarray, optional
        Boundary tag per (cell, face), shape (n_cells, 4) with -1 on interior
        faces. If None, every boundary face gets tag 0
    dtype : np.dtype, optional
        Data type for coordinates (default: np.float64)

    Attributes
    ----------
    vertices : ndarray
        Vertex coordinates
    cells : ndarray
        Cell connectivity (int32)
    face_tags : ndarray
        Boundary tags (int32)
    n_refinements : int
        Number of global refinements applied since construction

    Methods
    -------
    refine_global(times=1)
        Split every cell into four children, in place
    enumerate_elements()
        Iterate over active cell indices
    boundary_tag(cell, face)
        Tag of a boundary face, None for interior faces
    edges()
        Unique edges and the cell-to-edge map

    Notes
    -----
    - Faces are numbered bottom (v0v1), right (v1v2), top (v2v3), left (v3v0)
    - After refinement, cell 4*p + k is the child of old cell p at corner k
    - Unused vertices are removed on construction
    - Clockwise cells raise ValueError

    Examples
    --------
    >>> from pyADFEM.CPU import hyper_cube
    >>> mesh = hyper_cube(0.0, 1.0)
    >>> mesh.refine_global(2)
    >>> print(f"Cells: {mesh.n_active_cells}, Vertices: {mesh.n_vertices}")
    """
    def __init__(self, vertices, cells, face_tags=None, dtype=np.float64):
        super().__init__()
        vertices = np.asarray(vertices, dtype=dtype)
        cells = np.asarray(cells)

        if vertices.ndim != 2 or vertices.shape[1] != 2:
            raise ValueError("vertices must have shape (n_vertices, 2).")
        if cells.ndim != 2 or cells.shape[1] != 4:
            raise ValueError("cells must have shape (n_cells, 4).")
        if cells.shape[0] == 0:
            raise ValueError("A mesh needs at least one cell.")
        if cells.min() < 0 or cells.max() >= vertices.shape[0]:
            raise ValueError("cells reference vertices that do not exist.")

        cells = cells.astype(np.int32)

        useful_idx = np.unique(cells)
        if useful_idx.shape[0] != vertices.shape[0]:
            logger.info("Mesh has unused vertices. Cleaning up ...")
            cells = np.searchsorted(useful_idx, cells).astype(np.int32)
            vertices = vertices[useful_idx]

        self.vertices = vertices
        self.cells = cells
        self.dtype = dtype
        self.n_refinements = 0
        self._edges = None

        areas = self.cell_areas()
        if np.any(areas <= 0):
            raise ValueError(f"Node Order Is Not Correct for cells: {np.where(areas <= 0)[0]}")

        if face_tags is None:
            face_tags = np.where(self.boundary_face_mask(), 0, -1)
        face_tags = np.asarray(face_tags)
        if face_tags.shape != cells.shape:
            raise ValueError("face_tags must have shape (n_cells, 4).")
        self.face_tags = face_tags.astype(np.int32)

    @property
    def n_active_cells(self):
        return self.cells.shape[0]

    @property
    def n_vertices(self):
        return self.vertices.shape[0]

    def enumerate_elements(self):
        return range(self.n_active_cells)

    def cell_vertices(self, cell=None):
        """Corner coordinates, shape (n_cells, 4, 2), or (4, 2) for one cell."""
        if cell is None:
            return self.vertices[self.cells]
        return self.vertices[self.cells[cell]]

    def cell_areas(self):
        x0s = self.vertices[self.cells]
        x = x0s[:, :, 0]
        y = x0s[:, :, 1]
        return 0.5 * np.sum(x * np.roll(y, -1, axis=1) - np.roll(x, -1, axis=1) * y, axis=1)

    def area(self):
        return float(self.cell_areas().sum())

    def edges(self):
        """
        Unique edges of the mesh.

        Returns
        -------
        edge_vertices : ndarray
            Vertex pairs (lower index first), shape (n_edges, 2)
        cell_edges : ndarray
            Edge index of every (cell, face), shape (n_cells, 4)
        """
        if self._edges is None:
            keys = np.sort(self.cells[:, FACE_VERTICES], axis=2).reshape(-1, 2)
            edge_vertices, inverse = np.unique(keys, axis=0, return_inverse=True)
            cell_edges = inverse.reshape(-1, 4).astype(np.int32)
            self._edges = (edge_vertices.astype(np.int32), cell_edges)
        return self._edges

    def boundary_face_mask(self):
        """Boolean (n_cells, 4) array, True where a face is on the boundary."""
        edge_vertices, cell_edges = self.edges()
        counts = np.bincount(cell_edges.ravel(), minlength=edge_vertices.shape[0])
        if np.any(counts > 2):
            raise ValueError("Mesh is not conforming: an edge is shared by more than two cells.")
        return counts[cell_edges] == 1

    def boundary_tag(self, cell, face):
        tag = self.face_tags[cell, face]
        return None if tag < 0 else int(tag)

    def boundary_faces(self, tags=None):
        """
        Boundary faces, optionally restricted to a set of tags.

        Returns
        -------
        cells, faces : ndarray
            Cell and local face index of every selected boundary face
        """
        if tags is None:
            mask = self.face_tags >= 0
        else:
            mask = np.isin(self.face_tags, np.atleast_1d(tags)) & (self.face_tags >= 0)
        return np.nonzero(mask)

    def refine_global(self, times=1):
        """
        Uniformly refine the mesh ``times`` times.

        Every cell is split into four through its edge midpoints and its center.
        Boundary tags are inherited by the children.
        """
        if times < 0:
            raise ValueError("times must be non-negative.")

        for _ in range(times):
            edge_vertices, cell_edges = self.edges()
            n_vertices = self.n_vertices
            n_edges = edge_vertices.shape[0]

            midpoints = self.vertices[edge_vertices].mean(axis=1)
            centers = self.vertices[self.cells].mean(axis=1)

            midpoint_ids = (cell_edges + n_vertices).astype(np.int32)
            center_ids = (n_vertices + n_edges + np.arange(self.n_active_cells)).astype(np.int32)

            self.cells = split_quadrilaterals(self.cells, midpoint_ids, center_ids)
            self.face_tags = split_face_tags(self.face_tags)
            self.vertices = np.concatenate([self.vertices, midpoints, centers]).astype(self.dtype)
            self.n_refinements += 1
            self._edges = None

        logger.debug("Refined mesh %d times: %d cells, %d vertices", times, self.n_active_cells, self.n_vertices)
        return self

class StructuredMesh2D(QuadMesh, StructuredMesh):
    """
    2D structured mesh with uniform rectangular elements.

    Creates a regular grid of quadrilateral elements. Connectivity comes from the
    numba kernel in :mod:`pyADFEM.core.CPU._geom`, cells ordered with x varying
    fastest.

    Parameters
    ----------
    nx : int
        Number of elements in x-direction
    ny : int
        Number of elements in y-direction
    lx : float
        Physical length of domain in x-direction
    ly : float
        Physical length of domain in y-direction
    colorize : bool, optional
        Tag sides left=0, right=1, bottom=2, top=3 instead of all 0 (default: False)
    dtype : np.dtype, optional
        Data type for arrays (default: np.float64)

    Attributes
    ----------
    nelx, nely : int
        Number of elements in x and y directions (doubled by each refinement)
    dx, dy : float
        Element dimensions
    centroids : ndarray
        Element centroid coordinates, shape (n_cells, 2)

    Examples
    --------
    >>> from pyADFEM.CPU import StructuredMesh2D
    >>> mesh = StructuredMesh2D(nx=8, ny=4, lx=2.0, ly=1.0, colorize=True)
    >>> print(f"Elements: {mesh.n_active_cells}, Vertices: {mesh.n_vertices}")
    """
    def __init__(self, nx, ny, lx, ly, colorize=False, dtype=np.float64):
        self.nelx = nx
        self.nely = ny
        self.lx = lx
        self.ly = ly
        self.nel = np.array([nx, ny], dtype=np.int32)
        self.dim = np.array([lx, ly], dtype=dtype)
        elements, nodes, face_tags = generate_structured_mesh(self.dim, self.nel, colorize=colorize, dtype=dtype)
        super().__init__(nodes, elements, face_tags, dtype=dtype)

    @property
    def dx(self):
        return self.lx / self.nelx

    @property
    def dy(self):
        return self.ly / self.nely

    @property
    def centroids(self):
        return self.cell_vertices().mean(axis=1)

    def refine_global(self, times=1):
        super().refine_global(times)
        self.nelx *= 2 ** times
        self.nely *= 2 ** times
        return self

def hyper_rectangle(p1, p2, colorize=False, dtype=np.float64):
    """
    Single-cell mesh of the rectangle spanned by corners p1 and p2.

    Parameters
    ----------
    p1, p2 : sequence of float
        Opposite corners (lower-left and upper-right)
    colorize : bool, optional
        Tag sides left=0, right=1, bottom=2, top=3 instead of all 0 (default: False)
    """
    (x0, y0), (x1, y1) = p1, p2
    if not (x1 > x0 and y1 > y0):
        raise ValueError("p2 must lie above and to the right of p1.")

    vertices = np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=dtype)
    cells = np.array([[0, 1, 2, 3]], dtype=np.int32)
    if colorize:
        face_tags = np.array([[2, 1, 3, 0]], dtype=np.int32)
    else:
        face_tags = np.zeros((1, 4), dtype=np.int32)
    return QuadMesh(vertices, cells, face_tags, dtype=dtype)

def hyper_cube(lower=0.0, upper=1.0, colorize=False, dtype=np.float64):
    """Single-cell mesh of the square [lower, upper]^2."""
    return hyper_rectangle((lower, lower), (upper, upper), colorize=colorize, dtype=dtype)
