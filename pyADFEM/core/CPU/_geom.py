import numpy as np
from numba import boolean, int32, njit, prange

@njit(int32[:,:](int32, int32), cache=True, parallel=True)
def generate_elements_2d(nx, ny):
    """
    Generates counter-clockwise quadrilateral connectivity, x varying fastest.
    """
    nel_x, nel_y = nx-1, ny-1
    num_elem = nel_x * nel_y
    elements = np.zeros((num_elem, 4), dtype=np.int32)

    for counter in prange(num_elem):
        i = counter % nel_x
        j = counter // nel_x

        elements[counter, 0] = j * nx + i
        elements[counter, 1] = j * nx + i + 1
        elements[counter, 2] = (j + 1) * nx + i + 1
        elements[counter, 3] = (j + 1) * nx + i

    return elements

@njit(int32[:,:](int32, int32, boolean), cache=True, parallel=True)
def generate_face_tags_2d(nel_x, nel_y, colorize):
    """
    Boundary tags per (element, face) for a structured grid, -1 on interior faces.

    Faces are bottom (0), right (1), top (2), left (3). Without colorize every
    boundary face gets tag 0, otherwise left=0, right=1, bottom=2, top=3.
    """
    num_elem = nel_x * nel_y
    tags = np.full((num_elem, 4), -1, dtype=np.int32)

    bottom, right, top, left = 0, 0, 0, 0
    if colorize:
        bottom, right, top, left = 2, 1, 3, 0

    for counter in prange(num_elem):
        i = counter % nel_x
        j = counter // nel_x

        if j == 0:
            tags[counter, 0] = bottom
        if i == nel_x - 1:
            tags[counter, 1] = right
        if j == nel_y - 1:
            tags[counter, 2] = top
        if i == 0:
            tags[counter, 3] = left

    return tags

@njit(int32[:,:](int32[:,:], int32[:,:], int32[:]), cache=True, parallel=True)
def split_quadrilaterals(cells, edge_midpoints, centers):
    """
    Splits every quadrilateral into four children.

    Child 4*c + k holds corner k of parent c at its own local vertex k, so the
    children are lower-left, lower-right, upper-right, upper-left in that order.
    """
    n_cells = cells.shape[0]
    children = np.zeros((4 * n_cells, 4), dtype=np.int32)

    for c in prange(n_cells):
        v0, v1, v2, v3 = cells[c, 0], cells[c, 1], cells[c, 2], cells[c, 3]
        m0, m1, m2, m3 = edge_midpoints[c, 0], edge_midpoints[c, 1], edge_midpoints[c, 2], edge_midpoints[c, 3]
        ctr = centers[c]

        children[4*c, 0] = v0
        children[4*c, 1] = m0
        children[4*c, 2] = ctr
        children[4*c, 3] = m3

        children[4*c+1, 0] = m0
        children[4*c+1, 1] = v1
        children[4*c+1, 2] = m1
        children[4*c+1, 3] = ctr

        children[4*c+2, 0] = ctr
        children[4*c+2, 1] = m1
        children[4*c+2, 2] = v2
        children[4*c+2, 3] = m2

        children[4*c+3, 0] = m3
        children[4*c+3, 1] = ctr
        children[4*c+3, 2] = m2
        children[4*c+3, 3] = v3

    return children

@njit(int32[:,:](int32[:,:]), cache=True, parallel=True)
def split_face_tags(face_tags):
    """
    Face tags for the children produced by split_quadrilaterals.
    """
    n_cells = face_tags.shape[0]
    out = np.full((4 * n_cells, 4), -1, dtype=np.int32)

    for c in prange(n_cells):
        out[4*c, 0] = face_tags[c, 0]
        out[4*c, 3] = face_tags[c, 3]

        out[4*c+1, 0] = face_tags[c, 0]
        out[4*c+1, 1] = face_tags[c, 1]

        out[4*c+2, 1] = face_tags[c, 1]
        out[4*c+2, 2] = face_tags[c, 2]

        out[4*c+3, 2] = face_tags[c, 2]
        out[4*c+3, 3] = face_tags[c, 3]

    return out

def generate_structured_mesh(dim, nel, colorize=False, dtype=np.float64):
    """
    Wrapper function for structured quadrilateral mesh generation.

    Returns
    -------
    elements : ndarray
        Connectivity, shape (nel[0]*nel[1], 4)
    node_positions : ndarray
        Node coordinates, shape ((nel[0]+1)*(nel[1]+1), 2)
    face_tags : ndarray
        Boundary tag per element face, shape (nel[0]*nel[1], 4)
    """
    if len(dim) != len(nel):
        raise ValueError("Dimensions of dim and nel must match")
    if len(dim) != 2:
        raise ValueError("Only 2D meshes are supported")
    if nel[0] < 1 or nel[1] < 1:
        raise ValueError("At least one element per direction is required")

    nx, ny = nel[0] + 1, nel[1] + 1
    L, H = dim[0], dim[1]

    x = np.linspace(0, L, nx, dtype=dtype)
    y = np.linspace(0, H, ny, dtype=dtype)
    xx, yy = np.meshgrid(x, y)
    node_positions = np.stack([xx.flatten(), yy.flatten()], axis=-1)

    elements = generate_elements_2d(nx, ny)
    face_tags = generate_face_tags_2d(nel[0], nel[1], bool(colorize))

    return elements, node_positions, face_tags
