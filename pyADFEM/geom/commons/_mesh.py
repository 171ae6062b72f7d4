class Mesh:
    """
    Base class for finite element meshes.

    Abstract interface for refinable mesh representations. Meshes store vertex
    coordinates, cell connectivity and boundary tags, and own their refinement
    state.

    Notes
    -----
    Subclasses must provide:
    - vertices: Vertex coordinates, shape (n_vertices, 2)
    - cells: Cell connectivity, shape (n_cells, 4)
    - face_tags: Boundary tag per (cell, face), -1 on interior faces
    - n_refinements: Number of global refinements applied so far
    - refine_global(times): Uniform refinement in place
    """
    def refine_global(self, times=1):
        raise NotImplementedError("refine_global method must be implemented in subclasses.")

    def enumerate_elements(self):
        raise NotImplementedError("enumerate_elements method must be implemented in subclasses.")

    def boundary_tag(self, cell, face):
        raise NotImplementedError("boundary_tag method must be implemented in subclasses.")

class StructuredMesh(Mesh):
    """
    Base class for structured (uniform grid) meshes.

    Structured meshes are generated as a tensor grid of equal rectangles. After
    global refinement they stay uniform, with twice as many elements per direction.

    Attributes
    ----------
    nelx, nely : int
        Number of elements per direction
    dx, dy : float
        Element dimensions
    """
    def __init__(self):
        pass
