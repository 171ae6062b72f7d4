import numpy as np

# reference corners of the bilinear map, counter-clockwise from (-1, -1)
REFERENCE_CORNERS = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])


def lagrange_1d(nodes, x):
    """
    Evaluate the 1D Lagrange polynomials through ``nodes`` and their derivatives.

    Parameters
    ----------
    nodes : ndarray
        Interpolation nodes, shape (n,)
    x : ndarray
        Evaluation points, shape (m,)

    Returns
    -------
    values : ndarray
        L_k(x_i), shape (m, n)
    derivatives : ndarray
        L_k'(x_i), shape (m, n)
    """
    nodes = np.asarray(nodes, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    n = nodes.shape[0]

    values = np.ones((x.shape[0], n))
    derivatives = np.zeros((x.shape[0], n))

    for k in range(n):
        others = np.delete(nodes, k)
        denom = np.prod(nodes[k] - others)
        diffs = x[:, None] - others[None, :]
        values[:, k] = np.prod(diffs, axis=1) / denom
        for m in range(n - 1):
            derivatives[:, k] += np.prod(np.delete(diffs, m, axis=1), axis=1)
        derivatives[:, k] /= denom

    return values, derivatives


def bilinear_shape(ref_points):
    """Bilinear geometry shape functions and their reference gradients at ``ref_points``."""
    ref_points = np.asarray(ref_points, dtype=np.float64)
    r = ref_points[:, 0]
    s = ref_points[:, 1]

    N = np.stack([
        (1 - r) * (1 - s), (1 + r) * (1 - s), (1 + r) * (1 + s), (1 - r) * (1 + s)
    ], axis=-1) * 0.25

    dNdr = np.stack([
        -(1 - s), (1 - s), (1 + s), -(1 + s)
    ], axis=-1) * 0.25

    dNds = np.stack([
        -(1 - r), -(1 + r), (1 + r), (1 - r)
    ], axis=-1) * 0.25

    return N, np.stack([dNdr, dNds], axis=-1)


def bilinear_map(x0s, ref_points):
    """
    Map reference points into every cell.

    Parameters
    ----------
    x0s : ndarray
        Cell corners, shape (n_cells, 4, 2)
    ref_points : ndarray
        Points in [-1, 1]^2, shape (n_points, 2)

    Returns
    -------
    ndarray
        Physical points, shape (n_cells, n_points, 2)
    """
    N, _ = bilinear_shape(ref_points)
    return np.einsum('pv,cvd->cpd', N, x0s)


class FE_Q:
    """
    Continuous tensor-product Lagrange element of degree p on quadrilaterals.

    Parameters
    ----------
    degree : int
        Polynomial degree per direction (p >= 1)

    Attributes
    ----------
    degree : int
        Polynomial degree
    dofs_per_cell : int
        Number of local basis functions, (p+1)^2
    nodes_1d : ndarray
        Equidistant 1D support points on [-1, 1]
    support_points : ndarray
        Reference support points, shape (dofs_per_cell, 2)
    vertex_dofs : ndarray
        Local indices of the basis functions at the four corners

    Notes
    -----
    - Local index of the support point (ix, iy) is iy*(p+1) + ix (x fastest)
    - Corners are local 0, p, (p+1)^2-1 and p(p+1), matching cell vertices 0..3
    - Each basis function is 1 at its own support point and 0 at all others

    Examples
    --------
    >>> fe = FE_Q(2)
    >>> fe.dofs_per_cell
    9
    >>> phi = fe.shape_values(np.array([[0.0, 0.0]]))  # Shape: (1, 9)
    """
    def __init__(self, degree):
        if int(degree) != degree or degree < 1:
            raise ValueError("FE_Q requires an integer degree >= 1.")
        self.degree = int(degree)
        self.n_1d = self.degree + 1
        self.dofs_per_cell = self.n_1d ** 2
        self.nodes_1d = np.linspace(-1.0, 1.0, self.n_1d)

        self.support_points = np.stack([
            np.tile(self.nodes_1d, self.n_1d),
            np.repeat(self.nodes_1d, self.n_1d),
        ], axis=-1)

        p = self.degree
        self.vertex_dofs = np.array([0, p, self.dofs_per_cell - 1, p * self.n_1d], dtype=np.int32)

    def __repr__(self):
        return f"FE_Q({self.degree})"

    def local_index(self, ix, iy):
        return iy * self.n_1d + ix

    def face_dofs(self, face):
        """Local indices of basis functions on ``face`` (0 bottom, 1 right, 2 top, 3 left)."""
        idx = np.arange(self.n_1d)
        p = self.degree
        if face == 0:
            return self.local_index(idx, 0)
        elif face == 1:
            return self.local_index(p, idx)
        elif face == 2:
            return self.local_index(idx, p)
        elif face == 3:
            return self.local_index(0, idx)
        raise ValueError("face must be one of 0, 1, 2, 3.")

    def shape_values(self, ref_points):
        """Basis values at reference points, shape (n_points, dofs_per_cell)."""
        ref_points = np.atleast_2d(ref_points)
        vx, _ = lagrange_1d(self.nodes_1d, ref_points[:, 0])
        vy, _ = lagrange_1d(self.nodes_1d, ref_points[:, 1])
        return (vy[:, :, None] * vx[:, None, :]).reshape(ref_points.shape[0], -1)

    def shape_grads(self, ref_points):
        """Reference gradients at reference points, shape (n_points, dofs_per_cell, 2)."""
        ref_points = np.atleast_2d(ref_points)
        vx, dx = lagrange_1d(self.nodes_1d, ref_points[:, 0])
        vy, dy = lagrange_1d(self.nodes_1d, ref_points[:, 1])
        n = ref_points.shape[0]
        gx = (vy[:, :, None] * dx[:, None, :]).reshape(n, -1)
        gy = (dy[:, :, None] * vx[:, None, :]).reshape(n, -1)
        return np.stack([gx, gy], axis=-1)

    def embedding_matrices(self):
        """
        Interpolation from a parent cell onto its four children.

        Returns
        -------
        ndarray
            Shape (4, dofs_per_cell, dofs_per_cell). Row i of matrix k holds the
            parent basis evaluated at support point i of child k, so
            ``E[k] @ parent_values`` are the child's nodal values.
        """
        E = np.zeros((4, self.dofs_per_cell, self.dofs_per_cell))
        for k in range(4):
            parent_points = 0.5 * self.support_points + 0.5 * REFERENCE_CORNERS[k]
            E[k] = self.shape_values(parent_points)
        return E


class QGauss:
    """
    Tensor-product Gauss-Legendre quadrature on [-1, 1]^2.

    Parameters
    ----------
    n : int
        Number of points per direction; integrates polynomials of degree
        2n-1 per direction exactly

    Attributes
    ----------
    points : ndarray
        Quadrature points, shape (n^2, 2), x varying fastest
    weights : ndarray
        Quadrature weights, shape (n^2,)
    """
    def __init__(self, n):
        if n < 1:
            raise ValueError("QGauss needs at least one point per direction.")
        self.n = int(n)
        g, w = np.polynomial.legendre.leggauss(self.n)
        self.points = np.stack([np.tile(g, self.n), np.repeat(g, self.n)], axis=-1)
        self.weights = np.repeat(w, self.n) * np.tile(w, self.n)

    def __len__(self):
        return self.points.shape[0]


class FEValues:
    """
    Basis evaluation on physical cells, batched over cells.

    Given an element and a quadrature rule, ``reinit`` maps the reference
    evaluations through the bilinear geometry of each cell.

    Parameters
    ----------
    fe : FE_Q
        Finite element
    quadrature : QGauss, optional
        Quadrature rule (default: QGauss(fe.degree + 1))

    Attributes
    ----------
    shape_values : ndarray
        φ_i at quadrature points, shape (n_q, n_local) (same on every cell)
    shape_grads : ndarray
        Physical gradients ∇φ_i, shape (n_cells, n_q, n_local, 2)
    shape_divergence : ndarray
        Stabilization scalar ∂φ_i/∂x, shape (n_cells, n_q, n_local)
    quadrature_points : ndarray
        Physical quadrature points, shape (n_cells, n_q, 2)
    JxW : ndarray
        Jacobian determinant times weight, shape (n_cells, n_q)

    Notes
    -----
    A non-positive Jacobian determinant means a clockwise or degenerate cell
    and raises ValueError.

    Examples
    --------
    >>> fe_values = FEValues(FE_Q(1), QGauss(2)).reinit(mesh.cell_vertices())
    >>> area = fe_values.JxW.sum()
    """
    def __init__(self, fe, quadrature=None):
        self.fe = fe
        self.quadrature = QGauss(fe.degree + 1) if quadrature is None else quadrature
        self.shape_values = fe.shape_values(self.quadrature.points)
        self._ref_grads = fe.shape_grads(self.quadrature.points)
        self._mapping_values, self._mapping_grads = bilinear_shape(self.quadrature.points)

        self.n_cells = 0
        self.shape_grads = None
        self.shape_divergence = None
        self.quadrature_points = None
        self.JxW = None

    @property
    def n_quadrature_points(self):
        return self.quadrature.points.shape[0]

    def reinit(self, x0s):
        """
        Evaluate on cells with corner coordinates ``x0s``.

        Parameters
        ----------
        x0s : ndarray
            Corners, shape (n_cells, 4, 2) or (4, 2) for a single cell

        Returns
        -------
        FEValues
            self, for chaining
        """
        x0s = np.asarray(x0s, dtype=np.float64)
        if x0s.ndim == 2:
            x0s = x0s[np.newaxis, ...]
        if x0s.shape[1:] != (4, 2):
            raise ValueError("Invalid input shape")

        self.n_cells = x0s.shape[0]
        self.quadrature_points = np.einsum('qv,cvd->cqd', self._mapping_values, x0s)

        # J[c, q, d, r] = dx_d / dxi_r
        J = np.einsum('cvd,qvr->cqdr', x0s, self._mapping_grads)
        det = J[..., 0, 0] * J[..., 1, 1] - J[..., 0, 1] * J[..., 1, 0]

        if np.any(det <= 0):
            negative_indices = np.unique(np.where(det <= 0)[0])
            raise ValueError(f"Node Order Is Not Correct for elements: {negative_indices}")

        inv = np.empty_like(J)
        inv[..., 0, 0] = J[..., 1, 1] / det
        inv[..., 0, 1] = -J[..., 0, 1] / det
        inv[..., 1, 0] = -J[..., 1, 0] / det
        inv[..., 1, 1] = J[..., 0, 0] / det

        self.shape_grads = np.einsum('qir,cqrd->cqid', self._ref_grads, inv)
        self.shape_divergence = self.shape_grads[..., 0]
        self.JxW = det * self.quadrature.weights[np.newaxis, :]

        return self
