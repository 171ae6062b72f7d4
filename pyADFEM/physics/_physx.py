class Physx:
    """
    Base class for physics models in pyADFEM.

    Abstract interface defining methods all physics implementations must provide.
    Physics models turn basis evaluations on a batch of cells into element-level
    quantities (local matrices, local load vectors, cell areas).

    Methods
    -------
    coefficients(points)
        Evaluate the PDE coefficients at physical points
    K(fe_values)
        Compute local system matrices from basis evaluations
    F(fe_values)
        Compute local right-hand side vectors from basis evaluations
    volume(fe_values)
        Compute cell areas from integration weights

    Notes
    -----
    All methods accepting ``fe_values`` expect an initialized
    :class:`pyADFEM.FiniteElement.CPU._basis.FEValues`, batched over cells:
    local matrices have shape (n_cells, n_local, n_local) and local vectors
    (n_cells, n_local).

    Subclasses must implement all abstract methods.

    Examples
    --------
    >>> from pyADFEM.Physics import AdvectionDiffusion
    >>> physics = AdvectionDiffusion(diffusion=1.0, advection=1.0, direction=(1, 0))
    >>> Ks = physics.K(fe_values)  # Shape: (n_cells, n_local, n_local)
    """
    def __init__(self):
        pass

    def coefficients(self, points):
        raise NotImplementedError("coefficients method must be implemented in subclasses.")

    def K(self, fe_values):
        raise NotImplementedError("K method must be implemented in subclasses.")

    def F(self, fe_values):
        raise NotImplementedError("F method must be implemented in subclasses.")

    def volume(self, fe_values):
        return fe_values.JxW.sum(axis=1)
