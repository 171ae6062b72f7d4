from ._physx import Physx
from ._functions import as_function
import numpy as np


class AdvectionDiffusion(Physx):
    """
    Stationary advection-diffusion physics.

    Discretizes the weak form

        ∫ ν ∇v·∇u − a (∇v·β) u + ν (∂v/∂x)(∂u/∂x) dx = ∫ v f dx

    where ν is the diffusion coefficient, a the advection coefficient, β the
    advection direction and f the forcing. The last term on the left is a
    stabilization built from the x-component of the gradient (the "divergence"
    scalar of :class:`FEValues`).

    Parameters
    ----------
    diffusion : float, callable or Function, optional
        Diffusion coefficient ν (default: 1.0)
    advection : float, callable or Function, optional
        Advection coefficient a (default: 1.0)
    direction : sequence, callable or Function, optional
        Advection direction β (default: (1, 0))
    forcing : float, callable or Function, optional
        Right-hand side f (default: 1.0)

    Attributes
    ----------
    diffusion, advection, forcing : Function
        Scalar coefficient functions
    direction : Function
        Vector valued direction function
    is_symmetric : bool
        True when the advection term vanishes identically

    Notes
    -----
    - Coefficients are evaluated at every quadrature point, so spatially varying
      coefficients only require passing callables
    - Local matrix rows are test functions (i), columns trial functions (j)
    - All cells are processed as one batch with einsum

    Examples
    --------
    >>> from pyADFEM.Physics import AdvectionDiffusion
    >>> physics = AdvectionDiffusion(diffusion=1.0, advection=1.0, direction=(1.0, 0.0))
    >>> nu, a, beta = physics.coefficients(np.array([[0.5, 0.5]]))
    """
    def __init__(self, diffusion=1.0, advection=1.0, direction=(1.0, 0.0), forcing=1.0):
        super().__init__()
        self.diffusion = as_function(diffusion)
        self.advection = as_function(advection)
        self.direction = as_function(direction, rank=1)
        self.forcing = as_function(forcing)

    @property
    def is_symmetric(self):
        if self.advection.is_constant and self.advection.constant == 0.0:
            return True
        if self.direction.is_constant and not np.any(self.direction.constant):
            return True
        return False

    def coefficients(self, points):
        """Return (ν, a, β) evaluated at ``points`` of shape (..., 2)."""
        return self.diffusion.value(points), self.advection.value(points), self.direction.value(points)

    def K(self, fe_values):
        nu, a, beta = self.coefficients(fe_values.quadrature_points)
        grads = fe_values.shape_grads
        div = fe_values.shape_divergence
        phi = fe_values.shape_values
        JxW = fe_values.JxW

        diffusion = np.einsum('cq,cqid,cqjd->cij', nu * JxW, grads, grads)
        advection = np.einsum('cq,cqid,cqd,qj->cij', a * JxW, grads, beta, phi)
        stabilization = np.einsum('cq,cqi,cqj->cij', nu * JxW, div, div)

        return diffusion - advection + stabilization

    def F(self, fe_values):
        f = self.forcing.value(fe_values.quadrature_points)
        return np.einsum('qi,cq->ci', fe_values.shape_values, f * fe_values.JxW)
