from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union
import numpy as np

Coefficient = Union[float, Callable]


@dataclass(frozen=True)
class SolverSettings:
    """
    Linear solver selection for every cycle.

    Parameters
    ----------
    method : str, optional
        "auto" (default), "cg", "bicgstab" or "gmres". "auto" uses CG for
        symmetric physics and BiCGSTAB otherwise
    preconditioner : str, optional
        "ssor" (default), "jacobi" or "identity"
    relaxation : float, optional
        Relaxation factor of the preconditioner (default: 1.2)
    max_iterations : int, optional
        Iteration budget (default: 1000)
    tolerance : float, optional
        Relative residual reduction (default: 1e-12)
    absolute_tolerance : float, optional
        Absolute floor of the stopping threshold (default: 0.0)
    """
    method: str = "auto"
    preconditioner: str = "ssor"
    relaxation: float = 1.2
    max_iterations: int = 1000
    tolerance: float = 1e-12
    absolute_tolerance: float = 0.0

    def __post_init__(self):
        if self.method.lower() not in ("auto", "cg", "bicgstab", "gmres"):
            raise ValueError(f"Unknown solver method '{self.method}'.")
        if self.preconditioner.lower() not in ("ssor", "jacobi", "identity"):
            raise ValueError(f"Unknown preconditioner '{self.preconditioner}'.")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")
        if self.tolerance < 0 or self.absolute_tolerance < 0:
            raise ValueError("Tolerances must be non-negative.")


@dataclass(frozen=True)
class ProblemConfig:
    """
    Parameters of the adaptive advection-diffusion scenario.

    Parameters
    ----------
    degree : int, optional
        Polynomial degree of FE_Q (default: 1)
    n_cycles : int, optional
        Number of refinement cycles (default: 3)
    initial_refinements : int, optional
        Uniform refinements of the unit square before cycle 0 (default: 2)
    lower, upper : float, optional
        Domain [lower, upper]^2 (default: [0, 1]^2)
    diffusion, advection, forcing : float or callable, optional
        ν, a and f; callables take (x, y) (defaults: 1.0)
    direction : sequence or callable, optional
        β (default: (1, 0))
    boundary_tag : int, optional
        Tag of the Dirichlet boundary (default: 0, the whole boundary)
    boundary_value : float or callable, optional
        g on the Dirichlet boundary (default: 0.0)
    exact_solution : callable, optional
        If given, the L2 error is computed every cycle
    solver : SolverSettings, optional
        Linear solver settings
    output_dir : str or Path, optional
        Directory for VTU files; None disables output (default)
    output_prefix : str, optional
        File name prefix (default: "solution" -> solution-00.vtu)
    transfer_solution : bool, optional
        Use the prolongated previous solution as initial guess (default: False)
    abort_on_failure : bool, optional
        Raise ConvergenceFailure when a solve does not converge (default: True)
    """
    degree: int = 1
    n_cycles: int = 3
    initial_refinements: int = 2
    lower: float = 0.0
    upper: float = 1.0
    diffusion: Coefficient = 1.0
    advection: Coefficient = 1.0
    direction: Union[Sequence[float], Callable] = (1.0, 0.0)
    forcing: Coefficient = 1.0
    boundary_tag: int = 0
    boundary_value: Coefficient = 0.0
    exact_solution: Optional[Callable] = None
    solver: SolverSettings = field(default_factory=SolverSettings)
    output_dir: Optional[str] = None
    output_prefix: str = "solution"
    transfer_solution: bool = False
    abort_on_failure: bool = True

    def __post_init__(self):
        if int(self.degree) != self.degree or self.degree < 1:
            raise ValueError("degree must be an integer >= 1.")
        if self.n_cycles < 1:
            raise ValueError("n_cycles must be at least 1.")
        if self.initial_refinements < 0:
            raise ValueError("initial_refinements must be non-negative.")
        if not self.upper > self.lower:
            raise ValueError("upper must be greater than lower.")
        if not callable(self.direction) and np.shape(self.direction) != (2,):
            raise ValueError("direction must have two components.")
