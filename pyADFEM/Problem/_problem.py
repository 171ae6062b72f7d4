from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import numpy as np


@dataclass
class CycleResult:
    """
    Summary of one refinement cycle.

    Attributes
    ----------
    cycle : int
        Cycle index, starting at 0
    n_active_cells : int
        Number of cells of the mesh in this cycle
    n_dofs : int
        Number of degrees of freedom
    iterations : int
        Linear solver iterations
    converged : bool
        Whether the linear solver reached its tolerance
    residual_norm : float
        Final residual norm of the linear solve
    l2_error : float or None
        L2 error against the exact solution, if one was given
    output_path : Path or None
        Written VTU file, if output is enabled
    solution : ndarray
        Solution vector, shape (n_dofs,)
    """
    cycle: int
    n_active_cells: int
    n_dofs: int
    iterations: int
    converged: bool
    residual_norm: float
    l2_error: Optional[float]
    output_path: Optional[Path]
    solution: np.ndarray


class Problem:
    """Abstract finite element problem driven by a refinement loop.

    Subclasses build the discretization of every cycle, solve it and report
    a :class:`CycleResult` per cycle.
    """
    def __init__(self, *args, **kwargs):
        """Initialize problem state.

        Subclasses may accept a configuration object and physics models.
        """
        pass

    def setup_cycle(self, *args, **kwargs):
        """Prepare mesh and discretization of a cycle."""
        raise NotImplementedError("setup_cycle method must be implemented in subclasses.")

    def run_cycle(self, *args, **kwargs):
        """Run one cycle and return its CycleResult."""
        raise NotImplementedError("run_cycle method must be implemented in subclasses.")

    def run(self, *args, **kwargs):
        """Run all cycles and return their results."""
        raise NotImplementedError("run method must be implemented in subclasses.")

    def is_terminal(self):
        """Return True if the problem is terminal/complete (no further cycles)."""
        return True
