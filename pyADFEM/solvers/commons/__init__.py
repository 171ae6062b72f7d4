from dataclasses import dataclass
from enum import Enum
from typing import Optional
import numpy as np
from ...errors import ConvergenceFailure


class SolverStatus(Enum):
    """Outcome of an iterative solve."""
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    BREAKDOWN = "breakdown"


@dataclass(frozen=True)
class SolverControl:
    """
    Iteration budget and stopping criterion.

    Parameters
    ----------
    max_iterations : int, optional
        Iteration budget (default: 1000)
    tolerance : float, optional
        Tolerance on the residual norm (default: 1e-12)
    relative : bool, optional
        If True (default) the target is ``tolerance * ||r_0||``, otherwise
        ``tolerance`` itself
    absolute_tolerance : float, optional
        Floor for the relative target (default: 0.0)

    Notes
    -----
    A solve is converged once ``||r_k|| <= threshold(||r_0||)``.
    """
    max_iterations: int = 1000
    tolerance: float = 1e-12
    relative: bool = True
    absolute_tolerance: float = 0.0

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")
        if self.tolerance < 0 or self.absolute_tolerance < 0:
            raise ValueError("Tolerances must be non-negative.")

    def threshold(self, initial_residual_norm):
        if self.relative:
            return max(self.tolerance * initial_residual_norm, self.absolute_tolerance)
        return self.tolerance


@dataclass
class SolverResult:
    """
    Outcome of one linear solve.

    Attributes
    ----------
    solution : ndarray
        Final iterate, shape (n_dofs,)
    iterations : int
        Number of iterations performed
    residual_norm : float
        ||b - A x|| of the final iterate
    initial_residual_norm : float
        ||b - A x0||
    status : SolverStatus
        Why the iteration stopped
    """
    solution: np.ndarray
    iterations: int
    residual_norm: float
    initial_residual_norm: float
    status: SolverStatus

    @property
    def converged(self):
        return self.status is SolverStatus.CONVERGED

    def raise_for_status(self, cycle: Optional[int] = None):
        """Raise ConvergenceFailure unless the solve converged; returns self otherwise."""
        if not self.converged:
            raise ConvergenceFailure(self, cycle)
        return self


class Preconditioner:
    """
    Base class for preconditioners.

    A preconditioner is set up once per matrix with ``initialize`` and then
    applied with ``vmult(r)``, returning an approximation of ``A^{-1} r``.

    Methods
    -------
    initialize(matrix)
        Prepare for the given CSR matrix
    vmult(src)
        Apply the preconditioner to a vector
    __call__(src)
        Convenience: preconditioner(src) calls vmult(src)
    """
    def __init__(self):
        pass

    def initialize(self, matrix):
        return self

    def vmult(self, src):
        raise NotImplementedError("vmult method must be implemented in subclasses.")

    def __call__(self, src):
        return self.vmult(src)


class Solver:
    """
    Base class for linear system solvers.

    Abstract interface for solving the assembled systems A @ x = b of the
    refinement loop. Subclasses implement specific Krylov methods.

    Methods
    -------
    solve(A, b, x0=None)
        Solve the linear system, returns a SolverResult
    reset()
        Reset solver state
    __call__(A, b, x0=None)
        Convenience: solver(A, b) calls solve()

    Notes
    -----
    Not reaching the tolerance is reported through ``SolverResult.status``
    and never raised. Callers that want an exception use
    ``result.raise_for_status()``.

    Subclasses must implement solve() method.
    """
    def __init__(self):
        pass

    def __call__(self, *args, **kwargs):
        """Convenience method: solver(A, b) calls solve(A, b)."""
        return self.solve(*args, **kwargs)

    def solve(self, *args, **kwargs):
        """
        Solve linear system A @ x = b.

        Parameters
        ----------
        A : csr_matrix or StiffnessKernel
            System matrix
        b : ndarray
            Right-hand side, shape (n_dofs,)
        x0 : ndarray, optional
            Initial guess (default: zeros)

        Returns
        -------
        SolverResult
            Solution, iteration count, residuals and status

        Raises
        ------
        NotImplementedError
            Must be implemented in subclasses
        """
        raise NotImplementedError("solve method must be implemented in subclasses.")

    def reset(self):
        """
        Reset solver state.

        Clears internal state such as preconditioner setup.
        """
        pass
