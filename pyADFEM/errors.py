"""Exception types raised by pyADFEM.

Three failure classes are distinguished:

- :class:`StructuralError` signals a defect in the discretization pipeline
  (a write outside the sparsity pattern, or local and global DoF counts that
  do not agree). It is never recovered from.
- :class:`ConvergenceFailure` wraps an unsuccessful
  :class:`pyADFEM.solvers.commons.SolverResult` for callers that prefer an
  exception over inspecting ``result.status``.
- :class:`CycleError` carries the refinement cycle and the pipeline component
  in which another error was raised.
"""


class StructuralError(RuntimeError):
    """Assembly or sparsity structure is inconsistent with the DoF layout."""
    pass


class ConvergenceFailure(RuntimeError):
    """
    Iterative solver stopped without reaching its tolerance.

    Parameters
    ----------
    result : SolverResult
        The unsuccessful solver outcome (status, iterations, residuals)
    cycle : int, optional
        Refinement cycle in which the solve was attempted

    Attributes
    ----------
    component : str
        Always "solve", matching :class:`CycleError`
    """
    component = "solve"

    def __init__(self, result, cycle=None):
        self.result = result
        self.cycle = cycle
        where = "" if cycle is None else f"cycle {cycle} failed in {self.component}: "
        super().__init__(
            f"{where}solver did not converge: status={result.status.value}, "
            f"iterations={result.iterations}, residual={result.residual_norm:.3e} "
            f"(initial {result.initial_residual_norm:.3e})"
        )


class CycleError(RuntimeError):
    """
    Fatal error raised while running one refinement cycle.

    Parameters
    ----------
    cycle : int
        Index of the failing cycle
    component : str
        Pipeline stage that failed ("mesh", "dofs", "sparsity", "assembly",
        "boundary", "solve" or "output")
    cause : Exception
        The original exception (also chained as ``__cause__``)
    """
    def __init__(self, cycle, component, cause):
        self.cycle = cycle
        self.component = component
        self.cause = cause
        super().__init__(f"cycle {cycle} failed in {component}: {type(cause).__name__}: {cause}")
