import numpy as np
from ..commons import Solver, SolverControl, SolverResult, SolverStatus, Preconditioner
from ...stiffness.CPU._FEA import StiffnessKernel
from ...core.CPU._ops import ssor_apply
from scipy.sparse import issparse
from scipy.sparse.linalg import gmres as sp_gmres
from scipy.sparse.linalg import aslinearoperator, LinearOperator
import logging
logger = logging.getLogger(__name__)


class PreconditionIdentity(Preconditioner):
    """No preconditioning, z = r."""
    def vmult(self, src):
        return np.array(src, dtype=np.float64, copy=True)


class PreconditionJacobi(Preconditioner):
    """
    Diagonal (Jacobi) preconditioner, z = omega * r / diag(A).

    Parameters
    ----------
    omega : float, optional
        Damping factor (default: 1.0)
    """
    def __init__(self, omega=1.0):
        super().__init__()
        self.omega = omega
        self.diag = None

    def initialize(self, matrix):
        diag = np.asarray(matrix.diagonal(), dtype=np.float64)
        if np.any(diag == 0):
            raise ValueError(f"Jacobi preconditioner requires a nonzero diagonal, zero at rows: {np.where(diag == 0)[0]}")
        self.diag = diag
        return self

    def vmult(self, src):
        if self.diag is None:
            raise ValueError("Preconditioner has not been initialized.")
        return self.omega * src / self.diag


class PreconditionSSOR(Preconditioner):
    """
    Symmetric successive over-relaxation preconditioner.

    One forward and one backward Gauss-Seidel sweep with relaxation ``omega``
    over the CSR rows, run by a numba kernel.

    Parameters
    ----------
    omega : float, optional
        Relaxation factor in (0, 2) (default: 1.2)

    Notes
    -----
    - The matrix is not copied; column indices are sorted in place once
    - A zero diagonal entry raises ValueError on initialize()
    """
    def __init__(self, omega=1.2):
        super().__init__()
        if not 0.0 < omega < 2.0:
            raise ValueError("SSOR relaxation must lie in (0, 2).")
        self.omega = omega
        self.indptr = None
        self.indices = None
        self.data = None
        self.diag = None

    def initialize(self, matrix):
        if not issparse(matrix):
            raise ValueError("SSOR preconditioner requires a scipy sparse matrix.")
        matrix = matrix.tocsr()
        matrix.sort_indices()
        diag = np.asarray(matrix.diagonal(), dtype=np.float64)
        if np.any(diag == 0):
            raise ValueError(f"SSOR preconditioner requires a nonzero diagonal, zero at rows: {np.where(diag == 0)[0]}")

        self.indptr = matrix.indptr.astype(np.int32)
        self.indices = matrix.indices.astype(np.int32)
        self.data = np.ascontiguousarray(matrix.data, dtype=np.float64)
        self.diag = diag
        return self

    def vmult(self, src):
        if self.diag is None:
            raise ValueError("Preconditioner has not been initialized.")
        return ssor_apply(self.indptr, self.indices, self.data, self.diag, np.ascontiguousarray(src, dtype=np.float64), self.omega)


def cg(A, b, x0=None, control=None, M=None):
    """
    Preconditioned conjugate gradients.

    Returns
    -------
    x : ndarray
        Final iterate
    iterations : int
        Iterations performed
    status : SolverStatus
        Why the iteration stopped
    """
    control = SolverControl() if control is None else control
    M = PreconditionIdentity() if M is None else M

    if x0 is None:
        x = np.zeros_like(b)
    else:
        x = np.array(x0, dtype=b.dtype, copy=True)
    r = b - A.matvec(x) if x.any() else b.copy()

    threshold = control.threshold((r*r).sum()**0.5)
    if (r*r).sum()**0.5 <= threshold:
        return x, 0, SolverStatus.CONVERGED

    rho_prev, p = None, None

    for iteration in range(control.max_iterations):
        z = M.vmult(r)
        rho_cur = (r*z).sum()
        if rho_cur == 0:
            return x, iteration, SolverStatus.BREAKDOWN

        if iteration > 0:
            beta = rho_cur / rho_prev
            p *= beta
            p += z
        else:  # First spin
            p = np.empty_like(r)
            p[:] = z[:]

        q = A.matvec(p)
        pq = (p*q).sum()
        if pq == 0:
            return x, iteration, SolverStatus.BREAKDOWN
        alpha = rho_cur / pq
        x += alpha*p
        r -= alpha*q
        rho_prev = rho_cur

        if (r*r).sum()**0.5 <= threshold:
            return x, iteration + 1, SolverStatus.CONVERGED

    return x, control.max_iterations, SolverStatus.MAX_ITERATIONS

def bicgstab(A, b, x0=None, control=None, M=None):
    """
    Right-preconditioned BiCGSTAB.

    Returns
    -------
    x : ndarray
        Final iterate
    iterations : int
        Iterations performed
    status : SolverStatus
        Why the iteration stopped
    """
    control = SolverControl() if control is None else control
    M = PreconditionIdentity() if M is None else M

    rhotol = np.finfo(b.dtype.char).eps**2
    omegatol = rhotol
    matvec = A.matvec

    if x0 is None:
        x = np.zeros_like(b)
    else:
        x = np.array(x0, dtype=b.dtype, copy=True)

    # Dummy values to initialize vars, silence linter warnings
    rho_prev, omega, alpha, p, v = None, None, None, None, None

    r = b - matvec(x) if x.any() else b.copy()
    rtilde = r.copy()

    threshold = control.threshold((r*r).sum()**0.5)
    if (r*r).sum()**0.5 <= threshold:
        return x, 0, SolverStatus.CONVERGED

    for iteration in range(control.max_iterations):
        rho = (rtilde*r).sum()
        if np.abs(rho) < rhotol:  # rho breakdown
            return x, iteration, SolverStatus.BREAKDOWN

        if iteration > 0:
            if np.abs(omega) < omegatol:  # omega breakdown
                return x, iteration, SolverStatus.BREAKDOWN

            beta = (rho / rho_prev) * (alpha / omega)
            p -= omega*v
            p *= beta
            p += r
        else:  # First spin
            s = np.empty_like(r)
            p = r.copy()

        phat = M.vmult(p)
        v = matvec(phat)
        rv = (rtilde*v).sum()
        if rv == 0:
            return x, iteration, SolverStatus.BREAKDOWN
        alpha = rho / rv
        r -= alpha*v
        s[:] = r[:]

        if (s*s).sum()**0.5 <= threshold:
            x += alpha*phat
            return x, iteration + 1, SolverStatus.CONVERGED

        shat = M.vmult(s)
        t = matvec(shat)
        tt = (t*t).sum()
        if tt == 0:
            return x, iteration, SolverStatus.BREAKDOWN
        omega = (t*s).sum() / tt
        x += alpha*phat
        x += omega*shat
        r -= omega*t
        rho_prev = rho

        if (r*r).sum()**0.5 <= threshold:
            return x, iteration + 1, SolverStatus.CONVERGED

    return x, control.max_iterations, SolverStatus.MAX_ITERATIONS

def gmres(A, b, x0=None, control=None, M=None, restart=30):
    """
    Restarted GMRES through scipy, with the iteration budget counted in inner steps.

    Returns
    -------
    x : ndarray
        Final iterate
    iterations : int
        Inner iterations performed
    status : SolverStatus
        Why the iteration stopped
    """
    control = SolverControl() if control is None else control
    M = PreconditionIdentity() if M is None else M

    if x0 is None:
        x = np.zeros_like(b)
    else:
        x = np.array(x0, dtype=b.dtype, copy=True)
    r = b - A.matvec(x) if x.any() else b.copy()

    threshold = control.threshold((r*r).sum()**0.5)
    if (r*r).sum()**0.5 <= threshold:
        return x, 0, SolverStatus.CONVERGED

    n = b.shape[0]
    M_op = LinearOperator((n, n), matvec=M.vmult, dtype=b.dtype)
    counter = [0]

    def count(pr_norm):
        counter[0] += 1

    restart = min(restart, control.max_iterations)
    maxiter = int(np.ceil(control.max_iterations / restart))
    x, info = sp_gmres(A, b, x0=x, rtol=0.0, atol=threshold, restart=restart, maxiter=maxiter,
                       M=M_op, callback=count, callback_type='pr_norm')

    if info == 0:
        status = SolverStatus.CONVERGED
    elif info > 0:
        status = SolverStatus.MAX_ITERATIONS
    else:
        status = SolverStatus.BREAKDOWN
    return x, min(counter[0], control.max_iterations), status


class _KrylovSolver(Solver):
    """
    Common driver for the iterative solvers.

    Parameters
    ----------
    control : SolverControl, optional
        Iteration budget and tolerance (default: SolverControl())
    preconditioner : Preconditioner, optional
        Preconditioner, initialized on every solve (default: identity)
    """
    _method = None

    def __init__(self, control=None, preconditioner=None):
        super().__init__()
        self.control = SolverControl() if control is None else control
        self.preconditioner = PreconditionIdentity() if preconditioner is None else preconditioner

    def solve(self, A, b, x0=None):
        if isinstance(A, StiffnessKernel):
            A = A.construct()
        b = np.asarray(b, dtype=np.float64)
        if A.shape[0] != A.shape[1] or A.shape[0] != b.shape[0]:
            raise ValueError(f"Matrix of shape {A.shape} does not match right-hand side of length {b.shape[0]}.")
        if x0 is not None and np.shape(x0) != b.shape:
            raise ValueError("Initial guess must have the same shape as the right-hand side.")

        self.preconditioner.initialize(A)
        op = aslinearoperator(A)

        r = b - op.matvec(x0) if x0 is not None else b
        initial = float((r*r).sum()**0.5)

        x, iterations, status = self._method(op, b, x0=x0, control=self.control, M=self.preconditioner)

        r = b - op.matvec(x)
        residual = float((r*r).sum()**0.5)
        logger.debug("%s: %s after %d iterations, residual %.3e (initial %.3e)",
                     type(self).__name__, status.value, iterations, residual, initial)

        return SolverResult(x, iterations, residual, initial, status)


class CG(_KrylovSolver):
    """
    Preconditioned Conjugate Gradient solver.

    Krylov solver for symmetric positive definite systems. On non-symmetric
    systems (advection present) it still runs, treating advection as a small
    perturbation, but convergence is not guaranteed.

    Parameters
    ----------
    control : SolverControl, optional
        Iteration budget and tolerance (default: SolverControl())
    preconditioner : Preconditioner, optional
        Preconditioner (default: identity)

    Methods
    -------
    solve(A, b, x0=None)
        Solve A @ x = b, returns a SolverResult

    Examples
    --------
    >>> solver = CG(SolverControl(1000, 1e-12), PreconditionSSOR(1.2))
    >>> result = solver.solve(system.matrix, system.rhs)
    >>> print(result.status, result.iterations)
    """
    _method = staticmethod(cg)


class BiCGSTAB(_KrylovSolver):
    """
    Preconditioned BiCGSTAB solver.

    Krylov solver for general non-symmetric systems such as advection-dominated
    problems. Breakdown (vanishing rho or omega) is reported as
    ``SolverStatus.BREAKDOWN``.

    Examples
    --------
    >>> solver = BiCGSTAB(SolverControl(1000, 1e-12), PreconditionSSOR(1.2))
    >>> result = solver.solve(system.matrix, system.rhs)
    """
    _method = staticmethod(bicgstab)


class GMRES(_KrylovSolver):
    """
    Restarted GMRES (restart 30) through scipy.sparse.linalg.gmres.

    The preconditioner is applied on the left. ``iterations`` counts inner
    Arnoldi steps.
    """
    _method = staticmethod(gmres)


SOLVERS = {
    "cg": CG,
    "bicgstab": BiCGSTAB,
    "gmres": GMRES,
}

PRECONDITIONERS = {
    "identity": PreconditionIdentity,
    "jacobi": PreconditionJacobi,
    "ssor": PreconditionSSOR,
}

def make_preconditioner(name="ssor", relaxation=None):
    name = name.lower()
    if name not in PRECONDITIONERS:
        raise ValueError(f"Unknown preconditioner '{name}', expected one of {sorted(PRECONDITIONERS)}.")
    if name == "identity" or relaxation is None:
        return PRECONDITIONERS[name]()
    return PRECONDITIONERS[name](relaxation)

def make_solver(method="auto", control=None, preconditioner=None, symmetric=True):
    """
    Build a solver by name.

    Parameters
    ----------
    method : str, optional
        "cg", "bicgstab", "gmres" or "auto" (default). "auto" picks CG for
        symmetric systems and BiCGSTAB otherwise
    control : SolverControl, optional
        Iteration budget and tolerance
    preconditioner : Preconditioner, optional
        Preconditioner (default: identity)
    symmetric : bool, optional
        Whether the system is symmetric (default: True)

    Returns
    -------
    Solver
    """
    method = method.lower()
    if method == "auto":
        method = "cg" if symmetric else "bicgstab"
    elif method not in SOLVERS:
        raise ValueError(f"Unknown solver '{method}', expected one of {sorted(SOLVERS)} or 'auto'.")
    elif method == "cg" and not symmetric:
        logger.warning("CG selected for a non-symmetric system; advection treated as a perturbation, convergence is not guaranteed.")

    return SOLVERS[method](control=control, preconditioner=preconditioner)
