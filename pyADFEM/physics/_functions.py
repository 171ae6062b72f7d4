import numpy as np


class Function:
    """
    Spatial function evaluated at batches of points.

    A Function is the single capability coefficient models and boundary data
    need: ``value(points)`` maps an array of 2D points to scalar (rank 0) or
    vector (rank 1) values.

    Attributes
    ----------
    rank : int
        0 for scalar valued, 1 for 2D vector valued functions
    is_constant : bool
        True when the value does not depend on position

    Notes
    -----
    ``points`` has shape (..., 2). Scalar results have shape ``points.shape[:-1]``,
    vector results ``points.shape[:-1] + (2,)``.
    """
    rank = 0
    is_constant = False

    def value(self, points):
        raise NotImplementedError("value method must be implemented in subclasses.")

    def __call__(self, points):
        return self.value(points)


class ConstantFunction(Function):
    """Scalar function with the same value everywhere."""
    is_constant = True

    def __init__(self, constant):
        self.constant = float(constant)

    def value(self, points):
        points = np.asarray(points, dtype=np.float64)
        return np.full(points.shape[:-1], self.constant, dtype=np.float64)

    def __repr__(self):
        return f"ConstantFunction({self.constant})"


class VectorConstantFunction(Function):
    """2D vector field with the same value everywhere."""
    rank = 1
    is_constant = True

    def __init__(self, constant):
        constant = np.asarray(constant, dtype=np.float64)
        if constant.shape != (2,):
            raise ValueError("Vector constant must have exactly two components.")
        self.constant = constant

    def value(self, points):
        points = np.asarray(points, dtype=np.float64)
        return np.broadcast_to(self.constant, points.shape[:-1] + (2,)).copy()

    def __repr__(self):
        return f"VectorConstantFunction({self.constant.tolist()})"


class CallableFunction(Function):
    """
    Function defined by a Python callable ``fn(x, y)``.

    Parameters
    ----------
    fn : callable
        Vectorized callable taking coordinate arrays x and y. For rank 0 it
        returns an array (or scalar) broadcastable to x. For rank 1 it returns
        a pair (fx, fy).
    rank : int, optional
        0 (default) for scalar, 1 for vector valued callables

    Examples
    --------
    >>> u = CallableFunction(lambda x, y: np.sin(np.pi * x) * np.sin(np.pi * y))
    >>> beta = CallableFunction(lambda x, y: (-y, x), rank=1)
    """
    def __init__(self, fn, rank=0):
        if rank not in (0, 1):
            raise ValueError("rank must be 0 or 1.")
        self.fn = fn
        self.rank = rank

    def value(self, points):
        points = np.asarray(points, dtype=np.float64)
        x = points[..., 0]
        y = points[..., 1]
        out = self.fn(x, y)
        if self.rank == 0:
            return np.broadcast_to(np.asarray(out, dtype=np.float64), x.shape).copy()

        if len(out) != 2:
            raise ValueError("Vector valued callables must return two components.")
        fx, fy = np.broadcast_arrays(np.asarray(out[0], dtype=np.float64), np.asarray(out[1], dtype=np.float64), x)[:2]
        return np.stack([fx, fy], axis=-1)


def as_function(obj, rank=0):
    """
    Coerce a number, 2-sequence, callable or Function into a Function.

    Parameters
    ----------
    obj : float, sequence, callable or Function
        Value to wrap
    rank : int, optional
        Expected rank of the result (0 scalar, 1 vector)

    Returns
    -------
    Function
    """
    if isinstance(obj, Function):
        if obj.rank != rank:
            raise ValueError(f"Expected a rank {rank} function, got rank {obj.rank}.")
        return obj
    if callable(obj):
        return CallableFunction(obj, rank=rank)
    if rank == 0:
        return ConstantFunction(obj)
    return VectorConstantFunction(obj)
