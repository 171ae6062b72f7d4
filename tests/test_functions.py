"""Coefficient functions and the advection-diffusion physics model."""
import pytest

import numpy as np

from pyADFEM.Physics import (
    AdvectionDiffusion,
    CallableFunction,
    ConstantFunction,
    VectorConstantFunction,
    as_function,
)


def test_constant_function_shape():
    f = ConstantFunction(2.5)
    points = np.zeros((3, 4, 2))
    values = f(points)
    assert values.shape == (3, 4)
    assert np.all(values == 2.5)


def test_vector_constant_function():
    beta = VectorConstantFunction((1.0, -2.0))
    values = beta(np.zeros((5, 2)))
    assert values.shape == (5, 2)
    assert values[:, 1] == pytest.approx(-2.0)


def test_vector_constant_needs_two_components():
    with pytest.raises(ValueError):
        VectorConstantFunction((1.0, 2.0, 3.0))


def test_callable_function_scalar_and_vector():
    points = np.array([[0.0, 1.0], [2.0, 3.0]])
    u = CallableFunction(lambda x, y: x + 2 * y)
    assert u(points) == pytest.approx([2.0, 8.0])

    beta = CallableFunction(lambda x, y: (-y, x), rank=1)
    assert beta(points) == pytest.approx(np.array([[-1.0, 0.0], [-3.0, 2.0]]))

    # constant callables broadcast to the point shape
    c = CallableFunction(lambda x, y: 1.0)
    assert c(points).shape == (2,)


def test_as_function_rank_mismatch():
    with pytest.raises(ValueError):
        as_function(VectorConstantFunction((1.0, 0.0)), rank=0)
    assert isinstance(as_function(3.0), ConstantFunction)
    assert isinstance(as_function((0.0, 1.0), rank=1), VectorConstantFunction)


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({}, False),
        ({"advection": 0.0}, True),
        ({"direction": (0.0, 0.0)}, True),
        ({"advection": lambda x, y: 0.0 * x}, False),
    ],
)
def test_is_symmetric(kwargs, expected):
    assert AdvectionDiffusion(**kwargs).is_symmetric is expected


def test_coefficients_at_points():
    physics = AdvectionDiffusion(diffusion=lambda x, y: 1.0 + x, advection=2.0, direction=(0.0, 1.0))
    nu, a, beta = physics.coefficients(np.array([[0.5, 0.25]]))
    assert nu == pytest.approx([1.5])
    assert a == pytest.approx([2.0])
    assert beta == pytest.approx(np.array([[0.0, 1.0]]))
