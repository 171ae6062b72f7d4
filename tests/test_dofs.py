"""DoF numbering, interpolation, evaluation and solution transfer."""
import pytest

import numpy as np

from pyADFEM.CPU import DoFHandler, FE_Q, hyper_cube
from pyADFEM.FiniteElement.CPU._basis import bilinear_map
from pyADFEM.errors import StructuralError

from conftest import make_handler


@pytest.mark.parametrize("degree, refinements", [(1, 0), (1, 2), (2, 2), (3, 1), (4, 1)])
def test_dof_count(degree, refinements):
    handler = make_handler(degree, refinements)
    n = 2 ** refinements
    assert handler.n_dofs == (degree * n + 1) ** 2
    assert handler.cell_dofs.shape == (n * n, (degree + 1) ** 2)
    assert handler.cell_dofs.dtype == np.int32
    assert handler.cell_dofs.min() == 0
    assert handler.cell_dofs.max() == handler.n_dofs - 1
    assert np.unique(handler.cell_dofs).shape[0] == handler.n_dofs


def test_q1_dofs_are_vertices(q1_handler):
    assert q1_handler.n_dofs == q1_handler.mesh.n_vertices
    # local DoFs are lexicographic, mesh cells are counter-clockwise
    assert np.array_equal(q1_handler.cell_dofs[:, q1_handler.fe.vertex_dofs], q1_handler.mesh.cells)
    assert q1_handler.support_points == pytest.approx(q1_handler.mesh.vertices)


@pytest.mark.parametrize("degree", [2, 3])
def test_shared_dofs_sit_at_one_point(degree):
    handler = make_handler(degree, 2)
    # every cell sees its DoFs where the global support points are
    expected = bilinear_map(handler.mesh.cell_vertices(), handler.fe.support_points)
    assert handler.support_points[handler.cell_dofs] == pytest.approx(expected)
    # and no two DoFs share a location
    rounded = np.round(handler.support_points, 10)
    assert np.unique(rounded, axis=0).shape[0] == handler.n_dofs


def test_generation_follows_the_mesh():
    mesh = hyper_cube().refine_global(1)
    handler = DoFHandler(mesh, FE_Q(1)).distribute_dofs()
    assert handler.generation == 1


@pytest.mark.parametrize("degree, expected", [(1, 16), (2, 32), (3, 48)])
def test_boundary_dofs(degree, expected):
    handler = make_handler(degree, 2)
    dofs = handler.boundary_dofs()
    assert dofs.shape[0] == expected
    points = handler.support_points[dofs]
    on_boundary = np.isclose(points, 0.0) | np.isclose(points, 1.0)
    assert np.all(on_boundary.any(axis=1))


def test_boundary_values_for_missing_tag(q1_handler):
    assert q1_handler.interpolate_boundary_values(7, 1.0) == {}


def test_interpolate_boundary_values(q2_handler):
    values = q2_handler.interpolate_boundary_values(0, lambda x, y: x + y)
    dofs = np.array(sorted(values))
    assert np.array_equal(dofs, q2_handler.boundary_dofs(0))
    points = q2_handler.support_points[dofs]
    assert np.array([values[d] for d in dofs]) == pytest.approx(points.sum(axis=1))


def test_evaluate_reproduces_linear_field(q1_handler):
    u = q1_handler.interpolate(lambda x, y: x + 2 * y)
    np.random.seed(1)
    ref_points = np.random.uniform(-1, 1, size=(6, 2))
    values, points = q1_handler.evaluate(u, ref_points)
    assert values.shape == (16, 6)
    assert values == pytest.approx(points[..., 0] + 2 * points[..., 1])


def test_evaluate_checks_length(q1_handler):
    with pytest.raises(ValueError):
        q1_handler.evaluate(np.zeros(3), np.zeros((1, 2)))


def test_l2_error_of_representable_function(q2_handler):
    exact = lambda x, y: x ** 2 + x * y
    u = q2_handler.interpolate(exact)
    assert q2_handler.compute_l2_error(u, exact) == pytest.approx(0.0, abs=1e-12)
    # a constant offset of 1 on the unit square has L2 norm 1
    assert q2_handler.compute_l2_error(u + 1.0, exact) == pytest.approx(1.0)


@pytest.mark.parametrize("degree, field", [
    (1, lambda x, y: x + 2 * y),
    (2, lambda x, y: x ** 2 - x * y),
    (3, lambda x, y: x ** 3 + y ** 2),
])
def test_prolongate_reproduces_polynomials(degree, field):
    mesh = hyper_cube().refine_global(1)
    old = DoFHandler(mesh, FE_Q(degree)).distribute_dofs()
    u_old = old.interpolate(field)
    mesh.refine_global(1)
    new = DoFHandler(mesh, FE_Q(degree)).distribute_dofs()
    assert new.prolongate(old, u_old) == pytest.approx(new.interpolate(field), abs=1e-12)


def test_prolongate_requires_one_refinement():
    mesh = hyper_cube().refine_global(1)
    old = DoFHandler(mesh, FE_Q(1)).distribute_dofs()
    same = DoFHandler(mesh, FE_Q(1)).distribute_dofs()
    with pytest.raises(ValueError):
        same.prolongate(old, np.zeros(old.n_dofs))
    mesh.refine_global(1)
    other_degree = DoFHandler(mesh, FE_Q(2)).distribute_dofs()
    with pytest.raises(ValueError):
        other_degree.prolongate(old, np.zeros(old.n_dofs))


def test_undistributed_handler_raises():
    handler = DoFHandler(hyper_cube(), FE_Q(1))
    with pytest.raises(StructuralError):
        handler.boundary_dofs()
