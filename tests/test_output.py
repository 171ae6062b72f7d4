"""VTU output and matplotlib views."""
import pytest

import numpy as np
import pyvista as pv
import matplotlib.pyplot as plt

from pyADFEM.CPU import (
    AdvectionDiffusionKernel,
    BiCGSTAB,
    FiniteElement,
    SparsityPattern,
    build_grid,
    write_vtu,
)
from pyADFEM.Physics import AdvectionDiffusion
from pyADFEM.visualizers._vtk import output_filename, linear_subcells

from conftest import make_handler


@pytest.mark.parametrize("degree, refinements, points, cells", [(1, 2, 25, 16), (2, 1, 25, 16), (3, 0, 16, 9)])
def test_grid_sizes(degree, refinements, points, cells):
    handler = make_handler(degree, refinements)
    u = handler.interpolate(lambda x, y: x * y)
    grid = build_grid(handler, u)
    assert grid.n_points == points
    assert grid.n_cells == cells
    assert np.asarray(grid.point_data["solution"]) == pytest.approx(u)
    assert np.asarray(grid.points)[:, 2] == pytest.approx(0.0)


def test_subcells_are_counter_clockwise():
    from pyADFEM.CPU import FE_Q
    fe = FE_Q(2)
    sub = linear_subcells(fe)
    assert sub.shape == (4, 4)
    p = fe.support_points[sub]
    x, y = p[..., 0], p[..., 1]
    area = 0.5 * np.sum(x * np.roll(y, -1, axis=1) - np.roll(x, -1, axis=1) * y, axis=1)
    assert np.all(area > 0)


def test_build_grid_checks_length(q1_handler):
    with pytest.raises(ValueError):
        build_grid(q1_handler, np.zeros(3))


def test_write_vtu_round_trip(tmp_path, q2_handler):
    u = q2_handler.interpolate(lambda x, y: x - y)
    path = write_vtu(q2_handler, u, tmp_path / "nested" / output_filename(4))
    assert path.name == "solution-04.vtu"
    assert path.is_file()
    grid = pv.read(str(path))
    assert np.asarray(grid.point_data["solution"]) == pytest.approx(u)


def test_write_vtu_into_a_file_raises(tmp_path, q1_handler):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(OSError):
        write_vtu(q1_handler, np.zeros(q1_handler.n_dofs), blocker / "solution-00.vtu")


def test_matplotlib_views(q2_handler):
    pattern = SparsityPattern.from_dof_handler(q2_handler)
    kernel = AdvectionDiffusionKernel(q2_handler, pattern, AdvectionDiffusion())
    FE = FiniteElement(q2_handler, kernel, BiCGSTAB())
    assert FE.add_dirichlet_boundary_condition(0, 0.0) == 32
    result = FE.solve()
    assert result.converged

    fig, ax = plt.subplots()
    assert FE.visualize_field(ax=ax, colorbar_label="u") is ax
    fig, ax = plt.subplots()
    assert FE.visualize_problem(ax=ax) is ax
    plt.close("all")
