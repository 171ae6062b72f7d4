import matplotlib

matplotlib.use("Agg")

import pytest

from pyADFEM.CPU import DoFHandler, FE_Q, SparsityPattern, hyper_cube


def make_handler(degree=1, refinements=2, colorize=False):
    mesh = hyper_cube(0.0, 1.0, colorize=colorize)
    mesh.refine_global(refinements)
    return DoFHandler(mesh, FE_Q(degree)).distribute_dofs()


@pytest.fixture
def q1_handler():
    return make_handler(1, 2)


@pytest.fixture
def q2_handler():
    return make_handler(2, 2)


@pytest.fixture
def q1_pattern(q1_handler):
    return SparsityPattern.from_dof_handler(q1_handler)
