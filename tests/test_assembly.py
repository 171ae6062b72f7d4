"""Global assembly of the advection-diffusion system."""
import pytest

import numpy as np

from pyADFEM.CPU import AdvectionDiffusionKernel, SparsityPattern, assemble, QGauss
from pyADFEM.Physics import AdvectionDiffusion
from pyADFEM.errors import StructuralError

from conftest import make_handler


def test_constants_are_in_the_kernel_without_advection(q1_handler, q1_pattern):
    system = assemble(q1_handler, q1_pattern, AdvectionDiffusion(advection=0.0))
    assert system.matrix @ np.ones(q1_handler.n_dofs) == pytest.approx(np.zeros(q1_handler.n_dofs), abs=1e-12)
    assert abs(system.matrix - system.matrix.T).max() == pytest.approx(0.0, abs=1e-14)


@pytest.mark.parametrize("degree", [1, 2])
@pytest.mark.parametrize("advection", [0.0, 1.0, 25.0])
def test_column_sums_vanish_and_load_sums_to_area(degree, advection):
    handler = make_handler(degree, 2)
    pattern = SparsityPattern.from_dof_handler(handler)
    system = assemble(handler, pattern, AdvectionDiffusion(advection=advection))
    column_sums = np.ones(handler.n_dofs) @ system.matrix
    assert column_sums == pytest.approx(np.zeros(handler.n_dofs), abs=1e-10)
    assert system.rhs.sum() == pytest.approx(1.0)
    assert system.n_dofs == handler.n_dofs


def test_advection_makes_the_matrix_non_symmetric(q1_handler, q1_pattern):
    system = assemble(q1_handler, q1_pattern, AdvectionDiffusion(advection=1.0))
    assert abs(system.matrix - system.matrix.T).max() > 1e-3


def test_assembly_is_deterministic(q2_handler):
    pattern = SparsityPattern.from_dof_handler(q2_handler)
    physics = AdvectionDiffusion(diffusion=lambda x, y: 1.0 + x * y, direction=lambda x, y: (y, -x))
    first = assemble(q2_handler, pattern, physics)
    second = assemble(q2_handler, pattern, physics)
    assert np.array_equal(first.matrix.data, second.matrix.data)
    assert np.array_equal(first.rhs, second.rhs)


def test_matrix_keeps_the_pattern(q1_handler, q1_pattern):
    system = assemble(q1_handler, q1_pattern, AdvectionDiffusion())
    assert system.matrix.nnz == q1_pattern.nnz
    assert np.array_equal(system.matrix.indptr, q1_pattern.indptr)


def test_write_outside_pattern_raises(q1_handler):
    n = q1_handler.n_dofs
    diagonal_only = SparsityPattern(np.arange(n + 1), np.arange(n), n)
    with pytest.raises(StructuralError):
        assemble(q1_handler, diagonal_only, AdvectionDiffusion())


def test_pattern_size_mismatch_raises(q1_handler):
    other = SparsityPattern.from_dof_handler(make_handler(1, 1))
    with pytest.raises(StructuralError):
        assemble(q1_handler, other, AdvectionDiffusion())


def test_kernel_matvec_and_diagonal(q1_handler, q1_pattern):
    kernel = AdvectionDiffusionKernel(q1_handler, q1_pattern, AdvectionDiffusion(), quadrature=QGauss(3))
    with pytest.raises(ValueError):
        kernel @ np.ones(q1_handler.n_dofs)
    system = kernel.assemble()
    x = np.linspace(0.0, 1.0, q1_handler.n_dofs)
    assert kernel @ x == pytest.approx(system.matrix @ x)
    assert kernel.diagonal() == pytest.approx(system.matrix.diagonal())
    # the advection term makes A and A.T differ
    assert kernel.rmatvec(x) == pytest.approx(system.matrix.T @ x)
    assert not np.allclose(kernel.rmatvec(x), kernel.matvec(x))
    kernel.reset()
    assert not kernel.has_been_constructed


def test_single_cell_q1_values():
    handler = make_handler(1, 0)
    pattern = SparsityPattern.from_dof_handler(handler)
    system = assemble(handler, pattern, AdvectionDiffusion(advection=0.0))
    A = system.matrix.toarray()
    assert A[0, 0] == pytest.approx(1.0)
    assert system.rhs == pytest.approx(np.full(4, 0.25))
