"""Refinement loop, configuration and the process entry point."""
import pytest

import numpy as np
from scipy.sparse.linalg import spsolve

from pyADFEM.CPU import AdvectionDiffusionProblem, ProblemConfig, SolverSettings, apply_boundary_values, assemble
from pyADFEM.Physics import AdvectionDiffusion
from pyADFEM.errors import ConvergenceFailure, CycleError
from pyADFEM.__main__ import main


def test_default_scenario():
    results = AdvectionDiffusionProblem().run()
    assert [r.cycle for r in results] == [0, 1, 2]
    assert [r.n_active_cells for r in results] == [16, 64, 256]
    assert [r.n_dofs for r in results] == [25, 81, 289]
    for r in results:
        assert r.converged
        assert r.iterations > 0
        assert r.solution.shape == (r.n_dofs,)
        assert r.output_path is None
        assert r.l2_error is None


def test_solution_matches_direct_solve():
    problem = AdvectionDiffusionProblem(ProblemConfig(n_cycles=1, advection=10.0))
    result = problem.run()[0]
    system = problem.FE.system
    direct = spsolve(system.matrix.tocsc(), system.rhs)
    assert result.solution == pytest.approx(direct, abs=1e-8)
    # homogeneous Dirichlet data is honored
    boundary = problem.dof_handler.boundary_dofs()
    assert np.all(result.solution[boundary] == 0.0)


@pytest.mark.parametrize("degree", [1, 2])
def test_zero_advection_matches_pure_diffusion(degree):
    problem = AdvectionDiffusionProblem(ProblemConfig(degree=degree, n_cycles=2, advection=0.0))
    result = problem.run()[-1]
    handler = problem.dof_handler

    reference = assemble(handler, problem.pattern, AdvectionDiffusion(advection=0.0, direction=(0.0, 0.0)))
    u = np.zeros(handler.n_dofs)
    apply_boundary_values(handler.interpolate_boundary_values(0, 0.0), reference.matrix, u, reference.rhs)
    direct = spsolve(reference.matrix.tocsc(), reference.rhs)

    assert result.converged
    assert result.solution == pytest.approx(direct, abs=1e-10)


@pytest.mark.parametrize("degree", [1, 2])
def test_errors_decrease_for_manufactured_solution(degree):
    nu = 1.0
    exact = lambda x, y: np.sin(np.pi * x) * np.sin(np.pi * y)
    config = ProblemConfig(
        degree=degree,
        n_cycles=3,
        advection=0.0,
        diffusion=nu,
        forcing=lambda x, y: 3 * nu * np.pi ** 2 * exact(x, y),
        exact_solution=exact,
    )
    errors = [r.l2_error for r in AdvectionDiffusionProblem(config).run()]
    assert errors[1] < errors[0]
    assert errors[2] < errors[1]
    assert errors[2] < 0.5 * errors[0]


@pytest.mark.parametrize("method", ["auto", "bicgstab", "gmres"])
def test_linear_solution_is_reproduced(method):
    # u = x + y solves the equation with f = a * beta . grad(u) = 1
    config = ProblemConfig(
        n_cycles=2,
        boundary_value=lambda x, y: x + y,
        exact_solution=lambda x, y: x + y,
        solver=SolverSettings(method=method),
    )
    for r in AdvectionDiffusionProblem(config).run():
        assert r.converged
        assert r.l2_error == pytest.approx(0.0, abs=1e-8)


def test_output_files_are_written(tmp_path):
    config = ProblemConfig(n_cycles=2, output_dir=str(tmp_path / "out"))
    results = AdvectionDiffusionProblem(config).run()
    assert [r.output_path.name for r in results] == ["solution-00.vtu", "solution-01.vtu"]
    for r in results:
        assert r.output_path.is_file()


def test_output_dir_that_is_a_file_fails_in_output(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    problem = AdvectionDiffusionProblem(ProblemConfig(output_dir=str(blocker)))
    with pytest.raises(CycleError) as info:
        problem.run()
    assert info.value.cycle == 0
    assert info.value.component == "output"
    assert isinstance(info.value.__cause__, OSError)


def test_convergence_failure_aborts_by_default():
    config = ProblemConfig(solver=SolverSettings(max_iterations=1))
    with pytest.raises(ConvergenceFailure) as info:
        AdvectionDiffusionProblem(config).run()
    assert info.value.cycle == 0
    assert not info.value.result.converged
    assert info.value.component == "solve"
    assert str(info.value).startswith("cycle 0 failed in solve:")


def test_convergence_failure_can_be_tolerated():
    config = ProblemConfig(solver=SolverSettings(max_iterations=1), abort_on_failure=False)
    problem = AdvectionDiffusionProblem(config)
    results = problem.run()
    assert len(results) == 3
    assert not any(r.converged for r in results)
    assert problem.is_terminal()


def test_warm_start_gives_the_same_solutions():
    cold = AdvectionDiffusionProblem(ProblemConfig()).run()
    warm = AdvectionDiffusionProblem(ProblemConfig(transfer_solution=True)).run()
    for c, w in zip(cold, warm):
        assert w.converged
        assert w.solution == pytest.approx(c.solution, abs=1e-8)


def test_run_starts_from_scratch():
    problem = AdvectionDiffusionProblem(ProblemConfig(n_cycles=2))
    first = problem.run()
    second = problem.run()
    assert [r.n_dofs for r in first] == [r.n_dofs for r in second]
    assert np.array_equal(first[-1].solution, second[-1].solution)


@pytest.mark.parametrize("kwargs", [
    {"degree": 0},
    {"n_cycles": 0},
    {"initial_refinements": -1},
    {"lower": 1.0, "upper": 0.0},
    {"direction": (1.0, 0.0, 0.0)},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        ProblemConfig(**kwargs)


def test_invalid_solver_settings():
    with pytest.raises(ValueError):
        SolverSettings(method="lu")
    with pytest.raises(ValueError):
        SolverSettings(preconditioner="ilu")


def test_main_writes_default_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main() == 0
    for cycle in range(3):
        assert (tmp_path / f"solution-{cycle:02d}.vtu").is_file()


def test_main_reports_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    # a file where the first output should go
    (tmp_path / "solution-00.vtu").mkdir()
    assert main() == 1
