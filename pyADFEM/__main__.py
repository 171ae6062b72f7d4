"""Run the default advection-diffusion scenario: ``python -m pyADFEM``.

Three refinement cycles of the unit square (degree 1, two initial
refinements, ν = 1, a = 1, β = (1, 0), f = 1, u = 0 on the boundary), writing
``solution-00.vtu`` ... ``solution-02.vtu`` to the working directory.
"""
import logging
import sys
from .errors import CycleError, ConvergenceFailure
from .Problem._config import ProblemConfig
from .Problem.CPU.AdvectionDiffusionProblem import AdvectionDiffusionProblem

logger = logging.getLogger("pyADFEM")


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    config = ProblemConfig(output_dir=".")
    try:
        AdvectionDiffusionProblem(config).run()
    except (CycleError, ConvergenceFailure) as e:
        logger.error("pyADFEM: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
