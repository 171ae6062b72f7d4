"""pyADFEM public package.

This package exposes the public API for the pyADFEM stationary
advection-diffusion finite-element solver. Typical usage imports the CPU
backend and physics models from :mod:`pyADFEM.Physics`.

Examples
--------
>>> from pyADFEM.CPU import AdvectionDiffusionProblem, ProblemConfig
>>> from pyADFEM import Physics
>>> results = AdvectionDiffusionProblem(ProblemConfig(n_cycles=3)).run()
"""
