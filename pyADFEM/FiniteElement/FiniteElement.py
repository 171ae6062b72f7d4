class FiniteElement:
    """Abstract base for finite-element wrappers.

    Subclasses implement backend-specific behaviour. The base class defines
    the common interface used by problems: boundary data, assembly, solve and
    visualization of one discretization.
    """
    def __init__(self):
        """Initialize finite-element wrapper state.

        Subclasses may extend the initializer to accept DoF handler, kernel or
        solver objects.
        """
        pass

    def add_dirichlet_boundary_condition(self, tag, value=0.0):
        """Add Dirichlet (essential) boundary condition.

        Parameters
        - tag: boundary tag whose faces are constrained.
        - value: prescribed value, number or callable.
        """
        raise NotImplementedError("This method should be implemented by subclasses.")

    def reset_dirichlet_boundary_conditions(self):
        """Remove all Dirichlet boundary conditions previously added."""
        raise NotImplementedError("This method should be implemented by subclasses.")

    def assemble(self):
        """Assemble the global matrix and right-hand side."""
        raise NotImplementedError("This method should be implemented by subclasses.")

    def visualize_field(self, field, **kwargs):
        """Visualize a scalar field defined on the degrees of freedom."""
        raise NotImplementedError("This method should be implemented by subclasses.")

    def solve(self, **kwargs):
        """Run the linear finite element solve.

        Returns a solver result (solution, iterations, residuals, status).
        """
        raise NotImplementedError("This method should be implemented by subclasses.")
