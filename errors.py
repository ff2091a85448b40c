"""
Exceptions raised by the maze solver.

Only failures that abort a solve are exceptions. An incomplete trace is
reported through ``path_tracer.TraceResult`` and degenerate cells are
logged and given a fallback value/action.
"""


class MazeSolverError(Exception):
    """Base class for solver failures."""


class PreconditionFailure(MazeSolverError, ValueError):
    """The grid or the start/goal cells are not fit to be solved."""

    def __init__(self, condition, message=None):
        self.condition = condition
        super().__init__(message or condition)


class ConvergenceFailure(MazeSolverError, RuntimeError):
    """Value iteration hit the sweep cap with delta still above the threshold."""

    def __init__(self, iterations, delta, threshold):
        self.iterations = iterations
        self.delta = delta
        self.threshold = threshold
        super().__init__(
            f"Value iteration did not converge after {iterations} sweeps "
            f"(delta={delta:.3g} > threshold={threshold:.3g}), maze may not be solvable"
        )
