"""Fatal error taxonomy for a simulation run.

Every error here aborts the run. They are raised during setup, before the
scheduling loop starts, wherever the condition can be detected that early.
"""


class SimulationError(RuntimeError):
    """Base class for all simulation failures."""
    pass


class ConfigurationError(SimulationError, ValueError):
    """Invalid or missing run parameters."""
    pass


class OrderingViolation(SimulationError, ValueError):
    """Time-ordered inputs arrived out of order.

    Raised by the input layer when forcing records are not in
    non-decreasing time order, or when output is requested to start
    before the run does.
    """
    pass


class NumericDegeneracy(ConfigurationError):
    """A parameter would put NaN or Inf into the grid (zero saturation,
    non-positive spot radius)."""
    pass
