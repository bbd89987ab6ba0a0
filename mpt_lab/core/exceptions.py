"""
Exceptions raised by the optimization engine.

Every condition derives from PortfolioError so that a caller can catch
the whole family at the run boundary. The input-related ones also derive
from ValueError, matching how the rest of the package reports bad data.
"""


class PortfolioError(Exception):
    """Base class for all engine conditions."""


class InsufficientDataError(PortfolioError, ValueError):
    """Fewer than two valid return rows; covariance is undefined."""

    def __init__(self, n_rows: int, required: int = 2):
        self.n_rows = n_rows
        self.required = required
        super().__init__(
            f"Not enough data points to calculate statistics: "
            f"{n_rows} valid return row(s), need at least {required}"
        )


class DegenerateWeightsError(PortfolioError, ValueError):
    """A raw weight draw summed to zero and cannot be normalized."""


class EmptyResultSetError(PortfolioError, ValueError):
    """Frontier selection was attempted on zero simulated portfolios."""

    def __init__(self, message: str = "Simulation produced no valid portfolios"):
        super().__init__(message)


class SimulationCancelled(PortfolioError):
    """The caller asked the simulation to stop between iterations."""

    def __init__(self, completed: int):
        self.completed = completed
        super().__init__(f"Simulation cancelled after {completed} iteration(s)")
