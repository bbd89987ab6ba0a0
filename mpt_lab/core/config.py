"""
Run Configuration
=================

Holds the assumptions a single optimization run is made with. The trading
calendar is fixed at 252 periods per year; returns are assumed daily.
"""

import warnings
from typing import Optional

TRADING_DAYS_PER_YEAR = 252

DEFAULT_RISK_FREE_RATE = 0.02
DEFAULT_ITERATIONS = 2500
RECOMMENDED_ITERATIONS = (500, 5000)


class AnalysisConfig:
    """
    Stores all configurable assumptions for an optimization run.

    Attributes:
        risk_free_rate: Annual risk-free rate (decimal)
        iterations: Number of Monte Carlo draws
        weight_sampler: 'uniform' (draw then normalize) or 'dirichlet'
        seed: Optional seed for a reproducible random stream
        n_shards: Number of independent random streams to split the draws over
    """

    def __init__(
        self,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
        iterations: int = DEFAULT_ITERATIONS,
        weight_sampler: str = 'uniform',
        seed: Optional[int] = None,
        n_shards: int = 1
    ):
        self.risk_free_rate = float(risk_free_rate)
        self.iterations = int(iterations)
        self.weight_sampler = weight_sampler
        self.seed = seed
        self.n_shards = int(n_shards)

        self._validate()

    def _validate(self):
        """Reject unusable values and warn about unusual ones."""
        if self.iterations <= 0:
            raise ValueError(f"iterations must be a positive integer, got {self.iterations}")

        low, high = RECOMMENDED_ITERATIONS
        if not low <= self.iterations <= high:
            warnings.warn(
                f"iterations={self.iterations} is outside the recommended "
                f"range {low}-{high}"
            )

        # Imported here: the simulator module reads its defaults from this one
        from mpt_lab.core.simulator import get_sampler
        get_sampler(self.weight_sampler)

        if self.n_shards < 1:
            raise ValueError(f"n_shards must be at least 1, got {self.n_shards}")

    @property
    def periods_per_year(self) -> int:
        return TRADING_DAYS_PER_YEAR

    def describe(self) -> str:
        """Return a short multi-line description of the configuration."""
        lines = [
            f"Risk-Free Rate: {self.risk_free_rate*100:.2f}% annual",
            f"Iterations: {self.iterations}",
            f"Weight Sampler: {self.weight_sampler}",
            f"Seed: {self.seed if self.seed is not None else 'random'}",
            f"Shards: {self.n_shards}",
            f"Periods/Year: {self.periods_per_year}",
        ]
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"AnalysisConfig(risk_free_rate={self.risk_free_rate}, "
            f"iterations={self.iterations}, weight_sampler={self.weight_sampler!r}, "
            f"seed={self.seed}, n_shards={self.n_shards})"
        )
