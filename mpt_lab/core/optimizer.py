"""
Portfolio Optimizer - Monte Carlo Efficient Frontier
=====================================================

Ties the pipeline together:

    price table -> returns -> annualized statistics -> simulated cloud
                -> (max Sharpe portfolio, min volatility portfolio)

Theory Background:
------------------
Modern Portfolio Theory (Markowitz, 1952) says that for every level of risk
there is a best achievable expected return; the set of such portfolios is
the efficient frontier. Instead of solving for it, this module samples many
random long-only portfolios. The upper-left edge of the sampled cloud
approximates the frontier, the highest-Sharpe point approximates the
tangent portfolio, and the lowest-volatility point approximates the
minimum variance portfolio.

Every call to `PortfolioOptimizer.run` starts from scratch. Nothing is
cached between runs, so UI, CLI and test callers all drive it the same way.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from mpt_lab.core.config import AnalysisConfig
from mpt_lab.core.returns import calculate_returns
from mpt_lab.core.selector import select_optimal_portfolios
from mpt_lab.core.simulator import (
    RandomSource,
    SimulatedPortfolio,
    SimulationResult,
    simulate_portfolios,
    simulate_sharded,
)
from mpt_lab.core.statistics import StatsBundle, compute_stats_from_returns

logger = logging.getLogger(__name__)


class OptimizationResult:
    """
    Everything one optimization run produces.

    Attributes:
        tickers (Tuple[str, ...]): Ticker order used throughout the run
        stats (StatsBundle): Annualized statistics
        simulation (SimulationResult): Full simulated cloud
        max_sharpe (Optional[SimulatedPortfolio]): Highest-Sharpe entry
        min_volatility (SimulatedPortfolio): Lowest-volatility entry
        n_return_rows (int): Return rows the statistics were estimated from
        risk_free_rate (float): Annual risk-free rate used
    """

    def __init__(
        self,
        tickers: Sequence[str],
        stats: StatsBundle,
        simulation: SimulationResult,
        max_sharpe: Optional[SimulatedPortfolio],
        min_volatility: SimulatedPortfolio,
        n_return_rows: int,
        risk_free_rate: float
    ):
        self.tickers = tuple(tickers)
        self.stats = stats
        self.simulation = simulation
        self.max_sharpe = max_sharpe
        self.min_volatility = min_volatility
        self.n_return_rows = n_return_rows
        self.risk_free_rate = risk_free_rate

    def optimal_weights(self) -> pd.DataFrame:
        """Weights of both selected portfolios side by side, indexed by ticker."""
        columns = {'Min Volatility': self.min_volatility.weights}
        if self.max_sharpe is not None:
            columns = {'Max Sharpe': self.max_sharpe.weights, **columns}
        return pd.DataFrame(columns, index=list(self.tickers))

    def summary_report(self) -> str:
        """
        Generate a summary report of the run.

        Returns:
            Formatted string report
        """
        lines = []
        lines.append("=" * 70)
        lines.append("MONTE CARLO PORTFOLIO OPTIMIZATION REPORT")
        lines.append("=" * 70)

        lines.append("\n--- Individual Asset Statistics (annualized) ---")
        lines.append(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12} {'Variance':>12}")
        lines.append("-" * 50)
        for ticker, asset in self.stats.asset_stats().items():
            lines.append(
                f"{ticker:<12} {asset['mean']:>12.6f} {asset['std']:>12.6f} {asset['variance']:>12.6f}"
            )

        lines.append(f"\nReturn periods used: {self.n_return_rows}")
        lines.append(f"Risk-free rate: {self.risk_free_rate:.4f} ({self.risk_free_rate*100:.2f}%)")
        lines.append(
            f"Portfolios simulated: {len(self.simulation)}"
            + (f" ({self.simulation.skipped} degenerate draws skipped)" if self.simulation.skipped else "")
        )

        lines.append("\n--- Maximum Sharpe Ratio Portfolio ---")
        if self.max_sharpe is None:
            lines.append("Undefined: no simulated portfolio has non-zero volatility")
        else:
            lines.extend(self._portfolio_lines(self.max_sharpe))

        lines.append("\n--- Minimum Volatility Portfolio ---")
        lines.extend(self._portfolio_lines(self.min_volatility))

        lines.append("\n" + "=" * 70)
        return "\n".join(lines)

    def _portfolio_lines(self, portfolio: SimulatedPortfolio) -> List[str]:
        lines = ["Weights:"]
        for ticker, weight in portfolio.weights_dict(self.tickers).items():
            lines.append(f"  {ticker}: {weight:.6f} ({weight*100:.2f}%)")
        lines.append(f"Expected Return: {portfolio.expected_return:.6f} ({portfolio.expected_return*100:.2f}%)")
        lines.append(f"Volatility: {portfolio.volatility:.6f} ({portfolio.volatility*100:.2f}%)")
        sharpe = f"{portfolio.sharpe:.6f}" if portfolio.sharpe_defined else "undefined"
        lines.append(f"Sharpe Ratio: {sharpe}")
        return lines


class PortfolioOptimizer:
    """
    Monte Carlo portfolio optimizer over a fixed ticker order.

    The random source is injected: pass a numpy Generator (or a seed) to get
    reproducible runs. Without one, the config seed is used, and without that
    every run draws fresh entropy.

    Attributes:
        tickers (List[str]): Ticker order for weights, means and covariances
        config (AnalysisConfig): Run assumptions

    Example:
        >>> from mpt_lab.core.loader import sample_price_table
        >>> optimizer = PortfolioOptimizer(['SPY', 'TLT', 'GLD', 'BTC'],
        ...                                AnalysisConfig(iterations=2000, seed=7))
        >>> result = optimizer.run(sample_price_table())
        >>> len(result.simulation)
        2000
    """

    def __init__(
        self,
        tickers: Sequence[str],
        config: Optional[AnalysisConfig] = None,
        rng: RandomSource = None
    ):
        self.tickers = list(tickers)
        self.config = config if config is not None else AnalysisConfig()
        self.rng = rng

        if not self.tickers:
            raise ValueError("At least one ticker is required")

    def compute_stats(self, prices: pd.DataFrame) -> StatsBundle:
        """Estimate annualized statistics from a price table."""
        returns = calculate_returns(prices, self.tickers)
        logger.debug(f"{len(returns)} complete return rows from {len(prices)} price rows")
        return compute_stats_from_returns(returns, self.tickers, self.config.periods_per_year)

    def simulate(self, stats: StatsBundle, should_cancel=None) -> SimulationResult:
        """Run the Monte Carlo search with the configured sampler and sharding."""
        config = self.config

        if config.n_shards > 1:
            if isinstance(self.rng, np.random.Generator):
                seed = int(self.rng.integers(2**32))
            elif self.rng is not None:
                seed = int(self.rng)
            else:
                seed = config.seed
            return simulate_sharded(
                stats,
                config.iterations,
                config.risk_free_rate,
                seed=seed,
                n_shards=config.n_shards,
                sampler=config.weight_sampler,
                should_cancel=should_cancel
            )

        rng = self.rng if self.rng is not None else config.seed
        return simulate_portfolios(
            stats,
            config.iterations,
            config.risk_free_rate,
            rng=rng,
            sampler=config.weight_sampler,
            should_cancel=should_cancel
        )

    def run(self, prices: pd.DataFrame, should_cancel=None) -> OptimizationResult:
        """
        Run the full pipeline on a price table.

        Args:
            prices: Price table indexed by ascending date
            should_cancel: Optional callable polled between simulation iterations

        Returns:
            OptimizationResult

        Raises:
            InsufficientDataError: Fewer than two complete return rows
            EmptyResultSetError: Every simulated draw was degenerate
            SimulationCancelled: should_cancel returned True
        """
        stats = self.compute_stats(prices)

        simulation = self.simulate(stats, should_cancel=should_cancel)
        max_sharpe, min_volatility = select_optimal_portfolios(simulation)

        logger.info(
            f"Optimization run: {len(self.tickers)} assets, {stats.n_observations} return rows, "
            f"{len(simulation)} portfolios"
        )

        return OptimizationResult(
            tickers=self.tickers,
            stats=stats,
            simulation=simulation,
            max_sharpe=max_sharpe,
            min_volatility=min_volatility,
            n_return_rows=stats.n_observations,
            risk_free_rate=self.config.risk_free_rate
        )


def run_optimization(
    prices: pd.DataFrame,
    tickers: Optional[Sequence[str]] = None,
    rng: RandomSource = None,
    **config_kwargs
) -> OptimizationResult:
    """
    One-call convenience wrapper around PortfolioOptimizer.

    Args:
        prices: Price table indexed by ascending date
        tickers: Tickers to optimize over (default: all columns)
        rng: numpy Generator, integer seed, or None
        **config_kwargs: Passed to AnalysisConfig (risk_free_rate, iterations, ...)

    Returns:
        OptimizationResult
    """
    if tickers is None:
        tickers = list(prices.columns)
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(**config_kwargs), rng=rng)
    return optimizer.run(prices)
