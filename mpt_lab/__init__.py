"""
MPT Lab - Monte Carlo Portfolio Optimization
============================================

Samples random portfolios from historical prices and picks out the maximum
Sharpe ratio and minimum volatility portfolios.

Usage:
    from mpt_lab import PortfolioOptimizer, AnalysisConfig, sample_price_table

Classes:
    PortfolioOptimizer - Runs the returns -> stats -> simulation -> selection pipeline
    AnalysisConfig - Run assumptions (risk-free rate, iterations, sampler, seed)
    DataLoader - Price table loading from Excel/CSV

Functions:
    run_optimization - One-call pipeline
    calculate_returns - Simple returns from a price table
    compute_stats_from_returns - Annualized mean vector and covariance matrix
    simulate_portfolios - Monte Carlo search over random weights
    select_optimal_portfolios - Max Sharpe and min volatility selection
    sample_price_table - Built-in 4-asset demo data
"""

from mpt_lab.core.config import AnalysisConfig, TRADING_DAYS_PER_YEAR
from mpt_lab.core.exceptions import (
    PortfolioError,
    InsufficientDataError,
    DegenerateWeightsError,
    EmptyResultSetError,
    SimulationCancelled
)
from mpt_lab.core.loader import DataLoader, sample_price_table, generate_mock_history, merge_price_series
from mpt_lab.core.returns import calculate_returns
from mpt_lab.core.statistics import StatsBundle, compute_stats_from_returns
from mpt_lab.core.simulator import SimulatedPortfolio, SimulationResult, simulate_portfolios, simulate_sharded
from mpt_lab.core.selector import select_optimal_portfolios
from mpt_lab.core.optimizer import PortfolioOptimizer, OptimizationResult, run_optimization

__version__ = "1.0.0"

__all__ = [
    "AnalysisConfig",
    "TRADING_DAYS_PER_YEAR",
    "PortfolioError",
    "InsufficientDataError",
    "DegenerateWeightsError",
    "EmptyResultSetError",
    "SimulationCancelled",
    "DataLoader",
    "sample_price_table",
    "generate_mock_history",
    "merge_price_series",
    "calculate_returns",
    "StatsBundle",
    "compute_stats_from_returns",
    "SimulatedPortfolio",
    "SimulationResult",
    "simulate_portfolios",
    "simulate_sharded",
    "select_optimal_portfolios",
    "PortfolioOptimizer",
    "OptimizationResult",
    "run_optimization",
]
