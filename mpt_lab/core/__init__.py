"""Core computational modules for Monte Carlo portfolio optimization."""

from mpt_lab.core.config import AnalysisConfig
from mpt_lab.core.loader import DataLoader, sample_price_table
from mpt_lab.core.optimizer import PortfolioOptimizer, OptimizationResult, run_optimization

__all__ = [
    "AnalysisConfig",
    "DataLoader",
    "sample_price_table",
    "PortfolioOptimizer",
    "OptimizationResult",
    "run_optimization",
]
