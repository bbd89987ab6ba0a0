"""
Frontier Selector
=================

Picks the two notable portfolios out of a simulated cloud:

- Maximum Sharpe ratio (the sampled stand-in for the tangent portfolio)
- Minimum volatility (the sampled stand-in for the MVP)

Ties go to the entry generated first. Entries with an undefined Sharpe
ratio take part in the volatility search but not in the Sharpe search.
"""

import warnings
from typing import Optional, Sequence, Tuple

from mpt_lab.core.exceptions import EmptyResultSetError
from mpt_lab.core.simulator import SimulatedPortfolio


def _require_entries(portfolios: Sequence[SimulatedPortfolio]):
    if len(portfolios) == 0:
        raise EmptyResultSetError()


def max_sharpe_portfolio(portfolios: Sequence[SimulatedPortfolio]) -> Optional[SimulatedPortfolio]:
    """
    Find the entry with the highest defined Sharpe ratio.

    Args:
        portfolios: Simulated portfolios in generation order

    Returns:
        The first entry holding the maximum Sharpe ratio, or None when no
        entry has a defined Sharpe ratio

    Raises:
        EmptyResultSetError: If there are no entries at all
    """
    _require_entries(portfolios)

    best = None
    for portfolio in portfolios:
        if not portfolio.sharpe_defined:
            continue
        if best is None or portfolio.sharpe > best.sharpe:
            best = portfolio

    if best is None:
        warnings.warn("No simulated portfolio has a defined Sharpe ratio")
    return best


def min_volatility_portfolio(portfolios: Sequence[SimulatedPortfolio]) -> SimulatedPortfolio:
    """
    Find the entry with the lowest volatility.

    Raises:
        EmptyResultSetError: If there are no entries
    """
    _require_entries(portfolios)

    best = portfolios[0]
    for portfolio in portfolios:
        if portfolio.volatility < best.volatility:
            best = portfolio
    return best


def select_optimal_portfolios(
    portfolios: Sequence[SimulatedPortfolio]
) -> Tuple[Optional[SimulatedPortfolio], SimulatedPortfolio]:
    """Return (max_sharpe, min_volatility) for a simulated cloud."""
    _require_entries(portfolios)
    return max_sharpe_portfolio(portfolios), min_volatility_portfolio(portfolios)
