"""
Return Calculator
=================

Converts an aligned price table into per-period simple returns:

    r_t = (P_t - P_{t-1}) / P_{t-1}

A period is kept only if every ticker has a valid transition into it, i.e.
both prices are present and finite and the previous price is non-zero.
One bad ticker drops the period for all assets, so every surviving row is
complete and the statistics downstream never see partial observations.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from mpt_lab.core.loader import validate_price_table

logger = logging.getLogger(__name__)


def calculate_returns(
    prices: pd.DataFrame,
    tickers: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Compute simple returns between consecutive rows of a price table.

    Args:
        prices: Price table indexed by ascending date, one column per ticker
        tickers: Tickers to use, in order (default: all columns)

    Returns:
        DataFrame of returns indexed by the date closing each period,
        columns in ticker order. Its length is at most len(prices) - 1.

    Example:
        >>> prices = pd.DataFrame({'A': [100.0, 110.0, 99.0]},
        ...                       index=pd.to_datetime(['2023-01-01', '2023-01-02', '2023-01-03']))
        >>> calculate_returns(prices)['A'].round(4).tolist()
        [0.1, -0.1]
    """
    if tickers is None:
        tickers = list(prices.columns)
    table = validate_price_table(prices, tickers)

    previous = table.shift(1)
    returns = (table - previous) / previous

    # Transitions are judged on raw prices, not on the computed ratio
    valid = np.isfinite(table) & np.isfinite(previous) & (previous != 0)
    complete_rows = valid.all(axis=1)

    returns = returns.loc[complete_rows]

    dropped = max(len(table) - 1, 0) - len(returns)
    if dropped:
        logger.debug(f"Dropped {dropped} period(s) with an invalid price transition")

    return returns


def valid_return_dates(prices: pd.DataFrame, tickers: Optional[Sequence[str]] = None) -> List:
    """List the dates whose period produced a complete return row."""
    return list(calculate_returns(prices, tickers).index)
