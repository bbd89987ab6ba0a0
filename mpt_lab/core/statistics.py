"""
Statistics Estimator
====================

Derives the annualized inputs of the simulation from daily returns:

- Mean vector:  mu_i = mean(r_i) * 252
- Covariance:   Sigma_ij = sum_k (r_ki - m_i)(r_kj - m_j) / (n - 1) * 252

where m_i is the DAILY mean (mu_i / 252), so the deviations are measured
in the same units as the daily residuals. The sample (n - 1) denominator
requires at least two return rows.
"""

from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from mpt_lab.core.config import TRADING_DAYS_PER_YEAR
from mpt_lab.core.exceptions import InsufficientDataError


class StatsBundle:
    """
    Annualized mean-return vector and covariance matrix for a fixed ticker order.

    Attributes:
        tickers (Tuple[str, ...]): Ticker order shared by the vector and matrix
        mean_returns (np.ndarray): Annualized mean returns, shape (k,)
        cov_matrix (np.ndarray): Annualized covariance matrix, shape (k, k)
        n_observations (int): Number of return rows the estimate came from
    """

    __slots__ = ('_tickers', '_mean_returns', '_cov_matrix', '_n_observations')

    def __init__(
        self,
        tickers: Sequence[str],
        mean_returns: np.ndarray,
        cov_matrix: np.ndarray,
        n_observations: int = 0
    ):
        self._tickers = tuple(tickers)
        self._mean_returns = np.array(mean_returns, dtype=float).flatten()
        self._cov_matrix = np.atleast_2d(np.array(cov_matrix, dtype=float))
        self._n_observations = int(n_observations)

        if len(self._mean_returns) != self.n_assets:
            raise ValueError(
                f"Mean vector length {len(self._mean_returns)} doesn't match "
                f"number of tickers {self.n_assets}"
            )
        if self._cov_matrix.shape != (self.n_assets, self.n_assets):
            raise ValueError(
                f"Covariance matrix shape {self._cov_matrix.shape} doesn't match "
                f"number of tickers {self.n_assets}"
            )

        # Derived values are read-only once estimated
        self._mean_returns.setflags(write=False)
        self._cov_matrix.setflags(write=False)

    @property
    def tickers(self) -> Tuple[str, ...]:
        return self._tickers

    @property
    def mean_returns(self) -> np.ndarray:
        return self._mean_returns

    @property
    def cov_matrix(self) -> np.ndarray:
        return self._cov_matrix

    @property
    def n_observations(self) -> int:
        return self._n_observations

    @property
    def n_assets(self) -> int:
        return len(self._tickers)

    def mean_series(self) -> pd.Series:
        """Mean returns keyed by ticker."""
        return pd.Series(self.mean_returns, index=list(self.tickers), name='mean_return')

    def cov_frame(self) -> pd.DataFrame:
        """Covariance matrix labelled by ticker on both axes."""
        return pd.DataFrame(self.cov_matrix, index=list(self.tickers), columns=list(self.tickers))

    def volatilities(self) -> np.ndarray:
        """Annualized standard deviation of each asset."""
        return np.sqrt(np.clip(np.diag(self.cov_matrix), 0.0, None))

    def asset_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Get individual asset statistics.

        Returns:
            Dictionary mapping tickers to their mean, std and variance
        """
        stats = {}
        vols = self.volatilities()
        for i, ticker in enumerate(self.tickers):
            stats[ticker] = {
                'mean': float(self.mean_returns[i]),
                'std': float(vols[i]),
                'variance': float(self.cov_matrix[i, i])
            }
        return stats

    def __repr__(self):
        return f"StatsBundle(tickers={self.tickers}, n_observations={self.n_observations})"


def compute_stats_from_returns(
    returns: pd.DataFrame,
    tickers: Sequence[str] = None,
    periods_per_year: int = TRADING_DAYS_PER_YEAR
) -> StatsBundle:
    """
    Compute annualized expected returns and covariance matrix from daily returns.

    Args:
        returns: Return table (rows = periods, columns = tickers)
        tickers: Ticker order to use (default: the table's column order)
        periods_per_year: Annualization factor

    Returns:
        StatsBundle aligned to the ticker order

    Raises:
        InsufficientDataError: If fewer than two return rows are available
    """
    if tickers is None:
        tickers = list(returns.columns)
    tickers = list(tickers)

    data = returns[tickers].to_numpy(dtype=float)
    n_periods = data.shape[0]

    if n_periods < 2:
        raise InsufficientDataError(n_periods)

    expected_returns = data.mean(axis=0) * periods_per_year

    daily_means = expected_returns / periods_per_year
    demeaned = data - daily_means
    cov_matrix = np.dot(demeaned.T, demeaned) / (n_periods - 1) * periods_per_year

    # Exact symmetry, independent of how the product was accumulated
    cov_matrix = (cov_matrix + cov_matrix.T) / 2

    return StatsBundle(tickers, expected_returns, cov_matrix, n_observations=n_periods)


def stats_from_arrays(
    mean_returns: Sequence[float],
    cov_matrix: Sequence[Sequence[float]],
    tickers: List[str] = None
) -> StatsBundle:
    """
    Build a StatsBundle directly from precomputed annualized statistics.

    Useful when the statistics come from elsewhere, e.g. a risk model.
    """
    mean_returns = np.array(mean_returns, dtype=float).flatten()
    if tickers is None:
        tickers = [f"Asset_{i+1}" for i in range(len(mean_returns))]
    return StatsBundle(tickers, mean_returns, cov_matrix)
