import numpy as np
import pandas as pd
import pytest

from mpt_lab.core.loader import sample_price_table, SAMPLE_TICKERS
from mpt_lab.core.returns import calculate_returns
from mpt_lab.core.statistics import compute_stats_from_returns, stats_from_arrays


def make_prices(rows, tickers, start='2023-01-01'):
    dates = pd.date_range(start, periods=len(rows), freq='D', name='Date')
    return pd.DataFrame(rows, index=dates, columns=tickers, dtype=float)


@pytest.fixture
def sample_prices():
    return sample_price_table()


@pytest.fixture
def tickers():
    return list(SAMPLE_TICKERS)


@pytest.fixture
def sample_stats(sample_prices, tickers):
    return compute_stats_from_returns(calculate_returns(sample_prices, tickers), tickers)


@pytest.fixture
def two_asset_stats():
    return stats_from_arrays(
        [0.08, 0.12],
        [[0.04, -0.01],
         [-0.01, 0.09]],
        ['A', 'B']
    )


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
