"""
Data Loader Module for Portfolio Optimization
==============================================

This module turns the various price sources into a price table the engine
can consume:
- CSV and Excel files laid out as "Date, Ticker1, Ticker2, ..."
- Per-ticker series fetched independently (merged onto one date axis)
- The built-in 20-day SPY/TLT/GLD/BTC sample
- A synthetic random-walk history for offline demos

A price table is a pandas DataFrame indexed by strictly ascending dates
with one column per ticker. Missing or non-numeric prices are kept as NaN;
deciding what to do with them is the return calculator's job.
"""

import logging
import warnings
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SAMPLE_TICKERS = ['SPY', 'TLT', 'GLD', 'BTC']

_SAMPLE_PRICES = [
    # SPY, TLT, GLD, BTC
    (380, 100, 170, 16500),
    (382, 101, 171, 16600),
    (381, 102, 172, 16700),
    (385, 103, 171, 16800),
    (383, 102, 170, 16900),
    (389, 104, 173, 17000),
    (390, 105, 174, 17200),
    (392, 104, 175, 17400),
    (395, 103, 176, 18000),
    (396, 102, 177, 19000),
    (398, 101, 178, 20000),
    (399, 100, 179, 21000),
    (400, 102, 180, 20500),
    (395, 103, 181, 20800),
    (398, 104, 182, 21200),
    (405, 106, 180, 22000),
    (410, 108, 179, 23000),
    (408, 107, 178, 22500),
    (406, 105, 180, 22800),
    (412, 104, 182, 23500),
]


def validate_price_table(prices: pd.DataFrame, tickers: Sequence[str]) -> pd.DataFrame:
    """
    Check a price table and return its numeric view for the given tickers.

    Checks:
    - At least one ticker, no duplicates
    - Every ticker is a column of the table
    - Dates are unique and strictly ascending

    Args:
        prices: Price table indexed by date
        tickers: Tickers to extract, in order

    Returns:
        Float DataFrame with one column per ticker; invalid entries are NaN

    Raises:
        ValueError: If any check fails
    """
    tickers = list(tickers)

    if not tickers:
        raise ValueError("At least one ticker is required")
    if len(set(tickers)) != len(tickers):
        raise ValueError(f"Duplicate tickers: {tickers}")

    missing = [t for t in tickers if t not in prices.columns]
    if missing:
        raise ValueError(f"Tickers not found in price table: {', '.join(missing)}")

    if not prices.index.is_unique:
        raise ValueError("Price table contains duplicate dates")
    if not prices.index.is_monotonic_increasing:
        raise ValueError("Price table dates must be in ascending order")

    return prices[tickers].apply(pd.to_numeric, errors='coerce').astype(float)


class DataLoader:
    """
    Loads price tables from Excel and CSV files.

    The first column (or the one named by date_column) holds dates; every
    other column is treated as a ticker.

    Example:
        >>> loader = DataLoader()
        >>> prices = loader.load_prices("prices.csv")
        >>> loader.tickers
        ['SPY', 'TLT']
    """

    def __init__(self):
        self.tickers = []

    def load_prices(
        self,
        file_path: str,
        sheet_name: Optional[str] = None,
        date_column: Optional[str] = None
    ) -> pd.DataFrame:
        """
        Load a price table from file.

        Args:
            file_path: Path to a .csv, .xlsx or .xls file
            sheet_name: Sheet for Excel files (default: first sheet)
            date_column: Name of the date column (default: first column)

        Returns:
            Price table sorted by ascending date

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file type is unsupported or has no ticker columns
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        if path.suffix.lower() in ['.xlsx', '.xls']:
            df = pd.read_excel(path, sheet_name=sheet_name if sheet_name else 0)
        elif path.suffix.lower() == '.csv':
            df = pd.read_csv(path, skipinitialspace=True)
        else:
            raise ValueError(f"Unsupported file type: {path.suffix}")

        prices = self.parse_price_frame(df, date_column)
        logger.info(f"Loaded {len(prices)} rows for {len(self.tickers)} tickers from {path.name}")
        return prices

    def parse_price_frame(self, df: pd.DataFrame, date_column: Optional[str] = None) -> pd.DataFrame:
        """
        Turn a raw "Date, Ticker1, Ticker2, ..." frame into a price table.

        Rows whose date cannot be parsed are dropped with a warning.
        """
        df = df.copy()
        df.columns = [str(col).strip() for col in df.columns]

        if date_column is None:
            date_column = df.columns[0]
        elif date_column not in df.columns:
            raise ValueError(f"Date column not found: {date_column}")

        tickers = [col for col in df.columns if col != date_column]
        if not tickers:
            raise ValueError("No ticker columns found; expected format: Date, Ticker1, Ticker2, ...")

        dates = pd.to_datetime(df[date_column], errors='coerce')
        bad_dates = int(dates.isna().sum())
        if bad_dates:
            warnings.warn(f"Dropping {bad_dates} row(s) with an unparseable date")

        prices = df.loc[dates.notna(), tickers].apply(pd.to_numeric, errors='coerce')
        prices.index = pd.DatetimeIndex(dates[dates.notna()], name='Date')
        prices = prices.sort_index().astype(float)

        self.tickers = tickers
        return prices


def sample_price_table() -> pd.DataFrame:
    """
    The built-in demo table: 20 daily closes for SPY, TLT, GLD and BTC.

    Returns:
        Price table indexed 2023-01-01 through 2023-01-20
    """
    dates = pd.date_range('2023-01-01', periods=len(_SAMPLE_PRICES), freq='D', name='Date')
    return pd.DataFrame(_SAMPLE_PRICES, index=dates, columns=SAMPLE_TICKERS, dtype=float)


def generate_mock_history(
    tickers: Sequence[str],
    n_days: int = 252,
    rng=None,
    end=None
) -> pd.DataFrame:
    """
    Generate a synthetic daily price history.

    Each ticker starts uniformly in [100, 500) and compounds a daily change
    of 0.0005 + U(-0.02, 0.02). The dates are the n_days calendar days
    before `end`.

    Args:
        tickers: Ticker names
        n_days: Number of rows (default: 252, one trading year)
        rng: numpy Generator, integer seed, or None
        end: Day after the last row (default: today)

    Returns:
        Price table with one column per ticker
    """
    if n_days < 1:
        raise ValueError(f"n_days must be positive, got {n_days}")
    tickers = list(tickers)
    rng = np.random.default_rng(rng)

    volatility = 0.02
    drift = 0.0005

    start_prices = 100 + rng.random(len(tickers)) * 400
    changes = drift + (rng.random((n_days, len(tickers))) - 0.5) * 2 * volatility
    paths = start_prices * np.cumprod(1 + changes, axis=0)

    end = pd.Timestamp.today().normalize() if end is None else pd.Timestamp(end)
    dates = pd.date_range(end=end - pd.Timedelta(days=1), periods=n_days, freq='D', name='Date')

    return pd.DataFrame(paths, index=dates, columns=tickers)


def merge_price_series(series_by_ticker: Mapping[str, Mapping]) -> pd.DataFrame:
    """
    Align independently retrieved price series onto one date axis.

    Dates are the sorted union of every date with a valid price for at least
    one ticker; a ticker without a price on a given date gets NaN.

    Args:
        series_by_ticker: Mapping of ticker -> {date: price}

    Returns:
        Price table with columns in the mapping's order

    Raises:
        ValueError: If no valid price was supplied at all
    """
    columns: Dict[str, pd.Series] = {}
    for ticker, series in series_by_ticker.items():
        values = pd.to_numeric(pd.Series(series, dtype=object), errors='coerce').dropna()
        values.index = pd.to_datetime(values.index)
        columns[ticker] = values.astype(float)

    if not columns or all(s.empty for s in columns.values()):
        raise ValueError("No price data supplied")

    merged = pd.DataFrame(columns).sort_index()
    merged.index.name = 'Date'
    return merged


def tickers_from_string(text: str) -> List[str]:
    """Parse a comma-separated ticker list, upper-casing and dropping blanks."""
    return [t.strip().upper() for t in text.split(',') if t.strip()]
