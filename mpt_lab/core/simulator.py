"""
Monte Carlo Simulator
=====================

Samples random long-only, fully-invested weight vectors and evaluates each
one against the annualized statistics:

    mu_p    = w^T * mu
    sigma_p = sqrt(max(w^T * Sigma * w, 0))
    Sharpe  = (mu_p - rf) / sigma_p

The variance is the full quadratic form, cross terms included. The cloud of
sampled portfolios approximates the efficient frontier along its upper-left
boundary; coverage improves with the iteration count but nothing here solves
for the frontier exactly.

Weight sampling:
    'uniform'   - k independent U[0, 1) draws divided by their sum. Cheap,
                  but concentrates mass around balanced portfolios.
    'dirichlet' - Dirichlet(1, ..., 1), uniform over the weight simplex.

The random source is always passed in. A sharded run gives every shard its
own generator spawned from a single SeedSequence, and shard outputs are
concatenated in shard order, so a fixed seed reproduces the same result.
"""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence as SequenceType, Tuple, Union

import numpy as np
import pandas as pd

from mpt_lab.core.config import DEFAULT_RISK_FREE_RATE
from mpt_lab.core.exceptions import DegenerateWeightsError, SimulationCancelled
from mpt_lab.core.statistics import StatsBundle

logger = logging.getLogger(__name__)

RandomSource = Union[np.random.Generator, int, None]


# =============================================================================
# WEIGHT SAMPLING
# =============================================================================

def uniform_weights(rng: np.random.Generator, n_assets: int) -> np.ndarray:
    """Draw raw (unnormalized) weights from U[0, 1)."""
    return rng.random(n_assets)


def dirichlet_weights(rng: np.random.Generator, n_assets: int) -> np.ndarray:
    """Draw weights uniformly over the simplex."""
    return rng.dirichlet(np.ones(n_assets))


WEIGHT_SAMPLERS: Dict[str, Callable[[np.random.Generator, int], np.ndarray]] = {
    'uniform': uniform_weights,
    'dirichlet': dirichlet_weights,
}


def get_sampler(name: str) -> Callable[[np.random.Generator, int], np.ndarray]:
    try:
        return WEIGHT_SAMPLERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown weight sampler: {name}. Use one of {', '.join(WEIGHT_SAMPLERS)}"
        ) from None


def normalize_weights(raw_weights: np.ndarray) -> np.ndarray:
    """
    Scale raw weights so they sum to 1.

    Args:
        raw_weights: Non-negative raw draws

    Returns:
        Weight vector summing to 1

    Raises:
        DegenerateWeightsError: If the draws sum to zero
    """
    raw_weights = np.asarray(raw_weights, dtype=float)
    total = raw_weights.sum()
    if total == 0:
        raise DegenerateWeightsError("Raw weight draw sums to zero")
    return raw_weights / total


# =============================================================================
# RESULT TYPES
# =============================================================================

class SimulatedPortfolio:
    """
    One sampled portfolio and its annualized statistics. Read-only.

    Attributes:
        weights (np.ndarray): Read-only weights aligned to the ticker order
        expected_return (float): Annualized expected return
        volatility (float): Annualized standard deviation
        sharpe (Optional[float]): Sharpe ratio, None when volatility is zero
    """

    __slots__ = ('_weights', '_expected_return', '_volatility', '_sharpe')

    def __init__(
        self,
        weights: np.ndarray,
        expected_return: float,
        volatility: float,
        sharpe: Optional[float]
    ):
        weights = np.array(weights, dtype=float)
        weights.setflags(write=False)
        self._weights = weights
        self._expected_return = float(expected_return)
        self._volatility = float(volatility)
        self._sharpe = None if sharpe is None else float(sharpe)

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def expected_return(self) -> float:
        return self._expected_return

    @property
    def volatility(self) -> float:
        return self._volatility

    @property
    def sharpe(self) -> Optional[float]:
        return self._sharpe

    @property
    def sharpe_defined(self) -> bool:
        return self._sharpe is not None

    def weights_dict(self, tickers: SequenceType[str]) -> Dict[str, float]:
        """Map each ticker to its weight."""
        return {ticker: float(w) for ticker, w in zip(tickers, self._weights)}

    def __eq__(self, other):
        if not isinstance(other, SimulatedPortfolio):
            return NotImplemented
        return (
            np.array_equal(self.weights, other.weights)
            and self.expected_return == other.expected_return
            and self.volatility == other.volatility
            and self.sharpe == other.sharpe
        )

    __hash__ = None

    def __repr__(self):
        sharpe = f"{self.sharpe:.4f}" if self.sharpe_defined else "undefined"
        return (
            f"SimulatedPortfolio(return={self.expected_return:.4f}, "
            f"volatility={self.volatility:.4f}, sharpe={sharpe})"
        )


class SimulationResult(Sequence):
    """
    Immutable, generation-ordered sequence of simulated portfolios.

    Attributes:
        tickers (Tuple[str, ...]): Ticker order of every weight vector
        skipped (int): Iterations discarded because of a degenerate draw
    """

    __slots__ = ('_portfolios', '_tickers', '_skipped')

    def __init__(self, portfolios, tickers: SequenceType[str], skipped: int = 0):
        self._portfolios = tuple(portfolios)
        self._tickers = tuple(tickers)
        self._skipped = int(skipped)

    @property
    def tickers(self) -> Tuple[str, ...]:
        return self._tickers

    @property
    def skipped(self) -> int:
        return self._skipped

    def __getitem__(self, index):
        if isinstance(index, slice):
            return SimulationResult(self._portfolios[index], self._tickers, skipped=self._skipped)
        return self._portfolios[index]

    def __len__(self):
        return len(self._portfolios)

    def __eq__(self, other):
        if not isinstance(other, SimulationResult):
            return NotImplemented
        return self.tickers == other.tickers and self._portfolios == other._portfolios

    __hash__ = None

    def __repr__(self):
        return f"SimulationResult({len(self)} portfolios, tickers={self.tickers})"

    @classmethod
    def concat(cls, results: List["SimulationResult"]) -> "SimulationResult":
        """Join results in the order given; all must share one ticker order."""
        if not results:
            raise ValueError("Nothing to concatenate")
        tickers = results[0].tickers
        for result in results[1:]:
            if result.tickers != tickers:
                raise ValueError("Cannot concatenate results with different ticker orders")
        portfolios = [p for result in results for p in result]
        skipped = sum(result.skipped for result in results)
        return cls(portfolios, tickers, skipped=skipped)

    def returns(self) -> np.ndarray:
        return np.array([p.expected_return for p in self._portfolios])

    def volatilities(self) -> np.ndarray:
        return np.array([p.volatility for p in self._portfolios])

    def sharpe_ratios(self) -> np.ndarray:
        """Sharpe ratios with NaN where the ratio is undefined."""
        return np.array([p.sharpe if p.sharpe_defined else np.nan for p in self._portfolios])

    def weights_matrix(self) -> np.ndarray:
        """Weights stacked into an (n_portfolios, n_assets) array."""
        if not self._portfolios:
            return np.empty((0, len(self.tickers)))
        return np.vstack([p.weights for p in self._portfolios])

    def to_frame(self) -> pd.DataFrame:
        """
        Flatten the cloud into a DataFrame for charting or export.

        Columns: return, volatility, sharpe, then one weight column per ticker.
        """
        frame = pd.DataFrame({
            'return': self.returns(),
            'volatility': self.volatilities(),
            'sharpe': self.sharpe_ratios(),
        })
        weights = pd.DataFrame(self.weights_matrix(), columns=list(self.tickers))
        return pd.concat([frame, weights], axis=1)


# =============================================================================
# SIMULATION
# =============================================================================

def check_stats(stats: StatsBundle):
    """Reject statistics the simulation cannot evaluate meaningfully."""
    if stats.n_assets == 0:
        raise ValueError("Statistics contain no assets")
    if not np.all(np.isfinite(stats.mean_returns)):
        raise ValueError("Expected returns contain NaN or Inf")
    if not np.all(np.isfinite(stats.cov_matrix)):
        raise ValueError("Covariance matrix contains NaN or Inf")
    if not np.allclose(stats.cov_matrix, stats.cov_matrix.T):
        raise ValueError("Covariance matrix is not symmetric")


def evaluate_portfolio(
    weights: np.ndarray,
    stats: StatsBundle,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
) -> SimulatedPortfolio:
    """
    Compute return, volatility and Sharpe ratio of one weight vector.

    Args:
        weights: Normalized weights aligned to stats.tickers
        stats: Annualized statistics
        risk_free_rate: Annual risk-free rate

    Returns:
        SimulatedPortfolio (sharpe is None when volatility is exactly zero)
    """
    expected_return = np.dot(weights, stats.mean_returns)
    variance = np.dot(weights, np.dot(stats.cov_matrix, weights))

    # PSD in theory, may dip below zero from rounding
    volatility = np.sqrt(max(variance, 0.0))

    if volatility == 0:
        sharpe = None
    else:
        sharpe = (expected_return - risk_free_rate) / volatility

    return SimulatedPortfolio(weights, expected_return, volatility, sharpe)


def simulate_portfolios(
    stats: StatsBundle,
    iterations: int,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    rng: RandomSource = None,
    sampler: str = 'uniform',
    should_cancel: Optional[Callable[[], bool]] = None
) -> SimulationResult:
    """
    Run the Monte Carlo search on a single random stream.

    Args:
        stats: Annualized statistics
        iterations: Number of draws (degenerate draws are skipped, not retried)
        risk_free_rate: Annual risk-free rate
        rng: numpy Generator, integer seed, or None for fresh entropy
        sampler: Name of the weight sampler ('uniform' or 'dirichlet')
        should_cancel: Optional callable polled before every iteration

    Returns:
        SimulationResult with one entry per valid draw, in generation order

    Raises:
        SimulationCancelled: If should_cancel returns True
    """
    if iterations <= 0:
        raise ValueError(f"iterations must be a positive integer, got {iterations}")
    check_stats(stats)

    rng = np.random.default_rng(rng)
    draw = get_sampler(sampler)
    n_assets = stats.n_assets

    portfolios = []
    skipped = 0

    for i in range(iterations):
        if should_cancel is not None and should_cancel():
            raise SimulationCancelled(i)

        try:
            weights = normalize_weights(draw(rng, n_assets))
        except DegenerateWeightsError:
            skipped += 1
            logger.debug(f"Iteration {i}: degenerate weight draw skipped")
            continue

        portfolios.append(evaluate_portfolio(weights, stats, risk_free_rate))

    logger.debug(
        f"Simulated {len(portfolios)} portfolios over {n_assets} assets "
        f"({skipped} degenerate draws skipped)"
    )
    return SimulationResult(portfolios, stats.tickers, skipped=skipped)


def shard_sizes(iterations: int, n_shards: int) -> List[int]:
    """Split an iteration count as evenly as possible; earlier shards take the remainder."""
    if n_shards < 1:
        raise ValueError(f"n_shards must be at least 1, got {n_shards}")
    base, extra = divmod(iterations, n_shards)
    return [base + (1 if i < extra else 0) for i in range(n_shards)]


def simulate_sharded(
    stats: StatsBundle,
    iterations: int,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    seed: Optional[int] = None,
    n_shards: int = 2,
    sampler: str = 'uniform',
    max_workers: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None
) -> SimulationResult:
    """
    Run the Monte Carlo search split across independent random streams.

    Each shard gets its own Generator spawned from SeedSequence(seed), and
    the shard results are concatenated in shard order. With a fixed seed
    and shard count the output is identical from run to run regardless of
    thread scheduling.

    Args:
        stats: Annualized statistics
        iterations: Total number of draws across all shards
        risk_free_rate: Annual risk-free rate
        seed: Root seed (None for fresh entropy)
        n_shards: Number of independent streams
        sampler: Name of the weight sampler
        max_workers: Thread pool size (default: n_shards)
        should_cancel: Optional callable polled between iterations in every shard;
            on cancellation the count reported covers all shards

    Returns:
        Concatenated SimulationResult
    """
    if iterations <= 0:
        raise ValueError(f"iterations must be a positive integer, got {iterations}")
    check_stats(stats)

    sizes = [size for size in shard_sizes(iterations, n_shards) if size > 0]
    streams = [np.random.default_rng(child) for child in np.random.SeedSequence(seed).spawn(len(sizes))]

    def run_shard(index: int) -> SimulationResult:
        logger.debug(f"Shard {index}: {sizes[index]} iterations")
        return simulate_portfolios(
            stats, sizes[index], risk_free_rate,
            rng=streams[index], sampler=sampler, should_cancel=should_cancel
        )

    with ThreadPoolExecutor(max_workers=max_workers or len(sizes)) as executor:
        futures = [executor.submit(run_shard, index) for index in range(len(sizes))]

    # Every shard has finished here; cancellation reports the run-wide count
    shard_results = []
    completed = 0
    cancelled = False
    for index, future in enumerate(futures):
        try:
            shard_results.append(future.result())
            completed += sizes[index]
        except SimulationCancelled as e:
            completed += e.completed
            cancelled = True

    if cancelled:
        raise SimulationCancelled(completed)
    return SimulationResult.concat(shard_results)
