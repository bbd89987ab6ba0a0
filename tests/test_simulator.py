import threading

import numpy as np
import pytest

from mpt_lab.core import simulator
from mpt_lab.core.exceptions import DegenerateWeightsError, SimulationCancelled
from mpt_lab.core.simulator import (
    SimulatedPortfolio,
    SimulationResult,
    evaluate_portfolio,
    normalize_weights,
    shard_sizes,
    simulate_portfolios,
    simulate_sharded,
)
from mpt_lab.core.statistics import stats_from_arrays


@pytest.mark.parametrize("sampler", ["uniform", "dirichlet"])
def test_weights_are_long_only_and_fully_invested(sample_stats, sampler):
    result = simulate_portfolios(sample_stats, 500, 0.02, rng=3, sampler=sampler)

    weights = result.weights_matrix()
    assert weights.shape == (500, 4)
    np.testing.assert_allclose(weights.sum(axis=1), 1.0, atol=1e-9)
    assert np.all(weights >= 0) and np.all(weights <= 1)


def test_single_asset_volatility_is_exact(sample_prices):
    from mpt_lab.core.returns import calculate_returns
    from mpt_lab.core.statistics import compute_stats_from_returns

    stats = compute_stats_from_returns(calculate_returns(sample_prices, ['BTC']), ['BTC'])

    result = simulate_portfolios(stats, 50, 0.02, rng=0)

    for portfolio in result:
        assert portfolio.weights.tolist() == [1.0]
        assert portfolio.volatility == np.sqrt(stats.cov_matrix[0][0])
        assert portfolio.expected_return == stats.mean_returns[0]


def test_variance_uses_cross_terms(two_asset_stats):
    portfolio = evaluate_portfolio(np.array([0.5, 0.5]), two_asset_stats, 0.02)

    # 0.25*0.04 + 0.25*0.09 + 2*0.25*(-0.01)
    assert portfolio.volatility == pytest.approx(np.sqrt(0.0275))
    assert portfolio.expected_return == pytest.approx(0.10)
    assert portfolio.sharpe == pytest.approx(0.08 / np.sqrt(0.0275))


def test_zero_volatility_leaves_sharpe_undefined():
    stats = stats_from_arrays([0.05, 0.07], np.zeros((2, 2)), ['A', 'B'])

    result = simulate_portfolios(stats, 20, 0.02, rng=1)

    assert len(result) == 20
    assert all(p.volatility == 0.0 and not p.sharpe_defined for p in result)
    assert np.isnan(result.sharpe_ratios()).all()


def test_slightly_negative_variance_is_clamped():
    stats = stats_from_arrays([0.05], [[-1e-18]], ['A'])

    portfolio = evaluate_portfolio(np.array([1.0]), stats, 0.02)

    assert portfolio.volatility == 0.0
    assert portfolio.sharpe is None


def test_normalize_rejects_zero_sum():
    with pytest.raises(DegenerateWeightsError):
        normalize_weights(np.zeros(3))

    np.testing.assert_allclose(normalize_weights([1.0, 3.0]), [0.25, 0.75])


def test_degenerate_draws_are_skipped(monkeypatch, two_asset_stats):
    calls = {'n': 0}

    def every_other_zero(rng, n_assets):
        calls['n'] += 1
        return np.zeros(n_assets) if calls['n'] % 2 == 0 else rng.random(n_assets)

    monkeypatch.setitem(simulator.WEIGHT_SAMPLERS, 'flaky', every_other_zero)

    result = simulate_portfolios(two_asset_stats, 10, 0.02, rng=5, sampler='flaky')

    assert len(result) == 5
    assert result.skipped == 5
    assert result[1:3].skipped == 5
    assert result[1:3].tickers == result.tickers


def test_all_degenerate_draws_give_empty_result(monkeypatch, two_asset_stats):
    monkeypatch.setitem(simulator.WEIGHT_SAMPLERS, 'zeros', lambda rng, n: np.zeros(n))

    result = simulate_portfolios(two_asset_stats, 10, 0.02, rng=5, sampler='zeros')

    assert len(result) == 0
    assert result.skipped == 10
    assert result.to_frame().empty


def test_same_seed_reproduces_result(sample_stats):
    first = simulate_portfolios(sample_stats, 300, 0.02, rng=np.random.default_rng(42))
    second = simulate_portfolios(sample_stats, 300, 0.02, rng=np.random.default_rng(42))
    other = simulate_portfolios(sample_stats, 300, 0.02, rng=np.random.default_rng(43))

    assert first == second
    assert first != other


def test_cancellation_is_checked_between_iterations(two_asset_stats):
    polls = {'n': 0}

    def cancel_after_ten():
        polls['n'] += 1
        return polls['n'] > 10

    with pytest.raises(SimulationCancelled) as excinfo:
        simulate_portfolios(two_asset_stats, 100, 0.02, rng=0, should_cancel=cancel_after_ten)

    assert excinfo.value.completed == 10


def test_sharded_cancellation_counts_every_shard(two_asset_stats):
    lock = threading.Lock()
    polls = {'n': 0}

    def cancel_after_fifty():
        with lock:
            polls['n'] += 1
            return polls['n'] > 50

    with pytest.raises(SimulationCancelled) as excinfo:
        simulate_sharded(two_asset_stats, 200, 0.02, seed=0, n_shards=2, should_cancel=cancel_after_fifty)

    assert excinfo.value.completed == 50


def test_rejects_bad_inputs(two_asset_stats):
    with pytest.raises(ValueError):
        simulate_portfolios(two_asset_stats, 0)
    with pytest.raises(ValueError, match="sampler"):
        simulate_portfolios(two_asset_stats, 10, sampler='sobol')

    asymmetric = stats_from_arrays([0.1, 0.1], [[0.04, 0.01], [0.02, 0.04]])
    with pytest.raises(ValueError, match="symmetric"):
        simulate_portfolios(asymmetric, 10)


def test_shard_sizes():
    assert shard_sizes(10, 3) == [4, 3, 3]
    assert shard_sizes(2, 4) == [1, 1, 0, 0]
    assert sum(shard_sizes(2500, 7)) == 2500
    with pytest.raises(ValueError):
        shard_sizes(10, 0)


def test_sharded_run_is_deterministic_and_complete(sample_stats):
    first = simulate_sharded(sample_stats, 1001, 0.02, seed=99, n_shards=4)
    second = simulate_sharded(sample_stats, 1001, 0.02, seed=99, n_shards=4, max_workers=1)

    assert len(first) == 1001
    assert first == second
    np.testing.assert_allclose(first.weights_matrix().sum(axis=1), 1.0, atol=1e-9)


def test_shards_use_independent_streams(sample_stats):
    result = simulate_sharded(sample_stats, 200, 0.02, seed=5, n_shards=2)

    assert not np.array_equal(result[0].weights, result[100].weights)


def test_result_is_immutable(sample_stats):
    result = simulate_portfolios(sample_stats, 5, 0.02, rng=0)

    with pytest.raises(TypeError):
        result[0] = result[1]
    with pytest.raises(ValueError):
        result[0].weights[0] = 0.5
    with pytest.raises(AttributeError):
        result[0].sharpe = 1e9
    with pytest.raises(AttributeError):
        result.tickers = ['X']
    with pytest.raises(AttributeError):
        result.skipped = 3
    assert isinstance(result.tickers, tuple)


def test_to_frame_columns(sample_stats, tickers):
    result = simulate_portfolios(sample_stats, 25, 0.02, rng=0)

    frame = result.to_frame()

    assert list(frame.columns) == ['return', 'volatility', 'sharpe'] + tickers
    assert len(frame) == 25
    assert frame['volatility'].iloc[3] == result[3].volatility


def test_concat_requires_matching_tickers():
    a = SimulationResult([SimulatedPortfolio([1.0], 0.1, 0.2, 0.4)], ['A'])
    b = SimulationResult([SimulatedPortfolio([1.0], 0.1, 0.2, 0.4)], ['B'])

    assert len(SimulationResult.concat([a, a])) == 2
    with pytest.raises(ValueError):
        SimulationResult.concat([a, b])


def test_weights_dict():
    portfolio = SimulatedPortfolio([0.25, 0.75], 0.1, 0.2, None)

    assert portfolio.weights_dict(['X', 'Y']) == {'X': 0.25, 'Y': 0.75}
    assert 'undefined' in repr(portfolio)
