import numpy as np
import pytest

from mpt_lab.core.config import AnalysisConfig
from mpt_lab.core.exceptions import InsufficientDataError, SimulationCancelled
from mpt_lab.core.optimizer import PortfolioOptimizer, run_optimization
from tests.conftest import make_prices


@pytest.fixture
def sample_result(sample_prices, tickers):
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(risk_free_rate=0.02, iterations=2000, seed=11))
    return optimizer.run(sample_prices)


def test_end_to_end_sample(sample_result, tickers):
    simulation = sample_result.simulation

    assert len(simulation) == 2000
    assert sample_result.tickers == tuple(tickers)
    assert sample_result.n_return_rows == 19
    assert np.all(simulation.volatilities() >= 0)
    np.testing.assert_allclose(simulation.weights_matrix().sum(axis=1), 1.0, atol=1e-9)

    best = sample_result.max_sharpe
    assert best.sharpe >= np.nanmax(simulation.sharpe_ratios())
    assert sample_result.min_volatility.volatility == simulation.volatilities().min()


def test_selected_portfolios_come_from_the_cloud(sample_result):
    simulation = sample_result.simulation

    assert any(p is sample_result.max_sharpe for p in simulation)
    assert any(p is sample_result.min_volatility for p in simulation)


def test_seeded_runs_are_identical(sample_prices, tickers):
    config = AnalysisConfig(iterations=800, seed=3)

    first = PortfolioOptimizer(tickers, config).run(sample_prices)
    second = PortfolioOptimizer(tickers, config).run(sample_prices)

    assert first.simulation == second.simulation
    assert first.max_sharpe == second.max_sharpe


def test_each_run_starts_from_scratch(sample_prices, tickers):
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(iterations=600, seed=8))

    first = optimizer.run(sample_prices)
    second = optimizer.run(sample_prices.iloc[:10])

    assert first.n_return_rows == 19
    assert second.n_return_rows == 9
    assert first.simulation is not second.simulation


def test_injected_generator_is_used(sample_prices, tickers):
    config = AnalysisConfig(iterations=600)

    first = PortfolioOptimizer(tickers, config, rng=np.random.default_rng(21)).run(sample_prices)
    second = PortfolioOptimizer(tickers, config, rng=np.random.default_rng(21)).run(sample_prices)

    assert first.simulation == second.simulation


def test_one_row_price_table_is_insufficient(sample_prices, tickers):
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(iterations=500, seed=1))

    with pytest.raises(InsufficientDataError):
        optimizer.run(sample_prices.iloc[:1])


def test_invalid_rows_can_leave_too_little_data(tickers):
    prices = make_prices(
        [[1, 1, 1, 1], [2, 2, np.nan, 2], [3, 3, 3, 3], [4, 4, 4, 4]],
        tickers
    )

    with pytest.raises(InsufficientDataError) as excinfo:
        run_optimization(prices, iterations=500, seed=1)

    assert excinfo.value.n_rows == 1


def test_sharded_config(sample_prices, tickers):
    config = AnalysisConfig(iterations=1000, seed=4, n_shards=3)

    first = PortfolioOptimizer(tickers, config).run(sample_prices)
    second = PortfolioOptimizer(tickers, config).run(sample_prices)

    assert len(first.simulation) == 1000
    assert first.simulation == second.simulation


def test_dirichlet_sampler(sample_prices):
    result = run_optimization(sample_prices, iterations=500, seed=2, weight_sampler='dirichlet')

    np.testing.assert_allclose(result.simulation.weights_matrix().sum(axis=1), 1.0, atol=1e-9)


def test_cancellation_propagates(sample_prices, tickers):
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(iterations=500, seed=1))

    with pytest.raises(SimulationCancelled):
        optimizer.run(sample_prices, should_cancel=lambda: True)


def test_result_tickers_are_detached_from_optimizer(sample_prices, tickers):
    optimizer = PortfolioOptimizer(tickers, AnalysisConfig(iterations=500, seed=4))
    first = optimizer.run(sample_prices)

    with pytest.raises(AttributeError):
        first.tickers.remove('BTC')
    with pytest.raises(AttributeError):
        first.stats.tickers.append('XYZ')

    second = optimizer.run(sample_prices)

    assert optimizer.tickers == tickers
    assert second.tickers == tuple(tickers)
    assert second.optimal_weights().index.tolist() == tickers
    assert second.simulation.weights_matrix().shape == (500, 4)


def test_summary_report_and_weights(sample_result, tickers):
    report = sample_result.summary_report()

    assert "Maximum Sharpe Ratio Portfolio" in report
    assert "Minimum Volatility Portfolio" in report
    for ticker in tickers:
        assert ticker in report

    weights = sample_result.optimal_weights()
    assert list(weights.columns) == ['Max Sharpe', 'Min Volatility']
    assert list(weights.index) == tickers
    np.testing.assert_allclose(weights.sum(), 1.0)


def test_requires_tickers():
    with pytest.raises(ValueError):
        PortfolioOptimizer([])


def test_sharded_run_seeds_from_injected_generator(sample_prices, tickers):
    config = AnalysisConfig(iterations=900, n_shards=3)

    first = PortfolioOptimizer(tickers, config, rng=np.random.default_rng(17)).run(sample_prices)
    second = PortfolioOptimizer(tickers, config, rng=np.random.default_rng(17)).run(sample_prices)

    assert first.simulation == second.simulation
