"""
Main Runner Script for Portfolio Optimization
==============================================

This script runs the Monte Carlo optimization workflow:
1. Loading a price table (file, synthetic history, or built-in sample)
2. Computing annualized return statistics
3. Sampling random portfolios
4. Selecting the maximum Sharpe and minimum volatility portfolios
5. Logging a report and optionally exporting the simulated cloud

Usage:
    mpt-optimize                                  # Run with the built-in sample
    mpt-optimize --file prices.csv                # Run on a Date, Ticker1, ... file
    mpt-optimize --tickers AAPL,MSFT --mock 252   # Run on synthetic history
    mpt-optimize --iterations 5000 --seed 42      # Reproducible larger run
"""

import sys
import argparse
import logging
from datetime import datetime
from typing import List, Optional
from pathlib import Path

from mpt_lab.core.config import AnalysisConfig, DEFAULT_ITERATIONS, DEFAULT_RISK_FREE_RATE
from mpt_lab.core.exceptions import PortfolioError
from mpt_lab.core.loader import (
    DataLoader,
    generate_mock_history,
    sample_price_table,
    tickers_from_string,
)
from mpt_lab.core.optimizer import OptimizationResult, PortfolioOptimizer
from mpt_lab.core.simulator import WEIGHT_SAMPLERS


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "portfolio_optimizer",
    log_dir: Optional[str] = None,
    log_to_file: bool = True,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Sets up the package logger to write to both file and console.

    The handlers sit on the top-level "mpt_lab" logger so messages from the
    core modules end up in the same places.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: <package root>/logs)
        log_to_file: If False, only log to the console
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("mpt_lab")
    logger.setLevel(level)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if log_to_file:
        if log_dir is None:
            log_dir = Path(__file__).parent.parent.parent / "logs"
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
        log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

        file_handler = logging.FileHandler(log_filename, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# PROGRESS TRACKING
# =============================================================================

class RunCheckpoint:
    """
    Tracks which steps of a run have completed and how long it took.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.n_completed = 0
        self.start_time = datetime.now()

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str):
        """Mark a step as completed."""
        self.n_completed += 1
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def elapsed_seconds(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    def log_final_report(self):
        """Log final run report."""
        self.logger.info("=" * 60)
        self.logger.info("  OPTIMIZATION COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {self.n_completed}")
        self.logger.info(f"  Total time: {self.elapsed_seconds():.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# MAIN ANALYSIS FUNCTIONS
# =============================================================================

def load_price_table(args: argparse.Namespace, logger: logging.Logger):
    """
    Resolve the price source from the command-line arguments.

    Returns:
        Tuple of (price table, tickers)
    """
    requested = tickers_from_string(args.tickers) if args.tickers else None

    if args.file:
        logger.info(f"Loading prices from: {args.file}")
        loader = DataLoader()
        prices = loader.load_prices(args.file, sheet_name=args.sheet)
        return prices, requested or loader.tickers

    if args.mock is not None:
        if not requested:
            raise ValueError("--mock needs --tickers")
        logger.info(f"Generating {args.mock} days of synthetic prices for {', '.join(requested)}")
        return generate_mock_history(requested, n_days=args.mock, rng=args.seed), requested

    logger.info("No file specified. Using sample data...")
    prices = sample_price_table()
    return prices, requested or list(prices.columns)


def run_analysis(
    prices,
    tickers: List[str],
    config: AnalysisConfig,
    export_csv: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> OptimizationResult:
    """
    Run one optimization and log the outcome.

    Args:
        prices: Price table indexed by ascending date
        tickers: Tickers to optimize over
        config: Run assumptions
        export_csv: Optional path for the simulated portfolios
        logger: Logger instance

    Returns:
        OptimizationResult
    """
    if logger is None:
        logger = logging.getLogger("mpt_lab")

    checkpoint = RunCheckpoint(logger)

    logger.info("=" * 70)
    logger.info("  MONTE CARLO PORTFOLIO OPTIMIZATION")
    logger.info("=" * 70)
    logger.info(f"  Assets: {', '.join(tickers)}")
    logger.info(f"  Price rows: {len(prices)}")
    for line in config.describe().splitlines():
        logger.info(f"  {line}")
    logger.info("=" * 70)

    optimizer = PortfolioOptimizer(tickers, config)

    checkpoint.start_step("Run Optimization")
    result = optimizer.run(prices)
    checkpoint.complete_step("Run Optimization")

    for line in result.summary_report().splitlines():
        logger.info(line)

    if result.n_return_rows < 30:
        logger.warning(
            f"Statistics are estimated from only {result.n_return_rows} return periods"
        )

    if export_csv:
        checkpoint.start_step("Export Simulation")
        export_path = Path(export_csv)
        export_path.parent.mkdir(parents=True, exist_ok=True)
        result.simulation.to_frame().to_csv(export_path, index=False)
        logger.info(f"Saved: {export_path}")
        checkpoint.complete_step("Export Simulation")

    checkpoint.log_final_report()
    return result


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Monte Carlo Portfolio Optimization Tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mpt-optimize                                  # Run with sample data
  mpt-optimize --file prices.csv                # Analyze a price file
  mpt-optimize --file prices.xlsx --sheet Data --tickers SPY,TLT
  mpt-optimize --tickers AAPL,MSFT,GOOG --mock 252 --seed 1
        """
    )

    parser.add_argument('--file', '-f', type=str,
                        help='CSV or Excel file laid out as Date, Ticker1, Ticker2, ...')
    parser.add_argument('--sheet', '-s', type=str, default=None,
                        help='Sheet name for Excel files (default: first sheet)')
    parser.add_argument('--tickers', '-t', type=str, default=None,
                        help='Comma-separated tickers to use (default: all columns)')
    parser.add_argument('--mock', type=int, default=None, metavar='DAYS',
                        help='Generate DAYS of synthetic prices for --tickers')
    parser.add_argument('--rf-rate', '-r', type=float, default=DEFAULT_RISK_FREE_RATE,
                        help='Annual risk-free rate (default: 0.02 = 2%%)')
    parser.add_argument('--iterations', '-n', type=int, default=DEFAULT_ITERATIONS,
                        help='Number of random portfolios (default: 2500)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for a reproducible run')
    parser.add_argument('--sampler', choices=sorted(WEIGHT_SAMPLERS), default='uniform',
                        help='Weight sampler (default: uniform)')
    parser.add_argument('--shards', type=int, default=1,
                        help='Independent random streams to split the run over (default: 1)')
    parser.add_argument('--export-csv', type=str, default=None,
                        help='Write every simulated portfolio to this CSV file')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Directory for log files')
    parser.add_argument('--no-log-file', action='store_true',
                        help='Log to the console only')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the portfolio optimization script."""
    args = build_parser().parse_args(argv)

    logger = setup_logger(
        "portfolio_optimization",
        log_dir=args.log_dir,
        log_to_file=not args.no_log_file,
        level=logging.DEBUG if args.verbose else logging.INFO
    )

    try:
        config = AnalysisConfig(
            risk_free_rate=args.rf_rate,
            iterations=args.iterations,
            weight_sampler=args.sampler,
            seed=args.seed,
            n_shards=args.shards
        )
        prices, tickers = load_price_table(args, logger)
        run_analysis(prices, tickers, config, export_csv=args.export_csv, logger=logger)

        logger.info("Optimization completed successfully!")
        return 0

    except (PortfolioError, ValueError, FileNotFoundError) as e:
        logger.error(f"Optimization failed: {e}")
        logger.debug("Traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
