"""
CLI entry point for Monte Carlo portfolio optimization.

Usage:
    python run_cli.py                          # Run with sample data
    python run_cli.py --file prices.csv        # Run on a price file
    python run_cli.py --iterations 5000        # More random portfolios

For installed package, use: mpt-optimize
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from mpt_lab.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
