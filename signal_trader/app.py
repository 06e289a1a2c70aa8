"""
Application entry point.

This module defines a simple command‑line interface for replaying the
strategy over historical data and writing the resulting reports.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .config.schema import load_config
from .execution.backtest_exec import BacktestEngine
from .reporting.report import generate_backtest_report


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Parse command‑line arguments and run the backtest."""
    parser = argparse.ArgumentParser(description="Indicator-driven crypto strategy")
    parser.add_argument('mode', choices=['backtest'], help="Operating mode")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('--out', default='results', help="Directory for report files")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    config = load_config(args.config)

    logging.info("Running backtest for %s...", config.symbol)
    engine = BacktestEngine(config)
    trades, equity_curve, plots = engine.run()
    metrics = generate_backtest_report(trades, equity_curve, out_dir=args.out, plots=plots)
    logging.info(
        "Backtest complete: %d trades, total return %.2f%%. Results saved to '%s'.",
        metrics['num_trades'],
        metrics['total_return'] * 100,
        args.out,
    )


if __name__ == '__main__':
    main()
