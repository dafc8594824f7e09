#!/usr/bin/env python
# main.py
"""
Run a tax-optimization analysis and optionally accept the top suggestions.

Usage:
    python main.py                                   # built-in demo portfolio
    python main.py --instruments inst.csv --holdings pos.csv --as-of 2024-06-30
    python main.py --execute-top 2 --report reports/tax_summary.txt
    python main.py --live costs.csv --holdings pos.csv  # prices from Yahoo Finance

CSV columns:
    instruments: ticker,name,sector,price,cost_basis,market_cap,volatility
    holdings:    ticker,shares,acquisition_date
    live costs:  ticker,cost_basis
"""

import argparse
import asyncio
import datetime
import logging
import sys

from config import EngineConfig, ProviderConfig
from data.market_data import YFinanceInstrumentProvider, read_cost_basis_csv
from data.providers import (
    CsvHoldingsProvider,
    CsvInstrumentProvider,
    InMemoryHoldingsProvider,
    InMemoryInstrumentProvider,
    mock_holdings,
    mock_instruments,
)
from reporting.summary_report import format_report, write_summary_report
from session.analysis_session import SessionState
from session.service import TaxOptimizationService


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Tax-loss harvesting and rebalancing suggestions for a portfolio"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--instruments", type=str, default=None, help="Instrument catalog CSV (default: demo data)")
    source.add_argument("--live",        type=str, default=None, help="Cost-basis CSV; prices, sectors and volatility from Yahoo Finance")
    parser.add_argument("--holdings",    type=str, default=None, help="Holdings CSV (default: demo portfolio)")
    parser.add_argument("--as-of",       type=str, default=None, help="Valuation date YYYY-MM-DD (default: today)")
    parser.add_argument("--seed",        type=int, default=7,    help="Seed for the demo catalog")
    parser.add_argument("--latency",     type=float, default=0.0, help="Simulated provider latency in seconds")
    parser.add_argument("--execute-top", type=int, default=0,    help="Accept the top N suggestions, re-analysing after each")
    parser.add_argument("--report",      type=str, default=None, help="Also write the final report to this path")
    parser.add_argument("-v", "--verbose", action="store_true",  help="Debug logging")
    args = parser.parse_args(argv)
    if args.live and not args.holdings:
        parser.error("--live needs --holdings")
    return args


def build_service(args: argparse.Namespace) -> TaxOptimizationService:
    providers = ProviderConfig(fetch_latency=args.latency, trade_latency=args.latency)
    as_of = datetime.date.fromisoformat(args.as_of) if args.as_of else None
    config = EngineConfig(providers=providers, as_of=as_of)

    if args.live:
        instrument_provider = YFinanceInstrumentProvider(read_cost_basis_csv(args.live))
    elif args.instruments:
        instrument_provider = CsvInstrumentProvider(args.instruments, latency=providers.fetch_latency)
    else:
        demo = mock_instruments(seed=args.seed)
        instrument_provider = InMemoryInstrumentProvider(demo, latency=providers.fetch_latency)

    if args.holdings:
        holdings_provider = CsvHoldingsProvider(args.holdings, latency=providers.fetch_latency)
    else:
        holdings_provider = InMemoryHoldingsProvider(mock_holdings(), latency=providers.fetch_latency)

    return TaxOptimizationService(instrument_provider, holdings_provider, config=config)


async def run(args: argparse.Namespace) -> int:
    service = build_service(args)

    status = await service.request_analysis()
    print(format_report(status))

    for _ in range(args.execute_top):
        if status.state != SessionState.COMPLETE or not status.suggestions:
            break
        top = status.suggestions[0]
        outcome = await service.accept_suggestion(top)
        if not outcome.succeeded:
            print(f"\nTrade rejected for {top.ticker}: {outcome.error}")
            break
        print(f"\nExecuted {top.suggestion_id}: sold {top.shares_to_sell} {top.ticker}. "
              f"Holdings now at version {outcome.snapshot.version}.")
        status = await service.request_analysis()
        print(format_report(status))

    if service.trades:
        print(f"\nTrades executed: {len(service.trades)}")
        for trade in service.trades:
            print(f"  {trade['suggestion_id']:<12} sold {trade['shares']:>6,} {trade['ticker']:<8} "
                  f"@ ${trade['price']:,.2f}  realized ${trade['realized_gain']:+,.2f}")

    if args.report:
        write_summary_report(status, output_path=args.report)

    return 1 if status.state == SessionState.FAILED else 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    ## entry point
    sys.exit(main())
