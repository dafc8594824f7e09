"""
Shared pytest fixtures: a small fixed catalog and portfolio valued on a fixed
date. No network calls and no randomness.

Valuation on AS_OF (2024-06-30):

    ticker  sector      shares  price  cost   mkt value  P/L     held
    AAA     Technology      50     80   100        4000  -1000   short
    BBB     Finance        200     15    10        3000  +1000   long (400 days)
    CCC     Energy          10     50    50         500      0   long
    DDD     Health          40     20    25         800   -200   long

    total market value 8300, cost basis 8500
"""

import datetime
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from portfolio.holdings import Holding, HoldingsSnapshot
from portfolio.instrument import Instrument, InstrumentCatalog, Sector

AS_OF = datetime.date(2024, 6, 30)


def days_ago(days):
    return AS_OF - datetime.timedelta(days=days)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def make_instruments():
    return [
        Instrument("AAA", "Alpha Tech", Sector.TECHNOLOGY, price=80.0, cost_basis=100.0,
                   market_cap=20_000.0, volatility=0.30),
        Instrument("BBB", "Beta Bank", Sector.FINANCE, price=15.0, cost_basis=10.0,
                   market_cap=30_000.0, volatility=0.50),
        Instrument("CCC", "Gamma Power", Sector.ENERGY, price=50.0, cost_basis=50.0,
                   market_cap=10_000.0, volatility=0.20),
        Instrument("DDD", "Delta Health", Sector.HEALTH, price=20.0, cost_basis=25.0,
                   market_cap=3_000.0, volatility=0.45),
    ]


def make_holdings():
    return [
        Holding("AAA", 50, datetime.date(2024, 1, 1)),
        Holding("BBB", 200, days_ago(400)),
        Holding("CCC", 10, datetime.date(2020, 1, 1)),
        Holding("DDD", 40, datetime.date(2022, 1, 1)),
    ]


@pytest.fixture
def instruments():
    return make_instruments()


@pytest.fixture
def catalog(instruments):
    return InstrumentCatalog(instruments)


@pytest.fixture
def holdings():
    return make_holdings()


@pytest.fixture
def snapshot(holdings):
    return HoldingsSnapshot(version=1, holdings=tuple(holdings))


@pytest.fixture
def as_of():
    return AS_OF
