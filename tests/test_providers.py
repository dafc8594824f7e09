import datetime
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pandas as pd
import pytest

from data.providers import (
    CsvHoldingsProvider,
    CsvInstrumentProvider,
    InMemoryHoldingsProvider,
    mock_holdings,
    mock_instruments,
    read_instruments_csv,
)
from portfolio.holdings import Holding
from portfolio.instrument import InstrumentCatalog, Sector


# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

def test_mock_instruments_deterministic():
    assert mock_instruments(seed=3) == mock_instruments(seed=3)
    assert mock_instruments(seed=3) != mock_instruments(seed=4)


def test_mock_instruments_shape():
    instruments = mock_instruments(count=20)
    assert len(instruments) == 20
    assert instruments[0].ticker == "APL1"
    assert instruments[11].ticker == "BET12"
    assert instruments[12].sector == Sector.ENERGY
    for inst in instruments:
        assert 0.1 <= inst.volatility <= 0.6
        assert 1_000 <= inst.market_cap <= 51_000


def test_mock_holdings_resolve_against_mock_catalog():
    catalog = InstrumentCatalog(mock_instruments())
    holdings = mock_holdings()
    assert len(holdings) == 9
    assert all(h.ticker in catalog for h in holdings)


def test_mock_holdings_trimmed_to_small_catalog():
    holdings = mock_holdings(mock_instruments(count=11))
    assert {h.ticker for h in holdings} == {"BET2", "GAM3", "ZETA6", "APL11", "APL1"}


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def _write_csvs(tmp_path):
    inst_path = tmp_path / "instruments.csv"
    pd.DataFrame([
        {"ticker": "AAA", "name": "Alpha", "sector": "Technology", "price": 80.0,
         "cost_basis": 100.0, "market_cap": 20000, "volatility": 0.3},
        {"ticker": "BBB", "name": "Beta", "sector": "Real Estate", "price": 15.0,
         "cost_basis": 10.0, "market_cap": 3000, "volatility": 0.5},
    ]).to_csv(inst_path, index=False)
    hold_path = tmp_path / "holdings.csv"
    pd.DataFrame([
        {"ticker": "AAA", "shares": 50, "acquisition_date": "2024-01-01"},
        {"ticker": "BBB", "shares": 200, "acquisition_date": "2023-05-27"},
    ]).to_csv(hold_path, index=False)
    return str(inst_path), str(hold_path)


@pytest.mark.asyncio
async def test_csv_instrument_provider(tmp_path):
    inst_path, _ = _write_csvs(tmp_path)
    instruments = await CsvInstrumentProvider(inst_path).fetch_instruments()
    assert [i.ticker for i in instruments] == ["AAA", "BBB"]
    assert instruments[0].name == "Alpha"
    assert instruments[1].sector == Sector.REAL_ESTATE
    assert instruments[1].market_cap == pytest.approx(3_000.0)


@pytest.mark.asyncio
async def test_csv_holdings_provider_keeps_trades_in_memory(tmp_path):
    _, hold_path = _write_csvs(tmp_path)
    provider = CsvHoldingsProvider(hold_path)

    holdings = await provider.fetch_holdings()
    assert holdings[1] == Holding("BBB", 200, datetime.date(2023, 5, 27))

    await provider.store_holdings([Holding("BBB", 170, datetime.date(2023, 5, 27))])
    refreshed = await provider.fetch_holdings()
    assert refreshed == [Holding("BBB", 170, datetime.date(2023, 5, 27))]
    assert provider.fetch_count == 2


def test_missing_columns_rejected(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame([{"ticker": "AAA", "price": 1.0}]).to_csv(path, index=False)
    with pytest.raises(ValueError, match="missing column"):
        read_instruments_csv(str(path))


@pytest.mark.asyncio
async def test_in_memory_provider_returns_copies():
    source = [Holding("AAA", 1, datetime.date(2024, 1, 1))]
    provider = InMemoryHoldingsProvider(source)
    fetched = await provider.fetch_holdings()
    fetched.clear()
    assert await provider.fetch_holdings() == source
