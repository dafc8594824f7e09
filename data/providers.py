"""
Instrument and holdings providers consumed by the analysis session.

Providers are async because they stand in for network round trips. The
in-memory variants only sleep for the configured latency; the CSV variants
read once with pandas and then behave like the in-memory ones.
"""
from __future__ import annotations

import asyncio
import datetime
from typing import Iterable, Optional, Protocol

import numpy as np
import pandas as pd

from portfolio.holdings import Holding
from portfolio.instrument import Instrument, Sector


class InstrumentProvider(Protocol):
    async def fetch_instruments(self) -> list[Instrument]: ...


class HoldingsProvider(Protocol):
    async def fetch_holdings(self) -> list[Holding]: ...


# ---------------------------------------------------------------------------
# In-memory providers
# ---------------------------------------------------------------------------

class InMemoryInstrumentProvider:
    def __init__(self, instruments: Iterable[Instrument], latency: float = 0.0) -> None:
        self._instruments = list(instruments)
        self.latency = latency
        self.fetch_count = 0

    async def fetch_instruments(self) -> list[Instrument]:
        await asyncio.sleep(self.latency)
        self.fetch_count += 1
        return list(self._instruments)


class InMemoryHoldingsProvider:
    """Backend position list. ``store_holdings`` receives post-trade positions."""

    def __init__(self, holdings: Iterable[Holding] = (), latency: float = 0.0) -> None:
        self._holdings = list(holdings)
        self.latency = latency
        self.fetch_count = 0

    async def fetch_holdings(self) -> list[Holding]:
        await asyncio.sleep(self.latency)
        self.fetch_count += 1
        return list(self._holdings)

    async def store_holdings(self, holdings: Iterable[Holding]) -> None:
        await asyncio.sleep(self.latency)
        self._holdings = list(holdings)


# ---------------------------------------------------------------------------
# CSV providers
# ---------------------------------------------------------------------------

INSTRUMENT_COLUMNS = ["ticker", "name", "sector", "price", "cost_basis", "market_cap", "volatility"]
HOLDING_COLUMNS = ["ticker", "shares", "acquisition_date"]


def require_columns(df: pd.DataFrame, columns: list[str], path: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")


def read_instruments_csv(path: str) -> list[Instrument]:
    df = pd.read_csv(path)
    require_columns(df, INSTRUMENT_COLUMNS, path)
    return [
        Instrument(
            ticker=str(row.ticker),
            name=str(row.name),
            sector=Sector(row.sector),
            price=float(row.price),
            cost_basis=float(row.cost_basis),
            market_cap=float(row.market_cap),
            volatility=float(row.volatility),
        )
        for row in df.itertuples(index=False)
    ]


def read_holdings_csv(path: str) -> list[Holding]:
    df = pd.read_csv(path, parse_dates=["acquisition_date"])
    require_columns(df, HOLDING_COLUMNS, path)
    return [
        Holding(
            ticker=str(row.ticker),
            shares=int(row.shares),
            acquisition_date=row.acquisition_date.date(),
        )
        for row in df.itertuples(index=False)
    ]


class CsvInstrumentProvider(InMemoryInstrumentProvider):
    def __init__(self, path: str, latency: float = 0.0) -> None:
        super().__init__((), latency=latency)
        self.path = path
        self._loaded = False

    async def fetch_instruments(self) -> list[Instrument]:
        if not self._loaded:
            self._instruments = read_instruments_csv(self.path)
            self._loaded = True
        return await super().fetch_instruments()


class CsvHoldingsProvider(InMemoryHoldingsProvider):
    """Seeds the backend positions from a CSV; trades are kept in memory only."""

    def __init__(self, path: str, latency: float = 0.0) -> None:
        super().__init__((), latency=latency)
        self.path = path
        self._loaded = False

    async def fetch_holdings(self) -> list[Holding]:
        if not self._loaded:
            self._holdings = read_holdings_csv(self.path)
            self._loaded = True
        return await super().fetch_holdings()

    async def store_holdings(self, holdings: Iterable[Holding]) -> None:
        self._loaded = True
        await super().store_holdings(holdings)


# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

TICKER_PREFIXES = ["APL", "BET", "GAM", "DEL", "EPH", "ZETA", "KAPPA", "OMEGA", "SIGMA", "THETA"]

# (instrument index, shares, acquisition date) for the demo portfolio.
_DEMO_POSITIONS = [
    (1, 50, "2022-01-15"),
    (2, 100, "2023-11-01"),
    (5, 10, "2021-05-20"),
    (10, 75, "2023-08-10"),
    (20, 200, "2024-01-05"),
    (0, 30, "2020-03-01"),
    (30, 150, "2023-06-01"),
    (45, 25, "2022-09-10"),
    (50, 60, "2024-02-20"),
]


def mock_ticker(index: int) -> str:
    return f"{TICKER_PREFIXES[index % len(TICKER_PREFIXES)]}{index + 1}"


def mock_instruments(count: int = 150, seed: int = 7) -> list[Instrument]:
    """Deterministic synthetic catalog; same seed, same instruments."""
    rng = np.random.default_rng(seed)
    sectors = list(Sector)
    instruments = []
    for i in range(count):
        sector = sectors[i % len(sectors)]
        base_price = 50 + i * 1.5
        instruments.append(Instrument(
            ticker=mock_ticker(i),
            name=f"{sector.value} Entity {i + 1}",
            sector=sector,
            price=round(base_price * (1 + (rng.random() - 0.5) * 0.2), 2),
            cost_basis=round(base_price * (1 + (rng.random() - 0.5) * 0.1), 2),
            market_cap=float(np.floor(1_000 + rng.random() * 50_000)),
            volatility=round(float(rng.random() * 0.5 + 0.1), 3),
        ))
    return instruments


def mock_holdings(instruments: Optional[list[Instrument]] = None) -> list[Holding]:
    """Demo portfolio over ``mock_instruments()``."""
    count = len(instruments) if instruments is not None else 150
    holdings = []
    for index, shares, acquired in _DEMO_POSITIONS:
        if index >= count:
            continue
        holdings.append(Holding(
            ticker=mock_ticker(index),
            shares=shares,
            acquisition_date=datetime.date.fromisoformat(acquired),
        ))
    return holdings
