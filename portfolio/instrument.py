from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from errors import UnresolvedReference


class Sector(str, Enum):
    TECHNOLOGY = "Technology"
    FINANCE = "Finance"
    ENERGY = "Energy"
    INDUSTRY = "Industry"
    HEALTH = "Health"
    CONSUMER_GOODS = "Consumer Goods"
    UTILITIES = "Utilities"
    REAL_ESTATE = "Real Estate"
    BIOTECH = "Biotech"
    AEROSPACE = "Aerospace"


@dataclass(frozen=True)
class Instrument:
    ticker: str
    name: str
    sector: Sector
    price: float
    cost_basis: float          # per share
    market_cap: float          # millions
    volatility: float          # 0.0 - 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.sector, Sector):
            object.__setattr__(self, "sector", Sector(self.sector))
        if self.price < 0 or self.cost_basis < 0:
            raise ValueError(f"{self.ticker}: price and cost basis must be non-negative")
        if not 0.0 <= self.volatility <= 1.0:
            raise ValueError(f"{self.ticker}: volatility {self.volatility} outside [0, 1]")


class InstrumentCatalog:
    """Read-only ticker -> Instrument lookup for one analysis cycle."""

    def __init__(self, instruments: Iterable[Instrument] = ()) -> None:
        self._by_ticker = {inst.ticker: inst for inst in instruments}

    def resolve(self, ticker: str) -> Instrument:
        try:
            return self._by_ticker[ticker]
        except KeyError:
            raise UnresolvedReference(ticker) from None

    def get(self, ticker: str) -> Optional[Instrument]:
        return self._by_ticker.get(ticker)

    def __contains__(self, ticker: object) -> bool:
        return ticker in self._by_ticker

    def __len__(self) -> int:
        return len(self._by_ticker)

    def __iter__(self) -> Iterator[Instrument]:
        return iter(self._by_ticker.values())
