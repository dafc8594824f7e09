import asyncio
import logging

import numpy as np
import pandas as pd
import yfinance as yf

from data.providers import require_columns
from portfolio.instrument import Instrument, Sector

logger = logging.getLogger(__name__)

# Yahoo Finance sector names -> catalog sectors
_YF_SECTORS = {
    "Technology": Sector.TECHNOLOGY,
    "Communication Services": Sector.TECHNOLOGY,
    "Financial Services": Sector.FINANCE,
    "Energy": Sector.ENERGY,
    "Industrials": Sector.INDUSTRY,
    "Basic Materials": Sector.INDUSTRY,
    "Healthcare": Sector.HEALTH,
    "Consumer Cyclical": Sector.CONSUMER_GOODS,
    "Consumer Defensive": Sector.CONSUMER_GOODS,
    "Utilities": Sector.UTILITIES,
    "Real Estate": Sector.REAL_ESTATE,
}


def annualized_volatility(closes, trading_days=252):
    """Annualized stdev of daily returns, clipped to the catalog's 0-1 scale."""
    returns = closes.pct_change().dropna()
    if len(returns) < 2:
        return 0.0
    vol = float(returns.std() * np.sqrt(trading_days))
    if vol != vol:  # nan
        return 0.0
    return min(max(vol, 0.0), 1.0)


def download_closes(tickers, period="1y"):
    raw = yf.download(tickers, period=period, auto_adjust=True, progress=False)
    closes = raw["Close"]
    # Older yfinance releases return a flat frame (Series here) for a single ticker
    if isinstance(closes, pd.Series):
        closes = closes.to_frame(tickers[0])
    closes = closes.dropna(how="all")
    return closes


def read_cost_basis_csv(path):
    """ticker,cost_basis CSV -> {ticker: cost basis per share}."""
    df = pd.read_csv(path)
    require_columns(df, ["ticker", "cost_basis"], path)
    return {str(row.ticker): float(row.cost_basis) for row in df.itertuples(index=False)}


class YFinanceInstrumentProvider:
    """
    Builds catalog entries from Yahoo Finance: last close as price, one year
    of daily returns for volatility, ``info`` for sector and market cap.
    Cost basis per share is the user's own number and must be supplied.
    """

    def __init__(self, cost_basis, period="1y", sector_overrides=None):
        self.cost_basis = dict(cost_basis)
        self.period = period
        self.sector_overrides = dict(sector_overrides or {})

    async def fetch_instruments(self):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load)

    def _load(self):
        tickers = sorted(self.cost_basis)
        if not tickers:
            return []
        closes = download_closes(tickers, period=self.period)

        instruments = []
        for ticker in tickers:
            if ticker not in closes.columns or closes[ticker].dropna().empty:
                logger.warning("No price history for %s; left out of catalog", ticker)
                continue
            series = closes[ticker].dropna()
            info = yf.Ticker(ticker).info or {}

            sector = self.sector_overrides.get(ticker) or _YF_SECTORS.get(info.get("sector"))
            if sector is None:
                logger.warning("Unmapped sector %r for %s; left out of catalog",
                               info.get("sector"), ticker)
                continue

            instruments.append(Instrument(
                ticker=ticker,
                name=info.get("shortName") or ticker,
                sector=sector,
                price=float(series.iloc[-1]),
                cost_basis=float(self.cost_basis[ticker]),
                market_cap=float(info.get("marketCap") or 0.0) / 1e6,
                volatility=annualized_volatility(series),
            ))
        return instruments
