from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional

from errors import OrderSubmissionError, OverSellError, UnknownInstrument
from portfolio.holdings import Holding, HoldingsSnapshot, HoldingsStore
from portfolio.instrument import InstrumentCatalog
from tax.suggestion import Suggestion

logger = logging.getLogger(__name__)


def apply_sale(holdings: HoldingsSnapshot, ticker: str, shares: int) -> list[Holding]:
    """Position list after selling ``shares`` of ``ticker``. Sold-out holdings are dropped."""
    if shares <= 0:
        raise ValueError(f"{ticker}: sell size must be positive, got {shares}")
    current = holdings.get(ticker)
    held = current.shares if current is not None else 0
    if current is None or shares > held:
        raise OverSellError(ticker, shares, held)

    remaining = held - shares
    updated = []
    for holding in holdings:
        if holding.ticker != ticker:
            updated.append(holding)
        elif remaining > 0:
            updated.append(replace(holding, shares=remaining))
    return updated


class TradeExecutor:
    """
    Applies accepted suggestions to the holdings store.

    ``backend`` is the holdings provider standing in for the order
    management system; when it exposes ``store_holdings`` it receives the
    post-trade positions so the next fetch reflects the trade. If that push
    fails the store is put back to the pre-trade positions and the trade is
    reported as an OrderSubmissionError.
    """

    def __init__(self, store: HoldingsStore, backend: Any = None, latency: float = 0.0) -> None:
        self.store = store
        self.backend = backend
        self.latency = latency
        self.trades: list[dict] = []

    async def execute(
        self,
        suggestion: Suggestion,
        holdings: Optional[HoldingsSnapshot] = None,
        catalog: Optional[InstrumentCatalog] = None,
    ) -> HoldingsSnapshot:
        if holdings is None:
            holdings = self.store.snapshot
        if catalog is None or suggestion.ticker not in catalog:
            raise UnknownInstrument(suggestion.ticker)

        updated = apply_sale(holdings, suggestion.ticker, suggestion.shares_to_sell)

        await asyncio.sleep(self.latency)

        # Commit before pushing to the backend: a concurrent trade on the same
        # snapshot fails here and never reaches the backend.
        snapshot = self.store.replace(updated, expected_version=holdings.version)
        store_holdings = getattr(self.backend, "store_holdings", None)
        if store_holdings is not None:
            try:
                await store_holdings(snapshot.holdings)
            except Exception as exc:
                self._roll_back(holdings, snapshot)
                raise OrderSubmissionError(suggestion.ticker, exc) from exc

        price = catalog.resolve(suggestion.ticker).price
        self.trades.append({"type": "sell", "ticker": suggestion.ticker,
                            "shares": suggestion.shares_to_sell, "price": price,
                            "amount": suggestion.shares_to_sell * price,
                            "realized_gain": suggestion.realized_gain_loss,
                            "suggestion_id": suggestion.suggestion_id,
                            "version": snapshot.version})
        logger.info("Sold %d %s (realized %.2f); holdings now at version %d",
                    suggestion.shares_to_sell, suggestion.ticker,
                    suggestion.realized_gain_loss, snapshot.version)
        return snapshot

    def _roll_back(self, before: HoldingsSnapshot, committed: HoldingsSnapshot) -> None:
        """Restore the pre-trade positions after the backend refused the order."""
        if self.store.version != committed.version:
            logger.error("Backend refused the order but holdings moved on to version %d; "
                         "not rolling back version %d", self.store.version, committed.version)
            return
        restored = self.store.replace(before.holdings, expected_version=committed.version)
        logger.warning("Rolled back holdings version %d; restored positions as version %d",
                       committed.version, restored.version)
