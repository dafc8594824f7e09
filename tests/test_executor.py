"""
Unit tests for TradeExecutor.

Covers:
- partial sale reduces the share count by exactly shares_to_sell
- full-lot sale removes the holding
- over-selling and selling an unheld ticker fail fast without touching the store
- unknown instruments are rejected
- commits are compare-and-swap on the snapshot version
- the backend provider receives post-trade positions and the store notifies "trade"
- a backend that refuses the order leaves the store at the pre-trade positions
- non-positive sell sizes are rejected
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from data.providers import InMemoryHoldingsProvider
from errors import OrderSubmissionError, OverSellError, StaleSuggestionError, UnknownInstrument
from execution.executor import TradeExecutor, apply_sale
from portfolio.holdings import HoldingsStore
from tax.suggestion import Strategy, Suggestion


def _sell(ticker, shares, amount=-1.0):
    return Suggestion(
        suggestion_id=f"TEST-{ticker}",
        ticker=ticker,
        shares_to_sell=shares,
        realized_gain_loss=amount,
        strategy=Strategy.WASH_SALE_AVOIDANCE,
        rationale="test",
        confidence=0.98,
        priority=5,
    )


def _loaded_store(holdings):
    store = HoldingsStore()
    store.load(holdings)
    return store


# ---------------------------------------------------------------------------
# apply_sale()
# ---------------------------------------------------------------------------

class TestApplySale:
    def test_partial(self, snapshot):
        updated = {h.ticker: h.shares for h in apply_sale(snapshot, "BBB", 30)}
        assert updated["BBB"] == 170
        assert len(updated) == 4

    def test_full_lot_removed(self, snapshot):
        updated = apply_sale(snapshot, "AAA", 50)
        assert "AAA" not in {h.ticker for h in updated}

    def test_oversell(self, snapshot):
        with pytest.raises(OverSellError) as excinfo:
            apply_sale(snapshot, "AAA", 51)
        assert excinfo.value.held == 50
        assert excinfo.value.requested == 51

    def test_ticker_not_held(self, snapshot):
        with pytest.raises(OverSellError):
            apply_sale(snapshot, "EEE", 1)

    @pytest.mark.parametrize("shares", [0, -100])
    def test_non_positive_size_rejected(self, snapshot, shares):
        with pytest.raises(ValueError, match="must be positive"):
            apply_sale(snapshot, "BBB", shares)


@pytest.mark.parametrize("shares", [0, -100])
def test_suggestion_rejects_non_positive_size(shares):
    with pytest.raises(ValueError, match="must be positive"):
        _sell("BBB", shares)


def test_suggestion_rejects_fractional_size():
    with pytest.raises(ValueError, match="integer"):
        _sell("BBB", 2.5)


# ---------------------------------------------------------------------------
# execute()
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_partial_sale_reduces_shares(holdings, catalog):
    store = _loaded_store(holdings)
    before = store.snapshot
    executor = TradeExecutor(store)

    after = await executor.execute(_sell("BBB", 30, 150.0), before, catalog)

    assert after.get("BBB").shares == 170
    assert after.total_shares() == before.total_shares() - 30
    assert store.snapshot is after
    assert after.version == before.version + 1
    assert before.get("BBB").shares == 200   # old snapshot untouched


@pytest.mark.asyncio
async def test_full_sale_removes_holding(holdings, catalog):
    store = _loaded_store(holdings)
    after = await TradeExecutor(store).execute(_sell("AAA", 50), store.snapshot, catalog)
    assert after.get("AAA") is None
    assert after.total_shares() == 250


@pytest.mark.asyncio
async def test_oversell_leaves_store_unchanged(holdings, catalog):
    store = _loaded_store(holdings)
    before = store.snapshot
    with pytest.raises(OverSellError):
        await TradeExecutor(store).execute(_sell("AAA", 500), before, catalog)
    assert store.snapshot is before


@pytest.mark.asyncio
async def test_unknown_instrument_rejected(holdings, catalog):
    store = _loaded_store(holdings)
    before = store.snapshot
    with pytest.raises(UnknownInstrument):
        await TradeExecutor(store).execute(_sell("ZZZ", 1), before, catalog)
    assert store.snapshot is before


@pytest.mark.asyncio
async def test_concurrent_trade_on_same_snapshot_is_stale(holdings, catalog):
    store = _loaded_store(holdings)
    snap = store.snapshot
    executor = TradeExecutor(store)
    await executor.execute(_sell("AAA", 10), snap, catalog)
    with pytest.raises(StaleSuggestionError):
        await executor.execute(_sell("BBB", 10), snap, catalog)
    assert store.snapshot.get("BBB").shares == 200


@pytest.mark.asyncio
async def test_backend_and_listeners_see_trade(holdings, catalog):
    store = _loaded_store(holdings)
    backend = InMemoryHoldingsProvider(holdings)
    changes = []
    store.subscribe(changes.append)
    executor = TradeExecutor(store, backend=backend)

    await executor.execute(_sell("DDD", 40), store.snapshot, catalog)

    assert [c.reason for c in changes] == ["trade"]
    refreshed = await backend.fetch_holdings()
    assert "DDD" not in {h.ticker for h in refreshed}
    assert executor.trades[-1]["ticker"] == "DDD"
    assert executor.trades[-1]["amount"] == pytest.approx(800.0)


class _RefusingBackend(InMemoryHoldingsProvider):
    async def store_holdings(self, holdings):
        raise ConnectionError("order system down")


@pytest.mark.asyncio
async def test_refused_order_rolls_store_back(holdings, catalog):
    store = _loaded_store(holdings)
    before = store.snapshot
    backend = _RefusingBackend(holdings)
    executor = TradeExecutor(store, backend=backend)

    with pytest.raises(OrderSubmissionError) as excinfo:
        await executor.execute(_sell("AAA", 50), before, catalog)

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert store.snapshot.get("AAA").shares == 50
    assert store.snapshot.holdings == before.holdings
    assert store.version > before.version
    assert executor.trades == []
    assert (await backend.fetch_holdings()) == holdings
