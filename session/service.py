from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from config import EngineConfig
from errors import (
    DataFetchError,
    OverSellError,
    StaleSuggestionError,
    TradeError,
)
from execution.executor import TradeExecutor
from portfolio.holdings import HoldingsSnapshot, HoldingsStore
from session.analysis_session import AnalysisSession, SessionStatus
from tax.suggestion import Suggestion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeOutcome:
    succeeded: bool
    snapshot: Optional[HoldingsSnapshot] = None
    error: Optional[Exception] = None


class TaxOptimizationService:
    """
    Command surface for the presentation layer. Neither command raises:
    analysis errors land on the returned status, trade errors on the
    returned TradeOutcome.
    """

    def __init__(
        self,
        instrument_provider: Any,
        holdings_provider: Any,
        config: Optional[EngineConfig] = None,
    ) -> None:
        if config is None:
            config = EngineConfig()
        self.config = config
        self.store = HoldingsStore()
        self.session = AnalysisSession(
            store=self.store,
            instrument_provider=instrument_provider,
            holdings_provider=holdings_provider,
            config=config,
        )
        self.executor = TradeExecutor(
            store=self.store,
            backend=holdings_provider,
            latency=config.providers.trade_latency,
        )

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def trades(self) -> tuple[dict, ...]:
        """Executed trades, oldest first. Refused or rolled-back orders are not listed."""
        return tuple(self.executor.trades)

    def subscribe(self, listener: Callable[[SessionStatus], None]) -> Callable[[], None]:
        return self.session.subscribe(listener)

    async def request_analysis(self) -> SessionStatus:
        return await self.session.request_analysis()

    async def accept_suggestion(self, suggestion: Suggestion) -> TradeOutcome:
        snapshot = self.store.snapshot
        if suggestion.snapshot_version is not None and suggestion.snapshot_version != snapshot.version:
            error = StaleSuggestionError(suggestion.snapshot_version, snapshot.version)
            logger.warning("%s", error)
            return TradeOutcome(succeeded=False, error=error)

        try:
            catalog = await self.session.ensure_catalog()
        except Exception as exc:
            logger.warning("Instrument catalog unavailable for trade: %s", exc)
            error = DataFetchError(f"Could not load instrument catalog: {exc}")
            error.__cause__ = exc
            return TradeOutcome(succeeded=False, error=error)

        try:
            new_snapshot = await self.executor.execute(suggestion, snapshot, catalog)
        except OverSellError as exc:
            logger.error("%s; forcing re-analysis", exc)
            self.session.invalidate("over-sell indicates a stale suggestion")
            return TradeOutcome(succeeded=False, error=exc)
        except TradeError as exc:
            logger.warning("%s", exc)
            return TradeOutcome(succeeded=False, error=exc)

        return TradeOutcome(succeeded=True, snapshot=new_snapshot)
