from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from config import HarvestConfig
from errors import UnresolvedReference
from portfolio.holdings import Holding
from portfolio.instrument import Instrument, InstrumentCatalog
from portfolio.summary import PortfolioSummary
from tax.suggestion import Strategy, Suggestion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionDetail:
    holding: Holding
    instrument: Instrument
    market_value: float
    cost_basis: float
    unrealized_pl: float
    days_held: int
    is_long_term: bool


class HarvestingAnalyzer:
    """
    Turns a holdings snapshot into unranked trade suggestions: full-lot loss
    liquidations, plus partial gain realizations when they offset those
    losses or trim an overweight, volatile, long-term position.
    """

    def __init__(self, config: Optional[HarvestConfig] = None) -> None:
        if config is None:
            config = HarvestConfig()
        self.config = config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        holdings: Iterable[Holding],
        summary: PortfolioSummary,
        catalog: InstrumentCatalog,
        as_of: Optional[datetime.date] = None,
    ) -> list[Suggestion]:
        """
        Steps:
          1. Value every resolvable holding and classify it short/long-term
          2. One full liquidation per holding with an unrealized loss
          3. A partial sale per gaining holding, only if a loss exists in
             this batch or the holding is overweight, volatile and long-term

        Holdings at exactly zero P/L produce nothing.
        """
        if as_of is None:
            as_of = datetime.date.today()

        details = self.position_details(holdings, catalog, as_of)

        suggestions = [self._loss_suggestion(d) for d in details if d.unrealized_pl < 0]
        has_losses = bool(suggestions)

        for detail in details:
            if detail.unrealized_pl <= 0:
                continue
            suggestion = self._gain_suggestion(detail, summary, has_losses)
            if suggestion is not None:
                suggestions.append(suggestion)

        return suggestions

    def position_details(
        self,
        holdings: Iterable[Holding],
        catalog: InstrumentCatalog,
        as_of: datetime.date,
    ) -> list[PositionDetail]:
        details = []
        for holding in holdings:
            try:
                inst = catalog.resolve(holding.ticker)
            except UnresolvedReference as exc:
                logger.warning("%s; excluded from harvesting analysis", exc)
                continue
            market_value = holding.shares * inst.price
            cost_basis = holding.shares * inst.cost_basis
            days_held = (as_of - holding.acquisition_date).days
            details.append(PositionDetail(
                holding=holding,
                instrument=inst,
                market_value=market_value,
                cost_basis=cost_basis,
                unrealized_pl=market_value - cost_basis,
                days_held=days_held,
                is_long_term=days_held >= self.config.long_term_days,
            ))
        return details

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _loss_priority(self, detail: PositionDetail) -> int:
        cfg = self.config
        priority = cfg.loss_default_priority
        if detail.instrument.volatility > cfg.high_volatility_threshold:
            priority = cfg.high_volatility_priority
        if detail.instrument.market_cap < cfg.small_cap_threshold:
            priority = cfg.small_cap_priority
        if detail.is_long_term:
            priority = min(priority, cfg.long_term_loss_priority)
        return priority

    def _loss_suggestion(self, detail: PositionDetail) -> Suggestion:
        ticker = detail.holding.ticker
        shares = detail.holding.shares
        loss = abs(detail.unrealized_pl)
        term = "Long-Term" if detail.is_long_term else "Short-Term"
        strategy = Strategy.LOSS_CARRYFORWARD if detail.is_long_term else Strategy.WASH_SALE_AVOIDANCE
        return Suggestion(
            suggestion_id=f"LOSS-{ticker}",
            ticker=ticker,
            shares_to_sell=shares,
            realized_gain_loss=detail.unrealized_pl,
            strategy=strategy,
            rationale=(
                f"Liquidate all {shares} shares of {ticker} to realize a capital loss "
                f"of ${loss:,.2f}. Classification: {term} ({detail.days_held} days held). "
                f"The loss can offset current or future gains."
            ),
            confidence=self.config.loss_confidence,
            priority=self._loss_priority(detail),
        )

    def _gain_suggestion(
        self,
        detail: PositionDetail,
        summary: PortfolioSummary,
        has_losses: bool,
    ) -> Optional[Suggestion]:
        cfg = self.config
        shares_to_sell = math.floor(detail.holding.shares * cfg.gain_sell_fraction)
        if shares_to_sell <= 0:
            return None

        total_mv = summary.total_market_value
        is_overweight = total_mv > 0 and detail.market_value / total_mv > cfg.overweight_threshold
        concentrated = (
            is_overweight
            and detail.instrument.volatility > cfg.overweight_volatility_threshold
            and detail.is_long_term
        )
        if not (has_losses or concentrated):
            return None

        inst = detail.instrument
        realized_gain = shares_to_sell * (inst.price - inst.cost_basis)
        term = "long-term" if detail.is_long_term else "short-term"
        return Suggestion(
            suggestion_id=f"GAIN-{detail.holding.ticker}",
            ticker=detail.holding.ticker,
            shares_to_sell=shares_to_sell,
            realized_gain_loss=realized_gain,
            strategy=Strategy.REBALANCING,
            rationale=(
                f"Sell {shares_to_sell} shares of {inst.ticker} to realize a gain of "
                f"${realized_gain:,.2f}. This can offset harvested losses or reduce "
                f"concentration risk in {inst.sector.value}. This is a {term} gain."
            ),
            confidence=cfg.gain_confidence,
            priority=cfg.overweight_priority if is_overweight else cfg.rebalance_priority,
        )
