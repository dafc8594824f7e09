"""
Portfolio summary: aggregate value, cost, P/L, sector exposure and risk score.

Risk score = weighted-average volatility * 100
           + sum over observed sectors of (sector value - ideal)^2 / scale

where ideal = total market value / number of known sectors and scale is
RiskConfig.sector_variance_scale (default 1e9).

Sector exposure is reported to one decimal with largest-remainder rounding,
so the percentages always add up to 100.0.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from config import RiskConfig
from errors import UnresolvedReference
from portfolio.holdings import Holding
from portfolio.instrument import InstrumentCatalog, Sector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioSummary:
    total_market_value: float = 0.0
    total_cost_basis: float = 0.0
    net_unrealized_pl: float = 0.0
    total_shares: int = 0
    sector_exposure: dict = field(default_factory=dict)   # Sector -> percent
    risk_score: float = 0.0
    unresolved: tuple[str, ...] = ()


def position_frame(holdings: Iterable[Holding], catalog: InstrumentCatalog) -> tuple[pd.DataFrame, list[str]]:
    """
    One row per resolvable holding with market value and cost basis columns.
    Holdings whose ticker is not in the catalog are returned separately.
    """
    rows = []
    unresolved = []
    for holding in holdings:
        try:
            inst = catalog.resolve(holding.ticker)
        except UnresolvedReference as exc:
            logger.warning("%s; skipping holding of %d shares", exc, holding.shares)
            unresolved.append(holding.ticker)
            continue
        rows.append({
            "ticker": holding.ticker,
            "sector": inst.sector.value,
            "shares": holding.shares,
            "market_value": holding.shares * inst.price,
            "cost_basis": holding.shares * inst.cost_basis,
            "volatility": inst.volatility,
        })
    frame = pd.DataFrame(
        rows,
        columns=["ticker", "sector", "shares", "market_value", "cost_basis", "volatility"],
    )
    return frame, unresolved


def exposure_tenths(values: np.ndarray, total: float) -> list[int]:
    """
    Shares of ``total`` in tenths of a percent, summing to exactly 1000.

    Largest-remainder rounding: every share is floored, then the missing
    tenths go to the largest fractional parts (ties keep input order).
    """
    raw = values / total * 1000
    tenths = np.floor(raw)
    missing = int(round(1000 - tenths.sum()))
    order = np.argsort(-(raw - tenths), kind="stable")
    tenths[order[:missing]] += 1
    return [int(t) for t in tenths]


def summarize(
    holdings: Iterable[Holding],
    catalog: InstrumentCatalog,
    config: Optional[RiskConfig] = None,
) -> PortfolioSummary:
    if config is None:
        config = RiskConfig()

    frame, unresolved = position_frame(holdings, catalog)
    if unresolved:
        logger.warning("%d holding(s) excluded from summary: %s",
                       len(unresolved), ", ".join(unresolved))

    if frame.empty:
        return PortfolioSummary(unresolved=tuple(unresolved))

    total_mv = float(frame["market_value"].sum())
    total_cost = float(frame["cost_basis"].sum())
    total_shares = int(frame["shares"].sum())

    by_sector = frame.groupby("sector", sort=True)["market_value"].sum()

    if total_mv > 0:
        tenths = exposure_tenths(by_sector.to_numpy(dtype=float), total_mv)
        exposure = {
            Sector(sector): tenths[i] / 10
            for i, sector in enumerate(by_sector.index)
        }
        weighted_vol = float((frame["volatility"] * frame["market_value"]).sum()) / total_mv
    else:
        exposure = {}
        weighted_vol = 0.0

    ideal = total_mv / len(Sector)
    variance = float(np.sum((by_sector.to_numpy(dtype=float) - ideal) ** 2))
    risk_score = round(weighted_vol * 100 + variance / config.sector_variance_scale, 2)

    return PortfolioSummary(
        total_market_value=total_mv,
        total_cost_basis=total_cost,
        net_unrealized_pl=total_mv - total_cost,
        total_shares=total_shares,
        sector_exposure=exposure,
        risk_score=risk_score,
        unresolved=tuple(unresolved),
    )
