from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HarvestConfig:
    # Positions held at least this many days count as long-term.
    long_term_days: int = 365

    # Loss harvesting (full-lot liquidation)
    loss_default_priority: int = 5
    high_volatility_threshold: float = 0.4
    high_volatility_priority: int = 2
    small_cap_threshold: float = 5_000.0    # same unit as Instrument.market_cap (millions)
    small_cap_priority: int = 3
    long_term_loss_priority: int = 1
    loss_confidence: float = 0.98

    # Gain realization for rebalancing
    gain_sell_fraction: float = 0.15
    overweight_threshold: float = 0.20       # share of total market value
    overweight_volatility_threshold: float = 0.35
    overweight_priority: int = 3
    rebalance_priority: int = 7
    gain_confidence: float = 0.92


@dataclass
class RiskConfig:
    # Divisor applied to the squared sector deviations before they are added
    # to the volatility term. Uncalibrated; tests pin fixtures against it.
    sector_variance_scale: float = 1_000_000_000.0


@dataclass
class ProviderConfig:
    # Simulated round-trip latencies (seconds) for the in-memory providers.
    fetch_latency: float = 0.0
    trade_latency: float = 0.0


@dataclass
class EngineConfig:
    harvest: HarvestConfig = field(default_factory=HarvestConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    # Valuation date for days-held; None means today.
    as_of: Optional[datetime.date] = None
