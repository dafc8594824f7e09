from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Strategy(str, Enum):
    LOSS_CARRYFORWARD = "loss-carryforward"
    WASH_SALE_AVOIDANCE = "wash-sale-avoidance"
    REBALANCING = "rebalancing"


@dataclass(frozen=True)
class Suggestion:
    suggestion_id: str
    ticker: str
    shares_to_sell: int
    realized_gain_loss: float      # negative = loss
    strategy: Strategy
    rationale: str
    confidence: float
    priority: int                  # lower = more urgent
    snapshot_version: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.shares_to_sell, bool) or not isinstance(self.shares_to_sell, int):
            raise ValueError(f"{self.suggestion_id}: shares_to_sell must be an integer, "
                             f"got {self.shares_to_sell!r}")
        if self.shares_to_sell <= 0:
            raise ValueError(f"{self.suggestion_id}: shares_to_sell must be positive, "
                             f"got {self.shares_to_sell}")

    @property
    def is_loss(self) -> bool:
        return self.realized_gain_loss < 0
