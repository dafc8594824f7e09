from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from errors import StaleSuggestionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holding:
    ticker: str
    shares: int
    acquisition_date: datetime.date

    def __post_init__(self) -> None:
        if isinstance(self.shares, bool) or not isinstance(self.shares, int):
            raise ValueError(f"{self.ticker}: share count must be an integer, got {self.shares!r}")
        if self.shares <= 0:
            raise ValueError(f"{self.ticker}: share count must be positive, got {self.shares}")


@dataclass(frozen=True)
class HoldingsSnapshot:
    """Immutable view of the position set at one store version."""

    version: int
    holdings: tuple[Holding, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "holdings", tuple(self.holdings))
        seen = set()
        for holding in self.holdings:
            if holding.ticker in seen:
                raise ValueError(f"Duplicate holding for {holding.ticker}; one lot per instrument")
            seen.add(holding.ticker)

    def get(self, ticker: str) -> Optional[Holding]:
        for holding in self.holdings:
            if holding.ticker == ticker:
                return holding
        return None

    def total_shares(self) -> int:
        return sum(h.shares for h in self.holdings)

    def __iter__(self) -> Iterator[Holding]:
        return iter(self.holdings)

    def __len__(self) -> int:
        return len(self.holdings)


@dataclass(frozen=True)
class HoldingsChange:
    version: int
    reason: str                # "load" or "trade"
    snapshot: HoldingsSnapshot = field(repr=False)


Listener = Callable[[HoldingsChange], None]


class HoldingsStore:
    """
    Single source of truth for the user's positions.

    The current snapshot is never mutated; every change swaps in a new
    HoldingsSnapshot with a higher version and notifies subscribers.
    """

    def __init__(self, holdings: Iterable[Holding] = ()) -> None:
        self._snapshot = HoldingsSnapshot(version=0, holdings=tuple(holdings))
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> HoldingsSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load(self, holdings: Iterable[Holding]) -> HoldingsSnapshot:
        """Replace the positions with a fresh copy from the holdings provider."""
        return self._swap(holdings, reason="load")

    def replace(self, holdings: Iterable[Holding], expected_version: int) -> HoldingsSnapshot:
        """Commit a post-trade position set if nobody changed the store meanwhile."""
        if expected_version != self.version:
            raise StaleSuggestionError(expected_version, self.version)
        return self._swap(holdings, reason="trade")

    def _swap(self, holdings: Iterable[Holding], reason: str) -> HoldingsSnapshot:
        snapshot = HoldingsSnapshot(version=self.version + 1, holdings=tuple(holdings))
        self._snapshot = snapshot
        logger.debug("Holdings store now at version %d (%s, %d positions)",
                     snapshot.version, reason, len(snapshot))
        change = HoldingsChange(version=snapshot.version, reason=reason, snapshot=snapshot)
        for listener in list(self._listeners):
            listener(change)
        return snapshot
