"""
Analysis session: loads catalog and holdings, runs summary -> analyzer ->
ranker, and publishes the ranked suggestions.

    IDLE -> LOADING -> READY -> ANALYZING -> COMPLETE | FAILED
    COMPLETE / FAILED(AnalysisError) --request--> ANALYZING
    FAILED(DataFetchError) --request--> LOADING
    any state --trade committed--> IDLE

Every run is tagged with the session generation at its start. A trade bumps
the generation, so a run that was in flight when the trade landed can no
longer publish anything: its result is logged and dropped.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from config import EngineConfig
from errors import AnalysisError, DataFetchError, TaxOptimizerError
from portfolio.holdings import HoldingsChange, HoldingsSnapshot, HoldingsStore
from portfolio.instrument import InstrumentCatalog
from portfolio.summary import PortfolioSummary, summarize
from tax.ranking import rank_suggestions
from tax.suggestion import Suggestion
from tax.tax_harvesting import HarvestingAnalyzer

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionStatus:
    state: SessionState
    summary: Optional[PortfolioSummary] = None
    suggestions: tuple[Suggestion, ...] = ()
    error: Optional[TaxOptimizerError] = None
    holdings_version: Optional[int] = None
    # True when summary/suggestions are left over from an earlier run and
    # must not be acted upon.
    stale: bool = False


StatusListener = Callable[[SessionStatus], None]


class AnalysisSession:
    def __init__(
        self,
        store: HoldingsStore,
        instrument_provider: Any,
        holdings_provider: Any,
        analyzer: Optional[HarvestingAnalyzer] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        if config is None:
            config = EngineConfig()
        self.config = config
        self.store = store
        self.instrument_provider = instrument_provider
        self.holdings_provider = holdings_provider
        self.analyzer = analyzer or HarvestingAnalyzer(config.harvest)

        self._catalog: Optional[InstrumentCatalog] = None
        self._loaded_version: Optional[int] = None
        self._generation = 0
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_generation: Optional[int] = None
        self._status = SessionStatus(SessionState.IDLE)
        self._listeners: list[StatusListener] = []
        self._unsubscribe_store = store.subscribe(self._on_holdings_changed)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return self._status.state

    @property
    def catalog(self) -> Optional[InstrumentCatalog]:
        return self._catalog

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def request_analysis(self) -> SessionStatus:
        """
        Run (or join) an analysis. A request made while a run of the current
        generation is in flight awaits that run instead of starting another.
        """
        if (
            self._inflight is not None
            and not self._inflight.done()
            and self._inflight_generation == self._generation
        ):
            return await asyncio.shield(self._inflight)

        self._inflight_generation = self._generation
        self._inflight = asyncio.ensure_future(self._run(self._generation))
        return await asyncio.shield(self._inflight)

    async def ensure_catalog(self) -> InstrumentCatalog:
        """Catalog for trade validation; fetched once and cached."""
        if self._catalog is None:
            self._catalog = await self._fetch_catalog()
        return self._catalog

    def invalidate(self, reason: str) -> None:
        """Drop to IDLE; anything computed so far is stale and in-flight runs are discarded."""
        self._generation += 1
        self._loaded_version = None
        logger.info("Analysis session invalidated: %s", reason)
        self._set_status(self._carry_over(SessionState.IDLE))

    def close(self) -> None:
        self._unsubscribe_store()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(self, generation: int) -> SessionStatus:
        loaded = self._needs_load()
        if loaded:
            self._publish(generation, self._carry_over(SessionState.LOADING))
            try:
                snapshot = await self._load(generation)
            except Exception as exc:
                logger.warning("Portfolio data fetch failed: %s", exc)
                error = DataFetchError(f"Could not load portfolio data: {exc}")
                error.__cause__ = exc
                self._publish(generation, self._carry_over(SessionState.FAILED, error=error))
                return self._status
            if snapshot is None:
                return self._status
        else:
            snapshot = self.store.snapshot

        try:
            summary = summarize(snapshot, self._catalog, self.config.risk)
        except Exception as exc:
            return self._analysis_failed(generation, exc)
        if loaded:
            self._publish(generation, self._carry_over(
                SessionState.READY, summary=summary, holdings_version=snapshot.version))
        self._publish(generation, self._carry_over(
            SessionState.ANALYZING, summary=summary, holdings_version=snapshot.version))

        loop = asyncio.get_running_loop()
        try:
            ranked = await loop.run_in_executor(
                None, self._analyze, snapshot, self._catalog, summary)
        except Exception as exc:
            return self._analysis_failed(generation, exc)

        if generation != self._generation or snapshot.version != self.store.version:
            logger.warning(
                "Discarding analysis of holdings version %d: holdings changed while analyzing",
                snapshot.version,
            )
            return self._status

        self._publish(generation, SessionStatus(
            state=SessionState.COMPLETE,
            summary=summary,
            suggestions=tuple(ranked),
            holdings_version=snapshot.version,
        ))
        return self._status

    def _analyze(
        self,
        snapshot: HoldingsSnapshot,
        catalog: InstrumentCatalog,
        summary: PortfolioSummary,
    ) -> list[Suggestion]:
        suggestions = self.analyzer.analyze(snapshot, summary, catalog, as_of=self.config.as_of)
        ranked = rank_suggestions(suggestions)
        return [replace(s, snapshot_version=snapshot.version) for s in ranked]

    def _analysis_failed(self, generation: int, exc: Exception) -> SessionStatus:
        logger.exception("Unexpected error during tax analysis")
        error = AnalysisError(f"Failed to perform tax analysis: {exc}")
        error.__cause__ = exc
        self._publish(generation, self._carry_over(SessionState.FAILED, error=error))
        return self._status

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _needs_load(self) -> bool:
        return (
            self._catalog is None
            or self._loaded_version is None
            or self._loaded_version != self.store.version
        )

    async def _fetch_catalog(self) -> InstrumentCatalog:
        instruments = await self.instrument_provider.fetch_instruments()
        return InstrumentCatalog(instruments)

    async def _load(self, generation: int) -> Optional[HoldingsSnapshot]:
        if self._catalog is None:
            catalog, holdings = await asyncio.gather(
                self._fetch_catalog(),
                self.holdings_provider.fetch_holdings(),
            )
            self._catalog = catalog
        else:
            holdings = await self.holdings_provider.fetch_holdings()

        if generation != self._generation:
            logger.warning("Discarding holdings fetched before a trade landed")
            return None

        snapshot = self.store.load(holdings)
        self._loaded_version = snapshot.version
        return snapshot

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------

    def _on_holdings_changed(self, change: HoldingsChange) -> None:
        if change.reason == "trade":
            self.invalidate(f"holdings changed by trade (version {change.version})")

    def _carry_over(
        self,
        state: SessionState,
        summary: Optional[PortfolioSummary] = None,
        holdings_version: Optional[int] = None,
        error: Optional[TaxOptimizerError] = None,
    ) -> SessionStatus:
        """Status for a non-final state, keeping earlier results visible but stale."""
        prev = self._status
        fresh = summary is not None
        return SessionStatus(
            state=state,
            summary=summary if fresh else prev.summary,
            suggestions=prev.suggestions,
            error=error,
            holdings_version=holdings_version if fresh else prev.holdings_version,
            stale=bool(prev.suggestions) or (not fresh and prev.summary is not None),
        )

    def _publish(self, generation: int, status: SessionStatus) -> None:
        if generation != self._generation:
            return
        self._set_status(status)

    def _set_status(self, status: SessionStatus) -> None:
        logger.debug("Analysis session -> %s", status.state.value)
        self._status = status
        for listener in list(self._listeners):
            listener(status)
