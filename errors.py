"""
Error kinds raised by the tax optimization engine.

DataFetchError and AnalysisError end up on the analysis session as its
``error``. TradeError subclasses are returned to the caller by the command
surface. UnresolvedReference never leaves the summary/analyzer: it is caught,
logged and the holding is skipped.
"""


class TaxOptimizerError(Exception):
    pass


class DataFetchError(TaxOptimizerError):
    """The instrument or holdings provider failed. Retryable."""


class UnresolvedReference(TaxOptimizerError):
    def __init__(self, ticker: str) -> None:
        super().__init__(f"No instrument found for ticker {ticker!r}")
        self.ticker = ticker


class AnalysisError(TaxOptimizerError):
    """Unexpected failure inside the pure analysis pipeline."""


class TradeError(TaxOptimizerError):
    pass


class UnknownInstrument(TradeError):
    def __init__(self, ticker: str) -> None:
        super().__init__(f"Trade rejected: unknown instrument {ticker!r}")
        self.ticker = ticker


class OverSellError(TradeError):
    def __init__(self, ticker: str, requested: int, held: int) -> None:
        super().__init__(
            f"Trade rejected: selling {requested} shares of {ticker} "
            f"but only {held} are held"
        )
        self.ticker = ticker
        self.requested = requested
        self.held = held


class StaleSuggestionError(TradeError):
    def __init__(self, expected_version, current_version) -> None:
        super().__init__(
            f"Trade rejected: suggestion was computed against holdings "
            f"version {expected_version}, current version is {current_version}"
        )
        self.expected_version = expected_version
        self.current_version = current_version


class OrderSubmissionError(TradeError):
    """The backend refused the post-trade positions; the store was rolled back."""

    def __init__(self, ticker: str, cause: Exception) -> None:
        super().__init__(f"Trade rejected: order for {ticker} could not be submitted ({cause})")
        self.ticker = ticker
