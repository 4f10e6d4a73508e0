"""Error taxonomy for the stress engine.

Every failure is a local validation error raised synchronously to the
caller.  Each exception keeps the offending context (ticker, date, value)
as attributes so callers can diagnose without re-deriving state.
"""

from __future__ import annotations

from typing import Any


class RiskEngineError(ValueError):
    """Base class for all engine validation failures."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class DuplicateDateError(RiskEngineError):
    """Two price points for one ticker share a date."""

    def __init__(self, ticker: str, date: Any) -> None:
        super().__init__(
            f"Duplicate date {date} in series for {ticker}",
            ticker=ticker,
            date=date,
        )
        self.ticker = ticker
        self.date = date


class InvalidPriceError(RiskEngineError):
    """A price point violates the OHLCV consistency rules."""

    def __init__(self, ticker: str, date: Any, field: str, value: Any, reason: str) -> None:
        super().__init__(
            f"Invalid {field}={value!r} for {ticker} on {date}: {reason}",
            ticker=ticker,
            date=date,
            field=field,
            value=value,
        )
        self.ticker = ticker
        self.date = date
        self.field = field
        self.value = value
        self.reason = reason


class UnknownTickerError(RiskEngineError, KeyError):
    """Requested ticker has no loaded series."""

    def __init__(self, ticker: str) -> None:
        super().__init__(f"Unknown ticker: {ticker}", ticker=ticker)
        self.ticker = ticker


class InsufficientDataError(RiskEngineError):
    """Not enough observations for a well-defined result."""

    def __init__(self, message: str, available: int | None = None, required: int | None = None, **context: Any) -> None:
        super().__init__(message, available=available, required=required, **context)
        self.available = available
        self.required = required


class DateMisalignmentError(RiskEngineError):
    """Series that must share a date index do not."""

    def __init__(self, message: str, series: tuple[str, ...] = (), first_mismatch: Any = None) -> None:
        super().__init__(message, series=series, first_mismatch=first_mismatch)
        self.series = series
        self.first_mismatch = first_mismatch


class EmptyPortfolioError(RiskEngineError):
    """Weights mapping is empty or has zero gross exposure."""


class InvalidConfidenceError(RiskEngineError):
    """Confidence level outside the open interval (0, 1)."""

    def __init__(self, confidence: Any) -> None:
        super().__init__(
            f"Confidence must be between 0 and 1 (exclusive), got {confidence}",
            confidence=confidence,
        )
        self.confidence = confidence


class EmptyWindowError(RiskEngineError):
    """A historical scenario window selects no observations."""

    def __init__(self, scenario: str, start: Any, end: Any) -> None:
        super().__init__(
            f"Scenario '{scenario}' window {start} to {end} contains no observations",
            scenario=scenario,
            start=start,
            end=end,
        )
        self.scenario = scenario
        self.start = start
        self.end = end


class IngestError(RiskEngineError):
    """Tabular OHLCV input could not be converted into price points."""
