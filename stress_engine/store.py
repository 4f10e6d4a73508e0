"""
Time Series Store

In-memory OHLCV history keyed by ticker and date.  Each ticker's series is
validated once at load time and never mutated afterwards; readers always
receive copies.  The store is an explicit object owned by the caller, not a
process-wide dataset.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import Iterable, Iterator, List, Mapping, Optional, Union

import pandas as pd
import structlog

from .exceptions import (
    DuplicateDateError,
    InsufficientDataError,
    InvalidPriceError,
    UnknownTickerError,
)
from .models import PricePoint

logger = structlog.get_logger(__name__)

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]
PRICE_FIELDS = ("open", "high", "low", "close")

DateLike = Union[dt.date, str]


def _validate_point(ticker: str, point: PricePoint) -> None:
    """Raise InvalidPriceError if a point breaks the OHLCV rules."""
    for field in PRICE_FIELDS:
        value = getattr(point, field)
        if not math.isfinite(value) or value <= 0:
            raise InvalidPriceError(ticker, point.date, field, value, "price must be positive and finite")

    if point.high < point.low:
        raise InvalidPriceError(
            ticker, point.date, "high", point.high, f"high below low ({point.low})"
        )

    for field in ("open", "close"):
        value = getattr(point, field)
        if not point.low <= value <= point.high:
            raise InvalidPriceError(
                ticker, point.date, field, value,
                f"outside [low, high] = [{point.low}, {point.high}]",
            )

    if point.volume < 0:
        raise InvalidPriceError(ticker, point.date, "volume", point.volume, "volume must be non-negative")


def _build_frame(ticker: str, points: Iterable[PricePoint]) -> pd.DataFrame:
    """Validate points and build the sorted OHLCV frame for one ticker."""
    points = list(points)
    if not points:
        raise InsufficientDataError(
            f"No price points supplied for {ticker}", available=0, required=1, ticker=ticker
        )

    seen: set[dt.date] = set()
    for point in points:
        if point.date in seen:
            raise DuplicateDateError(ticker, point.date)
        seen.add(point.date)
        _validate_point(ticker, point)

    frame = pd.DataFrame(
        [[p.open, p.high, p.low, p.close, p.volume] for p in points],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in points], name="date"),
        columns=OHLCV_COLUMNS,
    ).sort_index()
    frame["volume"] = frame["volume"].astype("int64")
    frame.attrs["ticker"] = ticker
    return frame


class TimeSeriesStore:
    """Per-ticker OHLCV series with explicit load/compute phase separation.

    ``load`` is expected to run from a single ingestion thread before any
    computation begins.  Concurrent reads afterwards are safe because stored
    frames are never handed out directly.
    """

    def __init__(self) -> None:
        self._series: dict[str, pd.DataFrame] = {}

    def __contains__(self, ticker: object) -> bool:
        return ticker in self._series

    def __len__(self) -> int:
        return len(self._series)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._series))

    @property
    def tickers(self) -> List[str]:
        """Loaded ticker symbols, sorted."""
        return sorted(self._series)

    def load(self, ticker: str, points: Iterable[PricePoint]) -> None:
        """Validate and store the history for one ticker.

        Points may arrive in any order; they are stored ascending by date.
        Reloading a ticker replaces its series only after the new points
        pass validation.

        Raises:
            DuplicateDateError: Two points share a date.
            InvalidPriceError: A point violates the price/volume rules.
            InsufficientDataError: No points supplied.
        """
        self._store(ticker, _build_frame(ticker, points))

    def load_many(self, series: Mapping[str, Iterable[PricePoint]]) -> None:
        """Validate several tickers, then store them all.

        Nothing is stored unless every ticker passes validation.

        Raises:
            DuplicateDateError, InvalidPriceError, InsufficientDataError:
                As for ``load``, for the first ticker that fails.
        """
        frames = {ticker: _build_frame(ticker, points) for ticker, points in series.items()}
        for ticker, frame in frames.items():
            self._store(ticker, frame)

    def _store(self, ticker: str, frame: pd.DataFrame) -> None:
        replaced = ticker in self._series
        self._series[ticker] = frame

        logger.info(
            "load: series stored",
            ticker=ticker,
            num_points=len(frame),
            date_range=f"{frame.index.min().date()} to {frame.index.max().date()}",
            replaced=replaced,
        )

    def unload(self, ticker: str) -> None:
        """Drop a ticker's series.

        Raises:
            UnknownTickerError: Ticker not loaded.
        """
        if ticker not in self._series:
            raise UnknownTickerError(ticker)
        del self._series[ticker]
        logger.info("unload: series dropped", ticker=ticker)

    def get(
        self,
        ticker: str,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> pd.DataFrame:
        """Return a copy of a ticker's series, optionally limited to [start, end].

        Both bounds are inclusive.  The frame is indexed by ``date`` with
        columns open, high, low, close, volume and ``attrs["ticker"]`` set.

        Raises:
            UnknownTickerError: Ticker not loaded.
        """
        try:
            frame = self._series[ticker]
        except KeyError:
            raise UnknownTickerError(ticker) from None

        lo = pd.Timestamp(start) if start is not None else None
        hi = pd.Timestamp(end) if end is not None else None
        view = frame.loc[lo:hi].copy()
        view.attrs["ticker"] = ticker
        return view

    def align_dates(self, tickers: Iterable[str]) -> pd.DatetimeIndex:
        """Dates present in every requested ticker's series, ascending.

        Tickers can trade on different calendars (IPOs, delistings,
        suspensions), so portfolio work must run on this intersection
        rather than on positional rows.

        Raises:
            UnknownTickerError: Any requested ticker not loaded.
        """
        tickers = list(dict.fromkeys(tickers))
        if not tickers:
            return pd.DatetimeIndex([], name="date")

        common: Optional[pd.DatetimeIndex] = None
        for ticker in tickers:
            if ticker not in self._series:
                raise UnknownTickerError(ticker)
            index = self._series[ticker].index
            common = index if common is None else common.intersection(index)

        common = common.sort_values()
        common.name = "date"

        logger.debug(
            "align_dates: intersection computed",
            tickers=tickers,
            common_dates=len(common),
        )
        return common
