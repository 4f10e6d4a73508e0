"""
Return Construction Module

Pure functions deriving simple and log return series from stored close
prices, plus the explicit date-alignment step used before any cross-ticker
computation.
"""

from __future__ import annotations

from typing import Dict, Iterable, Literal, Mapping, Optional

import numpy as np
import pandas as pd
import structlog

from .exceptions import InsufficientDataError
from .store import DateLike, TimeSeriesStore

logger = structlog.get_logger(__name__)

ReturnMethod = Literal["simple", "log"]
RETURN_METHODS = ("simple", "log")


def compute_returns(series: pd.DataFrame, method: ReturnMethod = "simple") -> pd.Series:
    """Compute close-to-close returns for one ticker series.

    simple_return = (C_t - C_{t-1}) / C_{t-1}
    log_return    = ln(C_t / C_{t-1})

    Args:
        series: Ticker frame from ``TimeSeriesStore.get`` (needs a ``close`` column)
        method: 'simple' or 'log'

    Returns:
        Series of len(series) - 1 returns indexed by date, named after the ticker

    Raises:
        InsufficientDataError: Fewer than 2 price points
        ValueError: Unknown method
    """
    if method not in RETURN_METHODS:
        raise ValueError(f"Unknown return method '{method}', expected one of {RETURN_METHODS}")

    ticker = series.attrs.get("ticker", "series")

    if len(series) < 2:
        raise InsufficientDataError(
            f"Need at least 2 price points to compute returns for {ticker}, got {len(series)}",
            available=len(series),
            required=2,
            ticker=ticker,
        )

    close = series["close"].astype(float)

    # Close prices are validated positive at load time
    if method == "log":
        returns = np.log(close / close.shift(1))
    else:
        returns = close.diff() / close.shift(1)

    returns = returns.iloc[1:]
    returns.name = ticker

    logger.debug(
        "compute_returns: returns computed",
        ticker=ticker,
        method=method,
        num_periods=len(returns),
    )

    return returns


def compute_simple_returns(series: pd.DataFrame) -> pd.Series:
    """Simple returns: (C_t - C_{t-1}) / C_{t-1}"""
    return compute_returns(series, method="simple")


def compute_log_returns(series: pd.DataFrame) -> pd.Series:
    """Log returns: ln(C_t / C_{t-1})"""
    return compute_returns(series, method="log")


def align_returns(returns: Mapping[str, pd.Series]) -> Dict[str, pd.Series]:
    """Restrict every return series to the dates they all share.

    Args:
        returns: Mapping of name -> return series

    Returns:
        New mapping with each series reindexed to the common dates (ascending)
    """
    if not returns:
        return {}

    common: Optional[pd.Index] = None
    for series in returns.values():
        common = series.index if common is None else common.intersection(series.index)
    common = common.sort_values()

    aligned = {name: series.loc[common] for name, series in returns.items()}

    dropped = {name: len(series) - len(common) for name, series in returns.items() if len(series) != len(common)}
    if dropped:
        logger.info(
            "align_returns: dropped non-overlapping dates",
            common_dates=len(common),
            dropped=dropped,
        )

    return aligned


def returns_for_tickers(
    store: TimeSeriesStore,
    tickers: Iterable[str],
    method: ReturnMethod = "simple",
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
) -> Dict[str, pd.Series]:
    """Aligned return series for several tickers.

    Convenience function that:
    1. Intersects the tickers' trading calendars via ``store.align_dates``
    2. Restricts each price series to those dates (and to [start, end])
    3. Computes returns on the aligned prices

    Returns are taken between consecutive *common* dates, so a date one
    ticker skipped never produces a multi-day return for the others on a
    mismatched row.

    Raises:
        UnknownTickerError: A ticker is not loaded
        InsufficientDataError: Fewer than 2 common dates
    """
    tickers = list(dict.fromkeys(tickers))
    common = store.align_dates(tickers)

    if start is not None:
        common = common[common >= pd.Timestamp(start)]
    if end is not None:
        common = common[common <= pd.Timestamp(end)]

    result: Dict[str, pd.Series] = {}
    for ticker in tickers:
        prices = store.get(ticker).loc[common]
        prices.attrs["ticker"] = ticker
        result[ticker] = compute_returns(prices, method=method)

    logger.info(
        "returns_for_tickers: returns prepared",
        tickers=tickers,
        method=method,
        common_dates=len(common),
    )

    return result
