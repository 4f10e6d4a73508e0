"""
Portfolio Aggregation Module

Combines per-ticker return series into one weighted portfolio return series.

Portfolio return per date:
    R_p,t = Σ(w_i * r_i,t) / Σ|w_i|

Dividing by gross exposure lets callers pass raw position sizes or
leveraged/long-short weights while keeping proportional exposure.
"""

from __future__ import annotations

from typing import Dict, Mapping

import numpy as np
import pandas as pd
import structlog

from .exceptions import DateMisalignmentError, EmptyPortfolioError, UnknownTickerError

logger = structlog.get_logger(__name__)

PORTFOLIO_SERIES_ID = "portfolio"


def normalize_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """Scale weights by gross exposure so their absolute values sum to 1.

    Raises:
        EmptyPortfolioError: Weights empty or gross exposure is zero
    """
    if not weights:
        raise EmptyPortfolioError("Portfolio weights mapping is empty")

    gross = float(np.sum(np.abs(np.asarray(list(weights.values()), dtype=float))))
    if not np.isfinite(gross):
        raise EmptyPortfolioError(f"Portfolio gross exposure is not finite: {gross}", weights=dict(weights))
    if gross == 0:
        raise EmptyPortfolioError(
            "Portfolio has zero gross exposure (sum of absolute weights is 0)",
            weights=dict(weights),
        )

    return {ticker: float(w) / gross for ticker, w in weights.items()}


def _check_alignment(returns: Mapping[str, pd.Series], tickers: list[str]) -> pd.Index:
    """Return the shared date index or raise DateMisalignmentError."""
    reference_ticker = tickers[0]
    reference = returns[reference_ticker].index

    for ticker in tickers[1:]:
        index = returns[ticker].index
        if index.equals(reference):
            continue

        mismatch = reference.symmetric_difference(index)
        first = mismatch.min() if len(mismatch) else None
        if first is None:
            # Same dates, different order
            for a, b in zip(reference, index):
                if a != b:
                    first = a
                    break
        raise DateMisalignmentError(
            f"Return series for {reference_ticker} and {ticker} are not aligned "
            f"({len(reference)} vs {len(index)} dates, first mismatch {first}); "
            "restrict inputs to TimeSeriesStore.align_dates first",
            series=(reference_ticker, ticker),
            first_mismatch=first,
        )

    return reference


def aggregate(
    returns: Mapping[str, pd.Series],
    weights: Mapping[str, float],
) -> pd.Series:
    """Weighted portfolio return series.

    Args:
        returns: Mapping ticker -> return series, all on the same date index
        weights: Mapping ticker -> weight; need not sum to 1, may be negative

    Returns:
        Series named 'portfolio' on the shared date index

    Raises:
        EmptyPortfolioError: Weights empty or zero gross exposure
        UnknownTickerError: A weighted ticker has no return series
        DateMisalignmentError: Input series do not share one date index
    """
    exposures = normalize_weights(weights)
    tickers = list(exposures)

    for ticker in tickers:
        if ticker not in returns:
            raise UnknownTickerError(ticker)

    index = _check_alignment(returns, tickers)

    matrix = np.column_stack([returns[t].to_numpy(dtype=float) for t in tickers])
    w = np.array([exposures[t] for t in tickers])

    portfolio = pd.Series(matrix @ w, index=index, name=PORTFOLIO_SERIES_ID)

    logger.info(
        "aggregate: portfolio returns computed",
        num_tickers=len(tickers),
        num_periods=len(portfolio),
        gross_weight=float(sum(abs(float(v)) for v in weights.values())),
    )

    return portfolio
