"""
OHLCV Ingestion Adapter

Converts tabular OHLCV data (Date, Open, High, Low, Close, Volume and, for
merged multi-stock files, Name) into validated PricePoints and loads them
into a TimeSeriesStore.  Parse problems surface here as IngestError, before
anything reaches the store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

import pandas as pd
import structlog
from pydantic import ValidationError

from .exceptions import IngestError
from .models import PricePoint
from .store import TimeSeriesStore

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ("date", "open", "high", "low", "close", "volume")


def _normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    """Lower-case and strip column names; reject frames missing OHLCV columns."""
    renamed = frame.rename(columns=lambda c: str(c).strip().lower())
    missing = [c for c in REQUIRED_COLUMNS if c not in renamed.columns]
    if missing:
        raise IngestError(
            f"OHLCV frame is missing columns: {missing}",
            missing=missing,
            columns=list(frame.columns),
        )
    return renamed


def price_points_from_frame(frame: pd.DataFrame) -> List[PricePoint]:
    """Build PricePoints from a single-ticker OHLCV frame.

    Column names are matched case-insensitively.

    Raises:
        IngestError: Missing columns, or a row that cannot be typed
            (unparseable date, blank price, fractional volume)
    """
    frame = _normalize_columns(frame)

    points: List[PricePoint] = []
    for row_number, row in enumerate(frame[list(REQUIRED_COLUMNS)].itertuples(index=False), start=1):
        # numpy scalars -> python scalars for pydantic
        record = {
            k: v.item() if k != "date" and hasattr(v, "item") else v
            for k, v in row._asdict().items()
        }
        try:
            if any(pd.isna(record[c]) for c in REQUIRED_COLUMNS):
                raise ValueError("blank OHLCV value")
            record["date"] = pd.Timestamp(record["date"]).date()
            points.append(PricePoint(**record))
        except (ValidationError, ValueError, TypeError) as e:
            raise IngestError(
                f"Row {row_number} could not be parsed: {e}",
                row=row_number,
                record={k: str(v) for k, v in record.items()},
            ) from e

    return points


def load_frame(
    store: TimeSeriesStore,
    frame: pd.DataFrame,
    ticker_col: str = "Name",
) -> Dict[str, int]:
    """Load a merged multi-ticker OHLCV frame into the store.

    Rows are grouped by ``ticker_col`` (case-insensitive) and each group is
    loaded as one ticker series.  Loading is all-or-nothing: the store is
    left untouched if any row or ticker fails.

    Returns:
        {ticker: number of points loaded}

    Raises:
        IngestError: Missing ticker column or unparseable rows
        DuplicateDateError, InvalidPriceError: From TimeSeriesStore.load_many
    """
    key = ticker_col.strip().lower()
    normalized = _normalize_columns(frame)
    if key not in normalized.columns:
        raise IngestError(f"OHLCV frame has no ticker column '{ticker_col}'", column=ticker_col)

    # Parse every group before touching the store
    parsed: Dict[str, List[PricePoint]] = {}
    for ticker, group in normalized.groupby(key, sort=True):
        ticker = str(ticker)
        try:
            parsed[ticker] = price_points_from_frame(group)
        except IngestError as e:
            raise IngestError(f"{ticker}: {e.message}", ticker=ticker, **e.context) from e

    store.load_many(parsed)
    loaded = {ticker: len(points) for ticker, points in parsed.items()}

    logger.info(
        "load_frame: tickers loaded",
        num_tickers=len(loaded),
        num_rows=int(sum(loaded.values())),
    )

    return loaded


def read_ohlcv_csv(path: Union[str, Path]) -> pd.DataFrame:
    """Read a delimited OHLCV file as-is (no type coercion beyond pandas defaults)."""
    frame = pd.read_csv(path)
    logger.info("read_ohlcv_csv: file read", path=str(path), rows=len(frame))
    return frame
