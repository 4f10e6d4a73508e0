"""
Unit tests for store.py - Time Series Store

Tests cover:
- Load validation (duplicates, OHLCV consistency, volume)
- Date-range views and copy semantics
- Date alignment across trading calendars
- Reload and unload lifecycle
"""

import datetime as dt

import pytest
import numpy as np
import pandas as pd

from stress_engine.exceptions import (
    DuplicateDateError,
    InsufficientDataError,
    InvalidPriceError,
    RiskEngineError,
    UnknownTickerError,
)
from stress_engine.models import PricePoint
from stress_engine.store import TimeSeriesStore


def _point(day=2, open=10.0, high=11.0, low=9.0, close=10.5, volume=100):
    return PricePoint(date=dt.date(2024, 1, day), open=open, high=high, low=low, close=close, volume=volume)


class TestLoad:
    """Tests for TimeSeriesStore.load."""

    def test_load_sorts_points_by_date(self, points_factory):
        """Unsorted input is stored ascending."""
        points = points_factory([10.0, 11.0, 12.0])
        store = TimeSeriesStore()
        store.load('XYZ', list(reversed(points)))

        frame = store.get('XYZ')
        assert frame.index.is_monotonic_increasing
        assert list(frame['close']) == [10.0, 11.0, 12.0]
        assert list(frame.columns) == ['open', 'high', 'low', 'close', 'volume']
        assert frame.attrs['ticker'] == 'XYZ'

    def test_duplicate_date_raises(self):
        """Two points on one date are rejected with ticker and date context."""
        store = TimeSeriesStore()

        with pytest.raises(DuplicateDateError) as exc_info:
            store.load('XYZ', [_point(day=2), _point(day=3), _point(day=2, close=10.0)])

        assert exc_info.value.ticker == 'XYZ'
        assert exc_info.value.date == dt.date(2024, 1, 2)
        assert 'XYZ' not in store

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({'high': 8.0}, 'high'),                               # high < low
            ({'open': 12.0}, 'open'),                              # open above high
            ({'close': 8.5}, 'close'),                             # close below low
            ({'low': 0.0, 'open': 1.0, 'close': 1.0}, 'low'),      # zero price
            ({'open': -1.0}, 'open'),                              # negative price
            ({'close': float('nan')}, 'close'),                    # non-finite
            ({'volume': -5}, 'volume'),
        ],
    )
    def test_invalid_price_raises(self, kwargs, field):
        """Each OHLCV rule violation names the offending field."""
        store = TimeSeriesStore()

        with pytest.raises(InvalidPriceError) as exc_info:
            store.load('XYZ', [_point(**kwargs)])

        assert exc_info.value.field == field
        assert exc_info.value.ticker == 'XYZ'

    def test_boundary_prices_accepted(self):
        """Open and close may sit exactly on the high/low bounds."""
        store = TimeSeriesStore()
        store.load('XYZ', [_point(open=9.0, close=11.0), _point(day=3, high=10.0, low=10.0, open=10.0, close=10.0)])

        assert len(store.get('XYZ')) == 2

    def test_empty_points_raises(self):
        """No points is insufficient data, not an empty series."""
        store = TimeSeriesStore()

        with pytest.raises(InsufficientDataError):
            store.load('XYZ', [])

    def test_reload_replaces_series(self, points_factory):
        """Loading a ticker again replaces its history."""
        store = TimeSeriesStore()
        store.load('XYZ', points_factory([10.0, 11.0]))
        store.load('XYZ', points_factory([20.0, 21.0, 22.0]))

        assert list(store.get('XYZ')['close']) == [20.0, 21.0, 22.0]

    def test_failed_reload_keeps_previous_series(self, points_factory):
        """Validation runs before replacement."""
        store = TimeSeriesStore()
        store.load('XYZ', points_factory([10.0, 11.0]))

        with pytest.raises(InvalidPriceError):
            store.load('XYZ', [_point(high=1.0)])

        assert list(store.get('XYZ')['close']) == [10.0, 11.0]

    def test_errors_share_base_class(self):
        """All engine errors are RiskEngineError and ValueError."""
        store = TimeSeriesStore()

        with pytest.raises(RiskEngineError):
            store.load('XYZ', [_point(volume=-1)])
        with pytest.raises(ValueError):
            store.load('XYZ', [_point(volume=-1)])


class TestGet:
    """Tests for TimeSeriesStore.get."""

    def test_unknown_ticker_raises(self, sample_store):
        with pytest.raises(UnknownTickerError) as exc_info:
            sample_store.get('NOPE')

        assert exc_info.value.ticker == 'NOPE'

    def test_unknown_ticker_is_key_error(self, sample_store):
        with pytest.raises(KeyError):
            sample_store.get('NOPE')

    def test_date_range_inclusive(self, sample_store, trading_dates):
        """Both range bounds are included."""
        frame = sample_store.get('AAPL', start=trading_dates[2], end=trading_dates[5])

        assert len(frame) == 4
        assert frame.index[0] == trading_dates[2]
        assert frame.index[-1] == trading_dates[5]

    def test_open_ended_range(self, sample_store, trading_dates):
        frame = sample_store.get('AAPL', start='2024-01-10')

        assert frame.index[0] == pd.Timestamp('2024-01-10')
        assert frame.index[-1] == trading_dates[-1]

    def test_get_returns_copy(self, sample_store):
        """Mutating a returned frame does not touch stored data."""
        frame = sample_store.get('AAPL')
        frame.iloc[0, frame.columns.get_loc('close')] = 999.0

        assert sample_store.get('AAPL')['close'].iloc[0] == 100.0


class TestAlignDates:
    """Tests for TimeSeriesStore.align_dates."""

    def test_intersection_of_calendars(self, points_factory):
        """Only dates every ticker traded on survive."""
        store = TimeSeriesStore()
        dates = pd.bdate_range('2024-01-02', periods=6)
        store.load('A', points_factory([10.0] * 6, dates))
        # B lists a day later (IPO) and skips one day (suspension)
        b_dates = dates[1:].delete(2)
        store.load('B', points_factory([20.0] * len(b_dates), b_dates))

        common = store.align_dates(['A', 'B'])

        assert list(common) == list(b_dates)
        assert common.is_monotonic_increasing

    def test_single_ticker_returns_its_dates(self, sample_store, trading_dates):
        common = sample_store.align_dates(['AAPL'])

        assert list(common) == list(trading_dates)

    def test_empty_request(self, sample_store):
        assert len(sample_store.align_dates([])) == 0

    def test_unknown_ticker_raises(self, sample_store):
        with pytest.raises(UnknownTickerError):
            sample_store.align_dates(['AAPL', 'NOPE'])


class TestLifecycle:
    """Tests for unload and container helpers."""

    def test_unload(self, sample_store):
        sample_store.unload('AAPL')

        assert 'AAPL' not in sample_store
        assert sample_store.tickers == ['MSFT']
        assert len(sample_store) == 1

    def test_unload_unknown_raises(self, sample_store):
        with pytest.raises(UnknownTickerError):
            sample_store.unload('NOPE')

    def test_iteration_sorted(self, sample_store):
        assert list(sample_store) == ['AAPL', 'MSFT']

    def test_stores_are_independent(self, points_factory):
        """No shared process-wide state between store instances."""
        first = TimeSeriesStore()
        second = TimeSeriesStore()
        first.load('A', points_factory([1.0, 2.0]))

        assert 'A' in first
        assert 'A' not in second
        assert np.isclose(first.get('A')['close'].sum(), 3.0)

    def test_load_many_stores_all(self, points_factory):
        store = TimeSeriesStore()

        store.load_many({'A': points_factory([1.0, 2.0]), 'B': points_factory([3.0, 4.0, 5.0])})

        assert store.tickers == ['A', 'B']
        assert len(store.get('B')) == 3

    def test_load_many_all_or_nothing(self, sample_store, points_factory):
        """One invalid ticker leaves every existing and new series as it was."""
        bad = points_factory([1.0, 2.0])
        bad.append(bad[0])

        with pytest.raises(DuplicateDateError):
            sample_store.load_many({'AAPL': points_factory([50.0, 51.0]), 'ZZZ': bad})

        assert sample_store.tickers == ['AAPL', 'MSFT']
        assert len(sample_store.get('AAPL')) == 10
