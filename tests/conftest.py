"""
Shared test fixtures for the stress engine test suite.

Provides consistent test data across all test modules:
- Price point builders and a loaded two-ticker store
- Known 10-day AAPL/MSFT closes for hand-checked portfolio returns
- A long seeded baseline return series spanning 2019-2023
"""

import pytest
import numpy as np
import pandas as pd

from stress_engine.config import get_settings
from stress_engine.models import PricePoint
from stress_engine.store import TimeSeriesStore


AAPL_CLOSES = [100.0, 102.0, 101.0, 103.0, 104.0, 102.0, 105.0, 106.0, 104.0, 108.0]
MSFT_CLOSES = [200.0, 198.0, 202.0, 204.0, 203.0, 207.0, 206.0, 210.0, 212.0, 211.0]


def make_points(closes, dates=None, volume=1_000_000):
    """Build consistent PricePoints (open = close, 1% high/low band).

    Args:
        closes: Close prices
        dates: Matching dates; defaults to business days from 2024-01-02

    Returns:
        List[PricePoint]
    """
    if dates is None:
        dates = pd.bdate_range('2024-01-02', periods=len(closes))
    return [
        PricePoint(
            date=pd.Timestamp(d).date(),
            open=c,
            high=c * 1.01,
            low=c * 0.99,
            close=c,
            volume=volume,
        )
        for d, c in zip(dates, closes)
    ]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def trading_dates():
    """Ten business days starting 2024-01-02."""
    return pd.bdate_range('2024-01-02', periods=10)


@pytest.fixture
def sample_store(trading_dates):
    """Store loaded with 10 days of known AAPL and MSFT closes.

    Returns:
        TimeSeriesStore
    """
    store = TimeSeriesStore()
    store.load('AAPL', make_points(AAPL_CLOSES, trading_dates))
    store.load('MSFT', make_points(MSFT_CLOSES, trading_dates))
    return store


@pytest.fixture
def baseline_returns():
    """Seeded daily returns over 1200 business days from 2019-01-01.

    Covers the 2020 COVID crash and 2022 rates shock windows but neither
    the 2008 GFC nor Q4 2018.

    Returns:
        pd.Series: named 'portfolio'
    """
    rng = np.random.default_rng(42)
    dates = pd.bdate_range('2019-01-01', periods=1200, name='date')
    return pd.Series(rng.normal(0.0004, 0.012, len(dates)), index=dates, name='portfolio')


@pytest.fixture
def short_returns():
    """Five returns, too few for VaR."""
    dates = pd.bdate_range('2024-01-02', periods=5, name='date')
    return pd.Series([0.01, -0.02, 0.005, 0.0, -0.01], index=dates, name='short')


@pytest.fixture
def uniform_returns():
    """100 returns evenly spaced from -0.10 to +0.09."""
    dates = pd.bdate_range('2024-01-02', periods=100, name='date')
    return pd.Series(np.linspace(-0.10, 0.09, 100), index=dates, name='uniform')


@pytest.fixture
def points_factory():
    """The make_points builder, for tests that need custom series."""
    return make_points
