"""
Stress Engine

Historical-data-driven portfolio stress testing and risk metrics.
Pure computation modules operating on pandas Series/DataFrames.

Modules:
- store: In-memory OHLCV time series keyed by ticker and date
- ingest: Tabular OHLCV -> validated price points
- returns: Simple/log returns and explicit date alignment
- portfolio: Weighted portfolio return aggregation
- metrics: VaR, CVaR, volatility, max drawdown
- stress: Historical replay, Monte Carlo paths, batch scenario scoring
- factors: OLS factor sensitivities
"""

# Errors
from .exceptions import (
    RiskEngineError,
    DuplicateDateError,
    InvalidPriceError,
    UnknownTickerError,
    InsufficientDataError,
    DateMisalignmentError,
    EmptyPortfolioError,
    InvalidConfidenceError,
    EmptyWindowError,
    IngestError,
)

# Models
from .models import (
    PricePoint,
    HistoricalScenario,
    MonteCarloScenario,
    StressScenario,
    RiskReport,
    ScenarioSummary,
    FactorFit,
)

# Store and ingestion
from .store import TimeSeriesStore
from .ingest import (
    price_points_from_frame,
    load_frame,
    read_ohlcv_csv,
)

# Returns module
from .returns import (
    compute_returns,
    compute_simple_returns,
    compute_log_returns,
    align_returns,
    returns_for_tickers,
)

# Portfolio module
from .portfolio import (
    aggregate,
    normalize_weights,
)

# Metrics module
from .metrics import (
    value_at_risk,
    conditional_var,
    volatility,
    max_drawdown,
    compute_metric,
    build_risk_summary,
    METRICS,
)

# Stress testing module
from .stress import (
    replay,
    simulate,
    run_scenario,
    score_scenarios,
    run_historical_scenarios,
    HISTORICAL_SCENARIOS,
)

# Factor module
from .factors import fit as fit_factor_model

__all__ = [
    # Errors
    'RiskEngineError',
    'DuplicateDateError',
    'InvalidPriceError',
    'UnknownTickerError',
    'InsufficientDataError',
    'DateMisalignmentError',
    'EmptyPortfolioError',
    'InvalidConfidenceError',
    'EmptyWindowError',
    'IngestError',
    # Models
    'PricePoint',
    'HistoricalScenario',
    'MonteCarloScenario',
    'StressScenario',
    'RiskReport',
    'ScenarioSummary',
    'FactorFit',
    # Store and ingestion
    'TimeSeriesStore',
    'price_points_from_frame',
    'load_frame',
    'read_ohlcv_csv',
    # Returns
    'compute_returns',
    'compute_simple_returns',
    'compute_log_returns',
    'align_returns',
    'returns_for_tickers',
    # Portfolio
    'aggregate',
    'normalize_weights',
    # Metrics
    'value_at_risk',
    'conditional_var',
    'volatility',
    'max_drawdown',
    'compute_metric',
    'build_risk_summary',
    'METRICS',
    # Stress testing
    'replay',
    'simulate',
    'run_scenario',
    'score_scenarios',
    'run_historical_scenarios',
    'HISTORICAL_SCENARIOS',
    # Factors
    'fit_factor_model',
]
