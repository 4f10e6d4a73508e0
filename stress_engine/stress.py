"""
Stress Testing Module

Historical replay and Monte Carlo stress scenarios over a baseline return
series, with batch scoring of the resulting paths through the metric
engine.

Monte Carlo paths are i.i.d. draws from a distribution fitted to the
baseline:
    normal:    N(mu, sigma) with the baseline sample mean and std
    bootstrap: observed baseline returns resampled with replacement
    student_t: t(nu) fitted by MLE, rescaled to the baseline mean and std

Each path owns a generator spawned from one SeedSequence, so path i depends
only on (seed, i).  Serial and threaded generation give identical,
index-stable results.
"""

from __future__ import annotations

import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import structlog
from scipy import stats

from .config import get_settings
from .exceptions import DateMisalignmentError, EmptyWindowError, InsufficientDataError, RiskEngineError
from .metrics import (
    CONFIDENCE_METRICS,
    METRICS,
    _finite_values,
    _series_id,
    compute_metric,
    validate_confidence,
)
from .models import HistoricalScenario, MonteCarloScenario, RiskReport, ScenarioSummary, StressScenario

logger = structlog.get_logger(__name__)


# Historical scenario windows (inclusive date ranges)
HISTORICAL_SCENARIOS: Dict[str, HistoricalScenario] = {
    'gfc_2008': HistoricalScenario(
        name='GFC (Oct 2007 - Mar 2009)',
        start=dt.date(2007, 10, 9),
        end=dt.date(2009, 3, 9),
    ),
    'q4_2018_selloff': HistoricalScenario(
        name='Q4 2018 Selloff (Oct-Dec 2018)',
        start=dt.date(2018, 10, 3),
        end=dt.date(2018, 12, 24),
    ),
    'covid_crash_2020': HistoricalScenario(
        name='COVID Crash (Feb-Mar 2020)',
        start=dt.date(2020, 2, 19),
        end=dt.date(2020, 3, 23),
    ),
    'rates_shock_2022': HistoricalScenario(
        name='2022 Rates Shock (Jan-Jun 2022)',
        start=dt.date(2022, 1, 3),
        end=dt.date(2022, 6, 16),
    ),
}

# Metrics where a larger value is the adverse outcome
_HIGHER_IS_WORSE = frozenset({"volatility"})

Sampler = Callable[[np.random.Generator, int], np.ndarray]


def _resolve_workers(max_workers: Optional[int]) -> int:
    workers = get_settings().MC_MAX_WORKERS if max_workers is None else max_workers
    if workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {workers}")
    return workers


def _ordered_map(func: Callable, items: Sequence, workers: int) -> list:
    """Apply func to items, preserving input order regardless of completion order."""
    if workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(func, items))
    return [func(item) for item in items]


# ---------------------------------------------------------------------------
# Historical replay
# ---------------------------------------------------------------------------

def replay(baseline: pd.Series, scenario: HistoricalScenario) -> pd.Series:
    """Extract the baseline returns falling inside the scenario window.

    Args:
        baseline: Return series indexed by date
        scenario: Historical window, both ends inclusive

    Returns:
        Sub-series named '<baseline>:<scenario name>'

    Raises:
        DateMisalignmentError: Baseline is not indexed by a DatetimeIndex
        EmptyWindowError: No baseline dates fall within [start, end]
    """
    if not isinstance(baseline.index, pd.DatetimeIndex):
        raise DateMisalignmentError(
            f"Cannot replay scenario '{scenario.name}' on {_series_id(baseline)}: "
            f"baseline index is {type(baseline.index).__name__}, not a DatetimeIndex",
            series=(_series_id(baseline),),
        )

    # Window bounds take the baseline's timezone, if any
    start = pd.Timestamp(scenario.start, tz=baseline.index.tz)
    end = pd.Timestamp(scenario.end, tz=baseline.index.tz)

    mask = (baseline.index >= start) & (baseline.index <= end)
    window = baseline.loc[mask].copy()

    if window.empty:
        raise EmptyWindowError(scenario.name, scenario.start, scenario.end)

    window.name = f"{_series_id(baseline)}:{scenario.name}"

    logger.info(
        "replay: window extracted",
        scenario=scenario.name,
        start=str(scenario.start),
        end=str(scenario.end),
        observations=len(window),
    )

    return window


# ---------------------------------------------------------------------------
# Monte Carlo simulation
# ---------------------------------------------------------------------------

def _normal_sampler(values: np.ndarray) -> Sampler:
    mu = float(np.mean(values))
    sigma = float(np.std(values, ddof=1))

    def sample(rng: np.random.Generator, size: int) -> np.ndarray:
        return rng.normal(mu, sigma, size)

    return sample


def _bootstrap_sampler(values: np.ndarray) -> Sampler:
    observed = values.copy()

    def sample(rng: np.random.Generator, size: int) -> np.ndarray:
        return rng.choice(observed, size=size, replace=True)

    return sample


def _student_t_sampler(values: np.ndarray) -> Sampler:
    """t innovations with MLE-fitted degrees of freedom.

    For nu > 2 the draws are standardized to unit variance
    (Var[t(nu)] = nu / (nu - 2)) and rescaled to the baseline mean and std.
    Otherwise the fitted location and scale are used directly.
    """
    nu, loc, scale = stats.t.fit(values)
    mu = float(np.mean(values))
    sigma = float(np.std(values, ddof=1))

    logger.debug("simulate: student-t fitted", dof=float(nu), loc=float(loc), scale=float(scale))

    def sample(rng: np.random.Generator, size: int) -> np.ndarray:
        z = rng.standard_t(nu, size)
        if nu > 2:
            return mu + sigma * z * np.sqrt((nu - 2) / nu)
        return loc + scale * z

    return sample


SAMPLERS: Dict[str, Callable[[np.ndarray], Sampler]] = {
    "normal": _normal_sampler,
    "bootstrap": _bootstrap_sampler,
    "student_t": _student_t_sampler,
}


def simulate(
    baseline: pd.Series,
    scenario: MonteCarloScenario,
    max_workers: Optional[int] = None,
) -> List[pd.Series]:
    """Generate synthetic return paths fitted to the baseline.

    Args:
        baseline: Observed return series (at least 2 finite observations)
        scenario: Distribution, path count, path length and optional seed
        max_workers: Threads used for generation; defaults to
            Settings.MC_MAX_WORKERS.  Output is identical for any value.

    Returns:
        n_paths series of path_length returns, in path order.  Each is
        indexed by the business days following the baseline's last date
        and named 'path_<i>'.

    Raises:
        InsufficientDataError: Baseline has fewer than 2 finite observations
    """
    values = _finite_values(baseline, 2)

    workers = _resolve_workers(max_workers)
    sampler = SAMPLERS[scenario.distribution](values)

    seed_seq = np.random.SeedSequence(scenario.seed)
    child_seeds = seed_seq.spawn(scenario.n_paths)

    last_date = baseline.index.max()
    start = last_date + pd.offsets.BDay(1) if isinstance(last_date, pd.Timestamp) else None
    if start is not None:
        index = pd.bdate_range(start=start, periods=scenario.path_length, name="date")
    else:
        index = pd.RangeIndex(scenario.path_length)

    def make_path(i: int) -> pd.Series:
        rng = np.random.default_rng(child_seeds[i])
        return pd.Series(sampler(rng, scenario.path_length), index=index, name=f"path_{i}")

    paths = _ordered_map(make_path, list(range(scenario.n_paths)), workers)

    logger.info(
        "simulate: paths generated",
        series=_series_id(baseline),
        distribution=scenario.distribution,
        n_paths=scenario.n_paths,
        path_length=scenario.path_length,
        seeded=scenario.seed is not None,
        workers=workers,
    )

    return paths


def run_scenario(
    baseline: pd.Series,
    scenario: StressScenario,
    max_workers: Optional[int] = None,
) -> List[pd.Series]:
    """Produce the stressed path set for either scenario kind.

    A historical scenario yields a single replayed path.
    """
    if isinstance(scenario, HistoricalScenario):
        return [replay(baseline, scenario)]
    return simulate(baseline, scenario, max_workers=max_workers)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def score_scenarios(
    paths: Sequence[pd.Series],
    metric: str,
    confidence: Optional[float] = None,
    all_or_nothing: bool = False,
    max_workers: Optional[int] = None,
    **metric_kwargs,
) -> ScenarioSummary:
    """Apply one risk metric to every path and aggregate the results.

    Per-path engine errors are isolated: the failing path is logged and
    recorded in ``failures`` while the others are still scored.  Set
    ``all_or_nothing`` to re-raise the first failure (in path order).

    Args:
        paths: Replayed or simulated return series
        metric: One of 'var', 'cvar', 'volatility', 'max_drawdown'
        confidence: For var/cvar (defaults to Settings.DEFAULT_CONFIDENCE)
        all_or_nothing: Abort on the first failing path
        max_workers: Scoring threads (defaults to Settings.MC_MAX_WORKERS)
        **metric_kwargs: Forwarded to the metric (method, compounding, ...)

    Returns:
        ScenarioSummary with reports in path order plus mean, worst and best.
        Worst is the minimum for var, cvar and max_drawdown and the maximum
        for volatility.

    Raises:
        ValueError: Unknown metric
        InvalidConfidenceError: confidence outside (0, 1)
        InsufficientDataError: No paths supplied, or every path failed
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric '{metric}', expected one of {sorted(METRICS)}")
    if confidence is not None and metric in CONFIDENCE_METRICS:
        validate_confidence(confidence)
    if not paths:
        raise InsufficientDataError("No paths supplied for scoring", available=0, required=1)

    workers = _resolve_workers(max_workers)

    def score(item: Tuple[int, pd.Series]) -> Tuple[int, Optional[RiskReport], Optional[str]]:
        i, path = item
        try:
            return i, compute_metric(path, metric, confidence, **metric_kwargs), None
        except RiskEngineError as e:
            if all_or_nothing:
                raise
            logger.warning(
                "score_scenarios: path failed",
                path_index=i,
                series=_series_id(path),
                metric=metric,
                error=str(e),
            )
            return i, None, str(e)

    outcomes = _ordered_map(score, list(enumerate(paths)), workers)

    reports = [report for _, report, _ in outcomes if report is not None]
    failures = {i: error for i, _, error in outcomes if error is not None}

    if not reports:
        raise InsufficientDataError(
            f"All {len(paths)} paths failed scoring for metric '{metric}'",
            available=0,
            required=1,
            failures=failures,
        )

    values = np.array([r.value for r in reports])
    if metric in _HIGHER_IS_WORSE:
        worst, best = float(values.max()), float(values.min())
    else:
        worst, best = float(values.min()), float(values.max())

    summary = ScenarioSummary(
        metric=metric,
        n_paths=len(paths),
        reports=reports,
        failures=failures,
        mean=float(values.mean()),
        worst=worst,
        best=best,
    )

    logger.info(
        "score_scenarios: complete",
        metric=metric,
        n_paths=len(paths),
        scored=len(reports),
        failed=len(failures),
        mean=summary.mean,
        worst=summary.worst,
    )

    return summary


def run_historical_scenarios(
    baseline: pd.Series,
    metric: str = "max_drawdown",
    scenarios: Optional[Mapping[str, HistoricalScenario]] = None,
    confidence: Optional[float] = None,
    **metric_kwargs,
) -> Dict[str, RiskReport]:
    """Replay and score every historical scenario covered by the baseline.

    Scenarios without baseline data in their window, or whose replay
    cannot be scored (e.g. too few observations for VaR), are logged and
    left out of the result.

    Args:
        baseline: Return series
        metric: Metric applied to each replayed window
        scenarios: {key: HistoricalScenario}; defaults to HISTORICAL_SCENARIOS
        confidence: For var/cvar

    Returns:
        {scenario_key: RiskReport} for the scenarios that could be scored
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric '{metric}', expected one of {sorted(METRICS)}")
    if confidence is not None and metric in CONFIDENCE_METRICS:
        validate_confidence(confidence)
    if scenarios is None:
        scenarios = HISTORICAL_SCENARIOS

    logger.info("run_historical_scenarios: starting", scenarios=len(scenarios), metric=metric)

    results: Dict[str, RiskReport] = {}
    for key, scenario in scenarios.items():
        try:
            window = replay(baseline, scenario)
            results[key] = compute_metric(window, metric, confidence, **metric_kwargs)
        except RiskEngineError as e:
            logger.warning(
                "run_historical_scenarios: scenario skipped",
                scenario=key,
                error=str(e),
            )

    logger.info(
        "run_historical_scenarios: complete",
        scored=len(results),
        skipped=len(scenarios) - len(results),
    )

    return results
