"""
Risk Metrics Module

VaR, Expected Shortfall (CVaR), volatility and maximum drawdown over a
single return series.  Every function is pure: the result depends only on
its arguments.

Sign convention: VaR and CVaR are reported as *returns* at the lower tail,
so a loss is negative and CVaR <= VaR always holds.  Max drawdown is
non-positive.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Literal, Optional

import numpy as np
import pandas as pd
import structlog
from scipy import stats

from .config import get_settings
from .exceptions import InsufficientDataError, InvalidConfidenceError
from .models import RiskReport

logger = structlog.get_logger(__name__)

MIN_VAR_OBSERVATIONS = 20
TRADING_DAYS_PER_YEAR = 252

VarMethod = Literal["historical", "parametric"]
VAR_METHODS = ("historical", "parametric")

Compounding = Literal["simple", "log"]


def _series_id(returns: pd.Series) -> str:
    return str(returns.name) if returns.name is not None else "series"


def _finite_values(returns: pd.Series, required: int) -> np.ndarray:
    """Return the values as floats, rejecting short or non-finite input."""
    try:
        values = np.asarray(returns, dtype=float)
    except (TypeError, ValueError) as e:
        raise InsufficientDataError(
            f"Return series {_series_id(returns)} is not numeric: {e}",
            available=0,
            required=required,
            series=_series_id(returns),
        ) from e
    finite = int(np.isfinite(values).sum())

    if finite != len(values):
        raise InsufficientDataError(
            f"Return series {_series_id(returns)} contains {len(values) - finite} "
            f"non-finite values ({finite} finite observations)",
            available=finite,
            required=required,
            series=_series_id(returns),
        )

    if len(values) < required:
        raise InsufficientDataError(
            f"Need at least {required} observations for {_series_id(returns)}, got {len(values)}",
            available=len(values),
            required=required,
            series=_series_id(returns),
        )

    return values


def validate_confidence(confidence: float) -> None:
    """Raise InvalidConfidenceError unless 0 < confidence < 1."""
    if not 0 < confidence < 1:
        raise InvalidConfidenceError(confidence)


def _check_method(method: str) -> None:
    if method not in VAR_METHODS:
        raise ValueError(f"Unknown VaR method '{method}', expected one of {VAR_METHODS}")


def value_at_risk(
    returns: pd.Series,
    confidence: float = 0.95,
    method: VarMethod = "historical",
) -> float:
    """Value-at-Risk as the lower-tail return at the given confidence.

    historical: (1 - confidence) empirical quantile, linearly interpolated
                between order statistics (h = (n - 1) * q)
    parametric: mu + z_{1-confidence} * sigma under a normal assumption

    Args:
        returns: Return series
        confidence: Confidence level in (0, 1), e.g. 0.95
        method: 'historical' (default) or 'parametric'

    Returns:
        VaR as a return (negative = loss)

    Raises:
        InvalidConfidenceError: confidence outside (0, 1)
        InsufficientDataError: fewer than 20 observations or non-finite values
    """
    validate_confidence(confidence)
    _check_method(method)
    values = _finite_values(returns, MIN_VAR_OBSERVATIONS)

    q = 1 - confidence
    if method == "parametric":
        mu = float(np.mean(values))
        sigma = float(np.std(values, ddof=1))
        return float(mu + stats.norm.ppf(q) * sigma)

    return float(np.quantile(values, q, method="linear"))


def conditional_var(
    returns: pd.Series,
    confidence: float = 0.95,
    method: VarMethod = "historical",
) -> float:
    """Conditional VaR (Expected Shortfall).

    historical: mean of all returns at or below the historical VaR
    parametric: mu - sigma * phi(z) / (1 - confidence), with z = norm.ppf(1 - confidence)

    The tail always holds at least the smallest observation, since the
    interpolated quantile is never below the sample minimum.

    Raises:
        InvalidConfidenceError: confidence outside (0, 1)
        InsufficientDataError: fewer than 20 observations or non-finite values
    """
    validate_confidence(confidence)
    _check_method(method)
    values = _finite_values(returns, MIN_VAR_OBSERVATIONS)

    q = 1 - confidence
    if method == "parametric":
        mu = float(np.mean(values))
        sigma = float(np.std(values, ddof=1))
        z = stats.norm.ppf(q)
        return float(mu - sigma * stats.norm.pdf(z) / q)

    threshold = np.quantile(values, q, method="linear")
    tail = values[values <= threshold]
    return float(np.mean(tail))


def volatility(
    returns: pd.Series,
    annualization_factor: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """Annualized volatility: sample std (ddof=1) * sqrt(annualization_factor).

    Raises:
        ValueError: annualization_factor not a positive integer
        InsufficientDataError: fewer than 2 observations or non-finite values
    """
    if (
        isinstance(annualization_factor, bool)
        or not isinstance(annualization_factor, (int, np.integer))
        or annualization_factor < 1
    ):
        raise ValueError(
            f"Annualization factor must be a positive integer, got {annualization_factor!r}"
        )

    values = _finite_values(returns, 2)
    return float(np.std(values, ddof=1) * np.sqrt(annualization_factor))


def max_drawdown(returns: pd.Series, compounding: Compounding = "simple") -> float:
    """Greatest peak-to-trough decline of the cumulative return index.

    The index starts at 1.0 and compounds each return:
        simple: I_t = I_{t-1} * (1 + r_t)
        log:    I_t = I_{t-1} * exp(r_t)

    Returns:
        Drawdown as a non-positive fraction; exactly 0.0 when the index
        never falls below a previous peak

    Raises:
        InsufficientDataError: empty series or non-finite values
        ValueError: unknown compounding
    """
    if compounding not in ("simple", "log"):
        raise ValueError(f"Unknown compounding '{compounding}', expected 'simple' or 'log'")

    values = _finite_values(returns, 1)

    growth = np.exp(values) if compounding == "log" else 1.0 + values
    index = np.concatenate(([1.0], np.cumprod(growth)))
    peaks = np.maximum.accumulate(index)
    drawdowns = index / peaks - 1.0

    return float(min(drawdowns.min(), 0.0))


# ---------------------------------------------------------------------------
# Metric dispatch
# ---------------------------------------------------------------------------

METRICS: Dict[str, Callable[..., float]] = {
    "var": value_at_risk,
    "cvar": conditional_var,
    "volatility": volatility,
    "max_drawdown": max_drawdown,
}

CONFIDENCE_METRICS = frozenset({"var", "cvar"})


def compute_metric(
    returns: pd.Series,
    metric: str,
    confidence: Optional[float] = None,
    **kwargs,
) -> RiskReport:
    """Compute one named metric and wrap it in a RiskReport.

    Args:
        returns: Return series; its name becomes the report's series_id
        metric: One of 'var', 'cvar', 'volatility', 'max_drawdown'
        confidence: For var/cvar; defaults to Settings.DEFAULT_CONFIDENCE
        **kwargs: Forwarded to the metric function (method,
            annualization_factor, compounding)

    Raises:
        ValueError: Unknown metric, or confidence given for a metric without one
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric '{metric}', expected one of {sorted(METRICS)}")

    if metric in CONFIDENCE_METRICS:
        if confidence is None:
            confidence = get_settings().DEFAULT_CONFIDENCE
        value = METRICS[metric](returns, confidence, **kwargs)
        method = kwargs.get("method", "historical")
    else:
        if confidence is not None:
            raise ValueError(f"Metric '{metric}' does not take a confidence level")
        if metric == "volatility" and kwargs.get("annualization_factor") is None:
            kwargs["annualization_factor"] = get_settings().ANNUALIZATION_FACTOR
        value = METRICS[metric](returns, **kwargs)
        if metric == "volatility":
            method = f"sample_std_x_sqrt_{kwargs['annualization_factor']}"
        else:
            method = f"{kwargs.get('compounding', 'simple')}_compounding"

    return RiskReport(
        metric=metric,
        value=value,
        confidence=confidence,
        method=method,
        series_id=_series_id(returns),
    )


def build_risk_summary(
    returns: pd.Series,
    confidence_levels: Iterable[float] = (0.95, 0.99),
    method: VarMethod = "historical",
) -> List[RiskReport]:
    """Compute the full metric suite for one series.

    VaR and CVaR at each confidence level, then annualized volatility and
    max drawdown.

    Returns:
        List of RiskReports in that order
    """
    reports: List[RiskReport] = []
    for confidence in confidence_levels:
        reports.append(compute_metric(returns, "var", confidence, method=method))
        reports.append(compute_metric(returns, "cvar", confidence, method=method))
    reports.append(compute_metric(returns, "volatility"))
    reports.append(compute_metric(returns, "max_drawdown"))

    logger.info(
        "build_risk_summary: summary built",
        series=_series_id(returns),
        num_reports=len(reports),
        num_observations=len(returns),
    )

    return reports
