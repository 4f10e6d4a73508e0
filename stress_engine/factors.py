"""
Factor Model Module

Ordinary least squares regression of an asset or portfolio return series
on externally supplied factor return series (e.g. Fama-French).

    r_t = alpha + Σ beta_k * f_k,t + e_t

All series must already share one date index; this module never aligns
silently.
"""

from __future__ import annotations

from typing import Mapping

import numpy as np
import pandas as pd
import structlog

from .exceptions import DateMisalignmentError, InsufficientDataError
from .metrics import _series_id
from .models import FactorFit

logger = structlog.get_logger(__name__)


def fit(asset: pd.Series, factors: Mapping[str, pd.Series]) -> FactorFit:
    """Fit factor sensitivities by OLS with an intercept.

    Args:
        asset: Asset or portfolio return series
        factors: Mapping factor name -> factor return series on the asset's dates

    Returns:
        FactorFit with betas, intercept, R², adjusted R², standard errors
        and t-statistics.  When the fit has no residual degrees of freedom
        standard errors are inf and t-statistics 0.

    Raises:
        ValueError: No factors supplied
        DateMisalignmentError: A factor's date index differs from the asset's
        InsufficientDataError: Fewer than n_factors + 1 observations,
            non-finite values, or a rank-deficient design matrix
    """
    if not factors:
        raise ValueError("At least one factor series is required")

    asset_id = _series_id(asset)
    names = list(factors)

    for name in names:
        index = factors[name].index
        if not index.equals(asset.index):
            mismatch = asset.index.symmetric_difference(index)
            first = mismatch.min() if len(mismatch) else None
            raise DateMisalignmentError(
                f"Factor '{name}' is not aligned with {asset_id} "
                f"({len(index)} vs {len(asset.index)} dates, first mismatch {first})",
                series=(asset_id, name),
                first_mismatch=first,
            )

    n_obs = len(asset)
    n_params = len(names) + 1

    if n_obs < n_params:
        raise InsufficientDataError(
            f"Need at least {n_params} observations to fit {len(names)} factors "
            f"for {asset_id}, got {n_obs}",
            available=n_obs,
            required=n_params,
            series=asset_id,
        )

    y = asset.to_numpy(dtype=float)
    X = np.column_stack([np.ones(n_obs)] + [factors[name].to_numpy(dtype=float) for name in names])

    if not (np.isfinite(y).all() and np.isfinite(X).all()):
        raise InsufficientDataError(
            f"Non-finite values in asset or factor returns for {asset_id}",
            available=int(np.isfinite(X).all(axis=1).sum()),
            required=n_params,
            series=asset_id,
        )

    beta, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)
    if rank < n_params:
        raise InsufficientDataError(
            f"Design matrix for {asset_id} is rank-deficient (rank {rank} < {n_params}); "
            "factors are collinear or constant",
            available=int(rank),
            required=n_params,
            series=asset_id,
        )

    residuals = y - X @ beta
    ssr = float(residuals @ residuals)
    sst = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1.0 - ssr / sst if sst > 0 else 0.0

    dof = n_obs - n_params
    if dof > 0:
        sigma2 = ssr / dof
        cov_beta = sigma2 * np.linalg.inv(X.T @ X)
        std_errors = np.sqrt(np.clip(np.diag(cov_beta), 0.0, None))
        with np.errstate(divide="ignore", invalid="ignore"):
            t_stats = np.where(std_errors > 0, beta / std_errors, 0.0)
        adj_r_squared = 1.0 - (1.0 - r_squared) * (n_obs - 1) / dof
    else:
        std_errors = np.full(n_params, np.inf)
        t_stats = np.zeros(n_params)
        adj_r_squared = r_squared

    result = FactorFit(
        coefficients={name: float(b) for name, b in zip(names, beta[1:])},
        intercept=float(beta[0]),
        r_squared=float(r_squared),
        adj_r_squared=float(adj_r_squared),
        n_obs=n_obs,
        std_errors={name: float(s) for name, s in zip(names, std_errors[1:])},
        t_stats={name: float(t) for name, t in zip(names, t_stats[1:])},
    )

    logger.info(
        "fit: factor model fitted",
        series=asset_id,
        factors=names,
        n_obs=n_obs,
        r_squared=result.r_squared,
    )

    return result
