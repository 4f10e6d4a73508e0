"""Pydantic models for engine inputs and results.

Price points are typed at the ingestion boundary; semantic OHLCV rules are
checked by the store on load.  Scenario definitions and results are
immutable value objects.
"""

from __future__ import annotations

import datetime as dt
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import get_settings


Distribution = Literal["normal", "bootstrap", "student_t"]


class PricePoint(BaseModel):
    """One daily OHLCV record for a single ticker."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: int


class HistoricalScenario(BaseModel):
    """A named calendar window replayed verbatim from the baseline."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["historical"] = "historical"
    name: str
    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def _check_window(self) -> "HistoricalScenario":
        if self.start > self.end:
            raise ValueError(f"Scenario start {self.start} is after end {self.end}")
        return self


class MonteCarloScenario(BaseModel):
    """Synthetic path generation settings.

    ``seed`` makes generation reproducible; leave it unset for fresh
    entropy on every run.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["montecarlo"] = "montecarlo"
    distribution: Distribution = "normal"
    n_paths: int = Field(default_factory=lambda: get_settings().MC_DEFAULT_PATHS, ge=1)
    path_length: int = Field(default_factory=lambda: get_settings().MC_DEFAULT_PATH_LENGTH, ge=1)
    seed: int | None = Field(default=None, ge=0)


StressScenario = Union[HistoricalScenario, MonteCarloScenario]


class RiskReport(BaseModel):
    """A single computed risk metric."""

    model_config = ConfigDict(frozen=True)

    metric: str
    value: float
    confidence: float | None = None
    method: str
    series_id: str


class ScenarioSummary(BaseModel):
    """Per-path reports plus aggregates over a scored path set.

    ``reports`` keeps request order; paths that failed are absent from it
    and listed in ``failures`` by their index.
    """

    model_config = ConfigDict(frozen=True)

    metric: str
    n_paths: int
    reports: list[RiskReport]
    failures: dict[int, str] = Field(default_factory=dict)
    mean: float
    worst: float
    best: float


class FactorFit(BaseModel):
    """OLS factor regression output."""

    model_config = ConfigDict(frozen=True)

    coefficients: dict[str, float]
    intercept: float
    r_squared: float
    adj_r_squared: float
    n_obs: int
    std_errors: dict[str, float]
    t_stats: dict[str, float]
