"""Summary statistics describing a series' level, spread and trend."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .base import Series
from .errors import DivisionByZeroError, InsufficientDataError


@dataclass(frozen=True)
class SeriesStatistics:
  mean: float
  std_dev: float
  volatility_pct: float
  trend_strength_pct: float
  n: int

  @property
  def trend(self) -> float:
    """Fractional change between the two halves' means."""
    return self.trend_strength_pct / 100.0


def _ratio(numerator: float, denominator: float, *, strict: bool, label: str) -> float:
  # Zero denominators yield 0 for a zero numerator and signed infinity otherwise.
  if denominator != 0:
    return numerator / denominator
  if strict:
    raise DivisionByZeroError(f"{label} is undefined because the reference mean is zero.")
  if numerator == 0:
    return 0.0
  return math.copysign(math.inf, numerator)


def compute_stats(series: Series, *, strict: bool = False) -> SeriesStatistics:
  """Computes mean, population std dev, volatility and trend strength."""
  if len(series) == 0:
    raise InsufficientDataError("Statistics require at least one data point.")

  values = series.as_array()
  n = len(values)
  mean = float(np.mean(values))
  std_dev = float(np.std(values))
  volatility = _ratio(std_dev, mean, strict=strict, label="Volatility") * 100.0

  trend_pct = 0.0
  if n >= 2:
    first_half = values[: n // 2]
    second_half = values[math.ceil(n / 2):]
    first_mean = float(np.mean(first_half))
    second_mean = float(np.mean(second_half))
    trend_pct = _ratio(second_mean - first_mean, first_mean, strict=strict, label="Trend strength") * 100.0

  return SeriesStatistics(
      mean=mean,
      std_dev=std_dev,
      volatility_pct=volatility,
      trend_strength_pct=trend_pct,
      n=n,
  )


def half_separation(n: int) -> float:
  """Distance in steps between the centres of the first and second halves."""
  if n < 2:
    return 1.0
  first_centre = (n // 2 - 1) / 2.0
  second_centre = (math.ceil(n / 2) + n - 1) / 2.0
  return second_centre - first_centre


def per_step_trend(stats: SeriesStatistics) -> float:
  """Fractional growth per period implied by the halves comparison."""
  if stats.n < 2:
    return 0.0
  return stats.trend / half_separation(stats.n)
