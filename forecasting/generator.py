"""Prediction generator producing a projected continuation of a series."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Union

import numpy as np

from .base import Forecast, ForecastStatus, ModelDescriptor, ModelFamily, Series, Step, infer_step, parse_step
from .config import DEFAULT_CONFIG, GeneratorConfig
from .errors import InsufficientDataError
from .registry import ModelRegistry, default_registry
from .stats import compute_stats, per_step_trend

logger = logging.getLogger(__name__)


class NoiseSource(Protocol):
  def uniform(self, low: float, high: float) -> float:
    ...


class RandomNoise:
  """Noise drawn from a numpy generator; pass a seed for reproducible runs."""

  def __init__(self, seed: Optional[int] = None):
    self._rng = np.random.default_rng(seed)

  def uniform(self, low: float, high: float) -> float:
    if high <= low:
      return float(low)
    return float(self._rng.uniform(low, high))


class MidpointNoise:
  """Deterministic source returning the centre of every band."""

  def uniform(self, low: float, high: float) -> float:
    return (low + high) / 2.0


@dataclass(frozen=True)
class _Context:
  series: Series
  model: ModelDescriptor
  last_value: float
  mean: float
  trend: float
  config: GeneratorConfig
  noise: NoiseSource


def _trend_projection(ctx: _Context, i: int) -> float:
  return ctx.last_value + ctx.trend * ctx.mean * i


def _moving_average(ctx: _Context, i: int) -> float:
  window = int(ctx.model.param("window_size", ctx.config.moving_average_window))
  recent = ctx.series.values[-max(1, window):]
  return float(np.mean(recent)) * (1 + ctx.trend * i * 0.5)


def _smoothing(ctx: _Context, i: int) -> float:
  low, high = ctx.config.smoothing_band
  return ctx.last_value * (1 + ctx.trend) ** i * ctx.noise.uniform(low, high)


def _polynomial(ctx: _Context, i: int) -> float:
  b = ctx.trend * ctx.last_value
  a = ctx.config.polynomial_curvature * b
  return a * i ** 2 + b * i + ctx.last_value


def _nonlinear(ctx: _Context, i: int) -> float:
  hidden = math.tanh((ctx.trend + i * 0.1) * 0.5)
  # Logistic written through tanh so large negative inputs cannot overflow.
  activation = 0.5 * (1.0 + math.tanh((hidden + ctx.trend) / 2.0))
  return ctx.last_value * (1 + activation * ctx.trend * i + math.sin(i * 0.3) * 0.1)


def _autoregressive(ctx: _Context, i: int) -> float:
  weight = ctx.config.ar_weight
  return (
      ctx.last_value * weight
      + ctx.mean * (1 - weight)
      + ctx.trend * ctx.mean * i * ctx.config.ar_trend_damping
  )


def _ensemble(ctx: _Context, i: int) -> float:
  trees = max(1, int(ctx.model.param("simulated_trees", ctx.config.ensemble_trees)))
  spread = ctx.config.ensemble_spread
  total = 0.0
  for _ in range(trees):
    total += ctx.last_value * (1 + ctx.trend * i + ctx.noise.uniform(-spread, spread))
  return total / trees


def _seasonal(ctx: _Context, i: int) -> float:
  period = int(ctx.model.param("period", ctx.config.seasonal_period))
  factor = 1 + ctx.config.seasonal_amplitude * math.sin(i * 2 * math.pi / period)
  return _trend_projection(ctx, i) * factor


def _default(ctx: _Context, i: int) -> float:
  return ctx.last_value * (1 + ctx.trend * i)


PREDICTORS: Dict[ModelFamily, Callable[[_Context, int], float]] = {
    ModelFamily.TREND: _trend_projection,
    ModelFamily.MOVING_AVERAGE: _moving_average,
    ModelFamily.SMOOTHING: _smoothing,
    ModelFamily.POLYNOMIAL: _polynomial,
    ModelFamily.NONLINEAR: _nonlinear,
    ModelFamily.AUTOREGRESSIVE: _autoregressive,
    ModelFamily.ENSEMBLE: _ensemble,
    ModelFamily.SEASONAL: _seasonal,
    ModelFamily.DEFAULT: _default,
}


def _resolve_model(model: Union[str, ModelDescriptor], registry: Optional[ModelRegistry]) -> ModelDescriptor:
  if isinstance(model, ModelDescriptor):
    return model
  return (registry or default_registry()).get_model(model)


def _resolve_step(series: Series, step: Union[Step, str, None], config: GeneratorConfig) -> Step:
  if isinstance(step, Step):
    return step
  if step:
    return parse_step(step)
  return infer_step(series.timestamps) or parse_step(config.default_step)


def generate(
    series: Series,
    model: Union[str, ModelDescriptor],
    horizon_periods: int,
    *,
    registry: Optional[ModelRegistry] = None,
    noise: Optional[NoiseSource] = None,
    step: Union[Step, str, None] = None,
    config: GeneratorConfig = DEFAULT_CONFIG.generator,
) -> Series:
  """Projects ``horizon_periods`` points after the last input timestamp."""
  if len(series) == 0:
    raise InsufficientDataError("Context values must be non-empty for forecasting.")
  if horizon_periods <= 0:
    raise ValueError("Horizon must be positive for forecasting.")

  descriptor = _resolve_model(model, registry)
  stats = compute_stats(series)
  trend = per_step_trend(stats)
  if not math.isfinite(trend):
    logger.warning("Trend for %s is undefined (zero first-half mean); projecting without trend.", descriptor.name)
    trend = 0.0

  ctx = _Context(
      series=series,
      model=descriptor,
      last_value=series.last_value,
      mean=stats.mean,
      trend=trend,
      config=config,
      noise=noise or RandomNoise(),
  )
  predictor = PREDICTORS.get(descriptor.family, _default)
  cadence = _resolve_step(series, step, config)
  noise_band = stats.std_dev * config.noise_fraction

  timestamps: List[datetime] = []
  values: List[float] = []
  for i in range(1, horizon_periods + 1):
    predicted = predictor(ctx, i) + ctx.noise.uniform(-noise_band, noise_band)
    timestamps.append(cadence.advance(series.last_timestamp, i))
    values.append(round(max(0.0, predicted), config.precision))

  return Series(tuple(timestamps), tuple(values))


def create_forecast(
    series: Series,
    model: Union[str, ModelDescriptor],
    horizon_periods: int,
    *,
    title: str,
    forecast_type: str,
    time_horizon: Optional[str] = None,
    now: Optional[datetime] = None,
    registry: Optional[ModelRegistry] = None,
    noise: Optional[NoiseSource] = None,
    step: Union[Step, str, None] = None,
    config: GeneratorConfig = DEFAULT_CONFIG.generator,
) -> Forecast:
  """Generates predictions and wraps them in a new active forecast record."""
  descriptor = _resolve_model(model, registry)
  predicted = generate(series, descriptor, horizon_periods, noise=noise, step=step, config=config)
  created = now or datetime.now()
  return Forecast(
      id=uuid.uuid4().hex,
      title=title,
      type=forecast_type,
      model_name=descriptor.name,
      input_series=series,
      predicted_series=predicted,
      time_horizon=time_horizon or f"{horizon_periods} periods",
      created_at=created,
      updated_at=created,
      status=ForecastStatus.ACTIVE,
  )
