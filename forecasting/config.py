"""Engine configuration: thresholds, windows and generator constants."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class TrendRule:
  strong_trend_pct: float = 10.0
  strong_trend_bonus: int = 20
  calm_volatility_pct: float = 20.0
  calm_bonus: int = 10
  volatile_penalty: int = -10


@dataclass(frozen=True)
class MovingAverageRule:
  calm_volatility_pct: float = 30.0
  calm_bonus: int = 15
  volatile_penalty: int = -10
  flat_trend_pct: float = 15.0
  flat_bonus: int = 10


@dataclass(frozen=True)
class SmoothingRule:
  moderate_trend_range: Tuple[float, float] = (5.0, 25.0)
  moderate_trend_bonus: int = 15
  calm_volatility_pct: float = 25.0
  calm_bonus: int = 10


@dataclass(frozen=True)
class PolynomialRule:
  strong_trend_pct: float = 15.0
  strong_trend_bonus: int = 15
  min_points: int = 8
  history_bonus: int = 5
  short_history_penalty: int = -5


@dataclass(frozen=True)
class NonlinearRule:
  volatile_pct: float = 20.0
  volatile_bonus: int = 15
  long_history_points: int = 30
  history_bonus: int = 10
  short_history_penalty: int = -10


@dataclass(frozen=True)
class AutoregressiveRule:
  long_history_points: int = 12
  history_bonus: int = 15
  short_history_penalty: int = -10
  trend_pct: float = 5.0
  trend_bonus: int = 10


@dataclass(frozen=True)
class EnsembleRule:
  volatile_pct: float = 20.0
  volatile_bonus: int = 15
  long_history_points: int = 20
  history_bonus: int = 10
  short_history_penalty: int = -5


@dataclass(frozen=True)
class SeasonalRule:
  series_types: Tuple[str, ...] = ("sales", "revenue")
  series_type_bonus: int = 15
  long_history_points: int = 24
  history_bonus: int = 10
  short_history_penalty: int = -5


@dataclass(frozen=True)
class ScoringConfig:
  """Constants used by the compatibility scorer, one rule section per model family."""

  base_score: int = 70
  default_score: int = 70
  min_points: int = 3
  min_score: int = 40
  max_score: int = 95
  recommended_score: int = 85
  trend: TrendRule = field(default_factory=TrendRule)
  moving_average: MovingAverageRule = field(default_factory=MovingAverageRule)
  smoothing: SmoothingRule = field(default_factory=SmoothingRule)
  polynomial: PolynomialRule = field(default_factory=PolynomialRule)
  nonlinear: NonlinearRule = field(default_factory=NonlinearRule)
  autoregressive: AutoregressiveRule = field(default_factory=AutoregressiveRule)
  ensemble: EnsembleRule = field(default_factory=EnsembleRule)
  seasonal: SeasonalRule = field(default_factory=SeasonalRule)


@dataclass(frozen=True)
class GeneratorConfig:
  """Constants used by the prediction generator."""

  precision: int = 2
  noise_fraction: float = 0.05
  moving_average_window: int = 3
  smoothing_band: Tuple[float, float] = (0.85, 1.15)
  polynomial_curvature: float = 0.01
  ar_weight: float = 0.7
  ar_trend_damping: float = 0.8
  ensemble_trees: int = 5
  ensemble_spread: float = 0.1
  seasonal_period: int = 12
  seasonal_amplitude: float = 0.1
  default_step: str = "1month"


@dataclass(frozen=True)
class MonitoringConfig:
  """Accuracy tracking and alerting thresholds."""

  accuracy_window: int = 5
  alert_threshold: float = 75.0
  excellent_threshold: float = 85.0
  high_priority_days: int = 30
  medium_priority_days: int = 7
  report_recipients: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SchedulerConfig:
  """Scheduler loop settings."""

  poll_interval_seconds: float = 60.0
  task_timeout_seconds: float = 30.0
  history_limit: int = 100


@dataclass(frozen=True)
class EngineConfig:
  scoring: ScoringConfig = field(default_factory=ScoringConfig)
  generator: GeneratorConfig = field(default_factory=GeneratorConfig)
  monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
  scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


DEFAULT_CONFIG = EngineConfig()


def _apply_overrides(section: Any, overrides: Mapping[str, Any], path: str) -> Any:
  known = {f.name: f for f in dataclasses.fields(section)}
  changes: Dict[str, Any] = {}
  for key, value in overrides.items():
    if key not in known:
      raise ValueError(f"Unknown configuration key '{path}{key}'.")
    current = getattr(section, key)
    if dataclasses.is_dataclass(current):
      if not isinstance(value, Mapping):
        raise ValueError(f"Configuration section '{path}{key}' must be an object.")
      changes[key] = _apply_overrides(current, value, f"{path}{key}.")
    elif isinstance(current, tuple):
      changes[key] = tuple(value)
    else:
      changes[key] = value
  return dataclasses.replace(section, **changes)


def config_from_mapping(overrides: Mapping[str, Any], base: Optional[EngineConfig] = None) -> EngineConfig:
  """Returns ``base`` (defaults when omitted) with nested overrides applied."""
  return _apply_overrides(base or DEFAULT_CONFIG, overrides, "")


def load_config(path: Optional[str]) -> EngineConfig:
  """Loads a JSON override file; a missing path yields the defaults."""
  if not path:
    return DEFAULT_CONFIG
  try:
    with open(Path(path).expanduser(), "r", encoding="utf-8") as fh:
      payload = json.load(fh)
  except json.JSONDecodeError as exc:
    raise ValueError(f"Configuration file {path} is not valid JSON: {exc}") from exc
  if not isinstance(payload, Mapping):
    raise ValueError("Configuration file must contain a JSON object.")
  return config_from_mapping(payload)
