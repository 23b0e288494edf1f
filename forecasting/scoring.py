"""Heuristic compatibility scoring of models against a series profile.

Scores substitute for cross-validation when ranking models in the selection
step. Every model starts from a base score and picks up family-specific
bonuses or penalties based on volatility, the magnitude of the trend, the
number of points and, for seasonal models, the kind of series being
forecast. The result is clamped and is advisory only: it annotates and
orders models but never blocks a selection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .base import ModelDescriptor, ModelFamily, Series
from .config import DEFAULT_CONFIG, ScoringConfig
from .stats import SeriesStatistics, compute_stats

ScoreRule = Callable[[SeriesStatistics, Optional[str], ScoringConfig], int]


@dataclass(frozen=True)
class ModelScore:
  model: ModelDescriptor
  score: int
  recommended: bool


def _trend_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.trend
  bonus = rule.strong_trend_bonus if abs(stats.trend_strength_pct) > rule.strong_trend_pct else 0
  bonus += rule.calm_bonus if stats.volatility_pct < rule.calm_volatility_pct else rule.volatile_penalty
  return bonus


def _ensemble_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.ensemble
  bonus = rule.volatile_bonus if stats.volatility_pct > rule.volatile_pct else 0
  bonus += rule.history_bonus if stats.n > rule.long_history_points else rule.short_history_penalty
  return bonus


def _nonlinear_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.nonlinear
  bonus = rule.volatile_bonus if stats.volatility_pct > rule.volatile_pct else 0
  bonus += rule.history_bonus if stats.n > rule.long_history_points else rule.short_history_penalty
  return bonus


def _moving_average_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.moving_average
  bonus = rule.calm_bonus if stats.volatility_pct < rule.calm_volatility_pct else rule.volatile_penalty
  bonus += rule.flat_bonus if abs(stats.trend_strength_pct) < rule.flat_trend_pct else 0
  return bonus


def _autoregressive_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.autoregressive
  bonus = rule.history_bonus if stats.n > rule.long_history_points else rule.short_history_penalty
  bonus += rule.trend_bonus if abs(stats.trend_strength_pct) > rule.trend_pct else 0
  return bonus


def _seasonal_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.seasonal
  bonus = rule.series_type_bonus if series_type in rule.series_types else 0
  bonus += rule.history_bonus if stats.n > rule.long_history_points else rule.short_history_penalty
  return bonus


def _smoothing_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.smoothing
  low, high = rule.moderate_trend_range
  bonus = rule.moderate_trend_bonus if low < abs(stats.trend_strength_pct) < high else 0
  bonus += rule.calm_bonus if stats.volatility_pct < rule.calm_volatility_pct else 0
  return bonus


def _polynomial_rule(stats: SeriesStatistics, series_type: Optional[str], cfg: ScoringConfig) -> int:
  rule = cfg.polynomial
  bonus = rule.strong_trend_bonus if abs(stats.trend_strength_pct) > rule.strong_trend_pct else 0
  bonus += rule.history_bonus if stats.n >= rule.min_points else rule.short_history_penalty
  return bonus


SCORE_RULES: Dict[ModelFamily, ScoreRule] = {
    ModelFamily.TREND: _trend_rule,
    ModelFamily.ENSEMBLE: _ensemble_rule,
    ModelFamily.NONLINEAR: _nonlinear_rule,
    ModelFamily.MOVING_AVERAGE: _moving_average_rule,
    ModelFamily.AUTOREGRESSIVE: _autoregressive_rule,
    ModelFamily.SEASONAL: _seasonal_rule,
    ModelFamily.SMOOTHING: _smoothing_rule,
    ModelFamily.POLYNOMIAL: _polynomial_rule,
}


def score(
    model: ModelDescriptor,
    series: Series,
    series_type: Optional[str] = None,
    *,
    config: ScoringConfig = DEFAULT_CONFIG.scoring,
) -> int:
  """Returns the compatibility score of ``model`` for ``series``."""
  if len(series) < config.min_points:
    return config.default_score

  stats = compute_stats(series)
  rule = SCORE_RULES.get(model.family)
  value = config.base_score + (rule(stats, series_type, config) if rule else 0)
  return int(min(config.max_score, max(config.min_score, value)))


def is_recommended(value: int, *, config: ScoringConfig = DEFAULT_CONFIG.scoring) -> bool:
  return value >= config.recommended_score


def rank_models(
    models: Sequence[ModelDescriptor],
    series: Series,
    series_type: Optional[str] = None,
    *,
    config: ScoringConfig = DEFAULT_CONFIG.scoring,
) -> List[ModelScore]:
  """Scores every model and orders them best first, keeping catalog order on ties."""
  scored = [
      ModelScore(model=m, score=s, recommended=is_recommended(s, config=config))
      for m, s in ((m, score(m, series, series_type, config=config)) for m in models)
  ]
  return sorted(scored, key=lambda entry: -entry.score)
