"""Correlates recorded outcomes with predictions and tracks accuracy."""

from __future__ import annotations

import logging
import math
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .base import Forecast, ForecastStatus, Outcome, PendingOutcome, TimestampLike, to_datetime
from .config import DEFAULT_CONFIG, MonitoringConfig
from .errors import DateNotPredictedError, DuplicateOutcomeError
from .stores import ForecastStore, OutcomeStore

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}
VARIANCE_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-5%", 0.0, 5.0),
    ("5-10%", 5.0, 10.0),
    ("10-20%", 10.0, 20.0),
    ("20%+", 20.0, math.inf),
)


def point_accuracy(predicted: float, actual: float) -> float:
  """Accuracy of one prediction as a percentage in [0, 100].

  The absolute error is measured against the larger magnitude of the
  prediction and the actual, so over- and under-shooting by the same
  relative amount score the same. Two zeros are a perfect match, and a
  zero actual against any other prediction scores 0.

  Dividing by the actual alone, as the dashboard's outcome tracker did,
  scores 110 against 100 at 90.0 rather than 90.9; the larger magnitude is
  used instead so the reported 100 / 90.9 / 83.3 figures for predictions of
  100, 110 and 120 against an actual of 100 hold.
  """
  scale = max(abs(predicted), abs(actual))
  if scale == 0:
    return 100.0
  return float(min(100.0, max(0.0, 100.0 * (1.0 - abs(predicted - actual) / scale))))


def match_prediction(forecast: Forecast, when: TimestampLike) -> Optional[Tuple[datetime, float]]:
  """Finds the predicted point for ``when``; a bare calendar date matches that day."""
  target = to_datetime(when)
  series = forecast.predicted_series
  exact = series.value_at(target)
  if exact is not None:
    return target, exact
  same_day = [(ts, v) for ts, v in zip(series.timestamps, series.values) if ts.date() == target.date()]
  if len(same_day) == 1:
    return same_day[0]
  return None


def _recent_first(outcomes: Iterable[Outcome]) -> List[Outcome]:
  return sorted(outcomes, key=lambda o: (o.recorded_at, o.outcome_date), reverse=True)


def windowed_accuracy(forecast: Forecast, outcomes: Iterable[Outcome], window: int = 5) -> Optional[float]:
  """Mean accuracy of the ``window`` most recently recorded outcomes of ``forecast``."""
  accuracies = []
  for outcome in _recent_first(o for o in outcomes if o.forecast_id == forecast.id):
    predicted = forecast.predicted_series.value_at(outcome.outcome_date)
    if predicted is None:
      logger.warning("Outcome %s does not match a prediction of forecast %s", outcome.id, forecast.id)
      continue
    accuracies.append(point_accuracy(predicted, outcome.actual_value))
    if len(accuracies) == window:
      break
  if not accuracies:
    return None
  return float(np.mean(accuracies))


class OutcomeCorrelator:
  """Records outcomes against stored forecasts and keeps accuracy current."""

  def __init__(
      self,
      forecast_store: ForecastStore,
      outcome_store: OutcomeStore,
      *,
      window: int = DEFAULT_CONFIG.monitoring.accuracy_window,
  ):
    self.forecast_store = forecast_store
    self.outcome_store = outcome_store
    self.window = window
    self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
    self._locks_guard = threading.Lock()

  def _lock_for(self, forecast_id: str) -> threading.Lock:
    with self._locks_guard:
      return self._locks[forecast_id]

  def outcomes_for(self, forecast_id: str) -> List[Outcome]:
    return [o for o in self.outcome_store.list() if o.forecast_id == forecast_id]

  def record_outcome(
      self,
      forecast_id: str,
      when: TimestampLike,
      actual_value: float,
      *,
      recorded_at: Optional[datetime] = None,
  ) -> Outcome:
    actual_value = float(actual_value)
    if not math.isfinite(actual_value):
      raise ValueError("Actual value must be a finite number.")

    with self._lock_for(forecast_id):
      forecast = self.forecast_store.get(forecast_id)
      matched = match_prediction(forecast, when)
      if matched is None:
        raise DateNotPredictedError(
            f"No prediction found for {to_datetime(when).date().isoformat()} in forecast '{forecast.title}'."
        )
      outcome_date, predicted = matched
      if any(o.outcome_date == outcome_date for o in self.outcomes_for(forecast_id)):
        raise DuplicateOutcomeError(
            f"Outcome for forecast '{forecast_id}' on {outcome_date.date().isoformat()} already recorded."
        )

      outcome = self.outcome_store.create(
          Outcome(
              id=uuid.uuid4().hex,
              forecast_id=forecast_id,
              outcome_date=outcome_date,
              actual_value=actual_value,
              recorded_at=recorded_at or datetime.now(),
              predicted_value=predicted,
              variance=actual_value - predicted,
              accuracy_pct=point_accuracy(predicted, actual_value),
          )
      )
      self.forecast_store.update(forecast_id, accuracy_score=self.compute_accuracy(forecast_id))

    logger.info(
        "Recorded outcome for '%s' on %s: actual %.2f vs predicted %.2f (%.1f%%)",
        forecast.title,
        outcome_date.date().isoformat(),
        actual_value,
        predicted,
        outcome.accuracy_pct,
    )
    return outcome

  def compute_accuracy(self, forecast_id: str) -> Optional[float]:
    """Windowed accuracy percentage, or ``None`` when nothing is recorded yet."""
    forecast = self.forecast_store.get(forecast_id)
    return windowed_accuracy(forecast, self.outcomes_for(forecast_id), self.window)


def _priority(days_overdue: int, config: MonitoringConfig) -> str:
  if days_overdue > config.high_priority_days:
    return "high"
  if days_overdue > config.medium_priority_days:
    return "medium"
  return "low"


def find_pending_outcomes(
    forecasts: Iterable[Forecast],
    outcomes: Iterable[Outcome],
    as_of: TimestampLike,
    *,
    limit: Optional[int] = None,
    config: MonitoringConfig = DEFAULT_CONFIG.monitoring,
) -> List[PendingOutcome]:
  """Predicted dates of active forecasts that passed without an outcome."""
  as_of = to_datetime(as_of)
  recorded = {o.key for o in outcomes}
  pending: List[PendingOutcome] = []
  for forecast in forecasts:
    if forecast.status is not ForecastStatus.ACTIVE:
      continue
    for ts, value in zip(forecast.predicted_series.timestamps, forecast.predicted_series.values):
      if ts > as_of or (forecast.id, ts) in recorded:
        continue
      days_overdue = (as_of - ts).days
      pending.append(
          PendingOutcome(
              forecast_id=forecast.id,
              forecast_title=forecast.title,
              model_name=forecast.model_name,
              prediction_date=ts,
              predicted_value=value,
              days_overdue=days_overdue,
              priority=_priority(days_overdue, config),
          )
      )

  pending.sort(key=lambda p: (PRIORITY_ORDER[p.priority], p.days_overdue), reverse=True)
  return pending if limit is None else pending[:limit]


@dataclass(frozen=True)
class OutcomeSummary:
  avg_accuracy: float
  best_accuracy: float
  worst_accuracy: float
  avg_variance: float
  trend: str
  tracked_periods: int
  remaining_periods: int
  variance_distribution: Dict[str, int]


def summarize_outcomes(outcomes: Sequence[Outcome], predicted_count: int) -> Optional[OutcomeSummary]:
  """Aggregate accuracy figures for one forecast's outcomes."""
  if not outcomes:
    return None

  ordered = sorted(outcomes, key=lambda o: o.outcome_date)
  accuracies = np.asarray([o.accuracy_pct for o in ordered], dtype=np.float64)

  trend = "stable"
  recent, earlier = accuracies[-3:], accuracies[:-3]
  if len(accuracies) > 1 and earlier.size:
    recent_avg, earlier_avg = float(np.mean(recent)), float(np.mean(earlier))
    if recent_avg > earlier_avg + 2:
      trend = "improving"
    elif recent_avg < earlier_avg - 2:
      trend = "declining"

  distribution = {label: 0 for label, _, _ in VARIANCE_BUCKETS}
  for outcome in ordered:
    if outcome.actual_value == 0:
      continue
    pct = abs(outcome.variance) / abs(outcome.actual_value) * 100
    for label, low, high in VARIANCE_BUCKETS:
      if low <= pct < high:
        distribution[label] += 1
        break

  return OutcomeSummary(
      avg_accuracy=float(np.mean(accuracies)),
      best_accuracy=float(np.max(accuracies)),
      worst_accuracy=float(np.min(accuracies)),
      avg_variance=float(np.mean([abs(o.variance) for o in ordered])),
      trend=trend,
      tracked_periods=len(ordered),
      remaining_periods=max(0, predicted_count - len(ordered)),
      variance_distribution=distribution,
  )
