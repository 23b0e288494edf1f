"""Cross-forecast metric payloads handed to the report sink."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

import pandas as pd

from .base import Forecast, Outcome
from .config import DEFAULT_CONFIG, MonitoringConfig

_OUTCOME_COLUMNS = ["forecast_id", "model_name", "accuracy_pct", "recorded_at"]


def _outcome_frame(forecasts: Sequence[Forecast], outcomes: Sequence[Outcome]) -> pd.DataFrame:
  models = {f.id: f.model_name for f in forecasts}
  rows = [
      {
          "forecast_id": o.forecast_id,
          "model_name": models.get(o.forecast_id, "unknown"),
          "accuracy_pct": o.accuracy_pct,
          "recorded_at": o.recorded_at,
      }
      for o in outcomes
  ]
  return pd.DataFrame(rows, columns=_OUTCOME_COLUMNS)


def performance_tier(accuracy: float, config: MonitoringConfig = DEFAULT_CONFIG.monitoring) -> str:
  if accuracy >= config.excellent_threshold:
    return "excellent"
  if accuracy >= config.alert_threshold:
    return "good"
  return "needs_attention"


def _model_table(frame: pd.DataFrame) -> List[Dict[str, Any]]:
  if frame.empty:
    return []
  grouped = (
      frame.groupby("model_name")
      .agg(avg_accuracy=("accuracy_pct", "mean"), outcomes=("accuracy_pct", "size"), forecasts=("forecast_id", "nunique"))
      .sort_values("avg_accuracy", ascending=False)
      .reset_index()
  )
  return [
      {
          "model_name": row.model_name,
          "avg_accuracy": round(float(row.avg_accuracy), 2),
          "outcomes": int(row.outcomes),
          "forecasts": int(row.forecasts),
      }
      for row in grouped.itertuples(index=False)
  ]


def build_daily_report(
    forecasts: Sequence[Forecast],
    outcomes: Sequence[Outcome],
    today: datetime,
    *,
    config: MonitoringConfig = DEFAULT_CONFIG.monitoring,
) -> Dict[str, Any]:
  frame = _outcome_frame(forecasts, outcomes)
  per_forecast = frame.groupby("forecast_id")["accuracy_pct"].mean() if not frame.empty else pd.Series(dtype=float)
  average = float(per_forecast.mean()) if len(per_forecast) else 0.0
  recorded_today = int((frame["recorded_at"].map(lambda ts: ts.date()) == today.date()).sum()) if not frame.empty else 0
  return {
      "kind": "daily_report",
      "date": today.date().isoformat(),
      "total_forecasts": len(forecasts),
      "outcomes_recorded_today": recorded_today,
      "average_accuracy": round(average, 2),
      "forecasts_with_data": int(len(per_forecast)),
      "performance": performance_tier(average, config) if len(per_forecast) else "no_data",
  }


def build_weekly_summary(
    forecasts: Sequence[Forecast],
    outcomes: Sequence[Outcome],
    today: datetime,
    *,
    config: MonitoringConfig = DEFAULT_CONFIG.monitoring,
) -> Dict[str, Any]:
  frame = _outcome_frame(forecasts, outcomes)
  week_start = today - timedelta(days=7)
  recent = frame[frame["recorded_at"] > week_start] if not frame.empty else frame
  below = [
      {"forecast_id": f.id, "title": f.title, "accuracy": f.accuracy_score}
      for f in forecasts
      if f.accuracy_score is not None and f.accuracy_score < config.alert_threshold
  ]
  return {
      "kind": "weekly_summary",
      "week_start": week_start.date().isoformat(),
      "week_end": today.date().isoformat(),
      "outcomes_this_week": int(len(recent)),
      "average_accuracy": round(float(recent["accuracy_pct"].mean()), 2) if len(recent) else None,
      "models": _model_table(recent),
      "below_threshold": below,
  }


def build_model_evaluation(
    forecasts: Sequence[Forecast],
    outcomes: Sequence[Outcome],
    today: datetime,
) -> Dict[str, Any]:
  models = _model_table(_outcome_frame(forecasts, outcomes))
  return {
      "kind": "model_evaluation",
      "date": today.date().isoformat(),
      "models": models,
      "recommended_model": models[0]["model_name"] if models else None,
  }
