"""Tests for report payload builders."""

from datetime import datetime

import pytest

from forecasting.base import Outcome
from forecasting.outcomes import point_accuracy
from forecasting.reports import build_daily_report, build_model_evaluation, build_weekly_summary, performance_tier

from conftest import make_forecast

TODAY = datetime(2024, 3, 10, 10, 0)


def _outcome(forecast_id, when, actual, predicted, recorded_at):
  return Outcome(
      id=f"{forecast_id}-{when:%Y%m%d}",
      forecast_id=forecast_id,
      outcome_date=when,
      actual_value=actual,
      recorded_at=recorded_at,
      predicted_value=predicted,
      variance=actual - predicted,
      accuracy_pct=point_accuracy(predicted, actual),
  )


@pytest.fixture
def history():
  linear = make_forecast("lin", model_name="Linear Regression")
  arima = make_forecast("ar", model_name="ARIMA Model")
  outcomes = [
      _outcome("lin", datetime(2024, 1, 1), 100.0, 100.0, datetime(2024, 1, 2)),
      _outcome("lin", datetime(2024, 2, 1), 100.0, 110.0, datetime(2024, 3, 10, 9, 0)),
      _outcome("ar", datetime(2024, 1, 1), 50.0, 100.0, datetime(2024, 3, 8)),
  ]
  return [linear, arima], outcomes


class TestReports:

  @pytest.mark.unit
  @pytest.mark.parametrize("accuracy,tier", [(90.0, "excellent"), (85.0, "excellent"), (80.0, "good"), (60.0, "needs_attention")])
  def test_performance_tier(self, accuracy, tier):
    assert performance_tier(accuracy) == tier

  @pytest.mark.unit
  def test_daily_report(self, history):
    forecasts, outcomes = history
    report = build_daily_report(forecasts, outcomes, TODAY)
    assert report["kind"] == "daily_report"
    assert report["total_forecasts"] == 2
    assert report["outcomes_recorded_today"] == 1
    assert report["forecasts_with_data"] == 2
    # per-forecast means 95.45 and 50
    assert report["average_accuracy"] == pytest.approx((100 + 100 - 100 / 11) / 4 + 25, abs=0.01)
    assert report["performance"] == "needs_attention"

  @pytest.mark.unit
  def test_daily_report_without_outcomes(self):
    report = build_daily_report([make_forecast()], [], TODAY)
    assert report["performance"] == "no_data"
    assert report["average_accuracy"] == 0.0

  @pytest.mark.unit
  def test_weekly_summary_only_counts_last_seven_days(self, history):
    forecasts, outcomes = history
    summary = build_weekly_summary(forecasts, outcomes, TODAY)
    assert summary["week_start"] == "2024-03-03"
    assert summary["outcomes_this_week"] == 2
    assert [m["model_name"] for m in summary["models"]] == ["Linear Regression", "ARIMA Model"]

  @pytest.mark.unit
  def test_model_evaluation_ranks_models(self, history):
    forecasts, outcomes = history
    evaluation = build_model_evaluation(forecasts, outcomes, TODAY)
    assert evaluation["recommended_model"] == "Linear Regression"
    first = evaluation["models"][0]
    assert first["outcomes"] == 2 and first["forecasts"] == 1

  @pytest.mark.unit
  def test_model_evaluation_empty(self):
    assert build_model_evaluation([], [], TODAY)["recommended_model"] is None
