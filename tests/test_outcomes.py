"""Tests for outcome correlation, accuracy tracking and pending outcomes."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta

import pytest

from forecasting.base import ForecastStatus, Outcome
from forecasting.errors import DateNotPredictedError, DuplicateOutcomeError, UnknownForecastError
from forecasting.outcomes import (
    OutcomeCorrelator,
    find_pending_outcomes,
    point_accuracy,
    summarize_outcomes,
    windowed_accuracy,
)
from forecasting.stores import JsonForecastStore, JsonOutcomeStore

from conftest import make_forecast, monthly_series


@pytest.fixture
def correlator(forecast_store, outcome_store):
  forecast_store.create(make_forecast())
  return OutcomeCorrelator(forecast_store, outcome_store)


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


class TestPointAccuracy:

  @pytest.mark.unit
  @pytest.mark.parametrize(
      "predicted,actual,expected",
      [
          (100, 100, 100.0),
          (110, 100, 100 - 100 / 11),
          (100, 110, 100 - 100 / 11),
          (120, 100, 100 - 100 / 6),
          (0, 0, 100.0),
          (0, 50, 0.0),
          (-10, 10, 0.0),
      ],
  )
  def test_values(self, predicted, actual, expected):
    assert point_accuracy(predicted, actual) == pytest.approx(expected)


class TestRecordOutcome:

  @pytest.mark.unit
  def test_windowed_mean_over_three_outcomes(self, correlator, forecast_store):
    for month in (1, 2, 3):
      correlator.record_outcome("fc-1", datetime(2024, month, 1), 100.0, recorded_at=datetime(2024, month, 2))
    accuracy = forecast_store.get("fc-1").accuracy_score
    assert accuracy == pytest.approx(91.41, abs=0.01)

  @pytest.mark.unit
  def test_outcome_carries_variance_and_accuracy(self, correlator):
    outcome = correlator.record_outcome("fc-1", date(2024, 2, 1), 100.0)
    assert outcome.outcome_date == datetime(2024, 2, 1)
    assert outcome.predicted_value == 110.0
    assert outcome.variance == -10.0
    assert outcome.accuracy_pct == pytest.approx(90.909, abs=0.001)

  @pytest.mark.unit
  def test_duplicate_is_rejected_and_first_kept(self, correlator, outcome_store, forecast_store):
    correlator.record_outcome("fc-1", datetime(2024, 1, 1), 100.0)
    with pytest.raises(DuplicateOutcomeError):
      correlator.record_outcome("fc-1", datetime(2024, 1, 1), 50.0)
    assert [o.actual_value for o in outcome_store.list()] == [100.0]
    assert forecast_store.get("fc-1").accuracy_score == 100.0

  @pytest.mark.unit
  def test_unknown_forecast(self, correlator):
    with pytest.raises(UnknownForecastError):
      correlator.record_outcome("missing", datetime(2024, 1, 1), 1.0)

  @pytest.mark.unit
  def test_date_not_predicted(self, correlator, outcome_store):
    with pytest.raises(DateNotPredictedError):
      correlator.record_outcome("fc-1", datetime(2024, 1, 15), 100.0)
    assert outcome_store.list() == []

  @pytest.mark.unit
  def test_non_finite_actual_is_rejected(self, correlator):
    with pytest.raises(ValueError):
      correlator.record_outcome("fc-1", datetime(2024, 1, 1), float("nan"))

  @pytest.mark.unit
  def test_no_outcomes_means_no_accuracy(self, correlator, forecast_store):
    assert correlator.compute_accuracy("fc-1") is None
    assert forecast_store.get("fc-1").accuracy_score is None


class TestWindowedAccuracy:

  @pytest.mark.unit
  def test_only_most_recent_five_count(self):
    forecast = make_forecast(predicted=[100.0] * 7)
    dates = forecast.predicted_series.timestamps
    # two old misses followed by five perfect hits
    outcomes = [_outcome("fc-1", d, 50.0, 100.0, datetime(2024, 1, 1) + timedelta(days=i)) for i, d in enumerate(dates[:2])]
    outcomes += [
        _outcome("fc-1", d, 100.0, 100.0, datetime(2024, 2, 1) + timedelta(days=i)) for i, d in enumerate(dates[2:])
    ]
    assert windowed_accuracy(forecast, outcomes, window=5) == 100.0
    assert windowed_accuracy(forecast, outcomes, window=7) == pytest.approx((2 * 50 + 5 * 100) / 7)

  @pytest.mark.unit
  def test_other_forecasts_are_ignored(self):
    forecast = make_forecast()
    stray = _outcome("fc-2", datetime(2024, 1, 1), 1.0, 100.0, datetime(2024, 1, 2))
    assert windowed_accuracy(forecast, [stray]) is None


class TestPendingOutcomes:

  @pytest.mark.unit
  def test_priorities_and_ordering(self):
    old = make_forecast("old", predicted=(10.0, 20.0), start=datetime(2024, 1, 1))
    recent = make_forecast("recent", predicted=(30.0,), start=datetime(2024, 2, 25))
    as_of = datetime(2024, 3, 5)
    pending = find_pending_outcomes([recent, old], [], as_of)
    assert [(p.forecast_id, p.days_overdue, p.priority) for p in pending] == [
        ("old", 64, "high"),
        ("old", 33, "high"),
        ("recent", 9, "medium"),
    ]

  @pytest.mark.unit
  def test_recorded_future_and_inactive_are_skipped(self):
    active = make_forecast("active", predicted=(10.0, 20.0, 30.0), start=datetime(2024, 1, 1))
    done = make_forecast("done", predicted=(10.0,), status=ForecastStatus.COMPLETED)
    recorded = [_outcome("active", datetime(2024, 1, 1), 10.0, 10.0, datetime(2024, 1, 2))]
    pending = find_pending_outcomes([active, done], recorded, datetime(2024, 2, 3))
    assert [(p.prediction_date, p.priority) for p in pending] == [(datetime(2024, 2, 1), "low")]

  @pytest.mark.unit
  def test_limit(self):
    forecast = make_forecast(predicted=[1.0] * 6)
    pending = find_pending_outcomes([forecast], [], datetime(2025, 1, 1), limit=2)
    assert len(pending) == 2
    assert pending[0].prediction_date == datetime(2024, 1, 1)


class TestSummarizeOutcomes:

  @pytest.mark.unit
  def test_empty(self):
    assert summarize_outcomes([], 3) is None

  @pytest.mark.unit
  def test_improving_trend_and_buckets(self):
    series = monthly_series([100.0] * 6)
    actuals = [70.0, 75.0, 80.0, 97.0, 99.0, 100.0]
    outcomes = [
        _outcome("fc-1", ts, actual, 100.0, ts + timedelta(days=1))
        for ts, actual in zip(series.timestamps, actuals)
    ]
    summary = summarize_outcomes(outcomes, predicted_count=8)
    assert summary.trend == "improving"
    assert summary.tracked_periods == 6
    assert summary.remaining_periods == 2
    assert summary.best_accuracy == 100.0
    assert summary.worst_accuracy == pytest.approx(70.0)
    assert summary.variance_distribution == {"0-5%": 3, "5-10%": 0, "10-20%": 0, "20%+": 3}

  @pytest.mark.unit
  def test_short_history_is_stable(self):
    outcomes = [_outcome("fc-1", datetime(2024, 1, 1), 50.0, 100.0, datetime(2024, 1, 2))]
    assert summarize_outcomes(outcomes, 3).trend == "stable"


class TestConcurrentRecording:

  @pytest.mark.integration
  def test_same_date_recorded_once_under_contention(self, correlator, outcome_store):
    start = threading.Barrier(8)
    successes, duplicates = [], []

    def record(value):
      start.wait()
      try:
        successes.append(correlator.record_outcome("fc-1", datetime(2024, 1, 1), value))
      except DuplicateOutcomeError:
        duplicates.append(value)

    with ThreadPoolExecutor(max_workers=8) as pool:
      list(pool.map(record, [90.0 + i for i in range(8)]))

    assert len(successes) == 1
    assert len(duplicates) == 7
    assert outcome_store.list() == successes

  @pytest.mark.integration
  def test_different_forecasts_record_in_parallel_to_json(self, tmp_path):
    forecast_store = JsonForecastStore(tmp_path / "forecasts.json")
    outcome_store = JsonOutcomeStore(tmp_path / "outcomes.json")
    ids = [f"fc-{i}" for i in range(8)]
    for forecast_id in ids:
      forecast_store.create(make_forecast(forecast_id, predicted=[100.0] * 6))
    correlator = OutcomeCorrelator(forecast_store, outcome_store)
    dates = make_forecast(predicted=[100.0] * 6).predicted_series.timestamps

    def record_all(forecast_id):
      for when in dates:
        correlator.record_outcome(forecast_id, when, 99.0)

    with ThreadPoolExecutor(max_workers=8) as pool:
      list(pool.map(record_all, ids))

    assert len(outcome_store.list()) == 48
    assert len(JsonOutcomeStore(tmp_path / "outcomes.json").list()) == 48
    assert all(JsonForecastStore(tmp_path / "forecasts.json").get(f).accuracy_score == pytest.approx(99.0) for f in ids)
    assert list(tmp_path.glob("*.tmp")) == []
