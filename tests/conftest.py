"""Shared fixtures for the forecasting engine test suite.

Everything runs against in-memory stores and injected clocks/noise so no
test depends on wall-clock time or randomness.
"""

from datetime import datetime, timedelta

import pytest

from forecasting.base import Forecast, ForecastStatus, Series, Step
from forecasting.generator import MidpointNoise
from forecasting.registry import default_registry
from forecasting.stores import InMemoryForecastStore, InMemoryOutcomeStore, InMemoryTaskStore

MONTHLY = Step(months=1)


def monthly_series(values, start=datetime(2024, 1, 1)):
  return Series(tuple(MONTHLY.advance(start, i) for i in range(len(values))), tuple(values))


def make_forecast(
    forecast_id="fc-1",
    predicted=(100.0, 110.0, 120.0),
    *,
    start=datetime(2024, 1, 1),
    title="Widget sales",
    model_name="Linear Regression",
    status=ForecastStatus.ACTIVE,
    created_at=datetime(2023, 12, 15),
):
  history = monthly_series([90.0, 95.0, 98.0], start=datetime(2023, 10, 1))
  return Forecast(
      id=forecast_id,
      title=title,
      type="sales",
      model_name=model_name,
      input_series=history,
      predicted_series=monthly_series(predicted, start=start),
      time_horizon=f"{len(predicted)} months",
      created_at=created_at,
      updated_at=created_at,
      status=status,
  )


@pytest.fixture
def linear_series():
  """12 monthly points rising by 10 from 100."""
  return monthly_series([100.0 + 10 * i for i in range(12)])


@pytest.fixture
def constant_series():
  return monthly_series([100.0] * 5)


@pytest.fixture
def registry():
  return default_registry()


@pytest.fixture
def midpoint():
  return MidpointNoise()


@pytest.fixture
def forecast_store():
  return InMemoryForecastStore()


@pytest.fixture
def outcome_store():
  return InMemoryOutcomeStore()


@pytest.fixture
def task_store():
  return InMemoryTaskStore()


class FakeClock:
  """Manually advanced clock for scheduler tests."""

  def __init__(self, start):
    self.now = start

  def __call__(self):
    return self.now

  def advance(self, **kwargs):
    self.now += timedelta(**kwargs)
    return self.now


@pytest.fixture
def clock():
  return FakeClock(datetime(2024, 1, 3, 12, 0))
