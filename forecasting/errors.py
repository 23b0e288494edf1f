"""Error taxonomy shared by the forecasting engine."""

from __future__ import annotations


class ForecastingError(Exception):
  """Base class for every error raised by the engine."""


class InsufficientDataError(ForecastingError, ValueError):
  """Raised when a series has too few points for the requested operation."""


class UnknownModelError(ForecastingError, KeyError):
  """Raised when a model id is not present in the registry."""

  def __str__(self) -> str:
    return Exception.__str__(self)


class UnknownForecastError(ForecastingError, KeyError):
  """Raised when a forecast id does not exist in the store."""

  def __str__(self) -> str:
    return Exception.__str__(self)


class DuplicateOutcomeError(ForecastingError):
  """Raised when an outcome already exists for a (forecast, date) pair."""


class DateNotPredictedError(ForecastingError, ValueError):
  """Raised when an outcome date is not one of the forecast's predicted dates."""


class DivisionByZeroError(ForecastingError, ZeroDivisionError):
  """Raised by strict statistics when a ratio has a zero denominator."""


class UnknownTaskError(ForecastingError, KeyError):
  """Raised when a scheduled task id is not registered."""

  def __str__(self) -> str:
    return Exception.__str__(self)


class TaskAlreadyRunningError(ForecastingError):
  """Raised when a task is entered into running while already running."""


class TaskExecutionFailure(ForecastingError):
  """Wraps any exception raised inside a scheduled task body."""

  def __init__(self, task_id: str, message: str):
    super().__init__(f"Task {task_id} failed: {message}")
    self.task_id = task_id
