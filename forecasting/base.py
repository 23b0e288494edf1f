"""Shared forecasting datatypes for model selection and outcome tracking."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

TimestampLike = Union[datetime, date, str, pd.Timestamp]

_UNIT_SCALES = {"days": 1, "weeks": 7, "months": 0}
_UNIT_ALIASES = {
    "d": "days",
    "day": "days",
    "days": "days",
    "w": "weeks",
    "week": "weeks",
    "weeks": "weeks",
    "m": "months",
    "mo": "months",
    "month": "months",
    "months": "months",
}


class ModelCategory(str, Enum):
  STATISTICAL = "statistical"
  MACHINE_LEARNING = "machine_learning"
  AI_POWERED = "ai_powered"


class Complexity(str, Enum):
  BEGINNER = "beginner"
  INTERMEDIATE = "intermediate"
  ADVANCED = "advanced"


class ModelFamily(str, Enum):
  """Prediction family a descriptor belongs to; drives generator dispatch."""

  TREND = "trend"
  MOVING_AVERAGE = "moving_average"
  SMOOTHING = "smoothing"
  POLYNOMIAL = "polynomial"
  NONLINEAR = "nonlinear_approx"
  AUTOREGRESSIVE = "autoregressive"
  ENSEMBLE = "ensemble"
  SEASONAL = "seasonal"
  DEFAULT = "default"


class ForecastStatus(str, Enum):
  ACTIVE = "active"
  PAUSED = "paused"
  COMPLETED = "completed"
  ERROR = "error"


def to_datetime(value: TimestampLike) -> datetime:
  """Normalizes dates, ISO strings and pandas timestamps to ``datetime``."""
  if isinstance(value, pd.Timestamp):
    return value.to_pydatetime()
  if isinstance(value, datetime):
    return value
  if isinstance(value, date):
    return datetime(value.year, value.month, value.day)
  if isinstance(value, str):
    try:
      return datetime.fromisoformat(value.strip())
    except ValueError:
      return pd.Timestamp(value.strip()).to_pydatetime()
  raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


def _parse_optional(value: Optional[str]) -> Optional[datetime]:
  return None if value is None else to_datetime(value)


@dataclass(frozen=True)
class Series:
  """Ordered ``(timestamp, value)`` pairs with strictly increasing timestamps."""

  timestamps: Tuple[datetime, ...]
  values: Tuple[float, ...]

  def __post_init__(self):
    timestamps = tuple(to_datetime(ts) for ts in self.timestamps)
    values = tuple(float(v) for v in self.values)
    if len(timestamps) != len(values):
      raise ValueError("Timestamps and values must align.")
    if any(not math.isfinite(v) for v in values):
      raise ValueError("Series values must be finite numbers.")
    for prev, cur in zip(timestamps, timestamps[1:]):
      if cur <= prev:
        raise ValueError(f"Timestamps must be strictly increasing ({cur.isoformat()} follows {prev.isoformat()}).")
    object.__setattr__(self, "timestamps", timestamps)
    object.__setattr__(self, "values", values)

  def __len__(self) -> int:
    return len(self.values)

  @property
  def last_timestamp(self) -> datetime:
    return self.timestamps[-1]

  @property
  def last_value(self) -> float:
    return self.values[-1]

  def as_array(self) -> np.ndarray:
    return np.asarray(self.values, dtype=np.float64)

  def value_at(self, timestamp: TimestampLike) -> Optional[float]:
    target = to_datetime(timestamp)
    for ts, value in zip(self.timestamps, self.values):
      if ts == target:
        return value
    return None

  @classmethod
  def from_pairs(cls, pairs: Iterable[Tuple[TimestampLike, float]]) -> "Series":
    pairs = list(pairs)
    return cls(tuple(p[0] for p in pairs), tuple(p[1] for p in pairs))

  @classmethod
  def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "Series":
    """Builds a series from ``{"date": ..., "value": ...}`` records."""
    return cls.from_pairs((r["date"], r["value"]) for r in records)

  def to_records(self) -> List[Dict[str, Any]]:
    return [{"date": ts.isoformat(), "value": value} for ts, value in zip(self.timestamps, self.values)]


@dataclass(frozen=True)
class Step:
  """Calendar step between consecutive series points.

  ``month_end`` pins monthly steps to the last day of the month, so a series
  ending on Feb 29 continues on Mar 31.
  """

  months: int = 0
  delta: timedelta = timedelta(0)
  month_end: bool = False

  def __post_init__(self):
    if self.months < 0 or self.delta < timedelta(0) or (self.months == 0 and self.delta == timedelta(0)):
      raise ValueError("Step must advance time.")

  def advance(self, start: datetime, periods: int) -> datetime:
    if self.months:
      shifted = pd.Timestamp(start) + pd.DateOffset(months=self.months * periods)
      if self.month_end:
        shifted = shifted + pd.offsets.MonthEnd(0)
      return shifted.to_pydatetime()
    return start + self.delta * periods

  def label(self) -> str:
    if self.months:
      return f"{self.months}month" + ("s" if self.months > 1 else "")
    return f"{self.delta.total_seconds() / 86400:g}days"


def parse_step(raw_value: str) -> Step:
  """Parses values like '1month', '7days' or '2weeks' into a ``Step``."""
  raw_text = str(raw_value).strip().lower()
  match = re.fullmatch(r"(\d+)\s*([a-z]+)?", raw_text)
  if not match:
    raise ValueError(f"Step must be an integer optionally followed by a unit (days/weeks/months), got '{raw_value}'.")
  magnitude = int(match.group(1))
  if magnitude <= 0:
    raise ValueError("Step must be positive.")
  unit_token = match.group(2) or "days"
  unit_label = _UNIT_ALIASES.get(unit_token)
  if unit_label is None:
    raise ValueError(f"Unrecognized step unit '{unit_token}'; expected days, weeks, or months.")
  if unit_label == "months":
    return Step(months=magnitude)
  return Step(delta=timedelta(days=magnitude * _UNIT_SCALES[unit_label]))


def _is_month_end(ts: datetime) -> bool:
  return (pd.Timestamp(ts) + pd.Timedelta(days=1)).day == 1


def infer_step(timestamps: Sequence[datetime]) -> Optional[Step]:
  """Infers the step from input spacing; ``None`` with fewer than two points.

  Spacing is monthly when every consecutive pair keeps its day of month (or
  both fall on a month end) and time of day while advancing by the same
  number of months. Otherwise the median gap is used as a fixed delta.
  """
  if len(timestamps) < 2:
    return None

  month_gaps = set()
  for prev, cur in zip(timestamps, timestamps[1:]):
    same_day = prev.day == cur.day or (_is_month_end(prev) and _is_month_end(cur))
    if not same_day or prev.time() != cur.time():
      month_gaps = set()
      break
    month_gaps.add((cur.year - prev.year) * 12 + cur.month - prev.month)
  if len(month_gaps) == 1:
    gap = month_gaps.pop()
    if gap >= 1:
      return Step(months=gap, month_end=all(_is_month_end(ts) for ts in timestamps))

  gaps = pd.Series([cur - prev for prev, cur in zip(timestamps, timestamps[1:])])
  return Step(delta=gaps.median().to_pytimedelta())


@dataclass(frozen=True)
class ModelDescriptor:
  """Static catalog entry describing a forecasting model."""

  id: str
  name: str
  category: ModelCategory
  complexity: Complexity
  family: ModelFamily = ModelFamily.DEFAULT
  description: str = ""
  parameters: Mapping[str, Any] = field(default_factory=dict)
  best_for: str = ""

  def param(self, key: str, default: Any = None) -> Any:
    return self.parameters.get(key, default)

  def to_dict(self) -> Dict[str, Any]:
    return {
        "id": self.id,
        "name": self.name,
        "category": self.category.value,
        "complexity": self.complexity.value,
        "family": self.family.value,
        "description": self.description,
        "parameters": dict(self.parameters),
        "best_for": self.best_for,
    }


@dataclass(frozen=True)
class Forecast:
  """Stored artifact pairing an input series with its predicted continuation."""

  id: str
  title: str
  type: str
  model_name: str
  input_series: Series
  predicted_series: Series
  time_horizon: str
  created_at: datetime
  updated_at: datetime
  status: ForecastStatus = ForecastStatus.ACTIVE
  accuracy_score: Optional[float] = None

  def __post_init__(self):
    if len(self.predicted_series) and len(self.input_series):
      if self.predicted_series.timestamps[0] <= self.input_series.last_timestamp:
        raise ValueError("Predicted timestamps must follow the last input timestamp.")

  def to_dict(self) -> Dict[str, Any]:
    return {
        "id": self.id,
        "title": self.title,
        "type": self.type,
        "model_name": self.model_name,
        "input_series": self.input_series.to_records(),
        "predicted_series": self.predicted_series.to_records(),
        "accuracy_score": self.accuracy_score,
        "time_horizon": self.time_horizon,
        "status": self.status.value,
        "created_at": self.created_at.isoformat(),
        "updated_at": self.updated_at.isoformat(),
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> "Forecast":
    accuracy = payload.get("accuracy_score")
    return cls(
        id=payload["id"],
        title=payload["title"],
        type=payload["type"],
        model_name=payload["model_name"],
        input_series=Series.from_records(payload["input_series"]),
        predicted_series=Series.from_records(payload["predicted_series"]),
        accuracy_score=None if accuracy is None else float(accuracy),
        time_horizon=payload["time_horizon"],
        status=ForecastStatus(payload.get("status", ForecastStatus.ACTIVE.value)),
        created_at=to_datetime(payload["created_at"]),
        updated_at=to_datetime(payload["updated_at"]),
    )


@dataclass(frozen=True)
class Outcome:
  """Actual value recorded for a previously predicted timestamp."""

  id: str
  forecast_id: str
  outcome_date: datetime
  actual_value: float
  recorded_at: datetime
  predicted_value: float
  variance: float
  accuracy_pct: float

  @property
  def key(self) -> Tuple[str, datetime]:
    return (self.forecast_id, self.outcome_date)

  def to_dict(self) -> Dict[str, Any]:
    return {
        "id": self.id,
        "forecast_id": self.forecast_id,
        "outcome_date": self.outcome_date.isoformat(),
        "actual_value": self.actual_value,
        "recorded_at": self.recorded_at.isoformat(),
        "predicted_value": self.predicted_value,
        "variance": self.variance,
        "accuracy_pct": self.accuracy_pct,
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> "Outcome":
    return cls(
        id=payload["id"],
        forecast_id=payload["forecast_id"],
        outcome_date=to_datetime(payload["outcome_date"]),
        actual_value=float(payload["actual_value"]),
        recorded_at=to_datetime(payload["recorded_at"]),
        predicted_value=float(payload["predicted_value"]),
        variance=float(payload["variance"]),
        accuracy_pct=float(payload["accuracy_pct"]),
    )


@dataclass(frozen=True)
class PendingOutcome:
  """A predicted date that has passed without a recorded outcome."""

  forecast_id: str
  forecast_title: str
  model_name: str
  prediction_date: datetime
  predicted_value: float
  days_overdue: int
  priority: str

  def to_dict(self) -> Dict[str, Any]:
    return {
        "forecast_id": self.forecast_id,
        "forecast_title": self.forecast_title,
        "model_name": self.model_name,
        "prediction_date": self.prediction_date.isoformat(),
        "predicted_value": self.predicted_value,
        "days_overdue": self.days_overdue,
        "priority": self.priority,
    }


class TaskType(str, Enum):
  ACCURACY_UPDATE = "accuracy_update"
  DAILY_REPORT = "daily_report"
  WEEKLY_SUMMARY = "weekly_summary"
  MODEL_EVALUATION = "model_evaluation"


class Frequency(str, Enum):
  DAILY = "daily"
  WEEKLY = "weekly"
  MONTHLY = "monthly"


class TaskStatus(str, Enum):
  ACTIVE = "active"
  PAUSED = "paused"
  RUNNING = "running"
  ERROR = "error"


class ExecutionStatus(str, Enum):
  SUCCESS = "success"
  PARTIAL = "partial"
  FAILED = "failed"


@dataclass(frozen=True)
class TaskConfig:
  """When a task runs. ``day_of_week`` uses 0=Sunday through 6=Saturday."""

  time_of_day: str
  day_of_week: Optional[int] = None
  day_of_month: Optional[int] = None
  enabled: bool = True

  def __post_init__(self):
    parse_time_of_day(self.time_of_day)
    if self.day_of_week is not None and not 0 <= self.day_of_week <= 6:
      raise ValueError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")
    if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
      raise ValueError("day_of_month must be between 1 and 31.")

  def to_dict(self) -> Dict[str, Any]:
    return {
        "time_of_day": self.time_of_day,
        "day_of_week": self.day_of_week,
        "day_of_month": self.day_of_month,
        "enabled": self.enabled,
    }


def parse_time_of_day(raw: str) -> Tuple[int, int]:
  match = re.fullmatch(r"(\d{1,2}):(\d{2})", str(raw).strip())
  if not match:
    raise ValueError(f"Time of day must look like HH:MM, got '{raw}'.")
  hours, minutes = int(match.group(1)), int(match.group(2))
  if hours > 23 or minutes > 59:
    raise ValueError(f"Time of day out of range: '{raw}'.")
  return hours, minutes


@dataclass(frozen=True)
class ScheduledTask:
  id: str
  type: TaskType
  frequency: Frequency
  config: TaskConfig
  next_run: datetime
  title: str = ""
  description: str = ""
  last_run: Optional[datetime] = None
  status: TaskStatus = TaskStatus.ACTIVE

  def is_due(self, now: datetime) -> bool:
    return self.config.enabled and self.status is TaskStatus.ACTIVE and self.next_run <= now

  def to_dict(self) -> Dict[str, Any]:
    return {
        "id": self.id,
        "type": self.type.value,
        "title": self.title,
        "description": self.description,
        "frequency": self.frequency.value,
        "config": self.config.to_dict(),
        "next_run": self.next_run.isoformat(),
        "last_run": None if self.last_run is None else self.last_run.isoformat(),
        "status": self.status.value,
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> "ScheduledTask":
    config = payload["config"]
    return cls(
        id=payload["id"],
        type=TaskType(payload["type"]),
        title=payload.get("title", ""),
        description=payload.get("description", ""),
        frequency=Frequency(payload["frequency"]),
        config=TaskConfig(
            time_of_day=config["time_of_day"],
            day_of_week=config.get("day_of_week"),
            day_of_month=config.get("day_of_month"),
            enabled=bool(config.get("enabled", True)),
        ),
        next_run=to_datetime(payload["next_run"]),
        last_run=_parse_optional(payload.get("last_run")),
        status=TaskStatus(payload.get("status", TaskStatus.ACTIVE.value)),
    )


@dataclass(frozen=True)
class TaskExecutionResult:
  task_id: str
  execution_time: datetime
  status: ExecutionStatus
  forecasts_processed: int = 0
  alerts_sent: int = 0
  reports_generated: int = 0
  errors: Tuple[str, ...] = ()

  def to_dict(self) -> Dict[str, Any]:
    return {
        "task_id": self.task_id,
        "execution_time": self.execution_time.isoformat(),
        "status": self.status.value,
        "forecasts_processed": self.forecasts_processed,
        "alerts_sent": self.alerts_sent,
        "reports_generated": self.reports_generated,
        "errors": list(self.errors),
    }

  @classmethod
  def from_dict(cls, payload: Mapping[str, Any]) -> "TaskExecutionResult":
    return cls(
        task_id=payload["task_id"],
        execution_time=to_datetime(payload["execution_time"]),
        status=ExecutionStatus(payload["status"]),
        forecasts_processed=int(payload.get("forecasts_processed", 0)),
        alerts_sent=int(payload.get("alerts_sent", 0)),
        reports_generated=int(payload.get("reports_generated", 0)),
        errors=tuple(payload.get("errors", ())),
    )
