"""Persistence contracts for forecasts, outcomes and scheduled tasks.

The engine only talks to these protocols. In-memory stores back tests and
embedded hosts; the JSON stores keep one file per collection and rewrite it
atomically after every mutation.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .base import Forecast, Outcome, ScheduledTask, TaskExecutionResult
from .errors import DuplicateOutcomeError, UnknownForecastError

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


class ForecastStore(Protocol):
  def list(self) -> List[Forecast]:
    ...

  def get(self, forecast_id: str) -> Forecast:
    ...

  def create(self, forecast: Forecast) -> Forecast:
    ...

  def update(self, forecast_id: str, **changes: Any) -> Forecast:
    ...


class OutcomeStore(Protocol):
  def list(self) -> List[Outcome]:
    ...

  def create(self, outcome: Outcome) -> Outcome:
    ...


class TaskStore(Protocol):
  def list(self) -> List[ScheduledTask]:
    ...

  def save(self, tasks: Sequence[ScheduledTask]) -> None:
    ...

  def append_history(self, result: TaskExecutionResult) -> None:
    ...

  def history(self) -> List[TaskExecutionResult]:
    ...


class InMemoryForecastStore:
  """Forecast store; mutations and their persistence happen under one lock."""

  def __init__(self, forecasts: Sequence[Forecast] = ()):
    self._lock = threading.RLock()
    self._items: Dict[str, Forecast] = {f.id: f for f in forecasts}

  def list(self) -> List[Forecast]:
    with self._lock:
      return list(self._items.values())

  def get(self, forecast_id: str) -> Forecast:
    with self._lock:
      try:
        return self._items[forecast_id]
      except KeyError:
        raise UnknownForecastError(f"Unknown forecast id '{forecast_id}'.") from None

  def create(self, forecast: Forecast) -> Forecast:
    with self._lock:
      if forecast.id in self._items:
        raise ValueError(f"Forecast '{forecast.id}' already exists.")
      self._items[forecast.id] = forecast
      try:
        self._persist()
      except Exception:
        del self._items[forecast.id]
        raise
    return forecast

  def update(self, forecast_id: str, **changes: Any) -> Forecast:
    with self._lock:
      if forecast_id not in self._items:
        raise UnknownForecastError(f"Unknown forecast id '{forecast_id}'.")
      changes.setdefault("updated_at", datetime.now())
      previous = self._items[forecast_id]
      updated = dataclasses.replace(previous, **changes)
      self._items[forecast_id] = updated
      try:
        self._persist()
      except Exception:
        self._items[forecast_id] = previous
        raise
    return updated

  def _persist(self) -> None:
    pass


class InMemoryOutcomeStore:
  """Outcome store enforcing the unique (forecast_id, outcome_date) key."""

  def __init__(self, outcomes: Sequence[Outcome] = ()):
    self._lock = threading.RLock()
    self._items: Dict[Tuple[str, datetime], Outcome] = {o.key: o for o in outcomes}

  def list(self) -> List[Outcome]:
    with self._lock:
      return list(self._items.values())

  def create(self, outcome: Outcome) -> Outcome:
    with self._lock:
      if outcome.key in self._items:
        raise DuplicateOutcomeError(
            f"Outcome for forecast '{outcome.forecast_id}' on {outcome.outcome_date.date().isoformat()} already recorded."
        )
      self._items[outcome.key] = outcome
      try:
        self._persist()
      except Exception:
        del self._items[outcome.key]
        raise
    return outcome

  def _persist(self) -> None:
    pass


class InMemoryTaskStore:
  def __init__(self, tasks: Sequence[ScheduledTask] = (), *, history_limit: int = DEFAULT_HISTORY_LIMIT):
    self._lock = threading.RLock()
    self._tasks: List[ScheduledTask] = list(tasks)
    self._history: List[TaskExecutionResult] = []
    self.history_limit = history_limit

  def list(self) -> List[ScheduledTask]:
    with self._lock:
      return list(self._tasks)

  def save(self, tasks: Sequence[ScheduledTask]) -> None:
    with self._lock:
      self._tasks = list(tasks)
      self._persist()

  def append_history(self, result: TaskExecutionResult) -> None:
    with self._lock:
      self._history = [result, *self._history][: self.history_limit]
      self._persist()

  def history(self) -> List[TaskExecutionResult]:
    with self._lock:
      return list(self._history)

  def _persist(self) -> None:
    pass


def _load_json(path: Path, default: Any) -> Any:
  """Loads JSON from ``path``; a missing file yields ``default``."""
  try:
    with open(path, "r", encoding="utf-8") as fh:
      return json.load(fh)
  except FileNotFoundError:
    return default
  except json.JSONDecodeError as exc:
    raise ValueError(f"Store file {path} is corrupt: {exc}") from exc


def _save_json(path: Path, data: Any) -> None:
  """Atomically writes ``data`` as pretty-printed JSON to ``path``.

  Each write goes through its own temporary file in the target directory.
  """
  path.parent.mkdir(parents=True, exist_ok=True)
  fh = tempfile.NamedTemporaryFile(
      "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
  )
  tmp = Path(fh.name)
  try:
    with fh:
      json.dump(data, fh, indent=2)
    os.replace(tmp, path)
  except Exception:
    tmp.unlink(missing_ok=True)
    raise


class JsonForecastStore(InMemoryForecastStore):
  def __init__(self, path: Path):
    self.path = Path(path)
    records = _load_json(self.path, [])
    super().__init__([Forecast.from_dict(r) for r in records])

  def _persist(self) -> None:
    _save_json(self.path, [f.to_dict() for f in self.list()])


class JsonOutcomeStore(InMemoryOutcomeStore):
  def __init__(self, path: Path):
    self.path = Path(path)
    records = _load_json(self.path, [])
    super().__init__([Outcome.from_dict(r) for r in records])

  def _persist(self) -> None:
    _save_json(self.path, [o.to_dict() for o in self.list()])


class JsonTaskStore(InMemoryTaskStore):
  """Tasks and execution history stored side by side in one JSON document."""

  def __init__(self, path: Path, *, history_limit: int = DEFAULT_HISTORY_LIMIT):
    self.path = Path(path)
    payload = _load_json(self.path, {})
    super().__init__(
        [ScheduledTask.from_dict(t) for t in payload.get("tasks", [])],
        history_limit=history_limit,
    )
    self._history = [TaskExecutionResult.from_dict(r) for r in payload.get("history", [])][:history_limit]

  def _persist(self) -> None:
    _save_json(
        self.path,
        {
            "tasks": [t.to_dict() for t in self.list()],
            "history": [r.to_dict() for r in self.history()],
        },
    )


def open_json_stores(data_dir: Optional[str], *, history_limit: int = DEFAULT_HISTORY_LIMIT):
  """Opens the three JSON stores under ``data_dir``."""
  root = Path(data_dir or "data").expanduser()
  logger.debug("Opening JSON stores under %s", root)
  return (
      JsonForecastStore(root / "forecasts.json"),
      JsonOutcomeStore(root / "outcomes.json"),
      JsonTaskStore(root / "tasks.json", history_limit=history_limit),
  )
