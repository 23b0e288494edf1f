"""Recurring accuracy re-evaluation and reporting tasks.

Tasks move ``active -> running -> active | error`` and ``active <-> paused``
through enable/disable. A tick runs every enabled, active task whose
``next_run`` has passed, one after another in registration order. After
each execution ``next_run`` is recomputed from the current time, so runs
missed while the process was down collapse into a single catch-up run.
Task bodies run in a worker thread bounded by a timeout; a body that
raises or overruns marks its task ``error`` without affecting the others.
An overrunning body cannot be interrupted, so its task refuses to run or
be reset until that body has returned.
"""

from __future__ import annotations

import calendar
import dataclasses
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from .base import (
    ExecutionStatus,
    Forecast,
    ForecastStatus,
    Frequency,
    ScheduledTask,
    TaskConfig,
    TaskExecutionResult,
    TaskStatus,
    TaskType,
    parse_time_of_day,
)
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import TaskAlreadyRunningError, TaskExecutionFailure, UnknownTaskError
from .notifications import LoggingNotificationSink, NotificationSink
from .outcomes import windowed_accuracy
from .reports import build_daily_report, build_model_evaluation, build_weekly_summary
from .stores import ForecastStore, OutcomeStore, TaskStore

logger = logging.getLogger(__name__)


def _js_weekday(moment: datetime) -> int:
  # 0=Sunday .. 6=Saturday
  return (moment.weekday() + 1) % 7


def _monthly_slot(year: int, month: int, day: int, hours: int, minutes: int) -> datetime:
  last_day = calendar.monthrange(year, month)[1]
  return datetime(year, month, min(day, last_day), hours, minutes)


def compute_next_run(
    frequency: str,
    time_of_day: str,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> datetime:
  """Next slot strictly after ``now`` for the given schedule."""
  now = now or datetime.now()
  frequency = Frequency(frequency)
  hours, minutes = parse_time_of_day(time_of_day)
  candidate = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)

  if frequency is Frequency.WEEKLY and day_of_week is not None:
    days_until = (day_of_week - _js_weekday(candidate) + 7) % 7
    if days_until == 0 and candidate <= now:
      days_until = 7
    return candidate + timedelta(days=days_until)

  if frequency is Frequency.MONTHLY:
    day = day_of_month or 1
    candidate = _monthly_slot(now.year, now.month, day, hours, minutes)
    if candidate <= now:
      year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
      candidate = _monthly_slot(year, month, day, hours, minutes)
    return candidate

  if candidate <= now:
    candidate += timedelta(days=1)
  return candidate


def next_run_for(task: ScheduledTask, now: datetime) -> datetime:
  cfg = task.config
  return compute_next_run(task.frequency, cfg.time_of_day, cfg.day_of_week, cfg.day_of_month, now)


def default_tasks(now: Optional[datetime] = None) -> List[ScheduledTask]:
  now = now or datetime.now()
  specs = [
      (
          "daily_accuracy_update",
          TaskType.ACCURACY_UPDATE,
          "Daily Accuracy Update",
          "Update forecast accuracy metrics and identify underperforming models",
          Frequency.DAILY,
          TaskConfig(time_of_day="09:00"),
      ),
      (
          "daily_performance_report",
          TaskType.DAILY_REPORT,
          "Daily Performance Report",
          "Generate and send daily forecast performance summary",
          Frequency.DAILY,
          TaskConfig(time_of_day="10:00"),
      ),
      (
          "weekly_summary",
          TaskType.WEEKLY_SUMMARY,
          "Weekly Summary Report",
          "Weekly analysis with per-model trends",
          Frequency.WEEKLY,
          TaskConfig(time_of_day="08:00", day_of_week=1),
      ),
      (
          "model_evaluation",
          TaskType.MODEL_EVALUATION,
          "Monthly Model Evaluation",
          "Evaluate model performance and rank models by accuracy",
          Frequency.MONTHLY,
          TaskConfig(time_of_day="07:00", day_of_month=1),
      ),
  ]
  tasks = []
  for task_id, task_type, title, description, frequency, config in specs:
    task = ScheduledTask(
        id=task_id,
        type=task_type,
        title=title,
        description=description,
        frequency=frequency,
        config=config,
        next_run=now,
    )
    tasks.append(dataclasses.replace(task, next_run=next_run_for(task, now)))
  return tasks


@dataclass
class SchedulerState:
  """Task list in registration order plus newest-first execution history."""

  tasks: List[ScheduledTask] = field(default_factory=list)
  history: List[TaskExecutionResult] = field(default_factory=list)
  history_limit: int = DEFAULT_CONFIG.scheduler.history_limit

  @classmethod
  def from_store(cls, store: TaskStore, *, now: Optional[datetime] = None, history_limit: int = DEFAULT_CONFIG.scheduler.history_limit) -> "SchedulerState":
    """Loads persisted tasks, seeding and saving the defaults on first use."""
    tasks = store.list()
    if not tasks:
      tasks = default_tasks(now)
      store.save(tasks)
    return cls(tasks=tasks, history=store.history()[:history_limit], history_limit=history_limit)

  def get(self, task_id: str) -> ScheduledTask:
    for task in self.tasks:
      if task.id == task_id:
        return task
    raise UnknownTaskError(f"Unknown task id '{task_id}'.")

  def put(self, updated: ScheduledTask) -> None:
    for index, task in enumerate(self.tasks):
      if task.id == updated.id:
        self.tasks[index] = updated
        return
    raise UnknownTaskError(f"Unknown task id '{updated.id}'.")

  def record(self, result: TaskExecutionResult) -> None:
    self.history = [result, *self.history][: self.history_limit]

  def due_tasks(self, now: datetime) -> List[ScheduledTask]:
    return [t for t in self.tasks if t.is_due(now)]


@dataclass
class _Tally:
  processed: int = 0
  alerts: int = 0
  reports: int = 0
  errors: List[str] = field(default_factory=list)


class Scheduler:
  """Drives scheduled tasks against the forecast and outcome stores."""

  def __init__(
      self,
      state: SchedulerState,
      *,
      forecast_store: ForecastStore,
      outcome_store: OutcomeStore,
      task_store: Optional[TaskStore] = None,
      sink: Optional[NotificationSink] = None,
      config: EngineConfig = DEFAULT_CONFIG,
      clock: Callable[[], datetime] = datetime.now,
  ):
    self.state = state
    self.forecast_store = forecast_store
    self.outcome_store = outcome_store
    self.task_store = task_store
    self.sink = sink or LoggingNotificationSink(threshold=config.monitoring.alert_threshold)
    self.config = config
    self.clock = clock
    self._bodies: Dict[TaskType, Callable[[datetime, _Tally], bool]] = {
        TaskType.ACCURACY_UPDATE: self._accuracy_update,
        TaskType.DAILY_REPORT: self._daily_report,
        TaskType.WEEKLY_SUMMARY: self._weekly_summary,
        TaskType.MODEL_EVALUATION: self._model_evaluation,
    }
    # Bodies still executing, including ones abandoned after a timeout.
    self._inflight: Dict[str, Future] = {}
    self._inflight_lock = threading.Lock()

  # ------------------------------------------------------------------
  # Loop
  # ------------------------------------------------------------------

  def tick(self, now: Optional[datetime] = None) -> List[TaskExecutionResult]:
    """Executes every due task sequentially and returns their results."""
    now = now or self.clock()
    results = []
    for task in self.state.due_tasks(now):
      if self.is_busy(task.id):
        logger.warning("Skipping task %s: a previous execution is still in progress", task.id)
        continue
      results.append(self.execute_task(task.id, now=now))
    return results

  def is_busy(self, task_id: str) -> bool:
    """Whether a body for ``task_id`` is still executing in a worker thread."""
    with self._inflight_lock:
      future = self._inflight.get(task_id)
    return future is not None and not future.done()

  def seconds_until_next_due(self, now: Optional[datetime] = None) -> Optional[float]:
    now = now or self.clock()
    pending = [t.next_run for t in self.state.tasks if t.config.enabled and t.status is TaskStatus.ACTIVE]
    if not pending:
      return None
    return max(0.0, (min(pending) - now).total_seconds())

  def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
    """Ticks until ``stop_event`` is set, waking at most every poll interval."""
    stop_event = stop_event or threading.Event()
    interval = self.config.scheduler.poll_interval_seconds
    logger.info("Scheduler started with %d tasks (poll interval %.0fs)", len(self.state.tasks), interval)
    while not stop_event.is_set():
      self.tick()
      until_due = self.seconds_until_next_due()
      stop_event.wait(interval if until_due is None else min(interval, max(until_due, 1.0)))
    logger.info("Scheduler stopped")

  # ------------------------------------------------------------------
  # Task state
  # ------------------------------------------------------------------

  def _save(self) -> None:
    if self.task_store is not None:
      self.task_store.save(self.state.tasks)

  def enable_task(self, task_id: str, now: Optional[datetime] = None) -> ScheduledTask:
    task = self.state.get(task_id)
    status = TaskStatus.ACTIVE if task.status is TaskStatus.PAUSED else task.status
    updated = dataclasses.replace(
        task,
        config=dataclasses.replace(task.config, enabled=True),
        status=status,
        next_run=next_run_for(task, now or self.clock()),
    )
    self.state.put(updated)
    self._save()
    return updated

  def disable_task(self, task_id: str) -> ScheduledTask:
    """Stops future selection; an in-flight execution is left to finish."""
    task = self.state.get(task_id)
    status = task.status if task.status in (TaskStatus.RUNNING, TaskStatus.ERROR) else TaskStatus.PAUSED
    updated = dataclasses.replace(task, config=dataclasses.replace(task.config, enabled=False), status=status)
    self.state.put(updated)
    self._save()
    return updated

  def reset_task(self, task_id: str, now: Optional[datetime] = None) -> ScheduledTask:
    """Returns an errored task to ``active`` with a fresh ``next_run``.

    A task whose timed-out body is still executing stays in ``error``.
    """
    task = self.state.get(task_id)
    if task.status is not TaskStatus.ERROR:
      return task
    if self.is_busy(task_id):
      raise TaskAlreadyRunningError(f"Task {task_id} cannot be reset while a previous execution is still in progress.")
    status = TaskStatus.ACTIVE if task.config.enabled else TaskStatus.PAUSED
    updated = dataclasses.replace(task, status=status, next_run=next_run_for(task, now or self.clock()))
    self.state.put(updated)
    self._save()
    return updated

  # ------------------------------------------------------------------
  # Execution
  # ------------------------------------------------------------------

  def execute_task(self, task_id: str, now: Optional[datetime] = None) -> TaskExecutionResult:
    """Runs one task regardless of its schedule.

    An explicit ``now`` acts as the clock for the whole execution, which lets
    callers simulate time; otherwise the scheduler clock is read.
    """
    task = self.state.get(task_id)
    if task.status is TaskStatus.RUNNING or self.is_busy(task_id):
      raise TaskAlreadyRunningError(f"Task {task_id} is already running.")

    started = now or self.clock()
    self.state.put(dataclasses.replace(task, status=TaskStatus.RUNNING, last_run=started))
    self._save()
    logger.info("Executing task %s (%s)", task.id, task.type.value)

    try:
      result = self._run_with_timeout(task, started)
    except TaskExecutionFailure as failure:
      logger.error("%s", failure)
      result = TaskExecutionResult(
          task_id=task.id,
          execution_time=started,
          status=ExecutionStatus.FAILED,
          errors=(str(failure),),
      )

    finished = now or self.clock()
    current = self.state.get(task_id)
    if result.status is ExecutionStatus.FAILED:
      status = TaskStatus.ERROR
    elif current.config.enabled:
      status = TaskStatus.ACTIVE
    else:
      status = TaskStatus.PAUSED
    self.state.put(dataclasses.replace(current, status=status, next_run=next_run_for(current, finished)))
    self.state.record(result)
    self._save()
    if self.task_store is not None:
      self.task_store.append_history(result)
    logger.info(
        "Task %s finished with %s (%d processed, %d alerts, %d reports)",
        task.id,
        result.status.value,
        result.forecasts_processed,
        result.alerts_sent,
        result.reports_generated,
    )
    return result

  def _run_with_timeout(self, task: ScheduledTask, now: datetime) -> TaskExecutionResult:
    timeout = self.config.scheduler.task_timeout_seconds
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"task-{task.id}")
    try:
      future = executor.submit(self._run_body, task, now)
      with self._inflight_lock:
        self._inflight[task.id] = future
      return future.result(timeout=timeout if timeout and timeout > 0 else None)
    except FuturesTimeout:
      raise TaskExecutionFailure(task.id, f"timed out after {timeout:g}s") from None
    except TaskExecutionFailure:
      raise
    except Exception as exc:
      logger.exception("Task %s raised", task.id)
      raise TaskExecutionFailure(task.id, f"{type(exc).__name__}: {exc}") from exc
    finally:
      executor.shutdown(wait=False)

  def _run_body(self, task: ScheduledTask, now: datetime) -> TaskExecutionResult:
    body = self._bodies.get(task.type)
    if body is None:
      raise TaskExecutionFailure(task.id, f"unknown task type {task.type}")
    tally = _Tally()
    core_succeeded = body(now, tally)
    if not tally.errors:
      status = ExecutionStatus.SUCCESS
    elif core_succeeded:
      status = ExecutionStatus.PARTIAL
    else:
      status = ExecutionStatus.FAILED
    return TaskExecutionResult(
        task_id=task.id,
        execution_time=now,
        status=status,
        forecasts_processed=tally.processed,
        alerts_sent=tally.alerts,
        reports_generated=tally.reports,
        errors=tuple(tally.errors),
    )

  # ------------------------------------------------------------------
  # Task bodies; each returns whether its core computation succeeded
  # ------------------------------------------------------------------

  def _accuracy_update(self, now: datetime, tally: _Tally) -> bool:
    monitoring = self.config.monitoring
    outcomes = self.outcome_store.list()
    for forecast in self.forecast_store.list():
      if forecast.status is not ForecastStatus.ACTIVE:
        continue
      try:
        accuracy = windowed_accuracy(forecast, outcomes, monitoring.accuracy_window)
        if accuracy is None:
          continue
        changes = {"accuracy_score": accuracy, "updated_at": now}
        if _fully_observed(forecast, outcomes):
          changes["status"] = ForecastStatus.COMPLETED
        updated = self.forecast_store.update(forecast.id, **changes)
      except Exception as exc:
        logger.exception("Accuracy update failed for forecast %s", forecast.id)
        tally.errors.append(f"Error processing forecast {forecast.title}: {exc}")
        continue
      tally.processed += 1

      if accuracy < monitoring.alert_threshold:
        try:
          self.sink.send_alert(updated, accuracy)
          tally.alerts += 1
        except Exception as exc:
          logger.warning("Alert delivery failed for forecast %s: %s", forecast.id, exc)
          tally.errors.append(f"Alert delivery failed for {forecast.title}: {exc}")
    return tally.processed > 0 or not tally.errors

  def _deliver(self, payload: Dict, tally: _Tally) -> None:
    try:
      tally.reports += int(self.sink.send_report(payload, list(self.config.monitoring.report_recipients)))
    except Exception as exc:
      logger.warning("Report delivery failed for %s: %s", payload.get("kind"), exc)
      tally.errors.append(f"Report delivery failed: {exc}")

  def _report(self, builder: Callable[..., Dict], now: datetime, tally: _Tally, **kwargs) -> bool:
    forecasts = self.forecast_store.list()
    payload = builder(forecasts, self.outcome_store.list(), now, **kwargs)
    tally.processed = len(forecasts)
    self._deliver(payload, tally)
    return True

  def _daily_report(self, now: datetime, tally: _Tally) -> bool:
    return self._report(build_daily_report, now, tally, config=self.config.monitoring)

  def _weekly_summary(self, now: datetime, tally: _Tally) -> bool:
    return self._report(build_weekly_summary, now, tally, config=self.config.monitoring)

  def _model_evaluation(self, now: datetime, tally: _Tally) -> bool:
    return self._report(build_model_evaluation, now, tally)


def _fully_observed(forecast: Forecast, outcomes: Sequence) -> bool:
  observed = {o.outcome_date for o in outcomes if o.forecast_id == forecast.id}
  return bool(forecast.predicted_series.timestamps) and set(forecast.predicted_series.timestamps) <= observed
