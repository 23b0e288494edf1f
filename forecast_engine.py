"""Command-line entry point for the forecast computation and monitoring engine."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import pandas as pd

from forecasting import (
    ForecastingError,
    OutcomeCorrelator,
    RandomNoise,
    Scheduler,
    SchedulerState,
    Series,
    create_forecast,
    default_registry,
    find_pending_outcomes,
    load_config,
    rank_models,
    summarize_outcomes,
)
from forecasting.base import to_datetime
from forecasting.notifications import LoggingNotificationSink
from forecasting.stores import open_json_stores


def load_series(path: str) -> Series:
  """Reads a series from JSON records or a CSV with ``date`` and ``value`` columns."""
  source = Path(path).expanduser()
  if not source.is_file():
    raise SystemExit(f"Series file not found: {source}")
  if source.suffix.lower() == ".csv":
    frame = pd.read_csv(source)
    missing = {"date", "value"} - set(frame.columns)
    if missing:
      raise SystemExit(f"CSV series is missing columns: {', '.join(sorted(missing))}")
    frame = frame.sort_values("date")
    return Series.from_pairs(zip(frame["date"].astype(str), frame["value"].astype(float)))
  with open(source, "r", encoding="utf-8") as fh:
    payload = json.load(fh)
  if isinstance(payload, dict):
    payload = payload.get("data_points") or payload.get("series") or []
  return Series.from_records(payload)


def _emit(payload: Any) -> None:
  print(json.dumps(payload, indent=2, default=str))


def _parse_now(raw: Optional[str]) -> Optional[datetime]:
  return to_datetime(raw) if raw else None


def _cmd_models(args, config) -> int:
  registry = default_registry()
  models = registry.by_category(args.category) if args.category else registry.list_models()
  _emit([m.to_dict() for m in models])
  return 0


def _cmd_score(args, config) -> int:
  series = load_series(args.series)
  ranked = rank_models(default_registry().list_models(), series, args.type, config=config.scoring)
  _emit([{"model_id": r.model.id, "model": r.model.name, "score": r.score, "recommended": r.recommended} for r in ranked])
  return 0


def _cmd_generate(args, config) -> int:
  series = load_series(args.series)
  forecast = create_forecast(
      series,
      args.model,
      args.horizon,
      title=args.title or Path(args.series).stem,
      forecast_type=args.type or "custom",
      registry=default_registry(),
      noise=RandomNoise(args.seed),
      step=args.step,
      config=config.generator,
  )
  if args.save:
    forecast_store, _, _ = open_json_stores(args.data_dir)
    forecast_store.create(forecast)
    print(f"Saved forecast {forecast.id}", file=sys.stderr)
  _emit(forecast.to_dict())
  return 0


def _correlator(args, config) -> OutcomeCorrelator:
  forecast_store, outcome_store, _ = open_json_stores(args.data_dir)
  return OutcomeCorrelator(forecast_store, outcome_store, window=config.monitoring.accuracy_window)


def _cmd_record_outcome(args, config) -> int:
  outcome = _correlator(args, config).record_outcome(args.forecast_id, args.date, args.value)
  _emit(outcome.to_dict())
  return 0


def _cmd_accuracy(args, config) -> int:
  correlator = _correlator(args, config)
  forecast = correlator.forecast_store.get(args.forecast_id)
  summary = summarize_outcomes(correlator.outcomes_for(forecast.id), len(forecast.predicted_series))
  _emit({
      "forecast_id": forecast.id,
      "accuracy": correlator.compute_accuracy(forecast.id),
      "summary": None if summary is None else dataclasses.asdict(summary),
  })
  return 0


def _cmd_pending(args, config) -> int:
  forecast_store, outcome_store, _ = open_json_stores(args.data_dir)
  pending = find_pending_outcomes(
      forecast_store.list(),
      outcome_store.list(),
      _parse_now(args.as_of) or datetime.now(),
      limit=args.limit,
      config=config.monitoring,
  )
  _emit([p.to_dict() for p in pending])
  return 0


def _scheduler(args, config) -> Scheduler:
  forecast_store, outcome_store, task_store = open_json_stores(args.data_dir, history_limit=config.scheduler.history_limit)
  state = SchedulerState.from_store(task_store, history_limit=config.scheduler.history_limit)
  return Scheduler(
      state,
      forecast_store=forecast_store,
      outcome_store=outcome_store,
      task_store=task_store,
      sink=LoggingNotificationSink(threshold=config.monitoring.alert_threshold),
      config=config,
  )


def _cmd_tasks(args, config) -> int:
  scheduler = _scheduler(args, config)
  if args.enable:
    scheduler.enable_task(args.enable)
  if args.disable:
    scheduler.disable_task(args.disable)
  if args.reset:
    scheduler.reset_task(args.reset)
  if args.run:
    scheduler.execute_task(args.run)
  _emit({
      "tasks": [t.to_dict() for t in scheduler.state.tasks],
      "history": [r.to_dict() for r in scheduler.state.history[: args.history]],
  })
  return 0


def _cmd_tick(args, config) -> int:
  results = _scheduler(args, config).tick(_parse_now(args.now))
  _emit([r.to_dict() for r in results])
  return 0


def _cmd_run_scheduler(args, config) -> int:
  scheduler = _scheduler(args, config)
  try:
    scheduler.run_forever()
  except KeyboardInterrupt:
    print("Scheduler interrupted.", file=sys.stderr)
  return 0


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(description="Forecast generation, outcome tracking and scheduled monitoring.")
  parser.add_argument("--data-dir", default="data", help="Directory holding the JSON stores (default: data).")
  parser.add_argument("--config", help="Optional JSON file overriding engine thresholds.")
  parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
  sub = parser.add_subparsers(dest="command", required=True)

  models = sub.add_parser("models", help="List the model catalog.")
  models.add_argument("--category", choices=["statistical", "machine_learning", "ai_powered"])
  models.set_defaults(handler=_cmd_models)

  score = sub.add_parser("score", help="Rank models by compatibility with a series.")
  score.add_argument("series", help="Path to a JSON or CSV series file.")
  score.add_argument("--type", help="Series type, e.g. sales or revenue.")
  score.set_defaults(handler=_cmd_score)

  generate = sub.add_parser("generate", help="Generate a forecast for a series.")
  generate.add_argument("series", help="Path to a JSON or CSV series file.")
  generate.add_argument("--model", required=True, help="Model id from the catalog.")
  generate.add_argument("--horizon", type=int, default=6, help="Number of periods to forecast (default: 6).")
  generate.add_argument("--step", metavar="N[unit]", help="Override the inferred step, e.g. 1month, 7days, 2weeks.")
  generate.add_argument("--seed", type=int, help="Seed for the noise generator.")
  generate.add_argument("--title", help="Forecast title (default: series file name).")
  generate.add_argument("--type", help="Forecast type, e.g. sales or revenue.")
  generate.add_argument("--save", action="store_true", help="Persist the forecast to the data directory.")
  generate.set_defaults(handler=_cmd_generate)

  record = sub.add_parser("record-outcome", help="Record the actual value for a predicted date.")
  record.add_argument("forecast_id")
  record.add_argument("date")
  record.add_argument("value", type=float)
  record.set_defaults(handler=_cmd_record_outcome)

  accuracy = sub.add_parser("accuracy", help="Show windowed accuracy and outcome summary for a forecast.")
  accuracy.add_argument("forecast_id")
  accuracy.set_defaults(handler=_cmd_accuracy)

  pending = sub.add_parser("pending", help="List predicted dates still waiting for an outcome.")
  pending.add_argument("--as-of", help="Reference date (default: now).")
  pending.add_argument("--limit", type=int, help="Only show the first N entries.")
  pending.set_defaults(handler=_cmd_pending)

  tasks = sub.add_parser("tasks", help="Inspect or change scheduled tasks.")
  tasks.add_argument("--enable", metavar="TASK_ID")
  tasks.add_argument("--disable", metavar="TASK_ID")
  tasks.add_argument("--reset", metavar="TASK_ID", help="Return an errored task to active.")
  tasks.add_argument("--run", metavar="TASK_ID", help="Execute a task immediately.")
  tasks.add_argument("--history", type=int, default=10, help="History entries to show (default: 10).")
  tasks.set_defaults(handler=_cmd_tasks)

  tick = sub.add_parser("tick", help="Run one scheduler tick.")
  tick.add_argument("--now", help="Override the current time (ISO-8601).")
  tick.set_defaults(handler=_cmd_tick)

  run = sub.add_parser("run-scheduler", help="Run the scheduler loop until interrupted.")
  run.set_defaults(handler=_cmd_run_scheduler)
  return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
  args = build_parser().parse_args(argv)
  logging.basicConfig(
      level=getattr(logging, str(args.log_level).upper(), logging.INFO),
      format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )
  try:
    config = load_config(args.config)
    return args.handler(args, config)
  except ForecastingError as exc:
    print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
    return 2
  except ValueError as exc:
    print(f"Invalid input: {exc}", file=sys.stderr)
    return 2


if __name__ == "__main__":
  raise SystemExit(main())
