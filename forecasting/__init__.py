"""Forecast computation and monitoring engine."""

from .base import (
    Forecast,
    ForecastStatus,
    ModelDescriptor,
    ModelFamily,
    Outcome,
    PendingOutcome,
    ScheduledTask,
    Series,
    Step,
    TaskConfig,
    TaskExecutionResult,
    infer_step,
    parse_step,
)
from .config import DEFAULT_CONFIG, EngineConfig, load_config
from .errors import (
    DateNotPredictedError,
    DivisionByZeroError,
    DuplicateOutcomeError,
    ForecastingError,
    InsufficientDataError,
    TaskAlreadyRunningError,
    TaskExecutionFailure,
    UnknownForecastError,
    UnknownModelError,
    UnknownTaskError,
)
from .generator import MidpointNoise, RandomNoise, create_forecast, generate
from .outcomes import OutcomeCorrelator, find_pending_outcomes, point_accuracy, summarize_outcomes
from .registry import DEFAULT_MODELS, ModelRegistry, default_registry
from .scheduler import Scheduler, SchedulerState, compute_next_run, default_tasks
from .scoring import is_recommended, rank_models, score
from .stats import SeriesStatistics, compute_stats

__all__ = [
    "Series",
    "Step",
    "infer_step",
    "parse_step",
    "ModelDescriptor",
    "ModelFamily",
    "Forecast",
    "ForecastStatus",
    "Outcome",
    "PendingOutcome",
    "ScheduledTask",
    "TaskConfig",
    "TaskExecutionResult",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "ForecastingError",
    "InsufficientDataError",
    "UnknownModelError",
    "UnknownForecastError",
    "DuplicateOutcomeError",
    "DateNotPredictedError",
    "DivisionByZeroError",
    "UnknownTaskError",
    "TaskAlreadyRunningError",
    "TaskExecutionFailure",
    "ModelRegistry",
    "DEFAULT_MODELS",
    "default_registry",
    "SeriesStatistics",
    "compute_stats",
    "score",
    "is_recommended",
    "rank_models",
    "generate",
    "create_forecast",
    "RandomNoise",
    "MidpointNoise",
    "OutcomeCorrelator",
    "find_pending_outcomes",
    "point_accuracy",
    "summarize_outcomes",
    "Scheduler",
    "SchedulerState",
    "compute_next_run",
    "default_tasks",
]
