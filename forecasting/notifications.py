"""Notification sink contract used by scheduled tasks."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, Sequence

from .base import Forecast


class NotificationSink(Protocol):
  def send_alert(self, forecast: Forecast, accuracy: float) -> None:
    ...

  def send_report(self, payload: Mapping[str, Any], recipients: Sequence[str]) -> int:
    """Delivers a report and returns how many recipients received it."""
    ...


class LoggingNotificationSink:
  """Writes alerts and reports to a logger instead of delivering them."""

  def __init__(self, logger: logging.Logger = logging.getLogger("forecasting.notifications"), threshold: float = 75.0):
    self.logger = logger
    self.threshold = threshold

  def send_alert(self, forecast: Forecast, accuracy: float) -> None:
    self.logger.warning(
        "Forecast accuracy alert: '%s' (%s) at %.1f%% is below the %.0f%% threshold",
        forecast.title,
        forecast.model_name,
        accuracy,
        self.threshold,
    )

  def send_report(self, payload: Mapping[str, Any], recipients: Sequence[str]) -> int:
    targets = list(recipients) or ["<log>"]
    for recipient in targets:
      self.logger.info("Report '%s' for %s: %s", payload.get("kind", "report"), recipient, dict(payload))
    return len(targets)
