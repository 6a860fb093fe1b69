"""Notification sinks."""

import logging
from collections.abc import Sequence
from typing import Protocol

from .models import NotificationEvent

# Get logger for this module
logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def send(self, events: Sequence[NotificationEvent]) -> None:
        ...


class LoggingNotificationSink:
    """Writes each event to the log; keeps a history for inspection."""

    def __init__(self, log_level: int = logging.INFO) -> None:
        self.log_level = log_level
        self.sent: list[NotificationEvent] = []

    async def send(self, events: Sequence[NotificationEvent]) -> None:
        for event in events:
            logger.log(self.log_level, f"{event.title}: {event.body}")
            self.sent.append(event)
