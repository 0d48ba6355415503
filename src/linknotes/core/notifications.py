"""User-visible status messages."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Fire-and-forget receiver for user-facing messages."""

    def notify(self, message: str, level: str = "info") -> None:
        ...


class LoggingNotifier:
    """Default sink: writes notifications to the log."""

    _LEVELS = {
        "success": logging.INFO,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def notify(self, message: str, level: str = "info") -> None:
        logger.log(self._LEVELS.get(level, logging.INFO), f"[notify:{level}] {message}")
