# casereview/services/notifications.py
from __future__ import annotations

import logging
from typing import Protocol

from casereview.errors import ErrorSeverity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class NotificationSink(Protocol):
    """
    Receives user-visible failure reports. Rendering is the collaborator's job.
    """

    def notify(self, message: str, severity: ErrorSeverity) -> None:
        ...


class LoggingNotificationSink:
    """
    Default sink: writes notifications to the application log.
    """

    def notify(self, message: str, severity: ErrorSeverity) -> None:
        logger.log(_LOG_LEVELS.get(severity, logging.ERROR), "[notify:%s] %s", severity.value, message)
