"""Notifications delivered as structured log entries."""

from __future__ import annotations

from bulwark.core.errors import Severity
from bulwark.core.logging import BulwarkLogger, get_logger
from bulwark.notifications.base import Notification

_LEVELS: dict[Severity, str] = {
    Severity.CRITICAL: "critical",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "info",
}


class LogNotifier:
    """Notifier that writes each notification to the structlog stream.

    The log level follows the notification severity, so a deployment
    without a UI still surfaces user-facing failures in its logs.
    """

    def __init__(
        self,
        min_severity: Severity = Severity.LOW,
        logger: BulwarkLogger | None = None,
    ) -> None:
        self._min_severity = min_severity
        self._logger = logger or get_logger("notifications.log")

    @property
    def min_severity(self) -> Severity:
        return self._min_severity

    async def send(self, notification: Notification) -> bool:
        log = getattr(self._logger, _LEVELS[notification.severity])
        log("notification.sent", **notification.to_dict())
        return True

    async def close(self) -> None:
        pass
