"""In-memory notifier for tests."""

from __future__ import annotations

from bulwark.core.errors import Severity
from bulwark.notifications.base import Notification


class MockNotifier:
    """Mock notifier for testing.

    Records all notifications sent without displaying them. Useful for
    asserting how many notifications a failure produced.
    """

    def __init__(self, min_severity: Severity = Severity.LOW) -> None:
        self._min_severity = min_severity
        self.sent_notifications: list[Notification] = []
        self._fail_next = False
        self._raise_next = False
        self.closed = False

    @property
    def min_severity(self) -> Severity:
        return self._min_severity

    def set_fail_next(self, should_fail: bool = True) -> None:
        """Configure the next send() call to return False."""
        self._fail_next = should_fail

    def set_raise_next(self, should_raise: bool = True) -> None:
        """Configure the next send() call to raise RuntimeError."""
        self._raise_next = should_raise

    async def send(self, notification: Notification) -> bool:
        """Record notification without displaying.

        Returns:
            True unless set_fail_next was called.
        """
        if self._raise_next:
            self._raise_next = False
            raise RuntimeError("mock notifier failure")
        if self._fail_next:
            self._fail_next = False
            return False

        self.sent_notifications.append(notification)
        return True

    async def close(self) -> None:
        self.closed = True

    def get_notification_count(self) -> int:
        """Get number of recorded notifications."""
        return len(self.sent_notifications)

    def get_notifications_for_severity(self, severity: Severity) -> list[Notification]:
        """Get recorded notifications of one severity."""
        return [n for n in self.sent_notifications if n.severity == severity]
