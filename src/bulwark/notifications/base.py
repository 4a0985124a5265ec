"""Notification framework base types and protocols.

Provides the user-facing side channel of the resilience layer:
- Notification: what a UI toast (or any other sink) should display
- Notifier protocol for notification backends
- NotificationManager for fanning a ClassifiedError out to notifiers

The resilience core only ever talks to NotificationManager; concrete
presentation lives in the notifier implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from bulwark.core.errors import ClassifiedError, Severity
from bulwark.core.logging import get_logger

_logger = get_logger("notifications")

SIGN_IN_ACTION = "Sign In"

_TITLES: dict[Severity, str] = {
    Severity.CRITICAL: "System Error",
    Severity.HIGH: "Important Error",
    Severity.MEDIUM: "Error",
    Severity.LOW: "Notice",
}

# Seconds a notification stays visible
_DURATIONS: dict[Severity, float] = {
    Severity.CRITICAL: 10.0,
    Severity.HIGH: 7.0,
    Severity.MEDIUM: 5.0,
    Severity.LOW: 3.0,
}


def title_for(severity: Severity) -> str:
    """Notification title for a severity."""
    return _TITLES[severity]


def duration_for(severity: Severity) -> float:
    """Display duration in seconds for a severity."""
    return _DURATIONS[severity]


@dataclass(frozen=True)
class Notification:
    """A user-facing notification derived from a ClassifiedError."""

    title: str
    message: str
    severity: Severity
    duration: float
    action_label: str | None = None
    """Label of the actionable affordance (e.g. "Sign In"), if any."""

    error_key: str | None = None
    """``component.action`` key of the failure this notification reports."""

    @classmethod
    def from_error(cls, error: ClassifiedError) -> Notification:
        """Build the notification for a classified failure.

        Title and duration scale with severity; ``requires_auth`` adds a
        sign-in action.
        """
        return cls(
            title=title_for(error.severity),
            message=error.user_message,
            severity=error.severity,
            duration=duration_for(error.severity),
            action_label=SIGN_IN_ACTION if error.requires_auth else None,
            error_key=error.key,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "duration": self.duration,
            "action_label": self.action_label,
            "error_key": self.error_key,
        }


@runtime_checkable
class Notifier(Protocol):
    """Protocol for notification backends.

    Implementations deliver notifications through a specific channel
    (terminal, log stream, a UI toast bridge, ...). Each notifier only
    receives notifications at or above its ``min_severity``.
    """

    @property
    def min_severity(self) -> Severity:
        """Lowest severity this notifier wants to receive."""
        ...

    async def send(self, notification: Notification) -> bool:
        """Deliver a notification.

        Returns:
            True if the notification was delivered, False otherwise.
            Failures should be logged but not raise exceptions.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the notifier."""
        ...


class NotificationManager:
    """Coordinates multiple notifiers for failure notifications.

    Routes each notification to every notifier whose ``min_severity`` it
    meets. A failing notifier is logged and skipped; it never interrupts the
    operation that produced the failure.

    Example usage:
        manager = NotificationManager([
            ConsoleNotifier(min_severity=Severity.MEDIUM),
            LogNotifier(),
        ])

        await manager.notify(classified_error)
    """

    def __init__(self, notifiers: list[Notifier] | None = None) -> None:
        self._notifiers: list[Notifier] = notifiers or []

    def add_notifier(self, notifier: Notifier) -> None:
        self._notifiers.append(notifier)

    def remove_notifier(self, notifier: Notifier) -> None:
        """Remove a notifier.

        Raises:
            ValueError: If notifier is not registered.
        """
        self._notifiers.remove(notifier)

    @property
    def notifier_count(self) -> int:
        """Number of registered notifiers."""
        return len(self._notifiers)

    async def notify(self, error: ClassifiedError) -> dict[str, bool]:
        """Notify about a classified failure.

        Returns:
            Dict mapping notifier name to success status, only for
            notifiers the notification was routed to. The name is the
            class name; repeated classes get ``#2``, ``#3``... in
            registration order.
        """
        return await self.send(Notification.from_error(error))

    async def send(self, notification: Notification) -> dict[str, bool]:
        """Deliver a prepared notification to all matching notifiers."""
        results: dict[str, bool] = {}

        for notifier_name, notifier in self._named_notifiers():
            if not notification.severity.at_least(notifier.min_severity):
                continue
            try:
                results[notifier_name] = await notifier.send(notification)
            except Exception as e:
                # Notifications must never break the operation being reported
                _logger.warning(
                    "notifications.notifier_failed",
                    notifier=notifier_name,
                    error=str(e),
                )
                results[notifier_name] = False

        return results

    def _named_notifiers(self) -> list[tuple[str, Notifier]]:
        seen: dict[str, int] = {}
        named: list[tuple[str, Notifier]] = []
        for notifier in self._notifiers:
            name = type(notifier).__name__
            seen[name] = seen.get(name, 0) + 1
            if seen[name] > 1:
                name = f"{name}#{seen[name]}"
            named.append((name, notifier))
        return named

    async def close(self) -> None:
        """Close all registered notifiers, ignoring individual errors."""
        for notifier in self._notifiers:
            try:
                await notifier.close()
            except Exception as e:
                _logger.warning(
                    "notifications.close_failed",
                    notifier=type(notifier).__name__,
                    error=str(e),
                )
