"""Terminal notifications rendered with rich.

Stands in for a UI toast layer when Bulwark runs in a terminal: each
notification is printed as a panel colored by severity.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from bulwark.core.errors import Severity
from bulwark.core.logging import get_logger
from bulwark.notifications.base import Notification

_logger = get_logger("notifications.console")

_STYLES: dict[Severity, str] = {
    Severity.CRITICAL: "bold white on red",
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
}


class ConsoleNotifier:
    """Notifier that prints notifications to a rich Console.

    Example usage:
        notifier = ConsoleNotifier(min_severity=Severity.MEDIUM)
        await notifier.send(notification)
    """

    def __init__(
        self,
        min_severity: Severity = Severity.LOW,
        console: Console | None = None,
    ) -> None:
        self._min_severity = min_severity
        self.console = console or Console(stderr=True)

    @property
    def min_severity(self) -> Severity:
        return self._min_severity

    async def send(self, notification: Notification) -> bool:
        """Print the notification as a panel.

        Returns:
            True if printed, False if rendering failed.
        """
        style = _STYLES[notification.severity]
        body = Text(notification.message)
        if notification.action_label:
            body.append(f"\n\n[{notification.action_label}]", style="bold underline")

        try:
            self.console.print(
                Panel(
                    body,
                    title=notification.title,
                    title_align="left",
                    border_style=style,
                    subtitle=f"{notification.severity.value} · {notification.duration:g}s",
                    subtitle_align="right",
                )
            )
        except Exception as e:
            _logger.warning("notifications.console_failed", error=str(e))
            return False
        return True

    async def close(self) -> None:
        """Console notifier holds no resources."""
        pass
