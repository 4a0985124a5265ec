"""User-facing failure notifications.

Provides:
- Notification / Notifier / NotificationManager: the notification framework
- ConsoleNotifier: rich terminal panels
- LogNotifier: structured log entries
- MockNotifier: in-memory recording for tests
- create_notifiers: build notifiers from configuration
"""

from bulwark.notifications.base import (
    SIGN_IN_ACTION,
    Notification,
    NotificationManager,
    Notifier,
    duration_for,
    title_for,
)
from bulwark.notifications.console import ConsoleNotifier
from bulwark.notifications.factory import create_notifiers
from bulwark.notifications.log import LogNotifier
from bulwark.notifications.mock import MockNotifier

__all__ = [
    "SIGN_IN_ACTION",
    "ConsoleNotifier",
    "LogNotifier",
    "MockNotifier",
    "Notification",
    "NotificationManager",
    "Notifier",
    "create_notifiers",
    "duration_for",
    "title_for",
]
