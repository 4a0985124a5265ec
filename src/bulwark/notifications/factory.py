"""Factory for creating notifiers from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bulwark.core.logging import get_logger

if TYPE_CHECKING:
    from bulwark.core.config import NotificationConfig
    from bulwark.notifications.base import Notifier

_logger = get_logger("notifications.factory")


def create_notifiers(
    notification_configs: list[NotificationConfig],
) -> list[Notifier]:
    """Create Notifier instances from notification configuration.

    Args:
        notification_configs: List of NotificationConfig entries.

    Returns:
        List of configured Notifier instances.
    """
    from bulwark.notifications.console import ConsoleNotifier
    from bulwark.notifications.log import LogNotifier

    notifiers: list[Notifier] = []

    for config in notification_configs:
        if config.type == "console":
            notifiers.append(ConsoleNotifier(min_severity=config.min_severity))
        elif config.type == "log":
            notifiers.append(LogNotifier(min_severity=config.min_severity))
        else:
            _logger.warning("notifications.unknown_type", type=config.type)

    return notifiers


__all__ = ["create_notifiers"]
