"""Pytest fixtures for Bulwark tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from bulwark.core.errors import ErrorContext
from bulwark.execution.scheduler import ManualScheduler
from bulwark.notifications import MockNotifier, NotificationManager
from bulwark.state.registry import ErrorRegistry, LoadingRegistry


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test."""
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def error_registry() -> ErrorRegistry:
    return ErrorRegistry()


@pytest.fixture
def loading_registry() -> LoadingRegistry:
    return LoadingRegistry()


@pytest.fixture
def mock_notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def notification_manager(mock_notifier: MockNotifier) -> NotificationManager:
    return NotificationManager([mock_notifier])


@pytest.fixture
def context() -> ErrorContext:
    return ErrorContext(component="cv", action="analyze")
