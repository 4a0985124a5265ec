"""Process-wide keyed state shared by the resilience layer and the UI.

Two registries live here:

- ErrorRegistry: failure counts per ``"component.action"`` key plus a
  bounded log of recent ClassifiedErrors for diagnostics.
- LoadingRegistry: which keys are currently loading, with an optional
  message and progress, readable by UI code through a snapshot API.

Both are explicitly constructed instances (no module singletons) and guard
their maps with a lock, so they stay correct if callers use threads.
"""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, TypeVar

from bulwark.core.constants import DEFAULT_RECENT_ERRORS_LIMIT, MAX_RECENT_ERRORS
from bulwark.core.errors import ClassifiedError, ErrorContext, ErrorType
from bulwark.core.logging import get_logger
from bulwark.utils.time import utc_now

_logger = get_logger("registry")

T = TypeVar("T")

LoadingListener = Callable[[], None]


class LoadingKeys:
    """Well-known loading keys used across the application."""

    AUTH_LOGIN = "auth.login"
    AUTH_SIGNUP = "auth.signup"
    AUTH_LOGOUT = "auth.logout"

    ONBOARDING_SAVE = "onboarding.save"
    ONBOARDING_COMPLETE = "onboarding.complete"
    ONBOARDING_LOAD = "onboarding.load"

    CV_UPLOAD = "cv.upload"
    CV_ANALYZE = "cv.analyze"
    CV_PROCESS = "cv.process"

    DASHBOARD_LOAD = "dashboard.load"
    DASHBOARD_REFRESH = "dashboard.refresh"

    UNIVERSITY_MATCH = "university.match"
    UNIVERSITY_SEARCH = "university.search"
    UNIVERSITY_SAVE = "university.save"

    PROFILE_UPDATE = "profile.update"
    PROFILE_LOAD = "profile.load"

    SESSION_REFRESH = "session.refresh"
    SESSION_INIT = "session.init"


# =============================================================================
# Error registry
# =============================================================================


class ErrorRegistry:
    """Failure counts per context key plus a ring buffer of recent errors.

    Counts increase by one per failed attempt and are cleared explicitly:
    by the retry engine on success, or by callers through ``clear()``.
    """

    def __init__(self, max_recent: int = MAX_RECENT_ERRORS) -> None:
        self._counts: dict[str, int] = {}
        self._recent: deque[ClassifiedError] = deque(maxlen=max_recent)
        self._lock = Lock()

    def record(self, error: ClassifiedError) -> int:
        """Record a failure and return the new count for its key."""
        with self._lock:
            count = self._counts.get(error.key, 0) + 1
            self._counts[error.key] = count
            self._recent.appendleft(error)
        return count

    def count(self, context: ErrorContext | str) -> int:
        """Current failure count for a context or ``"component.action"`` key."""
        key = context if isinstance(context, str) else context.key
        with self._lock:
            return self._counts.get(key, 0)

    def clear(self, component: str | None = None, action: str | None = None) -> None:
        """Reset failure counts.

        Args:
            component: Limit the reset to this component. Without ``action``
                every key of the component is cleared.
            action: Together with ``component``, clear exactly one key.

        Raises:
            ValueError: If ``action`` is given without ``component``.
        """
        if action is not None and component is None:
            raise ValueError("clearing by action requires a component")
        with self._lock:
            if component is not None and action is not None:
                self._counts.pop(f"{component}.{action}", None)
            elif component is not None:
                prefix = f"{component}."
                for key in [k for k in self._counts if k.startswith(prefix)]:
                    del self._counts[key]
            else:
                self._counts.clear()

    def clear_context(self, context: ErrorContext) -> None:
        """Reset the failure count of a single context."""
        self.clear(context.component, context.action)

    def get_error_stats(self) -> dict[str, int]:
        """Copy of the failure counts keyed by ``"component.action"``."""
        with self._lock:
            return dict(self._counts)

    def get_type_stats(self) -> dict[ErrorType, int]:
        """Number of recent errors per ErrorType (every type present)."""
        with self._lock:
            counter = Counter(e.type for e in self._recent)
        return {error_type: counter.get(error_type, 0) for error_type in ErrorType}

    def get_recent_errors(self, limit: int = DEFAULT_RECENT_ERRORS_LIMIT) -> list[ClassifiedError]:
        """Most recent errors first."""
        with self._lock:
            return list(self._recent)[:limit]

    def clear_recent(self) -> None:
        """Drop the recent-error log (counts are kept)."""
        with self._lock:
            self._recent.clear()


# =============================================================================
# Loading registry
# =============================================================================


@dataclass(frozen=True)
class LoadingEntry:
    """Snapshot of one loading key.

    ``is_loading`` is False (and the rest unset) for keys that are not active.
    """

    key: str
    is_loading: bool
    message: str | None = None
    progress: float | None = None
    start_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "is_loading": self.is_loading,
            "message": self.message,
            "progress": self.progress,
            "start_time": self.start_time.isoformat() if self.start_time else None,
        }


class LoadingRegistry:
    """Active loading keys, read by UI components.

    Starting a key that is already loading overwrites its entry; there is
    never more than one entry per key.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LoadingEntry] = {}
        self._listeners: dict[int, LoadingListener] = {}
        self._next_listener_id = 0
        self._lock = Lock()

    def start_loading(
        self,
        key: str,
        message: str | None = None,
        progress: float | None = None,
    ) -> None:
        """Mark ``key`` as loading, replacing any existing entry."""
        entry = LoadingEntry(
            key=key,
            is_loading=True,
            message=message,
            progress=progress,
            start_time=utc_now(),
        )
        with self._lock:
            self._entries[key] = entry
        _logger.debug("loading.started", key=key, message=message)
        self._notify_listeners()

    def stop_loading(self, key: str) -> None:
        """Remove ``key``; stopping an inactive key is a no-op."""
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            elapsed = (utc_now() - removed.start_time).total_seconds() if removed.start_time else None
            _logger.debug("loading.stopped", key=key, elapsed_seconds=elapsed)
        self._notify_listeners()

    def update_progress(self, key: str, progress: float, message: str | None = None) -> bool:
        """Update progress of an active key, keeping its start time.

        Returns:
            False if ``key`` is not loading (nothing changed).
        """
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return False
            self._entries[key] = LoadingEntry(
                key=key,
                is_loading=True,
                message=message if message is not None else current.message,
                progress=progress,
                start_time=current.start_time,
            )
        self._notify_listeners()
        return True

    def get_loading_state(self, key: str) -> LoadingEntry:
        with self._lock:
            entry = self._entries.get(key)
        return entry if entry is not None else LoadingEntry(key=key, is_loading=False)

    def is_loading(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def is_any_loading(self) -> bool:
        with self._lock:
            return bool(self._entries)

    def get_active_keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()
        _logger.debug("loading.cleared")
        self._notify_listeners()

    def subscribe(self, listener: LoadingListener) -> Callable[[], None]:
        """Register a listener called after every change.

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def _notify_listeners(self) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                # A broken UI listener must not break the operation that loads
                _logger.warning("loading.listener_failed", error=str(e))

    @asynccontextmanager
    async def loading(self, key: str, message: str | None = None) -> AsyncIterator[None]:
        """Keep ``key`` loading for the duration of an ``async with`` block."""
        self.start_loading(key, message)
        try:
            yield
        finally:
            self.stop_loading(key)

    def with_loading(
        self,
        key: str,
        operation: Callable[..., Awaitable[T]],
        message: str | None = None,
    ) -> Callable[..., Awaitable[T]]:
        """Wrap an async callable so every call marks ``key`` as loading."""

        async def wrapper(*args: Any, **kwargs: Any) -> T:
            async with self.loading(key, message):
                return await operation(*args, **kwargs)

        return wrapper

    async def with_batch_loading(
        self,
        key: str,
        operations: Sequence[Callable[[], Awaitable[T]]],
        message: str = "Processing...",
    ) -> list[T]:
        """Run operations in order under one loading key.

        Progress is updated before each operation to ``(i + 1) / total``.
        """
        results: list[T] = []
        total = len(operations)
        async with self.loading(key, message):
            for i, operation in enumerate(operations):
                progress = round((i + 1) / total * 100)
                self.update_progress(key, progress, f"{message} ({i + 1}/{total})")
                results.append(await operation())
        return results
