"""Staged progress sessions with an overall timeout.

A ProgressSession walks through a list of timed stages (e.g. 25% ->
50% -> 75% -> 90%) while the real work happens elsewhere, and ends in
exactly one terminal outcome:

- success: ``complete()`` was called
- error: ``error(err)`` was called
- timeout: the overall timeout fired first

Three timers drive a session, all on a Scheduler:
- stage timer: advances to the next stage after the current stage's
  duration; the last stage has none, so the session sits at its progress
  until a terminal call
- timeout timer: started once by ``start()``; wins regardless of the stage
- poll timer: re-emits the current snapshot every ``poll_interval``

ProgressOrchestrator owns one session per key, mirrors progress into the
LoadingRegistry and fans snapshots out to subscribers.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bulwark.core.config.progress import (
    DEFAULT_PRESET,
    STAGE_PRESETS,
    ProgressConfig,
    StageConfig,
)
from bulwark.core.constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROGRESS_TIMEOUT_SECONDS,
    PROGRESS_COMPLETE_MESSAGE,
    PROGRESS_COMPLETE_PERCENT,
    PROGRESS_ERROR_MESSAGE,
    PROGRESS_TIMEOUT_MESSAGE,
)
from bulwark.core.errors import ClassifiedError, ErrorClassifier, ErrorContext
from bulwark.core.logging import get_logger
from bulwark.execution.scheduler import CancelHandle, Scheduler
from bulwark.state.registry import LoadingRegistry

_logger = get_logger("progress")


class ProgressStatus(str, Enum):
    """Lifecycle state of a progress session."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({ProgressStatus.SUCCESS, ProgressStatus.ERROR, ProgressStatus.TIMEOUT})


# =============================================================================
# Stage presets
# =============================================================================


def get_preset(name: str) -> tuple[StageConfig, ...]:
    """Stages of a named preset.

    Raises:
        ValueError: If no preset has that name.
    """
    try:
        return STAGE_PRESETS[name]
    except KeyError:
        available = ", ".join(sorted(STAGE_PRESETS))
        raise ValueError(f"Unknown progress preset '{name}' (available: {available})") from None


def resolve_stages(config: ProgressConfig) -> tuple[StageConfig, ...]:
    """Explicit stages from ``config``, or its preset's stages when none are given."""
    if config.stages:
        return tuple(config.stages)
    return get_preset(config.preset)


# =============================================================================
# Snapshots
# =============================================================================


@dataclass(frozen=True)
class ProgressSnapshot:
    """What subscribers see of a session at one point in time."""

    key: str
    status: ProgressStatus
    stage: str | None
    stage_index: int
    progress: float
    message: str
    elapsed: float
    can_retry: bool = False
    is_offline: bool = False
    error: ClassifiedError | None = None

    @property
    def terminal(self) -> bool:
        return self.status.terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "status": self.status.value,
            "stage": self.stage,
            "stage_index": self.stage_index,
            "progress": self.progress,
            "message": self.message,
            "elapsed": round(self.elapsed, 3),
            "can_retry": self.can_retry,
            "is_offline": self.is_offline,
            "error": self.error.to_dict() if self.error else None,
        }


SnapshotCallback = Callable[[ProgressSnapshot], None]
LifecycleHook = Callable[["ProgressSession"], None]


# =============================================================================
# Session
# =============================================================================


class ProgressSession:
    """A single staged progress timeline.

    Terminal calls (``complete``, ``error``) and ``set_stage`` return False
    when they had no effect: before ``start()``, after ``stop()``, or once a
    terminal outcome has been reached.
    """

    def __init__(
        self,
        key: str,
        scheduler: Scheduler,
        stages: Sequence[StageConfig] | None = None,
        timeout: float = DEFAULT_PROGRESS_TIMEOUT_SECONDS,
        poll_interval: float | None = DEFAULT_POLL_INTERVAL_SECONDS,
        classifier: ErrorClassifier | None = None,
        on_start: LifecycleHook | None = None,
        on_stop: LifecycleHook | None = None,
    ) -> None:
        """Initialize a session (call ``start()`` to run it).

        Args:
            key: Identifier of the session (e.g. a LoadingKeys value).
            scheduler: Timer source.
            stages: Ordered stages; defaults to the onboarding preset.
            timeout: Overall timeout in seconds.
            poll_interval: Snapshot re-emission interval; None disables it.
            classifier: Classifier used by ``error()``.
            on_start: Called on every start or restart, before the first
                snapshot of the new run is emitted.
            on_stop: Called when ``stop()`` ends an active run.

        Raises:
            ValueError: If stages is empty or timeout is not positive.
        """
        resolved = tuple(stages) if stages is not None else get_preset(DEFAULT_PRESET)
        if not resolved:
            raise ValueError("a progress session needs at least one stage")
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.key = key
        self.stages = resolved
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._scheduler = scheduler
        self._classifier = classifier or ErrorClassifier()
        self._on_start = on_start
        self._on_stop = on_stop

        self._status = ProgressStatus.IDLE
        self._stage_index = 0
        self._progress = 0.0
        self._message = ""
        self._can_retry = False
        self._error: ClassifiedError | None = None
        self._start_time: float | None = None
        self._end_time: float | None = None

        self._stage_handle: CancelHandle | None = None
        self._timeout_handle: CancelHandle | None = None
        self._poll_handle: CancelHandle | None = None

        self._subscribers: dict[int, SnapshotCallback] = {}
        self._subscriber_ids = itertools.count()

    # -------------------------------------------------------------------------
    # Read API
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ProgressStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        """Started, not stopped and not terminal."""
        return self._status == ProgressStatus.LOADING

    @property
    def is_terminal(self) -> bool:
        return self._status.terminal

    @property
    def current_stage_index(self) -> int:
        return self._stage_index

    @property
    def current_stage(self) -> StageConfig:
        return self.stages[self._stage_index]

    @property
    def has_timers(self) -> bool:
        """True while any of the session's timers is still scheduled."""
        handles = (self._stage_handle, self._timeout_handle, self._poll_handle)
        return any(h is not None and not h.cancelled for h in handles)

    def elapsed(self) -> float:
        if self._start_time is None:
            return 0.0
        end = self._end_time if self._end_time is not None else self._scheduler.now()
        return end - self._start_time

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            key=self.key,
            status=self._status,
            stage=self.current_stage.name if self._start_time is not None else None,
            stage_index=self._stage_index,
            progress=self._progress,
            message=self._message,
            elapsed=self.elapsed(),
            can_retry=self._can_retry,
            is_offline=not self._classifier.is_online(),
            error=self._error,
        )

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Receive every snapshot this session emits.

        Returns:
            A function that removes the subscription.
        """
        subscriber_id = next(self._subscriber_ids)
        self._subscribers[subscriber_id] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(subscriber_id, None)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start (or restart) the timeline from the first stage."""
        self._cancel_timers()

        self._status = ProgressStatus.LOADING
        self._can_retry = False
        self._error = None
        self._start_time = self._scheduler.now()
        self._end_time = None

        self._timeout_handle = self._scheduler.call_later(self.timeout, self._on_timeout)
        if self.poll_interval is not None:
            self._poll_handle = self._scheduler.call_every(self.poll_interval, self._on_poll)

        _logger.debug(
            "progress.started",
            key=self.key,
            stages=len(self.stages),
            timeout_seconds=self.timeout,
        )
        if self._on_start is not None:
            self._on_start(self)
        self._enter_stage(0)

    def set_stage(self, index: int) -> bool:
        """Jump to a stage, restarting the stage timer from there.

        Returns:
            False if the session is not active or index is out of range.
        """
        if not self.is_active or not 0 <= index < len(self.stages):
            return False
        self._enter_stage(index)
        return True

    def complete(self) -> bool:
        """Terminal success: progress 100 and "Ready!"."""
        if not self.is_active:
            return False
        self._finish(
            ProgressStatus.SUCCESS,
            progress=PROGRESS_COMPLETE_PERCENT,
            message=PROGRESS_COMPLETE_MESSAGE,
            can_retry=False,
        )
        _logger.info("progress.completed", key=self.key, elapsed_seconds=round(self.elapsed(), 3))
        return True

    def error(self, err: Any, context: ErrorContext | None = None) -> bool:
        """Terminal failure; ``err`` is classified for display.

        Args:
            err: The failure (exception, message or mapping).
            context: Where it happened; defaults to ``progress.<key>``.
        """
        if not self.is_active:
            return False
        ctx = context or ErrorContext(component="progress", action=self.key)
        classified = self._classifier.classify(err, ctx)
        self._error = classified
        self._finish(
            ProgressStatus.ERROR,
            progress=self._progress,
            message=classified.user_message or PROGRESS_ERROR_MESSAGE,
            can_retry=True,
        )
        _logger.warning(
            "progress.failed",
            key=self.key,
            error_type=classified.type.value,
            stage=self.current_stage.name,
            error=classified.message,
        )
        return True

    def retry(self) -> None:
        """Restart from scratch.

        A retry is a restart, so ``on_stop`` does not fire.
        """
        self.start()

    def stop(self) -> None:
        """Cancel all timers without emitting a terminal snapshot."""
        was_active = self.is_active
        self._cancel_timers()
        if was_active:
            self._status = ProgressStatus.IDLE
            self._end_time = self._scheduler.now()
            _logger.debug("progress.stopped", key=self.key, stage=self.current_stage.name)
            if self._on_stop is not None:
                self._on_stop(self)

    # -------------------------------------------------------------------------
    # Timer callbacks
    # -------------------------------------------------------------------------

    def _enter_stage(self, index: int) -> None:
        if self._stage_handle is not None:
            self._stage_handle.cancel()
            self._stage_handle = None

        stage = self.stages[index]
        self._stage_index = index
        self._progress = stage.progress
        self._message = stage.message

        if index + 1 < len(self.stages):
            self._stage_handle = self._scheduler.call_later(
                stage.duration, lambda: self._advance(index + 1)
            )

        _logger.debug(
            "progress.stage_changed",
            key=self.key,
            stage=stage.name,
            stage_index=index,
            progress=stage.progress,
        )
        self._emit()

    def _advance(self, index: int) -> None:
        if self.is_active:
            self._enter_stage(index)

    def _on_timeout(self) -> None:
        if not self.is_active:
            return
        self._finish(
            ProgressStatus.TIMEOUT,
            progress=self._progress,
            message=PROGRESS_TIMEOUT_MESSAGE,
            can_retry=True,
        )
        _logger.warning(
            "progress.timeout",
            key=self.key,
            stage=self.current_stage.name,
            timeout_seconds=self.timeout,
        )

    def _on_poll(self) -> None:
        if self.is_active:
            self._emit()

    def _finish(
        self,
        status: ProgressStatus,
        *,
        progress: float,
        message: str,
        can_retry: bool,
    ) -> None:
        self._cancel_timers()
        self._status = status
        self._progress = progress
        self._message = message
        self._can_retry = can_retry
        self._end_time = self._scheduler.now()
        self._emit()

    def _cancel_timers(self) -> None:
        for handle in (self._stage_handle, self._timeout_handle, self._poll_handle):
            if handle is not None:
                handle.cancel()
        self._stage_handle = None
        self._timeout_handle = None
        self._poll_handle = None

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers.values()):
            try:
                callback(snapshot)
            except Exception as e:
                _logger.warning("progress.subscriber_failed", key=self.key, error=str(e))


# =============================================================================
# Orchestrator
# =============================================================================


class ProgressOrchestrator:
    """Owns progress sessions by key.

    - Starting a key that already has a session replaces it outright (the
      old session is stopped, its timers cancelled).
    - A session leaves the orchestrator on complete, error, timeout or stop,
      whether triggered through the orchestrator or on the session itself.
      Its last state is kept so ``retry(key)`` can restart it.
    - While a session is active, its progress and message are mirrored into
      the LoadingRegistry under the same key.

    Example usage:
        orchestrator = ProgressOrchestrator(AsyncioScheduler(), loading_registry)
        orchestrator.start(LoadingKeys.CV_ANALYZE, preset="cv_analysis")
        try:
            result = await analyze_cv(...)
            orchestrator.complete(LoadingKeys.CV_ANALYZE)
        except Exception as e:
            orchestrator.error(LoadingKeys.CV_ANALYZE, e)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        loading_registry: LoadingRegistry | None = None,
        classifier: ErrorClassifier | None = None,
        config: ProgressConfig | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._loading = loading_registry
        self._classifier = classifier or ErrorClassifier()
        self._config = config or ProgressConfig()

        self._sessions: dict[str, ProgressSession] = {}
        self._finished: dict[str, ProgressSession] = {}

        self._subscriber_ids = itertools.count()
        self._global_subscribers: dict[int, SnapshotCallback] = {}
        self._key_subscribers: dict[str, dict[int, SnapshotCallback]] = {}

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def start(
        self,
        key: str,
        stages: Sequence[StageConfig] | None = None,
        *,
        preset: str | None = None,
        timeout: float | None = None,
    ) -> ProgressSession:
        """Start a session for ``key``, replacing any existing one.

        Stages come from ``stages``, else ``preset``, else the orchestrator's
        ProgressConfig.

        Raises:
            ValueError: If the preset is unknown or the stages are empty.
        """
        if stages is None:
            stages = get_preset(preset) if preset is not None else resolve_stages(self._config)

        session = ProgressSession(
            key=key,
            scheduler=self._scheduler,
            stages=stages,
            timeout=timeout if timeout is not None else self._config.timeout,
            poll_interval=self._config.poll_interval,
            classifier=self._classifier,
            on_start=self._on_session_start,
            on_stop=self._on_session_stop,
        )

        previous = self._sessions.pop(key, None)
        if previous is not None:
            previous.stop()
            _logger.debug("progress.replaced", key=key)
        self._finished.pop(key, None)

        self._sessions[key] = session
        session.subscribe(lambda snapshot: self._on_snapshot(session, snapshot))
        session.start()
        return session

    def get(self, key: str) -> ProgressSession | None:
        """Active session for ``key``."""
        return self._sessions.get(key)

    def get_snapshot(self, key: str) -> ProgressSnapshot | None:
        """Latest snapshot for ``key``, including a just-finished session."""
        session = self._sessions.get(key) or self._finished.get(key)
        return session.snapshot() if session is not None else None

    def active_keys(self) -> list[str]:
        return list(self._sessions)

    def set_stage(self, key: str, index: int) -> bool:
        session = self._sessions.get(key)
        return session.set_stage(index) if session is not None else False

    def complete(self, key: str) -> bool:
        session = self._sessions.get(key)
        return session.complete() if session is not None else False

    def error(self, key: str, err: Any, context: ErrorContext | None = None) -> bool:
        session = self._sessions.get(key)
        return session.error(err, context) if session is not None else False

    def retry(self, key: str) -> ProgressSession | None:
        """Restart the session of ``key`` (active or just finished).

        Returns:
            The restarted session, or None if ``key`` has no session.
        """
        session = self._sessions.get(key) or self._finished.get(key)
        if session is None:
            return None
        session.retry()
        return session

    def stop(self, key: str) -> bool:
        """Stop and remove the session of ``key`` without a terminal snapshot."""
        self._finished.pop(key, None)
        session = self._sessions.pop(key, None)
        if session is None:
            return False
        session.stop()
        if self._loading is not None:
            self._loading.stop_loading(key)
        return True

    def stop_all(self) -> None:
        for key in list(self._sessions):
            self.stop(key)
        self._finished.clear()

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, callback: SnapshotCallback, key: str | None = None) -> Callable[[], None]:
        """Receive snapshots of one key, or of every key when ``key`` is None.

        Returns:
            A function that removes the subscription.
        """
        subscriber_id = next(self._subscriber_ids)
        if key is None:
            self._global_subscribers[subscriber_id] = callback
        else:
            self._key_subscribers.setdefault(key, {})[subscriber_id] = callback

        def unsubscribe() -> None:
            if key is None:
                self._global_subscribers.pop(subscriber_id, None)
                return
            callbacks = self._key_subscribers.get(key)
            if callbacks is not None:
                callbacks.pop(subscriber_id, None)
                if not callbacks:
                    del self._key_subscribers[key]

        return unsubscribe

    def _on_session_start(self, session: ProgressSession) -> None:
        key = session.key
        if self._finished.get(key) is session:
            del self._finished[key]
            self._sessions[key] = session
        elif self._sessions.get(key) is not session:
            return

        if self._loading is not None:
            # Fresh entry so elapsed time counts from this run
            first = session.stages[0]
            self._loading.start_loading(key, first.message, first.progress)

    def _on_session_stop(self, session: ProgressSession) -> None:
        if self._sessions.get(session.key) is not session:
            return
        del self._sessions[session.key]
        if self._loading is not None:
            self._loading.stop_loading(session.key)
        _logger.debug("progress.released", key=session.key)

    def _on_snapshot(self, session: ProgressSession, snapshot: ProgressSnapshot) -> None:
        if self._sessions.get(snapshot.key) is not session:
            # Replaced or stopped session
            return

        if snapshot.terminal:
            del self._sessions[snapshot.key]
            self._finished[snapshot.key] = session

        self._mirror(snapshot)

        callbacks = list(self._key_subscribers.get(snapshot.key, {}).values())
        callbacks.extend(self._global_subscribers.values())
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                _logger.warning("progress.subscriber_failed", key=snapshot.key, error=str(e))

    def _mirror(self, snapshot: ProgressSnapshot) -> None:
        if self._loading is None:
            return
        if snapshot.terminal:
            self._loading.stop_loading(snapshot.key)
        elif not self._loading.update_progress(snapshot.key, snapshot.progress, snapshot.message):
            self._loading.start_loading(snapshot.key, snapshot.message, snapshot.progress)


__all__ = [
    "DEFAULT_PRESET",
    "STAGE_PRESETS",
    "ProgressOrchestrator",
    "ProgressSession",
    "ProgressSnapshot",
    "ProgressStatus",
    "get_preset",
    "resolve_stages",
]
