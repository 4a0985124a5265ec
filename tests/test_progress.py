"""Tests for bulwark.execution.progress module."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from bulwark.core.config import ProgressConfig, StageConfig
from bulwark.core.constants import PROGRESS_TIMEOUT_MESSAGE
from bulwark.core.errors import ErrorClassifier, ErrorType
from bulwark.execution.progress import (
    STAGE_PRESETS,
    ProgressOrchestrator,
    ProgressSession,
    ProgressSnapshot,
    ProgressStatus,
    get_preset,
    resolve_stages,
)
from bulwark.state.registry import LoadingKeys


def make_session(scheduler, **kwargs) -> ProgressSession:
    kwargs.setdefault("timeout", 8.0)
    kwargs.setdefault("poll_interval", None)
    return ProgressSession("onboarding", scheduler, **kwargs)


def record(session: ProgressSession) -> list[ProgressSnapshot]:
    snapshots: list[ProgressSnapshot] = []
    session.subscribe(snapshots.append)
    return snapshots


class TestPresets:
    """Tests for stage presets."""

    def test_onboarding_preset(self):
        stages = get_preset("onboarding")
        assert [s.progress for s in stages] == [25, 50, 75, 90]
        assert [s.duration for s in stages] == [2.0, 2.0, 2.0, 2.0]
        assert stages[0].message == "Authenticating your account..."
        assert stages[-1].message == "Almost ready!"

    def test_all_presets_available(self):
        assert set(STAGE_PRESETS) == {"onboarding", "cv_analysis", "session_refresh"}

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown progress preset 'nope'"):
            get_preset("nope")

    def test_resolve_prefers_explicit_stages(self):
        config = ProgressConfig(
            preset="cv_analysis",
            stages=[StageConfig(name="only", duration=1.0, progress=50)],
        )
        assert [s.name for s in resolve_stages(config)] == ["only"]

    def test_resolve_falls_back_to_preset(self):
        config = ProgressConfig(preset="session_refresh")
        assert resolve_stages(config) == get_preset("session_refresh")


class TestStageTimeline:
    """Stage timer behavior."""

    def test_initial_snapshot(self, scheduler):
        session = make_session(scheduler)
        snapshots = record(session)
        session.start()

        assert session.status == ProgressStatus.LOADING
        assert snapshots[-1].stage == "authenticating"
        assert snapshots[-1].progress == 25
        assert snapshots[-1].message == "Authenticating your account..."

    def test_advances_through_stages(self, scheduler):
        session = make_session(scheduler, timeout=30.0)
        snapshots = record(session)
        session.start()

        scheduler.advance(2.0)
        assert session.current_stage.name == "loading_profile"
        scheduler.advance(2.0)
        assert session.current_stage.name == "preparing"
        scheduler.advance(2.0)
        assert session.current_stage.name == "almost_ready"

        assert [s.progress for s in snapshots] == [25, 50, 75, 90]

    def test_stops_at_last_stage(self, scheduler):
        session = make_session(scheduler, timeout=60.0)
        session.start()
        scheduler.advance(30.0)

        assert session.status == ProgressStatus.LOADING
        assert session.current_stage_index == 3
        assert session.snapshot().progress == 90

    def test_set_stage_restarts_stage_timer(self, scheduler):
        session = make_session(scheduler, timeout=30.0)
        session.start()
        scheduler.advance(1.0)

        assert session.set_stage(2) is True
        assert session.current_stage.name == "preparing"

        scheduler.advance(1.5)
        assert session.current_stage.name == "preparing"
        scheduler.advance(0.5)
        assert session.current_stage.name == "almost_ready"

    def test_set_stage_out_of_range(self, scheduler):
        session = make_session(scheduler)
        session.start()
        assert session.set_stage(4) is False
        assert session.set_stage(-1) is False
        assert session.current_stage_index == 0

    def test_set_stage_before_start(self, scheduler):
        assert make_session(scheduler).set_stage(1) is False

    def test_requires_stages(self, scheduler):
        with pytest.raises(ValueError, match="at least one stage"):
            make_session(scheduler, stages=[])

    def test_requires_positive_timeout(self, scheduler):
        with pytest.raises(ValueError, match="timeout"):
            make_session(scheduler, timeout=0)


class TestTimeout:
    """The overall timeout wins regardless of the stage."""

    def test_timeout_race(self, scheduler):
        """Stages 25/50/75/90 at 2s each with an 8s timeout end in timeout."""
        session = make_session(scheduler, timeout=8.0)
        snapshots = record(session)
        session.start()

        scheduler.advance(7.9)
        assert session.status == ProgressStatus.LOADING
        assert session.current_stage.name == "almost_ready"

        scheduler.advance(0.1)

        final = snapshots[-1]
        assert final.status == ProgressStatus.TIMEOUT
        assert final.message == PROGRESS_TIMEOUT_MESSAGE
        assert final.message != "Almost ready!"
        assert final.can_retry is True
        assert final.elapsed == pytest.approx(8.0)
        assert scheduler.pending == 0

    def test_timeout_before_last_stage(self, scheduler):
        session = make_session(scheduler, timeout=3.0)
        session.start()
        scheduler.advance(3.0)

        snapshot = session.snapshot()
        assert snapshot.status == ProgressStatus.TIMEOUT
        assert snapshot.stage == "loading_profile"
        assert snapshot.progress == 50

    def test_no_stage_change_after_timeout(self, scheduler):
        session = make_session(scheduler, timeout=1.0)
        snapshots = record(session)
        session.start()
        scheduler.advance(20.0)

        assert [s.status for s in snapshots] == [ProgressStatus.LOADING, ProgressStatus.TIMEOUT]


class TestTerminalCalls:
    """complete/error are terminal and idempotent."""

    def test_complete(self, scheduler):
        session = make_session(scheduler)
        snapshots = record(session)
        session.start()
        scheduler.advance(3.0)

        assert session.complete() is True

        final = snapshots[-1]
        assert final.status == ProgressStatus.SUCCESS
        assert final.progress == 100
        assert final.message == "Ready!"
        assert final.can_retry is False
        assert session.has_timers is False
        assert scheduler.pending == 0

    def test_complete_twice(self, scheduler):
        session = make_session(scheduler)
        snapshots = record(session)
        session.start()
        session.complete()
        count = len(snapshots)

        assert session.complete() is False
        assert session.error(RuntimeError("late")) is False
        scheduler.advance(10.0)

        assert len(snapshots) == count
        assert session.status == ProgressStatus.SUCCESS

    def test_error_is_classified(self, scheduler):
        session = make_session(scheduler)
        snapshots = record(session)
        session.start()
        scheduler.advance(2.0)

        assert session.error(ConnectionError("network down")) is True

        final = snapshots[-1]
        assert final.status == ProgressStatus.ERROR
        assert final.can_retry is True
        assert final.progress == 50
        assert final.error is not None
        assert final.error.type == ErrorType.NETWORK
        assert final.error.key == "progress.onboarding"
        assert final.message == final.error.user_message

    def test_complete_after_timeout(self, scheduler):
        session = make_session(scheduler, timeout=1.0)
        session.start()
        scheduler.advance(1.0)
        assert session.complete() is False
        assert session.status == ProgressStatus.TIMEOUT


class TestStopAndRetry:
    """stop() cancels silently; retry() restarts."""

    def test_stop_cancels_all_timers_without_terminal(self, scheduler):
        session = make_session(scheduler, poll_interval=0.5)
        snapshots = record(session)
        session.start()
        count = len(snapshots)

        session.stop()
        scheduler.advance(20.0)

        assert len(snapshots) == count
        assert session.status == ProgressStatus.IDLE
        assert scheduler.pending == 0
        assert session.complete() is False

    def test_retry_after_timeout(self, scheduler):
        session = make_session(scheduler, timeout=4.0)
        snapshots = record(session)
        session.start()
        scheduler.advance(4.0)
        assert session.status == ProgressStatus.TIMEOUT

        session.retry()

        assert session.status == ProgressStatus.LOADING
        assert snapshots[-1].stage == "authenticating"
        assert snapshots[-1].elapsed == 0.0
        scheduler.advance(4.0)
        assert session.status == ProgressStatus.TIMEOUT

    def test_retry_while_running_resets_timeout(self, scheduler):
        session = make_session(scheduler, timeout=8.0)
        session.start()
        scheduler.advance(6.0)
        session.retry()

        scheduler.advance(7.0)
        assert session.status == ProgressStatus.LOADING
        scheduler.advance(1.0)
        assert session.status == ProgressStatus.TIMEOUT

    def test_lifecycle_hooks(self, scheduler):
        events: list[str] = []
        session = make_session(
            scheduler,
            on_start=lambda s: events.append(f"start:{s.status.value}"),
            on_stop=lambda s: events.append("stop"),
        )

        session.start()
        session.retry()
        session.stop()
        session.stop()

        assert events == ["start:loading", "start:loading", "stop"]


class TestPolling:
    """The poll timer re-emits the current snapshot."""

    def test_poll_reemits(self, scheduler):
        session = make_session(scheduler, poll_interval=0.5)
        snapshots = record(session)
        session.start()

        scheduler.advance(1.0)

        assert len(snapshots) == 3
        assert [s.stage for s in snapshots] == ["authenticating"] * 3
        assert [s.elapsed for s in snapshots] == [0.0, 0.5, 1.0]


class TestConnectivity:
    """Snapshots report the connectivity check."""

    def test_online_by_default(self, scheduler):
        session = make_session(scheduler)
        session.start()
        assert session.snapshot().is_offline is False

    def test_offline(self, scheduler):
        online = [True]
        session = make_session(scheduler, classifier=ErrorClassifier(lambda: online[0]))
        snapshots = record(session)
        session.start()

        online[0] = False
        scheduler.advance(2.0)

        assert snapshots[0].is_offline is False
        assert snapshots[-1].is_offline is True
        assert snapshots[-1].to_dict()["is_offline"] is True


class TestOrchestrator:
    """Tests for ProgressOrchestrator."""

    @pytest.fixture
    def orchestrator(self, scheduler, loading_registry) -> ProgressOrchestrator:
        return ProgressOrchestrator(scheduler, loading_registry)

    def test_start_mirrors_into_loading_registry(self, orchestrator, scheduler, loading_registry):
        orchestrator.start(LoadingKeys.AUTH_LOGIN)

        state = loading_registry.get_loading_state(LoadingKeys.AUTH_LOGIN)
        assert state.is_loading is True
        assert state.progress == 25
        assert state.message == "Authenticating your account..."

        scheduler.advance(2.0)
        assert loading_registry.get_loading_state(LoadingKeys.AUTH_LOGIN).progress == 50

    def test_terminal_removes_session_and_loading(
        self, orchestrator, scheduler, loading_registry
    ):
        orchestrator.start(LoadingKeys.CV_ANALYZE, preset="cv_analysis")
        assert orchestrator.complete(LoadingKeys.CV_ANALYZE) is True

        assert orchestrator.get(LoadingKeys.CV_ANALYZE) is None
        assert loading_registry.is_loading(LoadingKeys.CV_ANALYZE) is False
        assert orchestrator.get_snapshot(LoadingKeys.CV_ANALYZE).status == ProgressStatus.SUCCESS
        assert orchestrator.complete(LoadingKeys.CV_ANALYZE) is False

    def test_timeout_removes_session(self, orchestrator, scheduler, loading_registry):
        orchestrator.start("key", timeout=1.0)
        scheduler.advance(1.0)
        assert orchestrator.active_keys() == []
        assert loading_registry.is_any_loading() is False

    def test_start_replaces_existing_session(self, orchestrator, scheduler):
        first = orchestrator.start("key")
        scheduler.advance(2.0)
        second = orchestrator.start("key")

        assert orchestrator.get("key") is second
        assert first.is_active is False
        assert second.current_stage_index == 0
        # timeout, poll and stage timers of the new session only
        assert scheduler.pending == 3

    def test_replaced_session_does_not_emit(self, orchestrator, scheduler):
        snapshots: list[ProgressSnapshot] = []
        orchestrator.subscribe(snapshots.append, key="key")
        first = orchestrator.start("key")
        orchestrator.start("key")
        count = len(snapshots)

        first.start()

        assert len(snapshots) == count

    def test_key_isolation(self, orchestrator, scheduler, loading_registry):
        orchestrator.start("a", timeout=2.0)
        orchestrator.start("b", timeout=10.0)

        scheduler.advance(2.0)

        assert orchestrator.get("a") is None
        assert orchestrator.get("b").is_active
        assert loading_registry.get_active_keys() == ["b"]

    def test_subscribe_per_key_and_global(self, orchestrator):
        per_key: list[ProgressSnapshot] = []
        everything: list[ProgressSnapshot] = []
        orchestrator.subscribe(per_key.append, key="a")
        orchestrator.subscribe(everything.append)

        orchestrator.start("a")
        orchestrator.start("b")

        assert {s.key for s in per_key} == {"a"}
        assert {s.key for s in everything} == {"a", "b"}

    def test_unsubscribe(self, orchestrator):
        snapshots: list[ProgressSnapshot] = []
        unsubscribe = orchestrator.subscribe(snapshots.append, key="a")
        unsubscribe()
        orchestrator.start("a")
        assert snapshots == []

    def test_error_through_orchestrator(self, orchestrator):
        orchestrator.start("a")
        assert orchestrator.error("a", {"message": "Too many requests", "code": "429"}) is True
        snapshot = orchestrator.get_snapshot("a")
        assert snapshot.status == ProgressStatus.ERROR
        assert snapshot.error.type == ErrorType.RATE_LIMIT

    def test_retry_finished_session(self, orchestrator, scheduler, loading_registry):
        orchestrator.start("a", timeout=1.0)
        scheduler.advance(1.0)

        session = orchestrator.retry("a")

        assert session is not None
        assert orchestrator.get("a") is session
        assert session.is_active
        assert loading_registry.is_loading("a")

    def test_retry_unknown_key(self, orchestrator):
        assert orchestrator.retry("missing") is None

    def test_stop(self, orchestrator, scheduler, loading_registry):
        snapshots: list[ProgressSnapshot] = []
        orchestrator.subscribe(snapshots.append)
        orchestrator.start("a")
        count = len(snapshots)

        assert orchestrator.stop("a") is True

        assert orchestrator.get("a") is None
        assert loading_registry.is_loading("a") is False
        assert scheduler.pending == 0
        assert len(snapshots) == count
        assert orchestrator.stop("a") is False

    def test_set_stage(self, orchestrator):
        orchestrator.start("a")
        assert orchestrator.set_stage("a", 3) is True
        assert orchestrator.get_snapshot("a").progress == 90
        assert orchestrator.set_stage("missing", 1) is False

    def test_uses_config_defaults(self, scheduler):
        config = ProgressConfig(preset="session_refresh", timeout=5.0)
        orchestrator = ProgressOrchestrator(scheduler, config=config)
        session = orchestrator.start("a")
        assert [s.name for s in session.stages] == ["refreshing", "restoring"]
        assert session.timeout == 5.0

    def test_stop_all(self, orchestrator, scheduler):
        orchestrator.start("a")
        orchestrator.start("b")
        orchestrator.stop_all()
        assert orchestrator.active_keys() == []
        assert scheduler.pending == 0

    def test_session_stop_releases_key(self, orchestrator, scheduler, loading_registry):
        session = orchestrator.start("a")

        session.stop()

        assert orchestrator.active_keys() == []
        assert orchestrator.get("a") is None
        assert loading_registry.is_any_loading() is False
        assert scheduler.pending == 0

    def test_session_stop_after_replace_keeps_new_session(
        self, orchestrator, loading_registry
    ):
        first = orchestrator.start("a")
        second = orchestrator.start("a")

        first.stop()

        assert orchestrator.get("a") is second
        assert loading_registry.is_loading("a") is True

    def test_session_retry_after_timeout_is_tracked(
        self, orchestrator, scheduler, loading_registry
    ):
        snapshots: list[ProgressSnapshot] = []
        orchestrator.subscribe(snapshots.append, key="a")
        session = orchestrator.start("a", timeout=1.0)
        scheduler.advance(1.0)
        assert snapshots[-1].status == ProgressStatus.TIMEOUT

        session.retry()

        assert orchestrator.get("a") is session
        assert orchestrator.active_keys() == ["a"]
        assert loading_registry.get_loading_state("a").progress == 25
        assert snapshots[-1].status == ProgressStatus.LOADING

        scheduler.advance(1.0)
        assert snapshots[-1].status == ProgressStatus.TIMEOUT
        assert loading_registry.is_loading("a") is False
        assert orchestrator.active_keys() == []

    def test_restart_gets_fresh_loading_start_time(
        self, orchestrator, scheduler, loading_registry, monkeypatch
    ):
        ticks = itertools.count()
        monkeypatch.setattr(
            "bulwark.state.registry.utc_now",
            lambda: datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(ticks)),
        )

        orchestrator.start("a")
        first = loading_registry.get_loading_state("a").start_time
        orchestrator.start("a")
        second = loading_registry.get_loading_state("a").start_time
        orchestrator.retry("a")
        third = loading_registry.get_loading_state("a").start_time

        assert first < second < third
