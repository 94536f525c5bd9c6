"""Tests for SchedulingEngine (real APScheduler, in-memory job store)."""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime, timedelta

import pytest
from structlog.testing import capture_logs

from jobspine.core.errors import (
    DuplicateJobError,
    EngineUnavailableError,
    InvalidScheduleError,
    NotRegisteredError,
)
from jobspine.core.models.jobs import JobKey, MisfirePolicy, TriggerKey
from jobspine.core.scheduling import SchedulingEngine
from tests._support import DAILY_NOON, HOURLY, RecordingExecutor, wait_until

KEY = JobKey("ReportJob", "default")
YEARLY = "0 0 0 1 1 ?"


class TestLifecycle:
    def test_operations_before_start_raise(self, recorder):
        engine = SchedulingEngine(recorder)
        with pytest.raises(EngineUnavailableError, match="not been started"):
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        with pytest.raises(EngineUnavailableError):
            engine.exists(KEY)

    def test_operations_after_shutdown_raise(self, recorder):
        engine = SchedulingEngine(recorder)
        engine.start()
        engine.shutdown()
        assert not engine.is_running
        with pytest.raises(EngineUnavailableError, match="shut down"):
            engine.fire_now(KEY)

    def test_restart_after_shutdown_refused(self, recorder):
        engine = SchedulingEngine(recorder)
        engine.start()
        engine.shutdown()
        with pytest.raises(EngineUnavailableError):
            engine.start()

    def test_double_start_is_ignored(self, engine):
        with capture_logs() as logs:
            engine.start()
        assert engine.is_running
        assert any(e["event"] == "engine_already_running" for e in logs)

    def test_shutdown_before_start_is_noop(self, recorder):
        SchedulingEngine(recorder).shutdown()

    def test_context_manager(self, recorder):
        with SchedulingEngine(recorder) as engine:
            assert engine.is_running
        assert not engine.is_running

    def test_shutdown_drains_in_flight_execution(self):
        """shutdown(wait=True) returns only after running firings finish."""
        started, finished = threading.Event(), threading.Event()

        def slow(_context):
            started.set()
            time.sleep(0.3)
            finished.set()

        engine = SchedulingEngine(RecordingExecutor(slow))
        engine.start()
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.fire_now(KEY)
        assert started.wait(5)

        engine.shutdown(wait=True)
        assert finished.is_set()


class TestRegistration:
    def test_register_and_exists(self, engine):
        trigger = engine.register_job(KEY, "daily report", HOURLY, MisfirePolicy.DO_NOTHING)

        assert engine.exists(KEY)
        assert trigger.key == TriggerKey("ReportJobTrigger", "default")
        assert trigger.job_key == KEY
        assert engine.get_trigger(KEY.trigger_key) == trigger
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == HOURLY
        assert engine.next_fire_time(KEY) is not None
        assert not engine.is_paused(KEY)

    def test_duplicate_registration_rejected(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        with pytest.raises(DuplicateJobError):
            engine.register_job(KEY, "", DAILY_NOON, MisfirePolicy.DO_NOTHING)
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == HOURLY

    def test_invalid_expression_leaves_engine_untouched(self, engine):
        with pytest.raises(InvalidScheduleError):
            engine.register_job(KEY, "", "0 99 * * * ?", MisfirePolicy.DO_NOTHING)
        assert not engine.exists(KEY)
        assert engine.job_keys() == []

    def test_unregister_is_idempotent(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        assert engine.unregister(KEY) is True
        assert engine.unregister(KEY) is False
        assert not engine.exists(KEY)
        assert engine.get_trigger(KEY.trigger_key) is None

    def test_dotted_keys_are_registered_separately(self, engine):
        """("b.c", "a") and ("c", "a.b") are different jobs."""
        first, second = JobKey("b.c", "a"), JobKey("c", "a.b")
        engine.register_job(first, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.register_job(second, "", DAILY_NOON, MisfirePolicy.DO_NOTHING)

        assert engine.unregister(second) is True
        assert engine.exists(first)
        assert not engine.exists(second)
        assert engine.get_trigger_cron_expression(first.trigger_key) == HOURLY
        assert engine.job_keys() == [first]

    def test_dotted_keys_pause_and_fire_independently(self, engine, recorder):
        first, second = JobKey("b.c", "a"), JobKey("c", "a.b")
        engine.register_job(first, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.register_job(second, "", HOURLY, MisfirePolicy.DO_NOTHING)

        assert engine.pause(second) is True
        assert not engine.is_paused(first)
        engine.fire_now(first)
        assert recorder.wait_for(1)
        assert [(c.job_name, c.job_group) for c in recorder.contexts] == [("b.c", "a")]

    def test_job_keys_sorted(self, engine):
        for key in (JobKey("b", "z"), JobKey("a", "z"), JobKey("c", "a")):
            engine.register_job(key, "", HOURLY, MisfirePolicy.DO_NOTHING)
        assert engine.job_keys() == [JobKey("c", "a"), JobKey("a", "z"), JobKey("b", "z")]


class TestMisfirePolicy:
    def test_do_nothing_uses_grace_window(self, recorder):
        with SchedulingEngine(recorder, misfire_threshold_seconds=30) as engine:
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
            job = engine._scheduler.get_job(KEY.id)
            assert job.misfire_grace_time == 30
            assert job.coalesce is True

    def test_fire_and_proceed_has_no_grace_limit(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.FIRE_AND_PROCEED)
        job = engine._scheduler.get_job(KEY.id)
        assert job.misfire_grace_time is None
        assert job.coalesce is True

    def test_fire_and_proceed_runs_late_firing_once(self, engine, recorder):
        """A firing missed by ten minutes still runs, once."""
        engine.register_job(KEY, "", YEARLY, MisfirePolicy.FIRE_AND_PROCEED)
        engine._scheduler.modify_job(KEY.id, next_run_time=datetime.now(UTC) - timedelta(minutes=10))

        assert recorder.wait_for(1)
        time.sleep(0.2)
        assert len(recorder.contexts) == 1
        assert engine.get_stats().misfired == 0
        assert engine.next_fire_time(KEY) > datetime.now(UTC)

    def test_do_nothing_skips_late_firing(self, engine, recorder):
        """A firing missed beyond the threshold is dropped; the schedule moves on."""
        engine.register_job(KEY, "", YEARLY, MisfirePolicy.DO_NOTHING)
        engine._scheduler.modify_job(KEY.id, next_run_time=datetime.now(UTC) - timedelta(minutes=10))

        assert wait_until(lambda: engine.get_stats().misfired == 1)
        assert recorder.contexts == []
        assert engine.next_fire_time(KEY) > datetime.now(UTC)


class TestPauseAndReschedule:
    def test_pause(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        assert engine.pause(KEY) is True
        assert engine.is_paused(KEY)
        assert engine.next_fire_time(KEY) is None
        assert engine.exists(KEY)

    def test_pause_unknown_returns_false(self, engine):
        assert engine.pause(KEY) is False

    def test_reschedule_rearms_paused_job(self, engine):
        """Rescheduling is how a paused job resumes."""
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.pause(KEY)

        trigger = engine.reschedule(KEY.trigger_key, HOURLY, MisfirePolicy.FIRE_AND_PROCEED)

        assert not engine.is_paused(KEY)
        assert trigger.cron_expression == HOURLY
        assert engine.get_trigger(KEY.trigger_key).misfire_policy is MisfirePolicy.FIRE_AND_PROCEED
        assert engine._scheduler.get_job(KEY.id).misfire_grace_time is None

    def test_reschedule_changes_expression(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.reschedule(KEY.trigger_key, DAILY_NOON, MisfirePolicy.DO_NOTHING)

        assert engine.get_trigger_cron_expression(KEY.trigger_key) == DAILY_NOON
        assert engine.next_fire_time(KEY).hour == 12

    def test_reschedule_unknown_trigger(self, engine):
        with pytest.raises(NotRegisteredError):
            engine.reschedule(KEY.trigger_key, HOURLY, MisfirePolicy.DO_NOTHING)

    def test_reschedule_invalid_expression_keeps_trigger(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        with pytest.raises(InvalidScheduleError):
            engine.reschedule(KEY.trigger_key, "bogus", MisfirePolicy.DO_NOTHING)
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == HOURLY


class TestFireNow:
    def test_fire_now_runs_executor(self, engine, recorder):
        engine.register_job(KEY, "daily report", HOURLY, MisfirePolicy.DO_NOTHING)
        next_before = engine.next_fire_time(KEY)

        engine.fire_now(KEY)

        assert recorder.wait_for(1)
        context = recorder.contexts[0]
        assert (context.job_name, context.job_group) == ("ReportJob", "default")
        assert context.description == "daily report"
        assert context.manual is True
        assert context.fired_at.tzinfo is not None
        assert engine.next_fire_time(KEY) == next_before

    def test_fire_now_does_not_add_registrations(self, engine, recorder):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.fire_now(KEY)
        assert recorder.wait_for(1)
        assert engine.job_keys() == [KEY]

    def test_fire_now_unknown(self, engine):
        with pytest.raises(NotRegisteredError):
            engine.fire_now(KEY)

    def test_fire_now_while_paused_still_runs(self, engine, recorder):
        """The engine itself does not check pause state for manual runs."""
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.pause(KEY)
        engine.fire_now(KEY)
        assert recorder.wait_for(1)
        assert engine.is_paused(KEY)

    def test_executor_failure_is_logged(self):
        def boom(_context):
            raise RuntimeError("executor exploded")

        with SchedulingEngine(RecordingExecutor(boom)) as engine:
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
            with capture_logs() as logs:
                engine.fire_now(KEY)
                assert wait_until(lambda: engine.get_stats().failed == 1)

        failures = [e for e in logs if e["event"] == "job_execution_failed"]
        assert failures and failures[0]["job_name"] == "ReportJob"
        assert failures[0]["log_level"] == "error"


class TestConcurrency:
    def test_same_key_firings_overlap_by_default(self):
        """Two manual runs of one job execute concurrently."""
        barrier = threading.Barrier(2, timeout=5)
        recorder = RecordingExecutor(lambda _c: barrier.wait())

        with SchedulingEngine(recorder, max_workers=4) as engine:
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
            engine.fire_now(KEY)
            engine.fire_now(KEY)
            assert recorder.wait_for(2)
            assert engine.get_stats().failed == 0

    def test_exclusive_job_skips_overlapping_firing(self):
        release = threading.Event()
        recorder = RecordingExecutor(lambda _c: release.wait(5))

        with SchedulingEngine(recorder, max_workers=4) as engine:
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING, exclusive=True)
            engine.fire_now(KEY)
            assert wait_until(lambda: engine.locks.is_locked(KEY))
            with capture_logs() as logs:
                engine.fire_now(KEY)
                assert wait_until(lambda: engine.get_stats().skipped_busy == 1)
            release.set()
            assert recorder.wait_for(1)

        assert len(recorder.contexts) == 1
        assert not engine.locks.is_locked(KEY)
        assert any(e["event"] == "job_firing_skipped_busy" for e in logs)

    def test_exclusive_lock_released_after_failure(self):
        def boom(_context):
            raise RuntimeError("boom")

        with SchedulingEngine(RecordingExecutor(boom)) as engine:
            engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING, exclusive=True)
            engine.fire_now(KEY)
            assert wait_until(lambda: engine.get_stats().failed == 1)
            assert wait_until(lambda: not engine.locks.is_locked(KEY))


class TestHealth:
    def test_health_reports_jobs_and_pauses(self, engine):
        engine.register_job(KEY, "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.register_job(JobKey("Other", "default"), "", HOURLY, MisfirePolicy.DO_NOTHING)
        engine.pause(KEY)

        health = engine.health()
        assert health["healthy"] is True
        assert health["backend"] == "apscheduler"
        assert health["jobs"] == 2
        assert health["paused_jobs"] == 1
        assert health["max_workers"] == 4

    def test_health_before_start(self, recorder):
        health = SchedulingEngine(recorder).health()
        assert health["healthy"] is False
        assert health["state"] == "created"
