"""Tests for ReconciliationService CRUD and control operations."""

from __future__ import annotations

import time
from dataclasses import replace

import pytest
from structlog.testing import capture_logs

from jobspine.core.errors import DuplicateJobError, InvalidScheduleError, NotFoundError
from jobspine.core.models.jobs import JobDefinition, JobKey, JobStatus, MisfirePolicy
from jobspine.core.scheduling import ReconciliationService
from tests._support import DAILY_NOON, HOURLY

KEY = JobKey("ReportJob", "default")


def _events(logs, name):
    return [e for e in logs if e["event"] == name]


class TestCreate:
    def test_create_defaults_to_running(self, service, engine, store, report_job):
        """Scenario: create without status → RUNNING, DO_NOTHING trigger registered."""
        saved = service.create_job(report_job)

        assert saved.id is not None
        assert saved.status is JobStatus.RUNNING
        assert store.find_by_name_and_group("ReportJob", "default").status is JobStatus.RUNNING
        assert engine.exists(KEY)
        trigger = engine.get_trigger(KEY.trigger_key)
        assert trigger.cron_expression == HOURLY
        assert trigger.misfire_policy is MisfirePolicy.DO_NOTHING
        assert not engine.is_paused(KEY)

    def test_create_duplicate_rejected(self, service, engine, store, report_job):
        """Scenario: second create with the same key → DuplicateJobError, nothing changes."""
        service.create_job(report_job)
        trigger_before = engine.get_trigger(KEY.trigger_key)

        with pytest.raises(DuplicateJobError):
            service.create_job(replace(report_job, cron_expression=DAILY_NOON, description="other"))

        matching = [d for d in store.find_all() if d.key == KEY]
        assert len(matching) == 1
        assert matching[0].description == "daily report"
        assert engine.get_trigger(KEY.trigger_key) == trigger_before
        assert engine.job_keys() == [KEY]

    def test_create_with_paused_status(self, service, engine, report_job):
        saved = service.create_job(replace(report_job, status=JobStatus.PAUSED))
        assert saved.status is JobStatus.PAUSED
        assert engine.is_paused(KEY)

    def test_create_invalid_cron_touches_nothing(self, service, engine, store, report_job):
        """Cron is validated before any engine or store mutation."""
        with pytest.raises(InvalidScheduleError):
            service.create_job(replace(report_job, cron_expression="0 0 12 15W * ?"))
        assert store.find_all() == []
        assert engine.job_keys() == []

    def test_create_ignores_caller_id(self, service, report_job):
        """An id on a create request never overwrites an existing row."""
        first = service.create_job(report_job)
        second = service.create_job(replace(report_job, job_name="Other", id=first.id))

        assert second.id != first.id
        assert service.get_job("ReportJob", "default").id == first.id

    def test_create_dotted_keys_are_distinct_jobs(self, service, engine, store, report_job):
        """Names and groups containing dots never collide with another key."""
        service.create_job(replace(report_job, job_name="b.c", job_group="a"))
        service.create_job(replace(report_job, job_name="c", job_group="a.b"))

        assert store.find_by_name_and_group("c", "a.b") is not None
        assert engine.job_keys() == [JobKey("b.c", "a"), JobKey("c", "a.b")]

        service.delete_job("c", "a.b")
        assert engine.exists(JobKey("b.c", "a"))
        assert store.find_by_name_and_group("b.c", "a") is not None

    def test_create_exclusive_flag_persisted(self, service, report_job):
        saved = service.create_job(replace(report_job, exclusive=True))
        assert saved.exclusive is True


class TestListAndGet:
    def test_list_jobs(self, service, report_job):
        service.create_job(report_job)
        service.create_job(replace(report_job, job_name="Other"))
        assert [d.job_name for d in service.list_jobs()] == ["ReportJob", "Other"]

    def test_get_job(self, service, report_job):
        service.create_job(report_job)
        assert service.get_job("ReportJob", "default").cron_expression == HOURLY
        assert service.get_job("Missing", "default") is None


class TestPauseResume:
    def test_pause_then_run_now_is_noop(self, service, engine, store, recorder, report_job):
        """Scenario: pause → PAUSED; run now logs a warning and fires nothing."""
        service.create_job(report_job)

        assert service.pause_job("ReportJob", "default") is True
        assert store.find_by_name_and_group("ReportJob", "default").status is JobStatus.PAUSED
        assert engine.is_paused(KEY)

        with capture_logs() as logs:
            fired = service.run_job_now("ReportJob", "default")
        time.sleep(0.2)

        assert fired is False
        assert recorder.contexts == []
        warnings = _events(logs, "run_now_job_paused")
        assert warnings and warnings[0]["log_level"] == "warning"

    def test_resume_restores_cron_with_fire_and_proceed(self, service, engine, store, report_job):
        """Scenario: resume after pause → RUNNING, same cron, FIRE_AND_PROCEED."""
        service.create_job(report_job)
        service.pause_job("ReportJob", "default")

        assert service.resume_job("ReportJob", "default") is True

        assert store.find_by_name_and_group("ReportJob", "default").status is JobStatus.RUNNING
        trigger = engine.get_trigger(KEY.trigger_key)
        assert trigger.cron_expression == HOURLY
        assert trigger.misfire_policy is MisfirePolicy.FIRE_AND_PROCEED
        assert not engine.is_paused(KEY)

    def test_resume_unregistered_aborts_without_mutation(self, service, store, report_job):
        """Resume with no engine job/trigger logs a warning and changes nothing."""
        store.save(replace(report_job, status=JobStatus.PAUSED))

        with capture_logs() as logs:
            assert service.resume_job("ReportJob", "default") is False

        assert store.find_by_name_and_group("ReportJob", "default").status is JobStatus.PAUSED
        assert _events(logs, "resume_job_not_registered")

    def test_pause_unknown_job(self, service):
        with capture_logs() as logs:
            assert service.pause_job("Missing", "default") is False
        assert _events(logs, "pause_job_not_registered")
        assert _events(logs, "pause_job_not_stored")

    def test_pause_is_repeatable(self, service, engine, report_job):
        service.create_job(report_job)
        service.pause_job("ReportJob", "default")
        service.pause_job("ReportJob", "default")
        assert engine.is_paused(KEY)


class TestRunNow:
    def test_run_now_fires_once(self, service, recorder, report_job):
        service.create_job(report_job)

        assert service.run_job_now("ReportJob", "default") is True
        assert recorder.wait_for(1)
        assert recorder.contexts[0].manual is True
        assert recorder.contexts[0].description == "daily report"

    def test_run_now_missing_job_is_noop(self, service, recorder):
        with capture_logs() as logs:
            assert service.run_job_now("Missing", "default") is False
        assert _events(logs, "run_now_job_not_found")
        assert recorder.contexts == []

    def test_run_now_stored_but_not_registered(self, service, store, report_job):
        store.save(report_job)
        with capture_logs() as logs:
            assert service.run_job_now("ReportJob", "default") is False
        assert _events(logs, "run_now_job_not_registered")


class TestDelete:
    def test_delete_removes_from_both_sides(self, service, engine, store, recorder, report_job):
        """Delete then run now is a no-op."""
        service.create_job(report_job)

        service.delete_job("ReportJob", "default")

        assert store.find_all() == []
        assert not engine.exists(KEY)
        assert service.run_job_now("ReportJob", "default") is False
        time.sleep(0.2)
        assert recorder.contexts == []

    def test_delete_unknown_is_idempotent(self, service):
        service.delete_job("Missing", "default")
        service.delete_job("Missing", "default")


class TestUpdate:
    def test_update_renames_and_forces_pause(self, service, engine, store, report_job):
        """Scenario: move group default → reports; old key gone, new key paused."""
        saved = service.create_job(report_job)

        updated = service.update_job(replace(saved, job_group="reports"))

        assert not engine.exists(KEY)
        new_key = JobKey("ReportJob", "reports")
        assert engine.exists(new_key)
        assert engine.is_paused(new_key)
        assert updated.status is JobStatus.PAUSED
        assert updated.id == saved.id
        assert store.find_by_name_and_group("ReportJob", "default") is None
        assert store.find_by_name_and_group("ReportJob", "reports").status is JobStatus.PAUSED

    def test_update_pauses_regardless_of_prior_status(self, service, engine, report_job):
        saved = service.create_job(report_job)
        updated = service.update_job(replace(saved, cron_expression=DAILY_NOON, status=JobStatus.RUNNING))

        assert updated.status is JobStatus.PAUSED
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == DAILY_NOON
        assert engine.get_trigger(KEY.trigger_key).misfire_policy is MisfirePolicy.DO_NOTHING

    def test_update_without_exclusive_keeps_stored_flag(self, service, engine, report_job):
        """exclusive=None on an update leaves the stored flag in place."""
        saved = service.create_job(replace(report_job, exclusive=True))

        updated = service.update_job(replace(saved, cron_expression=DAILY_NOON, exclusive=None))

        assert updated.exclusive is True
        assert service.get_job("ReportJob", "default").exclusive is True
        assert engine._jobs[KEY].exclusive is True

    def test_update_can_clear_exclusive(self, service, report_job):
        saved = service.create_job(replace(report_job, exclusive=True))
        updated = service.update_job(replace(saved, exclusive=False))
        assert updated.exclusive is False

    def test_update_then_resume(self, service, engine, report_job):
        saved = service.create_job(report_job)
        service.update_job(replace(saved, cron_expression=DAILY_NOON))

        assert service.resume_job("ReportJob", "default") is True
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == DAILY_NOON
        assert service.get_job("ReportJob", "default").status is JobStatus.RUNNING

    def test_update_unknown_id(self, service, report_job):
        with pytest.raises(NotFoundError):
            service.update_job(replace(report_job, id=999))

    def test_update_without_id(self, service, report_job):
        with pytest.raises(NotFoundError):
            service.update_job(report_job)

    def test_update_invalid_cron_keeps_old_registration(self, service, engine, report_job):
        saved = service.create_job(report_job)
        with pytest.raises(InvalidScheduleError):
            service.update_job(replace(saved, cron_expression="nope"))
        assert engine.exists(KEY)
        assert engine.get_trigger_cron_expression(KEY.trigger_key) == HOURLY

    def test_update_to_taken_key_rejected(self, service, engine, report_job):
        service.create_job(report_job)
        other = service.create_job(replace(report_job, job_name="Other"))

        with pytest.raises(DuplicateJobError):
            service.update_job(replace(other, job_name="ReportJob"))
        assert engine.exists(JobKey("Other", "default"))

    def test_pause_on_update_disabled_keeps_status(self, store, engine, report_job):
        service = ReconciliationService(store, engine, pause_on_update=False)
        saved = service.create_job(report_job)

        updated = service.update_job(replace(saved, cron_expression=DAILY_NOON))

        assert updated.status is JobStatus.RUNNING
        assert not engine.is_paused(KEY)

    def test_pause_on_update_disabled_keeps_paused(self, store, engine, report_job):
        service = ReconciliationService(store, engine, pause_on_update=False)
        saved = service.create_job(replace(report_job, status=JobStatus.PAUSED))

        updated = service.update_job(replace(saved, description="still paused"))

        assert updated.status is JobStatus.PAUSED
        assert engine.is_paused(KEY)


class TestUniqueness:
    def test_keys_unique_across_operations(self, service, store, report_job):
        service.create_job(report_job)
        service.create_job(replace(report_job, job_group="reports"))
        for _ in range(2):
            with pytest.raises(DuplicateJobError):
                service.create_job(report_job)

        keys = [d.key for d in store.find_all()]
        assert len(keys) == len(set(keys)) == 2


class TestHealth:
    def test_health(self, service, report_job):
        service.create_job(report_job)
        service.pause_job("ReportJob", "default")

        health = service.health()
        assert health["healthy"] is True
        assert health["jobs"] == {"RUNNING": 0, "PAUSED": 1}
        assert health["engine"]["paused_jobs"] == 1
        assert health["pause_on_update"] is True
