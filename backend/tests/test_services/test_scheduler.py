"""
Tests for JobCoordinator
"""
import asyncio

import pytest

from auditdesk.core.errors import NotFoundError, ValidationFailure
from auditdesk.services.scheduler import JobCoordinator

DEFAULT_CONFIG = {
    "tierUpdates": "0 2 * * *",
    "auditScheduleUpdates": "0 3 * * *",
    "overdueAuditCheck": "0 8 * * *",
}


def _tasks(calls=None):
    calls = calls if calls is not None else []

    def make(name):
        async def task():
            calls.append(name)
        return task

    return {name: make(name) for name in list(DEFAULT_CONFIG) + ["orphanCleanup"]}


@pytest.fixture
def coordinator(mock_scheduler) -> JobCoordinator:
    return JobCoordinator(_tasks(), DEFAULT_CONFIG, timezone="America/New_York", scheduler=mock_scheduler)


class TestRegistry:
    """Tests for registering and stopping jobs"""

    def test_initialize_registers_every_configured_job(self, coordinator: JobCoordinator, mock_scheduler):
        coordinator.initialize_jobs()

        status = coordinator.get_status()
        assert status["is_running"] is True
        assert {job["name"] for job in status["jobs"]} == set(DEFAULT_CONFIG)
        assert mock_scheduler.add_job.call_count == 3

        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True

    def test_empty_expression_is_not_registered(self, mock_scheduler):
        config = dict(DEFAULT_CONFIG, orphanCleanup="")
        coordinator = JobCoordinator(_tasks(), config, scheduler=mock_scheduler)

        coordinator.initialize_jobs()

        assert "orphanCleanup" not in {job["name"] for job in coordinator.get_status()["jobs"]}

    def test_reregistering_stops_previous_instance(self, coordinator: JobCoordinator, mock_scheduler):
        coordinator.schedule_job("tierUpdates", "0 2 * * *")
        first = coordinator._jobs["tierUpdates"]

        coordinator.schedule_job("tierUpdates", "30 2 * * *")

        first.remove.assert_called_once()
        assert len(coordinator.get_status()["jobs"]) == 1

    def test_unknown_job_name(self, coordinator: JobCoordinator):
        with pytest.raises(NotFoundError):
            coordinator.schedule_job("nightlyBackup", "0 1 * * *")

    def test_invalid_cron_expression(self, coordinator: JobCoordinator, mock_scheduler):
        with pytest.raises(ValidationFailure):
            coordinator.schedule_job("tierUpdates", "not a cron")
        mock_scheduler.add_job.assert_not_called()

    def test_stop_clears_registry(self, coordinator: JobCoordinator):
        coordinator.initialize_jobs()
        jobs = list(coordinator._jobs.values())

        coordinator.stop()

        status = coordinator.get_status()
        assert status["is_running"] is False
        assert status["jobs"] == []
        for job in jobs:
            job.remove.assert_called_once()

    def test_stop_twice_is_harmless(self, coordinator: JobCoordinator):
        coordinator.initialize_jobs()
        coordinator.stop()
        coordinator.stop()
        assert coordinator.get_status()["is_running"] is False

    def test_shutdown_stops_scheduler(self, coordinator: JobCoordinator, mock_scheduler):
        coordinator.initialize_jobs()
        coordinator.shutdown()

        mock_scheduler.shutdown.assert_called_once_with(wait=False)
        assert coordinator.get_status()["jobs"] == []


class TestRestart:
    """Tests for restart_jobs config merging"""

    def test_partial_config_is_merged(self, coordinator: JobCoordinator):
        coordinator.initialize_jobs()

        coordinator.restart_jobs({"tierUpdates": "0 5 * * *"})

        config = coordinator.get_status()["config"]
        assert config["tierUpdates"] == "0 5 * * *"
        assert config["auditScheduleUpdates"] == "0 3 * * *"
        assert config["overdueAuditCheck"] == "0 8 * * *"
        assert len(coordinator.get_status()["jobs"]) == 3

    def test_none_values_keep_current(self, coordinator: JobCoordinator):
        coordinator.restart_jobs({"tierUpdates": None})
        assert coordinator.config["tierUpdates"] == "0 2 * * *"

    def test_empty_string_disables_job(self, coordinator: JobCoordinator):
        coordinator.restart_jobs({"overdueAuditCheck": ""})
        names = {job["name"] for job in coordinator.get_status()["jobs"]}
        assert names == {"tierUpdates", "auditScheduleUpdates"}

    def test_adds_optional_job(self, coordinator: JobCoordinator):
        coordinator.restart_jobs({"orphanCleanup": "0 4 * * 0"})
        assert "orphanCleanup" in {job["name"] for job in coordinator.get_status()["jobs"]}

    def test_invalid_expression_keeps_running_jobs(self, coordinator: JobCoordinator):
        coordinator.initialize_jobs()

        with pytest.raises(ValidationFailure):
            coordinator.restart_jobs({"tierUpdates": "every night"})

        assert coordinator.config == DEFAULT_CONFIG
        assert len(coordinator.get_status()["jobs"]) == 3

    def test_unknown_job_is_rejected(self, coordinator: JobCoordinator):
        with pytest.raises(ValidationFailure):
            coordinator.restart_jobs({"nightlyBackup": "0 1 * * *"})


class TestRunJob:
    """Tests for job execution"""

    @pytest.mark.asyncio
    async def test_run_job_executes_task(self, mock_scheduler):
        calls = []
        coordinator = JobCoordinator(_tasks(calls), DEFAULT_CONFIG, scheduler=mock_scheduler)

        assert await coordinator.run_job("tierUpdates") is True
        assert calls == ["tierUpdates"]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, mock_scheduler):
        async def broken():
            raise RuntimeError("database unavailable")

        tasks = dict(_tasks(), tierUpdates=broken)
        coordinator = JobCoordinator(tasks, DEFAULT_CONFIG, scheduler=mock_scheduler)
        coordinator.initialize_jobs()

        assert await coordinator.run_job("tierUpdates") is True
        assert await coordinator.run_job("tierUpdates") is True

        job = next(j for j in coordinator.get_status()["jobs"] if j["name"] == "tierUpdates")
        assert job["last_run"]["succeeded"] is False
        assert "database unavailable" in job["last_run"]["error"]
        assert job["in_flight"] is False

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self, mock_scheduler):
        release = asyncio.Event()
        runs = []

        async def slow():
            runs.append("start")
            await release.wait()

        tasks = dict(_tasks(), auditScheduleUpdates=slow)
        coordinator = JobCoordinator(tasks, DEFAULT_CONFIG, scheduler=mock_scheduler)

        first = asyncio.create_task(coordinator.run_job("auditScheduleUpdates"))
        await asyncio.sleep(0)

        assert await coordinator.run_job("auditScheduleUpdates") is False

        release.set()
        assert await first is True
        assert runs == ["start"]

    @pytest.mark.asyncio
    async def test_unknown_job(self, coordinator: JobCoordinator):
        with pytest.raises(NotFoundError):
            await coordinator.run_job("nightlyBackup")
