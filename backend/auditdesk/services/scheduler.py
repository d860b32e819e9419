"""
Periodic job coordinator.

Owns a registry of named cron jobs on an APScheduler AsyncIOScheduler. One
instance is built at application startup and handed to whoever needs to query
or restart it (see auditdesk.main).

Every run goes through run_job(), which
- skips the run if the previous run of the same job is still in flight,
- logs and swallows failures so the scheduler and future runs are unaffected.
"""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from auditdesk.core.clock import utcnow
from auditdesk.core.errors import NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)

JobTask = Callable[[], Awaitable[Any]]


class JobCoordinator:
    def __init__(
        self,
        tasks: Dict[str, JobTask],
        config: Dict[str, str],
        timezone: str = "UTC",
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.tasks = dict(tasks)
        self.config = dict(config)
        self.timezone = timezone
        self._scheduler = scheduler
        self._jobs: Dict[str, Any] = {}
        self._in_flight: set = set()
        self._last_runs: Dict[str, dict] = {}

    # === Registry ===

    def initialize_jobs(self) -> None:
        """Register and start every configured job. Empty expressions are skipped."""
        logger.info("Initializing scheduled jobs...")
        for name, cron_expression in self.config.items():
            if not cron_expression:
                logger.info(f"Job '{name}' has no schedule, not registering")
                continue
            self.schedule_job(name, cron_expression)
        logger.info(f"Initialized {len(self._jobs)} scheduled jobs")

    def schedule_job(self, name: str, cron_expression: str) -> None:
        """Register one job. Re-registering a name stops the previous instance first."""
        if name not in self.tasks:
            raise NotFoundError(f"Unknown job: {name}")
        trigger = self._build_trigger(cron_expression)

        if name in self._jobs:
            logger.info(f"Job {name} already exists, stopping previous instance")
            self._remove(name)

        job = self._get_scheduler().add_job(
            self.run_job,
            trigger,
            args=[name],
            id=name,
            name=name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._jobs[name] = job
        logger.info(f"Scheduled job '{name}' with cron expression: {cron_expression}")

    def stop(self) -> None:
        """Stop every job and clear the registry. The underlying scheduler keeps running."""
        logger.info("Stopping all scheduled jobs...")
        for name in list(self._jobs):
            self._remove(name)
            logger.info(f"Stopped job: {name}")
        logger.info("All scheduled jobs stopped")

    def restart_jobs(self, new_config: Optional[Dict[str, Optional[str]]] = None) -> None:
        """
        Stop everything and re-initialize with a merged configuration.

        Keys present in new_config override the current value; missing keys
        (or None values) keep it. An empty string unregisters that job.
        """
        merged = dict(self.config)
        for name, cron_expression in (new_config or {}).items():
            if cron_expression is None:
                continue
            if name not in self.tasks:
                raise ValidationFailure(f"Unknown job: {name}")
            merged[name] = cron_expression

        # Validate before touching the running jobs
        for cron_expression in merged.values():
            if cron_expression:
                self._build_trigger(cron_expression)

        self.stop()
        self.config = merged
        self.initialize_jobs()

    def shutdown(self) -> None:
        """Stop all jobs and the scheduler itself (process exit)."""
        self.stop()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def get_status(self) -> dict:
        jobs = []
        for name, job in self._jobs.items():
            next_run: Optional[datetime] = getattr(job, "next_run_time", None)
            jobs.append({
                "name": name,
                "cron_expression": self.config.get(name, "unknown"),
                "in_flight": name in self._in_flight,
                "next_run_time": next_run.isoformat() if next_run else None,
                "last_run": self._last_runs.get(name),
            })
        return {
            "is_running": len(self._jobs) > 0,
            "jobs": jobs,
            "config": dict(self.config),
        }

    # === Execution ===

    async def run_job(self, name: str) -> bool:
        """
        Run one job body with error isolation.

        Returns False if the run was skipped because the same job is still running.
        """
        task = self.tasks.get(name)
        if task is None:
            raise NotFoundError(f"Unknown job: {name}")

        if name in self._in_flight:
            logger.warning(f"Skipping scheduled job {name}: previous run still in progress")
            return False

        self._in_flight.add(name)
        run = {"started_at": utcnow().isoformat(), "finished_at": None, "succeeded": None, "error": None}
        self._last_runs[name] = run
        logger.info(f"Running scheduled job: {name}")
        try:
            await task()
            run["succeeded"] = True
            logger.info(f"Completed scheduled job: {name}")
        except Exception as e:
            run["succeeded"] = False
            run["error"] = str(e)
            logger.exception(f"Error in scheduled job {name}: {e}")
        finally:
            run["finished_at"] = utcnow().isoformat()
            self._in_flight.discard(name)
        return True

    # === Helpers ===

    def _build_trigger(self, cron_expression: str) -> CronTrigger:
        try:
            return CronTrigger.from_crontab(cron_expression, timezone=self.timezone)
        except ValueError as e:
            raise ValidationFailure(f"Invalid cron expression '{cron_expression}': {e}") from e

    def _get_scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        if not self._scheduler.running:
            self._scheduler.start()
        return self._scheduler

    def _remove(self, name: str) -> None:
        job = self._jobs.pop(name, None)
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError as e:
            logger.debug(f"Job {name} was not registered with the scheduler: {e}")
