"""
Celery background tasks

The periodic maintenance jobs can also be triggered on demand (e.g. from the
scheduler API) and executed by a worker instead of the API process.

Note on async handling:
Celery workers are sync by default (prefork pool). Each task body runs on a
fresh event loop that is closed afterwards, with sessions from the NullPool
Celery engine.
"""
import asyncio

from celery.signals import worker_shutdown

from auditdesk.workers.celery_app import celery_app
from auditdesk.db.database import get_celery_db, dispose_celery_engine
from auditdesk.workers import jobs


def run_async(coro):
    """
    Run a coroutine to completion on a new event loop.

    Pending tasks are cancelled and async generators shut down before the loop
    is closed, so nothing leaks into the next task executed by this worker.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
            asyncio.set_event_loop(None)


@worker_shutdown.connect
def _dispose_engine_on_shutdown(**kwargs):
    run_async(dispose_celery_engine())


@celery_app.task(name="auditdesk.workers.tasks.update_company_tiers_task")
def update_company_tiers_task():
    return run_async(jobs.update_company_tiers(get_celery_db))


@celery_app.task(name="auditdesk.workers.tasks.update_audit_schedules_task")
def update_audit_schedules_task():
    return run_async(jobs.update_audit_schedules(get_celery_db))


@celery_app.task(name="auditdesk.workers.tasks.process_overdue_audits_task")
def process_overdue_audits_task():
    return run_async(jobs.process_overdue_audits(get_celery_db))


@celery_app.task(name="auditdesk.workers.tasks.cleanup_orphaned_audits_task")
def cleanup_orphaned_audits_task():
    return run_async(jobs.cleanup_orphaned_audits(get_celery_db))


# Job name (as used by the coordinator) -> Celery task
JOB_TASKS = {
    jobs.TIER_UPDATES: update_company_tiers_task,
    jobs.AUDIT_SCHEDULE_UPDATES: update_audit_schedules_task,
    jobs.OVERDUE_AUDIT_CHECK: process_overdue_audits_task,
    jobs.ORPHAN_CLEANUP: cleanup_orphaned_audits_task,
}
