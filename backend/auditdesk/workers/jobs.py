"""
Bodies of the periodic maintenance jobs.

Each job opens its own session through `db_scope` so it can run either inside
the API process (JobCoordinator) or in a Celery worker (get_celery_db).
The returned dict is a JSON-safe summary.
"""
import logging
from typing import Dict

from auditdesk.db.database import session_scope
from auditdesk.services.audits import AuditLifecycleManager
from auditdesk.services.overdue import OverdueProcessor
from auditdesk.services.scheduler import JobTask
from auditdesk.services.tiers import TierService

logger = logging.getLogger(__name__)

TIER_UPDATES = "tierUpdates"
AUDIT_SCHEDULE_UPDATES = "auditScheduleUpdates"
OVERDUE_AUDIT_CHECK = "overdueAuditCheck"
ORPHAN_CLEANUP = "orphanCleanup"


async def update_company_tiers(db_scope=session_scope) -> dict:
    logger.info("Updating company tiers...")
    async with db_scope() as db:
        result = await TierService.from_session(db).update_all_tiers()

    logger.info(f"Updated tiers for {result.updated_count} out of {result.total_companies} companies")
    for change in result.changes:
        logger.info(f"  - {change.company_name}: {change.old_tier.value} -> {change.new_tier.value}")
    return {"total_companies": result.total_companies, "updated_count": result.updated_count}


async def update_audit_schedules(db_scope=session_scope) -> dict:
    logger.info("Updating audit schedules...")
    async with db_scope() as db:
        result = await AuditLifecycleManager.from_session(db).update_audit_schedules_for_all_companies()

    logger.info(f"Updated {result.updated} audit schedules, created {result.created} new audits")
    return {"updated": result.updated, "created": result.created}


async def process_overdue_audits(db_scope=session_scope) -> dict:
    logger.info("Processing overdue audits...")
    async with db_scope() as db:
        result = await OverdueProcessor.from_session(db).process_overdue_audits()

    logger.info(
        f"Marked {result.marked_count} audits overdue, "
        f"requested reminders for {result.notified_count} of {len(result.audits)}"
    )
    return {"marked_count": result.marked_count, "notified_count": result.notified_count}


async def cleanup_orphaned_audits(db_scope=session_scope) -> dict:
    async with db_scope() as db:
        result = await AuditLifecycleManager.from_session(db).cleanup_orphaned_audits()
    return {"deleted_count": result.deleted_count}


def build_job_tasks(db_scope=session_scope) -> Dict[str, JobTask]:
    """Job name -> zero-argument coroutine function, as the coordinator expects."""
    return {
        TIER_UPDATES: lambda: update_company_tiers(db_scope),
        AUDIT_SCHEDULE_UPDATES: lambda: update_audit_schedules(db_scope),
        OVERDUE_AUDIT_CHECK: lambda: process_overdue_audits(db_scope),
        ORPHAN_CLEANUP: lambda: cleanup_orphaned_audits(db_scope),
    }
