"""
Shared FastAPI dependencies for API routes.
"""
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.db import get_db
from auditdesk.services.audits import AuditLifecycleManager
from auditdesk.services.overdue import OverdueProcessor
from auditdesk.services.scheduler import JobCoordinator
from auditdesk.services.tiers import TierService


def get_audit_manager(db: AsyncSession = Depends(get_db)) -> AuditLifecycleManager:
    return AuditLifecycleManager.from_session(db)


def get_overdue_processor(db: AsyncSession = Depends(get_db)) -> OverdueProcessor:
    return OverdueProcessor.from_session(db)


def get_tier_service(db: AsyncSession = Depends(get_db)) -> TierService:
    return TierService.from_session(db)


def get_job_coordinator(request: Request) -> JobCoordinator:
    """The coordinator built at startup (see auditdesk.main.lifespan)."""
    coordinator = getattr(request.app.state, "job_coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Job coordinator is not available")
    return coordinator
