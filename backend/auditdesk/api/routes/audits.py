"""
Audit routes
"""
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel

from auditdesk.api.deps import get_audit_manager, get_overdue_processor
from auditdesk.db.models import Audit, AuditStatus
from auditdesk.services.audits import AuditDetails, AuditLifecycleManager
from auditdesk.services.overdue import OverdueProcessor

router = APIRouter()


# === Schemas ===

class AuditCreate(BaseModel):
    company_id: uuid.UUID
    scheduled_date: datetime
    assigned_to: uuid.UUID
    notes: Optional[str] = None


class AuditUpdate(BaseModel):
    scheduled_date: Optional[datetime] = None
    assigned_to: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class AuditComplete(BaseModel):
    notes: Optional[str] = None


class ScheduleInitialRequest(BaseModel):
    company_id: uuid.UUID
    assigned_to: uuid.UUID


class ScheduleNewCompanyRequest(BaseModel):
    company_id: uuid.UUID
    created_by: Optional[uuid.UUID] = None


class AuditResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    scheduled_date: datetime
    completed_date: Optional[datetime]
    assigned_to: uuid.UUID
    status: AuditStatus
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    # Joined fields (only on some endpoints)
    company_name: Optional[str] = None
    company_tier: Optional[str] = None
    assigned_to_username: Optional[str] = None

    class Config:
        from_attributes = True


def _audit_response(audit: Audit) -> AuditResponse:
    return AuditResponse.model_validate(audit)


def _details_response(details: AuditDetails) -> AuditResponse:
    response = _audit_response(details.audit)
    response.company_name = details.company_name
    response.company_tier = details.company_tier.value
    response.assigned_to_username = details.assignee_username
    return response


# === Routes ===

@router.post("", response_model=AuditResponse)
async def create_audit(
    data: AuditCreate,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audit = await manager.create_audit(data.company_id, data.scheduled_date, data.assigned_to, data.notes)
    return _audit_response(audit)


@router.get("", response_model=List[AuditResponse])
async def list_audits(
    company_id: Optional[uuid.UUID] = None,
    assigned_to: Optional[uuid.UUID] = None,
    status: Optional[AuditStatus] = None,
    scheduled_from: Optional[datetime] = None,
    scheduled_to: Optional[datetime] = None,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audits = await manager.list_audits(
        company_id=company_id,
        assigned_to=assigned_to,
        status=status,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
    )
    return [_details_response(d) for d in audits]


@router.get("/statistics")
async def get_audit_statistics(manager: AuditLifecycleManager = Depends(get_audit_manager)):
    return await manager.get_audit_statistics()


@router.get("/upcoming", response_model=List[AuditResponse])
async def get_upcoming_audits(
    days: int = Query(default=7, ge=1, le=366),
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    return [_details_response(d) for d in await manager.get_upcoming_audits(days)]


@router.get("/company/{company_id}", response_model=List[AuditResponse])
async def get_company_audits(
    company_id: uuid.UUID,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    return [_audit_response(a) for a in await manager.get_company_audits(company_id)]


@router.post("/schedule/initial", response_model=List[AuditResponse])
async def schedule_initial_audits(
    data: ScheduleInitialRequest,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audits = await manager.schedule_initial_audits(data.company_id, data.assigned_to)
    return [_audit_response(a) for a in audits]


@router.post("/schedule/new-company", response_model=AuditResponse)
async def schedule_audit_for_new_company(
    data: ScheduleNewCompanyRequest,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audit = await manager.schedule_audit_for_new_company(data.company_id, data.created_by)
    return _audit_response(audit)


@router.post("/schedule/update-all")
async def update_all_audit_schedules(manager: AuditLifecycleManager = Depends(get_audit_manager)):
    result = await manager.update_audit_schedules_for_all_companies()
    return {"updated": result.updated, "created": result.created}


@router.post("/process-overdue")
async def process_overdue_audits(processor: OverdueProcessor = Depends(get_overdue_processor)):
    result = await processor.process_overdue_audits()
    return {
        "marked_count": result.marked_count,
        "notified_count": result.notified_count,
        "audits": [_audit_response(a) for a in result.audits],
    }


@router.post("/cleanup-orphans")
async def cleanup_orphaned_audits(manager: AuditLifecycleManager = Depends(get_audit_manager)):
    result = await manager.cleanup_orphaned_audits()
    return {"deleted_count": result.deleted_count, "deleted_audit_ids": result.deleted_audit_ids}


@router.get("/{audit_id}", response_model=AuditResponse)
async def get_audit(
    audit_id: uuid.UUID,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    details = await manager.get_audit(audit_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Audit not found")
    return _details_response(details)


@router.put("/{audit_id}", response_model=AuditResponse)
async def update_audit(
    audit_id: uuid.UUID,
    data: AuditUpdate,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audit = await manager.update_audit(audit_id, **data.model_dump(exclude_unset=True))
    return _audit_response(audit)


@router.delete("/{audit_id}")
async def delete_audit(
    audit_id: uuid.UUID,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    if not await manager.delete_audit(audit_id):
        raise HTTPException(status_code=404, detail="Audit not found")
    return {"status": "deleted"}


@router.post("/{audit_id}/complete", response_model=AuditResponse)
async def complete_audit(
    audit_id: uuid.UUID,
    data: Optional[AuditComplete] = None,
    manager: AuditLifecycleManager = Depends(get_audit_manager),
):
    audit = await manager.complete_audit(audit_id, data.notes if data else None)
    if audit is None:
        raise HTTPException(status_code=404, detail="Audit not found")
    return _audit_response(audit)
