"""
Company tier routes
"""
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auditdesk.api.deps import get_tier_service
from auditdesk.db.models import CompanyTier, TierChangeReason
from auditdesk.services.tiers import TierService

router = APIRouter()


class TierOverrideRequest(BaseModel):
    new_tier: CompanyTier
    admin_user_id: uuid.UUID
    reason: Optional[str] = None


class TierChangeResponse(BaseModel):
    company_id: uuid.UUID
    company_name: str
    old_tier: CompanyTier
    new_tier: CompanyTier


class TierUpdateResponse(BaseModel):
    total_companies: int
    updated_count: int
    changes: List[TierChangeResponse]


class CompanyTierResponse(BaseModel):
    id: uuid.UUID
    name: str
    tier: CompanyTier
    ad_spend: float
    start_date: datetime

    class Config:
        from_attributes = True


class TierHistoryResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    old_tier: CompanyTier
    new_tier: CompanyTier
    reason: TierChangeReason
    changed_by: Optional[uuid.UUID]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class TierStatisticsResponse(BaseModel):
    distribution: Dict[str, int]
    recent_changes: int
    total_companies: int


class TierReviewResponse(BaseModel):
    company_id: uuid.UUID
    name: str
    tier: CompanyTier
    suggested_tier: CompanyTier
    reason: str

    class Config:
        from_attributes = True


@router.post("/update-all", response_model=TierUpdateResponse)
async def update_all_tiers(service: TierService = Depends(get_tier_service)):
    result = await service.update_all_tiers()
    return TierUpdateResponse(
        total_companies=result.total_companies,
        updated_count=result.updated_count,
        changes=[
            TierChangeResponse(
                company_id=c.company_id,
                company_name=c.company_name,
                old_tier=c.old_tier,
                new_tier=c.new_tier,
            )
            for c in result.changes
        ],
    )


@router.get("/statistics", response_model=TierStatisticsResponse)
async def get_tier_statistics(service: TierService = Depends(get_tier_service)):
    return await service.get_tier_statistics()


@router.get("/review", response_model=List[TierReviewResponse])
async def get_companies_needing_review(service: TierService = Depends(get_tier_service)):
    return [TierReviewResponse.model_validate(item) for item in await service.get_companies_needing_review()]


@router.get("/can-override")
async def can_override_tiers(user_id: uuid.UUID, service: TierService = Depends(get_tier_service)):
    return {"user_id": user_id, "can_override": await service.can_override_tiers(user_id)}


@router.post("/companies/{company_id}/override", response_model=CompanyTierResponse)
async def override_tier(
    company_id: uuid.UUID,
    data: TierOverrideRequest,
    service: TierService = Depends(get_tier_service),
):
    company = await service.override_tier(company_id, data.new_tier, data.admin_user_id, data.reason)
    return CompanyTierResponse.model_validate(company)


@router.get("/companies/{company_id}/history", response_model=List[TierHistoryResponse])
async def get_tier_history(company_id: uuid.UUID, service: TierService = Depends(get_tier_service)):
    return [TierHistoryResponse.model_validate(log) for log in await service.get_tier_history(company_id)]
