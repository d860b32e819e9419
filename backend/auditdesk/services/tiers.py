"""
Company tier classification and tier maintenance.

Tier rules:
- younger than NEW_COMPANY_MONTHS: TIER_2, whatever the spend
- otherwise ad spend strictly above TIER_1_AD_SPEND_THRESHOLD: TIER_1
- otherwise: TIER_3
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.adapters.notifications import NotificationGateway, StoreNotificationGateway
from auditdesk.adapters.stores import (
    CompanyStore, UserStore, TierChangeLogStore,
    SqlCompanyStore, SqlUserStore, SqlTierChangeLogStore, IdLike,
)
from auditdesk.core.clock import utcnow
from auditdesk.core.errors import NotFoundError, PermissionDeniedError, ValidationFailure
from auditdesk.db.models import (
    Company, CompanyTier, NotificationType, TierChangeLog, TierChangeReason, UserRole,
)

logger = logging.getLogger(__name__)

NEW_COMPANY_MONTHS = 3
DAYS_PER_MONTH = 30
TIER_1_AD_SPEND_THRESHOLD = 2500

TIER_LABELS = {
    CompanyTier.TIER_1: "Tier 1 (High Ad Spend & Established)",
    CompanyTier.TIER_2: "Tier 2 (New Company)",
    CompanyTier.TIER_3: "Tier 3 (Low Ad Spend & Established)",
}

TIER_REVIEW_REASONS = {
    CompanyTier.TIER_1: "High ad spend (>$2500) and established (>3 months) qualifies for Tier 1",
    CompanyTier.TIER_2: "Company is still new (<3 months)",
    CompanyTier.TIER_3: "Company is established (>3 months) with low ad spend (<=$2500)",
}

ADMIN_ROLES = (UserRole.CEO, UserRole.MANAGER)


def company_age_in_months(start_date: datetime, now: Optional[datetime] = None) -> float:
    """Age measured in 30-day months."""
    now = now or utcnow()
    return (now - start_date).total_seconds() / (DAYS_PER_MONTH * 86400)


def calculate_tier(start_date: datetime, ad_spend: float, now: Optional[datetime] = None) -> CompanyTier:
    if company_age_in_months(start_date, now) < NEW_COMPANY_MONTHS:
        return CompanyTier.TIER_2
    if ad_spend > TIER_1_AD_SPEND_THRESHOLD:
        return CompanyTier.TIER_1
    return CompanyTier.TIER_3


@dataclass
class TierChange:
    company_id: uuid.UUID
    company_name: str
    old_tier: CompanyTier
    new_tier: CompanyTier


@dataclass
class TierUpdateResult:
    total_companies: int = 0
    updated_count: int = 0
    changes: List[TierChange] = field(default_factory=list)


@dataclass
class TierReviewItem:
    company_id: uuid.UUID
    name: str
    tier: CompanyTier
    suggested_tier: CompanyTier
    reason: str


class TierService:
    def __init__(
        self,
        companies: CompanyStore,
        users: UserStore,
        tier_logs: TierChangeLogStore,
        notifications: NotificationGateway,
        clock=utcnow,
    ):
        self.companies = companies
        self.users = users
        self.tier_logs = tier_logs
        self.notifications = notifications
        self.clock = clock

    @classmethod
    def from_session(cls, db: AsyncSession, **kwargs) -> "TierService":
        return cls(
            SqlCompanyStore(db),
            SqlUserStore(db),
            SqlTierChangeLogStore(db),
            kwargs.pop("notifications", None) or StoreNotificationGateway(db),
            **kwargs,
        )

    def expected_tier(self, company: Company) -> CompanyTier:
        return calculate_tier(company.start_date, company.ad_spend, self.clock())

    async def update_all_tiers(self) -> TierUpdateResult:
        """
        Recompute every company's tier and persist the ones that changed.

        Companies are processed one at a time; a failure on one company is
        logged and does not stop the rest.
        """
        companies = await self.companies.list()
        result = TierUpdateResult(total_companies=len(companies))

        for company in companies:
            try:
                new_tier = self.expected_tier(company)
                if new_tier == company.tier:
                    continue

                old_tier = company.tier
                await self.companies.update(company.id, tier=new_tier)
                await self._log_tier_change(company.id, old_tier, new_tier, TierChangeReason.AUTOMATIC)
                if company.created_by:
                    await self._notify_tier_change(company.created_by, company, old_tier, new_tier)

                result.changes.append(TierChange(company.id, company.name, old_tier, new_tier))
                result.updated_count += 1
                logger.info(f"Tier changed for {company.name} ({company.id}): {old_tier.value} -> {new_tier.value}")
            except Exception as e:
                logger.exception(f"Error updating tier for company {company.id}: {e}")

        return result

    async def override_tier(
        self,
        company_id: IdLike,
        new_tier: CompanyTier,
        admin_user_id: IdLike,
        reason: Optional[str] = None,
    ) -> Company:
        """Manually set a company's tier. Only CEOs and managers may do this."""
        admin = await self.users.get(admin_user_id)
        if admin is None or admin.role not in ADMIN_ROLES:
            raise PermissionDeniedError("Insufficient permissions to override tier")

        company = await self.companies.get(company_id)
        if company is None:
            raise NotFoundError("Company not found")

        if company.tier == new_tier:
            raise ValidationFailure("Company is already in the specified tier")

        old_tier = company.tier
        company = await self.companies.update(company.id, tier=new_tier)
        await self._log_tier_change(
            company.id, old_tier, new_tier, TierChangeReason.MANUAL_OVERRIDE,
            changed_by=admin.id, notes=reason,
        )

        if company.created_by and company.created_by != admin.id:
            await self._notify_tier_change(
                company.created_by, company, old_tier, new_tier,
                message=f"Tier manually updated by {admin.username}",
            )

        await self.notifications.request(
            admin.id,
            NotificationType.COMPANY_MILESTONE,
            company.id,
            self.clock(),
            title="Tier Override Completed",
            message=f"Successfully updated {company.name} from {old_tier.value} to {new_tier.value}",
        )
        logger.info(f"Tier overridden for {company.name} by {admin.username}: {old_tier.value} -> {new_tier.value}")
        return company

    async def can_override_tiers(self, user_id: IdLike) -> bool:
        user = await self.users.get(user_id)
        return user is not None and user.role in ADMIN_ROLES

    async def get_tier_history(self, company_id: IdLike) -> List[TierChangeLog]:
        return await self.tier_logs.list(company_id=company_id)

    async def get_tier_statistics(self) -> dict:
        companies = await self.companies.list()

        distribution: Dict[str, int] = {tier.value: 0 for tier in CompanyTier}
        for company in companies:
            distribution[CompanyTier(company.tier).value] += 1

        recent_changes = await self.tier_logs.count(since=self.clock() - timedelta(days=7))
        return {
            "distribution": distribution,
            "recent_changes": recent_changes,
            "total_companies": len(companies),
        }

    async def get_companies_needing_review(self) -> List[TierReviewItem]:
        """Companies whose stored tier differs from the one the rules give today."""
        needs_review = []
        for company in await self.companies.list():
            suggested = self.expected_tier(company)
            if suggested != company.tier:
                needs_review.append(
                    TierReviewItem(
                        company_id=company.id,
                        name=company.name,
                        tier=company.tier,
                        suggested_tier=suggested,
                        reason=TIER_REVIEW_REASONS[suggested],
                    )
                )
        return needs_review

    async def _log_tier_change(
        self,
        company_id: uuid.UUID,
        old_tier: CompanyTier,
        new_tier: CompanyTier,
        reason: TierChangeReason,
        changed_by: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> None:
        await self.tier_logs.create(
            company_id=company_id,
            old_tier=old_tier,
            new_tier=new_tier,
            reason=reason,
            changed_by=changed_by,
            notes=notes,
        )

    async def _notify_tier_change(
        self,
        user_id: uuid.UUID,
        company: Company,
        old_tier: CompanyTier,
        new_tier: CompanyTier,
        message: Optional[str] = None,
    ) -> None:
        await self.notifications.request(
            user_id,
            NotificationType.COMPANY_MILESTONE,
            company.id,
            self.clock(),
            title="Company Tier Updated",
            message=message or f"{company.name} has been moved from {TIER_LABELS[old_tier]} to {TIER_LABELS[new_tier]}",
        )
