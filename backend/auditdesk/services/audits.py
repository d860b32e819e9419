"""
Audit lifecycle: creation, completion with chained rescheduling, and the
reconciliation pass that keeps every company's next audit in line with its tier.

Status transitions:
    SCHEDULED -> COMPLETED   (complete_audit)
    SCHEDULED -> OVERDUE     (OverdueProcessor)
    OVERDUE   -> COMPLETED   (complete_audit)
COMPLETED is terminal.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.adapters.notifications import NotificationGateway, StoreNotificationGateway
from auditdesk.adapters.stores import (
    AuditStore, CompanyStore, UserStore,
    SqlAuditStore, SqlCompanyStore, SqlUserStore, IdLike, as_uuid,
)
from auditdesk.core.clock import to_naive_utc, utcnow
from auditdesk.core.config import settings
from auditdesk.core.errors import InternalError, NoEligibleAssigneeError, NotFoundError, ValidationFailure
from auditdesk.db.models import Audit, AuditStatus, Company, CompanyTier, NotificationType, UserRole
from auditdesk.services.audit_dates import (
    align_to_audit_weekday, calculate_next_audit_date, should_reschedule_based_on_tier,
)

logger = logging.getLogger(__name__)

# Roles tried, in order, when the preferred assignee does not exist
ASSIGNEE_ROLE_FALLBACK = (UserRole.CEO, UserRole.MANAGER)

UPCOMING_STATS_DAYS = 30


@dataclass
class AuditDetails:
    """Audit joined with the names the UI shows next to it"""
    audit: Audit
    company_name: str
    company_tier: CompanyTier
    assignee_username: Optional[str] = None


@dataclass
class ScheduleSyncResult:
    created: int = 0
    updated: int = 0


@dataclass
class OrphanCleanupResult:
    deleted_count: int = 0
    deleted_audit_ids: List[uuid.UUID] = field(default_factory=list)


class AuditLifecycleManager:
    def __init__(
        self,
        companies: CompanyStore,
        audits: AuditStore,
        users: UserStore,
        notifications: NotificationGateway,
        clock=utcnow,
        allow_unresolved_assignee: Optional[bool] = None,
        reminder_lead_days: Optional[int] = None,
    ):
        self.companies = companies
        self.audits = audits
        self.users = users
        self.notifications = notifications
        self.clock = clock
        self.allow_unresolved_assignee = (
            settings.ALLOW_UNRESOLVED_ASSIGNEE if allow_unresolved_assignee is None else allow_unresolved_assignee
        )
        self.reminder_lead_days = (
            settings.AUDIT_REMINDER_LEAD_DAYS if reminder_lead_days is None else reminder_lead_days
        )

    @classmethod
    def from_session(cls, db: AsyncSession, **kwargs) -> "AuditLifecycleManager":
        return cls(
            SqlCompanyStore(db),
            SqlAuditStore(db),
            SqlUserStore(db),
            kwargs.pop("notifications", None) or StoreNotificationGateway(db),
            **kwargs,
        )

    # === Single-audit operations ===

    async def create_audit(
        self,
        company_id: IdLike,
        scheduled_date: datetime,
        assigned_to: IdLike,
        notes: Optional[str] = None,
    ) -> Audit:
        company = await self.companies.get(company_id)
        if company is None:
            raise NotFoundError("Company not found")
        return await self._create_for(company, scheduled_date, as_uuid(assigned_to), notes)

    async def get_audit(self, audit_id: IdLike) -> Optional[AuditDetails]:
        """Audit with its company name; None if either no longer exists."""
        audit = await self.audits.get(audit_id)
        if audit is None:
            return None
        company = await self.companies.get(audit.company_id)
        if company is None:
            return None
        return AuditDetails(audit, company.name, company.tier)

    async def list_audits(
        self,
        company_id: Optional[IdLike] = None,
        assigned_to: Optional[IdLike] = None,
        status: Optional[AuditStatus] = None,
        scheduled_from: Optional[datetime] = None,
        scheduled_to: Optional[datetime] = None,
    ) -> List[AuditDetails]:
        audits = await self.audits.list(
            company_id=company_id,
            assigned_to=assigned_to,
            status=status,
            scheduled_from=to_naive_utc(scheduled_from) if scheduled_from else None,
            scheduled_to=to_naive_utc(scheduled_to) if scheduled_to else None,
        )
        return await self._with_companies(audits)

    async def get_company_audits(self, company_id: IdLike) -> List[Audit]:
        return await self.audits.list(company_id=company_id)

    async def update_audit(self, audit_id: IdLike, **fields) -> Audit:
        existing = await self.audits.get(audit_id)
        if existing is None:
            raise NotFoundError("Audit not found")

        for required in ("scheduled_date", "assigned_to"):
            if required in fields and fields[required] is None:
                raise ValidationFailure(f"{required} cannot be cleared")

        if "scheduled_date" in fields:
            fields["scheduled_date"] = align_to_audit_weekday(fields["scheduled_date"])
        audit = await self.audits.update(existing.id, **fields)

        if "scheduled_date" in fields:
            await self._request_upcoming_reminder(audit)
        return audit

    async def delete_audit(self, audit_id: IdLike) -> bool:
        return await self.audits.delete(audit_id)

    async def complete_audit(self, audit_id: IdLike, notes: Optional[str] = None) -> Optional[Audit]:
        """
        Mark an audit completed and chain the company's next audit.

        Accepted from SCHEDULED and OVERDUE. The next audit uses the company's
        tier as of now, and the same assignee. Returns None for unknown ids.
        """
        audit = await self.audits.get(audit_id)
        if audit is None:
            return None

        if audit.status == AuditStatus.COMPLETED:
            logger.info(f"Audit {audit.id} is already completed, not scheduling another")
            return audit

        fields = {"status": AuditStatus.COMPLETED, "completed_date": self.clock()}
        if notes:
            fields["notes"] = notes
        audit = await self.audits.update(audit.id, **fields)

        await self.schedule_next_audit(audit.company_id, audit.assigned_to)
        return audit

    # === Scheduling ===

    async def schedule_next_audit(self, company_id: IdLike, assigned_to: IdLike) -> Audit:
        company = await self._require_company(company_id)
        next_date = calculate_next_audit_date(company.tier, self.clock())
        return await self._create_for(
            company,
            next_date,
            as_uuid(assigned_to),
            f"Automatically scheduled for Wednesday after previous audit completion ({company.tier.value})",
        )

    async def schedule_initial_audits(self, company_id: IdLike, assigned_to: IdLike) -> List[Audit]:
        company = await self._require_company(company_id)
        first_date = calculate_next_audit_date(company.tier, self.clock())
        audit = await self._create_for(
            company,
            first_date,
            as_uuid(assigned_to),
            f"Initial audit scheduled for Wednesday based on company tier ({company.tier.value})",
        )
        return [audit]

    async def schedule_audit_for_new_company(self, company_id: IdLike, created_by: Optional[IdLike]) -> Audit:
        company = await self._require_company(company_id)

        assigned_to = await self.find_suitable_assignee(created_by)
        if assigned_to is None:
            raise NoEligibleAssigneeError(f"No user can be assigned to audits for company {company.id}")

        first_date = calculate_next_audit_date(company.tier, self.clock())
        audit = await self._create_for(
            company,
            first_date,
            assigned_to,
            f"Initial audit automatically scheduled for Wednesday for new company ({company.tier.value})",
        )
        logger.info(
            f"Scheduled first audit for new company {company.name} ({company.tier.value}) "
            f"on {audit.scheduled_date.date().isoformat()}"
        )
        return audit

    async def find_suitable_assignee(self, default_user_id: Optional[IdLike]) -> Optional[uuid.UUID]:
        """
        Resolve who should own an audit.

        Order: the default user if it exists, then the first CEO, then the first
        manager, then any user. Returns None when nobody qualifies, unless
        allow_unresolved_assignee is set, in which case the default id is
        returned unchecked.
        """
        try:
            if default_user_id is not None and await self.users.get(default_user_id) is not None:
                return as_uuid(default_user_id)

            for role in ASSIGNEE_ROLE_FALLBACK:
                candidates = await self.users.list_by_role(role)
                if candidates:
                    return candidates[0].id

            anyone = await self.users.list(limit=1)
            if anyone:
                return anyone[0].id
        except InternalError as e:
            logger.error(f"User lookup failed while resolving assignee: {e}")

        logger.warning(f"No suitable assignee found (default={default_user_id})")
        if self.allow_unresolved_assignee and default_user_id is not None:
            return as_uuid(default_user_id)
        return None

    def should_reschedule_based_on_tier(self, tier: CompanyTier, current_scheduled_date: datetime) -> bool:
        return should_reschedule_based_on_tier(tier, current_scheduled_date, self.clock())

    async def update_audit_schedules_for_all_companies(self) -> ScheduleSyncResult:
        """
        Reconciliation pass over every company.

        - no SCHEDULED audit: create one at the tier-derived date
        - a SCHEDULED audit that drifted from the tier-derived date: move it in place
        Companies are processed sequentially; a failure is logged and the pass continues.
        """
        result = ScheduleSyncResult()

        for company in await self.companies.list():
            try:
                scheduled = await self.audits.list(company_id=company.id, status=AuditStatus.SCHEDULED)
                expected = calculate_next_audit_date(company.tier, self.clock())

                if not scheduled:
                    assigned_to = await self.find_suitable_assignee(company.created_by)
                    if assigned_to is None:
                        logger.warning(f"Skipping company {company.id}: no eligible assignee")
                        continue
                    await self._create_for(
                        company,
                        expected,
                        assigned_to,
                        f"Automatically scheduled for Wednesday based on company tier ({company.tier.value})",
                    )
                    result.created += 1
                    logger.info(f"Created audit for company {company.name} ({company.tier.value})")
                    continue

                if len(scheduled) > 1:
                    logger.warning(
                        f"Company {company.id} has {len(scheduled)} scheduled audits, reconciling the earliest"
                    )

                audit = scheduled[0]
                if self.should_reschedule_based_on_tier(company.tier, audit.scheduled_date):
                    await self.update_audit(
                        audit.id,
                        scheduled_date=expected,
                        notes=f"Rescheduled for Wednesday due to tier-based schedule ({company.tier.value})",
                    )
                    result.updated += 1
                    logger.info(f"Updated audit schedule for company {company.name} ({company.tier.value})")
            except Exception as e:
                logger.exception(f"Error updating audit schedule for company {company.id}: {e}")

        return result

    # === Queries & maintenance ===

    async def get_upcoming_audits(self, days: int = 7) -> List[AuditDetails]:
        now = self.clock()
        audits = await self.audits.list(
            status=AuditStatus.SCHEDULED,
            scheduled_from=now,
            scheduled_to=now + timedelta(days=days),
        )
        details = await self._with_companies(audits)
        for item in details:
            user = await self.users.get(item.audit.assigned_to)
            item.assignee_username = user.username if user else None
        return details

    async def get_audit_statistics(self) -> dict:
        now = self.clock()
        audits = await self.audits.list()

        scheduled = [a for a in audits if a.status == AuditStatus.SCHEDULED]
        overdue = [
            a for a in audits
            if a.status == AuditStatus.OVERDUE
            or (a.status == AuditStatus.SCHEDULED and a.scheduled_date < now)
        ]
        upcoming = [
            a for a in scheduled
            if now <= a.scheduled_date <= now + timedelta(days=UPCOMING_STATS_DAYS)
        ]
        return {
            "total": len(audits),
            "scheduled": len(scheduled),
            "completed": sum(1 for a in audits if a.status == AuditStatus.COMPLETED),
            "overdue": len(overdue),
            "upcoming_this_month": len(upcoming),
        }

    async def cleanup_orphaned_audits(self) -> OrphanCleanupResult:
        """Delete audits whose company no longer exists."""
        result = OrphanCleanupResult()
        for audit in await self.audits.list():
            try:
                if await self.companies.get(audit.company_id) is not None:
                    continue
                if await self.audits.delete(audit.id):
                    result.deleted_audit_ids.append(audit.id)
            except Exception as e:
                logger.exception(f"Failed to delete orphaned audit {audit.id}: {e}")

        result.deleted_count = len(result.deleted_audit_ids)
        logger.info(f"Cleaned up {result.deleted_count} orphaned audits")
        return result

    # === Helpers ===

    async def _require_company(self, company_id: IdLike) -> Company:
        company = await self.companies.get(company_id)
        if company is None:
            raise NotFoundError("Company not found")
        return company

    async def _create_for(
        self,
        company: Company,
        scheduled_date: datetime,
        assigned_to: uuid.UUID,
        notes: Optional[str],
    ) -> Audit:
        audit = await self.audits.create(
            company_id=company.id,
            scheduled_date=align_to_audit_weekday(scheduled_date),
            assigned_to=assigned_to,
            status=AuditStatus.SCHEDULED,
            notes=notes,
        )
        await self._request_upcoming_reminder(audit, company)
        return audit

    async def _request_upcoming_reminder(self, audit: Audit, company: Optional[Company] = None) -> None:
        company = company or await self.companies.get(audit.company_id)
        company_name = company.name if company else "Unknown Company"
        await self.notifications.request(
            audit.assigned_to,
            NotificationType.AUDIT_DUE,
            audit.company_id,
            audit.scheduled_date - timedelta(days=self.reminder_lead_days),
            title="Upcoming Audit",
            message=f"Audit for {company_name} is scheduled for {audit.scheduled_date:%a %b %d %Y}",
        )

    async def _with_companies(self, audits: List[Audit]) -> List[AuditDetails]:
        details = []
        for audit in audits:
            company = await self.companies.get(audit.company_id)
            if company is None:
                continue
            details.append(AuditDetails(audit, company.name, company.tier))
        return details
