"""
Overdue audit processing: SCHEDULED audits whose date has passed become OVERDUE
and their assignees get a reminder request.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.adapters.notifications import NotificationGateway, StoreNotificationGateway
from auditdesk.adapters.stores import AuditStore, CompanyStore, SqlAuditStore, SqlCompanyStore
from auditdesk.core.clock import to_naive_utc, utcnow
from auditdesk.db.models import Audit, AuditStatus, NotificationType

logger = logging.getLogger(__name__)


@dataclass
class OverdueResult:
    audits: List[Audit] = field(default_factory=list)
    marked_count: int = 0
    notified_count: int = 0


class OverdueProcessor:
    def __init__(
        self,
        audits: AuditStore,
        companies: CompanyStore,
        notifications: NotificationGateway,
        clock=utcnow,
    ):
        self.audits = audits
        self.companies = companies
        self.notifications = notifications
        self.clock = clock

    @classmethod
    def from_session(cls, db: AsyncSession, **kwargs) -> "OverdueProcessor":
        return cls(
            SqlAuditStore(db),
            SqlCompanyStore(db),
            kwargs.pop("notifications", None) or StoreNotificationGateway(db),
            **kwargs,
        )

    @classmethod
    def from_manager(cls, manager) -> "OverdueProcessor":
        """Share stores and clock with an AuditLifecycleManager."""
        return cls(manager.audits, manager.companies, manager.notifications, clock=manager.clock)

    async def find_overdue(self) -> List[Audit]:
        return await self.audits.list(status=AuditStatus.SCHEDULED, scheduled_before=self.clock())

    async def mark_overdue_audits(self, audits: Optional[List[Audit]] = None) -> int:
        """Flip overdue SCHEDULED audits to OVERDUE. The scheduled date is left untouched."""
        if audits is None:
            audits = await self.find_overdue()

        now = self.clock()
        count = 0
        for audit in audits:
            try:
                if audit.status != AuditStatus.SCHEDULED or to_naive_utc(audit.scheduled_date) >= now:
                    continue
                await self.audits.update(audit.id, status=AuditStatus.OVERDUE)
                count += 1
            except Exception as e:
                logger.error(f"Failed to mark audit {audit.id} as overdue: {e}")
        return count

    async def process_overdue_audits(self) -> OverdueResult:
        overdue = await self.find_overdue()
        result = OverdueResult(audits=overdue)
        result.marked_count = await self.mark_overdue_audits(overdue)

        for audit in overdue:
            try:
                company = await self.companies.get(audit.company_id)
                company_name = company.name if company else "Unknown Company"
                await self.notifications.request(
                    audit.assigned_to,
                    NotificationType.AUDIT_DUE,
                    audit.company_id,
                    self.clock(),
                    title="Overdue Audit",
                    message=f"Audit for {company_name} was due on {audit.scheduled_date:%a %b %d %Y}",
                )
                result.notified_count += 1
            except Exception as e:
                logger.error(f"Failed to request overdue reminder for audit {audit.id}: {e}")

        return result
