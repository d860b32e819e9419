"""
Notification gateway.

The engine only *requests* notifications. Whether a request turns into a stored
notification (picked up later by the email/SMS transports) is controlled by
NOTIFICATIONS_ENABLED and is invisible to callers.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.core.config import settings
from auditdesk.core.errors import InternalError
from auditdesk.db.models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    async def request(
        self,
        user_id: uuid.UUID,
        kind: NotificationType,
        related_company_id: Optional[uuid.UUID],
        scheduled_for: datetime,
        title: str = "",
        message: str = "",
    ) -> None: ...


class StoreNotificationGateway:
    """Persists notification requests to the notifications table when enabled."""

    def __init__(self, db: AsyncSession, enabled: Optional[bool] = None):
        self.db = db
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    async def request(
        self,
        user_id: uuid.UUID,
        kind: NotificationType,
        related_company_id: Optional[uuid.UUID],
        scheduled_for: datetime,
        title: str = "",
        message: str = "",
    ) -> None:
        if not self.enabled:
            logger.debug(
                f"Notifications disabled, dropping {kind.value} for user {user_id} "
                f"(company={related_company_id}, scheduled_for={scheduled_for.isoformat()})"
            )
            return

        self.db.add(
            Notification(
                user_id=user_id,
                type=kind,
                title=title or kind.value.replace("_", " ").title(),
                message=message,
                related_company_id=related_company_id,
                scheduled_for=scheduled_for,
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalError(f"Failed to store notification for user {user_id}") from e
        logger.info(f"Queued {kind.value} notification for user {user_id}")
