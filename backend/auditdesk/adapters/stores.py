"""
Store interfaces consumed by the audit engine, plus SQLAlchemy implementations.

The engine only depends on the Protocols below. The SQL stores commit every
write on its own, so one failing record never rolls back work already done
for other records in the same batch.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Protocol, Union

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.core.errors import InternalError
from auditdesk.db.models import (
    Company, Audit, User, TierChangeLog,
    AuditStatus, CompanyTier, UserRole,
)

logger = logging.getLogger(__name__)

IdLike = Union[uuid.UUID, str]


def as_uuid(value: IdLike) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


# === Interfaces ===

class CompanyStore(Protocol):
    async def get(self, company_id: IdLike) -> Optional[Company]: ...

    async def list(self, tier: Optional[CompanyTier] = None) -> List[Company]: ...

    async def update(self, company_id: IdLike, **fields) -> Optional[Company]: ...


class AuditStore(Protocol):
    async def create(self, **fields) -> Audit: ...

    async def get(self, audit_id: IdLike) -> Optional[Audit]: ...

    async def list(
        self,
        company_id: Optional[IdLike] = None,
        assigned_to: Optional[IdLike] = None,
        status: Optional[AuditStatus] = None,
        scheduled_from: Optional[datetime] = None,
        scheduled_to: Optional[datetime] = None,
        scheduled_before: Optional[datetime] = None,
    ) -> List[Audit]: ...

    async def update(self, audit_id: IdLike, **fields) -> Optional[Audit]: ...

    async def delete(self, audit_id: IdLike) -> bool: ...


class UserStore(Protocol):
    async def get(self, user_id: IdLike) -> Optional[User]: ...

    async def list_by_role(self, role: UserRole) -> List[User]: ...

    async def list(self, limit: Optional[int] = None) -> List[User]: ...


class TierChangeLogStore(Protocol):
    async def create(self, **fields) -> TierChangeLog: ...

    async def list(self, company_id: Optional[IdLike] = None) -> List[TierChangeLog]: ...

    async def count(self, since: Optional[datetime] = None) -> int: ...


# === SQLAlchemy implementations ===

class _SqlStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _scalars(self, stmt) -> list:
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalError(f"Store query failed: {e}") from e
        return list(result.scalars().all())

    async def _first(self, stmt):
        rows = await self._scalars(stmt.limit(1))
        return rows[0] if rows else None

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise InternalError(f"Failed to {action}") from e


class SqlCompanyStore(_SqlStore):

    async def get(self, company_id: IdLike) -> Optional[Company]:
        return await self._first(select(Company).where(Company.id == as_uuid(company_id)))

    async def list(self, tier: Optional[CompanyTier] = None) -> List[Company]:
        stmt = select(Company)
        if tier is not None:
            stmt = stmt.where(Company.tier == tier)
        return await self._scalars(stmt.order_by(Company.created_at, Company.id))

    async def update(self, company_id: IdLike, **fields) -> Optional[Company]:
        company = await self.get(company_id)
        if company is None:
            return None
        for key, value in fields.items():
            setattr(company, key, value)
        await self._commit(f"update company {company_id}")
        return company


class SqlAuditStore(_SqlStore):

    async def create(self, **fields) -> Audit:
        audit = Audit(**fields)
        self.db.add(audit)
        await self._commit(f"create audit for company {fields.get('company_id')}")
        return audit

    async def get(self, audit_id: IdLike) -> Optional[Audit]:
        return await self._first(select(Audit).where(Audit.id == as_uuid(audit_id)))

    async def list(
        self,
        company_id: Optional[IdLike] = None,
        assigned_to: Optional[IdLike] = None,
        status: Optional[AuditStatus] = None,
        scheduled_from: Optional[datetime] = None,
        scheduled_to: Optional[datetime] = None,
        scheduled_before: Optional[datetime] = None,
    ) -> List[Audit]:
        """List audits ordered by scheduled date, earliest first."""
        stmt = select(Audit)
        if company_id is not None:
            stmt = stmt.where(Audit.company_id == as_uuid(company_id))
        if assigned_to is not None:
            stmt = stmt.where(Audit.assigned_to == as_uuid(assigned_to))
        if status is not None:
            stmt = stmt.where(Audit.status == status)
        if scheduled_from is not None:
            stmt = stmt.where(Audit.scheduled_date >= scheduled_from)
        if scheduled_to is not None:
            stmt = stmt.where(Audit.scheduled_date <= scheduled_to)
        if scheduled_before is not None:
            stmt = stmt.where(Audit.scheduled_date < scheduled_before)
        return await self._scalars(stmt.order_by(Audit.scheduled_date, Audit.id))

    async def update(self, audit_id: IdLike, **fields) -> Optional[Audit]:
        audit = await self.get(audit_id)
        if audit is None:
            return None
        for key, value in fields.items():
            setattr(audit, key, value)
        await self._commit(f"update audit {audit_id}")
        return audit

    async def delete(self, audit_id: IdLike) -> bool:
        audit = await self.get(audit_id)
        if audit is None:
            return False
        await self.db.delete(audit)
        await self._commit(f"delete audit {audit_id}")
        return True


class SqlUserStore(_SqlStore):

    async def get(self, user_id: IdLike) -> Optional[User]:
        try:
            uid = as_uuid(user_id)
        except ValueError:
            return None
        return await self._first(select(User).where(User.id == uid))

    async def list_by_role(self, role: UserRole) -> List[User]:
        return await self._scalars(
            select(User).where(User.role == role).order_by(User.created_at, User.id)
        )

    async def list(self, limit: Optional[int] = None) -> List[User]:
        stmt = select(User).order_by(User.created_at, User.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._scalars(stmt)


class SqlTierChangeLogStore(_SqlStore):

    async def create(self, **fields) -> TierChangeLog:
        log = TierChangeLog(**fields)
        self.db.add(log)
        await self._commit(f"log tier change for company {fields.get('company_id')}")
        return log

    async def list(self, company_id: Optional[IdLike] = None) -> List[TierChangeLog]:
        stmt = select(TierChangeLog)
        if company_id is not None:
            stmt = stmt.where(TierChangeLog.company_id == as_uuid(company_id))
        return await self._scalars(stmt.order_by(TierChangeLog.created_at.desc()))

    async def count(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(TierChangeLog)
        if since is not None:
            stmt = stmt.where(TierChangeLog.created_at >= since)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise InternalError(f"Store query failed: {e}") from e
        return int(result.scalar_one())
