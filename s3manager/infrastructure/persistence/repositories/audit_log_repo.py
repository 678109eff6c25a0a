"""Audit log repository. Append-only; implements IAuditLogRepository."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from s3manager.application.dtos.audit import AuditEvent, AuditLogEntry
from s3manager.infrastructure.persistence.models.audit_log import AuditLog
from s3manager.shared.utils.datetime import ensure_utc
from s3manager.shared.utils.generators import generate_cuid


def _orm_to_result(row: AuditLog) -> AuditLogEntry:
    """Map ORM to application DTO."""
    return AuditLogEntry(
        id=row.id,
        timestamp=ensure_utc(row.timestamp),  # type: ignore[arg-type]
        user_id=row.user_id,
        action=row.action,
        resource=row.resource,
        resource_id=row.resource_id,
        success=row.success,
        error=row.error,
        details=row.details,
        client_ip=row.client_ip,
        user_agent=row.user_agent,
        request_id=row.request_id,
    )


def _conditions(
    user_id: str | None,
    action: str | None,
    resource: str | None,
    from_timestamp: datetime | None,
    to_timestamp: datetime | None,
) -> list[Any]:
    conditions: list[Any] = []
    if user_id is not None:
        conditions.append(AuditLog.user_id == user_id)
    if action is not None:
        conditions.append(AuditLog.action == action)
    if resource is not None:
        conditions.append(AuditLog.resource == resource)
    if from_timestamp is not None:
        conditions.append(AuditLog.timestamp >= from_timestamp)
    if to_timestamp is not None:
        conditions.append(AuditLog.timestamp <= to_timestamp)
    return conditions


class AuditLogRepository:
    """Append-only audit log repository. No update/delete."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        event: AuditEvent,
        *,
        client_ip: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> AuditLogEntry:
        """Append one audit log entry; return created record."""
        row = AuditLog(
            id=generate_cuid(),
            user_id=event.user_id,
            action=event.action,
            resource=event.resource,
            resource_id=event.resource_id,
            success=event.success,
            error=event.error,
            details=event.details or None,
            client_ip=client_ip,
            user_agent=user_agent,
            request_id=request_id,
        )
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return _orm_to_result(row)

    async def list(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        user_id: str | None = None,
        action: str | None = None,
        resource: str | None = None,
        from_timestamp: datetime | None = None,
        to_timestamp: datetime | None = None,
    ) -> list[AuditLogEntry]:
        """List audit log entries with optional filters (newest first)."""
        conditions = _conditions(user_id, action, resource, from_timestamp, to_timestamp)
        stmt = (
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [_orm_to_result(r) for r in result.scalars().all()]

    async def count(
        self,
        *,
        user_id: str | None = None,
        action: str | None = None,
        resource: str | None = None,
        from_timestamp: datetime | None = None,
        to_timestamp: datetime | None = None,
    ) -> int:
        """Count entries matching the same filters as list."""
        conditions = _conditions(user_id, action, resource, from_timestamp, to_timestamp)
        result = await self.db.execute(
            select(func.count()).select_from(AuditLog).where(*conditions)
        )
        return int(result.scalar_one())

    async def list_by_request(self, request_id: str) -> list[AuditLogEntry]:
        """All entries recorded during one request (incident view), oldest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.request_id == request_id)
            .order_by(AuditLog.timestamp, AuditLog.id)
        )
        return [_orm_to_result(r) for r in result.scalars().all()]
