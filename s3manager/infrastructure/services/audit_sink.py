"""SQL-backed audit sink: writes audit events to the audit_log table.

Each event is written in its own session and transaction so that it
survives a rollback of the operation being audited, and so that a broken
audit store never fails that operation.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from s3manager.application.dtos.audit import AuditEvent
from s3manager.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository
from s3manager.shared.context import get_request_context
from s3manager.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_SENSITIVE_KEYS = frozenset(
    {"secret_access_key", "secret_key", "secret", "password", "token", "authorization"}
)


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Redact secret-looking keys before storage."""
    clean: dict[str, Any] = {}
    for key, value in details.items():
        if key.lower() in _SENSITIVE_KEYS:
            clean[key] = "[REDACTED]"
        elif isinstance(value, dict):
            clean[key] = _sanitize_details(value)
        else:
            clean[key] = value
    return clean


class SqlAuditSink:
    """IAuditSink implementation over AuditLogRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        """Append one audit entry enriched with request context. Never raises."""
        ctx = get_request_context()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await AuditLogRepository(session).create(
                        AuditEvent(
                            action=event.action,
                            resource=event.resource,
                            resource_id=event.resource_id,
                            success=event.success,
                            user_id=event.user_id or ctx.user_id,
                            error=event.error,
                            details=_sanitize_details(event.details),
                        ),
                        client_ip=ctx.ip_address,
                        user_agent=ctx.user_agent,
                        request_id=ctx.request_id,
                    )
        except Exception:
            logger.exception(
                "Failed to record audit event %s on %s/%s",
                event.action,
                event.resource,
                event.resource_id,
            )
