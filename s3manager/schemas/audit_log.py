"""Request/response schemas for audit log API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditLogEntryResponse(BaseModel):
    """Single audit log entry (read)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    user_id: str | None
    action: str
    resource: str
    resource_id: str | None
    success: bool
    error: str | None = None
    details: dict[str, Any] | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    request_id: str | None = None


class AuditLogListResponse(BaseModel):
    """Paginated list of audit log entries."""

    items: list[AuditLogEntryResponse]
    skip: int
    limit: int
    total: int


class IncidentResponse(BaseModel):
    """Every entry recorded for one request id, oldest first."""

    request_id: str
    items: list[AuditLogEntryResponse]
