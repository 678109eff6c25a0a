"""Audit log API (admin): query entries and reconstruct one request's trail."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from s3manager.api.v1.dependencies import AdminPrincipal, get_audit_log_repo
from s3manager.infrastructure.persistence.repositories import AuditLogRepository
from s3manager.schemas.audit_log import (
    AuditLogEntryResponse,
    AuditLogListResponse,
    IncidentResponse,
)

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    _: AdminPrincipal,
    audit_repo: Annotated[AuditLogRepository, Depends(get_audit_log_repo)],
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: str | None = Query(None, description="Filter by user id"),
    action: str | None = Query(None, description="Filter by action (e.g. file_upload)"),
    resource: str | None = Query(None, description="Filter by resource"),
    from_timestamp: datetime | None = Query(None, description="From (inclusive) ISO8601"),
    to_timestamp: datetime | None = Query(None, description="To (inclusive) ISO8601"),
):
    """List audit entries newest first (paginated, optional filters)."""
    filters = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "from_timestamp": from_timestamp,
        "to_timestamp": to_timestamp,
    }
    items = await audit_repo.list(skip=skip, limit=limit, **filters)
    total = await audit_repo.count(**filters)
    return AuditLogListResponse(
        items=[AuditLogEntryResponse.model_validate(e) for e in items],
        skip=skip,
        limit=limit,
        total=total,
    )


@router.get("/incident/{request_id}", response_model=IncidentResponse)
async def get_incident(
    request_id: str,
    _: AdminPrincipal,
    audit_repo: Annotated[AuditLogRepository, Depends(get_audit_log_repo)],
):
    """Every entry recorded for one request id, oldest first."""
    items = await audit_repo.list_by_request(request_id)
    return IncidentResponse(
        request_id=request_id,
        items=[AuditLogEntryResponse.model_validate(e) for e in items],
    )
