"""DTOs for audit events (what the core reports) and stored audit entries."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class AuditEvent:
    """One audit record as emitted by the registry or the transfer engine."""

    action: str
    resource: str
    resource_id: str | None
    success: bool
    user_id: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditLogEntry:
    """Stored audit entry (read-model for list/incident queries)."""

    id: str
    timestamp: datetime
    user_id: str | None
    action: str
    resource: str
    resource_id: str | None
    success: bool
    error: str | None
    details: dict[str, Any] | None
    client_ip: str | None
    user_agent: str | None
    request_id: str | None
