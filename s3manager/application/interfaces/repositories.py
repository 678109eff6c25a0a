"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference domain entities or application DTOs; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from s3manager.application.dtos.audit import AuditEvent, AuditLogEntry
    from s3manager.domain.entities.storage_config import StorageConfig


class IStorageConfigRepository(Protocol):
    """Protocol for storage configuration persistence (DIP)."""

    async def get(self, config_id: str) -> StorageConfig | None:
        """Return the config by id regardless of owner, or None."""

    async def lock_owner(self, owner_id: str) -> None:
        """Block other writers for this owner until the transaction ends."""

    async def list_by_owner(
        self, owner_id: str, *, for_update: bool = False
    ) -> list[StorageConfig]:
        """Return all of the owner's configs in creation order.

        With for_update the rows are locked until the transaction ends.
        """

    async def list_all(self) -> list[StorageConfig]:
        """Return every config (admin export)."""

    async def add(self, config: StorageConfig) -> StorageConfig:
        """Insert a new config."""

    async def save(self, config: StorageConfig) -> StorageConfig:
        """Persist changes to an existing config (insert if missing)."""

    async def set_default_flag(self, config_id: str, is_default: bool) -> None:
        """Set is_default on one row and flush."""

    async def clear_defaults(self, owner_id: str) -> None:
        """Set is_default to false on all of the owner's rows and flush."""

    async def delete(self, config_id: str) -> None:
        """Delete one row and flush."""


class IAuditLogRepository(Protocol):
    """Protocol for the append-only audit log."""

    async def create(
        self,
        event: AuditEvent,
        *,
        client_ip: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> AuditLogEntry:
        """Append one entry."""

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
        """List entries newest first with optional filters."""

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

    async def list_by_request(self, request_id: str) -> list[AuditLogEntry]:
        """All entries recorded for one request id, oldest first."""
