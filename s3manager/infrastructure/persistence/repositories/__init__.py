"""Repositories: map ORM rows to domain entities and DTOs."""

from s3manager.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository
from s3manager.infrastructure.persistence.repositories.storage_config_repo import (
    StorageConfigRepository,
)

__all__ = ["AuditLogRepository", "StorageConfigRepository"]
