"""ORM models. Import here so Base.metadata sees every table."""

from s3manager.infrastructure.persistence.models.audit_log import AuditLog
from s3manager.infrastructure.persistence.models.storage_config import StorageConfigModel

__all__ = ["AuditLog", "StorageConfigModel"]
