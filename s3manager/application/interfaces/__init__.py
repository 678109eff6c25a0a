"""Ports (Protocols) the application layer depends on."""

from s3manager.application.interfaces.repositories import (
    IAuditLogRepository,
    IStorageConfigRepository,
)
from s3manager.application.interfaces.services import (
    IAuditSink,
    IBackendClient,
    IBackendClientFactory,
    IBackendProvisioner,
)

__all__ = [
    "IAuditLogRepository",
    "IAuditSink",
    "IBackendClient",
    "IBackendClientFactory",
    "IBackendProvisioner",
    "IStorageConfigRepository",
]
