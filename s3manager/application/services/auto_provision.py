"""Auto-provisioning use case: backend account first, then the registry record.

The provisioner talks to the backend's admin API; the registry stores the
returned draft as the owner's new default. One audit event covers the whole
operation.
"""

from __future__ import annotations

import asyncio

from s3manager.application.dtos.audit import AuditEvent
from s3manager.application.interfaces.services import IAuditSink, IBackendProvisioner
from s3manager.application.services.config_registry import ConfigRegistry
from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.exceptions import S3ManagerException
from s3manager.shared.enums import AuditAction, AuditResource
from s3manager.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class AutoProvisionService:
    """Provision a self-hosted account for an owner and make it their default."""

    def __init__(
        self,
        registry: ConfigRegistry,
        provisioner: IBackendProvisioner,
        audit_sink: IAuditSink,
    ) -> None:
        self._registry = registry
        self._provisioner = provisioner
        self._audit = audit_sink

    async def provision(self, owner_id: str, username: str | None = None) -> StorageConfig:
        """Create the backend account and bucket, then store the config as default.

        Raises:
            ProvisioningError: If an admin call or bucket creation fails.
        """
        display_name = (username or "").strip() or owner_id
        try:
            draft = await asyncio.to_thread(
                self._provisioner.provision, owner_id, display_name
            )
            config = await self._registry.create(owner_id, draft, make_default=True)
        except S3ManagerException as exc:
            logger.warning("Auto-provisioning failed for owner %s: %s", owner_id, exc.message)
            await self._audit.record(
                AuditEvent(
                    action=AuditAction.CONFIG_AUTO_PROVISION.value,
                    resource=AuditResource.STORAGE_CONFIG.value,
                    resource_id=None,
                    success=False,
                    user_id=owner_id,
                    error=exc.message,
                    details=dict(exc.details),
                )
            )
            raise
        await self._audit.record(
            AuditEvent(
                action=AuditAction.CONFIG_AUTO_PROVISION.value,
                resource=AuditResource.STORAGE_CONFIG.value,
                resource_id=config.id,
                success=True,
                user_id=owner_id,
                details={"bucket_name": config.bucket_name},
            )
        )
        return config
