"""Storage configuration and transfer dependencies (composition root).

Repositories, the registry, the transfer engine, bulk export/import and the
provisioner are built per request from the request's DB session and the
process-wide collaborators stored on app.state by the lifespan.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from s3manager.application.interfaces.services import IAuditSink
from s3manager.application.services import (
    AutoProvisionService,
    ConfigBulkService,
    ConfigRegistry,
    TransferEngine,
)
from s3manager.core.config import get_settings
from s3manager.infrastructure.external.storage.client_factory import BackendClientFactory
from s3manager.infrastructure.external.storage.provisioning import (
    AdminBackendConfig,
    BackendProvisioner,
)
from s3manager.infrastructure.persistence.database import get_db, get_db_transactional
from s3manager.infrastructure.persistence.repositories import (
    AuditLogRepository,
    StorageConfigRepository,
)
from s3manager.infrastructure.security.encryption import get_secret_encryptor


def get_client_factory(request: Request) -> BackendClientFactory:
    """Backend client factory built once in the lifespan."""
    factory = getattr(request.app.state, "client_factory", None)
    if factory is None:
        factory = BackendClientFactory.from_settings(get_settings())
        request.app.state.client_factory = factory
    return factory


def get_audit_sink(request: Request) -> IAuditSink:
    """Audit sink built once in the lifespan (writes in its own session)."""
    return request.app.state.audit_sink


def get_admin_backend_config(request: Request) -> AdminBackendConfig:
    """Admin credentials for auto-provisioning, resolved once at startup."""
    config = getattr(request.app.state, "admin_backend_config", None)
    if config is None:
        config = AdminBackendConfig.from_settings(get_settings())
        request.app.state.admin_backend_config = config
    return config


async def get_config_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> StorageConfigRepository:
    """Storage config repository for read paths."""
    return StorageConfigRepository(db, get_secret_encryptor())


async def get_config_repo_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> StorageConfigRepository:
    """Storage config repository bound to a request transaction."""
    return StorageConfigRepository(db, get_secret_encryptor())


async def get_config_registry(
    repo: Annotated[StorageConfigRepository, Depends(get_config_repo)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> ConfigRegistry:
    """Registry for read-only routes."""
    return ConfigRegistry(repo, audit_sink)


async def get_config_registry_for_write(
    repo: Annotated[StorageConfigRepository, Depends(get_config_repo_for_write)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> ConfigRegistry:
    """Registry whose mutations commit with the request transaction."""
    return ConfigRegistry(repo, audit_sink)


def _build_engine(
    registry: ConfigRegistry,
    factory: BackendClientFactory,
    audit_sink: IAuditSink,
) -> TransferEngine:
    settings = get_settings()
    return TransferEngine(
        registry,
        factory,
        audit_sink,
        multipart_threshold=settings.multipart_threshold,
        part_size=settings.multipart_part_size,
        part_concurrency=settings.multipart_part_concurrency,
        download_chunk_size=settings.download_chunk_size,
    )


async def get_transfer_engine(
    registry: Annotated[ConfigRegistry, Depends(get_config_registry)],
    factory: Annotated[BackendClientFactory, Depends(get_client_factory)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> TransferEngine:
    """Transfer engine; configuration lookups go through the read registry."""
    return _build_engine(registry, factory, audit_sink)


async def get_transfer_engine_for_write(
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
    factory: Annotated[BackendClientFactory, Depends(get_client_factory)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> TransferEngine:
    """Transfer engine sharing the write registry (connectivity checks on create/update)."""
    return _build_engine(registry, factory, audit_sink)


async def get_config_bulk_service(
    repo: Annotated[StorageConfigRepository, Depends(get_config_repo_for_write)],
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> ConfigBulkService:
    """Admin export/import over one transaction."""
    return ConfigBulkService(repo, registry, audit_sink)


def get_provisioner(
    admin_config: Annotated[AdminBackendConfig, Depends(get_admin_backend_config)],
    factory: Annotated[BackendClientFactory, Depends(get_client_factory)],
) -> BackendProvisioner:
    """MinIO auto-provisioner using the startup admin credentials."""
    return BackendProvisioner(admin_config, factory)


async def get_audit_log_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuditLogRepository:
    """Audit log repository for the admin query routes."""
    return AuditLogRepository(db)


async def get_auto_provision_service(
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
    provisioner: Annotated[BackendProvisioner, Depends(get_provisioner)],
    audit_sink: Annotated[IAuditSink, Depends(get_audit_sink)],
) -> AutoProvisionService:
    """Auto-provisioning use case; the new config commits with the request."""
    return AutoProvisionService(registry, provisioner, audit_sink)
