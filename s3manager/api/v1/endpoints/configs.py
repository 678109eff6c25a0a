"""Storage configuration API: thin routes over ConfigRegistry.

Create and update probe the backend before anything is written.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from s3manager.api.v1.dependencies import (
    CurrentPrincipal,
    get_auto_provision_service,
    get_config_registry,
    get_config_registry_for_write,
    get_transfer_engine_for_write,
)
from s3manager.application.services import (
    AutoProvisionService,
    ConfigRegistry,
    TransferEngine,
)
from s3manager.application.services.config_registry import to_view
from s3manager.core.limiter import limit_provision, limit_writes
from s3manager.schemas.storage_config import (
    AutoProvisionRequest,
    StorageConfigCreateRequest,
    StorageConfigDeleteResponse,
    StorageConfigDetail,
    StorageConfigSummary,
    StorageConfigUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=list[StorageConfigSummary])
async def list_configs(
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry)],
):
    """List the caller's configurations with credentials masked."""
    views = await registry.list(principal.user_id)
    return [StorageConfigSummary.model_validate(v) for v in views]


@router.post("", response_model=StorageConfigDetail, status_code=201)
@limit_writes
async def create_config(
    request: Request,
    body: StorageConfigCreateRequest,
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
    engine: Annotated[TransferEngine, Depends(get_transfer_engine_for_write)],
):
    """Create a configuration after a successful connectivity test.

    The caller's first configuration becomes the default automatically.
    """
    created = await registry.create(
        principal.user_id,
        body.to_draft(),
        make_default=body.is_default,
        check=engine.check_connectivity,
    )
    return StorageConfigDetail.model_validate(created)


@router.post("/auto-provision", response_model=StorageConfigDetail, status_code=201)
@limit_provision
async def auto_provision_config(
    request: Request,
    principal: CurrentPrincipal,
    service: Annotated[AutoProvisionService, Depends(get_auto_provision_service)],
    body: AutoProvisionRequest | None = None,
):
    """Provision a self-hosted account and bucket; it becomes the default."""
    username = body.username if body is not None else None
    created = await service.provision(principal.user_id, username)
    return StorageConfigDetail.model_validate(created)


@router.get("/{config_id}", response_model=StorageConfigDetail)
async def get_config(
    config_id: str,
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry)],
):
    """Full configuration including the secret (owner or admin only)."""
    config = await registry.get(principal.user_id, config_id, is_admin=principal.is_admin)
    return StorageConfigDetail.model_validate(config)


@router.put("/{config_id}", response_model=StorageConfigDetail)
@limit_writes
async def update_config(
    request: Request,
    config_id: str,
    body: StorageConfigUpdateRequest,
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
    engine: Annotated[TransferEngine, Depends(get_transfer_engine_for_write)],
):
    """Update a configuration (partial). Omitting the secret keeps the stored one."""
    updated = await registry.update(
        principal.user_id,
        config_id,
        body.to_patch(),
        check=engine.check_connectivity,
    )
    return StorageConfigDetail.model_validate(updated)


@router.post("/{config_id}/set-default", response_model=StorageConfigSummary)
@limit_writes
async def set_default_config(
    request: Request,
    config_id: str,
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
):
    """Make this configuration the caller's default."""
    target = await registry.set_default(principal.user_id, config_id)
    return StorageConfigSummary.model_validate(to_view(target))


@router.delete("/{config_id}", response_model=StorageConfigDeleteResponse)
@limit_writes
async def delete_config(
    request: Request,
    config_id: str,
    principal: CurrentPrincipal,
    registry: Annotated[ConfigRegistry, Depends(get_config_registry_for_write)],
):
    """Delete a configuration. The last one cannot be deleted; a deleted default is replaced."""
    promoted = await registry.delete(principal.user_id, config_id)
    return StorageConfigDeleteResponse(
        deleted_id=config_id,
        promoted_default_id=promoted.id if promoted is not None else None,
    )
