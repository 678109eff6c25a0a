"""Configuration registry: lifecycle of storage configurations per owner.

Owns the single-default rule: every owner with at least one configuration
has exactly one flagged default. Mutations run inside the caller's
transaction; default flips and delete-promotion lock the owner's rows
first so concurrent readers never observe zero or two defaults. Creates
also take a per-owner lock, since a new owner has no rows to lock.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from s3manager.application.dtos.audit import AuditEvent
from s3manager.application.dtos.storage_config import (
    StorageConfigDraft,
    StorageConfigPatch,
    StorageConfigView,
)
from s3manager.application.interfaces.repositories import IStorageConfigRepository
from s3manager.application.interfaces.services import IAuditSink
from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import (
    ConfigNotFoundError,
    ForbiddenError,
    LastConfigError,
    NoConfigurationError,
    S3ManagerException,
)
from s3manager.shared.enums import AuditAction, AuditResource
from s3manager.shared.telemetry.logging import get_logger
from s3manager.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

ConfigCheck = Callable[[StorageConfig], Awaitable[None]]


def _creation_order(config: StorageConfig) -> tuple[Any, str]:
    return (config.created_at, config.id)


def to_view(config: StorageConfig) -> StorageConfigView:
    """Redacted read-model: access key and secret reduced to a short masked prefix."""
    return StorageConfigView(
        id=config.id,
        owner_id=config.owner_id,
        name=config.name,
        backend_kind=config.backend_kind,
        access_key_id=config.masked_access_key,
        secret_access_key=config.masked_secret,
        region=config.region,
        bucket_name=config.bucket_name,
        endpoint_url=config.endpoint_url,
        use_tls=config.use_tls,
        is_default=config.is_default,
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


class ConfigRegistry:
    """CRUD over storage configurations with the single-default invariant."""

    def __init__(self, repo: IStorageConfigRepository, audit_sink: IAuditSink) -> None:
        self._repo = repo
        self._audit = audit_sink

    @asynccontextmanager
    async def _audited(
        self,
        owner_id: str,
        action: AuditAction,
        resource_id: str | None,
        details: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Record one audit event for the wrapped block, success or failure.

        The yielded dict may be extended with details discovered inside the block.
        """
        extra: dict[str, Any] = dict(details or {})
        try:
            yield extra
        except S3ManagerException as exc:
            await self._audit.record(
                AuditEvent(
                    action=action.value,
                    resource=AuditResource.STORAGE_CONFIG.value,
                    resource_id=resource_id,
                    success=False,
                    user_id=owner_id,
                    error=exc.message,
                    details=extra,
                )
            )
            raise
        await self._audit.record(
            AuditEvent(
                action=action.value,
                resource=AuditResource.STORAGE_CONFIG.value,
                resource_id=extra.pop("resource_id", resource_id),
                success=True,
                user_id=owner_id,
                details=extra,
            )
        )

    async def _find_owned(
        self, owner_id: str, config_id: str, configs: list[StorageConfig]
    ) -> StorageConfig:
        """Pick config_id out of the owner's rows; NotFound or Forbidden otherwise."""
        for config in configs:
            if config.id == config_id:
                return config
        other = await self._repo.get(config_id)
        if other is None:
            raise ConfigNotFoundError(config_id)
        raise ForbiddenError(AuditResource.STORAGE_CONFIG.value, "access")

    async def create(
        self,
        owner_id: str,
        draft: StorageConfigDraft,
        *,
        make_default: bool = False,
        check: ConfigCheck | None = None,
    ) -> StorageConfig:
        """Create a configuration for owner_id.

        The owner's first configuration is always the default. With
        make_default the new record takes over the default flag from any
        existing one in the same transaction. No backend I/O happens here;
        callers validate connectivity beforehand.

        Args:
            owner_id: Tenant the configuration belongs to.
            draft: Field values for the new configuration.
            make_default: Force the new record to become the default.
            check: Optional async probe run on the new record before it is
                written (e.g. a connectivity test); its errors abort the create.

        Returns:
            The created configuration (with secret).

        Raises:
            ValidationException: If required fields are missing.
        """
        async with self._audited(
            owner_id,
            AuditAction.CONFIG_CREATE,
            None,
            {"name": draft.name, "backend_kind": BackendKind(draft.backend_kind).value},
        ) as audit_details:
            config = StorageConfig(
                id=generate_cuid(),
                owner_id=owner_id,
                name=draft.name,
                backend_kind=draft.backend_kind,
                access_key_id=draft.access_key_id,
                secret_access_key=draft.secret_access_key,
                bucket_name=draft.bucket_name,
                region=draft.region,
                endpoint_url=draft.endpoint_url,
                use_tls=draft.use_tls,
                is_default=False,
            )
            if check is not None:
                await check(config)
            await self._repo.lock_owner(owner_id)
            existing = await self._repo.list_by_owner(owner_id, for_update=True)
            config.is_default = make_default or not existing
            if config.is_default and existing:
                await self._repo.clear_defaults(owner_id)
            created = await self._repo.add(config)
            audit_details["resource_id"] = created.id
            audit_details["is_default"] = created.is_default
        logger.info(
            "Created storage config %s for owner %s (default=%s)",
            created.id,
            owner_id,
            created.is_default,
        )
        return created

    async def get(
        self, owner_id: str, config_id: str, *, is_admin: bool = False
    ) -> StorageConfig:
        """Return the full record, secret included, to its owner or an admin.

        Raises:
            ConfigNotFoundError: If no configuration has this id.
            ForbiddenError: If the caller is neither owner nor admin.
        """
        async with self._audited(
            owner_id, AuditAction.CONFIG_READ_SECRET, config_id
        ):
            config = await self._repo.get(config_id)
            if config is None:
                raise ConfigNotFoundError(config_id)
            if config.owner_id != owner_id and not is_admin:
                raise ForbiddenError(AuditResource.STORAGE_CONFIG.value, "read")
        return config

    async def list(self, owner_id: str) -> list[StorageConfigView]:
        """Return the owner's configurations with credentials redacted."""
        configs = await self._repo.list_by_owner(owner_id)
        return [to_view(c) for c in configs]

    async def update(
        self,
        owner_id: str,
        config_id: str,
        patch: StorageConfigPatch,
        *,
        check: ConfigCheck | None = None,
    ) -> StorageConfig:
        """Merge mutable fields from patch into the owner's configuration.

        id, owner, creation time and the default flag carry over unchanged;
        a missing secret keeps the stored one. check, when given, runs on
        the merged record before it is saved.

        Raises:
            ConfigNotFoundError: If no configuration has this id.
            ForbiddenError: If the configuration belongs to another owner.
        """
        changes = {
            k: v
            for k, v in vars(patch).items()
            if v is not None and k != "clear_endpoint_url"
        }
        clear = ("endpoint_url",) if patch.clear_endpoint_url else ()
        changed_fields = sorted(
            {k for k in changes if k != "secret_access_key"} | set(clear)
        )
        if "secret_access_key" in changes:
            changed_fields.append("secret_access_key")
        async with self._audited(
            owner_id,
            AuditAction.CONFIG_UPDATE,
            config_id,
            {"fields": changed_fields},
        ):
            existing = await self._repo.get(config_id)
            if existing is None:
                raise ConfigNotFoundError(config_id)
            if existing.owner_id != owner_id:
                raise ForbiddenError(AuditResource.STORAGE_CONFIG.value, "update")
            updated = existing.merged(changes, clear)
            if check is not None:
                await check(updated)
            saved = await self._repo.save(updated)
        return saved

    async def set_default(self, owner_id: str, config_id: str) -> StorageConfig:
        """Make config_id the owner's default, clearing every other default.

        The clear and the set run against row-locked records in the caller's
        transaction, so no reader sees two defaults or none.
        """
        async with self._audited(
            owner_id, AuditAction.CONFIG_SET_DEFAULT, config_id
        ):
            configs = await self._repo.list_by_owner(owner_id, for_update=True)
            target = await self._find_owned(owner_id, config_id, configs)
            if not target.is_default or sum(c.is_default for c in configs) != 1:
                await self._repo.clear_defaults(owner_id)
                await self._repo.set_default_flag(target.id, True)
                target.is_default = True
        logger.info("Owner %s default storage config is now %s", owner_id, config_id)
        return target

    async def delete(self, owner_id: str, config_id: str) -> StorageConfig | None:
        """Delete the owner's configuration.

        When the deleted record was the default, the earliest-created
        remaining record is promoted in the same transaction.

        Returns:
            The promoted configuration, or None if the default did not move.

        Raises:
            LastConfigError: If this is the owner's only configuration.
        """
        promoted: StorageConfig | None = None
        async with self._audited(
            owner_id, AuditAction.CONFIG_DELETE, config_id
        ) as audit_details:
            configs = await self._repo.list_by_owner(owner_id, for_update=True)
            target = await self._find_owned(owner_id, config_id, configs)
            if len(configs) == 1:
                raise LastConfigError(config_id)
            await self._repo.delete(target.id)
            remaining = sorted(
                (c for c in configs if c.id != target.id), key=_creation_order
            )
            if not any(c.is_default for c in remaining):
                promoted = remaining[0]
                await self._repo.set_default_flag(promoted.id, True)
                promoted.is_default = True
                audit_details["promoted_default"] = promoted.id
        if promoted is not None:
            logger.info(
                "Deleted default storage config %s; promoted %s for owner %s",
                config_id,
                promoted.id,
                owner_id,
            )
        return promoted

    async def get_default(self, owner_id: str) -> StorageConfig:
        """Return the owner's default configuration.

        If no record is flagged (drift), falls back to the earliest record.

        Raises:
            NoConfigurationError: If the owner has no configurations.
        """
        configs = await self._repo.list_by_owner(owner_id)
        if not configs:
            raise NoConfigurationError(owner_id)
        for config in configs:
            if config.is_default:
                return config
        logger.warning("Owner %s has configs but no default; using earliest", owner_id)
        return min(configs, key=_creation_order)

    async def resolve(self, owner_id: str, config_id: str | None = None) -> StorageConfig:
        """Return the explicitly requested owned configuration, or the default."""
        if not config_id:
            return await self.get_default(owner_id)
        configs = await self._repo.list_by_owner(owner_id)
        if not configs:
            raise NoConfigurationError(owner_id)
        return await self._find_owned(owner_id, config_id, configs)

    async def repair_default(self, owner_id: str) -> StorageConfig | None:
        """Restore exactly one default for owner_id after bulk writes.

        Keeps the earliest flagged record when several are flagged, and
        promotes the earliest record when none is.
        """
        configs = sorted(
            await self._repo.list_by_owner(owner_id, for_update=True),
            key=_creation_order,
        )
        if not configs:
            return None
        flagged = [c for c in configs if c.is_default]
        keep = flagged[0] if flagged else configs[0]
        if len(flagged) != 1:
            await self._repo.clear_defaults(owner_id)
            await self._repo.set_default_flag(keep.id, True)
            keep.is_default = True
        return keep
