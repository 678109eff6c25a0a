"""Storage configuration repository. Implements IStorageConfigRepository.

Secrets are encrypted on the way in and decrypted on the way out, so the
rest of the application only ever handles plaintext domain entities.
"""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.infrastructure.persistence.models.storage_config import StorageConfigModel
from s3manager.infrastructure.persistence.repositories.base import BaseRepository
from s3manager.infrastructure.security.encryption import SecretEncryptor
from s3manager.shared.utils.datetime import ensure_utc, utc_now


class StorageConfigRepository(BaseRepository[StorageConfigModel]):
    """Storage configurations keyed by id, listed per owner in creation order."""

    def __init__(self, db: AsyncSession, encryptor: SecretEncryptor) -> None:
        super().__init__(db, StorageConfigModel)
        self._encryptor = encryptor

    def _to_entity(self, row: StorageConfigModel) -> StorageConfig:
        """Map ORM to domain entity (decrypts the secret)."""
        return StorageConfig(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            backend_kind=BackendKind(row.backend_kind),
            access_key_id=row.access_key_id,
            secret_access_key=self._encryptor.decrypt(row.secret_access_key_encrypted),
            bucket_name=row.bucket_name,
            region=row.region,
            endpoint_url=row.endpoint_url,
            use_tls=row.use_tls,
            is_default=row.is_default,
            created_at=ensure_utc(row.created_at) or utc_now(),
            updated_at=ensure_utc(row.updated_at) or utc_now(),
        )

    def _apply(self, row: StorageConfigModel, config: StorageConfig) -> None:
        row.owner_id = config.owner_id
        row.name = config.name
        row.backend_kind = config.backend_kind.value
        row.access_key_id = config.access_key_id
        row.secret_access_key_encrypted = self._encryptor.encrypt(config.secret_access_key)
        row.region = config.region
        row.bucket_name = config.bucket_name
        row.endpoint_url = config.endpoint_url
        row.use_tls = config.use_tls
        row.is_default = config.is_default
        row.updated_at = config.updated_at

    async def get(self, config_id: str) -> StorageConfig | None:
        """Return the config by id regardless of owner, or None."""
        row = await self.get_by_id(config_id)
        return self._to_entity(row) if row is not None else None

    async def lock_owner(self, owner_id: str) -> None:
        """Serialize writers for one owner until the transaction ends.

        Row locks cannot cover an owner with no rows yet, so Postgres takes a
        transaction-scoped advisory lock keyed on the owner. SQLite already
        serializes writers per database.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(select(func.pg_advisory_xact_lock(func.hashtext(owner_id))))

    async def list_by_owner(
        self, owner_id: str, *, for_update: bool = False
    ) -> list[StorageConfig]:
        """Return the owner's configs oldest first; optionally row-locked (SELECT ... FOR UPDATE)."""
        stmt = (
            select(StorageConfigModel)
            .where(StorageConfigModel.owner_id == owner_id)
            .order_by(StorageConfigModel.created_at, StorageConfigModel.id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return [self._to_entity(r) for r in result.scalars().all()]

    async def list_all(self) -> list[StorageConfig]:
        """Return every config ordered by owner then creation."""
        result = await self.db.execute(
            select(StorageConfigModel).order_by(
                StorageConfigModel.owner_id,
                StorageConfigModel.created_at,
                StorageConfigModel.id,
            )
        )
        return [self._to_entity(r) for r in result.scalars().all()]

    async def add(self, config: StorageConfig) -> StorageConfig:
        """Insert a new config and return it as stored."""
        row = StorageConfigModel(id=config.id, created_at=config.created_at)
        self._apply(row, config)
        await self.create(row)
        return self._to_entity(row)

    async def save(self, config: StorageConfig) -> StorageConfig:
        """Persist all fields of config; inserts when the id is unknown."""
        row = await self.get_by_id(config.id)
        if row is None:
            return await self.add(config)
        self._apply(row, config)
        await self.db.flush()
        return self._to_entity(row)

    async def set_default_flag(self, config_id: str, is_default: bool) -> None:
        """Set is_default on one row and flush."""
        await self.db.execute(
            update(StorageConfigModel)
            .where(StorageConfigModel.id == config_id)
            .values(is_default=is_default, updated_at=utc_now())
        )
        await self.db.flush()

    async def clear_defaults(self, owner_id: str) -> None:
        """Unset is_default on every row of the owner and flush."""
        await self.db.execute(
            update(StorageConfigModel)
            .where(
                StorageConfigModel.owner_id == owner_id,
                StorageConfigModel.is_default.is_(True),
            )
            .values(is_default=False)
        )
        await self.db.flush()

    async def delete(self, config_id: str) -> None:
        """Delete one row and flush."""
        await self.delete_by_id(config_id)
