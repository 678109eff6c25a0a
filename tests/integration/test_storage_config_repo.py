"""StorageConfigRepository: encryption at rest and ordering."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import CredentialException
from s3manager.infrastructure.persistence.models.storage_config import StorageConfigModel
from s3manager.infrastructure.persistence.repositories import StorageConfigRepository
from s3manager.infrastructure.security.encryption import SecretEncryptor


def _config(config_id: str, owner: str = "alice", default: bool = False) -> StorageConfig:
    return StorageConfig(
        id=config_id,
        owner_id=owner,
        name=f"Config {config_id}",
        backend_kind=BackendKind.SELF_HOSTED,
        access_key_id="minio",
        secret_access_key="plain-secret-value",
        bucket_name="bucket",
        endpoint_url="localhost:9000",
        use_tls=False,
        is_default=default,
    )


async def test_secret_encrypted_at_rest(config_repo, db_session) -> None:
    await config_repo.add(_config("c1", default=True))
    stored = (
        await db_session.execute(
            select(StorageConfigModel.secret_access_key_encrypted).where(
                StorageConfigModel.id == "c1"
            )
        )
    ).scalar_one()
    assert "plain-secret-value" not in stored
    assert (await config_repo.get("c1")).secret_access_key == "plain-secret-value"


async def test_round_trip_fields(config_repo) -> None:
    await config_repo.add(_config("c1", default=True))
    loaded = await config_repo.get("c1")
    assert loaded.backend_kind is BackendKind.SELF_HOSTED
    assert loaded.endpoint_url == "localhost:9000"
    assert loaded.use_tls is False
    assert loaded.is_default is True
    assert loaded.created_at.tzinfo is not None


async def test_get_missing_returns_none(config_repo) -> None:
    assert await config_repo.get("missing") is None


async def test_list_by_owner_in_creation_order(config_repo) -> None:
    for config_id in ("c1", "c2", "c3"):
        await config_repo.add(_config(config_id))
    await config_repo.add(_config("other", owner="bob"))
    assert [c.id for c in await config_repo.list_by_owner("alice")] == ["c1", "c2", "c3"]
    assert [c.id for c in await config_repo.list_all()] == ["c1", "c2", "c3", "other"]


async def test_save_inserts_unknown_id(config_repo) -> None:
    await config_repo.save(_config("fresh"))
    assert await config_repo.get("fresh") is not None


async def test_clear_and_set_default(config_repo) -> None:
    await config_repo.add(_config("c1", default=True))
    await config_repo.add(_config("c2"))
    await config_repo.clear_defaults("alice")
    await config_repo.set_default_flag("c2", True)
    flags = {c.id: c.is_default for c in await config_repo.list_by_owner("alice")}
    assert flags == {"c1": False, "c2": True}


async def test_delete(config_repo) -> None:
    await config_repo.add(_config("c1"))
    await config_repo.delete("c1")
    assert await config_repo.get("c1") is None


async def test_wrong_key_surfaces_credential_error(db_session, config_repo) -> None:
    await config_repo.add(_config("c1"))
    other = StorageConfigRepository(db_session, SecretEncryptor("rotated", "unit-test-salt"))
    with pytest.raises(CredentialException):
        await other.get("c1")


async def test_lock_owner_is_noop_on_sqlite(config_repo) -> None:
    await config_repo.lock_owner("alice")
    await config_repo.add(_config("c1", default=True))
    assert [c.id for c in await config_repo.list_by_owner("alice")] == ["c1"]


async def test_lock_owner_takes_advisory_lock_on_postgres(encryptor) -> None:
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    session.execute = AsyncMock()
    await StorageConfigRepository(session, encryptor).lock_owner("alice")
    (stmt,), _ = session.execute.call_args
    compiled = stmt.compile(dialect=postgresql.dialect())
    assert "pg_advisory_xact_lock(hashtext(" in str(compiled)
    assert "alice" in compiled.params.values()
