"""AutoProvisionService: provision, store as default, audit."""

import pytest

from s3manager.application.dtos.storage_config import StorageConfigDraft
from s3manager.application.services import AutoProvisionService
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ProvisioningError


class StubProvisioner:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def provision(self, owner_id: str, username: str) -> StorageConfigDraft:
        self.calls.append((owner_id, username))
        if self.error is not None:
            raise self.error
        return StorageConfigDraft(
            name=f"MinIO Default ({username})",
            backend_kind=BackendKind.SELF_HOSTED,
            access_key_id=f"s3mgr_{owner_id}",
            secret_access_key="generated-secret",
            bucket_name=f"s3mgr-{owner_id}",
            endpoint_url="minio:9000",
            use_tls=False,
        )


def _cloud_draft() -> StorageConfigDraft:
    return StorageConfigDraft(
        name="AWS",
        backend_kind=BackendKind.CLOUD,
        access_key_id="AK",
        secret_access_key="SK",
        bucket_name="b",
    )


async def test_provisioned_config_becomes_default(registry, audit_sink) -> None:
    existing = await registry.create("alice", _cloud_draft())
    provisioner = StubProvisioner()
    service = AutoProvisionService(registry, provisioner, audit_sink)

    config = await service.provision("alice", "  Alice  ")

    assert provisioner.calls == [("alice", "Alice")]
    assert config.is_default
    assert config.secret_access_key == "generated-secret"
    default = await registry.get_default("alice")
    assert default.id == config.id
    assert existing.id != config.id
    assert audit_sink.actions()[-2:] == ["config_create", "config_auto_provision"]
    assert audit_sink.last("config_auto_provision").resource_id == config.id


async def test_username_defaults_to_owner(registry, audit_sink) -> None:
    provisioner = StubProvisioner()
    await AutoProvisionService(registry, provisioner, audit_sink).provision("alice")
    assert provisioner.calls == [("alice", "alice")]


async def test_failure_is_audited_and_nothing_stored(registry, audit_sink) -> None:
    service = AutoProvisionService(
        registry, StubProvisioner(ProvisioningError("user_add", "boom")), audit_sink
    )
    with pytest.raises(ProvisioningError):
        await service.provision("alice")
    event = audit_sink.last("config_auto_provision")
    assert not event.success
    assert event.details == {"step": "user_add"}
    assert await registry.list("alice") == []
