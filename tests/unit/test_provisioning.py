"""BackendProvisioner against a mocked MinIO admin client and the S3 fake."""

import json
from unittest.mock import MagicMock

import pytest

from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ProvisioningError
from s3manager.infrastructure.external.storage.client_factory import BucketClient
from s3manager.infrastructure.external.storage.provisioning import (
    AdminBackendConfig,
    BackendProvisioner,
    bucket_policy,
)
from tests.fakes import FakeS3Client

ADMIN = AdminBackendConfig(
    admin_url="http://minio.internal:9000",
    admin_access_key="minioadmin",
    admin_secret_key="minioadmin-secret",
    endpoint="minio.internal:9000",
    region="us-east-1",
    use_tls=False,
    bucket_prefix="s3mgr-",
)


class _AdminFactory:
    """Stands in for BackendClientFactory.build with admin credentials."""

    def __init__(self, s3: FakeS3Client) -> None:
        self.s3 = s3
        self.built: list[dict] = []

    def build(self, **kwargs) -> BucketClient:
        self.built.append(kwargs)
        return BucketClient(self.s3, kwargs["bucket_name"])


@pytest.fixture
def admin_client() -> MagicMock:
    client = MagicMock()
    client.policies = {}

    def _policy_add(name, path):
        with open(path) as fh:
            client.policies[name] = json.load(fh)

    client.policy_add.side_effect = _policy_add
    return client


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def provisioner(admin_client, fake_s3) -> BackendProvisioner:
    return BackendProvisioner(ADMIN, _AdminFactory(fake_s3), admin_client=admin_client)


def test_admin_host_strips_scheme() -> None:
    assert ADMIN.admin_host == "minio.internal:9000"
    assert ADMIN.admin_secure is False
    bare = AdminBackendConfig(**{**ADMIN.__dict__, "admin_url": "minio:9000"})
    assert bare.admin_host == "minio:9000"


def test_bucket_policy_is_scoped_to_bucket() -> None:
    resources = bucket_policy("s3mgr-alice")["Statement"][0]["Resource"]
    assert resources == ["arn:aws:s3:::s3mgr-alice", "arn:aws:s3:::s3mgr-alice/*"]


def test_provision_creates_user_policy_and_bucket(provisioner, admin_client, fake_s3) -> None:
    draft = provisioner.provision("AliceOwner-123", "alice")

    assert draft.backend_kind is BackendKind.SELF_HOSTED
    assert draft.access_key_id == "s3mgr_aliceown"
    assert draft.bucket_name == "s3mgr-aliceown"
    assert draft.endpoint_url == "minio.internal:9000"
    assert draft.use_tls is False
    assert draft.name == "MinIO Default (alice)"
    assert len(draft.secret_access_key) == 32

    admin_client.user_add.assert_called_once_with("s3mgr_aliceown", draft.secret_access_key)
    admin_client.policy_set.assert_called_once_with("s3mgr-policy-aliceown", user="s3mgr_aliceown")
    assert "s3mgr-policy-aliceown" in admin_client.policies
    assert "s3mgr-aliceown" in fake_s3.buckets


def test_existing_bucket_is_reused(provisioner, fake_s3) -> None:
    fake_s3.buckets.add("s3mgr-alice")
    draft = provisioner.provision("alice", "alice")
    assert draft.bucket_name == "s3mgr-alice"


def test_rerun_rotates_secret(provisioner) -> None:
    first = provisioner.provision("alice", "alice")
    second = provisioner.provision("alice", "alice")
    assert first.access_key_id == second.access_key_id
    assert first.secret_access_key != second.secret_access_key


def test_user_add_failure(provisioner, admin_client) -> None:
    admin_client.user_add.side_effect = RuntimeError("admin API unreachable")
    with pytest.raises(ProvisioningError) as exc_info:
        provisioner.provision("alice", "alice")
    assert exc_info.value.details["step"] == "user_add"


def test_policy_failure(provisioner, admin_client) -> None:
    admin_client.policy_set.side_effect = RuntimeError("no such policy")
    with pytest.raises(ProvisioningError) as exc_info:
        provisioner.provision("alice", "alice")
    assert exc_info.value.details["step"] == "policy"


def test_bucket_failure(provisioner, fake_s3) -> None:
    fake_s3.fail("create_bucket", code="AccessDenied")
    with pytest.raises(ProvisioningError) as exc_info:
        provisioner.provision("alice", "alice")
    assert exc_info.value.details["step"] == "create_bucket"
