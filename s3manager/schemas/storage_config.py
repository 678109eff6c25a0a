"""Storage configuration API schemas.

Backend kinds accept the legacy names ('aws', 'minio') and are normalized
to 'cloud' / 'self_hosted'.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from s3manager.application.dtos.storage_config import StorageConfigDraft, StorageConfigPatch
from s3manager.domain.enums import BackendKind


def _normalize_backend_kind(value: Any) -> Any:
    if value is None or isinstance(value, BackendKind):
        return value
    try:
        return BackendKind(str(value).strip().lower())
    except ValueError as e:
        raise ValueError(f"backend_kind must be one of {', '.join(BackendKind.values())}") from e


class StorageConfigCreateRequest(BaseModel):
    """Request body for creating a storage configuration."""

    name: str = Field(..., min_length=1, max_length=255)
    backend_kind: BackendKind = Field(default=BackendKind.CLOUD)
    access_key_id: str = Field(..., min_length=1, max_length=255)
    secret_access_key: SecretStr
    bucket_name: str = Field(..., min_length=1, max_length=255)
    region: str = Field(default="us-east-1", min_length=1, max_length=64)
    endpoint_url: str | None = Field(default=None, max_length=512)
    use_tls: bool = True
    is_default: bool = Field(default=False, description="Make this the owner's default")

    @field_validator("backend_kind", mode="before")
    @classmethod
    def normalize_backend_kind(cls, v: Any) -> Any:
        return _normalize_backend_kind(v)

    @field_validator("secret_access_key")
    @classmethod
    def secret_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("secret_access_key is required")
        return v

    @model_validator(mode="after")
    def endpoint_for_self_hosted(self) -> "StorageConfigCreateRequest":
        if self.backend_kind.requires_endpoint and not (self.endpoint_url or "").strip():
            raise ValueError("endpoint_url is required for self-hosted backends")
        return self

    def to_draft(self) -> StorageConfigDraft:
        return StorageConfigDraft(
            name=self.name,
            backend_kind=self.backend_kind,
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key.get_secret_value(),
            bucket_name=self.bucket_name,
            region=self.region,
            endpoint_url=self.endpoint_url or None,
            use_tls=self.use_tls,
        )


class StorageConfigUpdateRequest(BaseModel):
    """Request body for updating a configuration (partial; omitted secret keeps the stored one).

    Sending endpoint_url as null removes the stored endpoint.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    backend_kind: BackendKind | None = None
    access_key_id: str | None = Field(default=None, min_length=1, max_length=255)
    secret_access_key: SecretStr | None = None
    bucket_name: str | None = Field(default=None, min_length=1, max_length=255)
    region: str | None = Field(default=None, min_length=1, max_length=64)
    endpoint_url: str | None = Field(default=None, max_length=512)
    use_tls: bool | None = None

    @field_validator("backend_kind", mode="before")
    @classmethod
    def normalize_backend_kind(cls, v: Any) -> Any:
        return _normalize_backend_kind(v)

    def to_patch(self) -> StorageConfigPatch:
        secret = self.secret_access_key.get_secret_value() if self.secret_access_key else None
        return StorageConfigPatch(
            name=self.name,
            backend_kind=self.backend_kind,
            access_key_id=self.access_key_id,
            secret_access_key=secret or None,
            region=self.region,
            bucket_name=self.bucket_name,
            endpoint_url=self.endpoint_url or None,
            use_tls=self.use_tls,
            # An explicit null or "" removes the endpoint; omitting it keeps it.
            clear_endpoint_url="endpoint_url" in self.model_fields_set
            and not self.endpoint_url,
        )


class StorageConfigSummary(BaseModel):
    """Configuration in list responses; credentials are masked."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    backend_kind: BackendKind
    access_key_id: str
    secret_access_key: str
    region: str
    bucket_name: str
    endpoint_url: str | None = None
    use_tls: bool
    is_default: bool
    created_at: datetime
    updated_at: datetime


class StorageConfigDetail(StorageConfigSummary):
    """Full configuration including the secret (owner or admin only)."""


class StorageConfigDeleteResponse(BaseModel):
    """Response for DELETE /configs/{id}."""

    deleted_id: str
    promoted_default_id: str | None = None


class AutoProvisionRequest(BaseModel):
    """Request body for POST /configs/auto-provision."""

    username: str | None = Field(default=None, max_length=128)


class ConfigImportResponse(BaseModel):
    """Response for POST /admin/configs/import."""

    imported: int
