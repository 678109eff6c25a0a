"""DTOs for storage configurations."""

from dataclasses import dataclass
from datetime import datetime

from s3manager.domain.enums import BackendKind


@dataclass(frozen=True)
class StorageConfigDraft:
    """Input for creating a configuration (owner supplied separately)."""

    name: str
    backend_kind: BackendKind
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: str | None = None
    use_tls: bool = True


@dataclass(frozen=True)
class StorageConfigPatch:
    """Partial update. None means "leave unchanged" (secret included).

    endpoint_url can only be removed explicitly, with clear_endpoint_url.
    """

    name: str | None = None
    backend_kind: BackendKind | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    region: str | None = None
    bucket_name: str | None = None
    endpoint_url: str | None = None
    use_tls: bool | None = None
    clear_endpoint_url: bool = False


@dataclass(frozen=True)
class StorageConfigView:
    """Redacted read-model for list views. Never holds a full secret."""

    id: str
    owner_id: str
    name: str
    backend_kind: BackendKind
    access_key_id: str
    secret_access_key: str
    region: str
    bucket_name: str
    endpoint_url: str | None
    use_tls: bool
    is_default: bool
    created_at: datetime
    updated_at: datetime
