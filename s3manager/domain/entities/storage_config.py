"""Storage configuration domain entity.

Represents one credential + endpoint binding to one bucket for one owner,
independent of persistence. The secret is held in plaintext here;
encryption at rest is a repository concern.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime

from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import ValidationException
from s3manager.shared.utils.datetime import utc_now

MASK_SUFFIX = "****"
MASK_VISIBLE_CHARS = 4

# Fields a tenant may change through update; everything else is carried over.
MUTABLE_FIELDS = (
    "name",
    "backend_kind",
    "access_key_id",
    "secret_access_key",
    "region",
    "bucket_name",
    "endpoint_url",
    "use_tls",
)
CLEARABLE_FIELDS = ("endpoint_url",)


def mask_value(value: str | None) -> str:
    """Return the first few characters of value followed by a mask.

    At most half of value is revealed, so short values never appear whole.
    """
    if not value:
        return MASK_SUFFIX
    visible = min(MASK_VISIBLE_CHARS, len(value) // 2)
    return value[:visible] + MASK_SUFFIX


@dataclass
class StorageConfig:
    """Domain entity for a storage configuration.

    Validation runs on construction: name, credentials and bucket are
    required, and self-hosted backends need an endpoint.
    """

    id: str
    owner_id: str
    name: str
    backend_kind: BackendKind
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: str | None = None
    use_tls: bool = True
    is_default: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.backend_kind = BackendKind(self.backend_kind)
        self.validate()

    def validate(self) -> None:
        """Validate configuration rules. Raises ValidationException if invalid."""
        if not self.owner_id:
            raise ValidationException("Owner is required", field="owner_id")
        if not self.name or not self.name.strip():
            raise ValidationException("Configuration name is required", field="name")
        if not self.access_key_id:
            raise ValidationException("Access key is required", field="access_key_id")
        if not self.secret_access_key:
            raise ValidationException(
                "Secret access key is required", field="secret_access_key"
            )
        if not self.bucket_name:
            raise ValidationException("Bucket name is required", field="bucket_name")
        if self.backend_kind.requires_endpoint and not self.endpoint_url:
            raise ValidationException(
                "Endpoint URL is required for self-hosted backends",
                field="endpoint_url",
            )

    def merged(
        self, changes: dict[str, object], clear: tuple[str, ...] = ()
    ) -> "StorageConfig":
        """Return a copy with mutable fields replaced by non-None values in changes.

        id, owner_id, created_at and is_default always come from self.
        A None secret means "unchanged". Optional fields named in clear are
        reset to None.
        """
        updates: dict[str, object] = {
            name: None for name in clear if name in CLEARABLE_FIELDS
        }
        updates.update(
            (name, value)
            for name, value in changes.items()
            if name in MUTABLE_FIELDS and value is not None
        )
        return replace(self, **updates, updated_at=utc_now())

    @property
    def masked_access_key(self) -> str:
        return mask_value(self.access_key_id)

    @property
    def masked_secret(self) -> str:
        return mask_value(self.secret_access_key)
