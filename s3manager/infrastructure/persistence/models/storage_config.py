"""Storage configuration ORM model. Secret access key is stored Fernet-encrypted."""

from sqlalchemy import Boolean, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from s3manager.infrastructure.persistence.database import Base
from s3manager.infrastructure.persistence.models.mixins import OwnedModel


class StorageConfigModel(OwnedModel, Base):
    """One backend binding for one owner.

    The partial unique index allows at most one is_default row per owner;
    the registry guarantees at least one.
    """

    __tablename__ = "storage_config"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    backend_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    access_key_id: Mapped[str] = mapped_column(String(255), nullable=False)
    secret_access_key_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(String(64), nullable=False, default="us-east-1")
    bucket_name: Mapped[str] = mapped_column(String(255), nullable=False)
    endpoint_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    use_tls: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    __table_args__ = (
        Index(
            "uq_storage_config_owner_default",
            "owner_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
        Index("ix_storage_config_owner_created", "owner_id", "created_at"),
    )
