"""DTOs for the transfer engine."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ObjectItem:
    """One object in an owner's namespace; key has the owner prefix stripped."""

    key: str
    size: int
    last_modified: datetime | None = None
    etag: str | None = None


@dataclass(frozen=True)
class FileListing:
    """One page of an owner's objects plus the resolved configuration."""

    items: list[ObjectItem]
    total: int
    page: int
    page_size: int
    config_id: str
    config_name: str


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful upload."""

    key: str
    size: int
    multipart: bool
    parts: int
    config_id: str
    etag: str | None = None


@dataclass(frozen=True)
class DownloadResult:
    """Streaming download: body chunks plus headers metadata."""

    key: str
    body: AsyncIterator[bytes]
    content_type: str
    content_length: int | None
    config_id: str
