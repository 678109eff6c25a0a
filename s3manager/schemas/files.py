"""File transfer API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FileItem(BaseModel):
    """One object; key is relative to the caller's namespace."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    size: int
    last_modified: datetime | None = None
    etag: str | None = None


class FileListResponse(BaseModel):
    """Paginated listing of the caller's objects."""

    items: list[FileItem]
    total: int
    page: int
    page_size: int
    config_id: str
    config_name: str


class FileUploadResponse(BaseModel):
    """Response after a successful upload."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    size: int
    multipart: bool
    parts: int
    config_id: str
    etag: str | None = None
