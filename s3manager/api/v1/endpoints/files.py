"""File API: list, upload, download and delete within the caller's namespace."""

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import Response, StreamingResponse

from s3manager.api.v1.dependencies import CurrentPrincipal, get_transfer_engine
from s3manager.application.services import TransferEngine
from s3manager.core.limiter import limit_upload, limit_writes
from s3manager.domain.exceptions import ValidationException
from s3manager.schemas.files import FileItem, FileListResponse, FileUploadResponse

router = APIRouter()


def content_disposition(key: str) -> str:
    """attachment header naming the object's last path segment (RFC 6266 filename*)."""
    name = key.rsplit("/", 1)[-1] or key
    fallback = name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name)}"


async def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    await file.seek(0, 2)
    size = file.file.tell()
    await file.seek(0)
    return size


@router.get("", response_model=FileListResponse)
async def list_files(
    principal: CurrentPrincipal,
    engine: Annotated[TransferEngine, Depends(get_transfer_engine)],
    config_id: str | None = Query(None, description="Configuration to use; default if omitted"),
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(10, description="1..100; other values fall back to 10"),
):
    """List the caller's objects (keys relative to their namespace)."""
    listing = await engine.list_files(principal.user_id, config_id, page, page_size)
    return FileListResponse(
        items=[FileItem.model_validate(i) for i in listing.items],
        total=listing.total,
        page=listing.page,
        page_size=listing.page_size,
        config_id=listing.config_id,
        config_name=listing.config_name,
    )


@router.post("/upload", response_model=FileUploadResponse, status_code=201)
@limit_upload
async def upload_file(
    request: Request,
    principal: CurrentPrincipal,
    engine: Annotated[TransferEngine, Depends(get_transfer_engine)],
    file: UploadFile = File(...),
    config_id: str | None = Form(None),
):
    """Upload a file; large files go through a multipart upload."""
    if not file.filename:
        raise ValidationException("Filename required", field="file")
    try:
        result = await engine.upload(
            principal.user_id,
            file.filename,
            file,
            await _upload_size(file),
            config_id=config_id,
            content_type=file.content_type,
        )
    finally:
        await file.close()
    return FileUploadResponse.model_validate(result)


@router.get("/download/{key:path}")
async def download_file(
    key: str,
    principal: CurrentPrincipal,
    engine: Annotated[TransferEngine, Depends(get_transfer_engine)],
    config_id: str | None = Query(None),
) -> StreamingResponse:
    """Stream an object back as an attachment."""
    result = await engine.download(principal.user_id, key, config_id)
    headers = {"Content-Disposition": content_disposition(result.key)}
    if result.content_length is not None:
        headers["Content-Length"] = str(result.content_length)
    return StreamingResponse(result.body, media_type=result.content_type, headers=headers)


@router.delete("/{key:path}", status_code=204)
@limit_writes
async def delete_file(
    request: Request,
    key: str,
    principal: CurrentPrincipal,
    engine: Annotated[TransferEngine, Depends(get_transfer_engine)],
    config_id: str | None = Query(None),
) -> Response:
    """Delete an object. Deleting a missing key succeeds."""
    await engine.delete(principal.user_id, key, config_id)
    return Response(status_code=204)
