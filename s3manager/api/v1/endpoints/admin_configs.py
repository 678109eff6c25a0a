"""Admin bulk export/import of storage configurations."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import Response

from s3manager.api.v1.dependencies import AdminPrincipal, get_config_bulk_service
from s3manager.application.services import ConfigBulkService
from s3manager.core.limiter import limit_writes
from s3manager.domain.exceptions import ValidationException
from s3manager.schemas.storage_config import ConfigImportResponse

router = APIRouter()

_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


@router.get("/export")
async def export_configs(
    principal: AdminPrincipal,
    bulk: Annotated[ConfigBulkService, Depends(get_config_bulk_service)],
    fmt: str = Query("json", alias="format", description="json or csv"),
) -> Response:
    """Download every configuration (secrets included) as JSON or CSV."""
    content = await bulk.export(principal.user_id, fmt)
    fmt = fmt.lower()
    return Response(
        content=content,
        media_type=_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="storage_configs.{fmt}"'},
    )


@router.post("/import", response_model=ConfigImportResponse)
@limit_writes
async def import_configs(
    request: Request,
    principal: AdminPrincipal,
    bulk: Annotated[ConfigBulkService, Depends(get_config_bulk_service)],
    file: UploadFile = File(...),
    fmt: str = Query("json", alias="format", description="json or csv"),
):
    """Upsert configurations from an uploaded export; repairs defaults per owner."""
    raw = await file.read()
    try:
        payload = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationException("Import file must be UTF-8 text", field="file") from e
    imported = await bulk.import_configs(principal.user_id, fmt, payload)
    return ConfigImportResponse(imported=imported)
