"""Application services: configuration registry, transfer engine, bulk import/export."""

from s3manager.application.services.auto_provision import AutoProvisionService
from s3manager.application.services.config_bulk import ConfigBulkService
from s3manager.application.services.config_registry import ConfigRegistry
from s3manager.application.services.multipart_upload import (
    MultipartUploader,
    MultipartUploadSession,
)
from s3manager.application.services.transfer_engine import TransferEngine

__all__ = [
    "AutoProvisionService",
    "ConfigBulkService",
    "ConfigRegistry",
    "MultipartUploadSession",
    "MultipartUploader",
    "TransferEngine",
]
