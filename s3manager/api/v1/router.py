"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from s3manager.api.v1.dependencies.
"""

from fastapi import APIRouter

from s3manager.api.v1.endpoints import admin_configs, audit_logs, configs, files, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(configs.router, prefix="/configs", tags=["configs"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(
    admin_configs.router, prefix="/admin/configs", tags=["admin"]
)
api_router.include_router(
    audit_logs.router, prefix="/admin/audit-logs", tags=["admin"]
)
