"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring: logging, the backend client
factory, the admin provisioning config, the audit sink, and engine dispose.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from s3manager.core.config import get_settings
from s3manager.infrastructure.external.storage.client_factory import BackendClientFactory
from s3manager.infrastructure.external.storage.provisioning import AdminBackendConfig
from s3manager.infrastructure.persistence import database
from s3manager.infrastructure.services.audit_sink import SqlAuditSink
from s3manager.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit dispose the SQL engine."""
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    app.state.client_factory = BackendClientFactory.from_settings(settings)
    app.state.admin_backend_config = AdminBackendConfig.from_settings(settings)
    app.state.audit_sink = SqlAuditSink(database.get_session_factory())
    logger.info("%s %s started", settings.app_name, settings.app_version)

    yield

    # ---- Shutdown ----
    await database.dispose_engine()
