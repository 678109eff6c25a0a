"""Presentation-layer dependency injection (composition root).

Routes depend only on these providers, never on infrastructure directly.
"""

from s3manager.api.v1.dependencies.auth import (
    AdminPrincipal,
    CurrentPrincipal,
    Principal,
    get_current_principal,
    require_admin,
)
from s3manager.api.v1.dependencies.storage import (
    get_admin_backend_config,
    get_audit_log_repo,
    get_auto_provision_service,
    get_audit_sink,
    get_client_factory,
    get_config_bulk_service,
    get_config_registry,
    get_config_registry_for_write,
    get_config_repo,
    get_config_repo_for_write,
    get_provisioner,
    get_transfer_engine,
    get_transfer_engine_for_write,
)

__all__ = [
    "AdminPrincipal",
    "CurrentPrincipal",
    "Principal",
    "get_admin_backend_config",
    "get_audit_log_repo",
    "get_auto_provision_service",
    "get_audit_sink",
    "get_client_factory",
    "get_config_bulk_service",
    "get_config_registry",
    "get_config_registry_for_write",
    "get_config_repo",
    "get_config_repo_for_write",
    "get_current_principal",
    "get_provisioner",
    "get_transfer_engine",
    "get_transfer_engine_for_write",
    "require_admin",
]
