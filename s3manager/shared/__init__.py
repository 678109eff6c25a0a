"""Shared utilities: request context, enums, logging, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from s3manager.shared.context import (
    RequestContext,
    clear_request_context,
    get_request_context,
    set_request_context,
)
from s3manager.shared.enums import AuditAction, AuditResource

__all__ = [
    "AuditAction",
    "AuditResource",
    "RequestContext",
    "clear_request_context",
    "get_request_context",
    "set_request_context",
]
