"""Shared enumerations for s3manager.

Cross-cutting enums used by application and infrastructure (audit actions
and resources). Domain-specific enums (backend kind, transfer stage,
multipart state) live in s3manager.domain.enums.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class AuditResource(_ValuesMixin, str, Enum):
    """Resource kinds that appear in audit events."""

    STORAGE_CONFIG = "storage_config"
    FILE = "file"
    AUDIT_LOG = "audit_log"


class AuditAction(_ValuesMixin, str, Enum):
    """Audit action types recorded by the registry and the transfer engine."""

    CONFIG_CREATE = "config_create"
    CONFIG_READ_SECRET = "config_read_secret"
    CONFIG_UPDATE = "config_update"
    CONFIG_DELETE = "config_delete"
    CONFIG_SET_DEFAULT = "config_set_default"
    CONFIG_AUTO_PROVISION = "config_auto_provision"
    CONFIG_EXPORT = "config_export"
    CONFIG_IMPORT = "config_import"
    FILE_LIST = "file_list"
    FILE_UPLOAD = "file_upload"
    FILE_DOWNLOAD = "file_download"
    FILE_DELETE = "file_delete"
