"""Bulk export/import of storage configurations (admin only).

Exports carry secrets so an export can be re-imported elsewhere. Imports
upsert by id and then restore the single-default rule for every owner
they touched.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any

from s3manager.application.dtos.audit import AuditEvent
from s3manager.application.interfaces.repositories import IStorageConfigRepository
from s3manager.application.interfaces.services import IAuditSink
from s3manager.application.services.config_registry import ConfigRegistry
from s3manager.domain.entities.storage_config import StorageConfig
from s3manager.domain.enums import BackendKind
from s3manager.domain.exceptions import S3ManagerException, ValidationException
from s3manager.shared.enums import AuditAction, AuditResource
from s3manager.shared.telemetry.logging import get_logger
from s3manager.shared.utils.datetime import ensure_utc, utc_now
from s3manager.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

EXPORT_COLUMNS = (
    "id",
    "user_id",
    "name",
    "access_key",
    "secret_key",
    "region",
    "bucket_name",
    "endpoint_url",
    "use_ssl",
    "storage_type",
    "is_default",
    "created_at",
    "updated_at",
)
SUPPORTED_FORMATS = ("json", "csv")
_TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on"})


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)  # type: ignore[return-value]
    if not value:
        return utc_now()
    text = str(value).strip().replace("Z", "+00:00")
    return ensure_utc(datetime.fromisoformat(text))  # type: ignore[return-value]


def config_to_row(config: StorageConfig) -> dict[str, Any]:
    """Serialize one configuration to an export row (secret included)."""
    return {
        "id": config.id,
        "user_id": config.owner_id,
        "name": config.name,
        "access_key": config.access_key_id,
        "secret_key": config.secret_access_key,
        "region": config.region,
        "bucket_name": config.bucket_name,
        "endpoint_url": config.endpoint_url or "",
        "use_ssl": config.use_tls,
        "storage_type": config.backend_kind.value,
        "is_default": config.is_default,
        "created_at": config.created_at.isoformat(),
        "updated_at": config.updated_at.isoformat(),
    }


def row_to_config(row: dict[str, Any], index: int) -> StorageConfig:
    """Build a configuration from an import row.

    Legacy backend names ('aws', 'minio') are accepted. A missing id gets a
    fresh one.

    Raises:
        ValidationException: If the row is incomplete or malformed.
    """
    try:
        kind = BackendKind(row.get("storage_type") or BackendKind.CLOUD.value)
    except ValueError as e:
        raise ValidationException(
            f"Row {index}: unknown storage_type {row.get('storage_type')!r}",
            field="storage_type",
        ) from e
    try:
        created_at = _parse_datetime(row.get("created_at"))
        updated_at = _parse_datetime(row.get("updated_at"))
    except ValueError as e:
        raise ValidationException(f"Row {index}: invalid timestamp", field="created_at") from e
    try:
        return StorageConfig(
            id=str(row.get("id") or generate_cuid()),
            owner_id=str(row.get("user_id") or ""),
            name=str(row.get("name") or ""),
            backend_kind=kind,
            access_key_id=str(row.get("access_key") or ""),
            secret_access_key=str(row.get("secret_key") or ""),
            bucket_name=str(row.get("bucket_name") or ""),
            region=str(row.get("region") or "us-east-1"),
            endpoint_url=row.get("endpoint_url") or None,
            use_tls=_parse_bool(row.get("use_ssl"), default=True),
            is_default=_parse_bool(row.get("is_default")),
            created_at=created_at,
            updated_at=updated_at,
        )
    except ValidationException as e:
        raise ValidationException(f"Row {index}: {e.message}", field=e.details.get("field")) from e


def dump_configs(configs: list[StorageConfig], fmt: str) -> str:
    """Render configurations as JSON or CSV text."""
    rows = [config_to_row(c) for c in configs]
    if fmt == "json":
        return json.dumps(rows, indent=2)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for row in rows:
        row["use_ssl"] = str(row["use_ssl"]).lower()
        row["is_default"] = str(row["is_default"]).lower()
        writer.writerow(row)
    return buffer.getvalue()


def parse_rows(payload: str, fmt: str) -> list[dict[str, Any]]:
    """Parse JSON (list of objects) or CSV (header row) import text.

    Raises:
        ValidationException: If the payload cannot be parsed.
    """
    if fmt == "json":
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationException(f"Invalid JSON: {e.msg}", field="file") from e
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise ValidationException("JSON import must be a list of objects", field="file")
        return data
    reader = csv.DictReader(io.StringIO(payload))
    missing = {"user_id", "name", "access_key", "secret_key", "bucket_name"} - set(
        reader.fieldnames or []
    )
    if missing:
        raise ValidationException(
            f"CSV import is missing columns: {', '.join(sorted(missing))}", field="file"
        )
    return list(reader)


def _check_format(fmt: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValidationException(
            f"Unsupported format {fmt!r}; use one of {', '.join(SUPPORTED_FORMATS)}",
            field="format",
        )
    return fmt


class ConfigBulkService:
    """Admin export/import of every owner's configurations."""

    def __init__(
        self,
        repo: IStorageConfigRepository,
        registry: ConfigRegistry,
        audit_sink: IAuditSink,
    ) -> None:
        self._repo = repo
        self._registry = registry
        self._audit = audit_sink

    async def _record(
        self, actor_id: str, action: AuditAction, details: dict[str, Any], error: str | None = None
    ) -> None:
        await self._audit.record(
            AuditEvent(
                action=action.value,
                resource=AuditResource.STORAGE_CONFIG.value,
                resource_id=None,
                success=error is None,
                user_id=actor_id,
                error=error,
                details=details,
            )
        )

    async def export(self, actor_id: str, fmt: str) -> str:
        """Return every configuration rendered in fmt ('json' or 'csv')."""
        fmt = _check_format(fmt)
        configs = await self._repo.list_all()
        await self._record(actor_id, AuditAction.CONFIG_EXPORT, {"format": fmt, "count": len(configs)})
        return dump_configs(configs, fmt)

    async def import_configs(self, actor_id: str, fmt: str, payload: str) -> int:
        """Upsert configurations from payload; return how many were written.

        Rows are written with their default flag withheld, then each touched
        owner gets exactly one default: the first imported row flagged as
        default wins, otherwise the owner's existing default stays.

        Raises:
            ValidationException: If the payload or any row is invalid.
        """
        details: dict[str, Any] = {"format": fmt}
        try:
            fmt = _check_format(fmt)
            rows = parse_rows(payload, fmt)
            configs = [row_to_config(row, i + 1) for i, row in enumerate(rows)]
            wanted_default: dict[str, str] = {}
            owners: list[str] = []
            for config in configs:
                if config.owner_id not in owners:
                    owners.append(config.owner_id)
                if config.is_default:
                    wanted_default.setdefault(config.owner_id, config.id)
                existing = await self._repo.get(config.id)
                if existing is not None and existing.owner_id not in owners:
                    owners.append(existing.owner_id)
                config.is_default = bool(
                    existing is not None
                    and existing.owner_id == config.owner_id
                    and existing.is_default
                )
                await self._repo.save(config)
            for owner_id in owners:
                if owner_id in wanted_default:
                    await self._repo.clear_defaults(owner_id)
                    await self._repo.set_default_flag(wanted_default[owner_id], True)
                await self._registry.repair_default(owner_id)
        except S3ManagerException as exc:
            await self._record(actor_id, AuditAction.CONFIG_IMPORT, details, error=exc.message)
            raise
        details["count"] = len(configs)
        await self._record(actor_id, AuditAction.CONFIG_IMPORT, details)
        logger.info("Imported %d storage configs for %d owners", len(configs), len(owners))
        return len(configs)
