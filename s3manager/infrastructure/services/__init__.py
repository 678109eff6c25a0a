"""Infrastructure services (audit sink)."""

from s3manager.infrastructure.services.audit_sink import SqlAuditSink

__all__ = ["SqlAuditSink"]
